"""Pydantic schemas for API request/response validation"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from card_ledger.domain.models import (
    AccountStatus,
    DeclineCode,
    StatementStatus,
    TransactionStatus,
    TransactionType,
)


class MerchantDataSchema(BaseModel):
    """Merchant descriptor passed through from the card network"""

    category: Optional[int] = None
    name: Optional[str] = None
    address: Optional[Dict[str, Any]] = None


class AuthorizationWebhook(BaseModel):
    """Request body for POST /v1/webhooks/transactions"""

    id: str = Field(..., min_length=1, description="Transaction identifier (idempotency key)")
    card_id: str = Field(..., min_length=1, description="Card identifier")
    amount: int = Field(..., gt=0, description="Amount in minor units (cents)")
    currency: str = Field("usd", min_length=3, max_length=3)
    merchant_data: MerchantDataSchema = Field(default_factory=MerchantDataSchema)


class TransactionSchema(BaseModel):
    """Ledger transaction as exposed to callers"""

    model_config = ConfigDict(from_attributes=True)

    id: str
    card_id: Optional[str] = None
    account_id: str
    amount: Decimal
    authorized_amount: Optional[Decimal] = None
    currency: str
    transaction_type: TransactionType
    status: TransactionStatus
    previous_balance: Decimal
    new_balance: Decimal
    authorization_code: Optional[str] = None
    decline_code: Optional[DeclineCode] = None
    decline_reason: Optional[str] = None
    merchant_category_code: Optional[int] = None
    merchant_name: Optional[str] = None
    merchant_address: Optional[Dict[str, Any]] = None
    statement_id: Optional[str] = None
    created_at: datetime
    posted_at: Optional[datetime] = None


class AuthorizationResponse(BaseModel):
    """Response for POST /v1/webhooks/transactions"""

    approved: bool
    transaction: Optional[TransactionSchema] = None
    reason: Optional[str] = None
    decline_code: Optional[DeclineCode] = None


class SettlementWebhook(BaseModel):
    """Request body for POST /v1/webhooks/settlements"""

    transaction_id: str = Field(..., min_length=1)
    final_amount: Optional[Decimal] = Field(None, gt=0, description="Final charge in currency units")


class SettlementResponse(BaseModel):
    settled: bool
    transaction: Optional[TransactionSchema] = None
    reason: Optional[str] = None
    rejection_code: Optional[str] = None


class BulkSettlementWebhook(BaseModel):
    settlements: List[SettlementWebhook] = Field(..., min_length=1)


class BulkSettlementResponse(BaseModel):
    settled_count: int
    failed_count: int


class PaymentRequest(BaseModel):
    """Request body for POST /v1/payments"""

    account_id: str = Field(..., min_length=1)
    amount: Decimal = Field(..., gt=0, description="Payment in currency units")


class PaymentResponse(BaseModel):
    success: bool
    transaction_id: str
    new_balance: Decimal
    amount_paid: Decimal
    previous_balance: Decimal


class PaymentHistoryResponse(BaseModel):
    account_id: str
    count: int
    payments: List[TransactionSchema]


class AccountSchema(BaseModel):
    """Account detail with derived available credit"""

    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    account_number: Optional[str] = None
    credit_limit: Decimal
    current_balance: Decimal
    available_credit: Decimal
    apr_rate: Decimal
    statement_closing_day: int
    payment_due_day: int
    status: AccountStatus
    created_at: datetime


class UserAccountsResponse(BaseModel):
    user_id: str
    count: int
    accounts: List[AccountSchema]


class TransactionHistoryResponse(BaseModel):
    account_id: str
    count: int
    transactions: List[TransactionSchema]


class CategorySpend(BaseModel):
    merchant_category_code: Optional[int] = None
    total: Decimal


class SpendingResponse(BaseModel):
    account_id: str
    days: int
    categories: List[CategorySpend]


class StatementSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    account_id: str
    statement_date: date
    period_start: datetime
    period_end: datetime
    previous_balance: Decimal
    closing_balance: Decimal
    total_purchases: Decimal
    total_payments: Decimal
    total_fees: Decimal
    total_interest: Decimal
    minimum_payment_due: Decimal
    payment_due_date: date
    status: StatementStatus


class StatementRunResponse(BaseModel):
    """Response for POST /v1/statements/generate"""

    success: bool
    generated_count: int
    skipped_count: int


class StatementGenerationResponse(BaseModel):
    generated: bool
    statement: Optional[StatementSchema] = None
    reason: Optional[str] = None


class StatementHistoryResponse(BaseModel):
    account_id: str
    count: int
    statements: List[StatementSchema]
