"""Domain models - lifecycle enums and engine inputs/outcomes"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional


class AccountStatus(str, Enum):
    ACTIVE = "active"
    SUSPENDED = "suspended"
    CLOSED = "closed"


class CardStatus(str, Enum):
    ACTIVE = "active"
    FROZEN = "frozen"
    LOST = "lost"
    STOLEN = "stolen"
    CLOSED = "closed"


class CardType(str, Enum):
    PHYSICAL = "physical"
    VIRTUAL = "virtual"


class TransactionType(str, Enum):
    PURCHASE = "purchase"
    PAYMENT = "payment"
    REFUND = "refund"
    FEE = "fee"
    INTEREST = "interest"
    ADJUSTMENT = "adjustment"


class TransactionStatus(str, Enum):
    PENDING = "pending"
    POSTED = "posted"
    DECLINED = "declined"
    REVERSED = "reversed"

    def can_transition_to(self, target: "TransactionStatus") -> bool:
        """Only pending transactions move, and only to posted or reversed"""
        return target in _TRANSACTION_TRANSITIONS.get(self, ())

    @property
    def is_approved(self) -> bool:
        return self in (TransactionStatus.PENDING, TransactionStatus.POSTED)


_TRANSACTION_TRANSITIONS = {
    TransactionStatus.PENDING: (TransactionStatus.POSTED, TransactionStatus.REVERSED),
}


class StatementStatus(str, Enum):
    GENERATED = "generated"
    SENT = "sent"
    PAID = "paid"
    OVERDUE = "overdue"


class DeclineCode(str, Enum):
    """Machine-readable reason an authorization was declined"""

    CARD_NOT_FOUND = "card_not_found"
    CARD_INACTIVE = "card_inactive"
    ACCOUNT_NOT_ACTIVE = "account_not_active"
    INSUFFICIENT_CREDIT = "insufficient_credit"
    SPENDING_LIMIT_EXCEEDED = "spending_limit_exceeded"


class RejectionCode(str, Enum):
    """Machine-readable reason a settlement or statement run was refused"""

    TRANSACTION_NOT_FOUND = "transaction_not_found"
    TRANSACTION_NOT_PENDING = "transaction_not_pending"
    INSUFFICIENT_CREDIT = "insufficient_credit"
    ACCOUNT_NOT_FOUND = "account_not_found"
    STATEMENT_EXISTS = "statement_exists"
    GENERATION_FAILED = "generation_failed"


@dataclass
class MerchantData:
    """Opaque merchant descriptor passed through from the card network"""

    category: Optional[int] = None
    name: Optional[str] = None
    address: Optional[Dict[str, Any]] = None


@dataclass
class AuthorizationRequest:
    """Incoming purchase authorization (amount in minor units)"""

    id: str
    card_id: str
    amount: int
    currency: str = "usd"
    merchant_data: MerchantData = field(default_factory=MerchantData)


@dataclass
class AuthorizationDecision:
    """Approve/decline outcome; declines are values, not exceptions"""

    approved: bool
    transaction: Optional[Any] = None
    decline_code: Optional[DeclineCode] = None
    reason: Optional[str] = None
    replayed: bool = False


@dataclass
class SettlementRequest:
    transaction_id: str
    final_amount: Optional[Decimal] = None


@dataclass
class SettlementOutcome:
    settled: bool
    transaction: Optional[Any] = None
    rejection_code: Optional[RejectionCode] = None
    reason: Optional[str] = None
    adjustment: Optional[Decimal] = None


@dataclass
class BulkSettlementResult:
    settled_count: int
    failed_count: int
    outcomes: List[SettlementOutcome] = field(default_factory=list)


@dataclass
class PaymentReceipt:
    transaction: Any
    previous_balance: Decimal
    new_balance: Decimal
    amount_paid: Decimal


@dataclass
class StatementTotals:
    """Per-type sums over one billing window"""

    purchases: Decimal = Decimal("0.00")
    payments: Decimal = Decimal("0.00")
    fees: Decimal = Decimal("0.00")
    interest: Decimal = Decimal("0.00")
    transaction_count: int = 0


@dataclass
class StatementOutcome:
    account_id: str
    generated: bool
    statement: Optional[Any] = None
    rejection_code: Optional[RejectionCode] = None
    reason: Optional[str] = None


@dataclass
class StatementRunResult:
    run_date: date
    generated_count: int
    skipped_count: int
    outcomes: List[StatementOutcome] = field(default_factory=list)


@dataclass
class BillingWindow:
    """Half-open aggregation window (start, end]"""

    start: datetime
    end: datetime
