"""/v1/payments - cardholder payments and payment history"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from card_ledger.api.dependencies import get_payment_engine, get_request_id, get_store
from card_ledger.api.v1.schemas import (
    PaymentHistoryResponse,
    PaymentRequest,
    PaymentResponse,
    TransactionSchema,
)
from card_ledger.domain.exceptions import AccountNotFoundError
from card_ledger.infrastructure.database.store import LedgerStore
from card_ledger.services.payments import PaymentEngine

router = APIRouter()


@router.post("/payments", response_model=PaymentResponse)
def make_payment(
    body: PaymentRequest,
    request: Request,
    engine: PaymentEngine = Depends(get_payment_engine),
):
    """Apply a payment; overpayment floors the balance at zero"""
    request_id = get_request_id(request)

    try:
        receipt = engine.apply_payment(body.account_id, body.amount)
    except AccountNotFoundError:
        raise HTTPException(status_code=404, detail="Account not found")
    except Exception as e:
        logging.error(f"Payment error: {e}", extra={"request_id": request_id, "account_id": body.account_id})
        raise HTTPException(status_code=500, detail="Internal server error")

    return PaymentResponse(
        success=True,
        transaction_id=receipt.transaction.id,
        new_balance=receipt.new_balance,
        amount_paid=receipt.amount_paid,
        previous_balance=receipt.previous_balance,
    )


@router.get("/payments/{account_id}", response_model=PaymentHistoryResponse)
def get_payment_history(
    account_id: str,
    limit: int = Query(100, ge=1, le=500),
    store: LedgerStore = Depends(get_store),
):
    with store.unit_of_work() as uow:
        payments = uow.transactions.list_payments(account_id, limit=limit)

    return PaymentHistoryResponse(
        account_id=account_id,
        count=len(payments),
        payments=[TransactionSchema.model_validate(p) for p in payments],
    )
