"""GET /v1/accounts/* - read-only account views"""

from fastapi import APIRouter, Depends, HTTPException, Query

from card_ledger.api.dependencies import get_store
from card_ledger.api.v1.schemas import (
    AccountSchema,
    CategorySpend,
    SpendingResponse,
    TransactionHistoryResponse,
    TransactionSchema,
    UserAccountsResponse,
)
from card_ledger.infrastructure.database.store import LedgerStore

router = APIRouter()


@router.get("/accounts/{account_id}", response_model=AccountSchema)
def get_account(account_id: str, store: LedgerStore = Depends(get_store)):
    with store.unit_of_work() as uow:
        account = uow.accounts.get(account_id)

    if not account:
        raise HTTPException(status_code=404, detail="Account not found")

    return AccountSchema.model_validate(account)


@router.get("/accounts/{account_id}/transactions", response_model=TransactionHistoryResponse)
def get_account_transactions(
    account_id: str,
    limit: int = Query(50, ge=1, le=500),
    store: LedgerStore = Depends(get_store),
):
    """Transaction history, newest first"""
    with store.unit_of_work() as uow:
        transactions = uow.transactions.list_by_account(account_id, limit=limit)

    return TransactionHistoryResponse(
        account_id=account_id,
        count=len(transactions),
        transactions=[TransactionSchema.model_validate(t) for t in transactions],
    )


@router.get("/accounts/{account_id}/spending", response_model=SpendingResponse)
def get_account_spending(
    account_id: str,
    days: int = Query(30, ge=1, le=365),
    store: LedgerStore = Depends(get_store),
):
    """Posted purchase totals by merchant category"""
    with store.unit_of_work() as uow:
        rows = uow.transactions.spending_by_category(account_id, days=days)

    return SpendingResponse(
        account_id=account_id,
        days=days,
        categories=[CategorySpend(**row) for row in rows],
    )


@router.get("/users/{user_id}/accounts", response_model=UserAccountsResponse)
def get_user_accounts(user_id: str, store: LedgerStore = Depends(get_store)):
    """All accounts held by a user, newest first"""
    with store.unit_of_work() as uow:
        accounts = uow.accounts.list_by_user(user_id)

    return UserAccountsResponse(
        user_id=user_id,
        count=len(accounts),
        accounts=[AccountSchema.model_validate(a) for a in accounts],
    )
