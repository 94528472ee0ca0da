"""Authorization engine - real-time approve/decline and provisional balance hold"""

import secrets
import string
import time
from decimal import Decimal
from typing import Optional

from card_ledger.domain.models import (
    AccountStatus,
    AuthorizationDecision,
    AuthorizationRequest,
    CardStatus,
    DeclineCode,
    TransactionStatus,
    TransactionType,
)
from card_ledger.domain.exceptions import InvalidAmountError
from card_ledger.domain.money import cents_to_amount, format_usd
from card_ledger.infrastructure.database.models import Account, Card, LedgerTransaction
from card_ledger.infrastructure.database.store import LedgerStore, LedgerUnitOfWork
from card_ledger.infrastructure.observability.logging import log_authorization
from card_ledger.infrastructure.observability.metrics import record_authorization
from card_ledger.utils.date_utils import Clock, utcnow

AUTH_CODE_ALPHABET = string.ascii_uppercase + string.digits


def generate_authorization_code(length: int = 6) -> str:
    return "".join(secrets.choice(AUTH_CODE_ALPHABET) for _ in range(length))


def insufficient_credit_reason(available: Decimal, requested: Decimal) -> str:
    return f"Insufficient credit. Available: {format_usd(available)}, Requested: {format_usd(requested)}"


def replay_decision(txn: LedgerTransaction) -> AuthorizationDecision:
    """Rebuild the decision recorded for an already-seen transaction id"""
    status = TransactionStatus(txn.status)
    return AuthorizationDecision(
        approved=status.is_approved,
        transaction=txn,
        decline_code=DeclineCode(txn.decline_code) if txn.decline_code else None,
        reason=txn.decline_reason,
        replayed=True,
    )


class AuthorizationEngine:
    """
    Decides authorizations against an account's available credit.

    Each unique transaction id produces at most one ledger mutation; repeated
    deliveries of the same id return the decision recorded the first time.
    """

    def __init__(self, store: LedgerStore, clock: Clock = utcnow):
        self.store = store
        self.clock = clock

    def authorize(self, request: AuthorizationRequest) -> AuthorizationDecision:
        """
        Gates run in order and the first failure wins:
        1. Idempotency replay
        2. Card exists and is active
        3. Account is active
        4. Available credit covers the amount
        5. Card spending limit (if any)
        6. Commit pending transaction + balance increment atomically
        """
        if request.amount <= 0:
            raise InvalidAmountError("Authorization amount must be positive")

        start_time = time.time()
        amount = cents_to_amount(request.amount)

        with self.store.unit_of_work() as uow:
            existing = uow.transactions.get(request.id)
            if existing is not None:
                return self._finish(request, replay_decision(existing), amount, start_time)

            card = uow.cards.get(request.card_id)
            if card is None:
                decision = AuthorizationDecision(
                    approved=False,
                    decline_code=DeclineCode.CARD_NOT_FOUND,
                    reason="Card not found",
                )
                return self._finish(request, decision, amount, start_time)
            account_id = card.account_id

        with self.store.account_lock(account_id), self.store.unit_of_work() as uow:
            decision = self._decide_locked(uow, request, amount)

        return self._finish(request, decision, amount, start_time)

    def _decide_locked(self, uow: LedgerUnitOfWork, request: AuthorizationRequest, amount: Decimal) -> AuthorizationDecision:
        # A duplicate may have committed while we waited for the lock
        existing = uow.transactions.get(request.id)
        if existing is not None:
            return replay_decision(existing)

        card = uow.cards.get(request.card_id)
        account = uow.accounts.get_for_update(card.account_id)

        if card.status != CardStatus.ACTIVE:
            status = CardStatus(card.status).value
            return self._decline(uow, request, card, account, amount, DeclineCode.CARD_INACTIVE, f"Card status is {status}")

        if account is None or account.status != AccountStatus.ACTIVE:
            return self._decline(uow, request, card, account, amount, DeclineCode.ACCOUNT_NOT_ACTIVE, "Account not active")

        available = account.available_credit
        if available < amount:
            return self._decline(
                uow,
                request,
                card,
                account,
                amount,
                DeclineCode.INSUFFICIENT_CREDIT,
                insufficient_credit_reason(available, amount),
            )

        if card.spending_limit is not None and amount > card.spending_limit:
            return self._decline(
                uow,
                request,
                card,
                account,
                amount,
                DeclineCode.SPENDING_LIMIT_EXCEEDED,
                f"Exceeds card spending limit of {format_usd(card.spending_limit)}",
            )

        return self._approve(uow, request, card, account, amount)

    def _approve(
        self,
        uow: LedgerUnitOfWork,
        request: AuthorizationRequest,
        card: Card,
        account: Account,
        amount: Decimal,
    ) -> AuthorizationDecision:
        previous_balance = account.current_balance
        result = uow.transactions.find_or_create(
            **self._transaction_fields(request, card, account.id, amount),
            status=TransactionStatus.PENDING,
            authorized_amount=amount,
            previous_balance=previous_balance,
            new_balance=previous_balance + amount,
            authorization_code=generate_authorization_code(),
        )
        if not result.created:
            return replay_decision(result.record)

        txn = result.record
        new_balance = uow.accounts.apply_balance_delta(account.id, amount, enforce_credit_limit=True)

        if new_balance is None:
            # Another writer consumed the credit between our read and the increment
            current = uow.accounts.get_for_update(account.id)
            txn.status = TransactionStatus.DECLINED
            txn.authorization_code = None
            txn.previous_balance = current.current_balance
            txn.new_balance = current.current_balance
            txn.decline_code = DeclineCode.INSUFFICIENT_CREDIT
            txn.decline_reason = insufficient_credit_reason(current.available_credit, amount)
            uow.session.flush()
            return AuthorizationDecision(
                approved=False,
                transaction=txn,
                decline_code=DeclineCode.INSUFFICIENT_CREDIT,
                reason=txn.decline_reason,
            )

        # Snapshot from the store's own arithmetic so the audit pair always differs by `amount`
        txn.previous_balance = new_balance - amount
        txn.new_balance = new_balance
        uow.session.flush()

        return AuthorizationDecision(approved=True, transaction=txn)

    def _decline(
        self,
        uow: LedgerUnitOfWork,
        request: AuthorizationRequest,
        card: Card,
        account: Optional[Account],
        amount: Decimal,
        code: DeclineCode,
        reason: str,
    ) -> AuthorizationDecision:
        """Declines are permanently recorded whenever there is an account to attach them to"""
        if account is None:
            return AuthorizationDecision(approved=False, decline_code=code, reason=reason)

        result = uow.transactions.find_or_create(
            **self._transaction_fields(request, card, account.id, amount),
            status=TransactionStatus.DECLINED,
            previous_balance=account.current_balance,
            new_balance=account.current_balance,
            decline_code=code,
            decline_reason=reason,
        )
        if not result.created:
            return replay_decision(result.record)

        return AuthorizationDecision(approved=False, transaction=result.record, decline_code=code, reason=reason)

    def _transaction_fields(self, request: AuthorizationRequest, card: Card, account_id: str, amount: Decimal) -> dict:
        merchant = request.merchant_data
        now = self.clock()
        return {
            "id": request.id,
            "card_id": card.id,
            "account_id": account_id,
            "amount": amount,
            "currency": (request.currency or "usd").lower(),
            "transaction_type": TransactionType.PURCHASE,
            "merchant_category_code": merchant.category,
            "merchant_name": merchant.name,
            "merchant_address": merchant.address,
            "created_at": now,
            "updated_at": now,
        }

    def _finish(
        self,
        request: AuthorizationRequest,
        decision: AuthorizationDecision,
        amount: Decimal,
        start_time: float,
    ) -> AuthorizationDecision:
        code = decision.decline_code.value if decision.decline_code else None
        record_authorization(decision.approved, code, decision.replayed, amount)
        log_authorization(
            request.id,
            request.card_id,
            decision.approved,
            code,
            decision.replayed,
            (time.time() - start_time) * 1000,
        )
        return decision
