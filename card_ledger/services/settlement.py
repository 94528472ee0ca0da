"""Settlement engine - finalizes pending authorizations, reconciling pre-auth holds"""

import logging
from decimal import Decimal
from typing import Iterable, Optional

from card_ledger.domain.exceptions import InvalidAmountError
from card_ledger.domain.models import (
    BulkSettlementResult,
    RejectionCode,
    SettlementOutcome,
    SettlementRequest,
    TransactionStatus,
)
from card_ledger.domain.money import format_usd, to_money
from card_ledger.infrastructure.database.models import LedgerTransaction
from card_ledger.infrastructure.database.store import LedgerStore, LedgerUnitOfWork
from card_ledger.infrastructure.observability.logging import log_settlement
from card_ledger.infrastructure.observability.metrics import record_settlement
from card_ledger.utils.date_utils import Clock, utcnow


class SettlementEngine:
    """
    Moves transactions from pending to posted exactly once.

    Re-settling is a caller error and is reported as a rejected outcome, unlike
    duplicate authorization deliveries which replay silently.
    """

    def __init__(self, store: LedgerStore, clock: Clock = utcnow):
        self.store = store
        self.clock = clock

    def settle(self, transaction_id: str, final_amount: Optional[Decimal] = None) -> SettlementOutcome:
        if final_amount is not None:
            final_amount = to_money(final_amount)
            if final_amount <= 0:
                raise InvalidAmountError("Final settlement amount must be positive")

        with self.store.unit_of_work() as uow:
            txn = uow.transactions.get(transaction_id)
            if txn is None:
                return self._finish(
                    transaction_id,
                    SettlementOutcome(
                        settled=False,
                        rejection_code=RejectionCode.TRANSACTION_NOT_FOUND,
                        reason="Transaction not found",
                    ),
                )
            account_id = txn.account_id

        with self.store.account_lock(account_id), self.store.unit_of_work() as uow:
            outcome = self._settle_locked(uow, transaction_id, final_amount)

        return self._finish(transaction_id, outcome)

    def settle_many(self, requests: Iterable[SettlementRequest]) -> BulkSettlementResult:
        """Settle each request independently; one failure never aborts the batch"""
        result = BulkSettlementResult(settled_count=0, failed_count=0)

        for request in requests:
            try:
                outcome = self.settle(request.transaction_id, request.final_amount)
            except Exception as e:
                logging.error(
                    f"Settlement failed for {request.transaction_id}: {e}",
                    extra={"transaction_id": request.transaction_id, "step": "bulk_settlement"},
                )
                outcome = SettlementOutcome(settled=False, reason=str(e))

            result.outcomes.append(outcome)
            if outcome.settled:
                result.settled_count += 1
            else:
                result.failed_count += 1

        return result

    def _settle_locked(
        self,
        uow: LedgerUnitOfWork,
        transaction_id: str,
        final_amount: Optional[Decimal],
    ) -> SettlementOutcome:
        txn = uow.transactions.get_for_update(transaction_id)
        status = TransactionStatus(txn.status)

        if not status.can_transition_to(TransactionStatus.POSTED):
            return SettlementOutcome(
                settled=False,
                transaction=txn,
                rejection_code=RejectionCode.TRANSACTION_NOT_PENDING,
                reason=f"Transaction already {status.value}",
            )

        adjustment = None
        if final_amount is not None and final_amount != txn.amount:
            adjustment = final_amount - txn.amount
            if not self._apply_adjustment(uow, txn, final_amount, adjustment):
                return SettlementOutcome(
                    settled=False,
                    transaction=txn,
                    rejection_code=RejectionCode.INSUFFICIENT_CREDIT,
                    reason=f"Adjustment of {format_usd(adjustment)} exceeds available credit",
                )

        now = self.clock()
        txn.status = TransactionStatus.POSTED
        txn.posted_at = now
        txn.updated_at = now
        uow.session.flush()

        return SettlementOutcome(settled=True, transaction=txn, adjustment=adjustment)

    def _apply_adjustment(
        self,
        uow: LedgerUnitOfWork,
        txn: LedgerTransaction,
        final_amount: Decimal,
        difference: Decimal,
    ) -> bool:
        """
        Shift the balance by exactly the authorization difference.

        Example: hotel pre-auth $100, final $85 → balance -15.00
        Increases must fit within the credit limit; decreases floor at zero.
        """
        new_balance = uow.accounts.apply_balance_delta(
            txn.account_id,
            difference,
            enforce_credit_limit=difference > 0,
            floor_at_zero=True,
        )
        if new_balance is None:
            return False

        if txn.authorized_amount is None:
            txn.authorized_amount = txn.amount
        txn.amount = final_amount
        txn.new_balance = txn.previous_balance + final_amount

        logging.info(
            "Authorization adjustment applied",
            extra={
                "transaction_id": txn.id,
                "step": "authorization_adjustment",
                "original_amount": str(txn.authorized_amount),
                "final_amount": str(final_amount),
                "difference": str(difference),
            },
        )
        return True

    def _finish(self, transaction_id: str, outcome: SettlementOutcome) -> SettlementOutcome:
        record_settlement(outcome.settled, outcome.adjustment is not None)
        log_settlement(
            transaction_id,
            outcome.settled,
            outcome.reason,
            str(outcome.adjustment) if outcome.adjustment is not None else None,
        )
        return outcome
