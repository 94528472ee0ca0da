"""Statement generator - billing-cycle roll-up of posted transactions"""

import logging
import time
import uuid
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.exc import IntegrityError

from card_ledger.domain.billing import (
    DEFAULT_MINIMUM_PAYMENT_FLOOR,
    DEFAULT_MINIMUM_PAYMENT_RATE,
    billing_window,
    calculate_minimum_payment,
    calculate_payment_due_date,
    calculate_statement_totals,
    first_day_of_period,
    previous_closing_balance,
)
from card_ledger.domain.models import (
    RejectionCode,
    StatementOutcome,
    StatementRunResult,
    StatementStatus,
)
from card_ledger.infrastructure.database.models import Statement
from card_ledger.infrastructure.database.store import LedgerStore, LedgerUnitOfWork
from card_ledger.infrastructure.observability.logging import log_statement_run
from card_ledger.infrastructure.observability.metrics import record_statement, statement_run_duration_histogram
from card_ledger.utils.date_utils import Clock, utcnow


class StatementGenerator:
    """
    Produces at most one statement per account per calendar-month period.

    The aggregation window for a statement is (previous.period_end, as_of],
    where `as_of` is read under the account lock that every balance mutation
    also takes. A transaction therefore lands in exactly one statement: either
    it was posted before the cut-off and is linked now, or it was posted after
    and falls into the next window.
    """

    def __init__(
        self,
        store: LedgerStore,
        clock: Clock = utcnow,
        minimum_payment_floor: Decimal = DEFAULT_MINIMUM_PAYMENT_FLOOR,
        minimum_payment_rate: Decimal = DEFAULT_MINIMUM_PAYMENT_RATE,
    ):
        self.store = store
        self.clock = clock
        self.minimum_payment_floor = minimum_payment_floor
        self.minimum_payment_rate = minimum_payment_rate

    def generate_for_period(self) -> StatementRunResult:
        """
        Generate statements for every active account closing today.

        Per-account failures are logged and counted as skipped; they never stop
        the remaining accounts from being processed.
        """
        start_time = time.time()
        today = self.clock().date()

        with self.store.unit_of_work() as uow:
            account_ids = [a.id for a in uow.accounts.list_closing_on(today.day)]

        logging.info(
            f"Found {len(account_ids)} accounts eligible for statement generation",
            extra={"run_date": today.isoformat(), "step": "statement_run_start"},
        )

        result = StatementRunResult(run_date=today, generated_count=0, skipped_count=0)
        for account_id in account_ids:
            try:
                outcome = self.generate_for_account(account_id)
            except Exception as e:
                logging.error(
                    f"Statement generation failed for account {account_id}: {e}",
                    extra={"account_id": account_id, "step": "statement_generation"},
                )
                outcome = StatementOutcome(
                    account_id=account_id,
                    generated=False,
                    rejection_code=RejectionCode.GENERATION_FAILED,
                    reason=str(e),
                )
                record_statement(False)

            result.outcomes.append(outcome)
            if outcome.generated:
                result.generated_count += 1
            else:
                result.skipped_count += 1

        duration = time.time() - start_time
        statement_run_duration_histogram.observe(duration)
        log_statement_run(today.isoformat(), result.generated_count, result.skipped_count, duration * 1000)
        return result

    def generate_for_account(self, account_id: str) -> StatementOutcome:
        try:
            with self.store.account_lock(account_id), self.store.unit_of_work() as uow:
                outcome = self._generate_locked(uow, account_id)
        except IntegrityError:
            # Only a lost race on (account, statement_date) is a duplicate; anything else propagates
            if not self._statement_exists(account_id):
                raise
            outcome = self._already_exists(account_id)

        record_statement(outcome.generated)
        return outcome

    def _statement_exists(self, account_id: str) -> bool:
        with self.store.unit_of_work() as uow:
            return uow.statements.exists_since(account_id, first_day_of_period(self.clock().date()))

    def _generate_locked(self, uow: LedgerUnitOfWork, account_id: str) -> StatementOutcome:
        account = uow.accounts.get_for_update(account_id)
        if account is None:
            return StatementOutcome(
                account_id=account_id,
                generated=False,
                rejection_code=RejectionCode.ACCOUNT_NOT_FOUND,
                reason="Account not found",
            )

        as_of = self.clock()
        today = as_of.date()

        if uow.statements.exists_since(account_id, first_day_of_period(today)):
            logging.info(
                f"Statement already exists for account {account_id} this period",
                extra={"account_id": account_id, "step": "statement_generation"},
            )
            return self._already_exists(account_id)

        last_statement = uow.statements.get_latest(account_id)
        window = billing_window(last_statement.period_end if last_statement else None, as_of)
        transactions = uow.transactions.posted_in_window(account_id, window.start, window.end)

        totals = calculate_statement_totals(transactions)
        closing_balance = account.current_balance
        minimum_payment = calculate_minimum_payment(
            closing_balance,
            floor=self.minimum_payment_floor,
            rate=self.minimum_payment_rate,
        )

        statement = uow.statements.create(
            id=str(uuid.uuid4()),
            account_id=account_id,
            statement_date=today,
            period_start=window.start,
            period_end=window.end,
            previous_balance=previous_closing_balance(last_statement),
            closing_balance=closing_balance,
            total_purchases=totals.purchases,
            total_payments=totals.payments,
            total_fees=totals.fees,
            total_interest=totals.interest,
            minimum_payment_due=minimum_payment,
            payment_due_date=calculate_payment_due_date(today, account.statement_closing_day, account.payment_due_day),
            status=StatementStatus.GENERATED,
            created_at=as_of,
        )
        uow.transactions.link_to_statement(transactions, statement.id)

        logging.info(
            f"Statement generated for account {account_id}",
            extra={
                "account_id": account_id,
                "statement_id": statement.id,
                "step": "statement_generated",
                "closing_balance": str(closing_balance),
                "minimum_payment_due": str(minimum_payment),
                "transaction_count": totals.transaction_count,
            },
        )
        return StatementOutcome(account_id=account_id, generated=True, statement=statement)

    @staticmethod
    def _already_exists(account_id: str) -> StatementOutcome:
        return StatementOutcome(
            account_id=account_id,
            generated=False,
            rejection_code=RejectionCode.STATEMENT_EXISTS,
            reason="Statement already exists",
        )

    def get_statement(self, statement_id: str) -> Optional[Statement]:
        with self.store.unit_of_work() as uow:
            return uow.statements.get(statement_id)

    def list_statements(self, account_id: str, limit: int = 12) -> List[Statement]:
        with self.store.unit_of_work() as uow:
            return uow.statements.list_by_account(account_id, limit=limit)
