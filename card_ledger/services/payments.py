"""Payment engine - applies cardholder payments against the revolving balance"""

import uuid
from decimal import Decimal

from card_ledger.domain.exceptions import AccountNotFoundError, InvalidAmountError
from card_ledger.domain.models import PaymentReceipt, TransactionStatus, TransactionType
from card_ledger.domain.money import to_money
from card_ledger.infrastructure.database.store import LedgerStore
from card_ledger.infrastructure.observability.logging import log_payment
from card_ledger.infrastructure.observability.metrics import payment_counter
from card_ledger.utils.date_utils import Clock, utcnow


class PaymentEngine:
    """Records payments as posted, negative ledger entries"""

    def __init__(self, store: LedgerStore, clock: Clock = utcnow, currency: str = "usd"):
        self.store = store
        self.clock = clock
        self.currency = currency

    def apply_payment(self, account_id: str, amount: Decimal) -> PaymentReceipt:
        """
        Decrease the balance by `amount`, flooring at zero on overpayment.

        Raises:
            InvalidAmountError: amount is not strictly positive
            AccountNotFoundError: unknown account (an error, not a decline)
        """
        amount = to_money(amount)
        if amount <= 0:
            raise InvalidAmountError("Payment amount must be greater than 0")

        with self.store.account_lock(account_id), self.store.unit_of_work() as uow:
            account = uow.accounts.get_for_update(account_id)
            if account is None:
                raise AccountNotFoundError(account_id)

            previous_balance = account.current_balance
            new_balance = uow.accounts.apply_balance_delta(
                account_id,
                -amount,
                enforce_credit_limit=False,
                floor_at_zero=True,
            )

            now = self.clock()
            txn = uow.transactions.create(
                id=f"payment_{uuid.uuid4()}",
                card_id=None,
                account_id=account_id,
                amount=-amount,
                currency=self.currency,
                transaction_type=TransactionType.PAYMENT,
                status=TransactionStatus.POSTED,
                previous_balance=previous_balance,
                new_balance=new_balance,
                created_at=now,
                posted_at=now,
                updated_at=now,
            )

        payment_counter.inc()
        log_payment(account_id, txn.id, str(amount), str(previous_balance), str(new_balance))

        return PaymentReceipt(
            transaction=txn,
            previous_balance=previous_balance,
            new_balance=new_balance,
            amount_paid=amount,
        )
