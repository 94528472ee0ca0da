"""Billing-cycle arithmetic for statement generation"""

from datetime import date, datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional

from card_ledger.domain.models import BillingWindow, StatementTotals, TransactionType
from card_ledger.domain.money import CENT, ZERO, to_money

EPOCH = datetime(1970, 1, 1)

DEFAULT_MINIMUM_PAYMENT_FLOOR = Decimal("25.00")
DEFAULT_MINIMUM_PAYMENT_RATE = Decimal("0.02")


def calculate_statement_totals(transactions: Iterable) -> StatementTotals:
    """
    Sum posted transactions into per-type buckets.

    Requirements:
    - Transaction type is the only classifier; each row lands in at most one bucket
    - Payments are stored negative and reported as an absolute total
    - Refunds and adjustments do not contribute to any bucket

    Args:
        transactions: Objects exposing `transaction_type` and `amount`
    """
    totals = StatementTotals()

    for txn in transactions:
        totals.transaction_count += 1
        txn_type = TransactionType(txn.transaction_type)
        amount = to_money(txn.amount)

        if txn_type is TransactionType.PURCHASE:
            totals.purchases += amount
        elif txn_type is TransactionType.PAYMENT:
            totals.payments += abs(amount)
        elif txn_type is TransactionType.FEE:
            totals.fees += amount
        elif txn_type is TransactionType.INTEREST:
            totals.interest += amount

    return totals


def calculate_minimum_payment(
    balance: Decimal,
    floor: Decimal = DEFAULT_MINIMUM_PAYMENT_FLOOR,
    rate: Decimal = DEFAULT_MINIMUM_PAYMENT_RATE,
) -> Decimal:
    """
    Minimum payment is the larger of a flat floor and a share of the balance.

    Example:
        balance $1000 → max(25.00, 20.00) = 25.00
        balance $2000 → max(25.00, 40.00) = 40.00
    """
    share = (to_money(balance) * rate).quantize(CENT, rounding=ROUND_HALF_UP)
    return max(to_money(floor), share)


def calculate_payment_due_date(today: date, closing_day: int, payment_due_days: int) -> date:
    """This period's closing date plus the account's due offset in calendar days"""
    closing_date = date(today.year, today.month, closing_day)
    return closing_date + timedelta(days=payment_due_days)


def first_day_of_period(today: date) -> date:
    """Statement periods are calendar months (closing days are capped at 28)"""
    return today.replace(day=1)


def billing_window(previous_period_end: Optional[datetime], as_of: datetime) -> BillingWindow:
    """Window runs from the last statement's cut-off (or the epoch) through `as_of`"""
    return BillingWindow(start=previous_period_end or EPOCH, end=as_of)


def previous_closing_balance(last_statement) -> Decimal:
    return to_money(last_statement.closing_balance) if last_statement is not None else ZERO
