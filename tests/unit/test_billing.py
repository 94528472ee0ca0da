"""Unit tests for statement billing arithmetic"""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal

import pytest

from card_ledger.domain.billing import (
    EPOCH,
    billing_window,
    calculate_minimum_payment,
    calculate_payment_due_date,
    calculate_statement_totals,
    first_day_of_period,
    previous_closing_balance,
)
from card_ledger.domain.models import TransactionType


@dataclass
class Row:
    transaction_type: TransactionType
    amount: Decimal


def test_statement_totals_by_type():
    """Purchases $50 + $75 and a $25 payment"""
    totals = calculate_statement_totals(
        [
            Row(TransactionType.PURCHASE, Decimal("50.00")),
            Row(TransactionType.PURCHASE, Decimal("75.00")),
            Row(TransactionType.PAYMENT, Decimal("-25.00")),
        ]
    )

    assert totals.purchases == Decimal("125.00")
    assert totals.payments == Decimal("25.00")
    assert totals.fees == Decimal("0.00")
    assert totals.interest == Decimal("0.00")
    assert totals.transaction_count == 3


def test_statement_totals_each_type_lands_in_one_bucket():
    totals = calculate_statement_totals(
        [
            Row(TransactionType.FEE, Decimal("35.00")),
            Row(TransactionType.INTEREST, Decimal("12.34")),
            Row(TransactionType.REFUND, Decimal("-10.00")),
            Row(TransactionType.ADJUSTMENT, Decimal("5.00")),
        ]
    )

    assert totals.fees == Decimal("35.00")
    assert totals.interest == Decimal("12.34")
    # Refunds and adjustments are counted but never summed into a bucket
    assert totals.purchases == Decimal("0.00")
    assert totals.payments == Decimal("0.00")
    assert totals.transaction_count == 4


def test_statement_totals_accepts_string_types():
    """Rows loaded without enum coercion still classify"""
    totals = calculate_statement_totals([Row("purchase", Decimal("9.99"))])
    assert totals.purchases == Decimal("9.99")


def test_statement_totals_empty():
    totals = calculate_statement_totals([])
    assert totals.purchases == Decimal("0.00")
    assert totals.transaction_count == 0


@pytest.mark.parametrize(
    "balance,expected",
    [
        (Decimal("1000.00"), Decimal("25.00")),  # 2% = 20.00, floor wins
        (Decimal("2000.00"), Decimal("40.00")),  # 2% wins
        (Decimal("1250.00"), Decimal("25.00")),  # exactly at the crossover
        (Decimal("0.00"), Decimal("25.00")),
        (Decimal("1333.33"), Decimal("26.67")),  # 26.6666 rounds half-up
    ],
)
def test_minimum_payment(balance, expected):
    assert calculate_minimum_payment(balance) == expected


def test_minimum_payment_custom_floor_and_rate():
    assert calculate_minimum_payment(Decimal("1000.00"), floor=Decimal("10.00"), rate=Decimal("0.03")) == Decimal("30.00")


def test_payment_due_date_offsets_from_closing_date():
    due = calculate_payment_due_date(date(2026, 3, 15), closing_day=15, payment_due_days=21)
    assert due == date(2026, 4, 5)


def test_payment_due_date_crosses_year_end():
    due = calculate_payment_due_date(date(2026, 12, 28), closing_day=28, payment_due_days=25)
    assert due == date(2027, 1, 22)


def test_first_day_of_period():
    assert first_day_of_period(date(2026, 3, 15)) == date(2026, 3, 1)


def test_billing_window_starts_at_epoch_without_prior_statement():
    as_of = datetime(2026, 3, 15, 9, 0)
    window = billing_window(None, as_of)
    assert window.start == EPOCH
    assert window.end == as_of


def test_billing_window_starts_at_previous_cutoff():
    previous_end = datetime(2026, 2, 15, 9, 0)
    as_of = datetime(2026, 3, 15, 9, 0)
    window = billing_window(previous_end, as_of)
    assert window.start == previous_end
    assert window.end == as_of


def test_previous_closing_balance():
    @dataclass
    class LastStatement:
        closing_balance: Decimal

    assert previous_closing_balance(None) == Decimal("0.00")
    assert previous_closing_balance(LastStatement(Decimal("412.5"))) == Decimal("412.50")
