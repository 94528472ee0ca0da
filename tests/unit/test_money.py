"""Unit tests for money conversions and card helpers"""

from decimal import Decimal

import pytest

from card_ledger.domain.money import cents_to_amount, format_usd, to_money
from card_ledger.utils.card_utils import hash_card_number, last_four


@pytest.mark.parametrize(
    "cents,expected",
    [
        (250000, Decimal("2500.00")),
        (600000, Decimal("6000.00")),
        (1, Decimal("0.01")),
        (1999, Decimal("19.99")),
    ],
)
def test_cents_to_amount(cents, expected):
    assert cents_to_amount(cents) == expected


def test_to_money_rounds_half_up():
    assert to_money(Decimal("10.005")) == Decimal("10.01")
    assert to_money(Decimal("10.004")) == Decimal("10.00")


def test_to_money_float_uses_decimal_text():
    # Binary 0.1 + 0.2 is 0.30000000000000004
    assert to_money(0.1 + 0.2) == Decimal("0.30")
    assert to_money(2.675) == Decimal("2.68")


def test_to_money_accepts_int_and_str():
    assert to_money(85) == Decimal("85.00")
    assert to_money("120.5") == Decimal("120.50")


def test_format_usd():
    assert format_usd(Decimal("5000")) == "$5000.00"
    assert format_usd(Decimal("2500.5")) == "$2500.50"


def test_hash_card_number_ignores_formatting():
    assert hash_card_number("4111 1111 1111 1111") == hash_card_number("4111-1111-1111-1111")
    assert len(hash_card_number("4111111111111111")) == 64


def test_last_four():
    assert last_four("4111 1111 1111 1234") == "1234"
