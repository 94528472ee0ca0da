"""Currency amount helpers - all ledger money is Decimal in currency units"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Union

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_money(value: Union[Decimal, int, float, str]) -> Decimal:
    """Quantize to cents, half-up (floats go through str to avoid binary noise)"""
    if isinstance(value, float):
        value = str(value)
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def cents_to_amount(cents: int) -> Decimal:
    """Convert an integer minor-unit amount (webhook payloads) to currency units"""
    return (Decimal(cents) / 100).quantize(CENT)


def format_usd(amount: Decimal) -> str:
    return f"${amount:.2f}"
