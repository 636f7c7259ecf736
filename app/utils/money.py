"""
Money helpers.

Money is a Decimal with exactly two places, rounded half away from zero
(ROUND_HALF_UP) after every operation. Documents store integer cents.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Union

Numeric = Union[int, float, str, Decimal]

MONEY_PLACES = Decimal("0.01")
ZERO = Decimal("0.00")


def to_decimal(value: Numeric) -> Decimal:
    """Convert a numeric value to Decimal."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def money(value: Numeric) -> Decimal:
    """Round value to cents."""
    return to_decimal(value).quantize(MONEY_PLACES, rounding=ROUND_HALF_UP)


def to_cents(value: Numeric) -> int:
    return int(money(value) * 100)


def from_cents(cents: int) -> Decimal:
    return money(Decimal(cents) / 100)


def format_currency(amount: Numeric) -> str:
    """Format as USD, e.g. $1,025.40"""
    value = money(amount)
    sign = "-" if value < 0 else ""
    return f"{sign}${abs(value):,.2f}"
