"""
Round-up calculation.

Core formula: round the purchase up to the next dollar and take the difference.
$25.40 -> $26.00 -> round-up $0.60. A whole-dollar purchase always gives $1.00,
so every purchase produces a round-up in (0.00, 1.00].
"""

from decimal import Decimal, ROUND_CEILING
from typing import Iterable

from app.core.config import settings
from app.utils.money import Numeric, ZERO, money

WHOLE_DOLLAR_ROUNDUP = Decimal("1.00")


def calculate_roundup(amount: Numeric) -> Decimal:
    """Round-up for a single purchase. The sign of amount is ignored."""
    absolute = abs(money(amount))
    rounded_up = absolute.to_integral_value(rounding=ROUND_CEILING)
    roundup = money(rounded_up - absolute)
    if roundup == ZERO:
        return WHOLE_DOLLAR_ROUNDUP
    return roundup


def calculate_total_roundup(amounts: Iterable[Numeric]) -> Decimal:
    total = sum((calculate_roundup(amount) for amount in amounts), ZERO)
    return money(total)


def meets_minimum_threshold(total_roundup: Numeric) -> bool:
    """Whether accumulated round-ups are worth a payout batch."""
    return money(total_roundup) >= money(settings.MINIMUM_DONATION_THRESHOLD)
