"""
Charity goal model - a user's pledge of a target amount to one charity.

Design principles:
- One goal per (user, charity)
- Amounts stored as integer cents, exposed as Money (Decimal)
- priority is a dense 1..n ordering among the user's active goals
- Completed goals take no further allocation until reset

Invariants:
- 0 <= current_amount_cents <= goal_amount_cents
- is_completed == (current_amount_cents >= goal_amount_cents and goal_amount_cents > 0)
"""

from decimal import Decimal

from pydantic import Field

from app.models.base import MongoModel
from app.utils.money import ZERO, from_cents, money


def is_goal_reached(current_cents: int, goal_cents: int) -> bool:
    return goal_cents > 0 and current_cents >= goal_cents


def clamp_current(current_cents: int, goal_cents: int) -> int:
    return max(0, min(current_cents, goal_cents))


class CharityGoal(MongoModel):
    user_id: str
    charity_id: str

    goal_amount_cents: int = Field(..., ge=0)
    current_amount_cents: int = Field(default=0, ge=0)

    priority: int = Field(..., ge=1)
    is_completed: bool = False

    @property
    def goal_amount(self) -> Decimal:
        return from_cents(self.goal_amount_cents)

    @property
    def current_amount(self) -> Decimal:
        return from_cents(self.current_amount_cents)

    def headroom(self) -> Decimal:
        """How much the goal can still accept."""
        return max(money(self.goal_amount - self.current_amount), ZERO)

    def has_headroom(self) -> bool:
        return self.headroom() > ZERO
