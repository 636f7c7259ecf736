"""Charity goal validation utilities."""
from decimal import Decimal
from typing import Iterable, List

from app.utils.money import ZERO, money


class GoalValidationError(Exception):
    """Custom exception for charity goal rule violations."""
    pass


class GoalNotFoundError(GoalValidationError):
    """The goal does not exist for this user."""
    pass


def validate_goal_amount(goal_amount: Decimal) -> Decimal:
    """
    Validate a goal target.

    Rules:
    - goal amount must be a finite, non-negative Money value
    """
    if not goal_amount.is_finite():
        raise GoalValidationError(f"Goal amount must be finite: {goal_amount}")
    amount = money(goal_amount)
    if amount < ZERO:
        raise GoalValidationError(f"Goal amount must be non-negative: {amount}")
    return amount


def validate_active_capacity(active_count: int, max_active: int) -> None:
    """A user may have at most max_active active goals."""
    if active_count >= max_active:
        raise GoalValidationError(f"Maximum {max_active} active charities allowed")


def validate_reorder(ordered_goal_ids: Iterable[str], active_goal_ids: Iterable[str]) -> List[str]:
    """
    Validate a reorder request.

    Rules:
    - no goal may be listed twice
    - the ordering must name exactly the user's active goals
    """
    ordered = list(ordered_goal_ids)
    if len(set(ordered)) != len(ordered):
        raise GoalValidationError("Goal ordering lists a goal more than once")

    active = set(active_goal_ids)
    if set(ordered) != active:
        missing = sorted(active - set(ordered))
        unknown = sorted(set(ordered) - active)
        raise GoalValidationError(
            f"Goal ordering must list every active goal exactly once "
            f"(missing: {missing}, unknown: {unknown})"
        )
    return ordered
