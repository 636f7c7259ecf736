from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from app.models.charity import Charity
from app.models.charity_goal import CharityGoal


class CharityResponse(BaseModel):
    id: str
    name: str
    description: str = ""
    logo_url: Optional[str] = None

    @classmethod
    def from_charity(cls, charity: Charity) -> "CharityResponse":
        return cls(
            id=charity.id,
            name=charity.name,
            description=charity.description,
            logo_url=charity.logo_url
        )


class GoalCreate(BaseModel):
    """Add a charity goal."""
    charity_id: str = Field(..., min_length=1)
    goal_amount: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2)


class GoalUpdate(BaseModel):
    """Change a goal's target."""
    goal_amount: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2)


class GoalOrderRequest(BaseModel):
    """Active goal ids, highest priority first."""
    goal_ids: List[str] = Field(..., min_length=1)


class GoalResponse(BaseModel):
    id: str
    charity_id: str
    goal_amount: Decimal
    current_amount: Decimal
    priority: int
    is_completed: bool
    updated_at: datetime

    @classmethod
    def from_goal(cls, goal: CharityGoal) -> "GoalResponse":
        return cls(
            id=str(goal.id),
            charity_id=goal.charity_id,
            goal_amount=goal.goal_amount,
            current_amount=goal.current_amount,
            priority=goal.priority,
            is_completed=goal.is_completed,
            updated_at=goal.updated_at
        )
