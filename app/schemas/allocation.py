from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class AllocationStatus(str, Enum):
    ALLOCATED = "allocated"
    NO_ACTIVE_GOALS = "no_active_goals"
    ALREADY_PROCESSED = "already_processed"
    DISABLED = "disabled"
    PROFILE_NOT_FOUND = "profile_not_found"
    PURCHASE_NOT_FOUND = "purchase_not_found"


class Allocation(BaseModel):
    """One share of a purchase's round-up placed on a goal."""
    goal_id: str
    charity_id: str
    amount: Decimal


class AllocationResult(BaseModel):
    success: bool
    status: AllocationStatus
    allocations: List[Allocation] = Field(default_factory=list)
    unallocated_amount: Optional[Decimal] = None  # Absent when everything was placed
    primary_charity_id: Optional[str] = None
    completed_goal_ids: List[str] = Field(default_factory=list)
    error: Optional[str] = None

    @property
    def allocated_total(self) -> Decimal:
        return sum((a.amount for a in self.allocations), Decimal("0.00"))
