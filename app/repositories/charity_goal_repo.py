"""
CharityGoalRepository - the charity ledger.

Two kinds of callers:
1. The allocation engine reads active goals in priority order and writes one
   goal's current amount / completion flag at a time (update_goal).
2. The goal CRUD endpoints add, edit, remove, reset and reorder goals. Every
   path that changes the active set ends in renumber(), so active priorities
   always form a dense 1..n ordering.

Ties on priority are broken by creation time, then id.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import UpdateOne

from app.core.config import settings
from app.core.exceptions import LedgerConflictError
from app.models.base import parse_object_id
from app.models.charity_goal import CharityGoal, clamp_current, is_goal_reached
from app.utils.goal_validation import (
    GoalNotFoundError,
    GoalValidationError,
    validate_active_capacity,
    validate_goal_amount,
    validate_reorder,
)
from app.utils.money import to_cents

PRIORITY_ORDER = [("priority", 1), ("created_at", 1), ("_id", 1)]


class CharityGoalRepository:
    """Charity goal database operations."""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.collection = db["user_charities"]

    # ===== ENGINE-FACING =====

    async def list_active_goals(self, user_id: str) -> List[CharityGoal]:
        """Active (non-completed) goals, highest priority first."""
        cursor = self.collection.find({
            "user_id": user_id,
            "is_completed": False
        }).sort(PRIORITY_ORDER)
        docs = await cursor.to_list(None)
        return [CharityGoal(**doc) for doc in docs]

    async def update_goal(
        self,
        goal_id: str,
        current_amount: Decimal,
        is_completed: bool,
        expected_current_amount: Optional[Decimal] = None
    ) -> None:
        """
        Write a goal's accumulated amount and completion flag.

        When expected_current_amount is given the write only applies if the
        row still holds that amount; otherwise LedgerConflictError is raised.
        """
        oid = parse_object_id(goal_id)
        if oid is None:
            raise LedgerConflictError(f"Invalid goal id: {goal_id}")

        query = {"_id": oid}
        if expected_current_amount is not None:
            query["current_amount_cents"] = to_cents(expected_current_amount)

        result = await self.collection.update_one(
            query,
            {"$set": {
                "current_amount_cents": to_cents(current_amount),
                "is_completed": is_completed,
                "updated_at": datetime.now(timezone.utc)
            }}
        )
        if result.matched_count == 0:
            raise LedgerConflictError(f"Goal {goal_id} changed or disappeared during allocation")

    # ===== READS =====

    async def list_goals(self, user_id: str) -> List[CharityGoal]:
        """All goals: active ones in priority order, then completed ones."""
        cursor = self.collection.find({"user_id": user_id}).sort(
            [("is_completed", 1)] + PRIORITY_ORDER
        )
        docs = await cursor.to_list(None)
        return [CharityGoal(**doc) for doc in docs]

    async def get_goal(self, goal_id: str, user_id: str) -> Optional[CharityGoal]:
        oid = parse_object_id(goal_id)
        if oid is None:
            return None
        doc = await self.collection.find_one({"_id": oid, "user_id": user_id})
        if doc:
            return CharityGoal(**doc)
        return None

    async def count_active(self, user_id: str) -> int:
        return await self.collection.count_documents({
            "user_id": user_id,
            "is_completed": False
        })

    # ===== CRUD =====

    async def add_goal(self, user_id: str, charity_id: str, goal_amount: Decimal) -> CharityGoal:
        """Append a goal at the end of the user's active ordering."""
        amount = validate_goal_amount(goal_amount)

        existing = await self.collection.find_one({"user_id": user_id, "charity_id": charity_id})
        if existing:
            raise GoalValidationError(f"Charity {charity_id} is already one of your goals")

        active_count = await self.count_active(user_id)
        validate_active_capacity(active_count, settings.MAX_ACTIVE_CHARITIES)

        goal = CharityGoal(
            user_id=user_id,
            charity_id=charity_id,
            goal_amount_cents=to_cents(amount),
            current_amount_cents=0,
            priority=active_count + 1,
            is_completed=False
        )
        await self.collection.insert_one(goal.to_document())
        return goal

    async def update_goal_amount(self, user_id: str, goal_id: str, goal_amount: Decimal) -> CharityGoal:
        """
        Change a goal's target.

        The current amount is clamped to the new target and completion is
        recomputed; a goal reopened by a higher target rejoins at the end.
        """
        amount = validate_goal_amount(goal_amount)
        goal = await self.get_goal(goal_id, user_id)
        if goal is None:
            raise GoalNotFoundError("Goal not found")

        goal_cents = to_cents(amount)
        current_cents = clamp_current(goal.current_amount_cents, goal_cents)
        now_completed = is_goal_reached(current_cents, goal_cents)

        updates = {
            "goal_amount_cents": goal_cents,
            "current_amount_cents": current_cents,
            "is_completed": now_completed,
            "updated_at": datetime.now(timezone.utc)
        }
        if goal.is_completed and not now_completed:
            active_count = await self.count_active(user_id)
            validate_active_capacity(active_count, settings.MAX_ACTIVE_CHARITIES)
            updates["priority"] = active_count + 1

        await self.collection.update_one({"_id": goal.id}, {"$set": updates})
        if goal.is_completed != now_completed:
            await self.renumber(user_id)

        return await self.get_goal(goal_id, user_id)

    async def remove_goal(self, user_id: str, goal_id: str) -> bool:
        oid = parse_object_id(goal_id)
        if oid is None:
            return False
        result = await self.collection.delete_one({"_id": oid, "user_id": user_id})
        if result.deleted_count == 0:
            return False
        await self.renumber(user_id)
        return True

    async def reset_goal(self, user_id: str, goal_id: str) -> CharityGoal:
        """Start a goal over from zero; completed goals rejoin at the end."""
        goal = await self.get_goal(goal_id, user_id)
        if goal is None:
            raise GoalNotFoundError("Goal not found")

        updates = {
            "current_amount_cents": 0,
            "is_completed": False,
            "updated_at": datetime.now(timezone.utc)
        }
        if goal.is_completed:
            active_count = await self.count_active(user_id)
            validate_active_capacity(active_count, settings.MAX_ACTIVE_CHARITIES)
            updates["priority"] = active_count + 1

        await self.collection.update_one({"_id": goal.id}, {"$set": updates})
        await self.renumber(user_id)
        return await self.get_goal(goal_id, user_id)

    async def reorder(self, user_id: str, ordered_goal_ids: List[str]) -> List[CharityGoal]:
        """Assign priorities 1..n following ordered_goal_ids."""
        active = await self.list_active_goals(user_id)
        ordered = validate_reorder(ordered_goal_ids, [str(goal.id) for goal in active])

        by_id = {str(goal.id): goal for goal in active}
        await self._write_priorities(
            [(by_id[goal_id], position) for position, goal_id in enumerate(ordered, start=1)]
        )
        return await self.list_active_goals(user_id)

    async def renumber(self, user_id: str) -> None:
        """Re-densify active priorities, keeping the current order."""
        active = await self.list_active_goals(user_id)
        await self._write_priorities(
            [(goal, position) for position, goal in enumerate(active, start=1)]
        )

    # ===== PRIVATE HELPERS =====

    async def _write_priorities(self, assignments) -> None:
        now = datetime.now(timezone.utc)
        operations = [
            UpdateOne({"_id": goal.id}, {"$set": {"priority": position, "updated_at": now}})
            for goal, position in assignments
            if goal.priority != position
        ]
        if operations:
            await self.collection.bulk_write(operations, ordered=True)
