"""
AllocationEngine - distributes a purchase's round-up across charity goals.

Core algorithm:
1. Skip purchases already processed (the purchase id is the idempotency key)
2. Check the user's preferences (round-ups enabled, donation mode)
3. Plan the split over active goals:
   - priority: fill goals in ascending priority, cascading into the next one
   - random: pick uniformly among goals with headroom until the money is placed
4. Write each goal update in order, then mark the purchase processed
5. Hand goal-reached notifications to the background runner
6. Priority mode: point the profile at the highest-priority goal still active

No goal ever receives more than its headroom. Money left once every goal is
full is reported as unallocated and is not retried.
"""

import logging
import random
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, List, Optional, Protocol, Tuple

from pymongo.errors import PyMongoError

from app.core.exceptions import AllocationPersistenceError, PersistenceError
from app.core.locks import UserLockRegistry, allocation_locks
from app.core.tasks import BackgroundTaskRunner, task_runner
from app.models.charity_goal import CharityGoal, is_goal_reached
from app.models.profile import DonationMode, Profile
from app.models.purchase import Purchase
from app.schemas.allocation import Allocation, AllocationResult, AllocationStatus
from app.utils.money import Numeric, ZERO, from_cents, money, to_cents

logger = logging.getLogger(__name__)


class GoalStore(Protocol):
    async def list_active_goals(self, user_id: str) -> List[CharityGoal]: ...

    async def update_goal(
        self,
        goal_id: str,
        current_amount: Decimal,
        is_completed: bool,
        expected_current_amount: Optional[Decimal] = None
    ) -> None: ...


class PurchaseStore(Protocol):
    async def get_purchase(self, purchase_id: str) -> Optional[Purchase]: ...

    async def mark_processed(self, purchase_id: str, donated_to_charity_id: Optional[str]) -> bool: ...


class PreferenceStore(Protocol):
    async def get_profile(self, user_id: str) -> Optional[Profile]: ...

    async def set_primary_charity(self, user_id: str, charity_id: Optional[str]) -> None: ...


class CharityDirectory(Protocol):
    async def get_charity_name(self, charity_id: str) -> Optional[str]: ...


class NotificationSender(Protocol):
    async def notify_goal_completed(
        self,
        user_email: str,
        charity_name: Optional[str],
        amount: Decimal,
        purchase_id: Optional[str] = None
    ) -> None: ...


@dataclass
class AllocationStep:
    goal: CharityGoal
    amount: Decimal
    previous_cents: int
    new_cents: int
    completed: bool


def _fill(goal: CharityGoal, remaining: Decimal, current_cents: int) -> Optional[AllocationStep]:
    """Give goal as much of remaining as its headroom allows."""
    headroom_cents = goal.goal_amount_cents - current_cents
    if headroom_cents <= 0:
        return None

    amount = min(money(remaining), from_cents(headroom_cents))
    new_cents = current_cents + to_cents(amount)
    return AllocationStep(
        goal=goal,
        amount=amount,
        previous_cents=current_cents,
        new_cents=new_cents,
        completed=is_goal_reached(new_cents, goal.goal_amount_cents)
    )


def plan_priority_allocation(
    goals: List[CharityGoal], amount: Numeric
) -> Tuple[List[AllocationStep], Decimal]:
    """Fill goals in the order given (ascending priority)."""
    remaining = money(amount)
    steps: List[AllocationStep] = []

    for goal in goals:
        if remaining <= ZERO:
            break
        step = _fill(goal, remaining, goal.current_amount_cents)
        if step is None:
            continue
        steps.append(step)
        remaining = money(remaining - step.amount)

    return steps, remaining


def plan_random_allocation(
    goals: List[CharityGoal], amount: Numeric, rng: random.Random
) -> Tuple[List[AllocationStep], Decimal]:
    """Place money on uniformly chosen goals until it runs out or every goal is full."""
    remaining = money(amount)
    steps: List[AllocationStep] = []
    current: Dict[str, int] = {str(goal.id): goal.current_amount_cents for goal in goals}
    working = [goal for goal in goals if goal.has_headroom()]

    while remaining > ZERO and working:
        goal = rng.choice(working)
        step = _fill(goal, remaining, current[str(goal.id)])
        if step is None:
            working.remove(goal)
            continue

        steps.append(step)
        current[str(goal.id)] = step.new_cents
        remaining = money(remaining - step.amount)
        if step.completed:
            working.remove(goal)

    return steps, remaining


class AllocationEngine:
    def __init__(
        self,
        goals: GoalStore,
        purchases: PurchaseStore,
        profiles: PreferenceStore,
        charities: CharityDirectory,
        notifier: NotificationSender,
        tasks: BackgroundTaskRunner = task_runner,
        locks: UserLockRegistry = allocation_locks,
        rng: Optional[random.Random] = None
    ):
        self.goals = goals
        self.purchases = purchases
        self.profiles = profiles
        self.charities = charities
        self.notifier = notifier
        self.tasks = tasks
        self.locks = locks
        self.rng = rng or random.Random()

    async def allocate(self, user_id: str, purchase_id: str, roundup_amount: Numeric) -> AllocationResult:
        """
        Allocate one purchase's round-up. Runs under the user's lock.

        Raises AllocationPersistenceError when a goal or purchase write fails;
        every other situation is reported through the result.
        """
        amount = money(roundup_amount)
        async with self.locks.hold(user_id):
            return await self._allocate(user_id, purchase_id, amount)

    async def _allocate(self, user_id: str, purchase_id: str, amount: Decimal) -> AllocationResult:
        purchase = await self.purchases.get_purchase(purchase_id)
        if purchase is None:
            return AllocationResult(
                success=False,
                status=AllocationStatus.PURCHASE_NOT_FOUND,
                error="Purchase not found"
            )
        if purchase.processed_for_donation:
            logger.info(
                "allocation.already_processed",
                extra={"fields": {"user_id": user_id, "purchase_id": purchase_id}}
            )
            return AllocationResult(
                success=True,
                status=AllocationStatus.ALREADY_PROCESSED,
                primary_charity_id=purchase.donated_to_charity_id
            )

        profile = await self.profiles.get_profile(user_id)
        if profile is None:
            return AllocationResult(
                success=False,
                status=AllocationStatus.PROFILE_NOT_FOUND,
                error="User profile not found"
            )
        if not profile.roundup_enabled:
            return AllocationResult(
                success=False,
                status=AllocationStatus.DISABLED,
                error="Round-ups disabled for user"
            )

        goals = await self.goals.list_active_goals(user_id)
        if not goals:
            await self._mark_processed(purchase_id, None, applied_steps=0)
            logger.info(
                "allocation.no_active_goals",
                extra={"fields": {"user_id": user_id, "purchase_id": purchase_id, "amount": amount}}
            )
            return AllocationResult(
                success=True,
                status=AllocationStatus.NO_ACTIVE_GOALS,
                unallocated_amount=amount
            )

        mode = DonationMode(profile.donation_mode)
        if mode == DonationMode.RANDOM:
            steps, remaining = plan_random_allocation(goals, amount, self.rng)
        else:
            steps, remaining = plan_priority_allocation(goals, amount)

        await self._apply_steps(profile, purchase_id, steps)

        primary_charity_id = steps[0].goal.charity_id if steps else None
        completed = [step for step in steps if step.completed]
        try:
            await self._mark_processed(purchase_id, primary_charity_id, applied_steps=len(steps))
        except AllocationPersistenceError:
            # Completed goals have left the active set; a retry will not see them
            self._schedule_notifications(profile, purchase_id, completed)
            raise

        self._schedule_notifications(profile, purchase_id, completed)

        if mode == DonationMode.PRIORITY:
            await self._advance_primary_charity(profile, goals, completed)

        result = AllocationResult(
            success=True,
            status=AllocationStatus.ALLOCATED,
            allocations=[
                Allocation(goal_id=str(step.goal.id), charity_id=step.goal.charity_id, amount=step.amount)
                for step in steps
            ],
            unallocated_amount=remaining if remaining > ZERO else None,
            primary_charity_id=primary_charity_id,
            completed_goal_ids=[str(step.goal.id) for step in completed]
        )
        logger.info(
            "allocation.completed",
            extra={"fields": {
                "user_id": user_id,
                "purchase_id": purchase_id,
                "mode": mode.value,
                "amount": amount,
                "allocations": [a.model_dump() for a in result.allocations],
                "unallocated": result.unallocated_amount,
                "completed_goals": result.completed_goal_ids
            }}
        )
        return result

    async def _apply_steps(self, profile: Profile, purchase_id: str, steps: List[AllocationStep]) -> None:
        """Write goal updates in order; stop at the first failed write."""
        for index, step in enumerate(steps):
            try:
                await self.goals.update_goal(
                    str(step.goal.id),
                    from_cents(step.new_cents),
                    step.completed,
                    expected_current_amount=from_cents(step.previous_cents)
                )
            except (PersistenceError, PyMongoError) as exc:
                logger.error(
                    "allocation.goal_write_failed",
                    extra={"fields": {
                        "user_id": profile.id,
                        "purchase_id": purchase_id,
                        "goal_id": str(step.goal.id),
                        "applied_steps": index,
                        "error": exc
                    }}
                )
                # Goals already written stay completed, so announce them now
                self._schedule_notifications(
                    profile, purchase_id, [s for s in steps[:index] if s.completed]
                )
                raise AllocationPersistenceError(
                    f"Could not update goal {step.goal.id}", purchase_id, applied_steps=index
                ) from exc

    async def _mark_processed(self, purchase_id: str, charity_id: Optional[str], applied_steps: int) -> None:
        try:
            marked = await self.purchases.mark_processed(purchase_id, charity_id)
        except (PersistenceError, PyMongoError) as exc:
            logger.error(
                "allocation.purchase_write_failed",
                extra={"fields": {"purchase_id": purchase_id, "error": exc}}
            )
            raise AllocationPersistenceError(
                f"Could not mark purchase {purchase_id} processed", purchase_id, applied_steps
            ) from exc
        if not marked:
            logger.warning("allocation.already_marked", extra={"fields": {"purchase_id": purchase_id}})

    def _schedule_notifications(self, profile: Profile, purchase_id: str, completed: List[AllocationStep]) -> None:
        for step in completed:
            self.tasks.spawn(
                self._notify(profile, purchase_id, step.goal),
                name=f"notify-goal-{step.goal.id}"
            )

    async def _notify(self, profile: Profile, purchase_id: str, goal: CharityGoal) -> None:
        if not profile.email:
            logger.warning(
                "notification.skipped_no_email",
                extra={"fields": {"user_id": profile.id, "goal_id": str(goal.id)}}
            )
            return
        try:
            charity_name = await self.charities.get_charity_name(goal.charity_id)
            await self.notifier.notify_goal_completed(
                user_email=profile.email,
                charity_name=charity_name,
                amount=goal.goal_amount,
                purchase_id=purchase_id
            )
        except Exception as exc:
            logger.error(
                "notification.failed",
                extra={"fields": {"user_id": profile.id, "goal_id": str(goal.id), "error": exc}}
            )

    async def _advance_primary_charity(
        self, profile: Profile, goals: List[CharityGoal], completed: List[AllocationStep]
    ) -> None:
        """Point the profile at the highest-priority goal that is still active."""
        completed_ids = {step.goal.id for step in completed}
        still_active = [goal for goal in goals if goal.id not in completed_ids]
        if not still_active:
            return

        target = still_active[0].charity_id
        if target == profile.selected_charity_id:
            return
        try:
            await self.profiles.set_primary_charity(profile.id, target)
        except PyMongoError as exc:
            # The purchase is already processed; a stale pointer is display-only
            logger.error(
                "allocation.primary_pointer_failed",
                extra={"fields": {"user_id": profile.id, "charity_id": target, "error": exc}}
            )
            return
        if completed:
            logger.info(
                "allocation.primary_advanced",
                extra={"fields": {"user_id": profile.id, "charity_id": target}}
            )
