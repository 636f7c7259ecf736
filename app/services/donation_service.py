import logging
import random
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional
from uuid import uuid4

from app.core.exceptions import AllocationPersistenceError
from app.models.purchase import Purchase
from app.repositories.charity_goal_repo import CharityGoalRepository
from app.repositories.charity_repo import CharityRepository
from app.repositories.profile_repo import ProfileRepository
from app.repositories.purchase_repo import PurchaseRepository
from app.schemas.allocation import AllocationResult, AllocationStatus
from app.schemas.purchase import (
    DashboardStatsResponse,
    PurchaseResponse,
    SimulatedDonation,
    SimulatePurchaseResponse,
)
from app.services.allocation_service import AllocationEngine
from app.services.roundup import calculate_roundup, meets_minimum_threshold
from app.utils.money import ZERO, format_currency, money, to_cents

logger = logging.getLogger(__name__)

DEMO_MERCHANTS = [
    ("Starbucks", ["Food and Drink", "Coffee Shop"]),
    ("Uber", ["Transportation", "Ride Share"]),
    ("Amazon", ["Shopping", "Online"]),
    ("Chipotle", ["Food and Drink", "Restaurant"]),
    ("Target", ["Shopping", "Retail"]),
    ("Spotify", ["Entertainment", "Subscription"]),
    ("Whole Foods", ["Food and Drink", "Grocery"]),
    ("DoorDash", ["Food and Drink", "Delivery"]),
]


def random_purchase_amount(rng: random.Random, low: int = 3, high: int = 50) -> Decimal:
    """Realistic purchase amount with cents."""
    dollars = rng.randrange(low, high)
    cents = rng.randrange(0, 100)
    return money(Decimal(dollars) + Decimal(cents) / 100)


class DonationService:
    """Feeds purchases to the allocation engine and keeps the ledger ordering dense."""

    def __init__(
        self,
        engine: AllocationEngine,
        goals: CharityGoalRepository,
        purchases: PurchaseRepository,
        profiles: ProfileRepository,
        charities: CharityRepository,
        rng: Optional[random.Random] = None
    ):
        self.engine = engine
        self.goals = goals
        self.purchases = purchases
        self.profiles = profiles
        self.charities = charities
        self.rng = rng or random.Random()

    async def process_purchase(self, purchase: Purchase) -> AllocationResult:
        try:
            result = await self.engine.allocate(purchase.user_id, str(purchase.id), purchase.roundup_amount)
        except AllocationPersistenceError as exc:
            # Goals written before the fault may have completed and left the active set
            if exc.applied_steps > 0:
                await self.goals.renumber(purchase.user_id)
            raise
        if result.completed_goal_ids:
            await self.goals.renumber(purchase.user_id)
        return result

    async def process_pending(self, user_id: str) -> List[AllocationResult]:
        """
        Allocate every settled purchase still waiting for a donation.

        A persistence fault stops the batch; the failed purchase and the rest
        stay unprocessed for the next run.
        """
        results = []
        for purchase in await self.purchases.list_unprocessed(user_id):
            try:
                result = await self.process_purchase(purchase)
            except AllocationPersistenceError as exc:
                logger.error(
                    "donations.batch_aborted",
                    extra={"fields": {
                        "user_id": user_id,
                        "purchase_id": exc.purchase_id,
                        "processed": len(results),
                        "error": exc
                    }}
                )
                break
            results.append(result)
            if result.status == AllocationStatus.DISABLED:
                break
        return results

    async def simulate_purchase(
        self,
        user_id: str,
        amount: Optional[Decimal] = None,
        merchant: Optional[str] = None
    ) -> SimulatePurchaseResponse:
        """Create a settled demo purchase and run it through allocation."""
        if merchant:
            merchant_name, category = merchant, ["Shopping"]
        else:
            merchant_name, category = self.rng.choice(DEMO_MERCHANTS)
        purchase_amount = money(amount) if amount is not None else random_purchase_amount(self.rng)
        roundup = calculate_roundup(purchase_amount)

        purchase = Purchase(
            user_id=user_id,
            external_transaction_id=f"demo_tx_{uuid4().hex}",
            amount_cents=to_cents(purchase_amount),
            roundup_amount_cents=to_cents(roundup),
            merchant_name=merchant_name,
            category=list(category),
            transaction_date=datetime.now(timezone.utc).date().isoformat(),
            is_pending=False,
            is_donation=False,
            processed_for_donation=False
        )
        await self.purchases.create_purchase(purchase)
        logger.info(
            "demo.purchase.simulating",
            extra={"fields": {
                "user_id": user_id,
                "merchant": merchant_name,
                "amount": purchase_amount,
                "roundup": roundup
            }}
        )

        result = await self.process_purchase(purchase)

        charity_name = None
        if result.primary_charity_id:
            charity_name = await self.charities.get_charity_name(result.primary_charity_id)

        placed = result.allocated_total
        if placed > ZERO:
            impact = f"{format_currency(placed)} donated to {charity_name or 'your charity'}!"
        else:
            impact = "Round-up saved for later"

        refreshed = await self.purchases.get_purchase(str(purchase.id)) or purchase
        return SimulatePurchaseResponse(
            transaction=PurchaseResponse.from_purchase(refreshed),
            donation=SimulatedDonation(
                allocated=placed > ZERO,
                charity_id=result.primary_charity_id,
                charity_name=charity_name,
                amount=roundup,
                unallocated_amount=result.unallocated_amount
            ),
            allocation=result,
            explanation={
                "purchase": f"You bought something at {merchant_name} for {format_currency(purchase_amount)}",
                "roundup": (
                    f"Rounded up to {format_currency(purchase_amount + roundup)} "
                    f"= {format_currency(roundup)} donation"
                ),
                "impact": impact
            }
        )

    async def get_dashboard_stats(self, user_id: str) -> DashboardStatsResponse:
        goals = await self.goals.list_goals(user_id)
        total_donated = money(sum((goal.current_amount for goal in goals), ZERO))

        purchase_stats = await self.purchases.get_user_stats(user_id)

        current_charity = None
        profile = await self.profiles.get_profile(user_id)
        charity_id = profile.selected_charity_id if profile else None
        if charity_id is None:
            active = [goal for goal in goals if not goal.is_completed]
            charity_id = active[0].charity_id if active else None
        if charity_id:
            current_charity = await self.charities.get_charity_name(charity_id)

        pending = purchase_stats["pending_roundup"]
        return DashboardStatsResponse(
            total_donated=total_donated,
            transactions_count=purchase_stats["processed_count"],
            current_charity=current_charity,
            pending_roundup=pending,
            meets_payout_threshold=meets_minimum_threshold(pending)
        )
