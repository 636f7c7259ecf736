import random
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Dict, List, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from pymongo.errors import PyMongoError

from app.core.auth import CurrentUser, get_current_user
from app.core.exceptions import LedgerConflictError
from app.core.locks import UserLockRegistry
from app.core.tasks import BackgroundTaskRunner
from app.db.mongo import get_db
from app.main import app
from app.models.charity_goal import CharityGoal
from app.models.profile import DonationMode, Profile
from app.models.purchase import Purchase
from app.services.allocation_service import AllocationEngine
from app.utils.money import money, to_cents

TEST_USER_ID = "user-123"
TEST_USER_EMAIL = "donor@example.com"


# ===== IN-MEMORY COLLABORATORS =====

class FakeGoalStore:
    """Charity ledger kept in a dict; can be told to fail a given write."""

    def __init__(self):
        self.goals: Dict[str, CharityGoal] = {}
        self.writes: List[str] = []
        self.fail_on_write: Optional[int] = None
        self._clock = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def add(
        self,
        charity_id: str,
        goal: str,
        current: str = "0.00",
        priority: int = 1,
        user_id: str = TEST_USER_ID,
        is_completed: Optional[bool] = None
    ) -> CharityGoal:
        goal_cents = to_cents(Decimal(goal))
        current_cents = to_cents(Decimal(current))
        if is_completed is None:
            is_completed = goal_cents > 0 and current_cents >= goal_cents
        self._clock += timedelta(seconds=1)
        record = CharityGoal(
            user_id=user_id,
            charity_id=charity_id,
            goal_amount_cents=goal_cents,
            current_amount_cents=current_cents,
            priority=priority,
            is_completed=is_completed,
            created_at=self._clock,
            updated_at=self._clock
        )
        self.goals[str(record.id)] = record
        return record

    def get(self, goal: CharityGoal) -> CharityGoal:
        return self.goals[str(goal.id)]

    async def list_active_goals(self, user_id: str) -> List[CharityGoal]:
        active = [
            g for g in self.goals.values()
            if g.user_id == user_id and not g.is_completed
        ]
        active.sort(key=lambda g: (g.priority, g.created_at, str(g.id)))
        return [g.model_copy() for g in active]

    async def update_goal(self, goal_id, current_amount, is_completed, expected_current_amount=None):
        if self.fail_on_write is not None and len(self.writes) == self.fail_on_write:
            raise PyMongoError("connection reset")
        goal = self.goals[goal_id]
        if expected_current_amount is not None and to_cents(expected_current_amount) != goal.current_amount_cents:
            raise LedgerConflictError(f"Goal {goal_id} changed")
        self.goals[goal_id] = goal.model_copy(update={
            "current_amount_cents": to_cents(current_amount),
            "is_completed": is_completed
        })
        self.writes.append(goal_id)


class FakePurchaseStore:
    def __init__(self):
        self.purchases: Dict[str, Purchase] = {}
        self.mark_calls = 0
        self.fail_mark = False

    def add(self, roundup: str, user_id: str = TEST_USER_ID, processed: bool = False) -> Purchase:
        purchase = Purchase(
            user_id=user_id,
            external_transaction_id=f"ext-{len(self.purchases) + 1}",
            amount_cents=1000,
            roundup_amount_cents=to_cents(Decimal(roundup)),
            merchant_name="Coffee",
            transaction_date="2024-05-01",
            processed_for_donation=processed
        )
        self.purchases[str(purchase.id)] = purchase
        return purchase

    def get(self, purchase: Purchase) -> Purchase:
        return self.purchases[str(purchase.id)]

    async def get_purchase(self, purchase_id: str) -> Optional[Purchase]:
        purchase = self.purchases.get(purchase_id)
        return purchase.model_copy() if purchase else None

    async def mark_processed(self, purchase_id: str, donated_to_charity_id: Optional[str]) -> bool:
        self.mark_calls += 1
        if self.fail_mark:
            raise PyMongoError("write concern error")
        purchase = self.purchases[purchase_id]
        if purchase.processed_for_donation:
            return False
        self.purchases[purchase_id] = purchase.model_copy(update={
            "processed_for_donation": True,
            "donated_to_charity_id": donated_to_charity_id
        })
        return True


class FakeProfileStore:
    def __init__(self):
        self.profiles: Dict[str, Profile] = {}
        self.primary_calls: List[tuple] = []

    def add(
        self,
        user_id: str = TEST_USER_ID,
        mode: DonationMode = DonationMode.PRIORITY,
        enabled: bool = True,
        email: Optional[str] = TEST_USER_EMAIL,
        selected_charity_id: Optional[str] = None
    ) -> Profile:
        profile = Profile(
            id=user_id,
            email=email,
            donation_mode=mode,
            roundup_enabled=enabled,
            selected_charity_id=selected_charity_id
        )
        self.profiles[user_id] = profile
        return profile

    async def get_profile(self, user_id: str) -> Optional[Profile]:
        profile = self.profiles.get(user_id)
        return profile.model_copy() if profile else None

    async def set_primary_charity(self, user_id: str, charity_id: Optional[str]) -> None:
        self.primary_calls.append((user_id, charity_id))
        self.profiles[user_id] = self.profiles[user_id].model_copy(
            update={"selected_charity_id": charity_id}
        )


class FakeCharityDirectory:
    def __init__(self, names: Optional[Dict[str, str]] = None):
        self.names = names or {}

    async def get_charity_name(self, charity_id: str) -> Optional[str]:
        return self.names.get(charity_id)


class RecordingNotifier:
    def __init__(self, fail: bool = False):
        self.calls: List[dict] = []
        self.fail = fail

    async def notify_goal_completed(self, user_email, charity_name, amount, purchase_id=None):
        self.calls.append({
            "user_email": user_email,
            "charity_name": charity_name,
            "amount": amount,
            "purchase_id": purchase_id
        })
        if self.fail:
            raise ConnectionError("SMTP unavailable")


class EngineHarness:
    """Engine wired to in-memory collaborators."""

    def __init__(self, seed: int = 7, notifier_fails: bool = False):
        self.goals = FakeGoalStore()
        self.purchases = FakePurchaseStore()
        self.profiles = FakeProfileStore()
        self.charities = FakeCharityDirectory({
            "red-cross": "Red Cross",
            "unicef": "UNICEF",
            "wwf": "WWF",
        })
        self.notifier = RecordingNotifier(fail=notifier_fails)
        self.tasks = BackgroundTaskRunner()
        self.engine = AllocationEngine(
            goals=self.goals,
            purchases=self.purchases,
            profiles=self.profiles,
            charities=self.charities,
            notifier=self.notifier,
            tasks=self.tasks,
            locks=UserLockRegistry(),
            rng=random.Random(seed)
        )

    async def allocate(self, purchase: Purchase, amount=None):
        roundup = purchase.roundup_amount if amount is None else money(amount)
        result = await self.engine.allocate(purchase.user_id, str(purchase.id), roundup)
        await self.tasks.drain()
        return result


@pytest.fixture
def harness():
    return EngineHarness()


@pytest.fixture
def make_harness():
    return EngineHarness


# ===== MOCKED MOTOR DATABASE =====

def make_collection():
    collection = MagicMock()
    collection.find_one = AsyncMock(return_value=None)
    collection.insert_one = AsyncMock()
    collection.update_one = AsyncMock()
    collection.delete_one = AsyncMock()
    collection.delete_many = AsyncMock()
    collection.find_one_and_update = AsyncMock()
    collection.count_documents = AsyncMock(return_value=0)
    collection.bulk_write = AsyncMock()
    return collection


@pytest.fixture
def mock_db():
    """Mock MongoDB database; db["name"] and db.name give the same collection."""
    collections = {}

    def collection(name):
        if name not in collections:
            collections[name] = make_collection()
        return collections[name]

    db = MagicMock()
    db.__getitem__.side_effect = collection
    return db


# ===== HTTP CLIENT =====

@pytest.fixture
def current_user():
    return CurrentUser(id=TEST_USER_ID, email=TEST_USER_EMAIL)


@pytest_asyncio.fixture
async def client(mock_db, current_user):
    """Async client with auth and database dependencies overridden."""
    app.dependency_overrides[get_current_user] = lambda: current_user
    app.dependency_overrides[get_db] = lambda: mock_db
    try:
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            yield client
    finally:
        app.dependency_overrides.clear()
