"""Wiring of repositories into services for a database handle."""

from functools import lru_cache

from motor.motor_asyncio import AsyncIOMotorDatabase

from app.repositories.charity_goal_repo import CharityGoalRepository
from app.repositories.charity_repo import CharityRepository
from app.repositories.linked_account_repo import LinkedAccountRepository
from app.repositories.profile_repo import ProfileRepository
from app.repositories.purchase_repo import PurchaseRepository
from app.services.allocation_service import AllocationEngine
from app.services.bank_client import PlaidTransactionsClient
from app.services.donation_service import DonationService
from app.services.notification_service import build_notification_sender
from app.services.sync_service import TransactionSyncService


@lru_cache
def get_notification_sender():
    return build_notification_sender()


@lru_cache
def get_transactions_client() -> PlaidTransactionsClient:
    return PlaidTransactionsClient()


def build_allocation_engine(db: AsyncIOMotorDatabase) -> AllocationEngine:
    return AllocationEngine(
        goals=CharityGoalRepository(db),
        purchases=PurchaseRepository(db),
        profiles=ProfileRepository(db),
        charities=CharityRepository(db),
        notifier=get_notification_sender()
    )


def build_donation_service(db: AsyncIOMotorDatabase) -> DonationService:
    return DonationService(
        engine=build_allocation_engine(db),
        goals=CharityGoalRepository(db),
        purchases=PurchaseRepository(db),
        profiles=ProfileRepository(db),
        charities=CharityRepository(db)
    )


def build_sync_service(db: AsyncIOMotorDatabase) -> TransactionSyncService:
    return TransactionSyncService(
        client=get_transactions_client(),
        accounts=LinkedAccountRepository(db),
        purchases=PurchaseRepository(db),
        donations=build_donation_service(db)
    )
