from datetime import datetime, timezone
from typing import List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from app.models.base import parse_object_id
from app.models.linked_account import LinkedAccount


class LinkedAccountRepository:
    """Linked bank account database operations."""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.collection = db["linked_accounts"]

    async def get_by_item_id(self, item_id: str) -> Optional[LinkedAccount]:
        """Active account for an aggregator item; unlinked items are ignored."""
        doc = await self.collection.find_one({"item_id": item_id, "is_active": True})
        if doc:
            return LinkedAccount(**doc)
        return None

    async def list_for_user(self, user_id: str) -> List[LinkedAccount]:
        cursor = self.collection.find({"user_id": user_id, "is_active": True}).sort("created_at", -1)
        docs = await cursor.to_list(length=100)
        return [LinkedAccount(**doc) for doc in docs]

    async def deactivate(self, account_id: str, user_id: str) -> bool:
        """
        Unlink an account owned by the user.

        The document is kept with is_active=False so purchases synced from it
        still resolve; the item stops syncing.
        """
        oid = parse_object_id(account_id)
        if oid is None:
            return False
        result = await self.collection.update_one(
            {"_id": oid, "user_id": user_id, "is_active": True},
            {"$set": {"is_active": False, "updated_at": datetime.now(timezone.utc)}}
        )
        return result.matched_count > 0

    async def update_cursor(self, account: LinkedAccount, cursor: Optional[str]) -> None:
        """Persist the incremental sync position for an item."""
        now = datetime.now(timezone.utc)
        await self.collection.update_one(
            {"_id": account.id},
            {"$set": {"sync_cursor": cursor, "last_synced_at": now, "updated_at": now}}
        )
