from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, List, Optional, Union

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import UpdateOne

from app.models.base import parse_object_id
from app.models.purchase import Purchase
from app.utils.money import ZERO, from_cents


class PurchaseRepository:
    """Purchase (bank transaction) database operations."""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.collection = db["transactions"]

    async def create_purchase(self, purchase: Purchase) -> Purchase:
        """Insert a single purchase (simulated or manual)."""
        await self.collection.insert_one(purchase.to_document())
        return purchase

    async def get_purchase(self, purchase_id: str) -> Optional[Purchase]:
        oid = parse_object_id(purchase_id)
        if oid is None:
            return None
        doc = await self.collection.find_one({"_id": oid})
        if doc:
            return Purchase(**doc)
        return None

    async def mark_processed(self, purchase_id: str, donated_to_charity_id: Optional[str]) -> bool:
        """
        Flip processed_for_donation to True.

        Conditional on the purchase still being unprocessed, so the flag is set
        exactly once. Returns False when it was already set.
        """
        oid = parse_object_id(purchase_id)
        if oid is None:
            return False
        result = await self.collection.update_one(
            {"_id": oid, "processed_for_donation": False},
            {"$set": {
                "processed_for_donation": True,
                "donated_to_charity_id": donated_to_charity_id,
                "updated_at": datetime.now(timezone.utc)
            }}
        )
        return result.modified_count > 0

    async def list_unprocessed(self, user_id: str) -> List[Purchase]:
        """Settled, non-donation purchases still waiting for allocation, oldest first."""
        cursor = self.collection.find({
            "user_id": user_id,
            "processed_for_donation": False,
            "is_pending": False,
            "is_donation": False
        }).sort([("transaction_date", 1), ("created_at", 1)])
        docs = await cursor.to_list(None)
        return [Purchase(**doc) for doc in docs]

    async def list_recent(self, user_id: str, limit: int = 50) -> List[Purchase]:
        cursor = self.collection.find({"user_id": user_id}).sort(
            [("transaction_date", -1), ("created_at", -1)]
        ).limit(limit)
        docs = await cursor.to_list(None)
        return [Purchase(**doc) for doc in docs]

    async def insert_new(self, purchases: List[Purchase]) -> int:
        """
        Insert purchases keyed by external_transaction_id.

        Already-known transactions are left untouched so their processed flag
        survives a re-sync. Returns how many were new.
        """
        if not purchases:
            return 0
        operations = [
            UpdateOne(
                {"external_transaction_id": purchase.external_transaction_id},
                {"$setOnInsert": purchase.to_document()},
                upsert=True
            )
            for purchase in purchases
        ]
        result = await self.collection.bulk_write(operations, ordered=False)
        return result.upserted_count

    async def apply_modification(
        self,
        external_transaction_id: str,
        amount_cents: int,
        roundup_amount_cents: int,
        is_pending: bool
    ) -> bool:
        result = await self.collection.update_one(
            {"external_transaction_id": external_transaction_id},
            {"$set": {
                "amount_cents": amount_cents,
                "roundup_amount_cents": roundup_amount_cents,
                "is_pending": is_pending,
                "updated_at": datetime.now(timezone.utc)
            }}
        )
        return result.modified_count > 0

    async def delete_by_external_ids(self, external_transaction_ids: List[str]) -> int:
        if not external_transaction_ids:
            return 0
        result = await self.collection.delete_many({
            "external_transaction_id": {"$in": external_transaction_ids}
        })
        return result.deleted_count

    async def get_user_stats(self, user_id: str) -> Dict[str, Union[Decimal, int]]:
        """
        Aggregate a user's purchase activity.

        Returns:
        {
            "processed_count": purchases already allocated,
            "pending_roundup": round-ups of settled purchases not yet allocated
        }
        """
        processed_count = await self.collection.count_documents({
            "user_id": user_id,
            "processed_for_donation": True
        })

        pending_result = await self.collection.aggregate([
            {
                "$match": {
                    "user_id": user_id,
                    "processed_for_donation": False,
                    "is_pending": False,
                    "is_donation": False
                }
            },
            {
                "$group": {
                    "_id": None,
                    "total": {"$sum": "$roundup_amount_cents"}
                }
            }
        ]).to_list(None)

        pending_cents = pending_result[0]["total"] if pending_result else 0

        return {
            "processed_count": processed_count,
            "pending_roundup": from_cents(pending_cents) if pending_cents else ZERO
        }
