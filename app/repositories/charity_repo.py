from typing import List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from app.models.charity import Charity


class CharityRepository:
    """Charity catalog lookups."""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.collection = db["charities"]

    async def list_active(self) -> List[Charity]:
        cursor = self.collection.find({"is_active": True}).sort("name", 1)
        docs = await cursor.to_list(None)
        return [Charity(**doc) for doc in docs]

    async def get_charity(self, charity_id: str) -> Optional[Charity]:
        doc = await self.collection.find_one({"_id": charity_id})
        if doc:
            return Charity(**doc)
        return None

    async def get_charity_name(self, charity_id: str) -> Optional[str]:
        doc = await self.collection.find_one({"_id": charity_id}, {"name": 1})
        if doc:
            return doc.get("name")
        return None
