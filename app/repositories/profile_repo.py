from datetime import datetime, timezone
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

from app.models.profile import DonationMode, Profile


class ProfileRepository:
    """User preference database operations."""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.collection = db["profiles"]

    async def get_profile(self, user_id: str) -> Optional[Profile]:
        doc = await self.collection.find_one({"_id": user_id})
        if doc:
            return Profile(**doc)
        return None

    async def ensure_profile(self, user_id: str, email: Optional[str] = None) -> Profile:
        """Fetch the profile, creating it with defaults on first sight."""
        defaults = Profile(id=user_id, email=email).model_dump(by_alias=True, exclude={"id"})
        defaults["donation_mode"] = DonationMode.PRIORITY.value
        doc = await self.collection.find_one_and_update(
            {"_id": user_id},
            {"$setOnInsert": defaults},
            upsert=True,
            return_document=ReturnDocument.AFTER
        )
        return Profile(**doc)

    async def update_preferences(
        self,
        user_id: str,
        roundup_enabled: Optional[bool] = None,
        donation_mode: Optional[DonationMode] = None,
        display_name: Optional[str] = None
    ) -> Optional[Profile]:
        """Update whichever preferences are given."""
        updates = {}
        if roundup_enabled is not None:
            updates["roundup_enabled"] = roundup_enabled
        if donation_mode is not None:
            updates["donation_mode"] = DonationMode(donation_mode).value
        if display_name is not None:
            updates["display_name"] = display_name
        if not updates:
            return await self.get_profile(user_id)

        updates["updated_at"] = datetime.now(timezone.utc)
        doc = await self.collection.find_one_and_update(
            {"_id": user_id},
            {"$set": updates},
            return_document=ReturnDocument.AFTER
        )
        if doc:
            return Profile(**doc)
        return None

    async def set_primary_charity(self, user_id: str, charity_id: Optional[str]) -> None:
        """Point the profile at the charity currently being targeted."""
        await self.collection.update_one(
            {"_id": user_id},
            {"$set": {
                "selected_charity_id": charity_id,
                "updated_at": datetime.now(timezone.utc)
            }}
        )

    async def complete_onboarding(self, user_id: str) -> Optional[Profile]:
        doc = await self.collection.find_one_and_update(
            {"_id": user_id},
            {"$set": {
                "onboarding_completed": True,
                "updated_at": datetime.now(timezone.utc)
            }},
            return_document=ReturnDocument.AFTER
        )
        if doc:
            return Profile(**doc)
        return None
