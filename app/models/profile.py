from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, ConfigDict

from app.models.base import _utcnow


class DonationMode(str, Enum):
    RANDOM = "random"
    PRIORITY = "priority"


class Profile(BaseModel):
    """Per-user donation preferences. _id is the auth provider's user id."""
    id: str = Field(alias="_id")
    email: Optional[str] = None
    display_name: Optional[str] = None

    donation_mode: DonationMode = DonationMode.PRIORITY
    roundup_enabled: bool = True
    selected_charity_id: Optional[str] = None  # Currently targeted charity (priority mode)
    onboarding_completed: bool = False

    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    model_config = ConfigDict(
        populate_by_name=True,
        from_attributes=True
    )
