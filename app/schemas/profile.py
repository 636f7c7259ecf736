from typing import Optional

from pydantic import BaseModel, Field

from app.models.profile import DonationMode, Profile


class PreferencesUpdate(BaseModel):
    roundup_enabled: Optional[bool] = None
    donation_mode: Optional[DonationMode] = None
    display_name: Optional[str] = Field(None, min_length=1, max_length=100)


class ProfileResponse(BaseModel):
    id: str
    email: Optional[str] = None
    display_name: Optional[str] = None
    donation_mode: DonationMode
    roundup_enabled: bool
    selected_charity_id: Optional[str] = None
    onboarding_completed: bool = False

    @classmethod
    def from_profile(cls, profile: Profile) -> "ProfileResponse":
        return cls(
            id=profile.id,
            email=profile.email,
            display_name=profile.display_name,
            donation_mode=profile.donation_mode,
            roundup_enabled=profile.roundup_enabled,
            selected_charity_id=profile.selected_charity_id,
            onboarding_completed=profile.onboarding_completed
        )
