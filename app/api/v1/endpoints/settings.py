from fastapi import APIRouter, Depends, HTTPException, status

from app.core.auth import CurrentUser, get_current_user
from app.db.mongo import get_db
from app.repositories.profile_repo import ProfileRepository
from app.schemas.profile import PreferencesUpdate, ProfileResponse

router = APIRouter()


@router.get("/", response_model=ProfileResponse)
async def get_settings(
    current_user: CurrentUser = Depends(get_current_user),
    db = Depends(get_db)
):
    """Get donation preferences"""
    profile = await ProfileRepository(db).get_profile(current_user.id)
    if not profile:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Profile not found")
    return ProfileResponse.from_profile(profile)


@router.patch("/", response_model=ProfileResponse)
async def update_settings(
    update_in: PreferencesUpdate,
    current_user: CurrentUser = Depends(get_current_user),
    db = Depends(get_db)
):
    """Toggle round-ups or switch donation mode"""
    profile = await ProfileRepository(db).update_preferences(
        current_user.id,
        roundup_enabled=update_in.roundup_enabled,
        donation_mode=update_in.donation_mode,
        display_name=update_in.display_name
    )
    if not profile:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Profile not found")
    return ProfileResponse.from_profile(profile)


@router.post("/onboarding/complete", response_model=ProfileResponse)
async def complete_onboarding(
    current_user: CurrentUser = Depends(get_current_user),
    db = Depends(get_db)
):
    """Mark the first-run setup as done"""
    profile = await ProfileRepository(db).complete_onboarding(current_user.id)
    if not profile:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Profile not found")
    return ProfileResponse.from_profile(profile)
