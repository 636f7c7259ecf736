from typing import List

from fastapi import APIRouter, Depends

from app.core.auth import CurrentUser, get_current_user
from app.db.mongo import get_db
from app.repositories.charity_repo import CharityRepository
from app.schemas.charity import CharityResponse

router = APIRouter()


@router.get("/", response_model=List[CharityResponse])
async def list_charities(
    current_user: CurrentUser = Depends(get_current_user),
    db = Depends(get_db)
):
    """Catalog of charities a goal can be set for"""
    charities = await CharityRepository(db).list_active()
    return [CharityResponse.from_charity(charity) for charity in charities]
