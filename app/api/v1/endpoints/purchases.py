import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.core.auth import CurrentUser, get_current_user
from app.core.exceptions import PersistenceError
from app.db.mongo import get_db
from app.repositories.purchase_repo import PurchaseRepository
from app.schemas.purchase import (
    DashboardStatsResponse,
    PurchaseResponse,
    SimulatePurchaseRequest,
    SimulatePurchaseResponse,
)
from app.services.donation_service import DonationService
from app.services.factory import build_donation_service

logger = logging.getLogger(__name__)

router = APIRouter()


def get_donation_service(db = Depends(get_db)) -> DonationService:
    return build_donation_service(db)


@router.get("/", response_model=List[PurchaseResponse])
async def list_purchases(
    limit: int = Query(50, ge=1, le=200),
    current_user: CurrentUser = Depends(get_current_user),
    db = Depends(get_db)
):
    """Recent purchases with their round-ups"""
    purchases = await PurchaseRepository(db).list_recent(current_user.id, limit=limit)
    return [PurchaseResponse.from_purchase(p) for p in purchases]


@router.get("/stats", response_model=DashboardStatsResponse)
async def get_stats(
    current_user: CurrentUser = Depends(get_current_user),
    donations: DonationService = Depends(get_donation_service)
):
    """Dashboard totals"""
    return await donations.get_dashboard_stats(current_user.id)


@router.post("/simulate", response_model=SimulatePurchaseResponse)
async def simulate_purchase(
    request_in: SimulatePurchaseRequest,
    current_user: CurrentUser = Depends(get_current_user),
    donations: DonationService = Depends(get_donation_service)
):
    """Create a demo purchase and allocate its round-up"""
    try:
        return await donations.simulate_purchase(
            current_user.id,
            amount=request_in.amount,
            merchant=request_in.merchant
        )
    except PersistenceError as exc:
        logger.error(
            "demo.purchase.failed",
            extra={"fields": {"user_id": current_user.id, "error": exc}}
        )
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Could not process purchase, please retry"
        )
