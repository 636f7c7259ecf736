from fastapi import APIRouter
from app.api.v1.endpoints import accounts, charities, goals, settings, purchases, webhooks

api_router = APIRouter()

api_router.include_router(charities.router, prefix="/charities", tags=["charities"])
api_router.include_router(goals.router, prefix="/goals", tags=["goals"])
api_router.include_router(settings.router, prefix="/settings", tags=["settings"])
api_router.include_router(accounts.router, prefix="/accounts", tags=["accounts"])
api_router.include_router(purchases.router, prefix="/purchases", tags=["purchases"])
api_router.include_router(webhooks.router, prefix="/webhooks", tags=["webhooks"])
