import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Response, status

from app.core.auth import CurrentUser, get_current_user
from app.db.mongo import get_db
from app.repositories.linked_account_repo import LinkedAccountRepository
from app.schemas.linked_account import LinkedAccountResponse

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/", response_model=List[LinkedAccountResponse])
async def list_accounts(
    current_user: CurrentUser = Depends(get_current_user),
    db = Depends(get_db)
):
    """Bank accounts currently linked"""
    accounts = await LinkedAccountRepository(db).list_for_user(current_user.id)
    return [LinkedAccountResponse.from_account(account) for account in accounts]


@router.delete("/{account_id}", status_code=status.HTTP_204_NO_CONTENT)
async def unlink_account(
    account_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    db = Depends(get_db)
):
    """Unlink a bank account; its transactions stop syncing"""
    unlinked = await LinkedAccountRepository(db).deactivate(account_id, current_user.id)
    if not unlinked:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Account not found")
    logger.info(
        "accounts.unlinked",
        extra={"fields": {"user_id": current_user.id, "account_id": account_id}}
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)
