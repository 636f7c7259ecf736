from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from app.models.linked_account import LinkedAccount


class LinkedAccountResponse(BaseModel):
    """A bank connection as shown to its owner; the access token never leaves the server."""
    id: str
    institution_name: str
    is_active: bool
    last_synced_at: Optional[datetime] = None
    created_at: datetime

    @classmethod
    def from_account(cls, account: LinkedAccount) -> "LinkedAccountResponse":
        return cls(
            id=str(account.id),
            institution_name=account.institution_name,
            is_active=account.is_active,
            last_synced_at=account.last_synced_at,
            created_at=account.created_at
        )
