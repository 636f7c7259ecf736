from datetime import datetime
from typing import Optional

from app.models.base import MongoModel


class LinkedAccount(MongoModel):
    """
    A bank connection (aggregator item) for a user.

    sync_cursor is the durable incremental sync position for the item;
    None means the next sync starts from the beginning of history.
    """
    user_id: str
    item_id: str
    access_token: str
    institution_name: str = ""
    sync_cursor: Optional[str] = None
    last_synced_at: Optional[datetime] = None
    is_active: bool = True
