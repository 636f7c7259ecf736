from typing import List, Optional

from pydantic import BaseModel, ConfigDict

# Transaction webhook codes that mean new data is waiting at the aggregator
SYNC_WEBHOOK_CODES = {
    "SYNC_UPDATES_AVAILABLE",
    "INITIAL_UPDATE",
    "HISTORICAL_UPDATE",
    "DEFAULT_UPDATE",
    "TRANSACTIONS_REMOVED",
}


class WebhookError(BaseModel):
    error_type: Optional[str] = None
    error_code: Optional[str] = None
    error_message: Optional[str] = None


class PlaidWebhookPayload(BaseModel):
    webhook_type: str
    webhook_code: str
    item_id: Optional[str] = None
    error: Optional[WebhookError] = None
    new_transactions: Optional[int] = None
    removed_transactions: Optional[List[str]] = None

    model_config = ConfigDict(extra="allow")


class WebhookAck(BaseModel):
    received: bool = True
    sync_scheduled: bool = False
