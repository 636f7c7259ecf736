import logging

from fastapi import APIRouter, Depends

from app.core.tasks import BackgroundTaskRunner, task_runner
from app.db.mongo import get_db
from app.schemas.webhook import SYNC_WEBHOOK_CODES, PlaidWebhookPayload, WebhookAck
from app.services.factory import build_sync_service

logger = logging.getLogger(__name__)

router = APIRouter()


def get_task_runner() -> BackgroundTaskRunner:
    return task_runner


async def run_item_sync(item_id: str, webhook_code: str) -> None:
    service = build_sync_service(get_db())
    await service.sync_item(item_id, trigger="webhook", webhook_code=webhook_code)


@router.post("/plaid", response_model=WebhookAck)
async def plaid_webhook(
    payload: PlaidWebhookPayload,
    runner: BackgroundTaskRunner = Depends(get_task_runner)
):
    """Bank aggregator webhook; transaction updates schedule a background sync"""
    fields = {
        "webhook_type": payload.webhook_type,
        "webhook_code": payload.webhook_code,
        "item_id": payload.item_id,
        "new_transactions": payload.new_transactions
    }
    logger.info("webhook.received", extra={"fields": fields})

    if payload.webhook_type == "TRANSACTIONS" and payload.webhook_code in SYNC_WEBHOOK_CODES:
        if not payload.item_id:
            logger.warning("webhook.missing_item_id", extra={"fields": fields})
            return WebhookAck(received=True, sync_scheduled=False)
        runner.spawn(
            run_item_sync(payload.item_id, payload.webhook_code),
            name=f"sync-{payload.item_id}"
        )
        return WebhookAck(received=True, sync_scheduled=True)

    if payload.webhook_type == "ITEM" and payload.error is not None:
        logger.warning(
            "webhook.item_error",
            extra={"fields": {**fields, "error": payload.error.model_dump()}}
        )
    else:
        logger.info("webhook.ignored", extra={"fields": fields})
    return WebhookAck(received=True, sync_scheduled=False)
