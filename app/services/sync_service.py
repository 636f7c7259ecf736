"""
TransactionSyncService - pulls bank transactions for a linked item.

Algorithm:
1. Load the linked account and its stored cursor
2. Page through transactions_sync until has_more is False
   - added: spending that is not our own donation debit becomes a Purchase
   - modified: amount / round-up / pending flag refreshed
   - removed: purchase deleted
   - the cursor is persisted after every page
3. If anything new arrived, allocate the user's pending purchases
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Protocol

from app.models.linked_account import LinkedAccount
from app.models.purchase import Purchase
from app.repositories.linked_account_repo import LinkedAccountRepository
from app.repositories.purchase_repo import PurchaseRepository
from app.services.bank_client import BankTransaction, SyncPage
from app.services.donation_service import DonationService
from app.services.roundup import calculate_roundup
from app.utils.money import ZERO, to_cents

logger = logging.getLogger(__name__)

MAX_PAGES = 100


class TransactionsClient(Protocol):
    async def sync_page(self, access_token: str, cursor: Optional[str]) -> SyncPage: ...


@dataclass
class SyncSummary:
    item_id: str
    pages: int = 0
    added: int = 0
    inserted: int = 0
    modified: int = 0
    removed: int = 0
    allocated: int = 0


def is_change_transaction(tx: BankTransaction) -> bool:
    """Debits made by this app for donations; rounding them up would loop forever."""
    name = (tx.name or "").lower()
    merchant_name = (tx.merchant_name or "").lower()
    return (
        "change_donation" in name
        or "change app" in name
        or "change" in merchant_name
        or ("stripe" in name and "change" in name)
    )


def to_purchase(account: LinkedAccount, tx: BankTransaction) -> Purchase:
    return Purchase(
        user_id=account.user_id,
        linked_account_id=str(account.id),
        external_transaction_id=tx.transaction_id,
        amount_cents=to_cents(tx.amount),
        roundup_amount_cents=to_cents(calculate_roundup(tx.amount)),
        merchant_name=tx.merchant_name or tx.name,
        category=tx.category,
        transaction_date=tx.date,
        is_pending=tx.pending,
        is_donation=False,
        processed_for_donation=False
    )


class TransactionSyncService:
    def __init__(
        self,
        client: TransactionsClient,
        accounts: LinkedAccountRepository,
        purchases: PurchaseRepository,
        donations: DonationService
    ):
        self.client = client
        self.accounts = accounts
        self.purchases = purchases
        self.donations = donations

    async def sync_item(
        self,
        item_id: str,
        trigger: str = "webhook",
        webhook_code: Optional[str] = None
    ) -> Optional[SyncSummary]:
        log_fields = {"item_id": item_id, "trigger": trigger, "webhook_code": webhook_code}
        logger.info("sync.start", extra={"fields": log_fields})

        account = await self.accounts.get_by_item_id(item_id)
        if account is None:
            logger.error("sync.no_linked_account", extra={"fields": log_fields})
            return None

        summary = SyncSummary(item_id=item_id)
        cursor = account.sync_cursor

        while summary.pages < MAX_PAGES:
            page = await self.client.sync_page(account.access_token, cursor)
            summary.pages += 1
            summary.added += len(page.added)

            summary.inserted += await self._insert_added(account, page.added)
            summary.modified += await self._apply_modified(page.modified)
            summary.removed += await self.purchases.delete_by_external_ids(page.removed)

            cursor = page.next_cursor
            await self.accounts.update_cursor(account, cursor)

            logger.info(
                "sync.page_applied",
                extra={"fields": {
                    **log_fields,
                    "user_id": account.user_id,
                    "added": len(page.added),
                    "modified": len(page.modified),
                    "removed": len(page.removed),
                    "has_more": page.has_more
                }}
            )
            if not page.has_more:
                break
        else:
            logger.warning("sync.page_limit_reached", extra={"fields": log_fields})

        if summary.inserted > 0:
            results = await self.donations.process_pending(account.user_id)
            summary.allocated = len(results)

        logger.info("sync.completed", extra={"fields": {**log_fields, **summary.__dict__}})
        return summary

    async def _insert_added(self, account: LinkedAccount, transactions: List[BankTransaction]) -> int:
        purchases = [
            to_purchase(account, tx)
            for tx in transactions
            if tx.amount > ZERO and not is_change_transaction(tx)
        ]
        return await self.purchases.insert_new(purchases)

    async def _apply_modified(self, transactions: List[BankTransaction]) -> int:
        count = 0
        for tx in transactions:
            if tx.amount <= ZERO:
                continue
            changed = await self.purchases.apply_modification(
                tx.transaction_id,
                amount_cents=to_cents(tx.amount),
                roundup_amount_cents=to_cents(calculate_roundup(tx.amount)),
                is_pending=tx.pending
            )
            if changed:
                count += 1
        return count
