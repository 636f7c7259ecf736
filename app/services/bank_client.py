"""
Bank aggregator client (Plaid).

Only the incremental transactions sync endpoint is used. The Plaid SDK is
synchronous, so calls run in the threadpool.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional

from fastapi.concurrency import run_in_threadpool
from plaid.api import plaid_api
from plaid.api_client import ApiClient
from plaid.configuration import Configuration
from plaid.model.transactions_sync_request import TransactionsSyncRequest

from app.core.config import Settings, settings
from app.utils.money import to_decimal

PLAID_ENV_HOSTS = {
    "sandbox":     "https://sandbox.plaid.com",
    "development": "https://development.plaid.com",
    "production":  "https://production.plaid.com",
}


@dataclass
class BankTransaction:
    transaction_id: str
    account_id: str
    amount: Decimal  # Positive for money leaving the account
    date: str
    name: str
    merchant_name: Optional[str] = None
    category: List[str] = field(default_factory=list)
    pending: bool = False


@dataclass
class SyncPage:
    added: List[BankTransaction]
    modified: List[BankTransaction]
    removed: List[str]
    next_cursor: str
    has_more: bool


def _to_bank_transaction(tx: dict) -> BankTransaction:
    return BankTransaction(
        transaction_id=tx["transaction_id"],
        account_id=tx.get("account_id") or "",
        amount=to_decimal(tx["amount"]),
        date=str(tx.get("date") or ""),
        name=tx.get("name") or "",
        merchant_name=tx.get("merchant_name"),
        category=list(tx.get("category") or []),
        pending=bool(tx.get("pending", False)),
    )


class PlaidTransactionsClient:
    def __init__(self, config: Settings = settings):
        if config.PLAID_ENV not in PLAID_ENV_HOSTS:
            raise ValueError(f"Invalid PLAID_ENV: {config.PLAID_ENV}")
        configuration = Configuration(
            host=PLAID_ENV_HOSTS[config.PLAID_ENV],
            api_key={"clientId": config.PLAID_CLIENT_ID, "secret": config.PLAID_SECRET},
        )
        self.client = plaid_api.PlaidApi(ApiClient(configuration))

    def _sync(self, access_token: str, cursor: Optional[str]) -> SyncPage:
        if cursor:
            request = TransactionsSyncRequest(access_token=access_token, cursor=cursor)
        else:
            request = TransactionsSyncRequest(access_token=access_token)
        response = self.client.transactions_sync(request).to_dict()

        return SyncPage(
            added=[_to_bank_transaction(t) for t in response.get("added", [])],
            modified=[_to_bank_transaction(t) for t in response.get("modified", [])],
            removed=[r["transaction_id"] for r in response.get("removed", [])],
            next_cursor=response["next_cursor"],
            has_more=bool(response.get("has_more", False)),
        )

    async def sync_page(self, access_token: str, cursor: Optional[str]) -> SyncPage:
        return await run_in_threadpool(self._sync, access_token, cursor)
