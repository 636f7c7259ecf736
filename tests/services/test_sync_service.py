from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from app.models.linked_account import LinkedAccount
from app.services.bank_client import BankTransaction, SyncPage
from app.services.sync_service import (
    TransactionSyncService,
    is_change_transaction,
    to_purchase,
)


def tx(transaction_id, amount, name="Coffee Shop", merchant_name=None, pending=False):
    return BankTransaction(
        transaction_id=transaction_id,
        account_id="acc-1",
        amount=Decimal(amount),
        date="2024-05-01",
        name=name,
        merchant_name=merchant_name,
        category=["Food and Drink"],
        pending=pending
    )


class FakeTransactionsClient:
    def __init__(self, pages):
        self.pages = list(pages)
        self.cursors = []

    async def sync_page(self, access_token, cursor):
        self.cursors.append(cursor)
        return self.pages.pop(0)


@pytest.fixture
def account():
    return LinkedAccount(
        user_id="user-123",
        item_id="item-1",
        access_token="access-sandbox-xyz",
        sync_cursor="cursor-0"
    )


def make_service(client, account, inserted=1):
    accounts = AsyncMock()
    accounts.get_by_item_id.return_value = account
    purchases = AsyncMock()
    purchases.insert_new.return_value = inserted
    purchases.apply_modification.return_value = True
    purchases.delete_by_external_ids.return_value = 0
    donations = MagicMock()
    donations.process_pending = AsyncMock(return_value=["result"] * inserted)
    service = TransactionSyncService(
        client=client,
        accounts=accounts,
        purchases=purchases,
        donations=donations
    )
    return service, accounts, purchases, donations


@pytest.mark.asyncio
async def test_sync_pages_until_done_and_persists_cursor(account):
    client = FakeTransactionsClient([
        SyncPage(added=[tx("t1", "25.40")], modified=[], removed=[], next_cursor="cursor-1", has_more=True),
        SyncPage(added=[tx("t2", "3.00")], modified=[], removed=["t0"], next_cursor="cursor-2", has_more=False),
    ])
    service, accounts, purchases, donations = make_service(client, account)

    summary = await service.sync_item("item-1")

    assert client.cursors == ["cursor-0", "cursor-1"]
    assert [c.args[1] for c in accounts.update_cursor.await_args_list] == ["cursor-1", "cursor-2"]
    assert summary.pages == 2
    assert summary.added == 2
    assert summary.inserted == 2
    purchases.delete_by_external_ids.assert_any_await(["t0"])
    donations.process_pending.assert_awaited_once_with("user-123")


@pytest.mark.asyncio
async def test_sync_skips_refunds_and_donation_debits(account):
    client = FakeTransactionsClient([
        SyncPage(
            added=[
                tx("t1", "25.40"),
                tx("t2", "-10.00", name="Refund"),
                tx("t3", "5.00", name="CHANGE_DONATION 123"),
            ],
            modified=[],
            removed=[],
            next_cursor="cursor-1",
            has_more=False
        ),
    ])
    service, _, purchases, _ = make_service(client, account)

    await service.sync_item("item-1")

    inserted = purchases.insert_new.await_args.args[0]
    assert [p.external_transaction_id for p in inserted] == ["t1"]
    assert inserted[0].roundup_amount_cents == 60
    assert inserted[0].linked_account_id == str(account.id)


@pytest.mark.asyncio
async def test_sync_applies_modifications(account):
    client = FakeTransactionsClient([
        SyncPage(
            added=[],
            modified=[tx("t1", "12.25", pending=False), tx("t2", "-4.00")],
            removed=[],
            next_cursor="cursor-1",
            has_more=False
        ),
    ])
    service, _, purchases, donations = make_service(client, account, inserted=0)

    summary = await service.sync_item("item-1")

    purchases.apply_modification.assert_awaited_once_with(
        "t1", amount_cents=1225, roundup_amount_cents=75, is_pending=False
    )
    assert summary.modified == 1
    donations.process_pending.assert_not_called()


@pytest.mark.asyncio
async def test_sync_unknown_item(account):
    client = FakeTransactionsClient([])
    service, accounts, _, _ = make_service(client, account)
    accounts.get_by_item_id.return_value = None

    assert await service.sync_item("missing") is None
    assert client.cursors == []


def test_is_change_transaction():
    assert is_change_transaction(tx("t", "1.00", name="Change App Donation"))
    assert is_change_transaction(tx("t", "1.00", name="STRIPE change"))
    assert is_change_transaction(tx("t", "1.00", merchant_name="Change"))
    assert not is_change_transaction(tx("t", "1.00", name="Stripe Payment"))


def test_to_purchase_uses_name_without_merchant(account):
    purchase = to_purchase(account, tx("t9", "9.99", name="CORNER STORE"))

    assert purchase.merchant_name == "CORNER STORE"
    assert purchase.amount_cents == 999
    assert purchase.roundup_amount_cents == 1
    assert purchase.processed_for_donation is False
