import asyncio
import json
import logging
from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest

from app.core.config import Settings
from app.core.locks import UserLockRegistry
from app.core.logging import JsonFormatter, redact
from app.core.tasks import BackgroundTaskRunner
from app.services.notification_service import (
    EmailNotificationSender,
    LogNotificationSender,
    build_goal_completed_message,
    build_notification_sender,
)


# ===== LOGGING =====

def make_record(message, fields=None):
    record = logging.LogRecord("app.test", logging.INFO, __file__, 1, message, None, None)
    if fields is not None:
        record.fields = fields
    return record


def test_json_formatter_emits_fields():
    line = JsonFormatter().format(make_record("allocation.completed", {
        "user_id": "user-123",
        "amount": Decimal("0.50"),
        "error": ValueError("bad")
    }))

    payload = json.loads(line)
    assert payload["event"] == "allocation.completed"
    assert payload["level"] == "info"
    assert payload["amount"] == "0.50"
    assert payload["error"] == {"name": "ValueError", "message": "bad"}


def test_redact_hides_secrets():
    redacted = redact({
        "access_token": "access-sandbox-123",
        "item_id": "item-1",
        "nested": {"PLAID_SECRET": "shh", "count": 3},
        "list": [{"password": "hunter2"}]
    })

    assert redacted["access_token"] == "[REDACTED]"
    assert redacted["item_id"] == "item-1"
    assert redacted["nested"] == {"PLAID_SECRET": "[REDACTED]", "count": 3}
    assert redacted["list"] == [{"password": "[REDACTED]"}]


# ===== BACKGROUND TASKS =====

@pytest.mark.asyncio
async def test_task_runner_tracks_and_counts_failures():
    runner = BackgroundTaskRunner()
    done = []

    async def ok():
        await asyncio.sleep(0)
        done.append("ok")

    async def boom():
        raise RuntimeError("SMTP down")

    runner.spawn(ok(), name="ok")
    runner.spawn(boom(), name="boom")
    assert runner.pending == 2

    await runner.drain()
    await asyncio.sleep(0)

    assert done == ["ok"]
    assert runner.pending == 0
    assert runner.failed_count == 1


@pytest.mark.asyncio
async def test_user_locks_serialize_per_user():
    locks = UserLockRegistry()
    order = []

    async def work(user_id, label):
        async with locks.hold(user_id):
            order.append(f"{label}-start")
            await asyncio.sleep(0.01)
            order.append(f"{label}-end")

    await asyncio.gather(work("u1", "a"), work("u1", "b"))
    assert order == ["a-start", "a-end", "b-start", "b-end"]

    order.clear()
    await asyncio.gather(work("u1", "a"), work("u2", "b"))
    assert order[:2] == ["a-start", "b-start"]
    assert not locks.is_locked("u1")


@pytest.mark.asyncio
async def test_user_locks_are_dropped_when_idle():
    locks = UserLockRegistry()
    order = []

    async def work(user_id, label):
        async with locks.hold(user_id):
            order.append(f"{label}-start")
            await asyncio.sleep(0.01)
            order.append(f"{label}-end")

    async with locks.hold("u1"):
        assert locks.is_locked("u1")
        assert len(locks) == 1
    assert len(locks) == 0
    assert not locks.is_locked("u1")

    # A waiter keeps the lock alive across the first holder's release
    await asyncio.gather(work("u1", "a"), work("u1", "b"), work("u2", "c"))
    assert order.index("a-end") < order.index("b-start")
    assert len(locks) == 0


# ===== NOTIFICATIONS =====

def test_goal_completed_message():
    message = build_goal_completed_message(
        "noreply@example.com", "donor@example.com", Decimal("25"), "Red Cross", "p1"
    )

    assert message["Subject"] == "Congrats! You reached your goal"
    assert message["To"] == "donor@example.com"
    text = message.get_body(preferencelist=("plain",)).get_content()
    assert "You have reached your goal of $25.00 to Red Cross." in text
    assert "Transaction ID: p1" in text
    html = message.get_body(preferencelist=("html",)).get_content()
    assert "<strong>$25.00</strong>" in html


def test_goal_completed_message_without_charity_name():
    message = build_goal_completed_message("noreply@example.com", "donor@example.com", Decimal("5"))

    text = message.get_body(preferencelist=("plain",)).get_content()
    assert "to your charity" in text
    assert "Transaction ID" not in text


def smtp_settings(**overrides):
    values = {
        "SMTP_HOST": "smtp.example.com",
        "SMTP_PORT": 587,
        "SMTP_USER": "mailer",
        "SMTP_PASS": "pw",
        "SMTP_FROM": "noreply@example.com",
        "SMTP_SECURE": False,
    }
    values.update(overrides)
    return Settings(**values)


def test_build_notification_sender():
    assert isinstance(build_notification_sender(smtp_settings()), EmailNotificationSender)
    assert isinstance(build_notification_sender(smtp_settings(SMTP_HOST="")), LogNotificationSender)


@pytest.mark.asyncio
async def test_email_sender_uses_starttls():
    sender = EmailNotificationSender(smtp_settings())
    smtp = MagicMock()

    with patch("app.services.notification_service.smtplib.SMTP") as mock_smtp:
        mock_smtp.return_value.__enter__.return_value = smtp
        await sender.notify_goal_completed("donor@example.com", "UNICEF", Decimal("10.00"), "p1")

    mock_smtp.assert_called_once_with("smtp.example.com", 587, timeout=10)
    smtp.starttls.assert_called_once()
    smtp.login.assert_called_once_with("mailer", "pw")
    sent = smtp.send_message.call_args.args[0]
    assert sent["To"] == "donor@example.com"
