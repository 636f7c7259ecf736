import logging
import smtplib
from decimal import Decimal
from email.message import EmailMessage
from typing import Optional

from fastapi.concurrency import run_in_threadpool

from app.core.config import Settings, settings
from app.utils.money import format_currency

logger = logging.getLogger(__name__)


class NotificationConfigError(Exception):
    """SMTP settings are incomplete."""
    pass


def build_goal_completed_message(
    sender: str,
    to: str,
    amount: Decimal,
    charity_name: Optional[str] = None,
    purchase_id: Optional[str] = None
) -> EmailMessage:
    charity_line = f"to {charity_name}" if charity_name else "to your charity"
    formatted_amount = format_currency(amount)

    lines = [
        f"Congrats! You have reached your goal of {formatted_amount} {charity_line}.",
        "Thank you for making a real impact.",
    ]
    if purchase_id:
        lines.append(f"Transaction ID: {purchase_id}")

    transaction_html = (
        f'<p style="margin: 0; color: #666;">Transaction ID: {purchase_id}</p>' if purchase_id else ""
    )
    html = f"""
    <div style="font-family: Arial, sans-serif; line-height: 1.5; color: #111;">
      <h2 style="margin: 0 0 8px;">Congrats! You reached your goal</h2>
      <p style="margin: 0 0 12px;">
        You have reached your goal of <strong>{formatted_amount}</strong> {charity_line}.
      </p>
      <p style="margin: 0 0 12px;">Thank you for making a real impact.</p>
      {transaction_html}
    </div>
    """

    message = EmailMessage()
    message["Subject"] = "Congrats! You reached your goal"
    message["From"] = sender
    message["To"] = to
    message.set_content("\n".join(lines))
    message.add_alternative(html, subtype="html")
    return message


class EmailNotificationSender:
    """Sends goal-reached e-mails over SMTP."""

    def __init__(self, config: Settings = settings):
        self.config = config

    def _sender(self) -> str:
        sender = self.config.SMTP_FROM or self.config.SMTP_USER
        if not sender:
            raise NotificationConfigError("Missing SMTP_FROM")
        return sender

    def _send(self, message: EmailMessage) -> None:
        config = self.config
        if not (config.SMTP_HOST and config.SMTP_PORT and config.SMTP_USER and config.SMTP_PASS):
            raise NotificationConfigError("Missing SMTP configuration")

        smtp_class = smtplib.SMTP_SSL if config.SMTP_SECURE else smtplib.SMTP
        with smtp_class(config.SMTP_HOST, config.SMTP_PORT, timeout=10) as smtp:
            if not config.SMTP_SECURE:
                smtp.starttls()
            smtp.login(config.SMTP_USER, config.SMTP_PASS)
            smtp.send_message(message)

    async def notify_goal_completed(
        self,
        user_email: str,
        charity_name: Optional[str],
        amount: Decimal,
        purchase_id: Optional[str] = None
    ) -> None:
        message = build_goal_completed_message(
            self._sender(), user_email, amount, charity_name, purchase_id
        )
        await run_in_threadpool(self._send, message)
        logger.info(
            "notification.goal_completed.sent",
            extra={"fields": {"charity_name": charity_name, "purchase_id": purchase_id}}
        )


class LogNotificationSender:
    """Development sender: records the notification in the log only."""

    async def notify_goal_completed(
        self,
        user_email: str,
        charity_name: Optional[str],
        amount: Decimal,
        purchase_id: Optional[str] = None
    ) -> None:
        logger.info(
            "notification.goal_completed.logged",
            extra={"fields": {
                "charity_name": charity_name,
                "amount": amount,
                "purchase_id": purchase_id
            }}
        )


def build_notification_sender(config: Settings = settings):
    if config.SMTP_HOST:
        return EmailNotificationSender(config)
    return LogNotificationSender()
