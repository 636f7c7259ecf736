"""
JSON line logging.

Every record is emitted as one JSON object:
{"ts": ..., "level": ..., "logger": ..., "event": <message>, **fields}

Structured fields are passed through `extra={"fields": {...}}`. Keys that look
like secrets are redacted before the line is written.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict

SECRET_KEYS = (
    "access_token",
    "secret",
    "password",
    "api_key",
    "apikey",
    "authorization",
    "bearer",
    "credential",
    "private_key",
    "smtp_pass",
)


def is_secret_key(key: str) -> bool:
    lower_key = key.lower()
    return any(secret in lower_key for secret in SECRET_KEYS)


def redact(value: Any) -> Any:
    """Recursively replace secret-looking string values with [REDACTED]."""
    if isinstance(value, dict):
        return {
            k: "[REDACTED]" if is_secret_key(str(k)) and isinstance(v, str) else redact(v)
            for k, v in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [redact(v) for v in value]
    return value


def _default(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, BaseException):
        return {"name": type(value).__name__, "message": str(value)}
    return str(value)


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "event": record.getMessage(),
        }
        fields = getattr(record, "fields", None)
        if isinstance(fields, dict):
            payload.update(redact(fields))
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=_default)


def configure_logging(level: str = "INFO") -> None:
    """Route the root logger through a single JSON stdout handler."""
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter())

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level.upper())
