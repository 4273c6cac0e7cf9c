"""JSON log lines for the auth service, tagged with the request correlation id."""

from __future__ import annotations

import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any

CORRELATION_ID_CTX: ContextVar[str] = ContextVar("correlation_id", default="")

# Attributes passed through ``extra=`` that are copied into the JSON line.
LOG_CONTEXT_FIELDS = (
    "account_id",
    "email",
    "email_category",
    "scope",
    "path",
    "method",
    "status_code",
    "error_code",
)

# uvicorn installs its own handlers; route them through ours instead.
_SERVER_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access")


def mask_email(email: str) -> str:
    """Keep the first character and the domain: ``a***@example.com``."""
    local, sep, domain = (email or "").strip().lower().partition("@")
    if not sep:
        return "***"
    return f"{local[:1]}***@{domain}"


class JsonLogFormatter(logging.Formatter):
    """Render one log record as a single JSON object."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "event": record.getMessage(),
        }
        correlation_id = CORRELATION_ID_CTX.get()
        if correlation_id:
            entry["correlation_id"] = correlation_id

        entry.update(
            {
                name: getattr(record, name)
                for name in LOG_CONTEXT_FIELDS
                if getattr(record, name, None) not in (None, "")
            }
        )
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


def setup_logging(level: str = "INFO") -> None:
    """Send every logger, uvicorn's included, to stdout as JSON."""
    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setFormatter(JsonLogFormatter())

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    root.addHandler(handler)

    for name in _SERVER_LOGGERS:
        server_logger = logging.getLogger(name)
        server_logger.handlers.clear()
        server_logger.propagate = True


def set_correlation_id(correlation_id: str) -> None:
    CORRELATION_ID_CTX.set(correlation_id)
