# inspection_engine/logging_config.py
from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any

from .middleware.request_id import current_request

# Structured extras copied from the LogRecord when a caller passes them via extra={...}
_EXTRA_KEYS = (
    "inspection_id",
    "assignment_id",
    "comparison_id",
    "dispute_id",
    "template_id",
    "actor_role",
    "actor_user_id",
    "http",
)


class JsonFormatter(logging.Formatter):
    """
    One JSON object per line.
    Includes request_id and channel (inside a request), level, message, logger, timestamp, exception
    and any inspection-domain extras set on the record.
    """

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        ctx = current_request()
        if ctx is not None:
            payload["request_id"] = ctx.request_id
            payload["channel"] = ctx.channel

        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)

        for k in _EXTRA_KEYS:
            if hasattr(record, k):
                payload[k] = getattr(record, k)

        return json.dumps(payload, ensure_ascii=False, default=str)


def configure_logging() -> None:
    level = (os.getenv("LOG_LEVEL") or "INFO").upper()

    root = logging.getLogger()
    root.setLevel(level)

    # Clear existing handlers (important for uvicorn reload)
    for h in list(root.handlers):
        root.removeHandler(h)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(JsonFormatter())

    root.addHandler(handler)

    logging.getLogger("uvicorn.access").setLevel(level)
    logging.getLogger("sqlalchemy.engine").setLevel((os.getenv("SQL_LOG_LEVEL") or "WARNING").upper())
    logging.getLogger("httpx").setLevel((os.getenv("HTTPX_LOG_LEVEL") or "WARNING").upper())
