# backend/app/logging_config.py
from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from .config import settings
from .middleware.request_id import get_request_id

# domain fields services pass through `extra=`
EXTRA_KEYS = (
    "user_id",
    "property_id",
    "floor_id",
    "notification_id",
    "kind",
    "status",
    "cycle_key",
    # access log
    "method",
    "path",
    "status_code",
    "latency_ms",
)


def _extras(record: logging.LogRecord) -> dict[str, Any]:
    return {k: getattr(record, k) for k in EXTRA_KEYS if hasattr(record, k)}


class JsonFormatter(logging.Formatter):
    """One JSON object per line; request_id comes from the ContextVar."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        rid = get_request_id()
        if rid:
            payload["request_id"] = rid
        payload.update(_extras(record))
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


class TextFormatter(logging.Formatter):
    """Console format for local runs: `level logger [rid] message k=v ...`."""

    def format(self, record: logging.LogRecord) -> str:
        rid = get_request_id() or "-"
        fields = " ".join(f"{k}={v}" for k, v in _extras(record).items())
        line = f"{record.levelname:<7} {record.name} [{rid}] {record.getMessage()}"
        if fields:
            line = f"{line} {fields}"
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def configure_logging() -> None:
    level = (settings.log_level or "INFO").upper()
    fmt = (settings.log_format or "json").strip().lower()

    root = logging.getLogger()
    root.setLevel(level)

    # uvicorn --reload and repeated create_app() calls would stack handlers
    for h in list(root.handlers):
        root.removeHandler(h)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(TextFormatter() if fmt == "text" else JsonFormatter())
    root.addHandler(handler)

    logging.getLogger("uvicorn.access").setLevel(level)
    logging.getLogger("celery").setLevel(level)
    logging.getLogger("sqlalchemy.engine").setLevel((settings.sql_log_level or "WARNING").upper())
