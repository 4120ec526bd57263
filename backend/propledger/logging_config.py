# backend/propledger/logging_config.py
from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any

from .middleware.request_id import get_request_id

# ids services pass through `extra=` so a log line can be tied to a row
ENTITY_KEYS = ("user_id", "property_id", "appliance_id", "record_id", "issue_id")


class JsonFormatter(logging.Formatter):
    """One JSON object per line: ts, level, logger, message, plus request_id and entity ids when known."""

    def format(self, record: logging.LogRecord) -> str:
        line: dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        rid = get_request_id()
        if rid:
            line["request_id"] = rid

        line.update({k: getattr(record, k) for k in ENTITY_KEYS if hasattr(record, k)})

        if record.exc_info:
            line["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(line, ensure_ascii=False, default=str)


def _level(var: str, default: str) -> str:
    return (os.getenv(var) or default).upper()


def configure_logging() -> None:
    level = _level("LOG_LEVEL", "INFO")

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter())

    root = logging.getLogger()
    # create_app() may run more than once per process (reload, tests)
    root.handlers[:] = [handler]
    root.setLevel(level)

    logging.getLogger("uvicorn.access").setLevel(level)
    logging.getLogger("sqlalchemy.engine").setLevel(_level("SQL_LOG_LEVEL", "WARNING"))
