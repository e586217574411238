from __future__ import annotations

from datetime import datetime, timezone
import json
import logging
import sys
from typing import Optional

from .config import settings

_CONTEXT_KEYS = (
    "event",
    "lesson",
    "slug",
    "entry_id",
    "count",
    "source",
    "state",
    "path",
    "candidates",
    "status",
    "reason",
    "lessons",
    "vocabulary",
    "db_backend",
)


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        for key in _CONTEXT_KEYS:
            value = getattr(record, key, None)
            if value is not None:
                payload[key] = value
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def configure_logging(level: Optional[str] = None) -> None:
    root = logging.getLogger()
    if root.handlers:
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter())

    level_name = (level or settings.log_level).upper()
    root.setLevel(getattr(logging, level_name, logging.INFO))
    root.addHandler(handler)
