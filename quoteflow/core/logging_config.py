"""JSON-lines logging for the API and the Celery workers.

Services log an event name as the message and pass identifiers through
``extra={"event": ..., "session_id": ...}``; the formatter lifts every such
key into the emitted object.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from quoteflow.core.config import get_config

_RECORD_ATTRS = set(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime"}
_HANDLER_MARK = "_quoteflow_handler"

# Third-party loggers that flood INFO with per-statement or per-heartbeat lines.
NOISY_LOGGERS = ("sqlalchemy.engine", "celery.worker.strategy", "kombu", "urllib3", "multipart")


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update(
            (key, value)
            for key, value in vars(record).items()
            if key not in _RECORD_ATTRS and key not in entry
        )
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=True, default=str)


def _handler(handler: logging.Handler) -> logging.Handler:
    handler.setFormatter(JsonFormatter())
    setattr(handler, _HANDLER_MARK, True)
    return handler


def configure_logging(level: str | None = None, log_file: str | None = None) -> None:
    """Attach the JSON handlers to the root logger; repeat calls only adjust the level."""
    config = get_config()
    root = logging.getLogger()
    root.setLevel(getattr(logging, (level or config.LOG_LEVEL).upper(), logging.INFO))
    if any(getattr(existing, _HANDLER_MARK, False) for existing in root.handlers):
        return

    root.addHandler(_handler(logging.StreamHandler(sys.stdout)))
    target_file = log_file if log_file is not None else config.LOG_FILE
    if target_file:
        root.addHandler(_handler(logging.FileHandler(target_file)))

    quiet_level = logging.WARNING if config.is_production or root.level > logging.DEBUG else logging.INFO
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(quiet_level)
