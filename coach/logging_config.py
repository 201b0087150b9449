"""JSON logging shared by the scheduler worker and the API.

Call sites pass context as ``extra={"ctx_<name>": value}``; the formatter
gathers those under ``context`` with the prefix stripped.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone

CONTEXT_PREFIX = "ctx_"
QUIET_LOGGERS = ("sqlalchemy.engine", "alembic", "apscheduler", "httpx")


class JSONFormatter(logging.Formatter):
    """One JSON object per record, tagged with the emitting process."""

    def __init__(self, service: str = "coach"):
        super().__init__()
        self.service = service

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "service": self.service,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            # review pool workers are named review_N
            "thread": record.threadName,
        }
        if record.exc_info and record.exc_info[1]:
            log_entry["exception"] = {
                "type": type(record.exc_info[1]).__name__,
                "message": str(record.exc_info[1]),
                "traceback": self.formatException(record.exc_info),
            }
        context = {
            k[len(CONTEXT_PREFIX):]: v for k, v in record.__dict__.items() if k.startswith(CONTEXT_PREFIX)
        }
        if context:
            log_entry["context"] = context
        return json.dumps(log_entry, default=str)


def setup_logging(level: str = "INFO", service: str = "coach") -> None:
    """Send JSON logs to stdout. A no-op once the root logger has a handler."""
    root = logging.getLogger()
    if root.handlers:
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter(service))
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
