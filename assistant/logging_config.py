"""Structured logging for the support assistant.

Records go to stdout as one JSON object per line. Correlation fields bound
through `extra={"context": {...}}` or `LoggerAdapter` (thread_key, subject,
event_id) are lifted to top-level keys so log queries can filter on them.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

CORRELATION_KEYS = ("thread_key", "subject", "event_id")
QUIET_LOGGERS = ("httpx", "httpcore", "uvicorn.access", "redis")


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "thread": record.threadName,
            "msg": record.getMessage(),
        }

        context = dict(getattr(record, "context", None) or {})
        for key in CORRELATION_KEYS:
            if key in context:
                entry[key] = context.pop(key)
        if context:
            entry["context"] = context

        if record.exc_info:
            entry["exc"] = self.formatException(record.exc_info)

        return json.dumps(entry, ensure_ascii=False, default=str)


class PlainFormatter(logging.Formatter):
    """Human-readable single-line output for local debugging."""

    def __init__(self):
        super().__init__("%(asctime)s %(levelname)-7s %(name)s [%(threadName)s] %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = getattr(record, "context", None)
        if context:
            line += " " + " ".join(f"{k}={v}" for k, v in context.items())
        return line


def setup_logging(level: str = "INFO", json_output: bool = True) -> None:
    root = logging.getLogger()
    root.setLevel(logging.getLevelName(level.upper()))

    for handler in root.handlers[:]:
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter() if json_output else PlainFormatter())
    root.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"assistant.{name}")


class LoggerAdapter(logging.LoggerAdapter):
    """Binds per-request context; a `context=` kwarg on each call is merged in."""

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        context = {**(self.extra or {}), **(kwargs.pop("context", None) or {})}
        if context:
            kwargs["extra"] = {**kwargs.get("extra", {}), "context": context}
        return msg, kwargs
