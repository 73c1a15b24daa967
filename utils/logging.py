"""Structured logging.

Every record is stamped with the current request ID and listing session ID
(held in context variables, so concurrent requests never mix them up) and
rendered either as one JSON object per line or, in debug mode, as a
readable single line.
"""

import json
import logging
import os
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any

request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)
session_id_var: ContextVar[str | None] = ContextVar("session_id", default=None)

NOISY_LOGGERS = ("httpx", "httpcore", "openai", "uvicorn.access")

# Present on every LogRecord; anything else came from extra={...}
_RECORD_ATTRS = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "request_id", "session_id"}


def get_request_id() -> str | None:
    return request_id_var.get()


def get_session_id() -> str | None:
    return session_id_var.get()


def set_request_context(request_id: str | None = None, session_id: str | None = None):
    if request_id is not None:
        request_id_var.set(request_id)
    if session_id is not None:
        session_id_var.set(session_id)


def clear_request_context():
    request_id_var.set(None)
    session_id_var.set(None)


class RequestContextFilter(logging.Filter):
    """Copies the context variables onto each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get()
        record.session_id = session_id_var.get()
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per record.

    {"timestamp": "...", "level": "INFO", "logger": "services.field_extractor",
     "message": "...", "request_id": "...", "session_id": "session-...",
     "extra": {...}}
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in ("request_id", "session_id"):
            value = getattr(record, key, None)
            if value:
                entry[key] = value

        extra = {
            key: value
            for key, value in vars(record).items()
            if key not in _RECORD_ATTRS and not key.startswith("_")
        }
        if extra:
            entry["extra"] = extra
        if record.exc_info:
            entry["exception_type"] = record.exc_info[0].__name__ if record.exc_info[0] else None
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


class HumanReadableFormatter(logging.Formatter):
    """12:34:56.789 INFO     services.llm [3f2a91c0|session-] message"""

    def format(self, record: logging.LogRecord) -> str:
        clock = datetime.fromtimestamp(record.created).strftime("%H:%M:%S.%f")[:-3]
        ids = [
            value[:8]
            for value in (getattr(record, "request_id", None), getattr(record, "session_id", None))
            if value
        ]
        tag = f" [{'|'.join(ids)}]" if ids else ""
        line = f"{clock} {record.levelname:<8} {record.name}{tag} {record.getMessage()}"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def configure_logging(level: str = "INFO", json_format: bool | None = None):
    """Install a single stdout handler on the root logger.

    Args:
        level: Root log level name
        json_format: Force JSON on or off; by default JSON unless DEBUG is set
    """
    if json_format is None:
        json_format = os.getenv("DEBUG", "false").lower() not in ("true", "1", "yes")

    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(RequestContextFilter())
    handler.setFormatter(JSONFormatter() if json_format else HumanReadableFormatter())

    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    for existing in root.handlers[:]:
        root.removeHandler(existing)
    root.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Module logger; configures defaults if startup has not run yet."""
    if not logging.getLogger().handlers:
        configure_logging()
    return logging.getLogger(name)
