"""
Core Module - Structured Logging.

============================================================
RESPONSIBILITY
============================================================
Configures standard-library logging for the initializer.

- json: one JSON object per line (default)
- text: "time level msg key=value ..." for terminals
- Structured fields from ContextLogger are flattened into
  the record (correlation_id, step, component, action, ...)

============================================================
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional, TextIO


_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
}

# Marks handlers installed here so reconfiguring leaves foreign handlers alone.
_HANDLER_MARKER = "_bootstrap_handler"


def parse_level(level: str) -> int:
    """Map a LOG_LEVEL value to a logging level, defaulting to INFO."""
    return _LEVELS.get((level or "").lower(), logging.INFO)


def _timestamp(record: logging.LogRecord) -> str:
    moment = datetime.fromtimestamp(record.created, tz=timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _record_fields(record: logging.LogRecord) -> Dict[str, Any]:
    fields = getattr(record, "fields", None)
    return dict(fields) if isinstance(fields, dict) else {}


class JsonFormatter(logging.Formatter):
    """Emits one JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "time": _timestamp(record),
            "level": record.levelname.lower(),
            "msg": record.getMessage(),
            "logger": record.name,
        }
        for key, value in _record_fields(record).items():
            if key not in payload:
                payload[key] = value
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str, ensure_ascii=False)


class KeyValueFormatter(logging.Formatter):
    """Human-readable line with trailing key=value pairs."""

    def format(self, record: logging.LogRecord) -> str:
        line = f"{_timestamp(record)} | {record.levelname:<8} | {record.getMessage()}"
        fields = _record_fields(record)
        if fields:
            line += " | " + " ".join(f"{key}={value}" for key, value in fields.items())
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def configure_logging(
    level: str = "info",
    fmt: str = "json",
    stream: Optional[TextIO] = None,
    verbose: bool = False,
) -> logging.Handler:
    """
    Install the initializer's handler on the root logger.

    Args:
        level: LOG_LEVEL value
        fmt: "json" or "text"
        stream: Output stream (default: stderr)
        verbose: Force DEBUG regardless of level

    Returns:
        The installed handler
    """
    root = logging.getLogger()
    for existing in list(root.handlers):
        if getattr(existing, _HANDLER_MARKER, False):
            root.removeHandler(existing)
            existing.close()

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(JsonFormatter() if fmt == "json" else KeyValueFormatter())
    setattr(handler, _HANDLER_MARKER, True)

    root.addHandler(handler)
    root.setLevel(logging.DEBUG if verbose else parse_level(level))

    # SQLAlchemy echoes statements at INFO; keep it quiet unless verbose.
    logging.getLogger("sqlalchemy").setLevel(logging.INFO if verbose else logging.WARNING)

    return handler
