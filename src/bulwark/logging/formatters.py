"""
Renderers for bulwark log records.

``BulwarkLogger`` attaches ``correlation_id``, ``category`` and an
``extra_context`` dict to each record. The JSON formatter lifts that context
into top-level keys; the console formatter appends it as ``key=value`` pairs
so keyword context is not lost in human-readable output.
"""

import json
import logging
import traceback
from datetime import datetime, timezone
from typing import Any, Dict

from rich.console import Console
from rich.logging import RichHandler

CONSOLE_FORMAT = "%(asctime)s [%(levelname)8s] %(name)s: %(message)s"
CONSOLE_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Record fields that keyword context may not overwrite
RESERVED_KEYS = frozenset({
    "timestamp", "level", "message", "service", "version",
    "logger", "function", "line", "correlation_id", "category", "exception",
})


def _context_of(record: logging.LogRecord) -> Dict[str, Any]:
    return getattr(record, "extra_context", None) or {}


class StructuredFormatter(logging.Formatter):
    """One JSON object per record."""

    def __init__(self, service_name: str = "bulwark", version: str = "unknown"):
        super().__init__()
        self.service_name = service_name
        self.version = version

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "message": record.getMessage(),
            "service": self.service_name,
            "version": self.version,
            "logger": record.name,
            "function": record.funcName,
            "line": record.lineno,
        }
        for attr in ("correlation_id", "category"):
            value = getattr(record, attr, None)
            if value is not None:
                entry[attr] = value

        for key, value in _context_of(record).items():
            entry[f"context_{key}" if key in RESERVED_KEYS else key] = value

        if record.exc_info and record.exc_info[0] is not None:
            exc_type, exc, tb = record.exc_info
            entry["exception"] = {
                "type": exc_type.__name__,
                "message": str(exc),
                "traceback": traceback.format_exception(exc_type, exc, tb),
            }
        return json.dumps(entry, default=str)


class ContextConsoleFormatter(logging.Formatter):
    """Single-line human-readable output with trailing keyword context."""

    def __init__(self):
        super().__init__(CONSOLE_FORMAT, datefmt=CONSOLE_DATE_FORMAT)

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = _context_of(record)
        correlation_id = getattr(record, "correlation_id", None)
        pairs = [f"{key}={value}" for key, value in context.items()]
        if correlation_id:
            pairs.insert(0, f"correlation_id={correlation_id}")
        if not pairs:
            return line
        head, sep, rest = line.partition("\n")
        return f"{head} [{' '.join(pairs)}]{sep}{rest}"


def create_rich_handler() -> logging.Handler:
    """Rich output on stderr with rich tracebacks."""
    handler = RichHandler(
        console=Console(stderr=True),
        show_time=True,
        show_level=True,
        show_path=False,
        markup=False,
        rich_tracebacks=True,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    return handler
