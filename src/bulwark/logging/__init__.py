"""
Bulwark Logging Package

Structured logging on top of the standard library:
- formatters: Log formatting (JSON, console, rich)
- loggers: BulwarkLogger with correlation IDs and keyword context
- config: Logging configuration
- manager: Handler installation on the bulwark logger namespace
- sink: Asynchronous logging sink used by the error event processor
"""

from .config import LoggingConfig
from .formatters import ContextConsoleFormatter, StructuredFormatter
from .loggers import BulwarkLogger
from .manager import LoggingManager, configure_logging, logging_manager
from .sink import DetailSanitizer, LogCategory, LoggingSink, Severity, StructuredLogSink

get_logger = logging_manager.get_logger

__all__ = [
    "LoggingConfig",
    "LoggingManager",
    "configure_logging",
    "BulwarkLogger",
    "get_logger",
    "StructuredFormatter",
    "ContextConsoleFormatter",
    "Severity",
    "LogCategory",
    "LoggingSink",
    "StructuredLogSink",
    "DetailSanitizer",
]
