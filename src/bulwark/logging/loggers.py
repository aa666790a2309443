"""
Enhanced logger with correlation IDs and structured context.
"""

import logging
from typing import Any, Dict, Optional


class BulwarkLogger:
    """Logger wrapper adding correlation IDs and keyword context."""

    def __init__(self, name: str, correlation_id: Optional[str] = None):
        self.logger = logging.getLogger(name)
        self.correlation_id = correlation_id
        self.extra_context: Dict[str, Any] = {}

    @property
    def name(self) -> str:
        return self.logger.name

    def _current_correlation_id(self) -> Optional[str]:
        if self.correlation_id:
            return self.correlation_id
        # Imported lazily: core imports this module at package import time
        from bulwark.core.correlation import CorrelationIdManager

        return CorrelationIdManager.get_current_id()

    def _log(self, level: int, msg: str, exc_info: Any = None, **kwargs):
        """Internal logging method with correlation ID and context."""
        extra: Dict[str, Any] = {}
        correlation_id = self._current_correlation_id()
        if correlation_id:
            extra["correlation_id"] = correlation_id

        context = self.extra_context.copy()
        context.update(kwargs)
        if context:
            extra["extra_context"] = context

        self.logger.log(level, msg, exc_info=exc_info, extra=extra)

    def debug(self, msg: str, **kwargs):
        self._log(logging.DEBUG, msg, **kwargs)

    def info(self, msg: str, **kwargs):
        self._log(logging.INFO, msg, **kwargs)

    def warning(self, msg: str, **kwargs):
        self._log(logging.WARNING, msg, **kwargs)

    def error(self, msg: str, **kwargs):
        self._log(logging.ERROR, msg, **kwargs)

    def exception(self, msg: str, **kwargs):
        """Log at ERROR with the active exception's traceback."""
        self._log(logging.ERROR, msg, exc_info=True, **kwargs)

    def critical(self, msg: str, **kwargs):
        self._log(logging.CRITICAL, msg, **kwargs)

    def log(self, level: int, msg: str, **kwargs):
        self._log(level, msg, **kwargs)

    def with_context(self, **kwargs) -> "BulwarkLogger":
        """Create a copy of this logger with additional context."""
        new_logger = BulwarkLogger(self.logger.name, self.correlation_id)
        new_logger.extra_context = self.extra_context.copy()
        new_logger.extra_context.update(kwargs)
        return new_logger


def get_logger(name: str, correlation_id: Optional[str] = None) -> BulwarkLogger:
    """Get a BulwarkLogger instance."""
    return BulwarkLogger(name, correlation_id)
