"""
Logging sink used by the error event processor.

The sink is the asynchronous logging collaborator: it accepts a severity, a
category, a message and structured details, redacts sensitive fields and
emits through the standard logging tree. It never raises.
"""

import logging
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, Mapping, Optional, Protocol, Set, runtime_checkable

from bulwark.constants import EVENT_CRITICAL_ALERT

from .loggers import BulwarkLogger, get_logger

if TYPE_CHECKING:
    from bulwark.core.events import EventBus


class Severity(str, Enum):
    """Log severities understood by the sink."""

    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"
    CRITICAL = "critical"

    @property
    def level(self) -> int:
        return {
            Severity.DEBUG: logging.DEBUG,
            Severity.INFO: logging.INFO,
            Severity.WARN: logging.WARNING,
            Severity.ERROR: logging.ERROR,
            Severity.CRITICAL: logging.CRITICAL,
        }[self]


class LogCategory(str, Enum):
    """Functional area a log entry belongs to."""

    AUTH = "auth"
    USER = "user"
    REQUEST = "request"
    SYSTEM = "system"
    SECURITY = "security"
    PERFORMANCE = "performance"
    BUSINESS = "business"


@runtime_checkable
class LoggingSink(Protocol):
    """Asynchronous logging collaborator."""

    async def log_at(
        self,
        severity: Severity,
        category: LogCategory,
        message: str,
        details: Optional[Mapping[str, Any]] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        ...


class DetailSanitizer:
    """Mask sensitive fields in structured log details."""

    SENSITIVE_KEYS: Set[str] = {
        "password",
        "passwd",
        "token",
        "secret",
        "api_key",
        "apikey",
        "authorization",
        "cookie",
        "session_token",
        "pin",
        "nip",
        "ssn",
        "credit_card",
        "creditcard",
        "bank_account",
        "bankaccount",
    }

    MASK = "***MASKED***"

    @classmethod
    def is_sensitive(cls, key: str) -> bool:
        key_lower = key.lower()
        return any(sensitive in key_lower for sensitive in cls.SENSITIVE_KEYS)

    @classmethod
    def sanitize(cls, value: Any) -> Any:
        """Return a copy of ``value`` with sensitive mapping keys masked."""
        if isinstance(value, Mapping):
            return {
                key: cls.MASK if cls.is_sensitive(str(key)) else cls.sanitize(item)
                for key, item in value.items()
            }
        if isinstance(value, (list, tuple)):
            return [cls.sanitize(item) for item in value]
        return value


class StructuredLogSink:
    """Default sink writing through BulwarkLogger.

    Critical entries are additionally published as ``critical-alert`` when an
    event bus is attached.
    """

    def __init__(
        self,
        logger: Optional[BulwarkLogger] = None,
        bus: Optional["EventBus"] = None,
    ):
        self.logger = logger or get_logger("bulwark.errors")
        self.bus = bus
        self._fallback = logging.getLogger("bulwark.fallback")

    async def log_at(
        self,
        severity: Severity,
        category: LogCategory,
        message: str,
        details: Optional[Mapping[str, Any]] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        try:
            safe_details: Dict[str, Any] = DetailSanitizer.sanitize(dict(details or {}))
            context: Dict[str, Any] = {"category": LogCategory(category).value}
            context.update(safe_details)
            if cause is not None:
                context["cause_type"] = type(cause).__name__
            self.logger.log(Severity(severity).level, message, **context)

            if severity == Severity.CRITICAL and self.bus is not None:
                await self.bus.publish(
                    EVENT_CRITICAL_ALERT,
                    {"message": message, "category": LogCategory(category).value, "details": safe_details},
                )
        except Exception as e:
            self._fallback.error("Failed to emit log entry %r: %s", message, e)
