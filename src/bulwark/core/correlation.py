"""
Correlation ID management.

Correlation IDs follow the current asyncio task through ``contextvars`` so
that log entries, retries and submitted errors of one logical call share an
identifier.
"""

import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, Optional


@dataclass
class CorrelationContext:
    """Context information for one correlated operation."""

    correlation_id: str
    parent_id: Optional[str] = None
    operation: Optional[str] = None
    start_time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    metadata: Dict[str, Any] = field(default_factory=dict)

    def elapsed_seconds(self) -> float:
        return (datetime.now(timezone.utc) - self.start_time).total_seconds()


_current_context: ContextVar[Optional[CorrelationContext]] = ContextVar(
    "bulwark_correlation_context", default=None
)


class CorrelationIdManager:
    """Manager for correlation IDs across tasks."""

    @staticmethod
    def generate_id() -> str:
        """Generate a new correlation ID."""
        return str(uuid.uuid4())[:8]

    @staticmethod
    def get_current_id() -> Optional[str]:
        context = _current_context.get()
        return context.correlation_id if context else None

    @staticmethod
    def get_current_context() -> Optional[CorrelationContext]:
        return _current_context.get()

    @staticmethod
    @contextmanager
    def correlation_context(
        correlation_id: Optional[str] = None,
        operation: Optional[str] = None,
        **metadata,
    ) -> Iterator[CorrelationContext]:
        """Run a block under a (possibly nested) correlation context."""
        parent = _current_context.get()
        context = CorrelationContext(
            correlation_id=correlation_id or CorrelationIdManager.generate_id(),
            parent_id=parent.correlation_id if parent else None,
            operation=operation,
            metadata=metadata,
        )
        token = _current_context.set(context)
        try:
            yield context
        finally:
            _current_context.reset(token)
