"""
Error event processor.

A single FIFO queue with a single-flight drain loop. Every submitted error is
logged, broadcast to UI subscribers and run through kind-specific recovery
exactly once, strictly in submission order, never concurrently with another
entry's side effects.
"""

import asyncio
import inspect
import logging
import time
from collections import Counter, deque
from dataclasses import dataclass, field
from typing import Any, Callable, Deque, Dict, Mapping, Optional, Set, Union

from bulwark.constants import (
    DEFAULT_LOGIN_PATH,
    DEFAULT_REDIRECT_DELAY,
    EVENT_APP_ERROR,
    EVENT_APP_OFFLINE,
    EVENT_SESSION_EXPIRED,
    HTTP_STATUS_UNAUTHORIZED,
)
from bulwark.exceptions import ErrorKind, ErrorMessageTemplates, NormalizedError
from bulwark.logging import LogCategory, LoggingSink, Severity, get_logger

from .connectivity import ConnectivityMonitor, ManualConnectivity
from .events import EventBus

logger = get_logger(__name__)

SEVERITY_BY_KIND: Dict[ErrorKind, Severity] = {
    ErrorKind.VALIDATION: Severity.WARN,
    ErrorKind.NOT_FOUND: Severity.WARN,
    ErrorKind.AUTHENTICATION: Severity.ERROR,
    ErrorKind.AUTHORIZATION: Severity.ERROR,
    ErrorKind.SERVER_FAULT: Severity.CRITICAL,
    ErrorKind.BACKEND_FAULT: Severity.CRITICAL,
}

CATEGORY_BY_KIND: Dict[ErrorKind, LogCategory] = {
    ErrorKind.AUTHENTICATION: LogCategory.AUTH,
    ErrorKind.AUTHORIZATION: LogCategory.AUTH,
    ErrorKind.VALIDATION: LogCategory.USER,
}


def severity_for(kind: ErrorKind) -> Severity:
    return SEVERITY_BY_KIND.get(kind, Severity.ERROR)


def category_for(kind: ErrorKind) -> LogCategory:
    return CATEGORY_BY_KIND.get(kind, LogCategory.SYSTEM)


@dataclass
class ProcessorSettings:
    """Tuning for recovery side effects."""

    redirect_delay: float = DEFAULT_REDIRECT_DELAY
    login_path: str = DEFAULT_LOGIN_PATH


@dataclass(frozen=True)
class ErrorQueueEntry:
    """A normalized error waiting for its side effects."""

    error: NormalizedError
    enqueued_at: float = field(default_factory=time.time)


@dataclass(frozen=True)
class LogQueueEntry:
    """An informational log event that only needs emitting."""

    severity: Severity
    category: LogCategory
    message: str
    details: Mapping[str, Any] = field(default_factory=dict)
    enqueued_at: float = field(default_factory=time.time)


QueueEntry = Union[ErrorQueueEntry, LogQueueEntry]


class ErrorEventProcessor:
    """
    Process-wide FIFO of errors and their side effects.

    ``submit`` is synchronous and never waits on side effects. The drain loop
    is started at most once at a time: the draining flag is checked and set
    in the same synchronous step, before any suspension.
    """

    def __init__(
        self,
        sink: LoggingSink,
        bus: EventBus,
        connectivity: Optional[ConnectivityMonitor] = None,
        settings: Optional[ProcessorSettings] = None,
        metrics=None,
    ):
        self.sink = sink
        self.bus = bus
        self.connectivity = connectivity or ManualConnectivity()
        self.settings = settings or ProcessorSettings()
        self.metrics = metrics

        self._queue: Deque[QueueEntry] = deque()
        self._draining = False
        self._drain_task: Optional[asyncio.Task] = None
        self._redirect_task: Optional[asyncio.Task] = None
        self._background: Set[asyncio.Task] = set()
        self._fallback = logging.getLogger("bulwark.fallback")

        self._processed = 0
        self._side_effect_failures = 0
        self._by_kind: Counter = Counter()

    @property
    def is_draining(self) -> bool:
        return self._draining

    @property
    def pending(self) -> int:
        return len(self._queue)

    def submit(self, error: NormalizedError) -> None:
        """Queue a normalized error; side effects run asynchronously."""
        if not isinstance(error, NormalizedError):
            raise TypeError(
                f"submit() expects a NormalizedError, got {type(error).__name__}"
            )
        self._enqueue(ErrorQueueEntry(error))

    def submit_log(
        self,
        severity: Severity,
        category: LogCategory,
        message: str,
        details: Optional[Mapping[str, Any]] = None,
    ) -> None:
        """Queue an informational log event behind any pending errors."""
        self._enqueue(LogQueueEntry(severity, category, message, dict(details or {})))

    def _enqueue(self, entry: QueueEntry) -> None:
        self._queue.append(entry)
        if self.metrics is not None:
            self.metrics.update_queue_depth(len(self._queue))
        self._ensure_draining()

    def _ensure_draining(self) -> None:
        if self._draining:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop; entry stays queued until the next drain",
                         pending=len(self._queue))
            return
        self._draining = True
        self._drain_task = loop.create_task(self._drain())

    async def _drain(self) -> None:
        """Consume entries one at a time until the queue is empty."""
        try:
            while self._queue:
                entry = self._queue.popleft()
                try:
                    if isinstance(entry, ErrorQueueEntry):
                        await self._process_error(entry)
                    else:
                        await self._process_log(entry)
                except Exception as e:
                    self._side_effect_failures += 1
                    self._fallback.error("Failed to process queue entry: %s", e, exc_info=True)
                self._processed += 1
                if self.metrics is not None:
                    self.metrics.update_queue_depth(len(self._queue))
        finally:
            self._draining = False
            self._drain_task = None

    async def _process_log(self, entry: LogQueueEntry) -> None:
        await self._run_side_effect(
            "log",
            lambda: self.sink.log_at(entry.severity, entry.category, entry.message, entry.details),
        )

    async def _process_error(self, entry: ErrorQueueEntry) -> None:
        error = entry.error
        self._by_kind[error.kind.value] += 1
        if self.metrics is not None:
            self.metrics.record_error(error.kind.value)

        # Order is fixed: log, notify, recover
        await self._run_side_effect("log", lambda: self._emit_log(error))
        await self._run_side_effect(
            "notify", lambda: self.bus.publish(EVENT_APP_ERROR, error.to_notification())
        )
        await self._run_side_effect("recover", lambda: self._recover(error))

    async def _run_side_effect(self, name: str, side_effect: Callable[[], Any]) -> None:
        try:
            result = side_effect()
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            self._side_effect_failures += 1
            self._fallback.error("Error side effect '%s' failed: %s", name, e, exc_info=True)

    async def _emit_log(self, error: NormalizedError) -> None:
        details = error.to_dict()
        details.pop("developer_message", None)
        await self.sink.log_at(
            severity_for(error.kind),
            category_for(error.kind),
            error.developer_message,
            details,
            error.cause,
        )

    async def _recover(self, error: NormalizedError) -> None:
        if error.kind is ErrorKind.AUTHENTICATION and error.status_like == HTTP_STATUS_UNAUTHORIZED:
            self._schedule_redirect(error)
        elif error.kind is ErrorKind.NETWORK and not self.connectivity.is_online():
            await self.bus.publish(
                EVENT_APP_OFFLINE,
                {"message": ErrorMessageTemplates.OFFLINE, "code": error.code},
            )

    def _schedule_redirect(self, error: NormalizedError) -> None:
        if self._redirect_task is not None and not self._redirect_task.done():
            logger.debug("Login redirect already pending", code=error.code)
            return
        self._redirect_task = asyncio.get_running_loop().create_task(
            self._redirect_after_delay(error)
        )
        self._background.add(self._redirect_task)
        self._redirect_task.add_done_callback(self._background.discard)
        logger.info("Scheduled login redirect",
                    delay=self.settings.redirect_delay, code=error.code)

    async def _redirect_after_delay(self, error: NormalizedError) -> None:
        await asyncio.sleep(self.settings.redirect_delay)
        try:
            await self.bus.publish(
                EVENT_SESSION_EXPIRED,
                {
                    "redirect_to": self.settings.login_path,
                    "message": ErrorMessageTemplates.SESSION_EXPIRED,
                    "code": error.code,
                },
            )
        except Exception as e:
            self._fallback.error("Login redirect signal failed: %s", e, exc_info=True)

    async def flush(self) -> None:
        """Wait until every queued entry has been processed."""
        while self._queue or self._draining:
            if self._drain_task is not None:
                await asyncio.shield(self._drain_task)
            elif self._queue:
                self._ensure_draining()
            else:
                await asyncio.sleep(0)

    def clear(self) -> int:
        """Drop entries that have not been processed yet."""
        dropped = len(self._queue)
        self._queue.clear()
        if dropped:
            logger.info("Cleared pending error entries", dropped=dropped)
        return dropped

    def stats(self) -> Dict[str, Any]:
        return {
            "pending": len(self._queue),
            "processed": self._processed,
            "side_effect_failures": self._side_effect_failures,
            "by_kind": dict(self._by_kind),
            "draining": self._draining,
        }

    async def close(self) -> None:
        """Cancel a pending login redirect and wait for background tasks."""
        for task in list(self._background):
            task.cancel()
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)
        self._redirect_task = None
