"""
Retry orchestration with exponential backoff.

Wraps an asynchronous operation and re-invokes it on failure while the retry
predicate allows, up to a bounded attempt count, sleeping between attempts
with a capped exponential delay. Terminal failures are normalized, submitted
to the error event processor and re-raised to the caller.

Callers must only wrap operations that are safe to repeat; no deduplication
is performed here.
"""

import asyncio
import dataclasses
import functools
import inspect
import random
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from bulwark.constants import (
    BACKEND_RETRY_BASE_DELAY,
    DEFAULT_BACKOFF_FACTOR,
    DEFAULT_BASE_DELAY,
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_MAX_DELAY,
)
from bulwark.core.correlation import CorrelationIdManager
from bulwark.core.normalizer import NETWORK_EXCEPTION_TYPES, backend_code, is_transient, normalize
from bulwark.exceptions import NormalizedError
from bulwark.logging import LogCategory, Severity, get_logger

logger = get_logger(__name__)

Operation = Callable[[], Union[Awaitable[Any], Any]]
RetryCondition = Callable[[BaseException], bool]
RetryHook = Callable[[int, BaseException], Any]

NETWORK_RETRY_MARKERS = (
    "network error",
    "fetch failed",
    "connection refused",
    "timeout",
    "unavailable",
)

BACKEND_RETRYABLE_REASONS = frozenset(
    {"unavailable", "deadline-exceeded", "resource-exhausted", "internal", "unknown"}
)


@dataclass
class RetryOptions:
    """Configuration for one retrying call.

    Delays are in seconds. Options are re-read on every attempt, so an
    ``on_retry`` hook may adjust ``base_delay`` (e.g. to add jitter).
    """

    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    base_delay: float = DEFAULT_BASE_DELAY
    max_delay: float = DEFAULT_MAX_DELAY
    backoff_factor: float = DEFAULT_BACKOFF_FACTOR
    retry_condition: RetryCondition = is_transient
    on_retry: Optional[RetryHook] = None

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")
        if self.base_delay < 0 or self.max_delay < 0:
            raise ValueError("base_delay and max_delay must be >= 0")
        if self.backoff_factor < 1:
            raise ValueError(f"backoff_factor must be >= 1, got {self.backoff_factor}")

    def replace(self, **changes) -> "RetryOptions":
        return dataclasses.replace(self, **changes)


class ExponentialBackoffStrategy:
    """Exponential backoff capped at a maximum delay, with optional jitter."""

    def __init__(self, jitter: bool = False, jitter_max: float = 0.1):
        self.jitter = jitter
        self.jitter_max = jitter_max

    def calculate_delay(
        self, attempt: int, base_delay: float, max_delay: float, multiplier: float
    ) -> float:
        """Delay to wait after failed attempt number ``attempt`` (1-based)."""
        try:
            delay = base_delay * (multiplier ** (attempt - 1))
        except OverflowError:
            delay = max_delay
        delay = min(delay, max_delay)

        if self.jitter and delay > 0:
            delay = min(delay + delay * self.jitter_max * random.random(), max_delay)

        return delay


@dataclass
class RetryAttempt:
    """Information about a failed attempt that was retried."""

    attempt_number: int
    delay: float
    exception: BaseException
    timestamp: datetime
    total_elapsed: float


def network_retry_condition(error: BaseException) -> bool:
    """Retry connectivity failures only."""
    if isinstance(error, NETWORK_EXCEPTION_TYPES):
        return True
    message = str(error).lower()
    return any(marker in message for marker in NETWORK_RETRY_MARKERS)


def backend_retry_condition(error: BaseException) -> bool:
    """Retry backend codes that signal a transient service condition."""
    code = backend_code(error) or getattr(error, "code", None)
    if not isinstance(code, str):
        return False
    return code.rsplit("/", 1)[-1] in BACKEND_RETRYABLE_REASONS


class RetryManager:
    """
    Asynchronous retry orchestrator.

    Attempts are strictly sequential. The sleep function is injectable so
    tests and alternative event loops can control time.

    ``last_attempts`` is diagnostics for the most recently started call only.
    Concurrent calls on a shared manager replace it as each one starts; the
    list belongs to that call and keeps growing while it retries.
    """

    def __init__(
        self,
        processor=None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        connectivity=None,
        defaults: Optional[RetryOptions] = None,
        metrics=None,
        strategy: Optional[ExponentialBackoffStrategy] = None,
    ):
        self.processor = processor
        self.sleep = sleep
        self.connectivity = connectivity
        self.defaults = defaults or RetryOptions()
        self.metrics = metrics
        self.strategy = strategy or ExponentialBackoffStrategy()
        self.last_attempts: List[RetryAttempt] = []

    def calculate_delay(self, attempt: int, options: RetryOptions) -> float:
        return self.strategy.calculate_delay(
            attempt, options.base_delay, options.max_delay, options.backoff_factor
        )

    async def execute_with_retry(
        self,
        operation: Operation,
        options: Optional[RetryOptions] = None,
        context: Optional[str] = None,
    ) -> Any:
        """
        Run ``operation`` with retries.

        Args:
            operation: Zero-argument callable returning an awaitable (or a value)
            options: Retry configuration; the manager defaults when omitted
            context: Name used in logs and in the normalized error context

        Returns:
            The operation's result

        Raises:
            NormalizedError: When attempts are exhausted or the failure is
                not retryable
        """
        opts = options if options is not None else self.defaults.replace()
        name = context or getattr(operation, "__name__", "operation")
        start_time = time.monotonic()
        attempts: List[RetryAttempt] = []
        self.last_attempts = attempts
        attempt = 0

        while True:
            attempt += 1
            try:
                result = operation()
                if inspect.isawaitable(result):
                    result = await result
            except Exception as e:
                if attempt >= opts.max_attempts or not self._should_retry(opts, e, name):
                    raise self._terminal_failure(e, attempt, opts, name, start_time)

                delay = self.calculate_delay(attempt, opts)
                attempts.append(RetryAttempt(
                    attempt_number=attempt,
                    delay=delay,
                    exception=e,
                    timestamp=datetime.now(),
                    total_elapsed=time.monotonic() - start_time,
                ))
                logger.warning(f"Attempt {attempt} of {name} failed, retrying in {delay:.3f}s",
                               operation=name,
                               attempt=attempt,
                               max_attempts=opts.max_attempts,
                               next_delay=delay,
                               error=str(e))
                if self.metrics is not None:
                    self.metrics.record_retry(name)

                if opts.on_retry is not None:
                    await self._run_retry_hook(opts, attempt, e, name)

                await self.sleep(delay)
                continue

            if attempt > 1:
                self._record_recovery(name, attempt, start_time)
            return result

    async def _run_retry_hook(
        self, options: RetryOptions, attempt: int, error: BaseException, name: str
    ) -> None:
        try:
            hook_result = options.on_retry(attempt, error)
            if inspect.isawaitable(hook_result):
                await hook_result
        except Exception as hook_error:
            logger.warning(f"on_retry hook for {name} raised; continuing with retry",
                           operation=name,
                           attempt=attempt,
                           error=str(hook_error))

    def _should_retry(self, options: RetryOptions, error: BaseException, name: str) -> bool:
        try:
            return bool(options.retry_condition(error))
        except Exception as predicate_error:
            logger.warning(f"Retry condition for {name} raised; treating failure as terminal",
                           operation=name,
                           error=str(predicate_error))
            return False

    def _terminal_failure(
        self,
        error: BaseException,
        attempt: int,
        options: RetryOptions,
        name: str,
        start_time: float,
    ) -> NormalizedError:
        exhausted = attempt >= options.max_attempts
        total_elapsed = time.monotonic() - start_time
        if exhausted:
            logger.error(f"All {options.max_attempts} attempts of {name} failed",
                         operation=name,
                         max_attempts=options.max_attempts,
                         total_elapsed=total_elapsed,
                         error=str(error))
        else:
            logger.info(f"Not retrying {name}: failure is not retryable",
                        operation=name,
                        attempt=attempt,
                        exception_type=type(error).__name__)

        context: Dict[str, Any] = {
            "operation": name,
            "retry_attempts": attempt,
            "retry_failed": exhausted,
        }
        correlation_id = CorrelationIdManager.get_current_id()
        if correlation_id:
            context["correlation_id"] = correlation_id

        online = self.connectivity.is_online() if self.connectivity is not None else None
        normalized = normalize(error, context, online=online)
        if normalized is not error:
            normalized.__cause__ = error
        if self.processor is not None:
            self.processor.submit(normalized)
        return normalized

    def _record_recovery(self, name: str, attempt: int, start_time: float) -> None:
        total_elapsed = time.monotonic() - start_time
        logger.info(f"{name} succeeded after {attempt} attempts",
                    operation=name, attempts=attempt, total_elapsed=total_elapsed)
        if self.metrics is not None:
            self.metrics.record_recovery(name)
        if self.processor is not None:
            self.processor.submit_log(
                Severity.INFO,
                LogCategory.SYSTEM,
                f"Operation recovered after {attempt} attempts",
                {"operation": name, "attempts": attempt},
            )

    def with_retry(
        self,
        func: Optional[Callable[..., Awaitable[Any]]] = None,
        *,
        options: Optional[RetryOptions] = None,
        context: Optional[str] = None,
    ):
        """Decorator adding retry logic to an async function."""

        def decorator(target: Callable[..., Awaitable[Any]]):
            @functools.wraps(target)
            async def wrapper(*args, **kwargs):
                return await self.execute_with_retry(
                    lambda: target(*args, **kwargs),
                    options,
                    context or target.__name__,
                )

            return wrapper

        if func is not None:
            return decorator(func)
        return decorator

    async def retry_network_operation(
        self, operation: Operation, context: Optional[str] = None
    ) -> Any:
        """Retry preset for calls whose only expected transient failure is connectivity."""

        def on_retry(attempt: int, error: BaseException) -> None:
            logger.warning(f"Retrying network operation (attempt {attempt})",
                           operation=context, error=str(error))

        options = RetryOptions(
            max_attempts=DEFAULT_MAX_ATTEMPTS,
            base_delay=DEFAULT_BASE_DELAY,
            backoff_factor=DEFAULT_BACKOFF_FACTOR,
            retry_condition=network_retry_condition,
            on_retry=on_retry,
        )
        return await self.execute_with_retry(operation, options, context)

    async def retry_backend_operation(
        self, operation: Operation, context: Optional[str] = None
    ) -> Any:
        """Retry preset for document store calls, keyed on backend codes."""

        def on_retry(attempt: int, error: BaseException) -> None:
            logger.warning(f"Retrying backend operation (attempt {attempt})",
                           operation=context,
                           error=str(error),
                           code=getattr(error, "code", None))

        options = RetryOptions(
            max_attempts=DEFAULT_MAX_ATTEMPTS,
            base_delay=BACKEND_RETRY_BASE_DELAY,
            backoff_factor=DEFAULT_BACKOFF_FACTOR,
            retry_condition=backend_retry_condition,
            on_retry=on_retry,
        )
        return await self.execute_with_retry(operation, options, context)
