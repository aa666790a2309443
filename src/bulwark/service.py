"""
Process-wide resilience service.

Wires one sink, event bus, connectivity monitor, error event processor,
retry manager, circuit breaker and metrics collector together, and exposes
module-level helpers that delegate to the shared instance.
"""

import asyncio
import functools
from typing import Any, Awaitable, Callable, Mapping, Optional

from bulwark.config import BulwarkConfig
from bulwark.core.connectivity import ConnectivityMonitor, ManualConnectivity
from bulwark.core.correlation import CorrelationIdManager
from bulwark.core.events import EventBus
from bulwark.core.normalizer import normalize as normalize_fault
from bulwark.core.processor import ErrorEventProcessor
from bulwark.exceptions import NormalizedError
from bulwark.logging import LoggingConfig, LoggingSink, StructuredLogSink, configure_logging, get_logger
from bulwark.metrics import BulwarkMetrics
from bulwark.resilience import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitState,
    RetryManager,
    RetryOptions,
)
from bulwark.resilience.retry import Operation

logger = get_logger(__name__)

SCALAR_TYPES = (str, int, float, bool, type(None))


class ResilienceService:
    """Owns the collaborators of the error handling and resilience layer."""

    def __init__(
        self,
        config: Optional[BulwarkConfig] = None,
        sink: Optional[LoggingSink] = None,
        connectivity: Optional[ConnectivityMonitor] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Optional[Callable[[], float]] = None,
        metrics: Optional[BulwarkMetrics] = None,
    ):
        self.config = config or BulwarkConfig()

        self.metrics = metrics or BulwarkMetrics()
        if self.config.metrics.enabled:
            self.metrics.enable()
            if self.config.metrics.start_server:
                self.metrics.start_metrics_server(self.config.metrics.port)

        self.bus = EventBus()
        self.connectivity = connectivity or ManualConnectivity()
        self.sink = sink or StructuredLogSink(bus=self.bus)
        self.processor = ErrorEventProcessor(
            self.sink,
            self.bus,
            connectivity=self.connectivity,
            settings=self.config.processor,
            metrics=self.metrics,
        )

        retry = self.config.retry
        self.retry_manager = RetryManager(
            self.processor,
            sleep=sleep,
            connectivity=self.connectivity,
            defaults=RetryOptions(
                max_attempts=retry.max_attempts,
                base_delay=retry.base_delay,
                max_delay=retry.max_delay,
                backoff_factor=retry.backoff_factor,
            ),
            metrics=self.metrics,
        )

        breaker_kwargs = {"clock": clock} if clock is not None else {}
        self.circuit_breaker = CircuitBreaker(
            self.retry_manager,
            self.processor,
            config=CircuitBreakerConfig(
                failure_threshold=self.config.circuit_breaker.failure_threshold,
                recovery_timeout=self.config.circuit_breaker.recovery_timeout,
            ),
            metrics=self.metrics,
            **breaker_kwargs,
        )

    def configure_logging(self) -> None:
        """Install handlers on the ``bulwark`` logger from the logging section."""
        configure_logging(LoggingConfig.from_settings(self.config.logging))

    def normalize(self, raw: BaseException, context: Optional[Mapping[str, Any]] = None) -> NormalizedError:
        return normalize_fault(raw, context, online=self.connectivity.is_online())

    def submit_error(
        self, error: BaseException, context: Optional[Mapping[str, Any]] = None
    ) -> NormalizedError:
        """Normalize ``error``, queue it for processing and return it."""
        ctx = dict(context or {})
        correlation_id = CorrelationIdManager.get_current_id()
        if correlation_id and "correlation_id" not in ctx:
            ctx["correlation_id"] = correlation_id
        normalized = self.normalize(error, ctx)
        self.processor.submit(normalized)
        return normalized

    async def execute_with_retry(
        self,
        operation: Operation,
        options: Optional[RetryOptions] = None,
        context: Optional[str] = None,
    ) -> Any:
        return await self.retry_manager.execute_with_retry(operation, options, context)

    async def execute_with_circuit_breaker(
        self,
        operation: Operation,
        resource_key: str,
        options: Optional[RetryOptions] = None,
        config: Optional[CircuitBreakerConfig] = None,
    ) -> Any:
        return await self.circuit_breaker.execute(operation, resource_key, options, config)

    def get_circuit_state(self, resource_key: str) -> CircuitState:
        return self.circuit_breaker.get_state(resource_key)

    def reset_circuit(self, resource_key: str) -> None:
        self.circuit_breaker.reset(resource_key)

    def subscribe(self, event_name: str, handler: Callable[[Any], Any]) -> Callable[[], None]:
        return self.bus.subscribe(event_name, handler)

    async def shutdown(self) -> None:
        """Drain pending errors and cancel background timers."""
        await self.processor.flush()
        await self.processor.close()


# Singleton instance
_service: Optional[ResilienceService] = None


def get_service(config: Optional[BulwarkConfig] = None) -> ResilienceService:
    """Get the global resilience service instance.

    Args:
        config: Optional configuration (only used on first call)

    Returns:
        Global ResilienceService instance
    """
    global _service

    if _service is None:
        _service = ResilienceService(config)

    return _service


def set_service(service: ResilienceService) -> None:
    """Install a preconfigured service as the global instance."""
    global _service
    _service = service


def reset_service() -> None:
    """Reset the global service (mainly for testing)."""
    global _service
    _service = None


def normalize(raw: BaseException, context: Optional[Mapping[str, Any]] = None) -> NormalizedError:
    """Normalize a fault using the shared service's connectivity state."""
    return get_service().normalize(raw, context)


def submit_error(error: BaseException, context: Optional[Mapping[str, Any]] = None) -> NormalizedError:
    return get_service().submit_error(error, context)


async def execute_with_retry(
    operation: Operation,
    options: Optional[RetryOptions] = None,
    context: Optional[str] = None,
) -> Any:
    return await get_service().execute_with_retry(operation, options, context)


async def execute_with_circuit_breaker(
    operation: Operation,
    resource_key: str,
    options: Optional[RetryOptions] = None,
    config: Optional[CircuitBreakerConfig] = None,
) -> Any:
    return await get_service().execute_with_circuit_breaker(operation, resource_key, options, config)


def get_circuit_state(resource_key: str) -> CircuitState:
    return get_service().get_circuit_state(resource_key)


def reset_circuit(resource_key: str) -> None:
    get_service().reset_circuit(resource_key)


def subscribe(event_name: str, handler: Callable[[Any], Any]) -> Callable[[], None]:
    return get_service().subscribe(event_name, handler)


def _summarize_arg(value: Any) -> Any:
    return value if isinstance(value, SCALAR_TYPES) else "[Object]"


def with_error_handling(operation_name: Optional[str] = None):
    """
    Decorator submitting failures of an async function to the error processor.

    The normalized error is re-raised with context ``{function, args}``;
    non-scalar arguments are summarized as ``"[Object]"``.
    """

    def decorator(func: Callable[..., Awaitable[Any]]):
        name = operation_name or func.__name__

        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            try:
                return await func(*args, **kwargs)
            except Exception as e:
                context = {
                    "function": name,
                    "args": [_summarize_arg(arg) for arg in args],
                }
                if kwargs:
                    context["kwargs"] = {key: _summarize_arg(value) for key, value in kwargs.items()}
                normalized = submit_error(e, context)
                if normalized is e:
                    raise
                raise normalized from e

        return wrapper

    return decorator
