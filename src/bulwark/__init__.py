"""
Bulwark: error handling and resilience for asynchronous services.

Every fault raised by application code is classified into one closed
taxonomy, processed through a single FIFO queue (log, broadcast, recover),
and outbound calls can be protected with retry and per-resource circuit
breaking.

Architecture Overview:
- Exceptions: NormalizedError taxonomy, factory helpers, message templates
- Core: Normalizer, event bus, connectivity, correlation, error event processor
- Resilience: Retry with exponential backoff and per-resource circuit breaker
- Logging: Structured logging and the processor's logging sink
- Config: Pydantic configuration with TOML files and BULWARK_* overrides
- Metrics: Prometheus counters and gauges
"""

__version__ = "0.1.0"

from .core import ConnectivityMonitor, EventBus, ErrorEventProcessor, ManualConnectivity, is_transient
from .exceptions import BackendFault, ErrorFactory, ErrorKind, NormalizedError
from .resilience import CircuitBreakerConfig, CircuitPhase, CircuitState, RetryOptions
from .service import (
    ResilienceService,
    execute_with_circuit_breaker,
    execute_with_retry,
    get_circuit_state,
    get_service,
    normalize,
    reset_circuit,
    reset_service,
    set_service,
    submit_error,
    subscribe,
    with_error_handling,
)

__all__ = [
    "__version__",
    "BackendFault",
    "CircuitBreakerConfig",
    "CircuitPhase",
    "CircuitState",
    "ConnectivityMonitor",
    "ErrorEventProcessor",
    "ErrorFactory",
    "ErrorKind",
    "EventBus",
    "ManualConnectivity",
    "NormalizedError",
    "ResilienceService",
    "RetryOptions",
    "execute_with_circuit_breaker",
    "execute_with_retry",
    "get_circuit_state",
    "get_service",
    "is_transient",
    "normalize",
    "reset_circuit",
    "reset_service",
    "set_service",
    "submit_error",
    "subscribe",
    "with_error_handling",
]
