"""
Resilience patterns: retry with exponential backoff and per-resource circuit breaking.
"""

from .circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitPhase,
    CircuitState,
)
from .retry import (
    ExponentialBackoffStrategy,
    RetryAttempt,
    RetryManager,
    RetryOptions,
    backend_retry_condition,
    network_retry_condition,
)

__all__ = [
    'CircuitBreaker',
    'CircuitBreakerConfig',
    'CircuitPhase',
    'CircuitState',
    'ExponentialBackoffStrategy',
    'RetryAttempt',
    'RetryManager',
    'RetryOptions',
    'backend_retry_condition',
    'network_retry_condition',
]
