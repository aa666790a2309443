"""
Circuit Breaker Pattern Implementation.

Keeps one Closed/Open/HalfOpen state machine per resource key and
short-circuits calls to resources that keep failing. Calls that are admitted
run through the retry orchestrator; a failure is counted once per wrapped
call, after retries are exhausted.
"""

import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from bulwark.constants import (
    DEFAULT_FAILURE_THRESHOLD,
    DEFAULT_RECOVERY_TIMEOUT,
    HTTP_STATUS_SERVICE_UNAVAILABLE,
)
from bulwark.exceptions import ErrorCodes, ErrorFactory, ErrorMessageTemplates, NormalizedError
from bulwark.logging import get_logger

from .retry import Operation, RetryManager, RetryOptions

logger = get_logger(__name__)


class CircuitPhase(str, Enum):
    """Circuit breaker phases."""
    CLOSED = "closed"        # Normal operation
    OPEN = "open"            # Failing, calls rejected
    HALF_OPEN = "half_open"  # One probe call testing recovery


@dataclass(frozen=True)
class CircuitState:
    """Read-only snapshot of one resource's circuit."""

    phase: CircuitPhase = CircuitPhase.CLOSED
    consecutive_failures: int = 0
    last_failure_at: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "phase": self.phase.value,
            "consecutive_failures": self.consecutive_failures,
            "last_failure_at": self.last_failure_at,
        }


@dataclass
class CircuitBreakerConfig:
    """Configuration for circuit breaker behavior."""
    failure_threshold: int = DEFAULT_FAILURE_THRESHOLD   # Failures before opening
    recovery_timeout: float = DEFAULT_RECOVERY_TIMEOUT   # Seconds before a probe

    def __post_init__(self):
        if self.failure_threshold < 1:
            raise ValueError(f"failure_threshold must be >= 1, got {self.failure_threshold}")
        if self.recovery_timeout < 0:
            raise ValueError(f"recovery_timeout must be >= 0, got {self.recovery_timeout}")


@dataclass
class _ResourceCircuit:
    phase: CircuitPhase = CircuitPhase.CLOSED
    consecutive_failures: int = 0
    last_failure_at: Optional[float] = None
    probe_in_flight: bool = False
    opened_count: int = 0
    rejected_calls: int = 0

    def snapshot(self) -> CircuitState:
        return CircuitState(self.phase, self.consecutive_failures, self.last_failure_at)


class CircuitBreaker:
    """
    Per-resource circuit breaker.

    Admission decisions are made synchronously, before the first suspension
    point of ``execute``, so concurrent callers observe each other's
    transitions. While half-open exactly one probe call is in flight; every
    other caller is rejected until the probe settles.
    """

    def __init__(
        self,
        retry_manager: RetryManager,
        processor=None,
        config: Optional[CircuitBreakerConfig] = None,
        clock: Callable[[], float] = time.time,
        metrics=None,
    ):
        self.retry_manager = retry_manager
        self.processor = processor
        self.config = config or CircuitBreakerConfig()
        self.clock = clock
        self.metrics = metrics
        self._circuits: Dict[str, _ResourceCircuit] = {}

        logger.info("Circuit breaker initialized",
                    failure_threshold=self.config.failure_threshold,
                    recovery_timeout=self.config.recovery_timeout)

    async def execute(
        self,
        operation: Operation,
        resource_key: str,
        options: Optional[RetryOptions] = None,
        config: Optional[CircuitBreakerConfig] = None,
    ) -> Any:
        """
        Execute an operation through the circuit for ``resource_key``.

        Args:
            operation: Zero-argument callable returning an awaitable
            resource_key: Identifies the protected resource
            options: Retry options for the wrapped call
            config: Per-call threshold and recovery timeout

        Returns:
            The operation's result

        Raises:
            NormalizedError: A ServerFault with code ``CIRCUIT_OPEN`` when the
                call is rejected, or the retry orchestrator's terminal error
        """
        cfg = config or self.config
        circuit = self._circuits.get(resource_key)
        if circuit is None:
            circuit = self._circuits[resource_key] = _ResourceCircuit()

        is_probe = self._admit(resource_key, circuit, cfg)

        try:
            result = await self.retry_manager.execute_with_retry(operation, options, resource_key)
        except NormalizedError:
            self._record_failure(resource_key, circuit, cfg, is_probe)
            raise
        else:
            self._record_success(resource_key, circuit, is_probe)
        finally:
            # A cancelled probe leaves the circuit open for the next caller
            if is_probe and circuit.probe_in_flight:
                circuit.probe_in_flight = False
                if circuit.phase is CircuitPhase.HALF_OPEN:
                    self._transition(resource_key, circuit, CircuitPhase.OPEN)

        return result

    def _admit(self, resource_key: str, circuit: _ResourceCircuit, cfg: CircuitBreakerConfig) -> bool:
        """Decide admission; returns True when the call is the half-open probe."""
        if circuit.phase is CircuitPhase.CLOSED:
            return False

        if circuit.phase is CircuitPhase.OPEN:
            elapsed = self.clock() - (circuit.last_failure_at or 0.0)
            if elapsed < cfg.recovery_timeout:
                self._reject(resource_key, circuit, cfg.recovery_timeout - elapsed)
            self._transition(resource_key, circuit, CircuitPhase.HALF_OPEN)
            circuit.probe_in_flight = True
            return True

        if circuit.probe_in_flight:
            self._reject(resource_key, circuit, 0.0)
        circuit.probe_in_flight = True
        return True

    def _reject(self, resource_key: str, circuit: _ResourceCircuit, time_remaining: float) -> None:
        circuit.rejected_calls += 1
        logger.warning(f"Circuit for '{resource_key}' is {circuit.phase.value}, rejecting call",
                       resource_key=resource_key,
                       time_remaining=time_remaining)
        if self.metrics is not None:
            self.metrics.record_circuit_rejection(resource_key)

        error = ErrorFactory.server(
            f"Circuit breaker open for '{resource_key}'",
            context={"resource_key": resource_key, "time_remaining": time_remaining},
            code=ErrorCodes.CIRCUIT_OPEN,
            status_like=HTTP_STATUS_SERVICE_UNAVAILABLE,
            user_message=ErrorMessageTemplates.CIRCUIT_OPEN,
        )
        if self.processor is not None:
            self.processor.submit(error)
        raise error

    def _record_success(self, resource_key: str, circuit: _ResourceCircuit, is_probe: bool) -> None:
        if is_probe:
            circuit.probe_in_flight = False
        if circuit.phase is not CircuitPhase.CLOSED and not is_probe:
            # Late success from a call admitted before the circuit opened
            logger.debug(f"Ignoring late success for circuit '{resource_key}'")
            return

        recovered = circuit.phase is not CircuitPhase.CLOSED or circuit.consecutive_failures > 0
        circuit.consecutive_failures = 0
        circuit.last_failure_at = None
        if circuit.phase is not CircuitPhase.CLOSED:
            self._transition(resource_key, circuit, CircuitPhase.CLOSED)
        elif recovered:
            logger.debug(f"Circuit for '{resource_key}' failure count reset")

    def _record_failure(
        self,
        resource_key: str,
        circuit: _ResourceCircuit,
        cfg: CircuitBreakerConfig,
        is_probe: bool,
    ) -> None:
        circuit.consecutive_failures += 1
        circuit.last_failure_at = self.clock()

        if is_probe:
            circuit.probe_in_flight = False
            self._transition(resource_key, circuit, CircuitPhase.OPEN)
        elif (circuit.phase is CircuitPhase.CLOSED
              and circuit.consecutive_failures >= cfg.failure_threshold):
            self._transition(resource_key, circuit, CircuitPhase.OPEN)
        else:
            logger.debug(f"Circuit for '{resource_key}' recorded failure",
                         failure_count=circuit.consecutive_failures,
                         phase=circuit.phase.value)

    def _transition(self, resource_key: str, circuit: _ResourceCircuit, new_phase: CircuitPhase) -> None:
        old_phase = circuit.phase
        circuit.phase = new_phase

        if new_phase is CircuitPhase.OPEN:
            circuit.opened_count += 1
            logger.warning(f"Circuit for '{resource_key}' opened",
                           failure_count=circuit.consecutive_failures)
        elif new_phase is CircuitPhase.CLOSED:
            logger.info(f"Circuit for '{resource_key}' closed - resource recovered")
        else:
            logger.info(f"Circuit for '{resource_key}' half-open - probing recovery")

        logger.debug(f"Circuit for '{resource_key}' state transition",
                     old_phase=old_phase.value,
                     new_phase=new_phase.value)
        if self.metrics is not None:
            self.metrics.record_circuit_phase(resource_key, new_phase.value)

    def get_state(self, resource_key: str) -> CircuitState:
        """Snapshot of a resource's circuit; unknown keys read as closed."""
        circuit = self._circuits.get(resource_key)
        if circuit is None:
            return CircuitState()
        return circuit.snapshot()

    def reset(self, resource_key: str) -> None:
        """Forget all state for one resource."""
        if self._circuits.pop(resource_key, None) is not None:
            logger.info(f"Circuit for '{resource_key}' manually reset")
            if self.metrics is not None:
                self.metrics.record_circuit_phase(resource_key, CircuitPhase.CLOSED.value)

    def reset_all(self) -> None:
        keys = list(self._circuits)
        for key in keys:
            self.reset(key)
        logger.info("All circuits reset", count=len(keys))

    def get_healthy_resources(self) -> List[str]:
        return [key for key, circuit in self._circuits.items()
                if circuit.phase is CircuitPhase.CLOSED]

    def get_failing_resources(self) -> List[str]:
        return [key for key, circuit in self._circuits.items()
                if circuit.phase is CircuitPhase.OPEN]

    @property
    def stats(self) -> Dict[str, Dict[str, Any]]:
        """Per-resource statistics."""
        return {
            key: {
                **circuit.snapshot().to_dict(),
                "probe_in_flight": circuit.probe_in_flight,
                "opened_count": circuit.opened_count,
                "rejected_calls": circuit.rejected_calls,
            }
            for key, circuit in self._circuits.items()
        }
