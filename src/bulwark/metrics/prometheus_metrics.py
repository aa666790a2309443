"""
Prometheus metrics collection for Bulwark.

Tracks normalized errors by kind, retry activity, circuit breaker phases and
the error queue depth. Every recorder is a no-op until the collector is
enabled.
"""

import threading
from typing import Optional

from prometheus_client import CollectorRegistry, Counter, Gauge, start_http_server

from bulwark.constants import DEFAULT_METRICS_PORT
from bulwark.logging import get_logger

logger = get_logger(__name__)

CIRCUIT_PHASE_VALUES = {"closed": 0, "open": 1, "half_open": 2}


class BulwarkMetrics:
    """Prometheus metrics collection for Bulwark"""

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        # A private registry keeps independent service instances from colliding
        self.registry = registry or CollectorRegistry()

        self.errors_total = Counter(
            'bulwark_errors_total',
            'Normalized errors processed, by kind',
            ['kind'],
            registry=self.registry,
        )

        self.retries_total = Counter(
            'bulwark_retries_total',
            'Retry attempts scheduled',
            ['operation'],
            registry=self.registry,
        )

        self.recoveries_total = Counter(
            'bulwark_recoveries_total',
            'Operations that succeeded after at least one retry',
            ['operation'],
            registry=self.registry,
        )

        self.circuit_phase = Gauge(
            'bulwark_circuit_phase',
            'Circuit phase (0=closed, 1=open, 2=half_open)',
            ['resource'],
            registry=self.registry,
        )

        self.circuit_rejections_total = Counter(
            'bulwark_circuit_rejections_total',
            'Calls rejected while a circuit was open',
            ['resource'],
            registry=self.registry,
        )

        self.queue_depth = Gauge(
            'bulwark_error_queue_depth',
            'Entries waiting in the error event queue',
            registry=self.registry,
        )

        self._enabled = False
        self._http_server = None
        self._server_started = False
        self._lock = threading.Lock()

    @property
    def enabled(self) -> bool:
        return self._enabled

    def enable(self) -> None:
        self._enabled = True

    def disable(self) -> None:
        self._enabled = False

    def start_metrics_server(self, port: int = DEFAULT_METRICS_PORT) -> None:
        """Expose the registry over HTTP and enable recording."""
        with self._lock:
            if self._server_started:
                logger.warning("Metrics server already running", port=port)
                return
            # Older prometheus_client releases return None here
            self._http_server = start_http_server(port, registry=self.registry)
            self._server_started = True
            self._enabled = True
        logger.info(f"Prometheus metrics server started on port {port}")

    def is_server_running(self) -> bool:
        return self._server_started

    def record_error(self, kind: str) -> None:
        if not self._enabled:
            return
        self.errors_total.labels(kind=kind).inc()

    def record_retry(self, operation: str) -> None:
        if not self._enabled:
            return
        self.retries_total.labels(operation=operation).inc()

    def record_recovery(self, operation: str) -> None:
        if not self._enabled:
            return
        self.recoveries_total.labels(operation=operation).inc()

    def record_circuit_phase(self, resource: str, phase: str) -> None:
        if not self._enabled:
            return
        self.circuit_phase.labels(resource=resource).set(CIRCUIT_PHASE_VALUES.get(phase, 0))

    def record_circuit_rejection(self, resource: str) -> None:
        if not self._enabled:
            return
        self.circuit_rejections_total.labels(resource=resource).inc()

    def update_queue_depth(self, depth: int) -> None:
        if not self._enabled:
            return
        self.queue_depth.set(depth)
