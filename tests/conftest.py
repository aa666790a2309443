"""
Pytest configuration and shared fixtures for Bulwark tests.
"""

from typing import Any, Dict, List, Optional

import pytest

from bulwark.core.connectivity import ManualConnectivity
from bulwark.core.events import EventBus
from bulwark.core.processor import ErrorEventProcessor, ProcessorSettings
from bulwark.resilience import CircuitBreaker, RetryManager
from bulwark.service import reset_service


class FakeSleep:
    """Records requested delays and returns immediately."""

    def __init__(self, clock: Optional["FakeClock"] = None):
        self.delays: List[float] = []
        self.clock = clock

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        if self.clock is not None:
            self.clock.advance(delay)


class FakeClock:
    def __init__(self, now: float = 1_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSink:
    """Logging sink that keeps every entry in memory."""

    def __init__(self):
        self.entries: List[Dict[str, Any]] = []

    async def log_at(self, severity, category, message, details=None, cause=None):
        self.entries.append({
            "severity": severity,
            "category": category,
            "message": message,
            "details": dict(details or {}),
            "cause": cause,
        })


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def fake_sleep(fake_clock):
    return FakeSleep(fake_clock)


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def connectivity():
    return ManualConnectivity()


@pytest.fixture
def processor(sink, bus, connectivity):
    return ErrorEventProcessor(
        sink, bus, connectivity=connectivity, settings=ProcessorSettings(redirect_delay=0.01)
    )


@pytest.fixture
def retry_manager(processor, fake_sleep, connectivity):
    return RetryManager(processor, sleep=fake_sleep, connectivity=connectivity)


@pytest.fixture
def circuit_breaker(retry_manager, processor, fake_clock):
    return CircuitBreaker(retry_manager, processor, clock=fake_clock)


@pytest.fixture(autouse=True)
def _reset_global_service():
    reset_service()
    yield
    reset_service()
