"""
End-to-end flows through the shared service: retry, circuit breaking and
error processing wired together.
"""

import pytest

from bulwark.config import BulwarkConfig, RetrySettings
from bulwark.constants import EVENT_APP_ERROR, EVENT_APP_OFFLINE
from bulwark.core.normalizer import normalize
from bulwark.exceptions import BackendFault, ErrorCodes, ErrorKind, ErrorMessageTemplates, NormalizedError
from bulwark.resilience import CircuitBreakerConfig, CircuitPhase, RetryOptions
from bulwark.service import ResilienceService

from ..conftest import FakeClock, FakeSleep, RecordingSink


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def service(clock):
    return ResilienceService(
        BulwarkConfig(retry=RetrySettings()),
        sink=RecordingSink(),
        sleep=FakeSleep(clock),
        clock=clock,
    )


@pytest.mark.integration
class TestResilienceFlow:
    @pytest.mark.asyncio
    async def test_transient_failures_then_success(self, service):
        calls = []

        async def operation():
            calls.append(1)
            if len(calls) < 3:
                raise ConnectionError("network unreachable")
            return {"id": 1}

        options = RetryOptions(max_attempts=3, base_delay=0.1, backoff_factor=2)
        result = await service.execute_with_retry(operation, options, "fetch_profile")
        await service.processor.flush()

        assert result == {"id": 1}
        assert service.retry_manager.sleep.delays == [pytest.approx(0.1), pytest.approx(0.2)]
        assert [entry["message"] for entry in service.sink.entries] == [
            "Operation recovered after 3 attempts"
        ]

    @pytest.mark.asyncio
    async def test_circuit_opens_and_short_circuits(self, service, clock):
        calls = []
        notifications = []
        service.subscribe(EVENT_APP_ERROR, notifications.append)

        async def operation():
            calls.append(1)
            raise ConnectionError("connection refused")

        config = CircuitBreakerConfig(failure_threshold=5, recovery_timeout=60)
        single = RetryOptions(max_attempts=1)
        for _ in range(5):
            with pytest.raises(NormalizedError):
                await service.execute_with_circuit_breaker(operation, "search", single, config)

        assert service.get_circuit_state("search").phase is CircuitPhase.OPEN
        clock.advance(5)

        with pytest.raises(NormalizedError) as exc_info:
            await service.execute_with_circuit_breaker(operation, "search", single, config)

        assert len(calls) == 5
        assert exc_info.value.kind is ErrorKind.SERVER_FAULT
        assert exc_info.value.code == ErrorCodes.CIRCUIT_OPEN

        await service.processor.flush()
        assert [n["kind"] for n in notifications] == ["network"] * 5 + ["server_fault"]

    def test_credential_codes_are_indistinguishable(self):
        wrong_password = normalize(BackendFault("auth/wrong-password"))
        unknown_user = normalize(BackendFault("auth/user-not-found"))

        for error in (wrong_password, unknown_user):
            assert error.kind is ErrorKind.AUTHENTICATION
            assert error.status_like == 401
            assert error.user_message == ErrorMessageTemplates.INVALID_CREDENTIALS

    @pytest.mark.asyncio
    async def test_offline_failure_raises_offline_signal(self, service):
        offline = []
        service.subscribe(EVENT_APP_OFFLINE, offline.append)
        service.connectivity.set_offline()

        async def operation():
            raise RuntimeError("request aborted")

        with pytest.raises(NormalizedError) as exc_info:
            await service.execute_with_retry(operation, RetryOptions(max_attempts=1))
        await service.shutdown()

        assert exc_info.value.kind is ErrorKind.NETWORK
        assert len(offline) == 1
