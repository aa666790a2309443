"""
Tests for retry orchestration with exponential backoff.
"""

import asyncio

import pytest

from bulwark.core.correlation import CorrelationIdManager
from bulwark.exceptions import BackendFault, ErrorFactory, ErrorKind, NormalizedError
from bulwark.logging import Severity
from bulwark.resilience import (
    ExponentialBackoffStrategy,
    RetryManager,
    RetryOptions,
    backend_retry_condition,
    network_retry_condition,
)


class FlakyOperation:
    """Fails with the given exceptions, then returns ``result``."""

    def __init__(self, failures, result="ok"):
        self.failures = list(failures)
        self.result = result
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.failures:
            raise self.failures.pop(0)
        return self.result


@pytest.mark.unit
class TestRetryOptions:
    def test_defaults(self):
        options = RetryOptions()

        assert options.max_attempts == 3
        assert options.base_delay == 1.0
        assert options.max_delay == 10.0
        assert options.backoff_factor == 2.0
        assert options.on_retry is None

    @pytest.mark.parametrize("kwargs", [
        {"max_attempts": 0},
        {"base_delay": -1},
        {"max_delay": -0.5},
        {"backoff_factor": 0.5},
    ])
    def test_invalid_options(self, kwargs):
        with pytest.raises(ValueError):
            RetryOptions(**kwargs)


@pytest.mark.unit
class TestExponentialBackoffStrategy:
    def test_delays_grow_and_are_capped(self):
        strategy = ExponentialBackoffStrategy()
        delays = [strategy.calculate_delay(n, 1.0, 10.0, 2.0) for n in range(1, 7)]

        assert delays == [1.0, 2.0, 4.0, 8.0, 10.0, 10.0]

    def test_delay_never_exceeds_max(self):
        strategy = ExponentialBackoffStrategy()
        for attempt in range(1, 30):
            for base, cap, factor in [(0.1, 5.0, 3.0), (2.0, 2.0, 1.0), (0.0, 1.0, 2.0)]:
                assert 0 <= strategy.calculate_delay(attempt, base, cap, factor) <= cap

    def test_jitter_stays_within_cap(self):
        strategy = ExponentialBackoffStrategy(jitter=True, jitter_max=0.5)
        for attempt in range(1, 10):
            assert strategy.calculate_delay(attempt, 1.0, 4.0, 2.0) <= 4.0

    def test_huge_attempt_number_caps_instead_of_overflowing(self):
        strategy = ExponentialBackoffStrategy()

        assert strategy.calculate_delay(5000, 0.001, 0.01, 2.0) == 0.01


@pytest.mark.unit
class TestExecuteWithRetry:
    @pytest.mark.asyncio
    async def test_success_on_first_attempt(self, retry_manager, fake_sleep, processor, sink):
        operation = FlakyOperation([])

        assert await retry_manager.execute_with_retry(operation) == "ok"
        await processor.flush()

        assert operation.calls == 1
        assert fake_sleep.delays == []
        assert sink.entries == []

    @pytest.mark.asyncio
    async def test_recovers_after_transient_failures(self, retry_manager, fake_sleep, processor, sink):
        operation = FlakyOperation([ConnectionError("reset"), ConnectionError("reset")], result=42)

        result = await retry_manager.execute_with_retry(operation, context="load_orders")
        await processor.flush()

        assert result == 42
        assert operation.calls == 3
        assert fake_sleep.delays == [1.0, 2.0]
        assert len(sink.entries) == 1
        assert sink.entries[0]["severity"] is Severity.INFO
        assert sink.entries[0]["message"] == "Operation recovered after 3 attempts"
        assert sink.entries[0]["details"]["operation"] == "load_orders"

    @pytest.mark.asyncio
    async def test_exhaustion_raises_normalized_error(self, retry_manager, fake_sleep, processor, sink):
        original = ConnectionError("still down")
        operation = FlakyOperation([ConnectionError("down"), ConnectionError("down"), original])

        with pytest.raises(NormalizedError) as exc_info:
            await retry_manager.execute_with_retry(operation, context="sync")

        error = exc_info.value
        assert operation.calls == 3
        assert fake_sleep.delays == [1.0, 2.0]
        assert error.kind is ErrorKind.NETWORK
        assert error.cause is original
        assert error.__cause__ is original
        assert error.context["retry_attempts"] == 3
        assert error.context["retry_failed"] is True
        assert error.context["operation"] == "sync"

        await processor.flush()
        assert [entry["message"] for entry in sink.entries] == ["still down"]

    @pytest.mark.asyncio
    async def test_non_retryable_failure_is_not_retried(self, retry_manager, fake_sleep):
        operation = FlakyOperation([BackendFault("auth/wrong-password")])

        with pytest.raises(NormalizedError) as exc_info:
            await retry_manager.execute_with_retry(operation)

        assert operation.calls == 1
        assert fake_sleep.delays == []
        assert exc_info.value.kind is ErrorKind.AUTHENTICATION
        assert exc_info.value.context["retry_failed"] is False

    @pytest.mark.asyncio
    async def test_normalized_error_from_operation_is_reraised(self, retry_manager):
        original = ErrorFactory.validation("bad input")

        async def operation():
            raise original

        with pytest.raises(NormalizedError) as exc_info:
            await retry_manager.execute_with_retry(operation)

        assert exc_info.value is original

    @pytest.mark.asyncio
    async def test_attempts_never_exceed_max(self, retry_manager, fake_sleep):
        operation = FlakyOperation([TimeoutError()] * 10)
        options = RetryOptions(max_attempts=5, base_delay=1.0, max_delay=3.0)

        with pytest.raises(NormalizedError):
            await retry_manager.execute_with_retry(operation, options)

        assert operation.calls == 5
        assert fake_sleep.delays == [1.0, 2.0, 3.0, 3.0]

    @pytest.mark.asyncio
    async def test_on_retry_runs_before_sleep_and_can_adjust_options(self, retry_manager, fake_sleep):
        events = []

        def on_retry(attempt, error):
            events.append(("hook", attempt, len(fake_sleep.delays)))
            options.base_delay = 0.25

        options = RetryOptions(on_retry=on_retry)
        operation = FlakyOperation([ConnectionError(), ConnectionError()])

        await retry_manager.execute_with_retry(operation, options)

        assert events == [("hook", 1, 0), ("hook", 2, 1)]
        assert fake_sleep.delays == [1.0, 0.5]

    @pytest.mark.asyncio
    async def test_raising_on_retry_hook_does_not_stop_retrying(self, retry_manager, fake_sleep):
        def on_retry(attempt, error):
            raise RuntimeError("hook bug")

        operation = FlakyOperation([ConnectionError("reset")])

        result = await retry_manager.execute_with_retry(operation, RetryOptions(on_retry=on_retry))

        assert result == "ok"
        assert operation.calls == 2
        assert fake_sleep.delays == [1.0]

    @pytest.mark.asyncio
    async def test_raising_on_retry_hook_still_ends_in_normalized_error(self, retry_manager, processor, sink):
        async def on_retry(attempt, error):
            raise RuntimeError("hook bug")

        operation = FlakyOperation([ConnectionError("reset")] * 3)

        with pytest.raises(NormalizedError) as exc_info:
            await retry_manager.execute_with_retry(
                operation, RetryOptions(max_attempts=3, on_retry=on_retry)
            )
        await processor.flush()

        assert exc_info.value.kind is ErrorKind.NETWORK
        assert operation.calls == 3
        assert sink.entries

    @pytest.mark.asyncio
    async def test_large_max_attempts_is_honoured(self, retry_manager, fake_sleep):
        operation = FlakyOperation([TimeoutError()] * 1100)
        options = RetryOptions(max_attempts=1100, base_delay=0.001, max_delay=0.01)

        with pytest.raises(NormalizedError):
            await retry_manager.execute_with_retry(operation, options)

        assert operation.calls == 1100
        assert max(fake_sleep.delays) == 0.01

    @pytest.mark.asyncio
    async def test_custom_retry_condition(self, retry_manager, fake_sleep):
        options = RetryOptions(retry_condition=lambda error: isinstance(error, KeyError))
        operation = FlakyOperation([KeyError("x"), ConnectionError("y")])

        with pytest.raises(NormalizedError) as exc_info:
            await retry_manager.execute_with_retry(operation, options)

        assert operation.calls == 2
        assert exc_info.value.kind is ErrorKind.NETWORK

    @pytest.mark.asyncio
    async def test_raising_retry_condition_is_terminal(self, retry_manager):
        def condition(error):
            raise RuntimeError("predicate bug")

        operation = FlakyOperation([ConnectionError()])

        with pytest.raises(NormalizedError):
            await retry_manager.execute_with_retry(operation, RetryOptions(retry_condition=condition))
        assert operation.calls == 1

    @pytest.mark.asyncio
    async def test_sync_operation(self, retry_manager):
        assert await retry_manager.execute_with_retry(lambda: "plain") == "plain"

    @pytest.mark.asyncio
    async def test_offline_state_classifies_as_network(self, retry_manager, connectivity):
        connectivity.set_offline()
        operation = FlakyOperation([ValueError("json parse")])

        with pytest.raises(NormalizedError) as exc_info:
            await retry_manager.execute_with_retry(operation, RetryOptions(max_attempts=1))

        assert exc_info.value.kind is ErrorKind.NETWORK

    @pytest.mark.asyncio
    async def test_correlation_id_attached(self, retry_manager):
        operation = FlakyOperation([ValueError("boom")])

        with CorrelationIdManager.correlation_context("req-77"):
            with pytest.raises(NormalizedError) as exc_info:
                await retry_manager.execute_with_retry(operation)

        assert exc_info.value.correlation_id == "req-77"

    @pytest.mark.asyncio
    async def test_without_processor(self, fake_sleep):
        manager = RetryManager(sleep=fake_sleep)

        with pytest.raises(NormalizedError):
            await manager.execute_with_retry(FlakyOperation([ValueError("boom")]))

    @pytest.mark.asyncio
    async def test_records_attempt_history(self, retry_manager):
        await retry_manager.execute_with_retry(FlakyOperation([ConnectionError("a")]))

        assert len(retry_manager.last_attempts) == 1
        assert retry_manager.last_attempts[0].attempt_number == 1
        assert retry_manager.last_attempts[0].delay == 1.0

    @pytest.mark.asyncio
    async def test_attempt_history_follows_last_started_call(self, retry_manager):
        gate = asyncio.Event()

        async def waits_for_gate():
            await gate.wait()
            return "slow"

        slow = asyncio.ensure_future(retry_manager.execute_with_retry(waits_for_gate))
        await asyncio.sleep(0)
        await retry_manager.execute_with_retry(FlakyOperation([ConnectionError("a")]))
        fast_history = retry_manager.last_attempts

        gate.set()
        assert await slow == "slow"

        assert retry_manager.last_attempts is fast_history
        assert [a.attempt_number for a in fast_history] == [1]


@pytest.mark.unit
class TestDecoratorAndPresets:
    @pytest.mark.asyncio
    async def test_with_retry_decorator(self, retry_manager, fake_sleep):
        calls = []

        @retry_manager.with_retry(options=RetryOptions(base_delay=0.1))
        async def fetch(item_id, *, verbose=False):
            calls.append((item_id, verbose))
            if len(calls) < 2:
                raise ConnectionError("blip")
            return item_id

        assert await fetch("a", verbose=True) == "a"
        assert calls == [("a", True), ("a", True)]
        assert fake_sleep.delays == [0.1]
        assert fetch.__name__ == "fetch"

    @pytest.mark.asyncio
    async def test_bare_decorator(self, retry_manager):
        @retry_manager.with_retry
        async def ping():
            return "pong"

        assert await ping() == "pong"

    @pytest.mark.parametrize("error,expected", [
        (ConnectionError("x"), True),
        (RuntimeError("Network error while loading"), True),
        (RuntimeError("connection refused"), True),
        (ValueError("bad"), False),
    ])
    def test_network_retry_condition(self, error, expected):
        assert network_retry_condition(error) is expected

    @pytest.mark.parametrize("code,expected", [
        ("firestore/unavailable", True),
        ("firestore/deadline-exceeded", True),
        ("functions/resource-exhausted", True),
        ("functions/internal", True),
        ("storage/unknown", True),
        ("firestore/permission-denied", False),
        ("auth/wrong-password", False),
    ])
    def test_backend_retry_condition(self, code, expected):
        assert backend_retry_condition(BackendFault(code)) is expected

    @pytest.mark.asyncio
    async def test_backend_preset_uses_shorter_base_delay(self, retry_manager, fake_sleep):
        operation = FlakyOperation([BackendFault("firestore/unavailable")] * 2, result="doc")

        assert await retry_manager.retry_backend_operation(operation, "get_doc") == "doc"
        assert fake_sleep.delays == [0.5, 1.0]

    @pytest.mark.asyncio
    async def test_network_preset_does_not_retry_backend_codes(self, retry_manager, fake_sleep):
        operation = FlakyOperation([BackendFault("firestore/permission-denied")])

        with pytest.raises(NormalizedError) as exc_info:
            await retry_manager.retry_network_operation(operation, "upload")

        assert fake_sleep.delays == []
        assert exc_info.value.kind is ErrorKind.AUTHORIZATION
