"""Tests for the resilient call executor."""

import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from api_governor.executor import (
    CallCancelledError, ResilientExecutor, RetryAfter, RetryConfig, UpstreamError, is_retryable
)
from api_governor.governor import Governor, GovernorConfig


def network_error() -> UpstreamError:
    return UpstreamError("Network error: No response received from server")


def failing_then(result, *failures) -> AsyncMock:
    """Attempt that raises each failure in turn and then returns `result`."""
    return AsyncMock(side_effect=[*failures, result])


class TestRetryability:
    """Test failure classification."""

    @pytest.mark.parametrize("status", [408, 423, 429, 500, 502, 503, 504, 599])
    def test_retryable_statuses(self, status):
        assert is_retryable(UpstreamError("boom", status_code=status)) is True

    @pytest.mark.parametrize("status", [400, 401, 403, 404, 409, 422])
    def test_non_retryable_statuses(self, status):
        assert is_retryable(UpstreamError("boom", status_code=status)) is False

    def test_network_failures_are_retryable(self):
        assert is_retryable(network_error()) is True


class TestBackoff:
    """Test wait computation."""

    def test_backoff_is_capped(self, roomy_governor):
        executor = ResilientExecutor(roomy_governor, RetryConfig(max_retry_delay_ms=1500), rng=lambda: 0.0)

        assert executor.compute_wait_ms(network_error(), 1000) == 1000
        assert executor.compute_wait_ms(network_error(), 4000) == 1500

    def test_jitter_stays_below_thirty_percent(self, roomy_governor):
        executor = ResilientExecutor(roomy_governor, rng=lambda: 0.9999)

        wait = executor.compute_wait_ms(network_error(), 1000)
        assert 1000 <= wait < 1300

    def test_retry_hint_overrides_backoff(self, roomy_governor):
        executor = ResilientExecutor(roomy_governor)
        error = UpstreamError("slow down", status_code=429, retry_after=RetryAfter(seconds=2))

        assert executor.compute_wait_ms(error, 50) == 2000

    def test_zero_retry_hint_is_honored(self, roomy_governor):
        executor = ResilientExecutor(roomy_governor)
        error = UpstreamError("slow down", status_code=429, retry_after=RetryAfter(seconds=0))

        assert executor.compute_wait_ms(error, 1000) == 0

    def test_past_resume_instant_clamps_to_zero(self, roomy_governor):
        executor = ResilientExecutor(roomy_governor)
        past = datetime.now(timezone.utc) - timedelta(seconds=30)
        error = UpstreamError("slow down", status_code=503, retry_after=RetryAfter(at=past))

        assert executor.compute_wait_ms(error, 1000) == 0


class TestResilientExecutor:
    """Test the retry loop."""

    @pytest.mark.asyncio
    async def test_returns_result_on_first_success(self, roomy_governor, recording_sleep):
        executor = ResilientExecutor(roomy_governor, sleep=recording_sleep)
        attempt = AsyncMock(return_value={"ok": True})

        assert await executor.run(attempt) == {"ok": True}

        attempt.assert_awaited_once()
        assert recording_sleep.calls == []
        metrics = roomy_governor.metrics_snapshot()
        assert metrics.total_requests == 1
        assert metrics.successful_requests == 1

    @pytest.mark.asyncio
    async def test_network_failures_then_success(self, roomy_governor, recording_sleep):
        """Two network failures then success: three attempts, growing jittered waits."""
        executor = ResilientExecutor(roomy_governor, RetryConfig(initial_retry_delay_ms=1000),
                                     sleep=recording_sleep)
        attempt = failing_then("done", network_error(), network_error())

        assert await executor.run(attempt) == "done"

        assert attempt.await_count == 3
        first, second = recording_sleep.waits_ms
        assert 1000 <= first < 1300 + 1e-6
        assert 2000 <= second < 2600 + 1e-6
        assert second >= first

        metrics = roomy_governor.metrics_snapshot()
        assert metrics.total_requests == 3
        assert metrics.failed_requests == 2
        assert metrics.successful_requests == 1

    @pytest.mark.asyncio
    async def test_non_retryable_failure_raises_immediately(self, roomy_governor, recording_sleep):
        executor = ResilientExecutor(roomy_governor, sleep=recording_sleep)
        not_found = UpstreamError("API Error 404: Not found", status_code=404)
        attempt = AsyncMock(side_effect=not_found)

        with pytest.raises(UpstreamError) as exc_info:
            await executor.run(attempt)

        assert exc_info.value is not_found
        attempt.assert_awaited_once()
        assert recording_sleep.calls == []
        assert roomy_governor.metrics_snapshot().failed_requests == 1

    @pytest.mark.asyncio
    async def test_retry_after_hint_sets_wait(self, roomy_governor, recording_sleep):
        """A Retry-After of 2 seconds wins over a tiny configured delay."""
        executor = ResilientExecutor(roomy_governor, RetryConfig(initial_retry_delay_ms=10),
                                     sleep=recording_sleep)
        throttled = UpstreamError("slow down", status_code=429, retry_after=RetryAfter(seconds=2))
        attempt = failing_then("ok", throttled)

        assert await executor.run(attempt) == "ok"
        assert recording_sleep.waits_ms == [pytest.approx(2000)]

    @pytest.mark.asyncio
    async def test_retry_after_instant_sets_wait(self, roomy_governor, recording_sleep):
        executor = ResilientExecutor(roomy_governor, sleep=recording_sleep)
        resume_at = datetime.now(timezone.utc) + timedelta(seconds=3)
        unavailable = UpstreamError("maintenance", status_code=503, retry_after=RetryAfter(at=resume_at))

        await executor.run(failing_then("ok", unavailable))

        (wait,) = recording_sleep.waits_ms
        assert 2500 < wait <= 3000

    @pytest.mark.asyncio
    async def test_exhausted_retries_raise_last_failure(self, roomy_governor, recording_sleep):
        executor = ResilientExecutor(roomy_governor, RetryConfig(max_retries=2), sleep=recording_sleep)
        failures = [UpstreamError(f"API Error 503: down #{i}", status_code=503) for i in range(3)]
        attempt = AsyncMock(side_effect=failures)

        with pytest.raises(UpstreamError) as exc_info:
            await executor.run(attempt)

        assert exc_info.value is failures[-1]
        assert attempt.await_count == 3
        assert len(recording_sleep.calls) == 2
        assert roomy_governor.metrics_snapshot().failed_requests == 3

    @pytest.mark.asyncio
    async def test_zero_retry_budget_still_records_failure(self, roomy_governor, recording_sleep):
        executor = ResilientExecutor(roomy_governor, sleep=recording_sleep)
        attempt = AsyncMock(side_effect=UpstreamError("API Error 500: boom", status_code=500))

        with pytest.raises(UpstreamError):
            await executor.run(attempt, max_retries=0)

        attempt.assert_awaited_once()
        assert recording_sleep.calls == []
        assert roomy_governor.metrics_snapshot().failed_requests == 1

    @pytest.mark.asyncio
    async def test_backoff_doubles_up_to_cap(self, roomy_governor, recording_sleep):
        config = RetryConfig(max_retries=4, initial_retry_delay_ms=1000, max_retry_delay_ms=3000)
        executor = ResilientExecutor(roomy_governor, config, sleep=recording_sleep, rng=lambda: 0.0)
        attempt = failing_then("ok", *[network_error() for _ in range(4)])

        await executor.run(attempt)

        assert recording_sleep.waits_ms == [
            pytest.approx(1000), pytest.approx(2000), pytest.approx(3000), pytest.approx(3000)
        ]

    @pytest.mark.asyncio
    async def test_per_call_overrides(self, roomy_governor, recording_sleep):
        executor = ResilientExecutor(roomy_governor, sleep=recording_sleep, rng=lambda: 0.0)
        attempt = failing_then("ok", network_error())

        await executor.run(attempt, max_retries=1, delay_ms=250)

        assert recording_sleep.waits_ms == [pytest.approx(250)]

    @pytest.mark.asyncio
    async def test_throttling_failures_open_breaker(self, clock, recording_sleep):
        governor = Governor(GovernorConfig(circuit_breaker_threshold=2, circuit_breaker_reset_ms=5000),
                            clock=clock)
        executor = ResilientExecutor(governor, RetryConfig(max_retries=1, initial_retry_delay_ms=10),
                                     sleep=recording_sleep)
        attempt = AsyncMock(side_effect=UpstreamError("API Error 429: slow down", status_code=429))

        with pytest.raises(UpstreamError):
            await executor.run(attempt)

        metrics = governor.metrics_snapshot()
        assert metrics.circuit_breaker_open is True
        assert metrics.rate_limited_requests == 2
        assert governor.consecutive_failures == 2

    @pytest.mark.asyncio
    async def test_server_errors_do_not_open_breaker(self, clock, recording_sleep):
        """Repeated 5xx are retried but never trip the breaker (429-only by design of the API)."""
        governor = Governor(GovernorConfig(circuit_breaker_threshold=2), clock=clock)
        executor = ResilientExecutor(governor, RetryConfig(max_retries=3, initial_retry_delay_ms=10),
                                     sleep=recording_sleep)
        attempt = AsyncMock(side_effect=UpstreamError("API Error 503: down", status_code=503))

        with pytest.raises(UpstreamError):
            await executor.run(attempt)

        assert attempt.await_count == 4
        assert governor.metrics_snapshot().circuit_breaker_open is False

    @pytest.mark.asyncio
    async def test_waits_for_admission(self, clock, recording_sleep):
        """A rejected admission sleeps the recommended delay and re-checks."""
        governor = Governor(GovernorConfig(max_requests_per_second=1), clock=clock)
        executor = ResilientExecutor(governor, sleep=recording_sleep)
        attempt = AsyncMock(return_value="ok")

        await executor.run(attempt)
        await executor.run(attempt)

        assert recording_sleep.waits_ms == [pytest.approx(1000)]
        assert attempt.await_count == 2
        metrics = governor.metrics_snapshot()
        assert metrics.total_requests == 2
        assert metrics.rate_limited_requests == 1

    @pytest.mark.asyncio
    async def test_waits_out_open_breaker(self, clock, recording_sleep):
        governor = Governor(GovernorConfig(circuit_breaker_threshold=1, circuit_breaker_reset_ms=5000),
                            clock=clock)
        governor.record_failure(is_throttled=True)
        executor = ResilientExecutor(governor, sleep=recording_sleep)

        assert await executor.run(AsyncMock(return_value="ok")) == "ok"
        assert recording_sleep.waits_ms == [pytest.approx(5000)]
        assert governor.metrics_snapshot().circuit_breaker_open is False

    @pytest.mark.asyncio
    async def test_unexpected_errors_are_recorded_and_raised(self, roomy_governor, recording_sleep):
        executor = ResilientExecutor(roomy_governor, sleep=recording_sleep)
        attempt = AsyncMock(side_effect=ValueError("bad payload"))

        with pytest.raises(ValueError, match="bad payload"):
            await executor.run(attempt)

        attempt.assert_awaited_once()
        assert recording_sleep.calls == []
        assert roomy_governor.metrics_snapshot().failed_requests == 1


class TestCancellation:
    """Test deadlines and task cancellation."""

    @pytest.mark.asyncio
    async def test_deadline_interrupts_backoff_sleep(self, roomy_governor):
        executor = ResilientExecutor(roomy_governor, RetryConfig(initial_retry_delay_ms=1000))
        attempt = AsyncMock(side_effect=network_error())

        with pytest.raises(CallCancelledError) as exc_info:
            await executor.run(attempt, deadline_seconds=0.05)

        assert exc_info.value.attempts == 1
        assert isinstance(exc_info.value.last_error, UpstreamError)
        attempt.assert_awaited_once()
        metrics = roomy_governor.metrics_snapshot()
        assert metrics.failed_requests == 2
        assert metrics.successful_requests == 0

    @pytest.mark.asyncio
    async def test_deadline_not_hit(self, roomy_governor):
        executor = ResilientExecutor(roomy_governor)

        assert await executor.run(AsyncMock(return_value="fast"), deadline_seconds=5) == "fast"

    @pytest.mark.asyncio
    async def test_attempt_timeout_is_not_mistaken_for_deadline(self, roomy_governor):
        executor = ResilientExecutor(roomy_governor)
        attempt = AsyncMock(side_effect=asyncio.TimeoutError())

        with pytest.raises(asyncio.TimeoutError):
            await executor.run(attempt, deadline_seconds=5)

        assert roomy_governor.metrics_snapshot().failed_requests == 1

    @pytest.mark.asyncio
    async def test_task_cancellation_is_recorded_as_failure(self, roomy_governor):
        executor = ResilientExecutor(roomy_governor, RetryConfig(initial_retry_delay_ms=10000))
        attempt = AsyncMock(side_effect=network_error())

        task = asyncio.create_task(executor.run(attempt))
        await asyncio.sleep(0.01)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

        metrics = roomy_governor.metrics_snapshot()
        assert metrics.failed_requests == 2
        assert metrics.successful_requests == 0
