"""
Rate/circuit governor for outbound API calls.

The governor combines three rolling rate windows (per second, per minute and
per hour) with a throttling-driven circuit breaker and aggregate metrics.
Callers ask it whether a call may proceed now (`admit`), report how each call
went (`record_success` / `record_failure`) and ask how long to back off
(`recommended_delay_ms`).

The breaker has two states:
- CLOSED: admissions are decided by the rate windows
- OPEN: every admission is rejected until the reset period has elapsed

Only upstream throttling failures (HTTP 429) advance the consecutive failure
counter, so only throttling can open the breaker. Any recorded success closes
it again.

All state lives on the instance and is guarded by a single lock, so one
governor can be shared by coroutines and threads alike. Separate governors
never share state.
"""

import copy
import logging
import threading
import time
from datetime import datetime, timezone
from typing import Callable, Dict, Optional

from .config import GovernorConfig
from .metrics import GovernorMetrics
from .windows import RollingWindow

logger = logging.getLogger(__name__)

SECOND_MS = 1000
MINUTE_MS = 60 * SECOND_MS
HOUR_MS = 60 * MINUTE_MS

# Recommended waits when a window is full or nearly full
SECOND_WINDOW_DELAY_MS = 1000
MINUTE_WINDOW_DELAY_MS = 600
HOUR_WINDOW_DELAY_MS = 3600
NEAR_CAPACITY_RATIO = 0.9


class Governor:
    """
    Thread-safe admission controller with a throttling circuit breaker.

    Usage:
        governor = Governor(GovernorConfig(max_requests_per_second=5))

        while not governor.admit():
            await asyncio.sleep(governor.recommended_delay_ms() / 1000)
        started = time.perf_counter()
        try:
            result = await call_upstream()
        except UpstreamError as e:
            governor.record_failure(is_throttled=e.status_code == 429)
            raise
        governor.record_success((time.perf_counter() - started) * 1000)
    """

    def __init__(self,
                 config: Optional[GovernorConfig] = None,
                 clock: Optional[Callable[[], float]] = None):
        """
        Initialize governor.

        Args:
            config: Configuration object, uses defaults if not provided
            clock: Wall clock returning epoch seconds; defaults to time.time
        """
        self.config = config or GovernorConfig()
        self._clock = clock or time.time
        self._lock = threading.Lock()

        self._windows = (
            RollingWindow("second", SECOND_MS, self.config.max_requests_per_second),
            RollingWindow("minute", MINUTE_MS, self.config.max_requests_per_minute),
            RollingWindow("hour", HOUR_MS, self.config.max_requests_per_hour),
        )

        self._metrics = GovernorMetrics()
        self._consecutive_failures = 0
        self._breaker_opened_at: Optional[float] = None

        logger.info(
            "Governor initialized",
            extra={
                "config": {
                    "max_requests_per_second": self.config.max_requests_per_second,
                    "max_requests_per_minute": self.config.max_requests_per_minute,
                    "max_requests_per_hour": self.config.max_requests_per_hour,
                    "circuit_breaker_threshold": self.config.circuit_breaker_threshold,
                    "circuit_breaker_reset_ms": self.config.circuit_breaker_reset_ms
                }
            }
        )

    def _now_ms(self) -> float:
        return self._clock() * 1000

    @property
    def consecutive_failures(self) -> int:
        """Consecutive throttling failures since the last success or reset."""
        with self._lock:
            return self._consecutive_failures

    @property
    def is_circuit_open(self) -> bool:
        """Whether the breaker is currently open (without evaluating its cooldown)."""
        with self._lock:
            return self._breaker_opened_at is not None

    def admit(self) -> bool:
        """
        Decide whether a call may proceed right now and register it if so.

        Exactly one outcome holds per call: admitted, rejected by a rate
        window, or rejected by the open breaker. Breaker rejections leave the
        windows and the rate-limited counter untouched.

        Returns:
            True if the call is admitted
        """
        with self._lock:
            now_ms = self._now_ms()

            if self._breaker_blocks(now_ms):
                logger.debug(
                    "Admission rejected - circuit breaker is open",
                    extra={"cooldown_remaining_ms": self._breaker_remaining_ms(now_ms)}
                )
                return False

            for window in self._windows:
                window.prune(now_ms)

            for window in self._windows:
                if window.is_full():
                    self._metrics.rate_limited_requests += 1
                    self._metrics.last_rate_limited_at = datetime.fromtimestamp(
                        now_ms / 1000, tz=timezone.utc
                    )
                    logger.debug(
                        "Admission rejected - rate window full",
                        extra={
                            "window": window.name,
                            "count": len(window),
                            "capacity": window.capacity
                        }
                    )
                    return False

            for window in self._windows:
                window.record(now_ms)
            self._metrics.total_requests += 1
            return True

    def record_success(self, latency_ms: float) -> None:
        """
        Record a successful call.

        Resets the consecutive failure counter, folds the latency into the
        running mean and closes the breaker if it was open.

        Args:
            latency_ms: Observed call latency in milliseconds
        """
        with self._lock:
            self._metrics.successful_requests += 1
            self._consecutive_failures = 0
            self._metrics.record_latency(latency_ms)

            if self._breaker_opened_at is not None:
                self._close_circuit("success recorded")

    def record_failure(self, is_throttled: bool = False) -> None:
        """
        Record a failed call.

        Only throttling failures advance the consecutive failure counter and
        the rate-limited counter; reaching the threshold opens the breaker.

        Args:
            is_throttled: True when upstream answered with HTTP 429
        """
        with self._lock:
            self._metrics.failed_requests += 1

            if not is_throttled:
                return

            self._metrics.rate_limited_requests += 1
            self._consecutive_failures += 1

            if (self._consecutive_failures >= self.config.circuit_breaker_threshold
                    and self._breaker_opened_at is None):
                self._open_circuit()

    def recommended_delay_ms(self) -> float:
        """
        Suggest how long to wait before the next admission attempt.

        This is advisory and does not modify any state.

        Returns:
            Milliseconds to wait; 0 when the next call would likely be admitted
        """
        with self._lock:
            now_ms = self._now_ms()

            if self._breaker_opened_at is not None:
                return self._breaker_remaining_ms(now_ms)

            second, minute, hour = self._windows
            if second.active_count(now_ms) >= second.capacity:
                return SECOND_WINDOW_DELAY_MS
            if minute.active_count(now_ms) >= minute.capacity * NEAR_CAPACITY_RATIO:
                return MINUTE_WINDOW_DELAY_MS
            if hour.active_count(now_ms) >= hour.capacity * NEAR_CAPACITY_RATIO:
                return HOUR_WINDOW_DELAY_MS
            return 0

    def metrics_snapshot(self) -> GovernorMetrics:
        """Return a copy of the aggregate metrics."""
        with self._lock:
            snapshot = copy.copy(self._metrics)
            snapshot.circuit_breaker_open = self._breaker_opened_at is not None
            return snapshot

    def reset_metrics(self) -> None:
        """
        Zero the aggregate counters and the consecutive failure count.

        Rate windows and breaker timing are left as they are.
        """
        with self._lock:
            self._metrics = GovernorMetrics()
            self._consecutive_failures = 0

    def window_usage(self) -> Dict[str, Dict[str, int]]:
        """Current count and capacity of each rate window."""
        with self._lock:
            now_ms = self._now_ms()
            return {
                window.name: {
                    "count": window.active_count(now_ms),
                    "capacity": window.capacity
                }
                for window in self._windows
            }

    def _breaker_blocks(self, now_ms: float) -> bool:
        """
        Check the breaker, closing it once its reset period has elapsed.
        Must be called while holding the lock.
        """
        if self._breaker_opened_at is None:
            return False

        if now_ms >= self._breaker_opened_at + self.config.circuit_breaker_reset_ms:
            self._consecutive_failures = 0
            self._close_circuit("reset period elapsed")
            return False

        return True

    def _breaker_remaining_ms(self, now_ms: float) -> float:
        if self._breaker_opened_at is None:
            return 0
        return max(0, self._breaker_opened_at + self.config.circuit_breaker_reset_ms - now_ms)

    def _open_circuit(self) -> None:
        self._breaker_opened_at = self._now_ms()
        self._metrics.circuit_breaker_open = True

        logger.warning(
            "Circuit breaker opened",
            extra={
                "consecutive_failures": self._consecutive_failures,
                "threshold": self.config.circuit_breaker_threshold,
                "reset_ms": self.config.circuit_breaker_reset_ms
            }
        )

    def _close_circuit(self, reason: str) -> None:
        self._breaker_opened_at = None
        self._metrics.circuit_breaker_open = False

        logger.info(
            "Circuit breaker closed",
            extra={"reason": reason}
        )
