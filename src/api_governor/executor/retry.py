"""
Resilient call executor.

Drives one logical operation to completion against a governor:

1. Ask the governor for admission; while rejected, sleep for the governor's
   recommended delay and ask again.
2. Run the attempt and record its outcome (latency on success, throttling
   flag on failure).
3. On a retryable failure wait (upstream hint if present, otherwise capped
   exponential backoff with up to 30% jitter) and go back to step 1 with one
   retry fewer and the delay doubled.

Non-retryable failures and the failure that exhausts the retry budget are
re-raised unmodified. Every failure is recorded before it is retried or
raised.
"""

import asyncio
import logging
import random
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, TypeVar

from api_governor.governor import Governor
from .config import RetryConfig
from .exceptions import CallCancelledError, UpstreamError

logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRYABLE_STATUS_CODES = frozenset({408, 423, 429})
SERVER_ERROR_STATUS = 500
JITTER_RATIO = 0.3


def is_retryable(error: UpstreamError) -> bool:
    """
    Decide whether a failed attempt may be retried.

    Network failures (no response) are always retryable. Responses are
    retryable for 429, 408, 423 and any 5xx status.
    """
    if not error.has_response:
        return True

    status = error.status_code
    return status in RETRYABLE_STATUS_CODES or status >= SERVER_ERROR_STATUS


@dataclass
class _RunProgress:
    attempts: int = 0
    last_error: Optional[BaseException] = None


class ResilientExecutor:
    """
    Retry-with-backoff wrapper for async calls, governed by a Governor.

    Usage:
        governor = Governor()
        executor = ResilientExecutor(governor, RetryConfig(max_retries=3))

        async def fetch():
            response = await client.get("/accounts")
            ...
            return response.json()

        data = await executor.run(fetch)
    """

    def __init__(self,
                 governor: Governor,
                 config: Optional[RetryConfig] = None,
                 sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
                 rng: Optional[Callable[[], float]] = None):
        """
        Initialize executor.

        Args:
            governor: Governor shared by every call this executor makes
            config: Retry policy, uses defaults if not provided
            sleep: Coroutine function sleeping for a number of seconds
            rng: Source of uniform floats in [0, 1) used for jitter
        """
        self.governor = governor
        self.config = config or RetryConfig()
        self._sleep = sleep or asyncio.sleep
        self._rng = rng or random.random
        self._log_level = logging.INFO if self.config.enable_retry_logging else logging.DEBUG

    def compute_wait_ms(self, error: UpstreamError, delay_ms: float) -> float:
        """
        Wait before retrying after `error`.

        An upstream retry hint is honored exactly. Otherwise the delay is capped
        at `max_retry_delay_ms` and jitter in [0, 30%) of the capped value is
        added.
        """
        if error.retry_after is not None:
            return error.retry_after.delay_ms()

        base = min(delay_ms, self.config.max_retry_delay_ms)
        jitter = self._rng() * JITTER_RATIO * base
        return base + jitter

    async def run(self,
                  attempt: Callable[[], Awaitable[T]],
                  max_retries: Optional[int] = None,
                  delay_ms: Optional[float] = None,
                  deadline_seconds: Optional[float] = None) -> T:
        """
        Run `attempt` until it succeeds, fails permanently or runs out of retries.

        Args:
            attempt: Zero-argument coroutine function performing one try
            max_retries: Retry budget, defaults to the configured value
            delay_ms: First backoff delay, defaults to the configured value
            deadline_seconds: Optional bound on the whole run's wall-clock time

        Returns:
            Whatever the successful attempt returned

        Raises:
            UpstreamError: The failure of the last attempt
            CallCancelledError: If the deadline expired first
        """
        retries_left = self.config.max_retries if max_retries is None else max_retries
        delay = self.config.initial_retry_delay_ms if delay_ms is None else delay_ms
        progress = _RunProgress()

        if deadline_seconds is None:
            return await self._run(attempt, retries_left, delay, progress)

        try:
            return await asyncio.wait_for(
                self._run(attempt, retries_left, delay, progress),
                timeout=deadline_seconds
            )
        except asyncio.TimeoutError as e:
            if e is progress.last_error:
                raise
            logger.warning(
                "Call cancelled - deadline expired",
                extra={
                    "deadline_seconds": deadline_seconds,
                    "attempts": progress.attempts
                }
            )
            raise CallCancelledError(
                f"Call cancelled after {deadline_seconds}s deadline",
                attempts=progress.attempts,
                deadline_seconds=deadline_seconds,
                last_error=progress.last_error
            ) from e

    async def _run(self,
                   attempt: Callable[[], Awaitable[T]],
                   retries_left: int,
                   delay: float,
                   progress: _RunProgress) -> T:
        budget = retries_left
        try:
            while True:
                await self._wait_for_admission()

                progress.attempts += 1
                started = time.perf_counter()
                try:
                    result = await attempt()
                except UpstreamError as e:
                    failure = e
                    progress.last_error = e
                    self.governor.record_failure(is_throttled=e.is_throttled)
                else:
                    self.governor.record_success((time.perf_counter() - started) * 1000)
                    return result

                if retries_left <= 0:
                    logger.log(
                        self._log_level,
                        "Max retries exceeded",
                        extra={
                            "attempts": progress.attempts,
                            "status_code": failure.status_code,
                            "error_message": failure.message
                        }
                    )
                    raise failure

                if not is_retryable(failure):
                    logger.debug(
                        "Non-retryable failure",
                        extra={"status_code": failure.status_code, "error_message": failure.message}
                    )
                    raise failure

                wait_ms = self.compute_wait_ms(failure, delay)
                logger.log(
                    self._log_level,
                    f"Retry {budget - retries_left + 1}/{budget}: "
                    f"waiting {round(wait_ms)}ms before retry",
                    extra={
                        "status_code": failure.status_code if failure.has_response else "network",
                        "error_message": failure.message,
                        "wait_ms": wait_ms,
                        "from_retry_hint": failure.retry_after is not None
                    }
                )
                await self._sleep(wait_ms / 1000)

                retries_left -= 1
                delay *= 2

        except asyncio.CancelledError:
            # Interrupted mid-sleep or mid-attempt; counts as a failure
            self.governor.record_failure(is_throttled=False)
            raise
        except UpstreamError:
            raise
        except Exception as e:
            progress.last_error = e
            self.governor.record_failure(is_throttled=False)
            logger.error(
                "Attempt raised an unexpected error",
                extra={"error_type": type(e).__name__, "error_message": str(e)},
                exc_info=True
            )
            raise

    async def _wait_for_admission(self) -> None:
        while not self.governor.admit():
            wait_ms = self.governor.recommended_delay_ms()
            logger.log(
                self._log_level,
                f"Rate limit reached. Waiting {round(wait_ms)}ms...",
                extra={"wait_ms": wait_ms}
            )
            await self._sleep(wait_ms / 1000)
