"""Shared fixtures: a manually advanced clock and a recording sleep."""

import pytest

from api_governor.governor import Governor, GovernorConfig


class ManualClock:
    """Wall clock (epoch seconds) that only moves when told to."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance_ms(self, ms: float) -> None:
        self.now += ms / 1000


class RecordingSleep:
    """Async sleep replacement that records requested waits and advances a clock."""

    def __init__(self, clock: ManualClock = None):
        self.clock = clock
        self.calls = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
        if self.clock is not None:
            self.clock.advance_ms(seconds * 1000)

    @property
    def waits_ms(self):
        return [seconds * 1000 for seconds in self.calls]


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def recording_sleep(clock):
    return RecordingSleep(clock)


@pytest.fixture
def roomy_governor(clock):
    """Governor whose windows never get in the way."""
    config = GovernorConfig(
        max_requests_per_second=1000,
        max_requests_per_minute=10000,
        max_requests_per_hour=100000,
        circuit_breaker_threshold=5,
        circuit_breaker_reset_ms=60000
    )
    return Governor(config, clock=clock)
