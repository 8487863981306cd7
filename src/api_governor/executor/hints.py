"""Upstream retry hints ("Retry-After")."""

from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Optional


@dataclass(frozen=True)
class RetryAfter:
    """
    Wait hint supplied by upstream.

    Exactly one of `seconds` (a relative delay) or `at` (an absolute resume
    instant) is set.
    """

    seconds: Optional[float] = None
    at: Optional[datetime] = None

    def __post_init__(self):
        if (self.seconds is None) == (self.at is None):
            raise ValueError("RetryAfter needs exactly one of seconds or at")

    def delay_ms(self, now: Optional[datetime] = None) -> float:
        """Milliseconds to wait from `now`, never negative."""
        if self.seconds is not None:
            return max(0.0, self.seconds * 1000)

        now = now or datetime.now(timezone.utc)
        at = self.at if self.at.tzinfo else self.at.replace(tzinfo=timezone.utc)
        return max(0.0, (at - now).total_seconds() * 1000)


def parse_retry_after(value: Optional[str]) -> Optional[RetryAfter]:
    """
    Parse a Retry-After header value.

    Accepts delta-seconds ("120", with "1.5" truncated to 1) or an HTTP-date
    ("Wed, 21 Oct 2015 07:28:00 GMT"). Returns None for missing or
    unparseable values.
    """
    if value is None:
        return None

    value = value.strip()
    if not value:
        return None

    try:
        return RetryAfter(seconds=int(value))
    except ValueError:
        pass

    # Fractional delays are truncated to whole seconds
    try:
        return RetryAfter(seconds=int(float(value)))
    except (ValueError, OverflowError):
        pass

    try:
        at = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        return None
    if at is None:
        return None
    if at.tzinfo is None:
        at = at.replace(tzinfo=timezone.utc)
    return RetryAfter(at=at)
