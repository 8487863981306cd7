"""Aggregate call metrics kept by the governor."""

from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Any, Dict, Optional


@dataclass
class GovernorMetrics:
    """
    Counters describing every call the governor has seen.

    `rate_limited_requests` counts both local window rejections and upstream
    throttling responses. `average_response_time_ms` is the exact mean over
    successful calls.
    """

    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    rate_limited_requests: int = 0
    average_response_time_ms: float = 0.0
    last_rate_limited_at: Optional[datetime] = None
    circuit_breaker_open: bool = False

    def record_latency(self, latency_ms: float) -> None:
        """Fold one successful call's latency into the running mean.

        `successful_requests` must already include the call being recorded.
        """
        previous = self.successful_requests - 1
        self.average_response_time_ms = (
            self.average_response_time_ms * previous + latency_ms
        ) / self.successful_requests

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        if self.last_rate_limited_at is not None:
            data["last_rate_limited_at"] = self.last_rate_limited_at.isoformat()
        return data
