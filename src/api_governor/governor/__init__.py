"""
Rate/circuit governor.

Admission control for outbound calls to a single upstream API:
- Three rolling windows bound admitted calls per second, minute and hour
- A circuit breaker opens after consecutive throttling (429) failures and
  rejects every admission until its reset period elapses
- Aggregate metrics track totals, failures, rejections and mean latency

Example Usage:
    from api_governor.governor import Governor, GovernorConfig

    governor = Governor(GovernorConfig(max_requests_per_second=5))
    if governor.admit():
        ...
    else:
        wait_ms = governor.recommended_delay_ms()
"""

from .config import GovernorConfig, get_governor_config, create_governor
from .exceptions import GovernorError, GovernorConfigurationError
from .governor import Governor
from .metrics import GovernorMetrics
from .windows import RollingWindow

__all__ = [
    "Governor",
    "GovernorConfig",
    "GovernorMetrics",
    "RollingWindow",
    "get_governor_config",
    "create_governor",
    "GovernorError",
    "GovernorConfigurationError"
]
