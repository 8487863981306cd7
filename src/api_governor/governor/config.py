"""Governor configuration and construction from settings."""

from dataclasses import dataclass
from typing import Callable, Optional

from api_governor.core.config import Settings, get_settings
from .exceptions import GovernorConfigurationError


@dataclass
class GovernorConfig:
    """
    Window capacities and circuit breaker tuning for one governor.

    All values are positive integers; durations are in milliseconds.
    """

    max_requests_per_second: int = 10
    """Admitted calls allowed in any rolling 1s window"""

    max_requests_per_minute: int = 100
    """Admitted calls allowed in any rolling 60s window"""

    max_requests_per_hour: int = 1000
    """Admitted calls allowed in any rolling 3600s window"""

    circuit_breaker_threshold: int = 5
    """Consecutive throttling failures that open the breaker"""

    circuit_breaker_reset_ms: int = 60000
    """How long an open breaker rejects admissions before closing"""

    def __post_init__(self):
        """Validate configuration values after initialization."""
        self._validate_config()

    def _validate_config(self):
        """
        Reject anything that is not a positive integer.

        Raises:
            GovernorConfigurationError: If configuration is invalid
        """
        for name in (
            "max_requests_per_second",
            "max_requests_per_minute",
            "max_requests_per_hour",
            "circuit_breaker_threshold",
            "circuit_breaker_reset_ms",
        ):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 1:
                raise GovernorConfigurationError(
                    f"{name} must be a positive integer",
                    config_field=name,
                    provided_value=value
                )


def get_governor_config(settings: Optional[Settings] = None) -> GovernorConfig:
    """Get governor configuration from settings."""
    settings = settings or get_settings()

    return GovernorConfig(
        max_requests_per_second=settings.MAX_REQUESTS_PER_SECOND,
        max_requests_per_minute=settings.MAX_REQUESTS_PER_MINUTE,
        max_requests_per_hour=settings.MAX_REQUESTS_PER_HOUR,
        circuit_breaker_threshold=settings.CIRCUIT_BREAKER_THRESHOLD,
        circuit_breaker_reset_ms=settings.CIRCUIT_BREAKER_RESET_MS
    )


def create_governor(config: Optional[GovernorConfig] = None,
                    clock: Optional[Callable[[], float]] = None):
    """
    Create a new governor instance.

    Each client or session owns its governor; there is no shared default.

    Args:
        config: Governor configuration (defaults to settings)
        clock: Optional wall clock returning seconds, for tests

    Returns:
        Freshly constructed Governor
    """
    from .governor import Governor

    if config is None:
        config = get_governor_config()

    return Governor(config, clock=clock)
