"""Retry policy configuration."""

from typing import Optional

from pydantic import BaseModel, Field

from api_governor.core.config import Settings, get_settings


class RetryConfig(BaseModel):
    """Retry policy for the resilient executor (durations in milliseconds)."""

    model_config = {"frozen": True}

    max_retries: int = Field(default=3, ge=0, description="Retries after the first attempt")
    initial_retry_delay_ms: int = Field(default=1000, ge=1, description="Backoff before the first retry")
    max_retry_delay_ms: int = Field(default=32000, ge=1, description="Cap on the computed backoff")
    enable_retry_logging: bool = Field(default=False, description="Log retry decisions at INFO level")


def get_retry_config(settings: Optional[Settings] = None) -> RetryConfig:
    """Get retry configuration from settings."""
    settings = settings or get_settings()

    return RetryConfig(
        max_retries=settings.MAX_RETRIES,
        initial_retry_delay_ms=settings.INITIAL_RETRY_DELAY_MS,
        max_retry_delay_ms=settings.MAX_RETRY_DELAY_MS,
        enable_retry_logging=settings.ENABLE_RETRY_LOGGING
    )
