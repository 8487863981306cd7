"""Configuration management for the API governor."""

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings for outbound call governance."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Logging
    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    LOG_FORMAT: str = Field(default="json", description="Logging format: json or text")

    # Upstream API
    API_BASE_URL: str = Field(default="https://public-api.eventos.tokyo", description="Base URL of the remote API")
    API_TIMEOUT_SECONDS: float = Field(default=30.0, gt=0, description="Per-request timeout in seconds")

    # Rate windows
    MAX_REQUESTS_PER_SECOND: int = Field(default=10, ge=1, description="Admitted calls per rolling second")
    MAX_REQUESTS_PER_MINUTE: int = Field(default=100, ge=1, description="Admitted calls per rolling minute")
    MAX_REQUESTS_PER_HOUR: int = Field(default=1000, ge=1, description="Admitted calls per rolling hour")

    # Circuit breaker
    CIRCUIT_BREAKER_THRESHOLD: int = Field(default=5, ge=1, description="Consecutive throttling failures that open the breaker")
    CIRCUIT_BREAKER_RESET_MS: int = Field(default=60000, ge=1, description="Breaker cooldown in milliseconds")

    # Retry policy
    MAX_RETRIES: int = Field(default=3, ge=0, description="Retries after the first attempt")
    INITIAL_RETRY_DELAY_MS: int = Field(default=1000, ge=1, description="First backoff delay in milliseconds")
    MAX_RETRY_DELAY_MS: int = Field(default=32000, ge=1, description="Backoff delay cap in milliseconds")
    ENABLE_RETRY_LOGGING: bool = Field(default=False, description="Log retry decisions at INFO level")

    @field_validator('LOG_LEVEL')
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level"""
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of {valid_levels}")
        return v.upper()

    @field_validator('LOG_FORMAT')
    @classmethod
    def validate_log_format(cls, v):
        """Validate log format"""
        valid_formats = ['json', 'text']
        if v.lower() not in valid_formats:
            raise ValueError(f"Log format must be one of {valid_formats}")
        return v.lower()


def get_settings() -> Settings:
    """Load settings from the environment (and .env when present)."""
    return Settings()
