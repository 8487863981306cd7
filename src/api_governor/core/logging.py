"""Logging configuration for the API governor."""

import logging
import sys
from typing import Optional, Union

import structlog

from api_governor.core.config import Settings, get_settings


def setup_logging(settings: Optional[Settings] = None) -> None:
    """Setup structured logging for the application."""
    settings = settings or get_settings()

    # Configure structlog
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            _get_renderer(settings.LOG_FORMAT),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # Configure standard library logging
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, settings.LOG_LEVEL.upper()),
    )

    # Per-request lines from the HTTP stack stay at WARNING and above
    for noisy in ("httpx", "httpcore"):
        logging.getLogger(noisy).setLevel(max(logging.WARNING, logging.getLogger().level))


def _get_renderer(log_format: str) -> Union[structlog.processors.JSONRenderer, structlog.dev.ConsoleRenderer]:
    """Get the appropriate log renderer based on configuration."""
    if log_format.lower() == "json":
        return structlog.processors.JSONRenderer()
    else:
        return structlog.dev.ConsoleRenderer(colors=True)
