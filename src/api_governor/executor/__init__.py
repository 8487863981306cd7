"""
Resilient call executor.

Wraps an async attempt with governor admission, outcome recording and
bounded, jittered exponential backoff. Upstream retry hints take priority
over computed backoff.

Example Usage:
    from api_governor.executor import ResilientExecutor, UpstreamError

    async def attempt():
        ...
        raise UpstreamError("Rate limit exceeded", status_code=429)

    result = await ResilientExecutor(governor).run(attempt)
"""

from .config import RetryConfig, get_retry_config
from .exceptions import CallError, UpstreamError, CallCancelledError
from .hints import RetryAfter, parse_retry_after
from .retry import ResilientExecutor, is_retryable

__all__ = [
    "ResilientExecutor",
    "is_retryable",
    "RetryConfig",
    "get_retry_config",
    "RetryAfter",
    "parse_retry_after",
    "CallError",
    "UpstreamError",
    "CallCancelledError"
]
