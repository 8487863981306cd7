"""
Call failure types raised by attempts and by the resilient executor.

Attempts signal failure by raising `UpstreamError`. The executor re-raises the
final attempt's failure unmodified so callers keep the original status code
and message.
"""

from typing import Optional, Dict, Any

from .hints import RetryAfter

THROTTLED_STATUS = 429


class CallError(Exception):
    """
    Base exception class for outbound call failures.

    Provides a dictionary form for logging and tool responses.
    """

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        """
        Initialize call error.

        Args:
            message: Human-readable error description
            context: Additional context information for debugging
        """
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert exception to dictionary for API responses and logging.

        Returns:
            Dictionary representation of the error
        """
        return {
            "error_type": self.__class__.__name__,
            "message": str(self),
            "context": self.context
        }


class UpstreamError(CallError):
    """
    Raised by an attempt when the upstream call did not succeed.

    A failure without a status code means no response was received at all
    (connection refused, DNS failure, timeout). A failure with a status code
    carries the upstream answer and, optionally, its retry hint.

    Attributes:
        status_code: HTTP-like status of the response, None for network failures
        retry_after: Upstream-supplied wait hint, if any
        details: Extra payload returned by upstream
    """

    def __init__(self,
                 message: str,
                 status_code: Optional[int] = None,
                 retry_after: Optional[RetryAfter] = None,
                 details: Optional[Any] = None):
        """
        Initialize upstream error.

        Args:
            message: Human-readable error description
            status_code: Response status, or None when no response arrived
            retry_after: Optional wait hint taken from the response
            details: Optional error details from the response body
        """
        super().__init__(message)
        self.status_code = status_code
        self.retry_after = retry_after
        self.details = details

    @property
    def has_response(self) -> bool:
        return self.status_code is not None

    @property
    def is_throttled(self) -> bool:
        return self.status_code == THROTTLED_STATUS

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary with response details."""
        base_dict = super().to_dict()
        base_dict.update({
            "error": "upstream_error" if self.has_response else "network_error",
            "status_code": self.status_code,
            "retry_after_seconds": self.retry_after.seconds if self.retry_after else None,
            "retry_at": self.retry_after.at.isoformat() if self.retry_after and self.retry_after.at else None,
            "details": self.details
        })
        return base_dict


class CallCancelledError(CallError):
    """
    Raised when a run's deadline expires before the call completed.

    The interrupted run is recorded as a failure in the governor.
    """

    def __init__(self, message: str, attempts: int = 0,
                 deadline_seconds: Optional[float] = None,
                 last_error: Optional[BaseException] = None):
        """
        Initialize cancellation error.

        Args:
            message: Description of the cancellation
            attempts: Number of attempts started before cancellation
            deadline_seconds: The deadline that expired
            last_error: Failure of the most recent attempt, if any
        """
        super().__init__(message)
        self.attempts = attempts
        self.deadline_seconds = deadline_seconds
        self.last_error = last_error

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary with cancellation details."""
        base_dict = super().to_dict()
        base_dict.update({
            "error": "call_cancelled",
            "attempts": self.attempts,
            "deadline_seconds": self.deadline_seconds,
            "last_error": str(self.last_error) if self.last_error else None
        })
        return base_dict
