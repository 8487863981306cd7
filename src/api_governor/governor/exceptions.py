"""
Governor exceptions.

The governor itself never raises while deciding admissions or recording
outcomes; these exceptions only cover misconfiguration at construction time.
"""

from typing import Optional, Dict, Any


class GovernorError(Exception):
    """
    Base exception class for governor related errors.

    Provides a dictionary form for logging and API responses.
    """

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        """
        Initialize governor error.

        Args:
            message: Human-readable error description
            context: Additional context information for debugging
        """
        super().__init__(message)
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


class GovernorConfigurationError(GovernorError):
    """
    Raised when governor configuration is invalid.

    Every window capacity and breaker setting must be a positive integer.
    """

    def __init__(self, message: str, config_field: Optional[str] = None,
                 provided_value: Optional[Any] = None):
        """
        Initialize configuration error.

        Args:
            message: Description of the configuration issue
            config_field: Name of the problematic configuration field
            provided_value: The invalid value that was provided
        """
        super().__init__(message)
        self.config_field = config_field
        self.provided_value = provided_value

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary with configuration details."""
        base_dict = super().to_dict()
        base_dict.update({
            "error": "governor_configuration_error",
            "config_field": self.config_field,
            "provided_value": self.provided_value
        })
        return base_dict
