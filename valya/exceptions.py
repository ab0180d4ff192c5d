"""
Valya - Exceptions.

============================================================
CUSTOM EXCEPTIONS
============================================================

Programmer-facing errors raised by configuration entry points:
- ValyaError: Base exception
- ConfigurationError: Invalid orchestrator configuration or settings
- MalformedValidatorError: A validator entry cannot be used as a check
- SchedulerError: Runs cannot be scheduled (no event loop)
- PipelineLoadError: A declarative pipeline cannot be built

Domain-level failure signal raised by checks:
- ValidationFailed: A check rejected the value

============================================================
FAILURE SAFETY
============================================================

- ValidationFailed is data, not a fault. It is converted into
  is_valid=False plus a message and never reaches the caller.
- The remaining exceptions are programmer errors and surface from
  the configuration-accepting entry points only.

============================================================
"""

from typing import Any, Dict, Optional


class ValidationFailed(Exception):
    """
    Raised by a check to reject the value under validation.

    The message becomes the orchestrator's validation_message.
    """

    def __init__(self, message: Any = None) -> None:
        self.message = message
        super().__init__(message)


class ValyaError(Exception):
    """
    Base exception for orchestrator errors.

    All non-domain exceptions inherit from this class.
    """

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Initialize exception.

        Args:
            message: Error message
            details: Additional error details
        """
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }


class ConfigurationError(ValyaError):
    """
    Raised when configuration is invalid.

    Should be caught where the configuration is built and fixed there.
    """

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        expected_value: Optional[str] = None,
        actual_value: Optional[str] = None,
    ) -> None:
        """
        Initialize exception.

        Args:
            message: Error message
            config_key: Which config key is invalid
            expected_value: What was expected
            actual_value: What was provided
        """
        details = {}
        if config_key:
            details["config_key"] = config_key
        if expected_value:
            details["expected"] = expected_value
        if actual_value:
            details["actual"] = actual_value

        super().__init__(message=message, details=details)

        self.config_key = config_key


class MalformedValidatorError(ConfigurationError):
    """
    Raised when a validator entry is not a usable check.

    Detected while the configuration is built, before any run exists.
    """

    def __init__(
        self,
        reason: str,
        index: Optional[int] = None,
        entry: Any = None,
    ) -> None:
        """
        Initialize exception.

        Args:
            reason: Why the entry was rejected
            index: Position of the entry in the validators list
            entry: The offending entry
        """
        if index is not None:
            message = f"Malformed validator at index {index}: {reason}"
        else:
            message = f"Malformed validator: {reason}"

        super().__init__(
            message=message,
            config_key="validators",
            actual_value=type(entry).__name__ if entry is not None else None,
        )

        self.index = index
        self.reason = reason


class SchedulerError(ValyaError):
    """Raised when a run cannot be scheduled."""


class PipelineLoadError(ValyaError):
    """
    Raised when a declarative check pipeline cannot be built.

    Covers unknown check names, bad arguments and unreadable files.
    """

    def __init__(
        self,
        message: str,
        source: Optional[str] = None,
        original_exception: Optional[Exception] = None,
    ) -> None:
        """
        Initialize exception.

        Args:
            message: Error message
            source: File or entry the pipeline came from
            original_exception: The underlying exception
        """
        details: Dict[str, Any] = {}
        if source:
            details["source"] = source
        if original_exception:
            details["original_exception"] = str(original_exception)
            details["exception_type"] = type(original_exception).__name__

        super().__init__(message=message, details=details)

        self.source = source
        self.original_exception = original_exception
