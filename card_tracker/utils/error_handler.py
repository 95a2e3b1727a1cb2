"""
Centralized error handling for the card tracker.

Failures are caught at the boundary where they are produced and turned into
either a safe default or a single user-visible message. The exception classes
here carry a human readable ``message`` plus structured ``details`` so that
both the log line and the notice shown to the user come from one place.
"""

from typing import Any, Callable, Dict, Optional
from dataclasses import dataclass, field
from datetime import datetime


class CardTrackerError(Exception):
    """Base exception class for all card tracker errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigurationError(CardTrackerError):
    """Raised when there are configuration or environment variable issues."""
    pass


class StorageError(CardTrackerError):
    """Raised by storage backends on quota, I/O or corrupt data problems."""
    pass


class RemoteAPIError(CardTrackerError):
    """Raised when the card API fails and no cached response can stand in."""

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.status = status


class ImportDataError(CardTrackerError):
    """Raised when an import bundle is malformed; nothing has been written."""
    pass


class InvalidInputError(CardTrackerError):
    """Raised when user input fails validation (quantity, condition, query...)."""
    pass


class ExportError(CardTrackerError):
    """Raised when an export cannot be produced or written."""
    pass


@dataclass
class ErrorContext:
    """Context information for error reporting."""
    operation: str
    module: str
    function: str
    input_data: Optional[Dict[str, Any]] = None
    timestamp: str = field(default_factory=lambda: datetime.now().isoformat())


def handle_error(
    error: Exception,
    context: ErrorContext,
    logger: Any,
    reraise: bool = True,
    default_return: Any = None
) -> Any:
    """
    Log an error with its context and either re-raise it or return a default.

    Args:
        error: The exception that occurred
        context: Where the error occurred
        logger: structlog (or stdlib-compatible) logger
        reraise: Whether to re-raise the exception after logging
        default_return: Value to return if not re-raising

    Returns:
        ``default_return`` when not re-raising
    """
    error_msg = f"Error in {context.module}.{context.function} during {context.operation}"
    if isinstance(error, CardTrackerError):
        error_msg += f": {error.message}"
    else:
        error_msg += f": {error}"

    logger.error(
        error_msg,
        error_type=type(error).__name__,
        operation=context.operation,
        error_module=context.module,
        error_function=context.function,
        input_data=context.input_data,
        timestamp=context.timestamp,
        details=getattr(error, "details", None) or None,
    )

    if reraise:
        raise error

    return default_return


def safe_execute(
    func: Callable[..., Any],
    *args: Any,
    context: ErrorContext,
    logger: Any,
    default_return: Any = None,
    **kwargs: Any
) -> Any:
    """Run ``func`` and return ``default_return`` (after logging) if it raises."""
    try:
        return func(*args, **kwargs)
    except Exception as e:
        return handle_error(e, context, logger, reraise=False, default_return=default_return)


def user_message(error: Exception) -> str:
    """Short message suitable for a user notice."""
    if isinstance(error, CardTrackerError):
        return error.message
    return str(error) or type(error).__name__
