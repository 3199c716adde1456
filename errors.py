"""
Error classification

Client responses only ever see the strings produced here. In development
the underlying message is passed through; in production it collapses to a
fixed, generic message. Full detail always goes to the server log.
"""

import traceback
from typing import Any, Optional

import structlog

logger = structlog.get_logger(__name__)

GENERIC_ERROR = "An error occurred. Please try again later."
GENERIC_DATABASE_ERROR = "Database operation failed. Please try again."
GENERIC_VALIDATION_ERROR = "Invalid input. Please check your data and try again."

SAFE_VALIDATION_MARKERS = ("invalid", "required", "must")


class StorageFailure(Exception):
    """A read or write against the store failed; `cause` is for logs only."""

    def __init__(self, operation: str, cause: Optional[BaseException] = None):
        self.operation = operation
        self.cause = cause
        super().__init__(f"{operation} failed: {cause}" if cause else f"{operation} failed")


class NotFound(Exception):
    def __init__(self, resource_type: str, resource_id: Optional[str] = None):
        self.resource_type = resource_type
        self.resource_id = resource_id
        super().__init__(f"{resource_type} {resource_id} not found")


def _message(error: Any) -> str:
    if isinstance(error, BaseException):
        return str(error)
    return "Unknown error" if error is None else str(error)


def log_error(context: str, error: Any, include_stack: bool = False, **metadata: Any) -> None:
    stack = None
    if include_stack and isinstance(error, BaseException):
        stack = "".join(traceback.format_exception(type(error), error, error.__traceback__))
    logger.error(
        context,
        error=_message(error),
        error_type=type(error).__name__,
        stack=stack,
        **metadata,
    )


class ErrorClassifier:
    def __init__(self, environment: str = "production"):
        self.environment = environment

    @property
    def is_development(self) -> bool:
        return self.environment.lower() == "development"

    def log(self, context: str, error: Any, **metadata: Any) -> None:
        log_error(context, error, include_stack=self.is_development, **metadata)

    def safe_error(self, error: Any, context: str = "unexpected_error", **metadata: Any) -> str:
        self.log(context, error, **metadata)
        if self.is_development:
            return _message(error)
        return GENERIC_ERROR

    def safe_database_error(self, error: Any, context: str = "database_error", **metadata: Any) -> str:
        self.log(context, error, **metadata)
        if self.is_development and isinstance(error, BaseException):
            return _message(error)
        return GENERIC_DATABASE_ERROR

    def safe_validation_error(self, error: Any, context: str = "validation_error", **metadata: Any) -> str:
        self.log(context, error, **metadata)
        if isinstance(error, BaseException):
            message = _message(error)
            if self.is_development:
                return message
            lowered = message.lower()
            if any(marker in lowered for marker in SAFE_VALIDATION_MARKERS):
                return message
        return GENERIC_VALIDATION_ERROR
