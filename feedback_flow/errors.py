"""Error taxonomy shared by the query engine and the HTTP layer."""
from __future__ import annotations

from enum import Enum


class ErrorType(str, Enum):
    """Standard error taxonomy for Feedback Flow telemetry."""

    INVALID_REQUEST = "invalid_request"
    UNAUTHORIZED = "unauthorized"
    STORAGE_ERROR = "storage_error"
    UNKNOWN = "unknown"

    @classmethod
    def has_value(cls, value: str) -> bool:
        """Return True if *value* matches one of the enum members."""

        try:
            cls(value)
        except ValueError:
            return False
        return True


class FeedbackFlowError(Exception):
    """Base class for errors raised by the package."""

    error_type = ErrorType.UNKNOWN


class StorageError(FeedbackFlowError):
    """Raised when the storage backend cannot serve a read."""

    error_type = ErrorType.STORAGE_ERROR


class InvalidRequestError(FeedbackFlowError):
    """Raised when a request payload cannot be used at all."""

    error_type = ErrorType.INVALID_REQUEST
