"""
cachewrap - Core Error Types

Defines the exception hierarchy for the caching core.
All exceptions inherit from CachewrapError for consistent error handling.

- ConfigurationError: invalid action options or runtime configuration
- CacheBackendError: any failure of a backend call (get/set/delete/flush/dump/load)
- NotFoundError: a cache name the registry cannot resolve
"""

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """
    Standard error codes attached to serialized errors.
    """

    # Configuration errors
    INVALID_CONFIGURATION = "INVALID_CONFIGURATION"

    # Cache errors
    CACHE_FAILURE = "CACHE_FAILURE"
    CACHE_NOT_FOUND = "CACHE_NOT_FOUND"

    # Internal errors
    INTERNAL_ERROR = "INTERNAL_ERROR"


class CachewrapError(Exception):
    """Base exception for all cachewrap errors."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        status_code: int = 500,
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.status_code = status_code

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for logs and API responses."""
        return {
            "error": self.__class__.__name__,
            "error_code": extract_error_code(self).value,
            "message": self.message,
            "details": self.details,
        }


class ConfigurationError(CachewrapError):
    """Raised when configuration or declared caching options are invalid or missing."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, details, status_code=500)


class CacheError(CachewrapError):
    """Base exception for cache-related errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, details, status_code=500)


class CacheBackendError(CacheError):
    """Raised when a cache backend call fails."""

    def __init__(
        self,
        message: str,
        operation: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        error_details = details or {}
        if operation:
            error_details["operation"] = operation
        super().__init__(message, error_details)
        self.operation = operation


class NotFoundError(CachewrapError):
    """Raised when a requested resource is not found."""

    def __init__(self, resource: str, identifier: str):
        message = f"{resource} not found: {identifier}"
        super().__init__(message, {"resource": resource, "id": identifier}, status_code=404)
        self.resource = resource
        self.identifier = identifier


def extract_error_code(error: Exception) -> ErrorCode:
    """
    Extract appropriate ErrorCode from an exception.

    Args:
        error: Exception to categorize

    Returns:
        Appropriate ErrorCode for the exception
    """
    if isinstance(error, ConfigurationError):
        return ErrorCode.INVALID_CONFIGURATION

    if isinstance(error, NotFoundError):
        return ErrorCode.CACHE_NOT_FOUND

    if isinstance(error, CacheError):
        return ErrorCode.CACHE_FAILURE

    return ErrorCode.INTERNAL_ERROR
