"""
cachewrap - Error Hierarchy Tests
"""

from cachewrap.errors import (
    CacheBackendError,
    CacheError,
    CachewrapError,
    ConfigurationError,
    ErrorCode,
    NotFoundError,
    extract_error_code,
)


def test_backend_error_carries_operation() -> None:
    error = CacheBackendError("get failed", operation="get", details={"key": "k"})

    assert isinstance(error, CacheError)
    assert error.operation == "get"
    assert error.details == {"key": "k", "operation": "get"}


def test_not_found_error() -> None:
    error = NotFoundError("Cache", "users")

    assert str(error) == "Cache not found: users"
    assert error.status_code == 404
    assert error.to_dict() == {
        "error": "NotFoundError",
        "error_code": "CACHE_NOT_FOUND",
        "message": "Cache not found: users",
        "details": {"resource": "Cache", "id": "users"},
    }


def test_error_codes() -> None:
    assert extract_error_code(ConfigurationError("bad")) is ErrorCode.INVALID_CONFIGURATION
    assert extract_error_code(CacheBackendError("down")) is ErrorCode.CACHE_FAILURE
    assert extract_error_code(NotFoundError("Cache", "x")) is ErrorCode.CACHE_NOT_FOUND
    assert extract_error_code(CachewrapError("other")) is ErrorCode.INTERNAL_ERROR
    assert extract_error_code(ValueError("other")) is ErrorCode.INTERNAL_ERROR
