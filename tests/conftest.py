"""
cachewrap - Test Configuration and Shared Fixtures

Provides pytest configuration and shared fixtures for unit and integration tests.
"""

import os
import socket
from collections.abc import Generator
from typing import Any
from unittest.mock import AsyncMock

import pytest

from cachewrap.cache.backends.memory import MemoryCacheBackend
from cachewrap.cache.factory import CacheRegistry, reset_cache_factory
from cachewrap.config import reset_config
from cachewrap.observability import ObservabilityAdapter, initialize_observability

# Set test environment
os.environ["ENVIRONMENT"] = "test"
os.environ["LOG_LEVEL"] = "DEBUG"


def is_redis_available() -> bool:
    """Check if Redis server is available for testing."""
    try:
        with socket.create_connection(("localhost", 6379), timeout=1):
            return True
    except OSError:
        return False


@pytest.fixture
def test_redis_url() -> str:
    """Get Redis URL for testing (database 15 for isolation); skips when no server is reachable."""
    if not is_redis_available():
        pytest.skip("Redis server not available")
    return os.environ.get("TEST_REDIS_URL", "redis://localhost:6379/15")


@pytest.fixture(autouse=True)
def reset_state(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Reset configuration, registry and counters around each test to prevent state leakage."""
    monkeypatch.delenv("REDIS_URL", raising=False)
    monkeypatch.delenv("CACHE_BACKEND", raising=False)
    reset_config()
    reset_cache_factory()
    initialize_observability(enable_metrics=True, enable_tracing=False, json_logs=False, log_level="DEBUG")
    yield
    reset_cache_factory()
    reset_config()


@pytest.fixture
def obs() -> ObservabilityAdapter:
    """Fresh observability adapter with metrics enabled."""
    return initialize_observability(enable_metrics=True, enable_tracing=True, json_logs=False, log_level="DEBUG")


@pytest.fixture
def memory_cache() -> MemoryCacheBackend:
    """Memory cache with generous limits."""
    return MemoryCacheBackend(max_size=100, default_ttl=3600, namespace="test")


@pytest.fixture
def mock_cache() -> AsyncMock:
    """
    Cache handle spy: every get misses, set echoes the stored value.

    All calls are recorded in ``mock_cache.mock_calls`` in the order they happened.
    """
    cache = AsyncMock()
    cache.get.return_value = None
    cache.set.side_effect = lambda key, value, opts=None: value
    cache.delete.return_value = True
    cache.flush.return_value = 0
    return cache


@pytest.fixture
def registry() -> CacheRegistry:
    """Empty, isolated cache registry."""
    return CacheRegistry()


@pytest.fixture
def mock_env_memory(monkeypatch: pytest.MonkeyPatch) -> None:
    """Set environment variables for memory cache backend."""
    monkeypatch.setenv("CACHE_BACKEND", "memory")
    monkeypatch.setenv("CACHE_MAX_SIZE", "100")
    monkeypatch.setenv("CACHE_TTL_SECONDS", "3600")
    monkeypatch.setenv("CACHE_NAMESPACE", "test")


@pytest.fixture
def sample_cache_data() -> dict[str, Any]:
    """Sample data for cache testing."""
    return {
        "simple_string": "hello",
        "simple_int": 42,
        "simple_float": 3.14,
        "simple_bool": True,
        "complex_dict": {
            "nested": {
                "key": "value",
                "number": 123,
                "list": [1, 2, 3],
            }
        },
        "complex_list": [
            {"id": 1, "name": "Alice"},
            {"id": 2, "name": "Bob"},
        ],
    }
