"""
cachewrap - Cache Interface

Defines the capability protocol the caching actions consume (CacheHandle)
and the abstract base class the bundled backends implement (CacheInterface).

Call options understood by the bundled backends:
- ttl: time-to-live in seconds (None = backend default, 0 = no expiry)
- return: "value" (raw value) or "entry" (CacheEntry) for get;
  "value" (stored value) or "bool" for set
- timeout: per-call timeout in seconds (honored by backends doing network I/O)
- compress: gzip the dump file (dump only)
"""

from abc import ABC, abstractmethod
from collections.abc import Hashable, Mapping
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

DUMP_FORMAT = "cachewrap.dump"
DUMP_VERSION = 2


@dataclass(frozen=True)
class CacheEntry:
    """Stored value together with its storage metadata."""

    key: Hashable
    value: Any
    expires_at: float | None = None


@runtime_checkable
class CacheHandle(Protocol):
    """
    Capability set a caching action needs from a cache.

    Any object providing these coroutine methods can back a caching action.
    """

    async def get(self, key: Hashable, opts: Mapping[str, Any] | None = None) -> Any: ...

    async def set(self, key: Hashable, value: Any, opts: Mapping[str, Any] | None = None) -> Any: ...

    async def delete(self, key: Hashable) -> bool: ...

    async def flush(self) -> int: ...


HANDLE_METHODS = ("get", "set", "delete", "flush")


def is_cache_handle(obj: Any) -> bool:
    """True if ``obj`` provides every CacheHandle method (looked up dynamically)."""
    return obj is not None and all(callable(getattr(obj, name, None)) for name in HANDLE_METHODS)


def format_key(key: Hashable) -> str:
    """
    Render a cache key as the string stored by the backends.

    Every key goes through ``repr`` so the encoding keeps the key's type:
    ``1``, ``"1"`` and ``("1",)`` are three different entries.
    """
    return repr(key)


def option(opts: Mapping[str, Any] | None, name: str, default: Any = None) -> Any:
    """Read a single call option, tolerating ``opts=None``."""
    if not opts:
        return default
    return opts.get(name, default)


def set_result(opts: Mapping[str, Any] | None, value: Any) -> Any:
    """Return value of ``set`` according to the ``return`` option."""
    if option(opts, "return") == "value":
        return value
    return True


class CacheInterface(ABC):
    """
    Abstract base class for cache backends.

    All cache implementations must implement this interface to ensure
    consistent behavior across different backends (memory, Redis, etc.).
    Failures of the underlying storage are raised as CacheBackendError.
    """

    @abstractmethod
    async def get(self, key: Hashable, opts: Mapping[str, Any] | None = None) -> Any:
        """
        Retrieve a value from the cache.

        Args:
            key: Cache key
            opts: Call options ("return": "value" | "entry")

        Returns:
            Cached value (or CacheEntry) if found and not expired, None otherwise
        """

    @abstractmethod
    async def set(
        self,
        key: Hashable,
        value: Any,
        opts: Mapping[str, Any] | None = None,
    ) -> Any:
        """
        Store a value in the cache.

        Args:
            key: Cache key
            value: Value to cache
            opts: Call options ("ttl", "return": "value" | "bool")

        Returns:
            The stored value when ``return="value"``, True otherwise
        """

    @abstractmethod
    async def delete(self, key: Hashable) -> bool:
        """
        Delete a key from the cache.

        Returns:
            True if key was deleted, False if key didn't exist
        """

    @abstractmethod
    async def exists(self, key: Hashable) -> bool:
        """Check if a key exists and is not expired."""

    @abstractmethod
    async def flush(self) -> int:
        """
        Remove all entries from the cache.

        Returns:
            Number of entries removed
        """

    @abstractmethod
    async def get_stats(self) -> dict[str, Any]:
        """
        Get cache statistics.

        Returns:
            Dictionary with cache statistics (hits, misses, size, etc.)
        """

    @abstractmethod
    async def close(self) -> None:
        """
        Close the cache backend and release resources.

        Should be called during graceful shutdown.
        """

    @abstractmethod
    async def dump(self, path: str, opts: Mapping[str, Any] | None = None) -> int:
        """
        Write all live entries to a file.

        Args:
            path: Destination file path
            opts: Call options ("compress": gzip the file)

        Returns:
            Number of entries written
        """

    @abstractmethod
    async def load(self, path: str, opts: Mapping[str, Any] | None = None) -> int:
        """
        Read entries previously written by ``dump`` into the cache.

        Entries already expired at load time are skipped.

        Returns:
            Number of entries loaded
        """
