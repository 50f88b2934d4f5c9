"""
cachewrap - Memory Cache Backend

In-memory cache implementation with LRU eviction and TTL support.
Suitable for single-process deployments and tests.
"""

import asyncio
import logging
import time
from collections import OrderedDict
from collections.abc import Hashable, Mapping
from typing import Any

from ..dumpfile import read_dump, write_dump
from ..interface import CacheEntry, CacheInterface, format_key, option, set_result

logger = logging.getLogger(__name__)


class MemoryCacheBackend(CacheInterface):
    """
    In-memory cache backend with LRU eviction.

    Features:
    - LRU eviction when max_size is reached
    - Per-key TTL support
    - Dump to / load from JSON files
    - O(1) get/set/delete operations
    """

    def __init__(
        self,
        max_size: int = 1000,
        default_ttl: int = 3600,
        namespace: str = "cachewrap",
    ):
        """
        Initialize memory cache backend.

        Args:
            max_size: Maximum number of entries (LRU eviction when exceeded)
            default_ttl: Default TTL in seconds (0 = no expiry)
            namespace: Cache key namespace/prefix
        """
        self.max_size = max_size
        self.default_ttl = default_ttl
        self.namespace = namespace

        # Cache storage: namespaced encoded key -> (value, expiry_time)
        self._cache: OrderedDict[str, tuple[Any, float | None]] = OrderedDict()

        # Stats
        self._hits = 0
        self._misses = 0
        self._sets = 0
        self._deletes = 0
        self._evictions = 0

        self._lock = asyncio.Lock()

    def _make_key(self, key: Hashable) -> str:
        """Create namespaced cache key."""
        return f"{self.namespace}:{format_key(key)}"

    def _is_expired(self, expiry: float | None) -> bool:
        """Check if entry is expired."""
        if expiry is None:
            return False
        return time.time() > expiry

    def _expiry(self, ttl: int | None) -> float | None:
        if ttl is None:
            ttl = self.default_ttl
        return time.time() + ttl if ttl > 0 else None

    def _store(self, cache_key: str, value: Any, expiry: float | None) -> None:
        """Insert an entry, evicting the least recently used one when full. Caller holds the lock."""
        if cache_key not in self._cache and len(self._cache) >= self.max_size:
            evicted_key, _ = self._cache.popitem(last=False)
            self._evictions += 1
            logger.debug(f"Evicted key from memory cache: {evicted_key}")

        self._cache[cache_key] = (value, expiry)
        self._cache.move_to_end(cache_key)

    async def get(self, key: Hashable, opts: Mapping[str, Any] | None = None) -> Any:
        """Retrieve value from cache."""
        async with self._lock:
            cache_key = self._make_key(key)

            if cache_key not in self._cache:
                self._misses += 1
                return None

            value, expiry = self._cache[cache_key]

            if self._is_expired(expiry):
                del self._cache[cache_key]
                self._misses += 1
                return None

            # Mark as recently used
            self._cache.move_to_end(cache_key)
            self._hits += 1

            if option(opts, "return") == "entry":
                return CacheEntry(key=key, value=value, expires_at=expiry)
            return value

    async def set(
        self,
        key: Hashable,
        value: Any,
        opts: Mapping[str, Any] | None = None,
    ) -> Any:
        """Store value in cache."""
        async with self._lock:
            self._store(self._make_key(key), value, self._expiry(option(opts, "ttl")))
            self._sets += 1

        return set_result(opts, value)

    async def delete(self, key: Hashable) -> bool:
        """Delete key from cache."""
        async with self._lock:
            cache_key = self._make_key(key)

            if cache_key in self._cache:
                del self._cache[cache_key]
                self._deletes += 1
                return True

            return False

    async def exists(self, key: Hashable) -> bool:
        """Check if key exists and is not expired."""
        async with self._lock:
            cache_key = self._make_key(key)

            if cache_key not in self._cache:
                return False

            _, expiry = self._cache[cache_key]

            if self._is_expired(expiry):
                del self._cache[cache_key]
                return False

            return True

    async def flush(self) -> int:
        """Remove all entries from cache."""
        async with self._lock:
            size = len(self._cache)
            self._cache.clear()
            self._deletes += size

        logger.info(f"Flushed {size} entries from memory cache namespace '{self.namespace}'")
        return size

    async def get_stats(self) -> dict[str, Any]:
        """Get cache statistics."""
        async with self._lock:
            total_requests = self._hits + self._misses
            hit_rate = (self._hits / total_requests * 100) if total_requests > 0 else 0.0

            return {
                "backend": "memory",
                "size": len(self._cache),
                "max_size": self.max_size,
                "hits": self._hits,
                "misses": self._misses,
                "hit_rate": round(hit_rate, 2),
                "sets": self._sets,
                "deletes": self._deletes,
                "evictions": self._evictions,
                "namespace": self.namespace,
            }

    async def close(self) -> None:
        """Close cache and release resources."""
        # Nothing to release; data lives in-process
        logger.debug(f"Memory cache backend closed for namespace '{self.namespace}'")

    async def dump(self, path: str, opts: Mapping[str, Any] | None = None) -> int:
        """Write all live entries to ``path`` as JSON."""
        prefix = f"{self.namespace}:"
        async with self._lock:
            entries = [
                {"key": cache_key.removeprefix(prefix), "value": value, "expires_at": expiry}
                for cache_key, (value, expiry) in self._cache.items()
                if not self._is_expired(expiry)
            ]

        return await asyncio.to_thread(
            write_dump, path, self.namespace, entries, bool(option(opts, "compress", False))
        )

    async def load(self, path: str, opts: Mapping[str, Any] | None = None) -> int:
        """Load entries from a dump file, skipping the ones already expired."""
        entries = await asyncio.to_thread(read_dump, path)

        loaded = 0
        async with self._lock:
            for entry in entries:
                expiry = entry.get("expires_at")
                if self._is_expired(expiry):
                    continue
                # Keys in the file are already encoded
                self._store(f"{self.namespace}:{entry['key']}", entry.get("value"), expiry)
                loaded += 1

        logger.info(
            f"Loaded {loaded} entries into memory cache namespace '{self.namespace}' from {path}",
            extra={"path": path, "namespace": self.namespace, "entries": loaded},
        )
        return loaded
