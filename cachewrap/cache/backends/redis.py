"""
cachewrap - Redis Cache Backend

Asynchronous Redis cache implementation with:
- JSON serialization for values
- Per-key TTL support
- Namespace prefixing for safe multi-tenant usage
- Optional per-call timeout (``timeout`` option)

Requires: redis>=5.0 with asyncio support

Example:
    cache = RedisCacheBackend(redis_url="redis://localhost:6379", namespace="app", default_ttl=3600)
    await cache.set("greeting", {"msg": "hello"}, {"ttl": 60})
    val = await cache.get("greeting")
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from collections.abc import Awaitable, Hashable, Mapping
from typing import Any, TypeVar

from ...errors import CacheBackendError
from ..dumpfile import read_dump, write_dump
from ..interface import CacheEntry, CacheInterface, format_key, option, set_result

logger = logging.getLogger(__name__)

try:
    # redis-py asyncio client (v4+)
    from redis.asyncio import Redis
    from redis.exceptions import RedisError
except ImportError as e:  # pragma: no cover
    raise ImportError(
        "Redis async client is required but not installed. "
        "Install with: pip install 'redis>=5.0.0' or add 'redis' to your dependencies."
    ) from e

T = TypeVar("T")


class RedisCacheBackend(CacheInterface):
    """
    Redis cache backend with JSON serialization and TTL.

    Notes:
    - Keys are prefixed with the configured namespace to avoid collisions.
    - Values are stored as UTF-8 JSON strings.
    - TTL is applied via Redis EX seconds (None -> default_ttl, 0 -> no expiry).
    - Redis and timeout failures are raised as CacheBackendError.
    """

    def __init__(
        self,
        redis_url: str,
        namespace: str = "cachewrap",
        default_ttl: int = 3600,
        max_connections: int = 10,
        socket_timeout: int = 5,
        decode_responses: bool = True,
    ) -> None:
        """
        Initialize Redis cache backend.

        Args:
            redis_url: Connection URL, e.g., redis://localhost:6379/0 or rediss:// for TLS
            namespace: Prefix for all keys
            default_ttl: Default TTL in seconds (0 => no expiry)
            max_connections: Connection pool size
            socket_timeout: Socket timeout in seconds
            decode_responses: If True, values returned as str, not bytes
        """
        if not redis_url:
            raise ValueError("redis_url is required")

        self.namespace = namespace.strip() or "cachewrap"
        self.default_ttl = max(0, int(default_ttl))
        self._hits = 0
        self._misses = 0
        self._sets = 0
        self._deletes = 0

        # Lazy connection; connects on first command
        self._client = Redis.from_url(  # type: ignore[call-overload]
            url=redis_url,
            decode_responses=decode_responses,
            max_connections=max_connections,
            socket_timeout=socket_timeout,
        )

    # ------------ Helpers ------------

    def _make_key(self, key: Hashable) -> str:
        """Create namespaced key."""
        return f"{self.namespace}:{format_key(key)}"

    @staticmethod
    def _to_json(value: Any) -> str:
        """Serialize value to JSON string."""
        return json.dumps(value, ensure_ascii=False, separators=(",", ":"))

    @staticmethod
    def _from_json(data: str | bytes | None) -> Any | None:
        """Deserialize JSON string to Python object. Returns None if data is None."""
        if data is None:
            return None
        if isinstance(data, bytes):
            data = data.decode("utf-8")
        try:
            return json.loads(data)
        except ValueError as e:
            # Written by another client; hand back the raw data
            logger.warning(
                f"Failed to decode JSON from cache, returning raw data: {e}",
                extra={"data_preview": data[:100], "error": str(e)},
            )
            return data

    def _ttl_seconds(self, ttl: int | None) -> int | None:
        """
        Normalize TTL:
        - None -> default_ttl
        - 0 or negative -> no expiry (return None)
        - positive -> provided ttl
        """
        if ttl is None:
            ttl = self.default_ttl
        ttl = int(ttl)
        return ttl if ttl > 0 else None

    async def _execute(
        self,
        operation: str,
        call: Awaitable[T],
        timeout: float | None = None,
        key: Hashable | None = None,
    ) -> T:
        """Await a Redis call, converting client failures into CacheBackendError."""
        try:
            if timeout is not None:
                return await asyncio.wait_for(call, timeout)
            return await call
        except (RedisError, TimeoutError) as e:
            logger.error(
                f"Redis {operation} failed for namespace '{self.namespace}': {e}",
                extra={"operation": operation, "key": format_key(key) if key is not None else None,
                       "namespace": self.namespace, "error": str(e)},
            )
            raise CacheBackendError(
                f"Redis {operation} failed: {e}",
                operation=operation,
                details={"namespace": self.namespace, "error": str(e), "error_type": type(e).__name__},
            ) from e

    async def _scan_keys(self) -> list[str]:
        """List every key under the namespace using SCAN."""
        pattern = f"{self.namespace}:*"
        cursor = 0
        keys: list[str] = []

        while True:
            cursor, batch = await self._execute(
                "scan", self._client.scan(cursor=cursor, match=pattern, count=1000)
            )
            keys.extend(k.decode("utf-8") if isinstance(k, bytes) else k for k in batch)
            if cursor == 0:
                break

        return keys

    # ------------ Core Interface ------------

    async def get(self, key: Hashable, opts: Mapping[str, Any] | None = None) -> Any:
        """Retrieve a value by key."""
        ns_key = self._make_key(key)
        timeout = option(opts, "timeout")
        data = await self._execute("get", self._client.get(ns_key), timeout, key)
        if data is None:
            self._misses += 1
            return None

        self._hits += 1
        value = self._from_json(data)

        if option(opts, "return") == "entry":
            ttl_ms = await self._execute("pttl", self._client.pttl(ns_key), timeout, key)
            expires_at = time.time() + ttl_ms / 1000 if ttl_ms and ttl_ms > 0 else None
            return CacheEntry(key=key, value=value, expires_at=expires_at)
        return value

    async def set(self, key: Hashable, value: Any, opts: Mapping[str, Any] | None = None) -> Any:
        """Store a value with optional TTL."""
        try:
            payload = self._to_json(value)
        except (TypeError, ValueError) as e:
            raise CacheBackendError(
                f"Failed to serialize value for key '{format_key(key)}': {e}",
                operation="set",
                details={"key": format_key(key), "value_type": type(value).__name__, "error": str(e)},
            ) from e

        ex = self._ttl_seconds(option(opts, "ttl"))
        res = await self._execute(
            "set",
            self._client.set(name=self._make_key(key), value=payload, ex=ex),
            option(opts, "timeout"),
            key,
        )
        if not res:
            raise CacheBackendError(
                f"Redis refused to store key '{format_key(key)}'",
                operation="set",
                details={"key": format_key(key), "namespace": self.namespace},
            )

        self._sets += 1
        return set_result(opts, value)

    async def delete(self, key: Hashable) -> bool:
        """Delete a single key."""
        deleted = await self._execute("delete", self._client.delete(self._make_key(key)), key=key)
        if deleted:
            self._deletes += 1
        return bool(deleted)

    async def exists(self, key: Hashable) -> bool:
        """Check if a key exists."""
        return bool(await self._execute("exists", self._client.exists(self._make_key(key)), key=key))

    async def flush(self) -> int:
        """
        Remove all entries under the namespace.

        Implementation: SCAN match "<namespace>:*" and DEL in batches.
        """
        keys = await self._scan_keys()
        total_deleted = 0
        batch_size = 1000

        for i in range(0, len(keys), batch_size):
            total_deleted += int(await self._execute("flush", self._client.delete(*keys[i : i + batch_size])))

        self._deletes += total_deleted
        logger.info(f"Flushed {total_deleted} keys from namespace '{self.namespace}'")
        return total_deleted

    async def get_stats(self) -> dict[str, Any]:
        """Return cache statistics and basic Redis info."""
        stats: dict[str, Any] = {
            "backend": "redis",
            "namespace": self.namespace,
            "default_ttl": self.default_ttl,
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": 0.0,
            "sets": self._sets,
            "deletes": self._deletes,
            "connected": False,
        }

        total_requests = self._hits + self._misses
        stats["hit_rate"] = round((self._hits / total_requests) * 100, 2) if total_requests else 0.0

        try:
            stats["connected"] = bool(await self._client.ping())
            info = await self._client.info(section="server")
            stats["redis_version"] = info.get("redis_version")
            stats["redis_mode"] = info.get("redis_mode")
        except RedisError as e:
            # INFO may be restricted; stats stay minimal
            logger.warning(f"Failed to get Redis INFO (restricted or unavailable): {e}", extra={"error": str(e)})

        return stats

    async def close(self) -> None:
        """Close the Redis client and release resources."""
        try:
            await self._client.aclose()
            logger.info(f"Closed Redis cache backend for namespace '{self.namespace}'")
        finally:
            await self._client.connection_pool.disconnect()

    # ------------ Persistence ------------

    async def dump(self, path: str, opts: Mapping[str, Any] | None = None) -> int:
        """Write every key under the namespace to ``path`` as JSON."""
        keys = await self._scan_keys()
        prefix = f"{self.namespace}:"
        entries: list[dict[str, Any]] = []

        if keys:
            pipe = self._client.pipeline(transaction=False)
            for ns_key in keys:
                pipe.get(ns_key)
                pipe.pttl(ns_key)
            results = await self._execute("dump", pipe.execute())

            now = time.time()
            for i, ns_key in enumerate(keys):
                raw, ttl_ms = results[2 * i], results[2 * i + 1]
                if raw is None:
                    # Expired between SCAN and GET
                    continue
                entries.append(
                    {
                        "key": ns_key.removeprefix(prefix),
                        "value": self._from_json(raw),
                        "expires_at": now + ttl_ms / 1000 if ttl_ms and ttl_ms > 0 else None,
                    }
                )

        return await asyncio.to_thread(
            write_dump, path, self.namespace, entries, bool(option(opts, "compress", False))
        )

    async def load(self, path: str, opts: Mapping[str, Any] | None = None) -> int:
        """Load entries from a dump file, skipping the ones already expired."""
        entries = await asyncio.to_thread(read_dump, path)

        now = time.time()
        pipe = self._client.pipeline(transaction=False)
        loaded = 0

        for entry in entries:
            expires_at = entry.get("expires_at")
            px = None
            if expires_at is not None:
                px = int((expires_at - now) * 1000)
                if px <= 0:
                    continue
            pipe.set(f"{self.namespace}:{entry['key']}", self._to_json(entry.get("value")), px=px)
            loaded += 1

        if loaded:
            await self._execute("load", pipe.execute(), option(opts, "timeout"))

        logger.info(
            f"Loaded {loaded} entries into Redis namespace '{self.namespace}' from {path}",
            extra={"path": path, "namespace": self.namespace, "entries": loaded},
        )
        return loaded
