"""
cachewrap - Cache Persistence

Dump a named cache to a file and load it back.

The cache is looked up in a CacheRegistry and the call is forwarded to the
cache's own ``dump``/``load``; this module does no I/O and keeps no state.
A name the registry cannot resolve raises NotFoundError before any backend call.
"""

import logging
from collections.abc import Mapping
from typing import Any

from .cache.factory import CacheRegistry, get_registry
from .errors import ConfigurationError

logger = logging.getLogger(__name__)


def _resolve_persistent(name: str, registry: CacheRegistry | None, operation: str) -> Any:
    cache = (registry or get_registry()).resolve(name)

    if not callable(getattr(cache, operation, None)):
        raise ConfigurationError(
            f"Cache '{name}' does not support {operation}",
            details={"cache_name": name, "operation": operation, "type": type(cache).__name__},
        )
    return cache


async def dump(
    name: str,
    path: str,
    opts: Mapping[str, Any] | None = None,
    *,
    registry: CacheRegistry | None = None,
) -> int:
    """
    Dump the cache registered as ``name`` to ``path``.

    Args:
        name: Registered cache name
        path: Destination file
        opts: Options for the backend (e.g. ``{"compress": True}``)
        registry: Registry to resolve ``name`` in (default registry if omitted)

    Returns:
        Number of entries written

    Raises:
        NotFoundError: If ``name`` is not registered
        CacheBackendError: If the backend fails to dump
    """
    cache = _resolve_persistent(name, registry, "dump")
    logger.debug(f"Dumping cache '{name}' to {path}", extra={"cache_name": name, "path": path})
    return await cache.dump(path, dict(opts or {}))


async def load(
    name: str,
    path: str,
    opts: Mapping[str, Any] | None = None,
    *,
    registry: CacheRegistry | None = None,
) -> int:
    """
    Load a dump file into the cache registered as ``name``.

    Returns:
        Number of entries loaded

    Raises:
        NotFoundError: If ``name`` is not registered
        CacheBackendError: If the backend fails to load
    """
    cache = _resolve_persistent(name, registry, "load")
    logger.debug(f"Loading cache '{name}' from {path}", extra={"cache_name": name, "path": path})
    return await cache.load(path, dict(opts or {}))
