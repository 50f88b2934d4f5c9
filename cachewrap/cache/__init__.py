"""
cachewrap - Cache Module

Cache handle protocol, backend interface, registry and bundled backends.

Usage:
    from cachewrap.cache import create_cache, get_cache

    cache = create_cache()
    await cache.set("key", "value", {"ttl": 3600})
    value = await cache.get("key")
"""

from .factory import (
    CacheRegistry,
    close_all_caches,
    create_cache,
    get_cache,
    get_registry,
    list_cache_instances,
    register_cache,
    reset_cache_factory,
)
from .interface import CacheEntry, CacheHandle, CacheInterface

__all__ = [
    # Registry
    "CacheRegistry",
    "get_registry",
    "create_cache",
    "register_cache",
    "get_cache",
    "close_all_caches",
    "list_cache_instances",
    "reset_cache_factory",
    # Interface
    "CacheEntry",
    "CacheHandle",
    "CacheInterface",
]
