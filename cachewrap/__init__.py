"""
cachewrap - Declarative Caching Actions

Read-through caching, write-through eviction and write-through update
around arbitrary operations, against pluggable cache backends.
"""

__version__ = "1.0.0"

from .cache import (
    CacheEntry,
    CacheHandle,
    CacheInterface,
    CacheRegistry,
    create_cache,
    get_cache,
    register_cache,
)
from .caching import ActionKind, ActionSpec, cacheable, evict, resolve_action, update, wrap
from .errors import CacheBackendError, CachewrapError, ConfigurationError, NotFoundError
from .persistence import dump, load

__all__ = [
    # Decorators
    "cacheable",
    "evict",
    "update",
    "wrap",
    "resolve_action",
    "ActionKind",
    "ActionSpec",
    # Caches
    "CacheEntry",
    "CacheHandle",
    "CacheInterface",
    "CacheRegistry",
    "create_cache",
    "get_cache",
    "register_cache",
    # Persistence
    "dump",
    "load",
    # Errors
    "CachewrapError",
    "ConfigurationError",
    "CacheBackendError",
    "NotFoundError",
]
