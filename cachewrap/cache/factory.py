"""
cachewrap - Cache Registry and Factory

Maps cache names to live cache handles.

A CacheRegistry is an explicit dependency: code that needs to look caches up
by name (e.g. the persistence delegate) receives a registry, while caching
actions receive an already resolved handle. The module-level functions operate
on a default registry for applications that only need one.

Examples:
    from cachewrap.cache.factory import create_cache, get_cache

    # Uses env-configured backend (memory by default)
    cache = create_cache()

    # Or explicitly supply a CacheConfig (e.g., for tests)
    from cachewrap.config import CacheConfig, CacheBackend
    cfg = CacheConfig(backend=CacheBackend.MEMORY, ttl_seconds=600)
    mem_cache = create_cache(cfg, name="test")

    # Redis toggle via env:
    #   CACHE_BACKEND=redis REDIS_URL=redis://localhost:6379
"""

from __future__ import annotations

import logging

from ..config import CacheBackend, CacheConfig, get_config
from ..errors import ConfigurationError, NotFoundError
from .backends.memory import MemoryCacheBackend
from .interface import CacheHandle, CacheInterface, is_cache_handle

logger = logging.getLogger(__name__)


def _create_memory_cache(config: CacheConfig) -> CacheInterface:
    """Internal helper to construct a memory cache backend."""
    return MemoryCacheBackend(
        max_size=config.max_size,
        default_ttl=config.ttl_seconds,
        namespace=config.namespace,
    )


def _create_redis_cache(config: CacheConfig) -> CacheInterface:
    """Internal helper to construct a redis cache backend with lazy import."""
    if not config.redis_url:
        raise ConfigurationError(
            "REDIS_URL must be set when CACHE_BACKEND=redis",
            details={"env": "REDIS_URL", "backend": "redis"},
        )

    # Lazy import to avoid hard dependency when memory backend is used
    try:
        from .backends.redis import RedisCacheBackend
    except ImportError as e:
        logger.error(
            "Redis backend selected but redis client is not installed",
            extra={"package": "redis>=5.0.0", "error": str(e)},
        )
        raise ConfigurationError(
            "Redis backend selected but redis client is unavailable. "
            "Install with: pip install 'redis>=5.0.0' or add to dependencies.",
            details={"package": "redis>=5.0.0", "error": str(e), "backend": "redis"},
        ) from e

    return RedisCacheBackend(
        redis_url=config.redis_url,
        namespace=config.namespace,
        default_ttl=config.ttl_seconds,
        max_connections=config.redis_max_connections,
        socket_timeout=config.redis_socket_timeout,
    )


class CacheRegistry:
    """
    Name -> cache handle mapping.

    Handles are registered explicitly or created from configuration;
    ``resolve`` never creates anything.
    """

    def __init__(self) -> None:
        self._instances: dict[str, CacheHandle] = {}

    def register(self, name: str, cache: CacheHandle) -> CacheHandle:
        """
        Register an existing cache handle under ``name``.

        Raises:
            ConfigurationError: If the name is taken or the object is not a cache handle
        """
        if not is_cache_handle(cache):
            raise ConfigurationError(
                f"Object registered as cache '{name}' does not provide get/set/delete/flush",
                details={"cache_name": name, "type": type(cache).__name__},
            )
        if name in self._instances:
            raise ConfigurationError(
                f"Cache '{name}' is already registered",
                details={"cache_name": name},
            )

        self._instances[name] = cache
        logger.debug("Registered cache instance: %s", name, extra={"cache_name": name})
        return cache

    def unregister(self, name: str) -> CacheHandle:
        """
        Remove ``name`` from the registry without closing it.

        Raises:
            NotFoundError: If the name is not registered
        """
        try:
            return self._instances.pop(name)
        except KeyError:
            raise NotFoundError("Cache", name) from None

    def resolve(self, name: str) -> CacheHandle:
        """
        Look up a registered cache handle.

        Raises:
            NotFoundError: If the name is not registered
        """
        try:
            return self._instances[name]
        except KeyError:
            raise NotFoundError("Cache", name) from None

    def __contains__(self, name: object) -> bool:
        return name in self._instances

    def create(self, config: CacheConfig | None = None, name: str = "default") -> CacheHandle:
        """
        Create a cache backend instance based on configuration and register it.

        Returns the existing instance if ``name`` is already registered.

        Args:
            config: Cache configuration (uses global config if not provided)
            name: Cache instance name (for multiple cache instances)

        Raises:
            ConfigurationError: If cache configuration is invalid or backend unavailable
        """
        if name in self._instances:
            logger.debug("Returning existing cache instance: %s", name)
            return self._instances[name]

        if config is None:
            config = get_config().cache

        logger.info(
            "Creating cache instance '%s' with backend: %s",
            name,
            config.backend,
            extra={"cache_name": name, "backend": str(config.backend)},
        )

        try:
            if config.backend == CacheBackend.MEMORY:
                cache = _create_memory_cache(config)
            elif config.backend == CacheBackend.REDIS:
                cache = _create_redis_cache(config)
            else:
                raise ConfigurationError(
                    f"Unknown cache backend: {config.backend}",
                    details={
                        "backend": str(config.backend),
                        "supported": ["memory", "redis"],
                    },
                )
        except ConfigurationError:
            raise
        except Exception as e:
            logger.error(
                "Unexpected error creating cache instance '%s': %s",
                name,
                e,
                extra={"cache_name": name, "backend": str(config.backend), "error": str(e)},
                exc_info=True,
            )
            raise ConfigurationError(
                f"Failed to create cache instance '{name}': {e}",
                details={"cache_name": name, "backend": str(config.backend), "error": str(e)},
            ) from e

        self._instances[name] = cache
        logger.info(
            "Cache instance '%s' created successfully",
            name,
            extra={"cache_name": name, "backend": str(config.backend)},
        )
        return cache

    def names(self) -> list[str]:
        """List all registered cache instance names."""
        return list(self._instances.keys())

    async def close_all(self) -> None:
        """
        Close all cache instances that support closing and empty the registry.

        A failure closing one instance is logged and does not stop the others.
        """
        if not self._instances:
            logger.debug("No cache instances to close")
            return

        logger.info("Closing %d cache instance(s)...", len(self._instances))

        for name, cache in list(self._instances.items()):
            close = getattr(cache, "close", None)
            if close is None:
                continue
            try:
                await close()
                logger.info("Closed cache instance: %s", name)
            except Exception as e:
                logger.error(
                    "Error closing cache instance '%s': %s",
                    name,
                    e,
                    extra={"cache_name": name, "error": str(e)},
                    exc_info=True,
                )

        self._instances.clear()
        logger.info("All cache instances closed")

    def reset(self) -> None:
        """
        Drop all instance references without closing them.

        Warning: Only use this in testing contexts.
        """
        count = len(self._instances)
        self._instances.clear()
        logger.debug("Reset cache registry, cleared %d instance reference(s)", count)


# Default registry used by the module-level helpers
_default_registry = CacheRegistry()


def get_registry() -> CacheRegistry:
    """Return the default registry."""
    return _default_registry


def create_cache(
    config: CacheConfig | None = None,
    name: str = "default",
) -> CacheHandle:
    """Create (or return the existing) cache named ``name`` in the default registry."""
    return _default_registry.create(config, name)


def register_cache(name: str, cache: CacheHandle) -> CacheHandle:
    """Register an existing cache handle in the default registry."""
    return _default_registry.register(name, cache)


def get_cache(name: str = "default") -> CacheHandle:
    """
    Get a cache instance by name from the default registry.

    If the instance doesn't exist, it is created from the global configuration.
    """
    if name not in _default_registry:
        logger.debug("Cache instance '%s' not found, creating new instance", name)
        return _default_registry.create(name=name)

    return _default_registry.resolve(name)


async def close_all_caches() -> None:
    """Close all cache instances of the default registry. Call during graceful shutdown."""
    await _default_registry.close_all()


def reset_cache_factory() -> None:
    """
    Clear the default registry without closing instances.

    Warning: Only use this in testing contexts.
    """
    _default_registry.reset()


def list_cache_instances() -> list[str]:
    """List all cache instance names of the default registry."""
    return _default_registry.names()
