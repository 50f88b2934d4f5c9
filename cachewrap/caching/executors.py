"""
cachewrap - Caching Action Executors

Runs the backend call sequence of a resolved ActionSpec around a computation.

- cache:  get -> (hit) return | (miss) compute -> set if match
- evict:  flush | delete key, *keys -> compute
- update: compute -> set if match

Executors hold no state and take no locks. Concurrent misses on one key may
both compute and both store; the backend decides which write wins.
Errors from ``compute`` propagate unchanged and skip any pending store.
Backend failures propagate as CacheBackendError. Nothing is retried.
"""

import inspect
import logging
from collections.abc import Callable
from typing import Any

from ..errors import CacheBackendError, CachewrapError
from ..observability import get_observability
from .actions import ActionKind, ActionSpec

logger = logging.getLogger(__name__)

Compute = Callable[[], Any]


async def _invoke(compute: Compute) -> Any:
    """Run the wrapped computation, awaiting it when it is a coroutine."""
    result = compute()
    if inspect.isawaitable(result):
        result = await result
    return result


async def _backend_call(spec: ActionSpec, operation: str, method: Callable[..., Any], *args: Any) -> Any:
    """Call a cache handle method; failures surface as CacheBackendError."""
    try:
        result = method(*args)
        if inspect.isawaitable(result):
            result = await result
        return result
    except CachewrapError:
        raise
    except Exception as e:
        logger.error(
            f"Cache {operation} failed for {spec.operation}: {e}",
            extra={"operation": spec.operation, "cache_operation": operation, "error": str(e)},
        )
        raise CacheBackendError(
            f"Cache {operation} failed for {spec.operation}: {e}",
            operation=operation,
            details={"action": spec.kind.value, "error": str(e), "error_type": type(e).__name__},
        ) from e


async def _store_if_match(spec: ActionSpec, value: Any, tags: dict[str, str]) -> Any:
    """Store ``value`` under ``spec.key`` when it satisfies ``match``; return what the caller gets."""
    obs = get_observability()

    if not spec.match(value):
        obs.increment("caching.skip", tags=tags)
        logger.debug(f"Value not stored for {spec.operation}: match rejected it", extra=tags)
        return value

    stored = await _backend_call(spec, "set", spec.cache.set, spec.key, value, spec.options)
    obs.increment("caching.store", tags=tags)
    return stored


async def run_cacheable(spec: ActionSpec, compute: Compute) -> Any:
    """
    Read-through: return the cached value, computing and storing it on a miss.

    Issues exactly one ``get`` and at most one ``set``; ``compute`` runs only on a miss.
    """
    obs = get_observability()
    tags = {"operation": spec.operation}

    with obs.trace("caching.cache", tags=tags):
        value = await _backend_call(spec, "get", spec.cache.get, spec.key, spec.options)
        if value is not None:
            obs.increment("caching.hit", tags=tags)
            return value

        obs.increment("caching.miss", tags=tags)
        value = await _invoke(compute)
        return await _store_if_match(spec, value, tags)


async def run_evict(spec: ActionSpec, compute: Compute) -> Any:
    """
    Write-through delete: evict, then run ``compute`` and return its result.

    Eviction happens BEFORE the computation. If the computation then fails the
    entries are already gone, so the next read recomputes from the system of
    record; a concurrent read between eviction and write may re-cache the old value.

    With ``all_entries`` the cache is flushed and no key is deleted. Otherwise
    ``key`` and then every entry of ``keys`` is deleted in order, skipping None.
    """
    obs = get_observability()
    tags = {"operation": spec.operation}

    with obs.trace("caching.evict", tags=tags):
        if spec.all_entries:
            await _backend_call(spec, "flush", spec.cache.flush)
            obs.increment("caching.flush", tags=tags)
        else:
            for key in (spec.key, *spec.keys):
                if key is None:
                    continue
                await _backend_call(spec, "delete", spec.cache.delete, key)
                obs.increment("caching.evict", tags=tags)

        return await _invoke(compute)


async def run_update(spec: ActionSpec, compute: Compute) -> Any:
    """
    Write-through update: always run ``compute``, then store the result if it matches.
    """
    obs = get_observability()
    tags = {"operation": spec.operation}

    with obs.trace("caching.update", tags=tags):
        value = await _invoke(compute)
        obs.increment("caching.update", tags=tags)
        return await _store_if_match(spec, value, tags)


EXECUTORS: dict[ActionKind, Callable[[ActionSpec, Compute], Any]] = {
    ActionKind.CACHE: run_cacheable,
    ActionKind.EVICT: run_evict,
    ActionKind.UPDATE: run_update,
}


async def execute(spec: ActionSpec, compute: Compute) -> Any:
    """Run the executor matching ``spec.kind``."""
    return await EXECUTORS[spec.kind](spec, compute)
