"""
cachewrap - Caching Decorators

Attach a caching action to an operation by wrapping it explicitly.

The wrapper is always a coroutine function: the cache backends are async.
Coroutine functions are awaited inside it; plain functions are called
directly and block the event loop for as long as they run.

Example:
    from cachewrap import cacheable, evict, update

    @cacheable(cache=cache, key_builder=lambda user_id: ("user", user_id), opts={"ttl": 3600})
    async def get_user(user_id):
        return await repo.get(user_id)

    @cacheable(cache=cache, key=("user", "latest"), match=lambda v: v is not None)
    async def get_newest_user():
        return await repo.get_newest()

    @update(cache=cache, key_builder=lambda user, attrs: ("user", user.id))
    async def update_user(user, attrs):
        return await repo.update(user, attrs)

    @evict(cache=cache, keys_builder=lambda user: [("user", user.id), ("user", user.username)])
    async def delete_user(user):
        return await repo.delete(user)

Without ``key``/``key_builder`` the key is derived from the operation's module
and qualified name only, so all calls share ONE entry whatever their arguments.
"""

import functools
import logging
from collections.abc import Callable, Hashable, Iterable, Mapping
from typing import Any

from ..cache.interface import CacheHandle
from ..observability import get_observability
from .actions import ActionKind, ActionSpec, resolve_action
from .executors import execute
from .keys import operation_identity

logger = logging.getLogger(__name__)


def wrap(func: Callable[..., Any], spec: ActionSpec) -> Callable[..., Any]:
    """
    Wrap ``func`` so every call runs through the action described by ``spec``.

    The returned coroutine function exposes ``spec`` as ``action_spec``.
    Each call runs under a trace ID (the caller's, or a fresh one) so its
    log records can be correlated.
    """

    @functools.wraps(func)
    async def wrapper(*args: Any, **kwargs: Any) -> Any:
        with get_observability().trace_scope():
            return await execute(spec.bind(args, kwargs), lambda: func(*args, **kwargs))

    wrapper.action_spec = spec  # type: ignore[attr-defined]
    return wrapper


def caching_action(
    kind: ActionKind | str,
    **options: Any,
) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """
    Decorator factory for any action kind.

    Options left as None are treated as not given. The ActionSpec is resolved when
    the decorator is applied, so configuration errors surface at import time.

    Raises:
        ConfigurationError: When applied, if ``cache`` is missing or an option is invalid
    """
    declared = {name: value for name, value in options.items() if value is not None}

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        owner, operation = operation_identity(func)
        spec = resolve_action(kind, declared, owner, operation)
        return wrap(func, spec)

    return decorator


def cacheable(
    *,
    cache: CacheHandle | None = None,
    key: Hashable | None = None,
    key_builder: Callable[..., Hashable] | None = None,
    opts: Mapping[str, Any] | None = None,
    match: Callable[[Any], Any] | None = None,
) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """
    Read-through caching.

    The cached value is returned if present and the operation is not run;
    otherwise the operation runs and its result is stored when ``match``
    accepts it (always, by default).

    Args:
        cache: Cache handle (required)
        key: Cache key (default: derived from the operation identity)
        key_builder: Builds the key from the call arguments instead
        opts: Options for the backend get/set calls (e.g. ``{"ttl": 60}``)
        match: Predicate deciding whether a computed value is stored
    """
    return caching_action(
        ActionKind.CACHE,
        cache=cache,
        key=key,
        key_builder=key_builder,
        opts=opts,
        match=match,
    )


def evict(
    *,
    cache: CacheHandle | None = None,
    key: Hashable | None = None,
    key_builder: Callable[..., Hashable] | None = None,
    keys: Iterable[Hashable | None] | None = None,
    keys_builder: Callable[..., Iterable[Hashable | None]] | None = None,
    all_entries: bool = False,
) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """
    Write-through eviction.

    Deletes ``key`` and then each of ``keys`` (None entries skipped), or
    flushes the whole cache when ``all_entries`` is true, and only THEN runs
    the operation and returns its result.

    Args:
        cache: Cache handle (required)
        key: Key to delete (default: derived from the operation identity)
        key_builder: Builds the key from the call arguments instead
        keys: Further keys to delete, in order
        keys_builder: Builds the further keys from the call arguments instead
        all_entries: Flush the cache; ``key`` and ``keys`` are ignored
    """
    return caching_action(
        ActionKind.EVICT,
        cache=cache,
        key=key,
        key_builder=key_builder,
        keys=tuple(keys) if keys is not None else None,
        keys_builder=keys_builder,
        all_entries=all_entries,
    )


def update(
    *,
    cache: CacheHandle | None = None,
    key: Hashable | None = None,
    key_builder: Callable[..., Hashable] | None = None,
    opts: Mapping[str, Any] | None = None,
    match: Callable[[Any], Any] | None = None,
) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """
    Write-through update.

    The operation always runs; its result is stored under the key when
    ``match`` accepts it. Unlike ``cacheable`` an existing entry never
    short-circuits the call.

    Args:
        cache: Cache handle (required)
        key: Cache key (default: derived from the operation identity)
        key_builder: Builds the key from the call arguments instead
        opts: Options for the backend set call (e.g. ``{"ttl": 60}``)
        match: Predicate deciding whether the result is stored
    """
    return caching_action(
        ActionKind.UPDATE,
        cache=cache,
        key=key,
        key_builder=key_builder,
        opts=opts,
        match=match,
    )
