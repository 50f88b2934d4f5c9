"""
cachewrap - Caching Action Resolution

Turns the options declared for a caching action into an immutable ActionSpec.
Resolution runs once per wrapped operation (at decoration time); every call
of the operation reuses the resulting spec.

Declared options:
- cache: resolved cache handle (required)
- key: explicit cache key (default: derived from the operation identity)
- key_builder: callable building the key from the call arguments
- keys: extra keys to delete (evict only)
- keys_builder: callable building the extra keys from the call arguments (evict only)
- opts: options passed to the backend calls; ``return`` is always forced to "value"
- match: predicate deciding whether a computed value is stored (cache/update only)
- all_entries: flush the whole cache instead of deleting keys (evict only)
"""

import logging
from collections.abc import Callable, Hashable, Iterable, Mapping
from dataclasses import dataclass, replace
from enum import Enum
from types import MappingProxyType
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, StrictBool, ValidationError, field_validator, model_validator

from ..cache.interface import CacheHandle, is_cache_handle
from ..errors import ConfigurationError
from .keys import derive_key

logger = logging.getLogger(__name__)


class ActionKind(str, Enum):
    """Caching actions that can wrap an operation."""

    CACHE = "cache"  # read-through
    EVICT = "evict"  # write-through delete
    UPDATE = "update"  # write-through update


def always_match(value: Any) -> bool:
    """Default predicate: store every value."""
    return True


class ActionOptions(BaseModel):
    """Validation schema for declared action options."""

    cache: Any = Field(..., description="Resolved cache handle")
    key: Any = Field(default=None, description="Explicit cache key")
    key_builder: Callable[..., Any] | None = Field(default=None, description="Builds the key from call arguments")
    keys: tuple[Any, ...] = Field(default=(), description="Extra keys to evict")
    keys_builder: Callable[..., Any] | None = Field(default=None, description="Builds extra keys from call arguments")
    opts: dict[str, Any] = Field(default_factory=dict, description="Backend call options")
    match: Callable[[Any], Any] | None = Field(default=None, description="Store predicate")
    all_entries: StrictBool = Field(default=False, description="Flush instead of deleting keys")

    model_config = ConfigDict(extra="forbid", arbitrary_types_allowed=True)

    @field_validator("key")
    @classmethod
    def validate_key(cls, v: Any) -> Any:
        """Keys must be hashable."""
        if v is not None:
            try:
                hash(v)
            except TypeError as e:
                raise ValueError(f"key must be hashable: {e}") from e
        return v

    @field_validator("keys")
    @classmethod
    def validate_keys(cls, v: tuple[Any, ...]) -> tuple[Any, ...]:
        """Every extra key must be hashable (None entries are allowed and skipped)."""
        for k in v:
            if k is None:
                continue
            try:
                hash(k)
            except TypeError as e:
                raise ValueError(f"keys entries must be hashable: {e}") from e
        return v

    @model_validator(mode="after")
    def validate_exclusive(self) -> "ActionOptions":
        """A key source may be given either as a value or as a builder, not both."""
        if self.key is not None and self.key_builder is not None:
            raise ValueError("key and key_builder are mutually exclusive")
        if self.keys and self.keys_builder is not None:
            raise ValueError("keys and keys_builder are mutually exclusive")
        return self


@dataclass(frozen=True)
class ActionSpec:
    """
    Resolved, immutable description of a caching action.

    Attributes:
        kind: Which action runs around the operation
        cache: Cache handle the action talks to
        key: Cache key (None only until bound when a key_builder is set)
        keys: Extra keys deleted by the evict action, in order
        options: Backend call options, always carrying ``return="value"``
        match: Store predicate for cache/update
        all_entries: Evict flushes the cache instead of deleting keys
        operation: ``owner.operation`` identity used in logs and metrics
        key_builder: Builds ``key`` from the call arguments
        keys_builder: Builds ``keys`` from the call arguments
    """

    kind: ActionKind
    cache: CacheHandle
    key: Hashable | None
    keys: tuple[Hashable | None, ...]
    options: Mapping[str, Any]
    match: Callable[[Any], Any]
    all_entries: bool
    operation: str
    key_builder: Callable[..., Hashable] | None = None
    keys_builder: Callable[..., Iterable[Hashable | None]] | None = None

    def bind(self, args: tuple[Any, ...], kwargs: Mapping[str, Any]) -> "ActionSpec":
        """
        Return the ActionSpec to execute for one call.

        Without key builders this is ``self``; with builders, a copy
        carrying the keys built from ``args``/``kwargs``.
        """
        if self.key_builder is None and self.keys_builder is None:
            return self

        changes: dict[str, Any] = {}
        if self.key_builder is not None:
            changes["key"] = self.key_builder(*args, **kwargs)
        if self.keys_builder is not None:
            changes["keys"] = tuple(self.keys_builder(*args, **kwargs))
        return replace(self, **changes)


def resolve_action(
    kind: ActionKind | str,
    declared_options: Mapping[str, Any],
    owner: str,
    operation: str,
) -> ActionSpec:
    """
    Validate and normalize declared options into an ActionSpec.

    Args:
        kind: Action to build
        declared_options: Options as declared on the operation
        owner: Module the operation belongs to
        operation: Qualified name of the operation

    Returns:
        Immutable ActionSpec

    Raises:
        ConfigurationError: If ``cache`` is missing or any option is invalid
    """
    identity = f"{owner}.{operation}"

    try:
        kind = ActionKind(kind)
    except ValueError:
        raise ConfigurationError(
            f"Unknown caching action: {kind}",
            details={"operation": identity, "kind": str(kind), "supported": [k.value for k in ActionKind]},
        ) from None

    if declared_options.get("cache") is None:
        raise ConfigurationError(
            f"expected cache to be given as argument for {kind.value} on {identity}",
            details={"operation": identity, "kind": kind.value, "option": "cache"},
        )

    try:
        parsed = ActionOptions(**declared_options)
    except ValidationError as e:
        logger.error(
            f"Invalid {kind.value} options for {identity}: {e}",
            extra={"operation": identity, "validation_errors": e.errors(include_url=False)},
        )
        raise ConfigurationError(
            f"Invalid {kind.value} options for {identity}",
            details={"operation": identity, "validation_errors": e.errors(include_url=False)},
        ) from e

    if not is_cache_handle(parsed.cache):
        raise ConfigurationError(
            f"cache for {identity} does not provide get/set/delete/flush",
            details={"operation": identity, "type": type(parsed.cache).__name__},
        )

    key = parsed.key
    if key is None and parsed.key_builder is None:
        key = derive_key(owner, operation)

    spec = ActionSpec(
        kind=kind,
        cache=parsed.cache,
        key=key,
        keys=parsed.keys,
        options=MappingProxyType({**parsed.opts, "return": "value"}),
        match=parsed.match or always_match,
        all_entries=parsed.all_entries,
        operation=identity,
        key_builder=parsed.key_builder,
        keys_builder=parsed.keys_builder,
    )

    logger.debug(
        f"Resolved {kind.value} action for {identity}",
        extra={"operation": identity, "kind": kind.value, "key": repr(key), "all_entries": spec.all_entries},
    )
    return spec
