"""
cachewrap - Caching Actions

Declarative read-through (cache), write-through delete (evict) and
write-through update (update) around arbitrary operations.
"""

from .actions import ActionKind, ActionSpec, always_match, resolve_action
from .decorators import cacheable, caching_action, evict, update, wrap
from .executors import execute, run_cacheable, run_evict, run_update
from .keys import derive_key, operation_identity

__all__ = [
    # Decorators
    "cacheable",
    "evict",
    "update",
    "caching_action",
    "wrap",
    # Resolution
    "ActionKind",
    "ActionSpec",
    "resolve_action",
    "always_match",
    "derive_key",
    "operation_identity",
    # Executors
    "execute",
    "run_cacheable",
    "run_evict",
    "run_update",
]
