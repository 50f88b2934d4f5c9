"""
cachewrap - Default Cache Keys

A default key is derived from the identity of the wrapped operation only.
Call arguments are NOT part of it: every call of an operation without an
explicit key shares one cache slot. Callers needing one entry per argument
set pass ``key_builder`` instead.
"""

import hashlib
from collections.abc import Callable
from typing import Any


def derive_key(owner: str, operation: str) -> str:
    """
    Derive the default cache key for an operation.

    Stable across calls and processes (content hash, not ``hash()``).

    Args:
        owner: Module (or other namespace) the operation belongs to
        operation: Qualified name of the operation within ``owner``

    Returns:
        16 hex characters identifying ``(owner, operation)``
    """
    identity = f"{owner}:{operation}".encode()
    return hashlib.blake2b(identity, digest_size=8).hexdigest()


def operation_identity(func: Callable[..., Any]) -> tuple[str, str]:
    """Return ``(owner, operation)`` for a callable: its module and qualified name."""
    owner = getattr(func, "__module__", None) or "__main__"
    operation = getattr(func, "__qualname__", None) or getattr(func, "__name__", None) or repr(func)
    return owner, operation
