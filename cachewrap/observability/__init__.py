"""
cachewrap - Observability Module

Single observability adapter for the caching core.

Usage:
    from cachewrap.observability import get_observability

    obs = get_observability()
    obs.increment("caching.hit", tags={"operation": "app.users.get_user"})

    with obs.trace("cache.get"):
        # traced code here
        pass
"""

from .monitoring import (
    JSONFormatter,
    ObservabilityAdapter,
    get_observability,
    initialize_observability,
    reset_observability,
)

__all__ = [
    "JSONFormatter",
    "ObservabilityAdapter",
    "get_observability",
    "initialize_observability",
    "reset_observability",
]
