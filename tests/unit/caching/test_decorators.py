"""
cachewrap - Caching Decorator Tests
"""

import inspect
from unittest.mock import AsyncMock, call

import pytest

from cachewrap.cache.backends.memory import MemoryCacheBackend
from cachewrap.caching import ActionKind, cacheable, caching_action, evict, update, wrap
from cachewrap.caching.actions import resolve_action
from cachewrap.caching.keys import derive_key
from cachewrap.config import reset_config
from cachewrap.errors import ConfigurationError
from cachewrap.observability import get_observability, reset_observability

VALUE_OPTS = {"return": "value"}


class TestWrap:
    """Tests for wrap()."""

    async def test_preserves_metadata(self, mock_cache: AsyncMock) -> None:
        def get_user(user_id):
            """Load a user."""
            return {"id": user_id}

        spec = resolve_action(ActionKind.CACHE, {"cache": mock_cache}, __name__, "get_user")
        wrapped = wrap(get_user, spec)

        assert wrapped.__name__ == "get_user"
        assert wrapped.__doc__ == "Load a user."
        assert wrapped.__wrapped__ is get_user
        assert wrapped.action_spec is spec

    async def test_wrapper_is_coroutine_function(self, mock_cache: AsyncMock) -> None:
        @cacheable(cache=mock_cache)
        def sync_operation():
            return 1

        assert inspect.iscoroutinefunction(sync_operation)
        assert await sync_operation() == 1

    async def test_arguments_reach_operation(self, mock_cache: AsyncMock) -> None:
        @update(cache=mock_cache, key="k")
        async def save(a, b, *, c=0):
            return a + b + c

        assert await save(1, 2, c=3) == 6


class TestCacheable:
    """Tests for @cacheable."""

    async def test_default_key_from_identity(self, mock_cache: AsyncMock) -> None:
        @cacheable(cache=mock_cache)
        async def get_config():
            return {"debug": True}

        await get_config()

        expected_key = derive_key(__name__, get_config.__qualname__)
        assert get_config.action_spec.key == expected_key
        assert mock_cache.mock_calls == [
            call.get(expected_key, VALUE_OPTS),
            call.set(expected_key, {"debug": True}, VALUE_OPTS),
        ]

    async def test_key_builder(self, memory_cache: MemoryCacheBackend) -> None:
        """A key builder gives each argument its own entry."""
        calls: list[int] = []

        @cacheable(cache=memory_cache, key_builder=lambda user_id: ("user", user_id))
        async def get_user(user_id):
            calls.append(user_id)
            return {"id": user_id}

        assert await get_user(1) == {"id": 1}
        assert await get_user(2) == {"id": 2}
        assert await get_user(1) == {"id": 1}

        assert calls == [1, 2]
        assert await memory_cache.get(("user", 2)) == {"id": 2}

    async def test_ttl_option(self, memory_cache: MemoryCacheBackend) -> None:
        @cacheable(cache=memory_cache, key="settings", opts={"ttl": 120})
        async def load_settings():
            return {"theme": "dark"}

        await load_settings()

        entry = await memory_cache.get("settings", {"return": "entry"})
        assert entry.value == {"theme": "dark"}
        assert entry.expires_at is not None

    def test_missing_cache_fails_at_decoration(self) -> None:
        with pytest.raises(ConfigurationError, match="expected cache to be given as argument"):

            @cacheable(key="k")
            async def operation():
                return 1

    def test_invalid_option_fails_at_decoration(self, mock_cache: AsyncMock) -> None:
        with pytest.raises(ConfigurationError):

            @cacheable(cache=mock_cache, key={"unhashable": True})
            async def operation():
                return 1


class TestEvict:
    """Tests for @evict."""

    async def test_keys(self, mock_cache: AsyncMock) -> None:
        @evict(cache=mock_cache, key="k1", keys=["k2", None, "k3"])
        async def delete_user(user_id):
            return user_id

        assert await delete_user(5) == 5
        assert mock_cache.mock_calls == [call.delete("k1"), call.delete("k2"), call.delete("k3")]

    async def test_keys_builder(self, mock_cache: AsyncMock) -> None:
        @evict(
            cache=mock_cache,
            key_builder=lambda user: ("user", user["id"]),
            keys_builder=lambda user: [("user", user["name"])],
        )
        async def delete_user(user):
            return True

        await delete_user({"id": 1, "name": "alice"})

        assert mock_cache.mock_calls == [call.delete(("user", 1)), call.delete(("user", "alice"))]

    async def test_all_entries(self, mock_cache: AsyncMock) -> None:
        @evict(cache=mock_cache, all_entries=True)
        async def reset_users():
            return "reset"

        assert await reset_users() == "reset"
        assert mock_cache.mock_calls == [call.flush()]


class TestUpdate:
    """Tests for @update."""

    async def test_overwrites_entry(self, memory_cache: MemoryCacheBackend) -> None:
        await memory_cache.set(("user", 1), {"id": 1, "name": "old"})

        @update(cache=memory_cache, key_builder=lambda user_id, name: ("user", user_id))
        async def rename(user_id, name):
            return {"id": user_id, "name": name}

        assert await rename(1, "new") == {"id": 1, "name": "new"}
        assert await memory_cache.get(("user", 1)) == {"id": 1, "name": "new"}


class TestCachingAction:
    """Tests for the generic caching_action factory."""

    async def test_string_kind(self, mock_cache: AsyncMock) -> None:
        @caching_action("update", cache=mock_cache, key="k")
        def compute():
            return 3

        assert await compute() == 3
        assert mock_cache.mock_calls == [call.set("k", 3, VALUE_OPTS)]

    def test_none_options_are_not_given(self, mock_cache: AsyncMock) -> None:
        @caching_action(ActionKind.CACHE, cache=mock_cache, key=None, match=None)
        def compute():
            return 3

        assert compute.action_spec.key == derive_key(__name__, compute.__qualname__)


class TestCallContext:
    """What a wrapped call does besides talking to the cache."""

    async def test_first_call_does_not_load_config(
        self, monkeypatch: pytest.MonkeyPatch, memory_cache: MemoryCacheBackend
    ) -> None:
        """An invalid environment cannot make a wrapped call fail."""
        monkeypatch.setenv("CACHE_MAX_SIZE", "lots")
        reset_config()
        reset_observability()

        @cacheable(cache=memory_cache, key="k")
        async def operation():
            return "value"

        assert await operation() == "value"
        assert await operation() == "value"

    async def test_call_runs_under_trace_id(self, mock_cache: AsyncMock) -> None:
        seen: list[str | None] = []
        obs = get_observability()

        @update(cache=mock_cache, key="k")
        async def operation():
            seen.append(obs.get_trace_id())
            return 1

        await operation()
        await operation()

        assert seen[0] is not None
        assert seen[0] != seen[1]
        assert obs.get_trace_id() is None

    async def test_call_reuses_caller_trace_id(self, mock_cache: AsyncMock) -> None:
        obs = get_observability()
        obs.set_trace_id("request-42")

        @update(cache=mock_cache, key="k")
        async def operation():
            return obs.get_trace_id()

        assert await operation() == "request-42"
