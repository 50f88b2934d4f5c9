"""
cachewrap - Action Resolution Tests

Tests for turning declared options into an immutable ActionSpec.
"""

import dataclasses
from unittest.mock import AsyncMock

import pytest

from cachewrap.caching.actions import ActionKind, ActionSpec, always_match, resolve_action
from cachewrap.caching.keys import derive_key
from cachewrap.errors import ConfigurationError

OWNER = "app.users"
OPERATION = "get_user"


class TestResolveAction:
    """Tests for resolve_action."""

    def test_minimal_cache_action(self, mock_cache: AsyncMock) -> None:
        """Only ``cache`` is required; everything else gets a default."""
        spec = resolve_action(ActionKind.CACHE, {"cache": mock_cache}, OWNER, OPERATION)

        assert isinstance(spec, ActionSpec)
        assert spec.kind is ActionKind.CACHE
        assert spec.cache is mock_cache
        assert spec.key == derive_key(OWNER, OPERATION)
        assert spec.keys == ()
        assert dict(spec.options) == {"return": "value"}
        assert spec.match is always_match
        assert spec.all_entries is False
        assert spec.operation == "app.users.get_user"

    def test_kind_given_as_string(self, mock_cache: AsyncMock) -> None:
        spec = resolve_action("evict", {"cache": mock_cache}, OWNER, OPERATION)
        assert spec.kind is ActionKind.EVICT

    def test_unknown_kind(self, mock_cache: AsyncMock) -> None:
        with pytest.raises(ConfigurationError, match="Unknown caching action"):
            resolve_action("refresh", {"cache": mock_cache}, OWNER, OPERATION)

    @pytest.mark.parametrize("kind", list(ActionKind))
    def test_missing_cache(self, kind: ActionKind) -> None:
        """A missing cache is a configuration error for every action."""
        with pytest.raises(ConfigurationError, match="expected cache to be given as argument") as exc_info:
            resolve_action(kind, {"key": "k"}, OWNER, OPERATION)

        assert exc_info.value.details["option"] == "cache"

    def test_cache_none_counts_as_missing(self) -> None:
        with pytest.raises(ConfigurationError, match="expected cache"):
            resolve_action(ActionKind.CACHE, {"cache": None}, OWNER, OPERATION)

    def test_cache_without_capabilities(self) -> None:
        """Objects lacking get/set/delete/flush are rejected."""
        with pytest.raises(ConfigurationError, match="does not provide"):
            resolve_action(ActionKind.CACHE, {"cache": object()}, OWNER, OPERATION)

    def test_explicit_key_is_kept(self, mock_cache: AsyncMock) -> None:
        spec = resolve_action(ActionKind.CACHE, {"cache": mock_cache, "key": ("user", 1)}, OWNER, OPERATION)
        assert spec.key == ("user", 1)

    def test_return_option_is_forced(self, mock_cache: AsyncMock) -> None:
        """``return`` is always "value" whatever was declared; other options pass through."""
        spec = resolve_action(
            ActionKind.CACHE,
            {"cache": mock_cache, "opts": {"ttl": 60, "return": "entry"}},
            OWNER,
            OPERATION,
        )
        assert dict(spec.options) == {"ttl": 60, "return": "value"}

    def test_options_are_read_only(self, mock_cache: AsyncMock) -> None:
        spec = resolve_action(ActionKind.CACHE, {"cache": mock_cache, "opts": {"ttl": 60}}, OWNER, OPERATION)

        with pytest.raises(TypeError):
            spec.options["ttl"] = 1  # type: ignore[index]

    def test_declared_opts_not_mutated(self, mock_cache: AsyncMock) -> None:
        opts = {"ttl": 60}
        resolve_action(ActionKind.CACHE, {"cache": mock_cache, "opts": opts}, OWNER, OPERATION)
        assert opts == {"ttl": 60}

    def test_spec_is_frozen(self, mock_cache: AsyncMock) -> None:
        spec = resolve_action(ActionKind.CACHE, {"cache": mock_cache}, OWNER, OPERATION)

        with pytest.raises(dataclasses.FrozenInstanceError):
            spec.key = "other"  # type: ignore[misc]

    def test_evict_keys_and_all_entries(self, mock_cache: AsyncMock) -> None:
        spec = resolve_action(
            ActionKind.EVICT,
            {"cache": mock_cache, "key": "k1", "keys": ("k2", None, "k3"), "all_entries": True},
            OWNER,
            OPERATION,
        )
        assert spec.key == "k1"
        assert spec.keys == ("k2", None, "k3")
        assert spec.all_entries is True

    def test_unknown_option_rejected(self, mock_cache: AsyncMock) -> None:
        """Misspelled options fail loudly instead of being ignored."""
        with pytest.raises(ConfigurationError, match="Invalid cache options") as exc_info:
            resolve_action(ActionKind.CACHE, {"cache": mock_cache, "ttl": 60}, OWNER, OPERATION)

        assert exc_info.value.details["validation_errors"]

    def test_unhashable_key_rejected(self, mock_cache: AsyncMock) -> None:
        with pytest.raises(ConfigurationError):
            resolve_action(ActionKind.CACHE, {"cache": mock_cache, "key": ["not", "hashable"]}, OWNER, OPERATION)

    def test_tuple_holding_unhashable_key_rejected(self, mock_cache: AsyncMock) -> None:
        """A tuple is only hashable if everything inside it is."""
        with pytest.raises(ConfigurationError):
            resolve_action(ActionKind.CACHE, {"cache": mock_cache, "key": ("a", [1])}, OWNER, OPERATION)

    def test_tuple_holding_unhashable_keys_entry_rejected(self, mock_cache: AsyncMock) -> None:
        with pytest.raises(ConfigurationError):
            resolve_action(
                ActionKind.EVICT,
                {"cache": mock_cache, "keys": ("ok", None, ("a", [1]))},
                OWNER,
                OPERATION,
            )

    def test_all_entries_must_be_bool(self, mock_cache: AsyncMock) -> None:
        with pytest.raises(ConfigurationError):
            resolve_action(ActionKind.EVICT, {"cache": mock_cache, "all_entries": "yes"}, OWNER, OPERATION)

    def test_key_and_key_builder_exclusive(self, mock_cache: AsyncMock) -> None:
        with pytest.raises(ConfigurationError):
            resolve_action(
                ActionKind.CACHE,
                {"cache": mock_cache, "key": "k", "key_builder": lambda user_id: user_id},
                OWNER,
                OPERATION,
            )

    def test_keys_and_keys_builder_exclusive(self, mock_cache: AsyncMock) -> None:
        with pytest.raises(ConfigurationError):
            resolve_action(
                ActionKind.EVICT,
                {"cache": mock_cache, "keys": ("a",), "keys_builder": lambda: ["b"]},
                OWNER,
                OPERATION,
            )

    def test_key_builder_leaves_key_unset(self, mock_cache: AsyncMock) -> None:
        """With a key builder no default key is derived."""
        spec = resolve_action(
            ActionKind.CACHE,
            {"cache": mock_cache, "key_builder": lambda user_id: ("user", user_id)},
            OWNER,
            OPERATION,
        )
        assert spec.key is None
        assert spec.key_builder is not None


class TestActionSpecBind:
    """Tests for ActionSpec.bind."""

    def test_without_builders_returns_self(self, mock_cache: AsyncMock) -> None:
        spec = resolve_action(ActionKind.CACHE, {"cache": mock_cache}, OWNER, OPERATION)
        assert spec.bind((1,), {}) is spec

    def test_key_builder(self, mock_cache: AsyncMock) -> None:
        spec = resolve_action(
            ActionKind.CACHE,
            {"cache": mock_cache, "key_builder": lambda user_id, active=True: ("user", user_id, active)},
            OWNER,
            OPERATION,
        )

        bound = spec.bind((7,), {"active": False})

        assert bound.key == ("user", 7, False)
        assert spec.key is None

    def test_keys_builder(self, mock_cache: AsyncMock) -> None:
        spec = resolve_action(
            ActionKind.EVICT,
            {"cache": mock_cache, "keys_builder": lambda user: [("user", user["id"]), ("user", user["name"])]},
            OWNER,
            OPERATION,
        )

        bound = spec.bind(({"id": 1, "name": "alice"},), {})

        assert bound.keys == (("user", 1), ("user", "alice"))
        # Default key is still derived for evict with a keys builder
        assert bound.key == derive_key(OWNER, OPERATION)
