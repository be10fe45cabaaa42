"""Tests for focusvoice.core.context — follow-up resolution and the context store."""

import time

import pytest

from focusvoice.core.context import (
    CONTEXT_KEY,
    ContextStore,
    ConversationContext,
    resolve_pronouns,
    resolve_relative_duration,
)


def _ctx(**kwargs):
    base = dict(
        last_action="block",
        last_target="social",
        last_duration_minutes=30,
        last_intent={"action": "block", "target": "social", "duration_minutes": 30},
    )
    base.update(kwargs)
    return ConversationContext(**base)


class TestResolvePronouns:
    def test_replaces_pronoun(self):
        assert resolve_pronouns("block it for 10 minutes", _ctx()) == "block social for 10 minutes"

    def test_again_expands_to_full_command(self):
        ctx = _ctx(last_intent={"action": "block", "target": "social", "duration_minutes": 45})
        assert resolve_pronouns("do it again", ctx) == "Block social for 45 minutes"

    def test_no_context_passthrough(self):
        assert resolve_pronouns("block it", None) == "block it"


class TestResolveRelativeDuration:
    def test_longer_multiplies(self):
        assert resolve_relative_duration("longer", _ctx()) == {"target": "social", "duration_minutes": 45}

    def test_longer_rounds_half_up(self):
        result = resolve_relative_duration("extend it", _ctx(last_duration_minutes=15))
        assert result["duration_minutes"] == 23

    def test_add_minutes(self):
        result = resolve_relative_duration("add 10 minutes", _ctx())
        assert result == {"target": "social", "duration_minutes": 40}

    def test_for_more_minutes_defaults_base(self):
        result = resolve_relative_duration("for 5 more minutes", _ctx(last_duration_minutes=None))
        assert result["duration_minutes"] == 35

    def test_no_match(self):
        assert resolve_relative_duration("block games", _ctx()) is None

    def test_no_context(self):
        assert resolve_relative_duration("longer", None) is None


class TestContextStore:
    @pytest.mark.asyncio
    async def test_update_then_get(self, storage):
        store = ContextStore(storage, ttl_seconds=300)
        await store.update("block", "social", 30)
        ctx = await store.get()
        assert ctx.last_target == "social"
        assert storage.data[CONTEXT_KEY]["last_duration_minutes"] == 30

    @pytest.mark.asyncio
    async def test_expired_context_is_cleared(self, storage):
        storage.data[CONTEXT_KEY] = {
            "last_action": "block",
            "last_target": "social",
            "last_duration_minutes": 30,
            "last_intent": None,
            "last_plan": None,
            "timestamp": time.time() - 301,
        }
        store = ContextStore(storage, ttl_seconds=300)
        assert await store.get() is None
        assert CONTEXT_KEY not in storage.data

    @pytest.mark.asyncio
    async def test_clear(self, storage):
        store = ContextStore(storage, ttl_seconds=300)
        await store.update("block", "social", 30)
        await store.clear()
        assert await store.get() is None

    @pytest.mark.asyncio
    async def test_storage_failure_degrades_to_no_context(self, failing_storage):
        store = ContextStore(failing_storage, ttl_seconds=300)
        assert await store.get() is None
        ctx = await store.update("block", "social", 30)
        # Kept in memory even though the write failed
        assert (await store.get()) is ctx
