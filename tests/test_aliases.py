"""Tests for focusvoice.core.aliases — named blocking targets and fuzzy lookup."""

import pytest

from focusvoice.core.aliases import ALIASES_KEY, AliasStore, find_closest, levenshtein, similarity


class TestFuzzyHelpers:
    def test_levenshtein(self):
        assert levenshtein("kitten", "sitting") == 3
        assert levenshtein("", "abc") == 3
        assert levenshtein("same", "same") == 0

    def test_similarity(self):
        assert similarity("Social", "social") == 1.0
        assert similarity("instagarm", "instagram") > 0.7

    def test_find_closest(self):
        assert find_closest("gmaes", ["games", "news"])[0] == "games"
        assert find_closest("xyz", ["games", "news"]) is None


class TestAliasStore:
    @pytest.mark.asyncio
    async def test_upsert_creates_and_updates(self, storage):
        store = AliasStore(storage)
        created = await store.upsert_alias("Social", {"apps": ["instagram"]}, ["Socials"])
        assert created.nickname == "social"
        assert created.synonyms == ["socials"]

        updated = await store.upsert_alias("social", {"apps": ["instagram", "tiktok"]})
        assert updated.id == created.id
        assert updated.tokens["apps"] == ["instagram", "tiktok"]
        assert updated.synonyms == ["socials"]
        assert len(storage.data[ALIASES_KEY]) == 1

    @pytest.mark.asyncio
    async def test_empty_nickname_rejected(self, storage):
        with pytest.raises(ValueError):
            await AliasStore(storage).upsert_alias("  ", {"apps": ["x"]})

    @pytest.mark.asyncio
    async def test_resolve_exact_synonym_fuzzy(self, storage):
        store = AliasStore(storage)
        await store.upsert_alias("instagram", {"apps": ["instagram"]}, ["insta"])
        await store.upsert_alias("games", {"categories": ["games"]})

        assert (await store.resolve_alias("Instagram")).nickname == "instagram"
        assert (await store.resolve_alias("insta")).nickname == "instagram"
        assert (await store.resolve_alias("instagarm")).nickname == "instagram"
        assert await store.resolve_alias("spreadsheet") is None
        assert await store.resolve_alias("") is None

    @pytest.mark.asyncio
    async def test_remove(self, storage):
        store = AliasStore(storage)
        await store.upsert_alias("games", {"categories": ["games"]})
        assert await store.remove_alias("Games") is True
        assert await store.remove_alias("games") is False
        assert await store.nicknames() == []

    @pytest.mark.asyncio
    async def test_record_use(self, storage):
        store = AliasStore(storage)
        await store.upsert_alias("games", {"categories": ["games"]})
        await store.record_use("games")
        await store.record_use("games")
        assert (await store.list_aliases())[0].usage_count == 2

    @pytest.mark.asyncio
    async def test_malformed_entries_skipped(self, storage):
        storage.data[ALIASES_KEY] = [{"bogus": True}, {"id": "a", "nickname": "ok"}]
        assert await AliasStore(storage).nicknames() == ["ok"]
