"""
Cache Invalidation Tests

Tests for CacheInvalidationDispatcher tag handling.
"""

from pathlib import Path
from unittest.mock import AsyncMock

import pytest

import sys
sys.path.insert(0, str(Path(__file__).parent.parent / "python"))

from cache import (
    CachedStatistics,
    CacheInvalidationDispatcher,
    CacheKeys,
    CacheStore,
    InvalidationType,
    InvalidCacheTypeError,
    StatisticsCache,
)


@pytest.fixture
def store() -> CacheStore:
    store = CacheStore()
    store.set(CacheKeys.company_item(1), {"id": 1}, ttl=60)
    store.set(CacheKeys.company_item(2), {"id": 2}, ttl=60)
    store.set(CacheKeys.company_list({"page": 1}), [], ttl=60)
    store.set(CacheKeys.company_count({}), 2, ttl=60)
    store.set(CacheKeys.company_search("acme", {}), [], ttl=60)
    store.set(CacheKeys.calendar_events({}), [], ttl=60)
    store.set(CacheKeys.notes_list({}), [], ttl=60)
    store.set(CacheKeys.resource_list("clients", {}), [], ttl=60)
    return store


@pytest.fixture
def statistics_cache() -> StatisticsCache:
    cache = StatisticsCache()
    cache.set(CachedStatistics(total_active=2))
    return cache


@pytest.fixture
def dispatcher(store, statistics_cache) -> CacheInvalidationDispatcher:
    return CacheInvalidationDispatcher(store, statistics_cache)


class TestDispatch:
    """Tests for dispatch()."""

    @pytest.mark.asyncio
    async def test_unknown_tag(self, dispatcher):
        with pytest.raises(InvalidCacheTypeError) as exc_info:
            await dispatcher.dispatch("everything")

        assert "company-list" in exc_info.value.valid_types
        assert isinstance(exc_info.value, ValueError)

    @pytest.mark.asyncio
    async def test_company_requires_id(self, dispatcher):
        with pytest.raises(ValueError):
            await dispatcher.dispatch("company")

    @pytest.mark.asyncio
    async def test_company(self, dispatcher, store):
        result = await dispatcher.dispatch("company", 1)

        assert result.to_dict() == {"type": "company", "removed": True, "success": True}
        assert store.get(CacheKeys.company_item(1)) is None
        assert store.get(CacheKeys.company_item(2)) is not None

    @pytest.mark.asyncio
    async def test_company_list_clears_lists_and_counts(self, dispatcher, store):
        result = await dispatcher.dispatch("company-list")

        assert result.removed == 2
        assert store.get(CacheKeys.company_search("acme", {})) is not None

    @pytest.mark.asyncio
    async def test_company_stats(self, dispatcher, statistics_cache):
        result = await dispatcher.dispatch("company-stats")

        assert result.removed is True
        assert statistics_cache.get() is None

    @pytest.mark.asyncio
    async def test_search(self, dispatcher):
        assert (await dispatcher.dispatch("search")).removed == 1

    @pytest.mark.asyncio
    async def test_calendar_and_notes(self, dispatcher, store):
        assert (await dispatcher.dispatch("calendar")).removed == 1
        assert (await dispatcher.dispatch("notes")).removed == 1
        assert store.get(CacheKeys.calendar_events({})) is None

    @pytest.mark.asyncio
    async def test_idempotent_on_empty_caches(self, dispatcher):
        """Test repeating an action reports nothing removed instead of failing."""
        await dispatcher.dispatch("all")

        for tag in InvalidationType.values():
            if tag in ("company", "warm-up"):
                continue
            result = await dispatcher.dispatch(tag)
            assert result.success is True
            assert not result.removed

    @pytest.mark.asyncio
    async def test_all(self, dispatcher, store, statistics_cache):
        result = await dispatcher.dispatch("all")

        assert result.removed == 9
        assert len(store) == 0
        assert statistics_cache.get() is None

    @pytest.mark.asyncio
    async def test_warm_up_runs_warmers(self, store, statistics_cache):
        warmer = AsyncMock()
        dispatcher = CacheInvalidationDispatcher(store, statistics_cache, warmers=[warmer])

        result = await dispatcher.dispatch("warm-up")

        assert result.removed is True
        warmer.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_failing_warmer_reports_false(self, dispatcher):
        dispatcher.register_warmer(AsyncMock(side_effect=RuntimeError("boom")))

        result = await dispatcher.dispatch("warm-up")

        assert result.removed is False


class TestMutationHooks:
    """Tests for the mutation helpers."""

    def test_company_mutation(self, dispatcher, store, statistics_cache):
        result = dispatcher.on_company_mutation(1)

        # item + list + count + statistics
        assert result.removed == 4
        assert result.success is True
        assert store.get(CacheKeys.company_item(1)) is None
        assert statistics_cache.get() is None

    def test_company_mutation_continues_after_failure(self, dispatcher, statistics_cache, monkeypatch):
        """Test a failing step does not stop the remaining steps."""
        def broken():
            raise RuntimeError("boom")

        monkeypatch.setattr(dispatcher, "invalidate_company_lists", broken)

        result = dispatcher.on_company_mutation(1)

        assert result.success is False
        assert statistics_cache.get() is None

    def test_resource_mutation(self, dispatcher, store):
        result = dispatcher.on_resource_mutation("clients")

        assert result.tag == "clients"
        assert result.removed == 1
        assert store.get(CacheKeys.resource_list("clients", {})) is None
        assert store.get(CacheKeys.company_item(1)) is not None

    def test_resource_mutation_scoped_to_company(self, dispatcher, store):
        result = dispatcher.on_resource_mutation("clients", 2)

        assert result.removed == 5
        assert store.get(CacheKeys.company_item(2)) is None
