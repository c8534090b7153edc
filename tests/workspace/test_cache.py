"""
Unit tests for the entity cache: ordering, staleness and invalidation.
"""

import pytest

from techdesk.api.entities import EntityKey, EntityKind, Site
from techdesk.core.errors import NetworkError, StaleDataWarning
from techdesk.workspace.cache import CacheEntry, CacheState, EntityCache


SITES = EntityKey(EntityKind.SITE)
S1 = SITES.item("S1")


@pytest.fixture
def cache(clock):
    return EntityCache(ttl_seconds=300.0, clock=clock)


class TestCacheEntry:
    def test_constructors(self):
        loading = CacheEntry.loading(5.0)
        ready = CacheEntry.ready(["x"], 6.0)
        failed = CacheEntry.failed(NetworkError("down"), 9.0, started_at=7.0)

        assert loading.is_loading and loading.started_at == 5.0
        assert ready.is_ready and ready.fetched_at == 6.0 and ready.value == ["x"]
        assert failed.is_failed and failed.failed_at == 9.0 and failed.started_at == 7.0

    def test_failed_defaults_started_at_to_failed_at(self):
        failed = CacheEntry.failed(NetworkError("down"), 9.0)
        assert failed.started_at == 9.0

    def test_to_dict_serializes_records(self):
        entry = CacheEntry.ready([Site(id="S1", name="Acme", raw={"uid": "S1"})], 1.0)
        data = entry.to_dict()

        assert data["state"] == "ready"
        assert data["stale"] is False
        assert data["value"][0]["id"] == "S1"
        assert "raw" not in data["value"][0]

    def test_to_dict_failed(self):
        data = CacheEntry.failed(NetworkError("vendor down"), 2.0).to_dict()
        assert data == {
            "state": "failed",
            "started_at": 2.0,
            "error": "vendor down",
            "error_type": "NetworkError",
        }


class TestEntityCacheReads:
    def test_get_absent_is_none(self, cache):
        assert cache.get(S1) is None
        assert S1 not in cache

    def test_get_returns_stored_entry(self, cache, clock):
        cache.put(S1, CacheEntry.ready("site", clock()))
        entry = cache.get(S1)

        assert entry.state is CacheState.READY
        assert entry.value == "site"
        assert entry.stale is False
        assert entry.warning is None

    def test_ready_entry_becomes_stale_after_ttl(self, cache, clock):
        cache.put(S1, CacheEntry.ready("site", clock()))
        clock.advance(301)

        entry = cache.get(S1)
        assert entry.stale is True
        assert entry.value == "site"
        assert isinstance(entry.warning, StaleDataWarning)
        assert cache.is_stale(S1)

    def test_snapshot_preserves_order_and_absence(self, cache, clock):
        cache.put(SITES, CacheEntry.ready([], clock()))
        entries = cache.snapshot([S1, SITES])

        assert entries[0] is None
        assert entries[1].is_ready


class TestEntityCacheOrdering:
    def test_older_fetch_cannot_overwrite_newer(self, cache):
        assert cache.put(S1, CacheEntry.ready("new", 20.0))
        assert not cache.put(S1, CacheEntry.ready("old", 10.0))
        assert cache.get(S1).value == "new"

    def test_older_failure_cannot_overwrite_newer_value(self, cache):
        cache.put(S1, CacheEntry.ready("new", 20.0))
        assert not cache.put(S1, CacheEntry.failed(NetworkError("x"), 30.0, started_at=10.0))
        assert cache.get(S1).is_ready

    def test_equal_start_is_accepted(self, cache):
        cache.put(S1, CacheEntry.loading(10.0))
        assert cache.put(S1, CacheEntry.ready("v", 10.0))
        assert cache.get(S1).is_ready

    def test_loading_never_hides_ready(self, cache):
        cache.put(S1, CacheEntry.ready("v", 10.0))
        assert not cache.put(S1, CacheEntry.loading(20.0))
        assert cache.get(S1).value == "v"

    def test_loading_replaces_failed(self, cache):
        cache.put(S1, CacheEntry.failed(NetworkError("x"), 10.0))
        assert cache.put(S1, CacheEntry.loading(20.0))
        assert cache.get(S1).is_loading


class TestEntityCacheInvalidate:
    def test_invalidate_marks_ready_stale(self, cache, clock):
        cache.put(S1, CacheEntry.ready("v", clock()))
        clock.advance(1)
        cache.invalidate(S1)

        entry = cache.get(S1)
        assert entry.is_ready and entry.stale
        assert cache.invalidated_at(S1) == clock()

    def test_newer_ready_clears_invalidation(self, cache, clock):
        cache.put(S1, CacheEntry.ready("v1", clock()))
        clock.advance(1)
        cache.invalidate(S1)
        clock.advance(1)
        cache.put(S1, CacheEntry.ready("v2", clock()))

        entry = cache.get(S1)
        assert entry.value == "v2"
        assert entry.stale is False
        assert cache.invalidated_at(S1) is None

    def test_ready_from_fetch_started_before_invalidation_stays_stale(self, cache, clock):
        started = clock()
        cache.put(S1, CacheEntry.loading(started))
        clock.advance(1)
        cache.invalidate(S1)
        cache.put(S1, CacheEntry.ready("v", started))

        assert cache.get(S1).stale is True

    def test_invalidate_drops_failed(self, cache, clock):
        cache.put(S1, CacheEntry.failed(NetworkError("x"), clock()))
        cache.invalidate(S1)
        assert cache.get(S1) is None

    def test_invalidate_absent_is_noop(self, cache):
        cache.invalidate(S1)
        assert cache.get(S1) is None
        assert cache.invalidated_at(S1) is None

    def test_clear(self, cache, clock):
        cache.put(S1, CacheEntry.ready("v", clock()))
        cache.clear()
        assert len(cache) == 0
        assert cache.keys() == []
