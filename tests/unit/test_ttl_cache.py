"""
Unit tests for TtlCacheStore.

Tests cover:
- Set/get within and past the TTL
- Lazy purge of expired entries
- Tag invalidation by prefix
- clear, purge_expired and live-entry views
"""

from datetime import timedelta

from ledgersync.cache import TtlCacheStore

from tests.conftest import FakeClock


# =============================================================================
# GET / SET TESTS
# =============================================================================


class TestGetSet:
    """Tests for storing and reading entries."""

    def test_get_returns_value_before_expiry(self, cache_store: TtlCacheStore, clock: FakeClock):
        """
        GIVEN a value stored with a 60 second TTL
        WHEN I read it 59 seconds later
        THEN the stored value is returned
        """
        cache_store.set("loans_all", [1, 2], 60)
        clock.advance(59)

        assert cache_store.get("loans_all") == [1, 2]

    def test_get_returns_none_at_and_after_expiry(self, cache_store: TtlCacheStore, clock: FakeClock):
        """
        GIVEN a value stored with a 60 second TTL
        WHEN the clock reaches the expiry instant
        THEN the entry reads as missing
        """
        cache_store.set("loans_all", [1, 2], 60)
        clock.advance(60)

        assert cache_store.get("loans_all") is None
        assert cache_store.get("loans_all", default="gone") == "gone"

    def test_expired_entry_is_purged_on_read(self, cache_store: TtlCacheStore, clock: FakeClock):
        """
        GIVEN an expired entry
        WHEN it is read
        THEN it is removed from the store
        """
        cache_store.set("payment_methods", ["cash"], 10)
        clock.advance(11)

        assert cache_store.get_entry("payment_methods") is None
        assert cache_store.purge_expired() == 0

    def test_set_overwrites_value_and_expiry(self, cache_store: TtlCacheStore, clock: FakeClock, fixed_now):
        """
        GIVEN an existing entry
        WHEN the key is set again with a new TTL
        THEN the new value and new expiry apply
        """
        cache_store.set("k", "old", 10)
        entry = cache_store.set("k", "new", timedelta(minutes=5))

        assert cache_store.get("k") == "new"
        assert entry.expires_at == fixed_now + timedelta(minutes=5)

        clock.advance(30)
        assert cache_store.get("k") == "new"

    def test_cached_none_is_distinguishable_via_entry(self, cache_store: TtlCacheStore):
        """
        GIVEN a stored None value
        WHEN reading the entry
        THEN the entry exists even though get() returns None
        """
        cache_store.set("loans_detail_[7]", None, 30)

        assert cache_store.get_entry("loans_detail_[7]") is not None
        assert "loans_detail_[7]" in cache_store


# =============================================================================
# INVALIDATION TESTS
# =============================================================================


class TestInvalidate:
    """Tests for tag and exact-key invalidation."""

    def test_invalidate_tag_removes_family_only(self, cache_store: TtlCacheStore):
        """
        GIVEN keys in the loans family and a similarly named key
        WHEN I invalidate "loans"
        THEN only the loans family is removed
        """
        cache_store.set('loans_all_[true,null,null,null]', [], 60)
        cache_store.set("loans_analytics", {}, 60)
        cache_store.set("loans", "exact", 60)
        cache_store.set("loan_methods", ["x"], 60)
        cache_store.set("payment_methods", ["y"], 60)

        removed = cache_store.invalidate("loans")

        assert removed == 3
        assert sorted(cache_store.keys()) == ["loan_methods", "payment_methods"]

    def test_invalidate_exact_key(self, cache_store: TtlCacheStore):
        """
        GIVEN two keys with a shared prefix but no delimiter
        WHEN I invalidate one of them exactly
        THEN the other survives
        """
        cache_store.set("payment_methods", [], 60)
        cache_store.set("payment_methodsX", [], 60)

        assert cache_store.invalidate("payment_methods") == 1
        assert "payment_methodsX" in cache_store

    def test_invalidate_bumps_version(self, cache_store: TtlCacheStore):
        """
        GIVEN a store
        WHEN invalidating, even with nothing to remove
        THEN the version counter increases
        """
        before = cache_store.version

        assert cache_store.invalidate("loans") == 0
        assert cache_store.version == before + 1

    def test_clear_removes_everything(self, cache_store: TtlCacheStore):
        """
        GIVEN entries in several families
        WHEN I clear the store
        THEN nothing is left and the version moves
        """
        cache_store.set("loans_analytics", {}, 60)
        cache_store.set("payment_methods", [], 60)
        before = cache_store.version

        cache_store.clear()

        assert len(cache_store) == 0
        assert cache_store.version > before


# =============================================================================
# LIVE VIEW TESTS
# =============================================================================


class TestLiveViews:
    """Tests for len/contains/iteration and eager purge."""

    def test_len_and_iteration_skip_expired(self, cache_store: TtlCacheStore, clock: FakeClock):
        """
        GIVEN one short-lived and one long-lived entry
        WHEN the short one expires
        THEN len, iteration and membership only see the live entry
        """
        cache_store.set("short", 1, 5)
        cache_store.set("long", 2, 500)
        clock.advance(6)

        assert len(cache_store) == 1
        assert list(cache_store) == ["long"]
        assert "short" not in cache_store

    def test_purge_expired_counts_removed(self, cache_store: TtlCacheStore, clock: FakeClock):
        """
        GIVEN two expired entries and one live entry
        WHEN purge_expired runs
        THEN it removes and counts the two expired ones
        """
        cache_store.set("a", 1, 1)
        cache_store.set("b", 2, 1)
        cache_store.set("c", 3, 100)
        clock.advance(2)

        assert cache_store.purge_expired() == 2
        assert cache_store.keys() == ["c"]

    def test_default_clock_is_used_when_none_given(self):
        """
        GIVEN a store built without a clock
        WHEN setting and reading immediately
        THEN the value is live
        """
        store = TtlCacheStore()
        store.set("k", "v", 60)

        assert store.get("k") == "v"
        assert store.now().tzinfo is not None
