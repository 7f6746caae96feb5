"""
Unit tests for cache key derivation and the memoizing call wrapper.

Tests cover:
- Key equivalence for blank-ish values, dates and decimals
- Cache hits skip the producer; expiry refetches
- Failures are never cached
- Concurrent identical calls share one request
- Writes landing mid-flight keep stale reads out of the cache
"""

import asyncio
from datetime import date, datetime
from decimal import Decimal

import pytest

from ledgersync.cache import MemoizedCall, TtlCacheStore, make_cache_key, memoize, operation_key
from ledgersync.core.exceptions import TransportError
from ledgersync.domain.models import LoanStatus

from tests.conftest import FakeClock


class CountingProducer:
    """Async producer that counts calls and can be told to fail."""

    def __init__(self, result="value"):
        self.result = result
        self.calls = 0
        self.error = None

    async def __call__(self, *args):
        self.calls += 1
        await asyncio.sleep(0)
        if self.error is not None:
            raise self.error
        return (self.result, args)


# =============================================================================
# KEY DERIVATION TESTS
# =============================================================================


class TestMakeCacheKey:
    """Tests for make_cache_key."""

    def test_blank_values_derive_one_key(self):
        """
        GIVEN argument sets differing only in how "absent" is spelled
        WHEN deriving keys
        THEN they are identical
        """
        a = make_cache_key("loans_all", True, None, None, None)
        b = make_cache_key("loans_all", True, "", "", "")
        c = make_cache_key("loans_all", True, "null", "  ", None)

        assert a == b == c
        assert a == "loans_all_[true,null,null,null]"

    def test_dates_reduce_to_date_only(self):
        """
        GIVEN a date, a datetime and ISO strings for the same day
        WHEN deriving keys
        THEN they are identical
        """
        keys = {
            make_cache_key("loans_all", True, None, date(2024, 3, 1)),
            make_cache_key("loans_all", True, None, datetime(2024, 3, 1, 10, 15)),
            make_cache_key("loans_all", True, None, "2024-03-01T10:15:00Z"),
            make_cache_key("loans_all", True, None, "2024-03-01"),
        }

        assert keys == {'loans_all_[true,null,"2024-03-01"]'}

    def test_decimal_and_enum_normalize(self):
        """
        GIVEN equal decimals with different exponents and an enum
        WHEN deriving keys
        THEN trailing zeros and enum wrappers do not matter
        """
        assert make_cache_key("x", Decimal("10.50")) == make_cache_key("x", Decimal("10.5"))
        assert make_cache_key("x", LoanStatus.CLOSED) == make_cache_key("x", "CLOSED")

    def test_mapping_key_order_does_not_matter(self):
        assert make_cache_key("x", {"b": 1, "a": ""}) == make_cache_key("x", {"a": None, "b": 1})

    def test_no_arguments_is_operation_name(self):
        assert make_cache_key("payment_methods") == "payment_methods"

    def test_different_arguments_differ(self):
        assert make_cache_key("loans_all", True) != make_cache_key("loans_all", False)


# =============================================================================
# MEMOIZED CALL TESTS
# =============================================================================


class TestMemoizedCall:
    """Tests for MemoizedCall."""

    def test_hit_skips_producer(self, cache_store: TtlCacheStore):
        """
        GIVEN a wrapped producer called once
        WHEN it is called again with equivalent arguments
        THEN the producer is not invoked again
        """
        producer = CountingProducer()
        call = MemoizedCall(producer, operation_key("loans_all"), cache_store, 60)

        async def scenario():
            first = await call(True, None, None, None)
            second = await call(True, "", "", "")
            return first, second

        first, second = asyncio.run(scenario())

        assert producer.calls == 1
        assert first == second
        assert "loans_all_[true,null,null,null]" in cache_store

    def test_expired_value_is_refetched(self, cache_store: TtlCacheStore, clock: FakeClock):
        """
        GIVEN a cached result with a 60 second TTL
        WHEN called again after 61 seconds
        THEN the producer runs again
        """
        producer = CountingProducer()
        call = MemoizedCall(producer, operation_key("loans_analytics"), cache_store, 60)

        asyncio.run(call())
        clock.advance(61)
        asyncio.run(call())

        assert producer.calls == 2

    def test_failure_is_not_cached_and_propagates(self, cache_store: TtlCacheStore):
        """
        GIVEN a producer that fails
        WHEN called twice
        THEN the error propagates unchanged and nothing is stored
        """
        producer = CountingProducer()
        producer.error = TransportError("Network Error")
        call = MemoizedCall(producer, operation_key("payment_methods"), cache_store, 60)

        with pytest.raises(TransportError) as exc_info:
            asyncio.run(call())
        assert exc_info.value is producer.error
        assert "payment_methods" not in cache_store

        producer.error = None
        assert asyncio.run(call()) == ("value", ())
        assert producer.calls == 2

    def test_failure_leaves_other_entries_untouched(self, cache_store: TtlCacheStore):
        """
        GIVEN a cached value under one key
        WHEN a call for another key fails
        THEN the cached value is still served
        """
        producer = CountingProducer()
        call = MemoizedCall(producer, operation_key("loans_detail"), cache_store, 60)

        asyncio.run(call(1))
        producer.error = TransportError("boom")
        with pytest.raises(TransportError):
            asyncio.run(call(2))

        assert asyncio.run(call(1)) == ("value", (1,))
        assert producer.calls == 2

    def test_concurrent_identical_calls_share_one_request(self, cache_store: TtlCacheStore):
        """
        GIVEN three concurrent calls with the same key
        WHEN they are awaited together
        THEN the producer runs once and all get the same result
        """
        producer = CountingProducer()
        call = MemoizedCall(producer, operation_key("loans_all"), cache_store, 60)

        async def scenario():
            return await asyncio.gather(call(True), call(True), call(True))

        results = asyncio.run(scenario())

        assert producer.calls == 1
        assert results[0] == results[1] == results[2]

    def test_invalidation_during_flight_skips_store(self, cache_store: TtlCacheStore):
        """
        GIVEN a read in flight
        WHEN the family is invalidated before it completes
        THEN the stale result is not stored, and a new call refetches and
        stores its own result
        """
        release = None
        calls = []

        async def slow_producer():
            calls.append(1)
            await release.wait()
            return "stale"

        call = MemoizedCall(slow_producer, operation_key("loans_analytics"), cache_store, 60)

        async def scenario():
            nonlocal release
            release = asyncio.Event()
            first = asyncio.ensure_future(call())
            await asyncio.sleep(0)
            cache_store.invalidate("loans")
            second = asyncio.ensure_future(call())
            await asyncio.sleep(0)
            release.set()
            return await first, await second

        first, second = asyncio.run(scenario())

        assert first == "stale"
        assert second == "stale"
        assert len(calls) == 2
        assert "loans_analytics" in cache_store

    def test_decorator_form(self, cache_store: TtlCacheStore):
        """
        GIVEN a function decorated with memoize
        WHEN called twice
        THEN it behaves like MemoizedCall and exposes the cache key
        """
        calls = []

        @memoize(cache_store, operation_key("payment_methods"), 600)
        async def fetch_methods():
            calls.append(1)
            return ["Cash"]

        asyncio.run(fetch_methods())
        asyncio.run(fetch_methods())

        assert len(calls) == 1
        assert fetch_methods.cache_key() == "payment_methods"
        assert fetch_methods.store is cache_store
