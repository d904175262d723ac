"""
Tests for the aggregate cache and refresh debouncing
"""

import pytest
import asyncio

from loan_ledger.cache import (
    AggregateCache, RefreshDebouncer, DASHBOARD_KEY, STALE_WARNING, list_key
)


class FakeClock:
    """Monotonic clock the test moves by hand"""

    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class Counter:
    """Async compute function that counts its calls"""

    def __init__(self, values=None):
        self.calls = 0
        self.values = values

    async def __call__(self):
        self.calls += 1
        if self.values:
            return self.values[self.calls - 1]
        return self.calls


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return AggregateCache(ttl_seconds=60, clock=clock)


class TestAggregateCache:
    """Test TTL, invalidation and fallbacks"""

    @pytest.mark.asyncio
    async def test_fresh_value_is_served_from_cache(self, cache):
        compute = Counter()
        first = await cache.get_or_compute(DASHBOARD_KEY, compute)
        second = await cache.get_or_compute(DASHBOARD_KEY, compute)

        assert first.value == 1 and not first.hit
        assert second.value == 1 and second.hit
        assert compute.calls == 1

    @pytest.mark.asyncio
    async def test_expired_value_is_recomputed(self, cache, clock):
        compute = Counter()
        await cache.get_or_compute(DASHBOARD_KEY, compute)

        clock.advance(59)
        assert (await cache.get_or_compute(DASHBOARD_KEY, compute)).value == 1

        clock.advance(2)
        assert (await cache.get_or_compute(DASHBOARD_KEY, compute)).value == 2
        assert compute.calls == 2

    @pytest.mark.asyncio
    async def test_invalidate_forces_recompute(self, cache):
        compute = Counter()
        await cache.get_or_compute(DASHBOARD_KEY, compute)
        generation = cache.generation

        cache.invalidate()
        assert cache.generation == generation + 1
        assert cache.peek(DASHBOARD_KEY) is None
        assert (await cache.get_or_compute(DASHBOARD_KEY, compute)).value == 2

    @pytest.mark.asyncio
    async def test_invalidate_lists_keeps_dashboard(self, cache):
        await cache.get_or_compute(DASHBOARD_KEY, Counter(["stats"]))
        await cache.get_or_compute(list_key("ann", "active"), Counter(["rows"]))

        cache.invalidate_lists()

        assert cache.peek(DASHBOARD_KEY) == "stats"
        assert cache.peek(list_key("ann", "active")) is None

    def test_list_key_normalizes_search(self):
        assert list_key("  Ann ", "active") == list_key("ann", "active")
        assert list_key() == list_key("", None)

    @pytest.mark.asyncio
    async def test_concurrent_readers_share_one_recompute(self, cache):
        release = asyncio.Event()
        calls = 0

        async def slow_compute():
            nonlocal calls
            calls += 1
            await release.wait()
            return "figures"

        readers = [asyncio.create_task(cache.get_or_compute(DASHBOARD_KEY, slow_compute))
                   for _ in range(5)]
        await asyncio.sleep(0)
        release.set()
        results = await asyncio.gather(*readers)

        assert calls == 1
        assert cache.recomputations == 1
        assert all(result.value == "figures" for result in results)

    @pytest.mark.asyncio
    async def test_value_computed_across_invalidation_is_not_cached(self, cache):
        release = asyncio.Event()

        async def slow_compute():
            await release.wait()
            return "old figures"

        reader = asyncio.create_task(cache.get_or_compute(DASHBOARD_KEY, slow_compute))
        await asyncio.sleep(0)
        cache.invalidate()
        release.set()

        assert (await reader).value == "old figures"
        assert cache.peek(DASHBOARD_KEY) is None

    @pytest.mark.asyncio
    async def test_failure_serves_last_good_value_with_warning(self, cache):
        await cache.get_or_compute(DASHBOARD_KEY, Counter(["good"]))
        cache.invalidate()

        async def failing():
            raise RuntimeError("database unavailable")

        lookup = await cache.get_or_compute(DASHBOARD_KEY, failing)
        assert lookup.value == "good"
        assert lookup.warning == STALE_WARNING

    @pytest.mark.asyncio
    async def test_failure_without_last_good_propagates(self, cache):
        async def failing():
            raise RuntimeError("database unavailable")

        with pytest.raises(RuntimeError):
            await cache.get_or_compute(DASHBOARD_KEY, failing)

    @pytest.mark.asyncio
    async def test_listing_fallbacks_are_bounded(self, cache):
        await cache.get_or_compute(DASHBOARD_KEY, Counter(["stats"]))
        await cache.get_or_compute(list_key(), Counter(["all"]))
        for i in range(50):
            await cache.get_or_compute(list_key(f"name {i}"), Counter([f"rows {i}"]))
            cache.invalidate_lists()

        async def failing():
            raise RuntimeError("database unavailable")

        assert len(cache._last_good) == 3
        assert (await cache.get_or_compute(list_key("name 49"), failing)).value == "rows 49"
        assert (await cache.get_or_compute(list_key(), failing)).value == "all"
        with pytest.raises(RuntimeError):
            await cache.get_or_compute(list_key("name 0"), failing)


class TestRefreshDebouncer:
    """Test coalescing of refresh notifications"""

    @pytest.mark.asyncio
    async def test_burst_fires_once(self):
        calls = []

        async def refresh():
            calls.append("refresh")

        debouncer = RefreshDebouncer(refresh, delay_seconds=0.05)
        for _ in range(5):
            debouncer.request()
            await asyncio.sleep(0.01)
        assert debouncer.pending

        await asyncio.sleep(0.15)
        assert calls == ["refresh"]
        assert debouncer.fired == 1
        assert not debouncer.pending

    @pytest.mark.asyncio
    async def test_separate_requests_fire_separately(self):
        debouncer = RefreshDebouncer(self._noop, delay_seconds=0.02)
        debouncer.request()
        await asyncio.sleep(0.08)
        debouncer.request()
        await asyncio.sleep(0.08)
        assert debouncer.fired == 2

    @pytest.mark.asyncio
    async def test_flush_runs_immediately(self):
        debouncer = RefreshDebouncer(self._noop, delay_seconds=10)
        debouncer.request()
        await debouncer.flush()
        assert debouncer.fired == 1
        assert not debouncer.pending

        # Nothing waiting, nothing to flush
        await debouncer.flush()
        assert debouncer.fired == 1

    @pytest.mark.asyncio
    async def test_cancel_drops_waiting_refresh(self):
        debouncer = RefreshDebouncer(self._noop, delay_seconds=0.02)
        debouncer.request()
        debouncer.cancel()
        await asyncio.sleep(0.06)
        assert debouncer.fired == 0

    @pytest.mark.asyncio
    async def test_callback_error_is_contained(self):
        async def broken():
            raise RuntimeError("listener crashed")

        debouncer = RefreshDebouncer(broken, delay_seconds=0)
        debouncer.request()
        await asyncio.sleep(0.02)
        assert debouncer.fired == 1

    @staticmethod
    async def _noop():
        return None
