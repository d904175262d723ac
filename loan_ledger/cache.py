"""
Aggregate Cache Module

Time-windowed cache for dashboard figures and filtered loan listings, owned by
the ledger engine. Entries are tagged with the mutation generation they were
computed under; ``invalidate()`` advances the generation so no entry computed
before it can be served again.
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Hashable, Optional, Tuple

from .logging_config import get_logger, log_action


logger = get_logger("cache")

DASHBOARD_KEY = ("dashboard",)
LIST_NAMESPACE = "loans"

STALE_WARNING = "Showing last known figures, latest data could not be loaded"


@dataclass
class CacheEntry:
    value: Any
    computed_at: float
    generation: int


@dataclass
class CacheLookup:
    """Value handed back by the cache, with a warning when it is a fallback"""
    value: Any
    hit: bool = False
    warning: Optional[str] = None


def list_key(search: str = "", status: Optional[str] = None) -> Tuple:
    """Cache key for a filtered loan listing"""
    return (LIST_NAMESPACE, (search or "").strip().lower(), status)


UNFILTERED_KEY = list_key()


class AggregateCache:
    """
    TTL cache with generation-based invalidation and single-flight recomputation.

    Concurrent readers of the same key and generation share one recomputation.
    When a recomputation fails the last good value for the key is returned with
    a warning; with no last good value the error propagates.
    """

    def __init__(self, ttl_seconds: float = 60.0, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._generation = 0
        self._entries: Dict[Hashable, CacheEntry] = {}
        self._last_good: Dict[Hashable, Any] = {}
        self._inflight: Dict[Tuple[Hashable, int], asyncio.Task] = {}
        self.recomputations = 0

    @property
    def generation(self) -> int:
        return self._generation

    def invalidate(self) -> None:
        """Drop every entry; called after each ledger mutation"""
        self._generation += 1
        self._entries.clear()

    def invalidate_lists(self) -> None:
        """Drop cached listings only, keeping dashboard figures"""
        for key in [key for key in self._entries if key[0] == LIST_NAMESPACE]:
            del self._entries[key]

    def peek(self, key: Hashable) -> Optional[Any]:
        """Fresh cached value for key, or None"""
        entry = self._entries.get(key)
        if entry is not None and self._is_fresh(entry):
            return entry.value
        return None

    def _is_fresh(self, entry: CacheEntry) -> bool:
        return (entry.generation == self._generation
                and self._clock() - entry.computed_at < self.ttl_seconds)

    async def get_or_compute(self, key: Hashable,
                             compute: Callable[[], Awaitable[Any]]) -> CacheLookup:
        """Return the cached value for key, recomputing it when stale or invalidated"""
        entry = self._entries.get(key)
        if entry is not None and self._is_fresh(entry):
            return CacheLookup(value=entry.value, hit=True)

        flight_key = (key, self._generation)
        task = self._inflight.get(flight_key)
        if task is None:
            task = asyncio.ensure_future(self._recompute(key, self._generation, compute))
            self._inflight[flight_key] = task
            task.add_done_callback(lambda done: self._forget(flight_key, done))

        try:
            value = await asyncio.shield(task)
        except Exception as e:
            if key not in self._last_good:
                raise
            log_action(logger, "warning", f"Recomputing {key[0]} failed, serving last good value: {e}",
                       action="cache_fallback", extra={"key": repr(key)})
            return CacheLookup(value=self._last_good[key], warning=STALE_WARNING)
        return CacheLookup(value=value)

    async def _recompute(self, key: Hashable, generation: int,
                         compute: Callable[[], Awaitable[Any]]) -> Any:
        value = await compute()
        self.recomputations += 1
        self._remember(key, value)
        # A mutation during recomputation makes this value unfit for caching
        if generation == self._generation:
            self._entries[key] = CacheEntry(value=value, computed_at=self._clock(), generation=generation)
        return value

    def _remember(self, key: Hashable, value: Any) -> None:
        # Listing fallbacks are kept for the unfiltered listing and the latest filter only
        if key[0] == LIST_NAMESPACE:
            for stale in [k for k in self._last_good
                          if k[0] == LIST_NAMESPACE and k not in (key, UNFILTERED_KEY)]:
                del self._last_good[stale]
        self._last_good[key] = value

    def _forget(self, flight_key: Tuple[Hashable, int], task: asyncio.Task) -> None:
        if self._inflight.get(flight_key) is task:
            del self._inflight[flight_key]
        # Mark the exception retrieved; awaiting callers already saw it
        if not task.cancelled():
            task.exception()


class RefreshDebouncer:
    """
    Coalesces refresh requests arriving within ``delay_seconds`` of each other
    into one call of ``callback``.
    """

    def __init__(self, callback: Callable[[], Awaitable[None]], delay_seconds: float = 0.1):
        self._callback = callback
        self.delay_seconds = delay_seconds
        self._task: Optional[asyncio.Task] = None
        self._waiting = False
        self.fired = 0

    @property
    def pending(self) -> bool:
        return self._task is not None and self._waiting

    def request(self) -> None:
        """Schedule a refresh, pushing back any refresh still waiting"""
        if self.pending:
            self._task.cancel()
        self._waiting = True
        self._task = asyncio.get_running_loop().create_task(self._run())

    async def flush(self) -> None:
        """Run a waiting refresh immediately"""
        if self.pending:
            self._task.cancel()
            self._waiting = False
            self._task = None
            await self._fire()

    def cancel(self) -> None:
        if self.pending:
            self._task.cancel()
        self._waiting = False
        self._task = None

    async def _run(self) -> None:
        await asyncio.sleep(self.delay_seconds)
        self._waiting = False
        self._task = None
        await self._fire()

    async def _fire(self) -> None:
        self.fired += 1
        try:
            await self._callback()
        except Exception as e:
            log_action(logger, "error", f"Refresh failed: {e}", action="refresh", exc_info=True)
