"""
Company Statistics Cache

Single-slot cache for company statistics with TTL expiry and single-flight
refresh: concurrent refreshes share one upstream fetch.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 5 * 60


@dataclass
class CachedStatistics:
    """Company statistics snapshot."""

    total_active: int = 0
    total_passive: int = 0
    by_industry: dict[str, int] = field(default_factory=dict)
    new_this_month: int = 0
    last_updated: datetime | None = None

    def to_dict(self) -> dict:
        return {
            "total_active": self.total_active,
            "total_passive": self.total_passive,
            "by_industry": dict(self.by_industry),
            "new_this_month": self.new_this_month,
            "last_updated": self.last_updated.isoformat() if self.last_updated else None,
        }


StatisticsFetcher = Callable[[], Awaitable[CachedStatistics]]


class StatisticsCache:
    """Holds at most one CachedStatistics value.

    Staleness is checked lazily in get(); nothing runs in the background.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize the cache.

        Args:
            ttl_seconds: Age after which a stored value is treated as absent
            clock: Returns the current time as epoch seconds
        """
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._value: CachedStatistics | None = None
        self._stored_at: float | None = None
        self._marked_refreshing = False
        self._inflight: asyncio.Future | None = None
        # Bumped by clear() so a refresh started before an invalidation
        # does not store its (older) result afterwards.
        self._generation = 0

    def get(self) -> CachedStatistics | None:
        """Return the cached statistics if present and younger than the TTL."""
        if self._value is None or self._stored_at is None:
            return None

        if self._clock() - self._stored_at >= self.ttl_seconds:
            return None

        return self._value

    def set(self, stats: CachedStatistics) -> CachedStatistics:
        """Replace the cached value, stamping it with the current time.

        Returns:
            The stored value
        """
        now = self._clock()
        self._value = replace(stats, last_updated=datetime.fromtimestamp(now, tz=timezone.utc))
        self._stored_at = now
        self._marked_refreshing = False
        return self._value

    def clear(self) -> bool:
        """Drop the cached value and reset the refreshing state.

        Returns:
            True if a value was dropped
        """
        had_value = self._value is not None
        self._value = None
        self._stored_at = None
        self._marked_refreshing = False
        self._generation += 1
        return had_value

    def is_refreshing(self) -> bool:
        return self._marked_refreshing or self._inflight is not None

    def mark_refreshing(self) -> None:
        """Flag a refresh as in progress without starting one."""
        self._marked_refreshing = True

    async def refresh(self, fetch: StatisticsFetcher) -> CachedStatistics | None:
        """Fetch fresh statistics and store them.

        A caller arriving while another refresh is in flight awaits that
        refresh instead of fetching again. When a refresh was only flagged
        with mark_refreshing(), the current cached value (possibly None) is
        returned without fetching.

        Upstream failures are logged and reported as None.

        Args:
            fetch: Coroutine function producing fresh statistics

        Returns:
            Fresh statistics, or None
        """
        if self._inflight is not None:
            return await asyncio.shield(self._inflight)

        if self._marked_refreshing:
            return self.get()

        future = asyncio.get_running_loop().create_future()
        self._inflight = future
        generation = self._generation
        result = None

        try:
            stats = await fetch()
            if generation == self._generation:
                result = self.set(stats)
            else:
                logger.info("Statistics cache cleared during refresh, result not stored")
                result = replace(stats, last_updated=datetime.fromtimestamp(self._clock(), tz=timezone.utc))
        except Exception:
            logger.exception("Company statistics refresh failed")
            result = None
        finally:
            if self._inflight is future:
                self._inflight = None
            self._marked_refreshing = False
            if not future.done():
                future.set_result(result)

        return result

    async def get_or_refresh(self, fetch: StatisticsFetcher) -> CachedStatistics | None:
        """Serve the cached value, refreshing it first when absent or stale."""
        cached = self.get()
        if cached is not None:
            return cached
        return await self.refresh(fetch)
