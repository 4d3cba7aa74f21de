"""Tag-keyed cache for dashboard collection views.

Lists such as enquiries or HOSS bookings are fetched once and served from
memory until a mutation invalidates their tag. The next ``get`` after an
invalidation re-fetches.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable

from frontdesk.utils.logger import get_logger

logger = get_logger(__name__)

ENQUIRIES = "enquiries"
HOSS_BOOKINGS = "hoss-bookings"

# Collections that contain individual bookings
BOOKING_COLLECTIONS = (ENQUIRIES, HOSS_BOOKINGS)


@dataclass
class CacheEntry:
    data: Any = None
    fetched_at: datetime | None = None
    stale: bool = True
    invalidations: int = 0
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)


class QueryCache:
    """
    In-memory cache of collection views, invalidated by tag.

    Usage:
        cache = QueryCache()
        enquiries = await cache.get(ENQUIRIES, client.get_enquiries)
        cache.invalidate(ENQUIRIES)
    """

    def __init__(self, ttl: timedelta | None = None):
        self.ttl = ttl
        self._entries: dict[str, CacheEntry] = {}

    def _entry(self, tag: str) -> CacheEntry:
        if tag not in self._entries:
            self._entries[tag] = CacheEntry()
        return self._entries[tag]

    def is_stale(self, tag: str) -> bool:
        entry = self._entries.get(tag)
        if entry is None or entry.stale or entry.fetched_at is None:
            return True
        if self.ttl is not None and datetime.now() - entry.fetched_at > self.ttl:
            return True
        return False

    async def get(self, tag: str, fetcher: Callable[[], Awaitable[Any]]) -> Any:
        """
        Return cached data for ``tag``, fetching when stale.

        Args:
            tag: Collection tag (e.g. "enquiries")
            fetcher: Coroutine function producing fresh data

        Returns:
            Cached or freshly fetched data
        """
        entry = self._entry(tag)
        async with entry.lock:
            if not self.is_stale(tag):
                return entry.data

            logger.debug("query_cache_refresh", tag=tag)
            seen = entry.invalidations
            entry.data = await fetcher()
            entry.fetched_at = datetime.now()
            # An invalidation during the fetch may describe a newer write
            entry.stale = entry.invalidations != seen
            return entry.data

    def peek(self, tag: str) -> Any:
        entry = self._entries.get(tag)
        return entry.data if entry else None

    def invalidate(self, tag: str) -> None:
        """Mark ``tag`` stale; the next ``get`` re-fetches."""
        entry = self._entry(tag)
        entry.stale = True
        entry.invalidations += 1
        logger.info("query_cache_invalidated", tag=tag, count=entry.invalidations)

    def invalidation_count(self, tag: str) -> int:
        entry = self._entries.get(tag)
        return entry.invalidations if entry else 0

    def clear(self) -> None:
        self._entries.clear()
