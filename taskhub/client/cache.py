import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

from cachetools import TTLCache

logger = logging.getLogger(__name__)


class ResourceCache:
    """
    Client-side cache of API reads, keyed by logical resource path
    ("/tasks", "/tasks/<id>", "/notifications", ...).

    Features:
    - Request deduplication: concurrent reads of one key share a single load
      (per-key locks, the loser of the race re-checks the cache)
    - Revalidation by invalidation: dropping a key makes the next read refetch
    - A load that was in flight while its own key was invalidated is returned
      to its caller but never stored, so an event cannot be "undone" by an
      older response landing late. Invalidating other keys does not affect it
    """

    def __init__(self, maxsize: int = 512, ttl_seconds: float = 30):
        self.entries: TTLCache = TTLCache(maxsize=maxsize, ttl=ttl_seconds)
        # setdefault() hands every concurrent caller the same lock object
        self._locks: TTLCache = TTLCache(maxsize=10_000, ttl=300)
        # key -> True once invalidated while its load is in flight
        self._loading: dict[str, bool] = {}

        self.stats = {"hits": 0, "misses": 0, "loads": 0, "invalidations": 0}

    def _lock_for(self, key: str) -> asyncio.Lock:
        return self._locks.setdefault(key, asyncio.Lock())

    def __contains__(self, key: str) -> bool:
        return key in self.entries

    async def get(self, key: str, loader: Optional[Callable[[], Awaitable[Any]]] = None):
        """
        Return the cached value for ``key``, loading it on a miss.

        Args:
            key: Logical resource path
            loader: Async function fetching the resource on a miss

        Returns:
            Cached or freshly loaded value, or None on a miss without loader
        """
        if key in self.entries:
            self.stats["hits"] += 1
            return self.entries[key]

        if loader is None:
            self.stats["misses"] += 1
            return None

        async with self._lock_for(key):
            # Double-check after acquiring the lock
            if key in self.entries:
                self.stats["hits"] += 1
                return self.entries[key]

            self.stats["misses"] += 1
            self._loading[key] = False
            try:
                value = await loader()
            finally:
                stale = self._loading.pop(key)
            self.stats["loads"] += 1

            if stale:
                logger.debug("Not caching %s (invalidated during load)", key)
            elif value is not None:
                self.entries[key] = value
            return value

    def set(self, key: str, value: Any):
        self.entries[key] = value

    def _mark_loading_stale(self, predicate: Callable[[str], bool]):
        for key in self._loading:
            if predicate(key):
                self._loading[key] = True

    def invalidate(self, key: str) -> bool:
        self._mark_loading_stale(lambda k: k == key)
        self.stats["invalidations"] += 1
        return self.entries.pop(key, None) is not None

    def invalidate_where(self, predicate: Callable[[str], bool]) -> list[str]:
        self._mark_loading_stale(predicate)
        self.stats["invalidations"] += 1
        dropped = [k for k in list(self.entries.keys()) if predicate(k)]
        for k in dropped:
            self.entries.pop(k, None)
        if dropped:
            logger.debug("Invalidated %s", dropped)
        return dropped

    def invalidate_prefix(self, prefix: str) -> list[str]:
        return self.invalidate_where(lambda key: key.startswith(prefix))

    def clear(self):
        self._mark_loading_stale(lambda k: True)
        self.entries.clear()
