"""In-memory cache backend using cachetools.TTLCache.

Always available, so the cache service also uses it as the fallback for
the file and redis backends.  ``TTLCache`` enforces the hard ceiling
(``max_age``) and bounds the number of entries; soft expiry is left to the
cache service.
"""

from __future__ import annotations

import fnmatch
import time
from typing import Callable

import structlog
from cachetools import TTLCache

from src.interfaces.cache_provider import ICacheProvider
from src.models.cache import CacheEntry

logger = structlog.get_logger(logger_name=__name__)


class MemoryCacheProvider(ICacheProvider):
    """In-memory cache backed by ``cachetools.TTLCache``.

    Parameters
    ----------
    max_size:
        Maximum number of entries before the least-recently-used entry
        is evicted.
    max_age:
        Hard ceiling in seconds; entries older than this are purged.
    clock:
        Time source, ``time.time`` unless a test injects a fake.
    """

    def __init__(
        self,
        max_size: int = 5000,
        max_age: float = 60 * 60 * 24 * 14,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._max_age = max_age
        self._cache: TTLCache[str, CacheEntry] = TTLCache(maxsize=max_size, ttl=max_age, timer=clock)

    # ------------------------------------------------------------------
    # ICacheProvider implementation
    # ------------------------------------------------------------------

    async def get(self, key: str) -> CacheEntry | None:
        entry = self._cache.get(key)
        logger.debug("memory_cache_get", key=key, hit=entry is not None)
        return entry

    async def set(self, key: str, entry: CacheEntry) -> None:
        self._cache[key] = entry
        logger.debug("memory_cache_set", key=key)

    async def delete(self, key: str) -> None:
        self._cache.pop(key, None)

    async def delete_pattern(self, pattern: str) -> int:
        self._cache.expire()
        matched = [key for key in list(self._cache.keys()) if fnmatch.fnmatchcase(key, pattern)]
        for key in matched:
            self._cache.pop(key, None)
        return len(matched)

    async def clear(self) -> None:
        self._cache.clear()

    async def exists(self, key: str) -> bool:
        return key in self._cache

    async def is_healthy(self) -> bool:
        return True

    def get_backend_name(self) -> str:
        return "memory"

    def __len__(self) -> int:
        return len(self._cache)
