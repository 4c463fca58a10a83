"""Abstract base class for cache store backends.

Defines the storage contract the cache service builds on.  Backends store
:class:`~src.models.cache.CacheEntry` envelopes and own the hard-ceiling
expiry; soft (ttl) expiry is the cache service's concern, so a backend
happily returns an entry whose ttl has elapsed as long as it is younger
than ``max_age``.

Implementations: in-process memory (always available, used as fallback),
local files, and an external key-value service (Redis).
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from src.models.cache import CacheEntry


class ICacheProvider(ABC):
    """Contract for cache store backends.

    All operations are async so network-backed stores do not block the
    event loop.  Any operation may raise; the cache service catches the
    exception and retries against the memory backend.
    """

    @abstractmethod
    async def get(self, key: str) -> CacheEntry | None:
        """Retrieve the entry stored under *key*.

        Parameters
        ----------
        key:
            The cache key to look up.

        Returns
        -------
        CacheEntry or None
            The entry if present and younger than the hard ceiling;
            ``None`` otherwise.  Entries past the ceiling are purged.
        """

    @abstractmethod
    async def set(self, key: str, entry: CacheEntry) -> None:
        """Store *entry* under *key*, replacing any previous entry.

        Parameters
        ----------
        key:
            The cache key.
        entry:
            The envelope to store.  Structured data must round-trip
            losslessly; raw text must be stored without re-encoding.
        """

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove the entry stored under *key*.

        This is a no-op if the key does not exist.
        """

    @abstractmethod
    async def delete_pattern(self, pattern: str) -> int:
        """Remove every entry whose key matches the glob *pattern*.

        Returns
        -------
        int
            Number of entries removed.
        """

    @abstractmethod
    async def clear(self) -> None:
        """Remove every entry."""

    @abstractmethod
    async def is_healthy(self) -> bool:
        """Return ``True`` if the backend can currently serve requests."""

    @abstractmethod
    def get_backend_name(self) -> str:
        """Return the backend identifier: ``"memory"``, ``"file"`` or ``"redis"``."""

    async def exists(self, key: str) -> bool:
        """Return ``True`` if *key* holds an entry younger than the hard ceiling."""
        return await self.get(key) is not None

    async def close(self) -> None:
        """Release any resources held by the backend."""
