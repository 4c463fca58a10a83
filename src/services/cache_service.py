"""Cache store with primary-backend selection and memory fallback.

The service owns three decisions the backends do not make:

1. **Which backend is primary.**  Candidates are probed in preference
   order during :meth:`CacheService.initialize` (redis if configured and
   reachable, else the file backend); the in-process memory backend is
   used when none answers.
2. **Fallback.**  Every operation tries the primary first.  If it raises,
   the failure is logged and counted and the same operation is retried on
   the always-available memory backend.  Only a failure of the memory
   backend reaches the caller, as :class:`CacheBackendError`.
3. **Soft expiry.**  :meth:`get` treats an entry past its ttl as absent;
   :meth:`get_entry` still returns it, so callers can serve stale data
   while a refresh is queued.  Hard-ceiling purging is the backends' job.
"""

from __future__ import annotations

import time
from typing import Any, Awaitable, Callable, TypeVar

from pydantic import BaseModel

from src.interfaces.cache_provider import ICacheProvider
from src.models.cache import CacheEntry
from src.providers.cache.memory_cache import MemoryCacheProvider
from src.utils.errors import CacheBackendError
from src.utils.logging import get_logger

T = TypeVar("T")


class CacheService:
    """Cache-aside store used by every provider fetcher.

    Parameters
    ----------
    candidates:
        Backends to try as primary, most preferred first.  May be empty.
    fallback:
        The in-process memory backend used when the primary fails.
    clock:
        Time source for ``stored_at`` and soft-expiry checks.
    """

    def __init__(
        self,
        candidates: list[ICacheProvider] | None = None,
        fallback: MemoryCacheProvider | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._clock = clock
        self._fallback = fallback or MemoryCacheProvider(clock=clock)
        self._candidates = list(candidates or [])
        self._primary: ICacheProvider = self._candidates[0] if self._candidates else self._fallback
        self._stats = {"hits": 0, "misses": 0, "stale": 0, "sets": 0, "fallbacks": 0}
        self._logger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Backend selection
    # ------------------------------------------------------------------

    async def initialize(self) -> str:
        """Probe the candidates and settle on a primary backend.

        Returns the selected backend name.
        """
        for candidate in self._candidates:
            try:
                healthy = await candidate.is_healthy()
            except Exception as exc:  # noqa: BLE001
                self._logger.warning(
                    "cache_backend_probe_failed",
                    backend=candidate.get_backend_name(),
                    error=str(exc),
                )
                healthy = False
            if healthy:
                self._primary = candidate
                break
        else:
            self._primary = self._fallback

        for candidate in self._candidates:
            if candidate is not self._primary:
                await candidate.close()

        self._logger.info("cache_backend_selected", backend=self.backend_type)
        return self.backend_type

    @property
    def backend_type(self) -> str:
        return self._primary.get_backend_name()

    async def _call(
        self,
        operation: str,
        target: str,
        action: Callable[[ICacheProvider], Awaitable[T]],
    ) -> T:
        try:
            return await action(self._primary)
        except Exception as exc:  # noqa: BLE001
            if self._primary is self._fallback:
                raise CacheBackendError(
                    f"{operation} {target} failed: {exc}", provider_name="memory"
                ) from exc
            self._stats["fallbacks"] += 1
            self._logger.warning(
                "cache_fallback",
                operation=operation,
                key=target,
                backend=self.backend_type,
                error=str(exc),
            )

        try:
            return await action(self._fallback)
        except Exception as exc:  # noqa: BLE001
            self._logger.error("cache_fallback_failed", operation=operation, key=target, error=str(exc))
            raise CacheBackendError(
                f"{operation} {target} failed on fallback: {exc}", provider_name="memory"
            ) from exc

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_entry(self, key: str) -> CacheEntry | None:
        """Return the raw entry for *key*, including soft-expired ones."""
        return await self._call("get", key, lambda backend: backend.get(key))

    async def get(self, key: str) -> Any | None:
        """Return the cached value for *key*, or ``None`` if absent or stale."""
        entry = await self.get_entry(key)
        if entry is None:
            self._stats["misses"] += 1
            return None
        if not entry.is_fresh(self._clock()):
            self._stats["stale"] += 1
            self._stats["misses"] += 1
            return None
        self._stats["hits"] += 1
        return entry.data

    async def exists(self, key: str) -> bool:
        """Return ``True`` if *key* holds a fresh entry."""
        entry = await self.get_entry(key)
        return entry is not None and entry.is_fresh(self._clock())

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        """Store *value* under *key* for *ttl* seconds (no soft expiry if ``None``).

        Pydantic models are stored as their JSON-compatible dump.
        """
        if isinstance(value, BaseModel):
            value = value.model_dump(mode="json")
        entry = CacheEntry(data=value, stored_at=self._clock(), ttl=ttl)
        await self._call("set", key, lambda backend: backend.set(key, entry))
        self._stats["sets"] += 1

    async def invalidate(self, key: str) -> None:
        """Delete *key*; deleting a missing key is a no-op."""
        await self._call("delete", key, lambda backend: backend.delete(key))
        if self._primary is not self._fallback:
            # Entries written during an earlier fallback must not resurface.
            await self._fallback.delete(key)
        self._logger.debug("cache_invalidated", key=key)

    async def invalidate_pattern(self, pattern: str) -> int:
        """Delete every key matching the glob *pattern*; return how many were removed."""
        removed = await self._call("delete_pattern", pattern, lambda backend: backend.delete_pattern(pattern))
        if self._primary is not self._fallback:
            await self._fallback.delete_pattern(pattern)
        self._logger.info("cache_pattern_invalidated", pattern=pattern, removed=removed)
        return removed

    async def invalidate_all(self) -> None:
        await self._call("clear", "*", lambda backend: backend.clear())
        if self._primary is not self._fallback:
            await self._fallback.clear()
        self._logger.info("cache_cleared", backend=self.backend_type)

    # ------------------------------------------------------------------
    # Health & lifecycle
    # ------------------------------------------------------------------

    async def is_healthy(self) -> bool:
        """Return ``True`` if the primary backend answers its health probe."""
        try:
            return await self._primary.is_healthy()
        except Exception as exc:  # noqa: BLE001
            self._logger.warning("cache_health_check_failed", backend=self.backend_type, error=str(exc))
            return False

    def get_stats(self) -> dict[str, Any]:
        return {**self._stats, "backend": self.backend_type}

    async def close(self) -> None:
        await self._primary.close()
