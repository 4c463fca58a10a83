"""Redis cache backend using ``redis.asyncio``.

Each entry is stored as a JSON envelope (data + stored_at + ttl) with a
server-side expiry equal to the remaining hard-ceiling lifetime, so Redis
purges entries on its own.  Keys are namespaced with a prefix so that
``clear()`` and pattern deletes never touch unrelated keys in a shared
database.
"""

from __future__ import annotations

import math
import time
from typing import Callable

from pydantic import ValidationError
from redis.asyncio import Redis
from redis.exceptions import RedisError

from src.interfaces.cache_provider import ICacheProvider
from src.models.cache import CacheEntry
from src.utils.errors import CacheBackendError
from src.utils.logging import get_logger

_DEFAULT_PREFIX = "esports:"
_SCAN_BATCH = 500


class RedisCacheProvider(ICacheProvider):
    """Cache backend storing JSON envelopes in Redis.

    Parameters
    ----------
    client:
        A ``redis.asyncio.Redis`` client created with ``decode_responses=True``.
    max_age:
        Hard ceiling in seconds, applied as the key expiry.
    prefix:
        Namespace prepended to every key.
    clock:
        Time source used to compute the remaining lifetime of an entry.
    """

    def __init__(
        self,
        client: Redis,
        max_age: float = 60 * 60 * 24 * 14,
        prefix: str = _DEFAULT_PREFIX,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._redis = client
        self._max_age = max_age
        self._prefix = prefix
        self._clock = clock
        self._logger = get_logger(__name__)

    @classmethod
    def from_url(cls, url: str, **kwargs) -> RedisCacheProvider:  # noqa: ANN003
        """Build a provider with its own connection pool for *url*."""
        client = Redis.from_url(url, decode_responses=True)
        return cls(client, **kwargs)

    def _full_key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    # ------------------------------------------------------------------
    # ICacheProvider implementation
    # ------------------------------------------------------------------

    async def get(self, key: str) -> CacheEntry | None:
        try:
            raw = await self._redis.get(self._full_key(key))
        except RedisError as exc:
            raise CacheBackendError(f"GET {key} failed: {exc}", provider_name="redis") from exc
        if raw is None:
            return None
        try:
            return CacheEntry.model_validate_json(raw)
        except ValidationError as exc:
            raise CacheBackendError(f"Corrupt entry for {key}", provider_name="redis") from exc

    async def set(self, key: str, entry: CacheEntry) -> None:
        remaining = self._max_age - entry.age(self._clock())
        expiry = max(1, math.ceil(remaining))
        try:
            await self._redis.setex(self._full_key(key), expiry, entry.model_dump_json())
        except RedisError as exc:
            raise CacheBackendError(f"SETEX {key} failed: {exc}", provider_name="redis") from exc

    async def delete(self, key: str) -> None:
        try:
            await self._redis.delete(self._full_key(key))
        except RedisError as exc:
            raise CacheBackendError(f"DEL {key} failed: {exc}", provider_name="redis") from exc

    async def delete_pattern(self, pattern: str) -> int:
        """Delete every namespaced key matching *pattern*, walking the keyspace with SCAN."""
        removed = 0
        batch: list[str] = []
        try:
            async for key in self._redis.scan_iter(match=self._full_key(pattern), count=_SCAN_BATCH):
                batch.append(key)
                if len(batch) >= _SCAN_BATCH:
                    removed += int(await self._redis.delete(*batch))
                    batch.clear()
            if batch:
                removed += int(await self._redis.delete(*batch))
        except RedisError as exc:
            raise CacheBackendError(f"SCAN {pattern} failed: {exc}", provider_name="redis") from exc
        return removed

    async def clear(self) -> None:
        await self.delete_pattern("*")

    async def exists(self, key: str) -> bool:
        try:
            return bool(await self._redis.exists(self._full_key(key)))
        except RedisError as exc:
            raise CacheBackendError(f"EXISTS {key} failed: {exc}", provider_name="redis") from exc

    async def is_healthy(self) -> bool:
        try:
            return bool(await self._redis.ping())
        except (RedisError, OSError) as exc:
            self._logger.warning("redis_unhealthy", error=str(exc))
            return False

    def get_backend_name(self) -> str:
        return "redis"

    async def close(self) -> None:
        await self._redis.aclose()
