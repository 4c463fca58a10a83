"""Unit tests for the memory, file and redis cache backends."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from src.models.cache import CacheEntry
from src.providers.cache.file_cache import FileCacheProvider
from src.providers.cache.memory_cache import MemoryCacheProvider
from src.providers.cache.redis_cache import RedisCacheProvider
from src.utils.errors import CacheBackendError

def _scan(keys: list[str]):  # noqa: ANN202
    async def scan_iter(**_kwargs):  # noqa: ANN003, ANN202
        for key in keys:
            yield key

    return MagicMock(side_effect=scan_iter)


_HTML = '<html>\r\n  <body class="x">Café &amp; "quotes"</body>\n</html>\n'


# ======================================================================
# MemoryCacheProvider
# ======================================================================


class TestMemoryCacheProvider:
    @pytest.fixture()
    def cache(self, clock) -> MemoryCacheProvider:
        return MemoryCacheProvider(max_size=3, max_age=100, clock=clock)

    @pytest.mark.asyncio
    async def test_get_missing_key_returns_none(self, cache: MemoryCacheProvider) -> None:
        assert await cache.get("nope") is None

    @pytest.mark.asyncio
    async def test_set_and_get(self, cache: MemoryCacheProvider, clock) -> None:
        entry = CacheEntry(data={"a": [1, 2]}, stored_at=clock(), ttl=10)
        await cache.set("k:v:1", entry)
        assert await cache.get("k:v:1") == entry

    @pytest.mark.asyncio
    async def test_hard_ceiling_purges_entries(self, cache: MemoryCacheProvider, clock) -> None:
        await cache.set("k:v:1", CacheEntry(data=1, stored_at=clock()))
        clock.advance(101)
        assert await cache.get("k:v:1") is None

    @pytest.mark.asyncio
    async def test_size_bound_evicts(self, cache: MemoryCacheProvider, clock) -> None:
        for i in range(5):
            await cache.set(f"k:v:{i}", CacheEntry(data=i, stored_at=clock()))
        assert len(cache) == 3

    @pytest.mark.asyncio
    async def test_delete_pattern(self, cache: MemoryCacheProvider, clock) -> None:
        await cache.set("opendota:match:1", CacheEntry(data=1, stored_at=clock()))
        await cache.set("opendota:player:1", CacheEntry(data=1, stored_at=clock()))

        assert await cache.delete_pattern("opendota:match:*") == 1
        assert await cache.exists("opendota:player:1") is True


# ======================================================================
# FileCacheProvider
# ======================================================================


class TestFileCacheProvider:
    @pytest.fixture()
    def cache(self, cache_dir: Path, clock) -> FileCacheProvider:
        return FileCacheProvider(cache_dir, max_age=1000, clock=clock)

    @pytest.mark.asyncio
    async def test_structured_values_round_trip_losslessly(self, cache: FileCacheProvider, clock) -> None:
        data = {"match_id": 1, "players": [{"account_id": 5, "tags": ["a", None]}], "ratio": 0.5}
        await cache.set("opendota:match:1", CacheEntry(data=data, stored_at=clock(), ttl=60))

        entry = await cache.get("opendota:match:1")

        assert entry is not None
        assert entry.data == data
        assert entry.ttl == 60

    @pytest.mark.asyncio
    async def test_raw_html_is_stored_verbatim(self, cache: FileCacheProvider, cache_dir: Path, clock) -> None:
        await cache.set("dotabuff:team:2163:page-1", CacheEntry(data=_HTML, stored_at=clock()))

        entry = await cache.get("dotabuff:team:2163:page-1")
        html_files = list((cache_dir / "teams").glob("*.html"))

        assert entry is not None
        assert entry.data == _HTML
        assert len(html_files) == 1
        assert html_files[0].read_bytes() == _HTML.encode("utf-8")

    @pytest.mark.asyncio
    async def test_json_is_pretty_printed(self, cache: FileCacheProvider, cache_dir: Path, clock) -> None:
        await cache.set("opendota:player:7", CacheEntry(data={"account_id": 7}, stored_at=clock()))

        payload = next((cache_dir / "players").glob("*[0-9].json"))

        assert payload.read_text(encoding="utf-8") == json.dumps({"account_id": 7}, indent=2)

    @pytest.mark.asyncio
    async def test_keys_are_grouped_by_resource_type(
        self, cache: FileCacheProvider, cache_dir: Path, clock
    ) -> None:
        for key in ("opendota:match:1", "opendota:player:2", "opendota:heroes:all", "odd-key"):
            await cache.set(key, CacheEntry(data={"k": key}, stored_at=clock()))

        assert any((cache_dir / "matches").iterdir())
        assert any((cache_dir / "players").iterdir())
        assert any((cache_dir / "heroes").iterdir())
        assert any((cache_dir / "misc").iterdir())

    @pytest.mark.asyncio
    async def test_entries_past_max_age_are_deleted(self, cache: FileCacheProvider, cache_dir: Path, clock) -> None:
        await cache.set("opendota:match:1", CacheEntry(data={"a": 1}, stored_at=clock()))
        clock.advance(1001)

        assert await cache.get("opendota:match:1") is None
        assert list((cache_dir / "matches").iterdir()) == []

    @pytest.mark.asyncio
    async def test_switching_payload_kind_removes_old_file(
        self, cache: FileCacheProvider, cache_dir: Path, clock
    ) -> None:
        await cache.set("misc:x:1", CacheEntry(data="<p>text</p>", stored_at=clock()))
        await cache.set("misc:x:1", CacheEntry(data={"now": "json"}, stored_at=clock()))

        entry = await cache.get("misc:x:1")

        assert entry is not None
        assert entry.data == {"now": "json"}
        assert list((cache_dir / "misc").glob("*.html")) == []

    @pytest.mark.asyncio
    async def test_delete_missing_key_is_noop(self, cache: FileCacheProvider) -> None:
        await cache.delete("opendota:match:404")

    @pytest.mark.asyncio
    async def test_delete_pattern_and_clear(self, cache: FileCacheProvider, clock) -> None:
        await cache.set("dotabuff:team:1:page-1", CacheEntry(data="<a>", stored_at=clock()))
        await cache.set("dotabuff:team:1:page-2", CacheEntry(data="<b>", stored_at=clock()))
        await cache.set("opendota:match:3", CacheEntry(data={"m": 3}, stored_at=clock()))

        assert await cache.delete_pattern("dotabuff:team:1:*") == 2
        assert await cache.get("opendota:match:3") is not None

        await cache.clear()
        assert await cache.get("opendota:match:3") is None

    @pytest.mark.asyncio
    async def test_health_probe(self, cache: FileCacheProvider) -> None:
        assert await cache.is_healthy() is True
        assert cache.get_backend_name() == "file"

    @pytest.mark.asyncio
    async def test_corrupt_metadata_raises_cache_backend_error(
        self, cache: FileCacheProvider, cache_dir: Path, clock
    ) -> None:
        await cache.set("opendota:match:1", CacheEntry(data={"a": 1}, stored_at=clock()))
        meta = next((cache_dir / "matches").glob("*.meta.json"))
        meta.write_text("{not json", encoding="utf-8")

        with pytest.raises(CacheBackendError):
            await cache.get("opendota:match:1")


# ======================================================================
# RedisCacheProvider
# ======================================================================


class TestRedisCacheProvider:
    @pytest.fixture()
    def client(self) -> MagicMock:
        client = MagicMock()
        client.get = AsyncMock(return_value=None)
        client.setex = AsyncMock()
        client.delete = AsyncMock(return_value=1)
        client.scan_iter = _scan([])
        client.exists = AsyncMock(return_value=1)
        client.ping = AsyncMock(return_value=True)
        client.aclose = AsyncMock()
        return client

    @pytest.fixture()
    def cache(self, client: MagicMock, clock) -> RedisCacheProvider:
        return RedisCacheProvider(client, max_age=1000, clock=clock)

    @pytest.mark.asyncio
    async def test_set_uses_remaining_lifetime_as_expiry(
        self, cache: RedisCacheProvider, client: MagicMock, clock
    ) -> None:
        entry = CacheEntry(data={"a": 1}, stored_at=clock() - 400, ttl=60)

        await cache.set("opendota:match:1", entry)

        key, expiry, payload = client.setex.await_args.args
        assert key == "esports:opendota:match:1"
        assert expiry == 600
        assert CacheEntry.model_validate_json(payload) == entry

    @pytest.mark.asyncio
    async def test_get_decodes_envelope(self, cache: RedisCacheProvider, client: MagicMock) -> None:
        entry = CacheEntry(data="<html></html>", stored_at=5.0, ttl=None)
        client.get.return_value = entry.model_dump_json()

        assert await cache.get("dotabuff:team:1:page-1") == entry
        client.get.assert_awaited_once_with("esports:dotabuff:team:1:page-1")

    @pytest.mark.asyncio
    async def test_get_missing_returns_none(self, cache: RedisCacheProvider) -> None:
        assert await cache.get("opendota:match:1") is None

    @pytest.mark.asyncio
    async def test_delete_pattern_is_namespaced(self, cache: RedisCacheProvider, client: MagicMock) -> None:
        client.scan_iter = _scan(["esports:opendota:match:1", "esports:opendota:match:2"])
        client.delete.return_value = 2

        removed = await cache.delete_pattern("opendota:match:*")

        assert removed == 2
        assert client.scan_iter.call_args.kwargs["match"] == "esports:opendota:match:*"
        client.delete.assert_awaited_once_with("esports:opendota:match:1", "esports:opendota:match:2")
        client.keys.assert_not_called()

    @pytest.mark.asyncio
    async def test_delete_pattern_deletes_in_batches(self, cache: RedisCacheProvider, client: MagicMock) -> None:
        keys = [f"esports:opendota:player:{n}" for n in range(1200)]
        client.scan_iter = _scan(keys)
        client.delete = AsyncMock(side_effect=lambda *batch: len(batch))

        removed = await cache.delete_pattern("opendota:player:*")

        assert removed == 1200
        assert [len(call.args) for call in client.delete.await_args_list] == [500, 500, 200]

    @pytest.mark.asyncio
    async def test_delete_pattern_without_matches(self, cache: RedisCacheProvider, client: MagicMock) -> None:
        assert await cache.delete_pattern("nothing:*") == 0
        client.delete.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_redis_errors_become_cache_backend_errors(
        self, cache: RedisCacheProvider, client: MagicMock
    ) -> None:
        client.get.side_effect = RedisConnectionError("down")
        with pytest.raises(CacheBackendError) as exc_info:
            await cache.get("opendota:match:1")
        assert exc_info.value.provider_name == "redis"

    @pytest.mark.asyncio
    async def test_unreachable_server_is_unhealthy(self, cache: RedisCacheProvider, client: MagicMock) -> None:
        client.ping.side_effect = RedisConnectionError("down")
        assert await cache.is_healthy() is False

    @pytest.mark.asyncio
    async def test_close_releases_connection(self, cache: RedisCacheProvider, client: MagicMock) -> None:
        await cache.close()
        client.aclose.assert_awaited_once()
