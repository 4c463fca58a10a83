"""Local-file cache backend.

One payload file per cache key, grouped into subdirectories by resource
type (``players/``, ``matches/``, ``heroes/``, ``teams/``, ``leagues/``,
``misc/``).  Raw text payloads (provider HTML) are written verbatim to a
``.html`` file; structured payloads are written as pretty-printed JSON.
A ``.meta.json`` sidecar records the original key, when the entry was
stored and its ttl.

File IO is blocking, so every operation runs in a worker thread via
``asyncio.to_thread``.
"""

from __future__ import annotations

import asyncio
import fnmatch
import json
import time
from pathlib import Path
from typing import Any, Callable
from urllib.parse import quote

from src.interfaces.cache_provider import ICacheProvider
from src.models.cache import RESOURCE_DIRECTORIES, MISC_DIRECTORY, CacheEntry, directory_for
from src.utils.errors import CacheBackendError
from src.utils.logging import get_logger

_META_SUFFIX = ".meta.json"


class FileCacheProvider(ICacheProvider):
    """Cache backend storing one file (plus metadata sidecar) per key.

    Parameters
    ----------
    cache_dir:
        Root directory; created on first write.
    max_age:
        Hard ceiling in seconds; older entries are deleted on read.
    clock:
        Time source, ``time.time`` unless a test injects a fake.
    """

    def __init__(
        self,
        cache_dir: str | Path,
        max_age: float = 60 * 60 * 24 * 14,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._root = Path(cache_dir)
        self._max_age = max_age
        self._clock = clock
        self._logger = get_logger(__name__)

    # -- Path helpers ----------------------------------------------------------

    def _base_path(self, key: str) -> Path:
        # Percent-encoding keeps distinct keys on distinct filenames.
        return self._root / directory_for(key) / quote(key, safe="")

    def _meta_path(self, key: str) -> Path:
        return self._base_path(key).with_name(self._base_path(key).name + _META_SUFFIX)

    def _payload_path(self, key: str, kind: str) -> Path:
        base = self._base_path(key)
        return base.with_name(base.name + (".html" if kind == "text" else ".json"))

    def _meta_files(self) -> list[Path]:
        directories = [*RESOURCE_DIRECTORIES.values(), MISC_DIRECTORY]
        files: list[Path] = []
        for directory in directories:
            folder = self._root / directory
            if folder.is_dir():
                files.extend(folder.glob(f"*{_META_SUFFIX}"))
        return files

    # -- Blocking implementations ---------------------------------------------

    def _read(self, key: str) -> CacheEntry | None:
        meta_path = self._meta_path(key)
        if not meta_path.exists():
            return None
        meta = json.loads(meta_path.read_text(encoding="utf-8"))
        entry_age = self._clock() - float(meta["stored_at"])
        if entry_age > self._max_age:
            self._remove(key)
            return None

        kind = meta.get("kind", "json")
        payload_path = self._payload_path(key, kind)
        if not payload_path.exists():
            return None
        if kind == "text":
            with open(payload_path, encoding="utf-8", newline="") as f:
                data: Any = f.read()
        else:
            data = json.loads(payload_path.read_text(encoding="utf-8"))
        return CacheEntry(data=data, stored_at=meta["stored_at"], ttl=meta.get("ttl"))

    def _write(self, key: str, entry: CacheEntry) -> None:
        kind = "text" if isinstance(entry.data, str) else "json"
        payload_path = self._payload_path(key, kind)
        payload_path.parent.mkdir(parents=True, exist_ok=True)

        # A key can switch between text and json payloads; drop the other file.
        other = self._payload_path(key, "json" if kind == "text" else "text")
        other.unlink(missing_ok=True)

        if kind == "text":
            with open(payload_path, "w", encoding="utf-8", newline="") as f:
                f.write(entry.data)
        else:
            payload_path.write_text(json.dumps(entry.data, indent=2, ensure_ascii=False), encoding="utf-8")

        meta = {"key": key, "stored_at": entry.stored_at, "ttl": entry.ttl, "kind": kind}
        self._meta_path(key).write_text(json.dumps(meta, indent=2), encoding="utf-8")

    def _remove(self, key: str) -> bool:
        existed = self._meta_path(key).exists()
        for path in (self._meta_path(key), self._payload_path(key, "text"), self._payload_path(key, "json")):
            path.unlink(missing_ok=True)
        return existed

    def _remove_pattern(self, pattern: str) -> int:
        removed = 0
        for meta_path in self._meta_files():
            try:
                key = json.loads(meta_path.read_text(encoding="utf-8"))["key"]
            except (OSError, ValueError, KeyError):
                continue
            if fnmatch.fnmatchcase(key, pattern) and self._remove(key):
                removed += 1
        return removed

    # -- ICacheProvider implementation ----------------------------------------

    async def get(self, key: str) -> CacheEntry | None:
        try:
            return await asyncio.to_thread(self._read, key)
        except (OSError, ValueError) as exc:
            raise CacheBackendError(f"Failed to read {key}: {exc}", provider_name="file") from exc

    async def set(self, key: str, entry: CacheEntry) -> None:
        try:
            await asyncio.to_thread(self._write, key, entry)
        except (OSError, TypeError, ValueError) as exc:
            raise CacheBackendError(f"Failed to write {key}: {exc}", provider_name="file") from exc
        self._logger.debug("file_cache_set", key=key)

    async def delete(self, key: str) -> None:
        try:
            await asyncio.to_thread(self._remove, key)
        except OSError as exc:
            raise CacheBackendError(f"Failed to delete {key}: {exc}", provider_name="file") from exc

    async def delete_pattern(self, pattern: str) -> int:
        try:
            return await asyncio.to_thread(self._remove_pattern, pattern)
        except OSError as exc:
            raise CacheBackendError(f"Failed to delete {pattern}: {exc}", provider_name="file") from exc

    async def clear(self) -> None:
        await self.delete_pattern("*")

    async def is_healthy(self) -> bool:
        def _probe() -> bool:
            self._root.mkdir(parents=True, exist_ok=True)
            probe = self._root / ".healthcheck"
            probe.write_text(str(self._clock()), encoding="utf-8")
            probe.unlink(missing_ok=True)
            return True

        try:
            return await asyncio.to_thread(_probe)
        except OSError as exc:
            self._logger.warning("file_cache_unhealthy", cache_dir=str(self._root), error=str(exc))
            return False

    def get_backend_name(self) -> str:
        return "file"
