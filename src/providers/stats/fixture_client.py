"""Offline fixture client serving canned payloads from disk.

Used when ``USE_MOCK_API=true`` so the whole orchestration stack (queue,
rate limiter, cache, cascade) runs without network access.  Fixtures are
laid out as::

    {mock_data_dir}/opendota/matches/{match_id}.json
    {mock_data_dir}/opendota/players/{account_id}.json
    {mock_data_dir}/dotabuff/teams/{team_id}/page-{n}.html   (n = 1, 2, ...)

A missing fixture behaves like an upstream 404.
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any

from src.interfaces.stats_provider import IMatchDataProvider, ITeamPageProvider
from src.utils.errors import ExternalAPIError
from src.utils.logging import get_logger


class FixtureStatsClient(IMatchDataProvider, ITeamPageProvider):
    """Serves match, player and team-listing fixtures for one provider name."""

    def __init__(self, mock_data_dir: str | Path, provider_name: str) -> None:
        self._root = Path(mock_data_dir)
        self._provider_name = provider_name
        self._logger = get_logger(__name__)

    def _missing(self, path: Path) -> ExternalAPIError:
        return ExternalAPIError(
            f"No fixture at {path}",
            provider_name=self._provider_name,
            status_code=404,
        )

    async def _read_json(self, path: Path) -> dict[str, Any]:
        if not path.exists():
            raise self._missing(path)
        text = await asyncio.to_thread(path.read_text, encoding="utf-8")
        self._logger.debug("fixture_served", path=str(path))
        return json.loads(text)

    async def get_match(self, match_id: str) -> dict[str, Any]:
        return await self._read_json(self._root / "opendota" / "matches" / f"{match_id}.json")

    async def get_player(self, account_id: str) -> dict[str, Any]:
        return await self._read_json(self._root / "opendota" / "players" / f"{account_id}.json")

    async def get_team_match_pages(self, team_id: str) -> list[str]:
        team_dir = self._root / "dotabuff" / "teams" / str(team_id)
        pages: list[str] = []
        page = 1
        while (team_dir / f"page-{page}.html").exists():
            path = team_dir / f"page-{page}.html"
            pages.append(await asyncio.to_thread(path.read_text, encoding="utf-8"))
            page += 1
        if not pages:
            raise self._missing(team_dir / "page-1.html")
        return pages

    def get_provider_name(self) -> str:
        return self._provider_name
