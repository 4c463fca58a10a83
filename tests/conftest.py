"""Shared pytest fixtures for the esports stats orchestrator test suite."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable

import pytest
import structlog

from src.interfaces.stats_provider import IMatchDataProvider, ITeamPageProvider
from src.models.import_result import OrchestrationConfig
from src.models.queue import RateLimitConfig
from src.pipeline.orchestrator import OrchestrationService
from src.providers.cache.memory_cache import MemoryCacheProvider
from src.providers.parsing.dotabuff_parser import DotabuffParser
from src.services.cache_service import CacheService
from src.services.fetchers import MatchFetcher, PlayerFetcher, TeamMatchesFetcher
from src.services.rate_limiter import RateLimiter
from src.services.request_queue import RequestQueue
from src.utils.errors import ExternalAPIError

# ---------------------------------------------------------------------------
# Time
# ---------------------------------------------------------------------------


class FakeClock:
    """Manually advanced time source."""

    def __init__(self, start: float = 1_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


# ---------------------------------------------------------------------------
# Payload builders
# ---------------------------------------------------------------------------


def _team_row(match_id: str, league_id: str, won: bool = True, opponent_id: str = "39") -> str:
    return f"""
      <tr>
        <td><a class="esports-league" href="/esports/leagues/{league_id}-league">
          <img alt="League {league_id}"></a></td>
        <td><a class="{'won' if won else 'lost'}" href="/matches/{match_id}">Match</a>
          <time datetime="2024-05-01T12:00:00+00:00">May 1</time></td>
        <td><a href="/esports/series/{match_id}0">Series</a><small>Europe</small></td>
        <td>35:10</td>
        <td><div class="image-container-hero"><img title="Pudge"></div>
            <div class="image-container-hero"><img title="Lion"></div></td>
        <td><a class="esports-team" href="/esports/teams/{opponent_id}-opponent">
          <img alt="OPP"><span class="team-text">Opponent {opponent_id}</span></a></td>
      </tr>"""


def build_team_page(
    team_name: str,
    rows: list[tuple[str, str, bool]],
    last_page: int | None = None,
) -> str:
    """Return a Dotabuff-style listing page; *rows* are (match_id, league_id, won)."""
    body = "".join(_team_row(mid, lid, won) for mid, lid, won in rows)
    pagination = ""
    if last_page is not None:
        pagination = f'<nav class="pagination"><span class="last"><a href="?page={last_page}">Last</a></span></nav>'
    return f"""<html><body>
      <div class="header-content"><img class="img-team img-avatar" alt="{team_name}"></div>
      <table class="table"><thead><tr><th>League</th></tr></thead>
        <tbody>{body}</tbody></table>
      {pagination}
    </body></html>"""


def build_match_payload(
    match_id: int,
    radiant_team_id: int,
    dire_team_id: int,
    radiant_ids: list[int],
    dire_ids: list[int],
    radiant_win: bool = True,
) -> dict[str, Any]:
    """Return an OpenDota-style match payload with five players per side."""
    players = [
        {"account_id": aid, "player_slot": slot, "hero_id": slot + 1}
        for slot, aid in enumerate(radiant_ids)
    ] + [
        {"account_id": aid, "player_slot": 128 + slot, "hero_id": slot + 20}
        for slot, aid in enumerate(dire_ids)
    ]
    return {
        "match_id": match_id,
        "radiant_team_id": radiant_team_id,
        "dire_team_id": dire_team_id,
        "radiant_win": radiant_win,
        "duration": 2110,
        "start_time": 1714564800,
        "leagueid": 200,
        "players": players,
        "picks_bans": [{"hero_id": 1, "is_pick": True}],
    }


def build_player_payload(account_id: int, name: str | None = None) -> dict[str, Any]:
    persona = name or f"player{account_id}"
    return {
        "profile": {"account_id": account_id, "personaname": persona, "name": persona.title()},
        "rank_tier": 80,
    }


@pytest.fixture
def team_page() -> Callable[..., str]:
    return build_team_page


@pytest.fixture
def match_payload() -> Callable[..., dict[str, Any]]:
    return build_match_payload


@pytest.fixture
def player_payload() -> Callable[..., dict[str, Any]]:
    return build_player_payload


# ---------------------------------------------------------------------------
# Fake provider clients
# ---------------------------------------------------------------------------


class FakeMatchClient(IMatchDataProvider):
    """In-memory match-data provider that records every call.

    ``failures`` maps ``"match:<id>"`` / ``"player:<id>"`` to the exception
    to raise for that resource.
    """

    def __init__(
        self,
        matches: dict[str, dict[str, Any]] | None = None,
        players: dict[str, dict[str, Any]] | None = None,
    ) -> None:
        self.matches = dict(matches or {})
        self.players = dict(players or {})
        self.failures: dict[str, Exception] = {}
        self.match_calls: list[str] = []
        self.player_calls: list[str] = []

    async def get_match(self, match_id: str) -> dict[str, Any]:
        self.match_calls.append(match_id)
        await asyncio.sleep(0)
        return self._lookup("match", match_id, self.matches)

    async def get_player(self, account_id: str) -> dict[str, Any]:
        self.player_calls.append(account_id)
        await asyncio.sleep(0)
        return self._lookup("player", account_id, self.players)

    def _lookup(self, kind: str, resource_id: str, store: dict[str, dict[str, Any]]) -> dict[str, Any]:
        failure = self.failures.get(f"{kind}:{resource_id}")
        if failure is not None:
            raise failure
        if resource_id not in store:
            raise ExternalAPIError("Not Found", provider_name="opendota", status_code=404)
        return store[resource_id]

    def get_provider_name(self) -> str:
        return "opendota"


class FakeTeamClient(ITeamPageProvider):
    """In-memory team-listing provider that records every call."""

    def __init__(self, pages: dict[str, list[str]] | None = None) -> None:
        self.pages = dict(pages or {})
        self.failures: dict[str, Exception] = {}
        self.calls: list[str] = []

    async def get_team_match_pages(self, team_id: str) -> list[str]:
        self.calls.append(team_id)
        await asyncio.sleep(0)
        if team_id in self.failures:
            raise self.failures[team_id]
        if team_id not in self.pages:
            raise ExternalAPIError("Not Found", provider_name="dotabuff", status_code=404)
        return self.pages[team_id]

    def get_provider_name(self) -> str:
        return "dotabuff"


# ---------------------------------------------------------------------------
# Assembled stack
# ---------------------------------------------------------------------------


@pytest.fixture
def fast_limits() -> dict[str, RateLimitConfig]:
    """Rate limits that never make a test wait."""
    fast = RateLimitConfig(max_requests=10_000, window_seconds=60, delay_seconds=0)
    return {"opendota": fast, "dotabuff": fast, "default": fast}


@dataclass
class Stack:
    cache: CacheService
    rate_limiter: RateLimiter
    queue: RequestQueue
    teams: TeamMatchesFetcher
    matches: MatchFetcher
    players: PlayerFetcher
    orchestrator: OrchestrationService
    match_client: FakeMatchClient
    team_client: FakeTeamClient


@pytest.fixture
def build_stack(fast_limits: dict[str, RateLimitConfig]) -> Callable[..., Stack]:
    """Return a factory assembling the full orchestration stack on fakes."""

    def _build(
        match_client: FakeMatchClient | None = None,
        team_client: FakeTeamClient | None = None,
        config: OrchestrationConfig | None = None,
        cache: CacheService | None = None,
    ) -> Stack:
        match_client = match_client or FakeMatchClient()
        team_client = team_client or FakeTeamClient()
        cache = cache or CacheService(fallback=MemoryCacheProvider())
        rate_limiter = RateLimiter(fast_limits)
        queue = RequestQueue(rate_limiter)
        teams = TeamMatchesFetcher(cache, queue, 7200, team_client, DotabuffParser())
        matches = MatchFetcher(cache, queue, 1_209_600, match_client)
        players = PlayerFetcher(cache, queue, 86_400, match_client)
        orchestrator = OrchestrationService(
            cache=cache,
            rate_limiter=rate_limiter,
            queue=queue,
            team_fetcher=teams,
            match_fetcher=matches,
            player_fetcher=players,
            config=config or OrchestrationConfig(job_timeout_seconds=5),
        )
        return Stack(cache, rate_limiter, queue, teams, matches, players, orchestrator, match_client, team_client)

    return _build


@pytest.fixture
def cache_dir(tmp_path: Path) -> Path:
    """Return a temporary directory for the file cache backend."""
    return tmp_path / "cache"


@pytest.fixture
def match_client() -> FakeMatchClient:
    return FakeMatchClient()


@pytest.fixture
def team_client() -> FakeTeamClient:
    return FakeTeamClient()


@pytest.fixture(autouse=True)
def _reset_structlog():
    """Drop structlog config bound to a per-test capture stream."""
    yield
    structlog.reset_defaults()
