"""Orchestration service: one "import team X in league Y" call, many background jobs.

ARCHITECTURE NOTE (for junior developers):
    An import is a cascade of independent queued jobs:

        team listing (dotabuff queue)
          └─ on_ready: one match job per uncached match of the league (opendota queue)
                └─ on_ready: one player job per uncached rostered player (opendota queue)

    The caller is never blocked: ``import_team`` returns as soon as the
    first job is submitted, and ``get_import_status`` rebuilds the
    aggregate from the cache store on every poll.

    Cascading happens inside ``on_ready`` callbacks, which run inside a
    queue worker.  They read the cache and *submit* further jobs, but never
    await a job: awaiting a job of the same provider from there would wait
    on the very worker running the callback.

    Status semantics:
        queued   -- jobs were just dispatched, or team discovery is in flight
        ready    -- every discovered match is cached and at least one player is
        partial  -- some matches or players are still outstanding (or failed)
        error    -- the team/match discovery itself failed

    A failed match or player job only keeps the import ``partial``; a
    failed discovery aborts it with ``error``.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import structlog

from src.models.esports import MatchDetail, PlayerProfile, TeamMatches
from src.models.import_result import (
    FetchOutcome,
    ImportProgress,
    ImportStatus,
    OrchestrationConfig,
    TeamImportResult,
)
from src.pipeline.import_tracker import ImportRecord, ImportTracker
from src.services.cache_service import CacheService
from src.services.fetchers import MatchFetcher, PlayerFetcher, TeamMatchesFetcher, validate_numeric_id
from src.services.rate_limiter import RateLimiter
from src.services.request_queue import RequestQueue
from src.utils.logging import get_logger


class OrchestrationService:
    """Coordinates team imports across the cache store, rate limiter and request queue.

    All collaborators are injected at construction time; the application
    entry point owns their lifetime.
    """

    def __init__(
        self,
        cache: CacheService,
        rate_limiter: RateLimiter,
        queue: RequestQueue,
        team_fetcher: TeamMatchesFetcher,
        match_fetcher: MatchFetcher,
        player_fetcher: PlayerFetcher,
        tracker: ImportTracker | None = None,
        config: OrchestrationConfig | None = None,
    ) -> None:
        self._cache = cache
        self._rate_limiter = rate_limiter
        self._queue = queue
        self._teams = team_fetcher
        self._matches = match_fetcher
        self._players = player_fetcher
        self._tracker = tracker or ImportTracker()
        self._config = config or OrchestrationConfig(job_timeout_seconds=queue.job_timeout)
        self._queue.set_job_timeout(self._config.job_timeout_seconds)
        self._logger: structlog.BoundLogger = get_logger(__name__)

    @property
    def cache(self) -> CacheService:
        return self._cache

    @property
    def rate_limiter(self) -> RateLimiter:
        return self._rate_limiter

    @property
    def queue(self) -> RequestQueue:
        return self._queue

    # ------------------------------------------------------------------
    # Team import
    # ------------------------------------------------------------------

    async def import_team(
        self,
        team_id: Any,
        league_id: Any,
        force: bool = False,
        refresh: bool = False,
    ) -> TeamImportResult:
        """Start (or resume) importing *team_id*'s matches in *league_id*.

        Parameters
        ----------
        team_id, league_id:
            Numeric identifiers; anything else raises RequestValidationError
            before any work is queued.
        force:
            Invalidate the team, its known matches and (if configured) its
            players, then import from scratch.
        refresh:
            Re-fetch the team listing and dispatch jobs only for matches
            that were not in the previously cached listing.

        Returns
        -------
        TeamImportResult
            ``queued`` if any job was dispatched, otherwise the aggregate
            status rebuilt from the cache.
        """
        tid = validate_numeric_id(team_id, "team")
        lid = validate_numeric_id(league_id, "league")
        self._logger.info("team_import_requested", team_id=tid, league_id=lid, force=force, refresh=refresh)

        if force:
            await self.invalidate_team_cache(tid, lid)

        previous_ids: set[str] | None = None
        if refresh and not force:
            cached_team = await self._teams.get_cached(tid)
            previous_ids = set(cached_team.match_ids_for(lid)) if cached_team else set()

        record = self._tracker.start(tid, lid, previous_ids)
        outcome = await self._teams.request(
            tid,
            force=refresh and not force,
            on_ready=self._team_ready_callback(tid),
            on_error=self._team_error_callback(tid),
        )
        if not outcome.is_ready:
            # Settled by whichever submitter's callbacks run the discovery.
            record.awaiting_team = True
            return TeamImportResult(
                team_id=tid,
                league_id=lid,
                status=ImportStatus.QUEUED,
                signatures=[outcome.signature] if outcome.signature else [],
            )

        team: TeamMatches = outcome.data
        record.awaiting_team = False
        signatures = await self._dispatch_matches(record, team)
        result = await self._build_status(team, record)
        if signatures:
            return result.model_copy(update={"status": ImportStatus.QUEUED, "signatures": signatures})
        return result

    def _team_ready_callback(self, team_id: str):  # noqa: ANN202
        async def on_team_ready(team: TeamMatches) -> None:
            for record in self._tracker.release_team(team_id):
                await self._dispatch_matches(record, team)

        return on_team_ready

    def _team_error_callback(self, team_id: str):  # noqa: ANN202
        def on_team_error(exc: Exception) -> None:
            self._tracker.fail_team(team_id, f"Team discovery failed: {exc}")

        return on_team_error

    async def _dispatch_matches(self, record: ImportRecord, team: TeamMatches) -> list[str]:
        """Queue match jobs for the league's uncached matches; return new signatures.

        Matches that are already cached get their players cascaded right
        away; matches already in flight elsewhere are awaited.  With
        ``record.previous_match_ids`` (incremental refresh) only ids
        missing from it are considered at all.
        """
        record.team_name = team.team_name
        previous_ids = record.previous_match_ids
        match_ids = team.match_ids_for(record.league_id)
        targets = [mid for mid in match_ids if previous_ids is None or mid not in previous_ids]

        signatures: list[str] = []
        for match_id in targets:
            if match_id in record.dispatched_matches:
                continue
            record.dispatched_matches.add(match_id)
            outcome = await self._matches.request(
                match_id,
                on_ready=self._match_ready_callback(match_id),
                on_error=self._match_error_callback(match_id),
            )
            if outcome.is_ready:
                signatures += await self._dispatch_players(record, outcome.data)
                continue
            record.awaiting_matches.add(match_id)
            if not outcome.already_in_flight and outcome.signature:
                signatures.append(outcome.signature)

        self._logger.info(
            "team_matches_dispatched",
            team_id=record.team_id,
            league_id=record.league_id,
            discovered=len(match_ids),
            targeted=len(targets),
            dispatched=len(signatures),
            incremental=previous_ids is not None,
        )
        return signatures

    def _match_ready_callback(self, match_id: str):  # noqa: ANN202
        async def on_match_ready(match: MatchDetail) -> None:
            for record in self._tracker.release_match(match_id):
                await self._dispatch_players(record, match)

        return on_match_ready

    def _match_error_callback(self, match_id: str):  # noqa: ANN202
        def on_match_error(exc: Exception) -> None:
            self._tracker.fail_match(match_id, str(exc))

        return on_match_error

    def _player_error_callback(self, record: ImportRecord, account_id: str):  # noqa: ANN202
        def on_player_error(exc: Exception) -> None:
            self._tracker.record_player_failure(record, account_id, str(exc))

        return on_player_error

    async def _dispatch_players(
        self,
        record: ImportRecord | None,
        match: MatchDetail,
        team_id: str | None = None,
    ) -> list[str]:
        """Queue a player job for each uncached rostered player of the team.

        With a *record*, each account id is dispatched at most once per
        import, however many of its matches list it.
        """
        owner = record.team_id if record is not None else team_id
        if owner is None:
            return []

        signatures: list[str] = []
        for player in match.players_for_team(owner):
            account_id = str(player.account_id)
            if record is not None and not record.claim_player(account_id):
                continue
            outcome = await self._players.request(
                account_id,
                on_error=self._player_error_callback(record, account_id) if record is not None else None,
            )
            if not outcome.is_ready and not outcome.already_in_flight and outcome.signature:
                signatures.append(outcome.signature)

        self._logger.debug(
            "match_players_dispatched",
            team_id=owner,
            match_id=match.match_id,
            dispatched=len(signatures),
        )
        return signatures

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    async def get_import_status(self, team_id: Any, league_id: Any) -> TeamImportResult | None:
        """Rebuild the aggregate import state from the cache.

        Returns ``None`` when the team was never imported and nothing is
        cached for it.
        """
        tid = validate_numeric_id(team_id, "team")
        lid = validate_numeric_id(league_id, "league")
        record = self._tracker.get(tid, lid)
        team = await self._teams.get_cached(tid)

        if team is None:
            signature = self._teams.signature(tid)
            if self._queue.is_active(self._teams.provider, signature):
                return TeamImportResult(
                    team_id=tid, league_id=lid, status=ImportStatus.QUEUED, signatures=[signature]
                )
            if record is not None and record.awaiting_team and not record.error:
                self._tracker.record_error(record, "Team discovery ended without a result")
            if record is not None and record.error:
                return TeamImportResult(
                    team_id=tid, league_id=lid, status=ImportStatus.ERROR, error=record.error
                )
            return None

        if record is not None:
            await self._resume_waiting(record, team)
        return await self._build_status(team, record, lid)

    async def _resume_waiting(self, record: ImportRecord, team: TeamMatches) -> None:
        """Catch up on jobs that settled without releasing *record*.

        Only jobs submitted outside the orchestration service (e.g. a bare
        ``fetch``) settle that way; their results are in the cache.
        """
        team_signature = self._teams.signature(record.team_id)
        if record.awaiting_team and not self._queue.is_active(self._teams.provider, team_signature):
            record.awaiting_team = False
            await self._dispatch_matches(record, team)

        for match_id in sorted(record.awaiting_matches):
            if self._queue.is_active(self._matches.provider, self._matches.signature(match_id)):
                continue
            match = await self._matches.get_cached(match_id)
            if match is not None:
                record.awaiting_matches.discard(match_id)
                await self._dispatch_players(record, match)

    async def _build_status(
        self,
        team: TeamMatches,
        record: ImportRecord | None,
        league_id: str | None = None,
    ) -> TeamImportResult:
        lid = league_id or (record.league_id if record else "")
        match_ids = team.match_ids_for(lid)

        matches: list[MatchDetail] = []
        for match_id in match_ids:
            match = await self._matches.get_cached(match_id)
            if match is not None:
                matches.append(match)

        account_ids: list[str] = []
        for match in matches:
            for player in match.players_for_team(team.team_id):
                if str(player.account_id) not in account_ids:
                    account_ids.append(str(player.account_id))

        players: list[PlayerProfile] = []
        for account_id in account_ids:
            profile = await self._players.get_cached(account_id)
            if profile is not None:
                players.append(profile)

        progress = ImportProgress(
            matches_ready=len(matches),
            matches_total=len(match_ids),
            players_ready=len(players),
            players_total=len(account_ids),
        )
        if not match_ids:
            status = ImportStatus.READY
        elif len(matches) == len(match_ids) and players and len(players) == len(account_ids):
            status = ImportStatus.READY
        else:
            status = ImportStatus.PARTIAL

        return TeamImportResult(
            team_id=team.team_id,
            league_id=lid,
            team_name=team.team_name,
            match_ids=match_ids,
            matches=matches,
            players=players,
            status=status,
            error=record.failure_summary() if record else None,
            progress=progress,
        )

    # ------------------------------------------------------------------
    # Single resources
    # ------------------------------------------------------------------

    async def queue_team_data(self, team_id: Any, force: bool = False) -> FetchOutcome:
        """Return the cached team listing, or queue its fetch.

        The fetch cascades only into imports already awaiting this team.
        """
        tid = validate_numeric_id(team_id, "team")
        return await self._teams.request(
            tid,
            force=force,
            on_ready=self._team_ready_callback(tid),
            on_error=self._team_error_callback(tid),
        )

    async def queue_match_data(self, match_id: Any, team_id: Any = None, force: bool = False) -> FetchOutcome:
        """Return the cached match, or queue its fetch.

        With *team_id*, the fetched match cascades player jobs for that
        team's side of the roster.  Imports awaiting the match are
        released either way.
        """
        mid = validate_numeric_id(match_id, "match")
        owner = validate_numeric_id(team_id, "team") if team_id is not None else None
        release = self._match_ready_callback(mid)

        async def on_ready(match: MatchDetail) -> None:
            if owner is not None:
                await self._dispatch_players(None, match, team_id=owner)
            await release(match)

        return await self._matches.request(
            mid, force=force, on_ready=on_ready, on_error=self._match_error_callback(mid)
        )

    async def queue_player_data(self, account_id: Any, force: bool = False) -> FetchOutcome:
        """Return the cached player, or queue its fetch."""
        return await self._players.request(account_id, force=force)

    # ------------------------------------------------------------------
    # Invalidation
    # ------------------------------------------------------------------

    async def invalidate_team_cache(
        self,
        team_id: Any,
        league_id: Any = None,
        match_ids: list[str] | None = None,
        player_ids: list[str] | None = None,
    ) -> dict[str, int]:
        """Invalidate a team, its known matches and optionally its players.

        Match ids default to the cached listing (the league's matches when
        *league_id* is given, every league's otherwise).  Player ids
        default to the team's rostered players in those cached matches when
        ``invalidate_players_on_force`` is enabled.
        """
        tid = validate_numeric_id(team_id, "team")
        team = await self._teams.get_cached(tid)

        if match_ids is None:
            match_ids = []
            if team is not None:
                if league_id is not None:
                    match_ids = team.match_ids_for(validate_numeric_id(league_id, "league"))
                else:
                    for league in team.matches_by_league:
                        match_ids += team.match_ids_for(league)
        match_ids = [validate_numeric_id(mid, "match") for mid in match_ids]

        if player_ids is None:
            player_ids = []
            if self._config.invalidate_players_on_force:
                for match_id in match_ids:
                    match = await self._matches.get_cached(match_id)
                    if match is not None:
                        player_ids += [str(p.account_id) for p in match.players_for_team(tid)]
        player_ids = sorted({validate_numeric_id(pid, "player") for pid in player_ids})

        await self._teams.invalidate(tid)
        for match_id in match_ids:
            await self._matches.invalidate(match_id)
        for account_id in player_ids:
            await self._players.invalidate(account_id)

        counts = {"teams": 1, "matches": len(match_ids), "players": len(player_ids)}
        self._logger.info("team_cache_invalidated", team_id=tid, **counts)
        return counts

    async def invalidate_key(self, key: str) -> None:
        await self._cache.invalidate(key)

    async def invalidate_pattern(self, pattern: str) -> int:
        return await self._cache.invalidate_pattern(pattern)

    # ------------------------------------------------------------------
    # Queue & configuration
    # ------------------------------------------------------------------

    def clear_service_queue(self, provider: str) -> int:
        return self._queue.clear_queue(provider)

    def get_queue_status(self) -> dict[str, Any]:
        return {
            "queues": {
                provider: status.model_dump()
                for provider, status in self._queue.get_all_status().items()
            },
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    def get_config(self) -> OrchestrationConfig:
        return self._config

    def update_config(self, **changes: Any) -> OrchestrationConfig:
        """Apply *changes* to the orchestration config and return the new config."""
        self._config = OrchestrationConfig.model_validate({**self._config.model_dump(), **changes})
        self._queue.set_job_timeout(self._config.job_timeout_seconds)
        self._logger.info("orchestration_config_updated", **self._config.model_dump())
        return self._config
