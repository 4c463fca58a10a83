"""FastAPI API routes for the esports stats orchestration layer.

Every data endpoint follows the same polling contract: HTTP 200 with the
payload when it is cached, HTTP 202 with ``{"status": "queued", ...}``
while a background fetch is in flight.  ``force=true`` invalidates the
cached entry and always queues a refetch.  Service dependencies are
resolved from ``app.state`` via FastAPI's ``Depends`` using the
``Annotated`` pattern.

# ─── API ROUTE MAP (Junior Developer Guide) ───────────────────────────
#
# Endpoint                              Method  Description
# ─────────────────────────────────────────────────────────────────────
# /api/v1/teams/{tid}/import            POST    Start a team/league import
# /api/v1/teams/{tid}/import?league_id= GET     Poll the aggregate import status
# /api/v1/teams/{tid}/matches           GET     Team listing (cache, else queue)
# /api/v1/matches/{mid}                 GET     Match detail (cache, else queue)
# /api/v1/players/{aid}                 GET     Player profile (cache, else queue)
# /api/v1/cache/invalidate              POST    Drop one key or a glob pattern
# /api/v1/queue/status                  GET     Per-provider queue snapshot
# /api/v1/queue/{provider}              DELETE  Drop a provider's pending jobs
# /api/v1/health                        GET     Cache backend + queue summary
#
# Non-numeric identifiers raise RequestValidationError before anything is
# queued; ErrorHandlingMiddleware turns that into a 400.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse

from src.api.schemas import (
    ClearQueueResponse,
    HealthResponse,
    ImportTeamRequest,
    InvalidateCacheRequest,
    InvalidateCacheResponse,
    QueuedResponse,
    QueueStatusResponse,
)
from src.models.import_result import FetchOutcome, ImportStatus, TeamImportResult
from src.pipeline.orchestrator import OrchestrationService
from src.services.cache_service import CacheService
from src.utils.errors import RequestValidationError
from src.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

router = APIRouter(prefix="/api/v1")

_VERSION = "0.1.0"

# Import states after which polling can stop.
_TERMINAL_STATES = frozenset({ImportStatus.READY, ImportStatus.ERROR})


def _get_orchestrator(request: Request) -> OrchestrationService:
    """Return the orchestration service from application state."""
    return request.app.state.orchestrator


def _get_cache_service(request: Request) -> CacheService:
    """Return the cache service from application state."""
    return request.app.state.cache_service


OrchestratorDep = Annotated[OrchestrationService, Depends(_get_orchestrator)]
CacheDep = Annotated[CacheService, Depends(_get_cache_service)]


def _outcome_response(outcome: FetchOutcome) -> JSONResponse:
    if outcome.is_ready:
        return JSONResponse(status_code=200, content=outcome.data.model_dump(mode="json"))
    body = QueuedResponse(
        signature=outcome.signature,
        provider=outcome.provider,
        already_in_flight=outcome.already_in_flight,
    )
    return JSONResponse(status_code=202, content=body.model_dump())


def _import_response(result: TeamImportResult, status_code: int) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=result.model_dump(mode="json"))


# ---------------------------------------------------------------------------
# Team imports
# ---------------------------------------------------------------------------


@router.post("/teams/{team_id}/import", summary="Start a team import for one league")
async def import_team(
    team_id: str,
    body: ImportTeamRequest,
    orchestrator: OrchestratorDep,
) -> JSONResponse:
    result = await orchestrator.import_team(
        team_id, body.league_id, force=body.force, refresh=body.refresh
    )
    status_code = 202 if result.status == ImportStatus.QUEUED else 200
    return _import_response(result, status_code)


@router.get("/teams/{team_id}/import", summary="Poll the aggregate status of a team import")
async def get_import_status(
    team_id: str,
    orchestrator: OrchestratorDep,
    league_id: str = Query(default=""),
) -> JSONResponse:
    result = await orchestrator.get_import_status(team_id, league_id)
    if result is None:
        return JSONResponse(
            status_code=404,
            content={
                "status": "error",
                "error": "NotFound",
                "detail": f"No import found for team {team_id} in league {league_id}",
                "retryable": False,
            },
        )
    status_code = 200 if result.status in _TERMINAL_STATES else 202
    return _import_response(result, status_code)


# ---------------------------------------------------------------------------
# Single resources
# ---------------------------------------------------------------------------


@router.get("/teams/{team_id}/matches", summary="Team match listing")
async def get_team_matches(
    team_id: str,
    orchestrator: OrchestratorDep,
    force: bool = False,
) -> JSONResponse:
    return _outcome_response(await orchestrator.queue_team_data(team_id, force=force))


@router.get("/matches/{match_id}", summary="Match detail")
async def get_match(
    match_id: str,
    orchestrator: OrchestratorDep,
    team_id: str | None = None,
    force: bool = False,
) -> JSONResponse:
    outcome = await orchestrator.queue_match_data(match_id, team_id=team_id, force=force)
    return _outcome_response(outcome)


@router.get("/players/{account_id}", summary="Player profile")
async def get_player(
    account_id: str,
    orchestrator: OrchestratorDep,
    force: bool = False,
) -> JSONResponse:
    return _outcome_response(await orchestrator.queue_player_data(account_id, force=force))


# ---------------------------------------------------------------------------
# Cache & queue administration
# ---------------------------------------------------------------------------


@router.post(
    "/cache/invalidate",
    response_model=InvalidateCacheResponse,
    summary="Invalidate one cache key or every key matching a glob",
)
async def invalidate_cache(
    body: InvalidateCacheRequest,
    orchestrator: OrchestratorDep,
) -> InvalidateCacheResponse:
    if bool(body.key) == bool(body.pattern):
        raise RequestValidationError("Provide exactly one of 'key' or 'pattern'")
    if body.key:
        await orchestrator.invalidate_key(body.key)
        _logger.info("cache_key_invalidated", key=body.key)
        return InvalidateCacheResponse(key=body.key, invalidated=1)
    removed = await orchestrator.invalidate_pattern(body.pattern)
    _logger.info("cache_pattern_invalidated", pattern=body.pattern, removed=removed)
    return InvalidateCacheResponse(pattern=body.pattern, invalidated=removed)


@router.get("/queue/status", response_model=QueueStatusResponse, summary="Request queue status")
async def queue_status(orchestrator: OrchestratorDep) -> QueueStatusResponse:
    return QueueStatusResponse.model_validate(orchestrator.get_queue_status())


@router.delete(
    "/queue/{provider}",
    response_model=ClearQueueResponse,
    summary="Drop every pending job of one provider",
)
async def clear_queue(provider: str, orchestrator: OrchestratorDep) -> ClearQueueResponse:
    dropped = orchestrator.clear_service_queue(provider)
    return ClearQueueResponse(provider=provider, dropped=dropped)


# ---------------------------------------------------------------------------
# System endpoints
# ---------------------------------------------------------------------------


@router.get("/health", response_model=HealthResponse, summary="Application health check")
async def health_check(cache: CacheDep, orchestrator: OrchestratorDep) -> HealthResponse:
    """Return cache backend health and a per-provider queue summary."""
    cache_ok = await cache.is_healthy()
    queues = {
        provider: {"length": status.length, "processing": status.processing}
        for provider, status in orchestrator.queue.get_all_status().items()
    }
    return HealthResponse(
        status="healthy" if cache_ok else "degraded",
        version=_VERSION,
        cache={"backend": cache.backend_type, "healthy": cache_ok, "stats": cache.get_stats()},
        queues=queues,
    )
