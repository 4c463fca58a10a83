"""Esports stats orchestration service: FastAPI application entry point.

Wires together the cache store, rate limiter, request queue, provider
clients, fetchers and the orchestration service via dependency injection.
Loads configuration from ``.env`` and ``config/config.yaml`` and
configures structured logging.

``build_components`` is also used by the CLI, which runs the same
components outside the web server.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

import httpx
import structlog
import uvicorn
from fastapi import FastAPI

from src.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
)
from src.api.routes import router as api_router
from src.config.loader import load_config, rate_limit_configs
from src.config.settings import Settings
from src.interfaces.cache_provider import ICacheProvider
from src.interfaces.stats_provider import IMatchDataProvider, ITeamPageProvider
from src.models.import_result import OrchestrationConfig
from src.pipeline.orchestrator import OrchestrationService
from src.providers.cache.file_cache import FileCacheProvider
from src.providers.cache.memory_cache import MemoryCacheProvider
from src.providers.cache.redis_cache import RedisCacheProvider
from src.providers.parsing.dotabuff_parser import DotabuffParser
from src.providers.stats.dotabuff_client import DotabuffClient
from src.providers.stats.fixture_client import FixtureStatsClient
from src.providers.stats.opendota_client import OpenDotaClient
from src.services.cache_service import CacheService
from src.services.fetchers import MatchFetcher, PlayerFetcher, TeamMatchesFetcher
from src.services.rate_limiter import RateLimiter
from src.services.request_queue import RequestQueue
from src.utils.logging import configure_logging, get_logger

_VERSION = "0.1.0"

# ---------------------------------------------------------------------------
# Module-level settings & logging
# ---------------------------------------------------------------------------

settings = Settings()
config = load_config(settings=settings)

configure_logging(
    log_level=settings.log_level,
    json_output=settings.is_production,
)
_logger: structlog.BoundLogger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Cache backend selection
# ---------------------------------------------------------------------------


def _build_cache_candidates(app_config: dict) -> list[ICacheProvider]:
    """Return the primary cache backends to probe, most preferred first.

    ``auto`` prefers Redis when a URL is configured, then the file store.
    ``memory`` returns no candidates, leaving only the in-process fallback.
    """
    cache_cfg = app_config.get("cache", {})
    backend = cache_cfg.get("backend", "auto")
    max_age = float(cache_cfg.get("max_age_seconds", 14 * 24 * 3600))
    redis_url = cache_cfg.get("redis_url") or ""

    candidates: list[ICacheProvider] = []
    if backend in ("auto", "redis") and redis_url:
        candidates.append(RedisCacheProvider.from_url(redis_url, max_age=max_age))
    if backend in ("auto", "file"):
        candidates.append(FileCacheProvider(cache_cfg.get("dir", "data/cache"), max_age=max_age))
    if backend == "redis" and not redis_url:
        _logger.warning("redis_url_missing", message="cache_backend=redis without REDIS_URL")
    return candidates


def _build_cache_service(app_config: dict) -> CacheService:
    cache_cfg = app_config.get("cache", {})
    fallback = MemoryCacheProvider(
        max_size=int(cache_cfg.get("max_entries", 5000)),
        max_age=float(cache_cfg.get("max_age_seconds", 14 * 24 * 3600)),
    )
    return CacheService(candidates=_build_cache_candidates(app_config), fallback=fallback)


# ---------------------------------------------------------------------------
# Component assembly
# ---------------------------------------------------------------------------


def build_components(app_settings: Settings, app_config: dict) -> dict[str, Any]:
    """Instantiate every component of the orchestration layer.

    Returns a flat dict of named components to be stored on ``app.state``
    (or used directly by the CLI).  The cache service still needs
    ``await cache_service.initialize()`` before first use.
    """
    http_client = httpx.AsyncClient(timeout=app_settings.http_timeout_seconds, follow_redirects=True)
    parser = DotabuffParser()

    rate_limiter = RateLimiter(rate_limit_configs(app_config))

    mock_cfg = app_config.get("mock", {})
    match_client: IMatchDataProvider
    team_client: ITeamPageProvider
    if mock_cfg.get("enabled"):
        data_dir = mock_cfg.get("data_dir", app_settings.mock_data_dir)
        match_client = FixtureStatsClient(data_dir, "opendota")
        team_client = FixtureStatsClient(data_dir, "dotabuff")
        _logger.info("mock_api_enabled", data_dir=str(data_dir))
    else:
        match_client = OpenDotaClient(http_client, base_url=app_settings.opendota_base_url)
        team_client = DotabuffClient(
            http_client,
            parser,
            base_url=app_settings.dotabuff_base_url,
            rate_limiter=rate_limiter,
        )

    cache_service = _build_cache_service(app_config)

    orchestration_cfg = app_config.get("orchestration", {})
    orchestration_config = OrchestrationConfig(
        invalidate_players_on_force=bool(orchestration_cfg.get("invalidate_players_on_force", False)),
        job_timeout_seconds=orchestration_cfg.get("job_timeout_seconds") or None,
    )
    request_queue = RequestQueue(rate_limiter, job_timeout=orchestration_config.job_timeout_seconds)

    ttl_cfg = app_config.get("ttl", {})
    team_fetcher = TeamMatchesFetcher(
        cache_service,
        request_queue,
        float(ttl_cfg.get("team_seconds", app_settings.team_ttl_seconds)),
        team_client,
        parser,
    )
    match_fetcher = MatchFetcher(
        cache_service,
        request_queue,
        float(ttl_cfg.get("match_seconds", app_settings.match_ttl_seconds)),
        match_client,
    )
    player_fetcher = PlayerFetcher(
        cache_service,
        request_queue,
        float(ttl_cfg.get("player_seconds", app_settings.player_ttl_seconds)),
        match_client,
    )

    orchestrator = OrchestrationService(
        cache=cache_service,
        rate_limiter=rate_limiter,
        queue=request_queue,
        team_fetcher=team_fetcher,
        match_fetcher=match_fetcher,
        player_fetcher=player_fetcher,
        config=orchestration_config,
    )

    return {
        "http_client": http_client,
        "cache_service": cache_service,
        "rate_limiter": rate_limiter,
        "request_queue": request_queue,
        "team_fetcher": team_fetcher,
        "match_fetcher": match_fetcher,
        "player_fetcher": player_fetcher,
        "orchestrator": orchestrator,
    }


async def shutdown_components(components: dict[str, Any]) -> None:
    """Stop queue workers, then release cache and HTTP resources."""
    await components["request_queue"].close()
    await components["cache_service"].close()
    http_client: httpx.AsyncClient = components["http_client"]
    await http_client.aclose()


# ---------------------------------------------------------------------------
# Application lifespan (startup / shutdown)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def _lifespan(application: FastAPI):  # noqa: ANN201
    """Initialise all components on startup, clean up on shutdown."""
    components = build_components(settings, config)

    for key, value in components.items():
        setattr(application.state, key, value)

    backend = await components["cache_service"].initialize()

    _logger.info(
        "app_startup",
        version=_VERSION,
        environment=settings.app_env,
        cache_backend=backend,
        mock_api=settings.use_mock_api,
    )

    yield

    await shutdown_components(components)
    _logger.info("app_shutdown", message="Queues stopped, cache and HTTP client closed")


# ---------------------------------------------------------------------------
# FastAPI application factory
# ---------------------------------------------------------------------------


def create_app() -> FastAPI:
    """Build and configure the FastAPI application."""
    application = FastAPI(
        title="Esports Stats Orchestrator API",
        version=_VERSION,
        description=(
            "Rate-limited, cached access to Dota 2 esports data: import a team's "
            "league matches and rosters in the background and poll for the result."
        ),
        lifespan=_lifespan,
    )

    # -- Middleware (order matters: last added = first executed) --
    application.add_middleware(ErrorHandlingMiddleware)
    application.add_middleware(RequestLoggingMiddleware)
    configure_cors(application)

    application.include_router(api_router)
    return application


app = create_app()

# ---------------------------------------------------------------------------
# Server entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    uvicorn.run(
        "src.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=(settings.app_env == "development"),
    )
