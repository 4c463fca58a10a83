"""Domain models -- re-exports all public model classes.

The models are organized by concern:
    - cache.py          -- CacheEntry and the cache-key helpers
    - esports.py        -- Team/match/player payloads validated at the provider boundary
    - import_result.py  -- Fetch outcomes, team import aggregate, orchestration config
    - queue.py          -- Rate-limit config/state and request-queue bookkeeping
"""

from __future__ import annotations

from src.models.cache import (
    CacheEntry,
    make_key,
    match_key,
    player_key,
    resource_type_of,
    team_key,
)
from src.models.esports import (
    MatchDetail,
    MatchPlayer,
    MatchSummary,
    Opponent,
    PlayerProfile,
    TeamMatches,
)
from src.models.import_result import (
    FetchOutcome,
    ImportProgress,
    ImportStatus,
    OrchestrationConfig,
    TeamImportResult,
)
from src.models.queue import (
    ProviderQueueStatus,
    QueuedResult,
    QueueJob,
    RateLimitConfig,
    RateLimitState,
)

__all__ = [
    "CacheEntry",
    "FetchOutcome",
    "ImportProgress",
    "ImportStatus",
    "MatchDetail",
    "MatchPlayer",
    "MatchSummary",
    "Opponent",
    "OrchestrationConfig",
    "PlayerProfile",
    "ProviderQueueStatus",
    "QueueJob",
    "QueuedResult",
    "RateLimitConfig",
    "RateLimitState",
    "TeamImportResult",
    "TeamMatches",
    "make_key",
    "match_key",
    "player_key",
    "resource_type_of",
    "team_key",
]
