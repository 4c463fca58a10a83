"""Result models for fetches and team imports.

``FetchOutcome`` is what a provider fetcher hands back for one resource:
either the data (cache hit) or a queued marker.  ``TeamImportResult`` is
the aggregate view of an import; it is never persisted and can always be
rebuilt from the cache store.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from src.models.esports import MatchDetail, PlayerProfile


class ImportStatus(str, Enum):  # noqa: UP042
    """Lifecycle of a team import: QUEUED, then READY, PARTIAL or ERROR."""

    QUEUED = "queued"
    READY = "ready"
    PARTIAL = "partial"
    ERROR = "error"


class FetchOutcome(BaseModel):
    """Outcome of asking a fetcher for one resource.

    ``status == "ready"`` carries ``data``; ``status == "queued"`` carries
    the job ``signature`` to poll on.  ``already_in_flight`` is set when an
    identical job was running before this request.
    """

    model_config = ConfigDict(frozen=True)

    status: Literal["ready", "queued"]
    provider: str
    key: str
    data: Any = None
    signature: str | None = None
    already_in_flight: bool = False

    @property
    def is_ready(self) -> bool:
        return self.status == "ready"


class ImportProgress(BaseModel):
    """Counts behind an import's aggregate status."""

    model_config = ConfigDict(frozen=True)

    matches_ready: int = 0
    matches_total: int = 0
    players_ready: int = 0
    players_total: int = 0


class TeamImportResult(BaseModel):
    """Aggregate state of importing one team for one league."""

    model_config = ConfigDict(frozen=True)

    team_id: str
    league_id: str
    team_name: str | None = None
    match_ids: list[str] = Field(default_factory=list)
    matches: list[MatchDetail] = Field(default_factory=list)
    players: list[PlayerProfile] = Field(default_factory=list)
    status: ImportStatus = ImportStatus.QUEUED
    error: str | None = None
    signatures: list[str] = Field(default_factory=list)
    progress: ImportProgress = Field(default_factory=ImportProgress)


class OrchestrationConfig(BaseModel):
    """Runtime-tunable orchestration options."""

    model_config = ConfigDict(frozen=True)

    invalidate_players_on_force: bool = False
    job_timeout_seconds: float | None = Field(default=60.0, ge=0)
