"""Request and response schemas for the HTTP API.

Data endpoints follow a polling contract: 200 with the payload when it is
cached, 202 with a :class:`QueuedResponse` while a background fetch is in
flight.  Errors always use :class:`ErrorResponse`.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel

from src.models.queue import ProviderQueueStatus


class ImportTeamRequest(BaseModel):
    """Body of ``POST /teams/{team_id}/import``."""

    league_id: str | int
    force: bool = False
    refresh: bool = False


class QueuedResponse(BaseModel):
    """Returned with HTTP 202 while a fetch is queued or executing."""

    status: Literal["queued"] = "queued"
    signature: str | None = None
    provider: str | None = None
    already_in_flight: bool = False


class InvalidateCacheRequest(BaseModel):
    """Body of ``POST /cache/invalidate``: exactly one of ``key`` or ``pattern``.

    The exclusivity check lives in the route so that it surfaces as a 400
    ``RequestValidationError`` rather than a framework 422.
    """

    key: str | None = None
    pattern: str | None = None


class InvalidateCacheResponse(BaseModel):
    status: Literal["ok"] = "ok"
    key: str | None = None
    pattern: str | None = None
    invalidated: int


class QueueStatusResponse(BaseModel):
    queues: dict[str, ProviderQueueStatus]
    timestamp: str


class ClearQueueResponse(BaseModel):
    provider: str
    dropped: int


class HealthResponse(BaseModel):
    """Application health check response."""

    status: str
    version: str
    cache: dict[str, Any]
    queues: dict[str, Any]


class ErrorResponse(BaseModel):
    """Standard error response body."""

    status: Literal["error"] = "error"
    error: str
    detail: str | None = None
    retryable: bool = False
