"""Rate-limit and request-queue models.

``RateLimitConfig`` and ``QueuedResult`` are Pydantic models because they
cross a boundary (YAML config in, HTTP response out).  ``RateLimitState``
and ``QueueJob`` are plain dataclasses: they are internal mutable
bookkeeping, never serialized as-is.
"""

from __future__ import annotations

import asyncio
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Literal

from pydantic import BaseModel, ConfigDict, Field

# A zero-argument coroutine function: the unit of work a queue executes.
Executor = Callable[[], Awaitable[Any]]


class RateLimitConfig(BaseModel):
    """Request budget for one provider.

    Attributes
    ----------
    max_requests:
        Requests allowed inside one sliding window.
    window_seconds:
        Length of the sliding window.
    delay_seconds:
        Minimum spacing between two consecutive requests, enforced even
        when the window still has room.
    """

    model_config = ConfigDict(frozen=True)

    max_requests: int = Field(default=30, ge=1)
    window_seconds: float = Field(default=60.0, gt=0)
    delay_seconds: float = Field(default=1.0, ge=0)


@dataclass
class RateLimitState:
    """Per-provider limiter state.

    ``request_timestamps`` only holds times inside the current window;
    older entries are dropped lazily whenever the limiter inspects it.
    """

    request_timestamps: deque[float] = field(default_factory=deque)
    last_request_time: float | None = None
    backoff_until: float | None = None


@dataclass
class QueueJob:
    """One unit of queued work for a provider."""

    id: str
    provider: str
    signature: str
    executor: Executor
    enqueued_at: float
    timeout_scale: float = 1.0
    future: asyncio.Future | None = field(default=None, repr=False)


class QueuedResult(BaseModel):
    """Returned instead of data when work is (or already was) queued.

    ``already_in_flight`` distinguishes "your request started a job" from
    "an identical job was already queued or executing".
    """

    model_config = ConfigDict(frozen=True)

    status: Literal["queued"] = "queued"
    provider: str
    signature: str
    already_in_flight: bool = False


class ProviderQueueStatus(BaseModel):
    """Introspection snapshot of one provider queue."""

    length: int
    processing: bool
    active_signatures: int
    active_signatures_list: list[str]
    currently_processing: str | None = None
