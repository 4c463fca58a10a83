"""Per-provider rate limiter with sliding window, minimum spacing and backoff.

Three independent constraints decide how long a provider must wait before
its next request, checked in this order:

1. **Backoff** -- after an upstream 429, nothing is sent until
   ``backoff_until`` (``retry_after`` seconds, default 60).  Dominates the
   other two while active.
2. **Sliding window** -- at most ``max_requests`` requests inside any
   ``window_seconds`` span.  When the window is full the wait is the time
   until its oldest request leaves it.
3. **Minimum spacing** -- consecutive requests are at least
   ``delay_seconds`` apart, even when the window has room.

All state mutations are synchronous (no ``await`` between read and write),
which makes them atomic on the single event loop.
"""

from __future__ import annotations

import asyncio
import time
from typing import Awaitable, Callable

from src.models.queue import RateLimitConfig, RateLimitState
from src.utils.logging import get_logger

DEFAULT_BACKOFF_SECONDS = 60.0
_DEFAULT_PROVIDER = "default"


class RateLimiter:
    """Tracks request history per provider and computes the wait before the next call.

    Parameters
    ----------
    configs:
        Per-provider budgets.  A ``"default"`` entry, when present, applies
        to providers without their own entry.
    clock:
        Monotonic time source, injectable for tests.
    sleep:
        Coroutine used to wait, injectable for tests.
    """

    def __init__(
        self,
        configs: dict[str, RateLimitConfig] | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._configs: dict[str, RateLimitConfig] = dict(configs or {})
        self._configs.setdefault(_DEFAULT_PROVIDER, RateLimitConfig())
        self._states: dict[str, RateLimitState] = {}
        self._clock = clock
        self._sleep = sleep
        self._logger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def get_config(self, provider: str) -> RateLimitConfig:
        return self._configs.get(provider) or self._configs[_DEFAULT_PROVIDER]

    def set_rate_limit(self, provider: str, config: RateLimitConfig) -> None:
        self._configs[provider] = config
        self._logger.info(
            "rate_limit_configured",
            provider=provider,
            max_requests=config.max_requests,
            window_seconds=config.window_seconds,
            delay_seconds=config.delay_seconds,
        )

    def _state(self, provider: str) -> RateLimitState:
        state = self._states.get(provider)
        if state is None:
            state = self._states[provider] = RateLimitState()
        return state

    def _prune(self, provider: str, now: float) -> RateLimitState:
        """Drop timestamps that have left the sliding window."""
        state = self._state(provider)
        window = self.get_config(provider).window_seconds
        while state.request_timestamps and now - state.request_timestamps[0] >= window:
            state.request_timestamps.popleft()
        return state

    # ------------------------------------------------------------------
    # Checks
    # ------------------------------------------------------------------

    def can_make_request(self, provider: str) -> bool:
        """Return ``True`` if the sliding window has room and no backoff is active."""
        now = self._clock()
        state = self._prune(provider, now)
        if state.backoff_until is not None and now < state.backoff_until:
            return False
        return len(state.request_timestamps) < self.get_config(provider).max_requests

    def get_delay_needed(self, provider: str) -> float:
        """Return how many seconds to wait before the next request (0 if none)."""
        now = self._clock()
        state = self._prune(provider, now)
        config = self.get_config(provider)

        if state.backoff_until is not None:
            if now < state.backoff_until:
                return state.backoff_until - now
            state.backoff_until = None

        delay = 0.0
        if len(state.request_timestamps) >= config.max_requests:
            oldest = state.request_timestamps[0]
            delay = max(delay, oldest + config.window_seconds - now)
        if state.last_request_time is not None:
            delay = max(delay, state.last_request_time + config.delay_seconds - now)
        return max(delay, 0.0)

    # ------------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------------

    def record_request(self, provider: str) -> None:
        now = self._clock()
        state = self._prune(provider, now)
        state.request_timestamps.append(now)
        state.last_request_time = now

    def record_rate_limit_hit(self, provider: str, retry_after: float | None = None) -> None:
        """Start a backoff window after an upstream rate-limit response."""
        seconds = DEFAULT_BACKOFF_SECONDS if retry_after is None else max(retry_after, 0.0)
        state = self._state(provider)
        until = self._clock() + seconds
        # A shorter retry_after never shortens an active backoff.
        if state.backoff_until is None or until > state.backoff_until:
            state.backoff_until = until
        self._logger.warning("rate_limit_hit", provider=provider, backoff_seconds=seconds)

    async def wait_for_rate_limit(self, provider: str) -> None:
        """Suspend until ``get_delay_needed(provider)`` is zero.

        The delay is recomputed right before every sleep, so waiters never
        act on a value another coroutine has since invalidated.
        """
        while True:
            delay = self.get_delay_needed(provider)
            if delay <= 0:
                return
            self._logger.debug("rate_limit_wait", provider=provider, delay_seconds=round(delay, 3))
            await self._sleep(delay)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def get_state(self, provider: str) -> dict[str, float | int | None]:
        now = self._clock()
        state = self._prune(provider, now)
        return {
            "requests_in_window": len(state.request_timestamps),
            "last_request_time": state.last_request_time,
            "backoff_until": state.backoff_until,
            "backoff_remaining": max(state.backoff_until - now, 0.0) if state.backoff_until else 0.0,
            "delay_needed": self.get_delay_needed(provider),
        }

    def reset(self, provider: str | None = None) -> None:
        if provider is None:
            self._states.clear()
        else:
            self._states.pop(provider, None)
