"""Custom exception hierarchy for the stats orchestration layer.

All application exceptions inherit from :class:`StatsError`, which carries
an optional ``provider_name`` so error handlers can identify which upstream
(e.g. "opendota", "dotabuff", "redis") caused the failure.

The hierarchy mirrors the error taxonomy the HTTP layer reports:

    StatsError  (base -- catch-all for any orchestration error)
    +-- RequestValidationError (missing / malformed identifiers)
    +-- RateLimitError         (upstream signalled throttling)
    +-- ExternalAPIError       (non-2xx or transport failure from a provider)
    +-- CacheBackendError      (cache backend read/write failure)
    +-- ProviderTimeoutError   (an executor exceeded its allotted time)
    +-- QueueClearedError      (a queued job was dropped before it started)
    +-- InternalError          (unexpected payload shape or logic error)

Each class exposes ``category`` (the taxonomy name) and ``retryable`` so
callers can decide between retrying, backing off, or giving up without
matching on class names.
"""

from __future__ import annotations


class StatsError(Exception):
    """Base exception for all orchestration errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``provider_name`` identifying which upstream triggered the error.
    The ``__str__`` method prefixes the provider name in brackets for
    structured log output, e.g. ``[opendota] Rate limit exceeded``.
    """

    category: str = "internal"

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    @property
    def retryable(self) -> bool:
        return False

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Caller errors
# ---------------------------------------------------------------------------

class RequestValidationError(StatsError):
    """Raised when a required identifier is missing or malformed.

    Validation happens before anything is queued, so no upstream work is
    started for a rejected request.
    """

    category = "validation"

    def __init__(
        self,
        message: str = "Invalid request",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Upstream / provider errors
# ---------------------------------------------------------------------------

class RateLimitError(StatsError):
    """Raised when a provider answers with HTTP 429 (or equivalent).

    ``retry_after`` holds the number of seconds the provider asked us to
    wait, when it said so.  The request queue feeds it into the rate
    limiter's backoff window.
    """

    category = "rate_limit"

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        provider_name: str | None = None,
        retry_after: float | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
        self._retry_after = retry_after

    @property
    def retry_after(self) -> float | None:
        return self._retry_after

    @property
    def retryable(self) -> bool:
        return True


class ExternalAPIError(StatsError):
    """Raised when a provider returns a non-2xx response or is unreachable.

    Retryable for 5xx and 429 responses, terminal otherwise (a 404 for an
    unknown match will not start existing on retry).
    """

    category = "external_api"

    def __init__(
        self,
        message: str = "External API request failed",
        provider_name: str | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
        self._status_code = status_code

    @property
    def status_code(self) -> int | None:
        return self._status_code

    @property
    def retryable(self) -> bool:
        if self._status_code is None:
            return True
        return self._status_code >= 500 or self._status_code == 429


class ProviderTimeoutError(StatsError):
    """Raised when a queued executor exceeds its allotted time."""

    category = "timeout"

    def __init__(
        self,
        message: str = "Provider request timed out",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)

    @property
    def retryable(self) -> bool:
        return True


# ---------------------------------------------------------------------------
# Infrastructure errors
# ---------------------------------------------------------------------------

class CacheBackendError(StatsError):
    """Raised by a cache backend when a read or write fails.

    The cache service absorbs these by retrying against the in-process
    memory backend; they only escape when the memory backend fails too.
    """

    category = "cache"

    def __init__(
        self,
        message: str = "Cache backend operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)

    @property
    def retryable(self) -> bool:
        return True


class QueueClearedError(StatsError):
    """Raised on a pending job's future when its provider queue is cleared."""

    category = "cancelled"

    def __init__(
        self,
        message: str = "Queued job was cleared before it started",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)

    @property
    def retryable(self) -> bool:
        return True


class InternalError(StatsError):
    """Raised when a payload has an unexpected shape or an invariant breaks."""

    category = "internal"

    def __init__(
        self,
        message: str = "Internal error",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
