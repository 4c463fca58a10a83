"""Utility modules for the stats orchestration layer.

Available utility modules (re-exported here for convenience):

- **errors** -- Exception hierarchy rooted at StatsError; each class carries
  a taxonomy ``category`` and a ``retryable`` flag so the queue and the HTTP
  layer can react without matching on class names.
- **logging** -- structlog setup with a dual-renderer pattern: coloured
  console output in development, structured JSON in production.
"""

# -- Domain exception hierarchy --------------------------------------------
from src.utils.errors import (
    CacheBackendError,
    ExternalAPIError,
    InternalError,
    ProviderTimeoutError,
    QueueClearedError,
    RateLimitError,
    RequestValidationError,
    StatsError,
)

# -- Structured logging setup ----------------------------------------------
from src.utils.logging import configure_logging, get_logger

__all__ = [
    "CacheBackendError",
    "ExternalAPIError",
    "InternalError",
    "ProviderTimeoutError",
    "QueueClearedError",
    "RateLimitError",
    "RequestValidationError",
    "StatsError",
    "configure_logging",
    "get_logger",
]
