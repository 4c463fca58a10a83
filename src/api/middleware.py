"""API middleware -- CORS, request logging, and error handling.

Provides helper functions and middleware classes to configure cross-origin
resource sharing, structured request logging (via structlog), and automatic
conversion of ``StatsError`` subclasses into JSON ``ErrorResponse`` bodies.

# ─── MIDDLEWARE EXECUTION ORDER (Junior Developer Guide) ───────────────
#
# Starlette middleware is a stack (LIFO -- last added, first executed):
#
#   In main.py:
#     app.add_middleware(ErrorHandlingMiddleware)   # added 1st -> inner
#     app.add_middleware(RequestLoggingMiddleware)   # added 2nd -> outer
#
#   Request flow:
#     Client -> RequestLogging -> ErrorHandling -> route handler
#
# So RequestLoggingMiddleware sees the *final* status code, including
# the ones ErrorHandlingMiddleware produced from exceptions.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import time

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from src.api.schemas import ErrorResponse
from src.utils.errors import StatsError
from src.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

# HTTP status per error category; anything unlisted maps to 500.
_STATUS_BY_CATEGORY: dict[str, int] = {
    "validation": 400,
    "rate_limit": 429,
    "external_api": 502,
    "timeout": 504,
}


def status_for(exc: StatsError) -> int:
    return _STATUS_BY_CATEGORY.get(exc.category, 500)


def error_response(exc: StatsError) -> JSONResponse:
    """Render *exc* as the standard error envelope."""
    body = ErrorResponse(
        error=type(exc).__name__,
        detail=exc.message,
        retryable=exc.retryable,
    )
    return JSONResponse(status_code=status_for(exc), content=body.model_dump())


# ---------------------------------------------------------------------------
# CORS
# ---------------------------------------------------------------------------


def configure_cors(app: FastAPI, *, allowed_origins: list[str] | None = None) -> None:
    """Add CORS middleware to the FastAPI application.

    Parameters
    ----------
    app:
        The FastAPI application instance.
    allowed_origins:
        Explicit list of allowed origins.  Defaults to ``["*"]`` for
        development; override with specific origins in production.
    """
    origins = allowed_origins or ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


# ---------------------------------------------------------------------------
# Request Logging
# ---------------------------------------------------------------------------


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log every HTTP request with method, path, status code, and duration."""

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        start = time.perf_counter()
        response: Response | None = None

        try:
            response = await call_next(request)
            return response
        finally:
            duration_ms = round((time.perf_counter() - start) * 1000, 2)
            status_code = response.status_code if response else 500
            _logger.info(
                "http_request",
                method=request.method,
                path=str(request.url.path),
                status=status_code,
                duration_ms=duration_ms,
            )


# ---------------------------------------------------------------------------
# Error Handling
# ---------------------------------------------------------------------------


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Convert exceptions into the standard JSON error envelope.

    ``StatsError`` subclasses keep their class name, message and retryable
    flag, with a status code chosen by category.  Anything else becomes a
    generic 500 ``InternalError``; its details stay in the server log.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        try:
            return await call_next(request)
        except StatsError as exc:
            log = _logger.warning if exc.category == "validation" else _logger.error
            log(
                "application_error",
                error_type=type(exc).__name__,
                category=exc.category,
                message=exc.message,
                provider=exc.provider_name,
                path=str(request.url.path),
            )
            return error_response(exc)
        except Exception as exc:  # noqa: BLE001
            _logger.critical(
                "unhandled_error",
                error_type=type(exc).__name__,
                path=str(request.url.path),
                exc_info=True,
            )
            body = ErrorResponse(error="InternalError", detail="Internal server error")
            return JSONResponse(status_code=500, content=body.model_dump())
