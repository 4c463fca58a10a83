"""Shared HTTP helpers for upstream statistics clients.

Maps httpx outcomes onto the error taxonomy:

    429                      -> RateLimitError(retry_after=<Retry-After header>)
    other non-2xx            -> ExternalAPIError(status_code=<status>)
    httpx.TimeoutException   -> ProviderTimeoutError
    other httpx.HTTPError    -> ExternalAPIError(status_code=503)
"""

from __future__ import annotations

from datetime import datetime, timezone
from email.utils import parsedate_to_datetime

import httpx

from src.utils.errors import ExternalAPIError, ProviderTimeoutError, RateLimitError


def parse_retry_after(value: str | None) -> float | None:
    """Parse a ``Retry-After`` header given in seconds or as an HTTP date."""
    if not value:
        return None
    value = value.strip()
    try:
        return max(float(value), 0.0)
    except ValueError:
        pass
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return max((when - datetime.now(timezone.utc)).total_seconds(), 0.0)


async def get_checked(
    http_client: httpx.AsyncClient,
    url: str,
    provider_name: str,
    headers: dict[str, str] | None = None,
) -> httpx.Response:
    """GET *url* and return the response, raising on anything but 2xx."""
    try:
        response = await http_client.get(url, headers=headers, follow_redirects=True)
    except httpx.TimeoutException as exc:
        raise ProviderTimeoutError(f"Timed out fetching {url}", provider_name=provider_name) from exc
    except httpx.HTTPError as exc:
        raise ExternalAPIError(
            f"Request to {url} failed: {exc}",
            provider_name=provider_name,
            status_code=503,
        ) from exc

    if response.status_code == 429:
        raise RateLimitError(
            f"Rate limited fetching {url}",
            provider_name=provider_name,
            retry_after=parse_retry_after(response.headers.get("Retry-After")),
        )
    if not response.is_success:
        raise ExternalAPIError(
            f"HTTP {response.status_code} fetching {url}",
            provider_name=provider_name,
            status_code=response.status_code,
        )
    return response
