"""OpenDota JSON API client.

Implements IMatchDataProvider against ``https://api.opendota.com/api``.
The ``httpx.AsyncClient`` is injected via the constructor for testability;
throttling is the request queue's job, so this client never sleeps.
"""

from __future__ import annotations

from typing import Any

import httpx

from src.interfaces.stats_provider import IMatchDataProvider
from src.providers.stats.http_utils import get_checked
from src.utils.errors import ExternalAPIError
from src.utils.logging import get_logger

_DEFAULT_BASE_URL = "https://api.opendota.com/api"


class OpenDotaClient(IMatchDataProvider):
    """Fetches match and player payloads from OpenDota."""

    def __init__(self, http_client: httpx.AsyncClient, base_url: str = _DEFAULT_BASE_URL) -> None:
        self._http = http_client
        self._base_url = base_url.rstrip("/")
        self._logger = get_logger(__name__)

    async def _get_json(self, path: str) -> dict[str, Any]:
        url = f"{self._base_url}{path}"
        response = await get_checked(self._http, url, self.get_provider_name())
        try:
            payload = response.json()
        except ValueError as exc:
            raise ExternalAPIError(
                f"Invalid JSON from {url}",
                provider_name=self.get_provider_name(),
                status_code=response.status_code,
            ) from exc
        if not isinstance(payload, dict):
            raise ExternalAPIError(
                f"Unexpected payload type from {url}: {type(payload).__name__}",
                provider_name=self.get_provider_name(),
                status_code=response.status_code,
            )
        # OpenDota answers unknown ids with 200 and {"error": "Not Found"}.
        if "error" in payload and len(payload) == 1:
            raise ExternalAPIError(
                f"{payload['error']}: {url}",
                provider_name=self.get_provider_name(),
                status_code=404,
            )
        self._logger.debug("opendota_fetched", path=path)
        return payload

    async def get_match(self, match_id: str) -> dict[str, Any]:
        return await self._get_json(f"/matches/{match_id}")

    async def get_player(self, account_id: str) -> dict[str, Any]:
        return await self._get_json(f"/players/{account_id}")

    def get_provider_name(self) -> str:
        return "opendota"
