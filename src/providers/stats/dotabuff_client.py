"""Dotabuff team match-listing client.

Implements ITeamPageProvider by fetching the HTML pages of
``/esports/teams/{id}/matches``.  The first page tells us how many pages
exist (the "last" pagination link); the remaining pages are fetched
sequentially with a browser-like User-Agent, since the site rejects
obvious bots.

The request queue throttles the first page of a listing.  Every further
page goes through the shared rate limiter here, so the provider's
sliding window counts all of them.
"""

from __future__ import annotations

import asyncio

import httpx

from src.interfaces.page_parser import ITeamPageParser
from src.interfaces.stats_provider import ITeamPageProvider
from src.providers.stats.http_utils import get_checked
from src.services.rate_limiter import RateLimiter
from src.utils.logging import get_logger

_DEFAULT_BASE_URL = "https://www.dotabuff.com"
_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
}
_MAX_PAGES = 20


class DotabuffClient(ITeamPageProvider):
    """Fetches every page of a team's Dotabuff match listing.

    Parameters
    ----------
    http_client:
        Shared ``httpx.AsyncClient``.
    parser:
        Used only to read the last page number from the first page.
    base_url:
        Site root, overridable for tests.
    page_delay:
        Seconds to wait between two pages of the same listing when no
        rate limiter is given.
    rate_limiter:
        Shared limiter; pages 2..N wait for it and are recorded in it.
    max_pages:
        Pages beyond this are never requested.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        parser: ITeamPageParser,
        base_url: str = _DEFAULT_BASE_URL,
        page_delay: float = 2.0,
        rate_limiter: RateLimiter | None = None,
        max_pages: int = _MAX_PAGES,
    ) -> None:
        self._http = http_client
        self._parser = parser
        self._base_url = base_url.rstrip("/")
        self._page_delay = page_delay
        self._rate_limiter = rate_limiter
        self._max_pages = max(max_pages, 1)
        self._logger = get_logger(__name__)

    @property
    def max_pages(self) -> int:
        return self._max_pages

    async def _fetch_page(self, team_id: str, page: int) -> str:
        url = f"{self._base_url}/esports/teams/{team_id}/matches"
        if page > 1:
            url = f"{url}?page={page}"
        response = await get_checked(self._http, url, self.get_provider_name(), headers=_HEADERS)
        return response.text

    async def _throttle(self) -> None:
        if self._rate_limiter is not None:
            provider = self.get_provider_name()
            await self._rate_limiter.wait_for_rate_limit(provider)
            self._rate_limiter.record_request(provider)
        elif self._page_delay > 0:
            await asyncio.sleep(self._page_delay)

    async def get_team_match_pages(self, team_id: str) -> list[str]:
        first = await self._fetch_page(team_id, 1)
        last_page = min(self._parser.get_last_page(first), self._max_pages)
        pages = [first]
        for page in range(2, last_page + 1):
            await self._throttle()
            pages.append(await self._fetch_page(team_id, page))

        self._logger.info("dotabuff_pages_fetched", team_id=team_id, pages=len(pages))
        return pages

    def get_provider_name(self) -> str:
        return "dotabuff"
