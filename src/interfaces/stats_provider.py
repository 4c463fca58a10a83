"""Abstract base classes for upstream statistics providers.

Two kinds of upstream exist:

* a **match-data API** (OpenDota) returning JSON match and player payloads;
* a **team-page site** (Dotabuff) whose match listings are HTML pages that
  must be parsed.

Both only fetch.  Caching, queueing and rate limiting happen around them
in :mod:`src.services.fetchers`; the queue throttles one request per job,
so a team-page provider that follows pagination must throttle its
follow-up pages itself.  Failures are raised as
:class:`~src.utils.errors.RateLimitError`,
:class:`~src.utils.errors.ExternalAPIError` or
:class:`~src.utils.errors.ProviderTimeoutError`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class IMatchDataProvider(ABC):
    """Contract for the JSON match/player API."""

    @abstractmethod
    async def get_match(self, match_id: str) -> dict[str, Any]:
        """Fetch the raw match payload for *match_id*.

        Raises
        ------
        src.utils.errors.ExternalAPIError
            On a non-2xx response or transport failure.
        src.utils.errors.RateLimitError
            When the provider answers 429.
        """

    @abstractmethod
    async def get_player(self, account_id: str) -> dict[str, Any]:
        """Fetch the raw player payload for *account_id*."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return the provider identifier used for queues and cache keys."""


class ITeamPageProvider(ABC):
    """Contract for the HTML team-listing site."""

    @property
    def max_pages(self) -> int:
        """Upper bound on upstream page requests made by one listing fetch."""
        return 1

    @abstractmethod
    async def get_team_match_pages(self, team_id: str) -> list[str]:
        """Fetch every page of *team_id*'s match listing as raw HTML.

        Returns
        -------
        list[str]
            One HTML document per page, first page first.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return the provider identifier used for queues and cache keys."""
