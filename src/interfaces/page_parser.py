"""Abstract base class for team-listing HTML parsers."""

from __future__ import annotations

from abc import ABC, abstractmethod

from src.models.esports import TeamMatches


class ITeamPageParser(ABC):
    """Turns raw team-listing HTML into structured fields.

    The orchestration layer only relies on what this returns: the team
    name and the match ids grouped by league.
    """

    @abstractmethod
    def parse_team_matches(self, pages: list[str], team_id: str) -> TeamMatches:
        """Parse one or more listing pages of *team_id* into a TeamMatches."""

    @abstractmethod
    def get_last_page(self, html: str) -> int:
        """Return the number of the last listing page (1 when unpaginated)."""
