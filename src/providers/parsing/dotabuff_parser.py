"""Dotabuff team match-listing parser.

Parses the HTML of ``/esports/teams/{id}/matches`` into a
:class:`~src.models.esports.TeamMatches`.  Each listing row looks like::

    <tr>
      <td><a class="esports-league" href="/esports/leagues/15728-ti"><img alt="TI 2023"></a></td>
      <td><a class="won" href="/matches/7936128769">Won Match</a><time datetime="..."></time></td>
      <td><a href="/esports/series/2468">Series</a><small>Europe</small></td>
      <td>38:12</td>
      <td><div class="image-container-hero"><img title="Pudge"></div>...</td>
      <td><a class="esports-team" href="/esports/teams/2163-liquid"><img alt="TL"><span class="team-text">Team Liquid</span></a></td>
    </tr>

Rows without a match link are skipped.  Several pages (pagination) may be
passed at once; their rows are merged in order.
"""

from __future__ import annotations

import re

from bs4 import BeautifulSoup, Tag

from src.interfaces.page_parser import ITeamPageParser
from src.models.esports import MatchSummary, Opponent, TeamMatches
from src.utils.logging import get_logger

_LEADING_ID_RE = re.compile(r"^(\d+)")
_PAGE_RE = re.compile(r"[?&]page=(\d+)")
_UNKNOWN_LEAGUE = "unknown"


def _last_segment(href: str) -> str:
    return href.rstrip("/").split("/")[-1] if href else ""


def _leading_id(href: str) -> str:
    """Return the numeric prefix of the last path segment (``15728-ti`` -> ``15728``)."""
    match = _LEADING_ID_RE.match(_last_segment(href))
    return match.group(1) if match else ""


def _text(tag: Tag | None) -> str:
    return tag.get_text(strip=True) if tag else ""


def _attr(tag: Tag | None, name: str) -> str:
    if tag is None:
        return ""
    value = tag.get(name)
    return value if isinstance(value, str) else ""


class DotabuffParser(ITeamPageParser):
    """BeautifulSoup-based parser for Dotabuff team match listings."""

    def __init__(self) -> None:
        self._logger = get_logger(__name__)

    def parse_team_matches(self, pages: list[str], team_id: str) -> TeamMatches:
        team_name = ""
        matches_by_league: dict[str, list[MatchSummary]] = {}

        for html in pages:
            soup = BeautifulSoup(html, "html.parser")
            if not team_name:
                team_name = self._extract_team_name(soup)
            for row in soup.select("table.table tbody tr"):
                summary = self._parse_row(row)
                if summary is not None:
                    matches_by_league.setdefault(summary.league_id, []).append(summary)

        self._logger.debug(
            "dotabuff_pages_parsed",
            team_id=team_id,
            pages=len(pages),
            leagues=len(matches_by_league),
            matches=sum(len(rows) for rows in matches_by_league.values()),
        )
        return TeamMatches(
            team_id=str(team_id),
            team_name=team_name or str(team_id),
            matches_by_league=matches_by_league,
        )

    def get_last_page(self, html: str) -> int:
        soup = BeautifulSoup(html, "html.parser")
        link = soup.select_one("span.last a")
        match = _PAGE_RE.search(_attr(link, "href"))
        return int(match.group(1)) if match else 1

    # -- Private helpers -------------------------------------------------------

    @staticmethod
    def _extract_team_name(soup: BeautifulSoup) -> str:
        avatar = soup.select_one("img.img-team.img-avatar")
        return _attr(avatar, "alt").strip()

    @staticmethod
    def _parse_row(row: Tag) -> MatchSummary | None:
        result_link = row.select_one("td:nth-of-type(2) a")
        match_id = _last_segment(_attr(result_link, "href"))
        if not match_id.isdigit():
            return None

        league_link = row.select_one("td:first-of-type a.esports-league")
        league_id = _leading_id(_attr(league_link, "href")) or _UNKNOWN_LEAGUE
        league_img = league_link.find("img") if league_link else None

        classes = result_link.get("class") or []
        date_tag = row.select_one("td:nth-of-type(2) time")

        opponent_link = row.select_one("td:last-of-type a.esports-team")
        opponent_img = opponent_link.find("img") if opponent_link else None

        return MatchSummary(
            match_id=match_id,
            result="win" if "won" in classes else "loss",
            series_id=_last_segment(_attr(row.select_one("td:nth-of-type(3) a"), "href")),
            series_region=_text(row.select_one("td:nth-of-type(3) small")),
            duration=_text(row.select_one("td:nth-of-type(4)")),
            heroes=[
                _attr(img, "title")
                for img in row.select("td:nth-of-type(5) .image-container-hero img")
                if _attr(img, "title")
            ],
            opponent=Opponent(
                team_id=_leading_id(_attr(opponent_link, "href")),
                team_name=_text(opponent_link.select_one(".team-text")) if opponent_link else "",
                team_tag=_attr(opponent_img, "alt"),
            ),
            date=_attr(date_tag, "datetime") or _text(date_tag),
            league_id=league_id,
            league_name=_attr(league_img, "alt") or "Unknown League",
        )
