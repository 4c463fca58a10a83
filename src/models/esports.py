"""Esports payload models validated at the provider boundary.

Raw provider responses (OpenDota JSON, parsed Dotabuff HTML) are turned
into these models as soon as they are fetched, so everything downstream
works with explicit optional fields rather than free-form dicts.  Models
keep unknown upstream fields (``extra="allow"``) so that a cached payload
loses nothing the provider sent.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

# OpenDota player_slot values below this belong to the radiant side;
# 128-132 are the dire side.
DIRE_SLOT_OFFSET = 128


class Opponent(BaseModel):
    """The other team in a listed match."""

    model_config = ConfigDict(frozen=True)

    team_id: str = ""
    team_name: str = ""
    team_tag: str = ""


class MatchSummary(BaseModel):
    """One row of a team's match listing."""

    model_config = ConfigDict(frozen=True)

    match_id: str
    result: Literal["win", "loss"]
    series_id: str = ""
    series_region: str = ""
    duration: str = ""
    heroes: list[str] = Field(default_factory=list)
    opponent: Opponent = Field(default_factory=Opponent)
    date: str = ""
    league_id: str
    league_name: str = ""


class TeamMatches(BaseModel):
    """A team's name and its matches grouped by league id."""

    model_config = ConfigDict(frozen=True)

    team_id: str
    team_name: str
    matches_by_league: dict[str, list[MatchSummary]] = Field(default_factory=dict)

    def match_ids_for(self, league_id: str | int) -> list[str]:
        """Return match ids for *league_id*, in listing order, without repeats."""
        seen: set[str] = set()
        ordered: list[str] = []
        for summary in self.matches_by_league.get(str(league_id), []):
            if summary.match_id not in seen:
                seen.add(summary.match_id)
                ordered.append(summary.match_id)
        return ordered


class MatchPlayer(BaseModel):
    """A player row inside a match payload."""

    model_config = ConfigDict(frozen=True, extra="allow")

    account_id: int | None = None
    player_slot: int
    hero_id: int | None = None
    personaname: str | None = None

    @property
    def is_radiant(self) -> bool:
        return self.player_slot < DIRE_SLOT_OFFSET


class MatchDetail(BaseModel):
    """Full match payload as returned by OpenDota ``/matches/{id}``."""

    model_config = ConfigDict(frozen=True, extra="allow")

    match_id: int
    radiant_team_id: int | None = None
    dire_team_id: int | None = None
    radiant_win: bool | None = None
    duration: int | None = None
    start_time: int | None = None
    leagueid: int | None = None
    players: list[MatchPlayer] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _lift_team_ids(cls, data: Any) -> Any:
        # Professional matches sometimes only carry nested team objects.
        if isinstance(data, dict):
            data = dict(data)
            for side in ("radiant", "dire"):
                nested = data.get(f"{side}_team")
                if data.get(f"{side}_team_id") is None and isinstance(nested, dict):
                    data[f"{side}_team_id"] = nested.get("team_id")
        return data

    def side_of(self, team_id: str | int) -> Literal["radiant", "dire"] | None:
        """Return which side *team_id* played on, or ``None`` if neither."""
        team = str(team_id)
        if self.radiant_team_id is not None and str(self.radiant_team_id) == team:
            return "radiant"
        if self.dire_team_id is not None and str(self.dire_team_id) == team:
            return "dire"
        return None

    def players_for_team(self, team_id: str | int) -> list[MatchPlayer]:
        """Return the rostered players of *team_id* that have an account id.

        Radiant occupies slots 0-127, dire 128 and up; the team's side is
        found by comparing *team_id* with the team ids in the payload.
        """
        side = self.side_of(team_id)
        if side is None:
            return []
        return [
            player
            for player in self.players
            if player.account_id and player.is_radiant == (side == "radiant")
        ]


class PlayerProfile(BaseModel):
    """Player payload as returned by OpenDota ``/players/{id}``.

    OpenDota nests identity fields under ``profile``; they are lifted to the
    top level so callers do not need to know that.
    """

    model_config = ConfigDict(frozen=True, extra="allow")

    account_id: int
    personaname: str | None = None
    name: str | None = None
    avatarfull: str | None = None
    rank_tier: int | None = None

    @model_validator(mode="before")
    @classmethod
    def _flatten_profile(cls, data: Any) -> Any:
        if isinstance(data, dict) and isinstance(data.get("profile"), dict):
            profile = data["profile"]
            merged = dict(data)
            for key in ("account_id", "personaname", "name", "avatarfull"):
                if merged.get(key) is None and profile.get(key) is not None:
                    merged[key] = profile[key]
            return merged
        return data
