"""Per-import bookkeeping for team imports.

The aggregate import status is rebuilt from the cache store on every poll,
but a few facts never reach the cache: which players an import already
dispatched (so a player shared by two matches is fetched once), which
background jobs failed, whether team discovery itself failed, and which
jobs an import is still waiting on.  This tracker keeps those facts, keyed
by ``(team_id, league_id)``.

Waiting: the request queue runs one job per signature, and only the
submitter's callbacks are attached to it.  An import whose request found
the job already in flight (another league's import of the same team, the
other side of a shared match, a re-posted import) registers itself as
*awaiting* that job instead.  Whoever's callbacks fire then releases every
awaiting record, so each import hears about every job it depends on.

Records are plain in-process state; losing them (e.g. on restart) only
costs the dedup set and the error details, never cached data.
"""

from __future__ import annotations

from dataclasses import dataclass, field

import structlog

from src.utils.logging import get_logger


@dataclass
class ImportRecord:
    """Internal state of one (team, league) import.

    A simple mutable dataclass (not Pydantic) because it is never
    serialized or exposed as-is.
    """

    team_id: str
    league_id: str
    team_name: str | None = None
    error: str | None = None
    previous_match_ids: set[str] | None = None
    awaiting_team: bool = False
    awaiting_matches: set[str] = field(default_factory=set)
    dispatched_players: set[str] = field(default_factory=set)
    dispatched_matches: set[str] = field(default_factory=set)
    failed_matches: dict[str, str] = field(default_factory=dict)
    failed_players: dict[str, str] = field(default_factory=dict)

    def claim_player(self, account_id: str) -> bool:
        """Mark *account_id* as dispatched; ``False`` if it already was."""
        if account_id in self.dispatched_players:
            return False
        self.dispatched_players.add(account_id)
        return True

    def failure_summary(self) -> str | None:
        parts: list[str] = []
        if self.failed_matches:
            parts.append(f"{len(self.failed_matches)} match job(s) failed")
        if self.failed_players:
            parts.append(f"{len(self.failed_players)} player job(s) failed")
        return "; ".join(parts) or None


class ImportTracker:
    """Holds one :class:`ImportRecord` per (team, league) import."""

    def __init__(self) -> None:
        self._records: dict[tuple[str, str], ImportRecord] = {}
        self._logger: structlog.BoundLogger = get_logger(__name__)

    def start(
        self,
        team_id: str,
        league_id: str,
        previous_match_ids: set[str] | None = None,
    ) -> ImportRecord:
        """Begin a new import, replacing any previous record for the pair.

        A record still awaiting its team discovery is kept: the running
        discovery will settle it, and replacing it would orphan the result.
        """
        existing = self._records.get((team_id, league_id))
        if existing is not None and existing.awaiting_team:
            self._logger.debug("import_resumed", team_id=team_id, league_id=league_id)
            return existing

        record = ImportRecord(team_id=team_id, league_id=league_id, previous_match_ids=previous_match_ids)
        self._records[(team_id, league_id)] = record
        self._logger.debug("import_started", team_id=team_id, league_id=league_id)
        return record

    def get(self, team_id: str, league_id: str) -> ImportRecord | None:
        return self._records.get((team_id, league_id))

    # ------------------------------------------------------------------
    # Waiting on in-flight jobs
    # ------------------------------------------------------------------

    def release_team(self, team_id: str) -> list[ImportRecord]:
        """Return (and stop awaiting for) every record waiting on *team_id*'s discovery."""
        waiting = [r for r in self._records.values() if r.team_id == team_id and r.awaiting_team]
        for record in waiting:
            record.awaiting_team = False
        return waiting

    def release_match(self, match_id: str) -> list[ImportRecord]:
        """Return (and stop awaiting for) every record waiting on *match_id*."""
        waiting = [r for r in self._records.values() if match_id in r.awaiting_matches]
        for record in waiting:
            record.awaiting_matches.discard(match_id)
        return waiting

    def fail_team(self, team_id: str, message: str) -> None:
        for record in self.release_team(team_id):
            self.record_error(record, message)

    def fail_match(self, match_id: str, message: str) -> None:
        for record in self.release_match(match_id):
            self.record_match_failure(record, match_id, message)

    # ------------------------------------------------------------------
    # Failures
    # ------------------------------------------------------------------

    def record_error(self, record: ImportRecord, message: str) -> None:
        record.error = message
        self._logger.error(
            "import_discovery_failed",
            team_id=record.team_id,
            league_id=record.league_id,
            error=message,
        )

    def record_match_failure(self, record: ImportRecord, match_id: str, message: str) -> None:
        record.failed_matches[match_id] = message
        self._logger.warning("import_match_failed", team_id=record.team_id, match_id=match_id, error=message)

    def record_player_failure(self, record: ImportRecord, account_id: str, message: str) -> None:
        record.failed_players[account_id] = message
        # Another match of the same import may dispatch the player again.
        record.dispatched_players.discard(account_id)
        self._logger.warning(
            "import_player_failed", team_id=record.team_id, account_id=account_id, error=message
        )
