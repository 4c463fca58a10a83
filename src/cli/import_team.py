# =============================================================================
# src/cli/import_team.py -- CLI Team Import Command
# =============================================================================
#
# Runs one team/league import from the command line, bypassing the HTTP
# API entirely.  The same components the web app builds (cache store,
# rate limiter, request queue, fetchers, orchestration service) are
# assembled here, the import is started, every provider queue is drained
# and the final aggregate status is printed.
#
# Typical usage:
#   python -m src.cli.import_team 2163 --league 16935
#   python -m src.cli.import_team 2163 --league 16935 --refresh
#   python -m src.cli.import_team 2163 --league 16935 --force --json
#
# Log output always goes to stderr, so stdout carries only the report.
# With --json it is also lowered to WARNING.
# =============================================================================

"""Standalone CLI for importing one team's league matches and players.

Usage::

    python -m src.cli.import_team TEAM_ID --league LEAGUE_ID [--force | --refresh] [--json]

Exits with status 0 when the import finished ``ready``, 2 when it ended
``partial`` and 1 on ``error`` or invalid input.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys

_EXIT_CODES = {"ready": 0, "partial": 2}


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------


def _format_text_output(result) -> str:  # noqa: ANN001
    """Format a TeamImportResult as a human-readable report."""
    lines: list[str] = []
    sep = "=" * 60

    lines.append(sep)
    lines.append(f"  Team import: {result.team_name or result.team_id} (league {result.league_id})")
    lines.append(sep)
    lines.append(f"Status: {result.status.value}")
    if result.progress is not None:
        p = result.progress
        lines.append(f"Matches: {p.matches_ready}/{p.matches_total}  |  Players: {p.players_ready}/{p.players_total}")
    if result.error:
        lines.append(f"Errors: {result.error}")
    lines.append("")

    if result.matches:
        lines.append("MATCHES")
        lines.append("-" * 40)
        for match in result.matches:
            side = match.side_of(result.team_id)
            outcome = ""
            if side is not None and match.radiant_win is not None:
                won = match.radiant_win if side == "radiant" else not match.radiant_win
                outcome = "win" if won else "loss"
            lines.append(f"  {match.match_id}  {side or '?':<8} {outcome}")
        lines.append("")

    if result.players:
        lines.append("PLAYERS")
        lines.append("-" * 40)
        for player in result.players:
            lines.append(f"  {player.account_id}  {player.name or player.personaname or ''}")
        lines.append("")

    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Import runner
# ---------------------------------------------------------------------------


async def _run(team_id: str, league_id: str, force: bool, refresh: bool, json_output: bool) -> int:
    """Build the components, run the import to completion and print the result."""
    # Deferred so that argument errors never pay for settings and app assembly.
    from src.main import build_components, config, settings, shutdown_components
    from src.utils.errors import StatsError

    components = build_components(settings, config)
    orchestrator = components["orchestrator"]
    try:
        await components["cache_service"].initialize()
        try:
            await orchestrator.import_team(team_id, league_id, force=force, refresh=refresh)
        except StatsError as exc:
            print(f"Error: {exc}", file=sys.stderr)
            return 1

        print(f"Importing team {team_id} in league {league_id}...", file=sys.stderr)
        await orchestrator.queue.drain()
        result = await orchestrator.get_import_status(team_id, league_id)
    finally:
        await shutdown_components(components)

    if result is None:
        print(f"Error: nothing was imported for team {team_id}", file=sys.stderr)
        return 1

    if json_output:
        print(json.dumps(result.model_dump(mode="json"), indent=2, ensure_ascii=False))
    else:
        print(_format_text_output(result))
    return _EXIT_CODES.get(result.status.value, 1)


# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m src.cli.import_team",
        description="Import a team's matches in one league, plus their rostered players.",
    )
    parser.add_argument("team_id", type=str, help="Numeric team id.")
    parser.add_argument("--league", required=True, dest="league_id", help="Numeric league id.")
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--force",
        action="store_true",
        help="Invalidate the cached team and its matches, then import from scratch.",
    )
    mode.add_argument(
        "--refresh",
        action="store_true",
        help="Re-fetch the team listing and import only matches not seen before.",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        dest="json_output",
        help="Print the final status as JSON instead of formatted text.",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entry point for the team import tool."""
    args = _build_parser().parse_args(argv)

    from src.main import settings
    from src.utils.logging import configure_logging

    configure_logging(
        log_level="WARNING" if args.json_output else settings.log_level,
        json_output=settings.is_production,
        stream=sys.stderr,
    )

    exit_code = asyncio.run(
        _run(args.team_id, args.league_id, args.force, args.refresh, args.json_output)
    )
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
