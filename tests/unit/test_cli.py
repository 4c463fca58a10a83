"""Unit tests for the team import CLI (src.cli.import_team)."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, patch

import pytest

from src.cli.import_team import _build_parser, _format_text_output, _run, main
from src.models.esports import MatchDetail, PlayerProfile
from src.models.import_result import ImportProgress, ImportStatus, TeamImportResult


# ======================================================================
# Shared helpers
# ======================================================================


def _result(status: ImportStatus = ImportStatus.READY, match_payload=None, player_payload=None) -> TeamImportResult:
    matches = []
    players = []
    if match_payload is not None:
        matches = [MatchDetail.model_validate(match_payload(1, 100, 39, [11, 12, 13, 14, 15], [21, 22, 23, 24, 25]))]
    if player_payload is not None:
        players = [PlayerProfile.model_validate(player_payload(11, "miracle"))]
    return TeamImportResult(
        team_id="100",
        league_id="200",
        team_name="Team Hundred",
        match_ids=["1"],
        matches=matches,
        players=players,
        status=status,
        progress=ImportProgress(matches_ready=1, matches_total=1, players_ready=1, players_total=5),
    )


# ======================================================================
# Argument parsing
# ======================================================================


class TestParser:
    def test_required_arguments(self) -> None:
        args = _build_parser().parse_args(["2163", "--league", "16935"])

        assert args.team_id == "2163"
        assert args.league_id == "16935"
        assert args.force is False
        assert args.refresh is False
        assert args.json_output is False

    def test_force_and_refresh_are_exclusive(self) -> None:
        with pytest.raises(SystemExit):
            _build_parser().parse_args(["2163", "--league", "1", "--force", "--refresh"])

    def test_league_is_required(self) -> None:
        with pytest.raises(SystemExit):
            _build_parser().parse_args(["2163"])


# ======================================================================
# Text formatting
# ======================================================================


class TestFormatTextOutput:
    def test_lists_matches_and_players(self, match_payload, player_payload) -> None:
        text = _format_text_output(_result(match_payload=match_payload, player_payload=player_payload))

        assert "Team import: Team Hundred (league 200)" in text
        assert "Status: ready" in text
        assert "Matches: 1/1  |  Players: 1/5" in text
        assert "radiant" in text
        assert "win" in text
        assert "Miracle" in text

    def test_reports_errors(self) -> None:
        result = _result(ImportStatus.PARTIAL).model_copy(update={"error": "1 match job(s) failed"})
        assert "Errors: 1 match job(s) failed" in _format_text_output(result)


# ======================================================================
# Import runner
# ======================================================================


class TestRun:
    @pytest.fixture()
    def components(self, build_stack, match_client, team_client, team_page, match_payload, player_payload):
        team_client.pages["100"] = [team_page("Team Hundred", [("1", "200", True)])]
        match_client.matches["1"] = match_payload(1, 100, 39, [11, 12, 13, 14, 15], [21, 22, 23, 24, 25])
        for aid in (11, 12, 13, 14, 15):
            match_client.players[str(aid)] = player_payload(aid)
        stack = build_stack(match_client=match_client, team_client=team_client)
        return {"orchestrator": stack.orchestrator, "cache_service": stack.cache}

    @pytest.mark.asyncio
    async def test_ready_import_exits_zero(self, components, capsys) -> None:
        with (
            patch("src.main.build_components", return_value=components),
            patch("src.main.shutdown_components", new=AsyncMock()) as shutdown,
        ):
            code = await _run("100", "200", force=False, refresh=False, json_output=True)

        text = capsys.readouterr().out
        out = json.loads(text[text.index("{\n"):])
        assert code == 0
        assert out["status"] == "ready"
        assert len(out["players"]) == 5
        shutdown.assert_awaited_once_with(components)

    @pytest.mark.asyncio
    async def test_partial_import_exits_two(self, components, match_client, capsys) -> None:
        match_client.players.pop("13")
        with (
            patch("src.main.build_components", return_value=components),
            patch("src.main.shutdown_components", new=AsyncMock()),
        ):
            code = await _run("100", "200", force=False, refresh=False, json_output=False)

        assert code == 2
        assert "Status: partial" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_invalid_id_exits_one(self, components, capsys) -> None:
        with (
            patch("src.main.build_components", return_value=components),
            patch("src.main.shutdown_components", new=AsyncMock()) as shutdown,
        ):
            code = await _run("abc", "200", force=False, refresh=False, json_output=False)

        assert code == 1
        assert "Invalid team id" in capsys.readouterr().err
        shutdown.assert_awaited_once()


class TestMain:
    def test_exit_code_is_propagated(self) -> None:
        with (
            patch("src.cli.import_team._run", new=AsyncMock(return_value=2)) as run,
            patch("src.utils.logging.configure_logging"),
            pytest.raises(SystemExit) as exc_info,
        ):
            main(["100", "--league", "200", "--refresh"])

        assert exc_info.value.code == 2
        run.assert_awaited_once_with("100", "200", False, True, False)
