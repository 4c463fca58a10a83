"""Integration tests for FastAPI API endpoints using TestClient.

The app is assembled the way ``src.main`` does it (error handling
middleware plus the v1 router), with the orchestration stack built on
in-memory fake provider clients.  ``client.portal`` runs coroutines on the
app's event loop, which is how the tests wait for queued jobs.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from src.api.middleware import ErrorHandlingMiddleware
from src.api.routes import router as api_router
from src.models.cache import match_key
from src.pipeline.orchestrator import OrchestrationService
from src.services.cache_service import CacheService
from src.utils.errors import ExternalAPIError


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _create_test_app(orchestrator, cache_service) -> FastAPI:  # noqa: ANN001
    """Create a FastAPI app with the given components on ``app.state``."""
    app = FastAPI()
    app.add_middleware(ErrorHandlingMiddleware)
    app.include_router(api_router)
    app.state.orchestrator = orchestrator
    app.state.cache_service = cache_service
    return app


@pytest.fixture
def stack(build_stack, match_client, team_client, team_page, match_payload, player_payload):
    team_client.pages["100"] = [team_page("Team Hundred", [("1", "200", True), ("2", "200", False)])]
    match_client.matches["1"] = match_payload(1, 100, 39, [11, 12, 13, 14, 15], [21, 22, 23, 24, 25])
    match_client.matches["2"] = match_payload(2, 39, 100, [21, 22, 23, 24, 25], [16, 17, 18, 19, 20], radiant_win=True)
    for aid in range(11, 21):
        match_client.players[str(aid)] = player_payload(aid)
    return build_stack(match_client=match_client, team_client=team_client)


@pytest.fixture
def client(stack):
    with TestClient(_create_test_app(stack.orchestrator, stack.cache)) as test_client:
        yield test_client
        test_client.portal.call(stack.queue.close)


def _drain(client: TestClient, stack) -> None:  # noqa: ANN001
    client.portal.call(stack.queue.drain)


# ---------------------------------------------------------------------------
# Team imports
# ---------------------------------------------------------------------------


class TestTeamImport:
    def test_import_then_poll_until_ready(self, client: TestClient, stack) -> None:
        started = client.post("/api/v1/teams/100/import", json={"league_id": "200"})

        assert started.status_code == 202
        assert started.json()["status"] == "queued"
        assert started.json()["signatures"] == ["dotabuff-team-100"]

        _drain(client, stack)
        polled = client.get("/api/v1/teams/100/import", params={"league_id": "200"})

        assert polled.status_code == 200
        body = polled.json()
        assert body["status"] == "ready"
        assert body["match_ids"] == ["1", "2"]
        assert len(body["players"]) == 10
        assert body["progress"]["players_total"] == 10

    def test_cached_import_answers_200(self, client: TestClient, stack) -> None:
        client.post("/api/v1/teams/100/import", json={"league_id": 200})
        _drain(client, stack)

        again = client.post("/api/v1/teams/100/import", json={"league_id": 200})

        assert again.status_code == 200
        assert again.json()["status"] == "ready"

    def test_poll_while_in_flight_is_202(self, client: TestClient) -> None:
        client.post("/api/v1/teams/100/import", json={"league_id": "200"})
        polled = client.get("/api/v1/teams/100/import", params={"league_id": "200"})

        assert polled.status_code in (200, 202)
        if polled.status_code == 202:
            assert polled.json()["status"] in ("queued", "partial")

    def test_unknown_import_is_404(self, client: TestClient) -> None:
        response = client.get("/api/v1/teams/555/import", params={"league_id": "200"})

        assert response.status_code == 404
        assert response.json()["error"] == "NotFound"

    def test_invalid_team_id_is_400(self, client: TestClient) -> None:
        response = client.post("/api/v1/teams/abc/import", json={"league_id": "200"})

        assert response.status_code == 400
        body = response.json()
        assert body["status"] == "error"
        assert body["error"] == "RequestValidationError"
        assert body["retryable"] is False

    def test_missing_league_is_400(self, client: TestClient) -> None:
        response = client.get("/api/v1/teams/100/import")
        assert response.status_code == 400


# ---------------------------------------------------------------------------
# Single resources
# ---------------------------------------------------------------------------


class TestResources:
    def test_match_queued_then_served(self, client: TestClient, stack) -> None:
        first = client.get("/api/v1/matches/1")

        assert first.status_code == 202
        assert first.json() == {
            "status": "queued",
            "signature": "opendota-match-1",
            "provider": "opendota",
            "already_in_flight": False,
        }

        _drain(client, stack)
        second = client.get("/api/v1/matches/1")

        assert second.status_code == 200
        assert second.json()["match_id"] == 1

    def test_match_with_team_cascades_players(self, client: TestClient, stack) -> None:
        client.get("/api/v1/matches/1", params={"team_id": "100"})
        _drain(client, stack)

        assert sorted(stack.match_client.player_calls) == ["11", "12", "13", "14", "15"]

    def test_player_and_team_listing(self, client: TestClient, stack) -> None:
        assert client.get("/api/v1/players/11").status_code == 202
        assert client.get("/api/v1/teams/100/matches").status_code == 202
        _drain(client, stack)

        player = client.get("/api/v1/players/11")
        team = client.get("/api/v1/teams/100/matches")

        assert player.status_code == 200
        assert player.json()["account_id"] == 11
        assert team.status_code == 200
        assert team.json()["team_name"] == "Team Hundred"

    def test_force_requeues(self, client: TestClient, stack) -> None:
        client.get("/api/v1/players/11")
        _drain(client, stack)

        forced = client.get("/api/v1/players/11", params={"force": True})

        assert forced.status_code == 202


# ---------------------------------------------------------------------------
# Cache & queue administration
# ---------------------------------------------------------------------------


class TestAdministration:
    def test_invalidate_key(self, client: TestClient, stack) -> None:
        client.get("/api/v1/matches/1")
        _drain(client, stack)

        response = client.post("/api/v1/cache/invalidate", json={"key": match_key("1")})

        assert response.status_code == 200
        assert response.json()["invalidated"] == 1
        assert client.get("/api/v1/matches/1").status_code == 202

    def test_invalidate_pattern(self, client: TestClient, stack) -> None:
        client.get("/api/v1/matches/1")
        client.get("/api/v1/matches/2")
        _drain(client, stack)

        response = client.post("/api/v1/cache/invalidate", json={"pattern": "opendota:match:*"})

        assert response.status_code == 200
        assert response.json() == {"status": "ok", "key": None, "pattern": "opendota:match:*", "invalidated": 2}

    @pytest.mark.parametrize("body", [{}, {"key": "a:b:c", "pattern": "a:*"}])
    def test_invalidate_needs_exactly_one(self, client: TestClient, body: dict) -> None:
        response = client.post("/api/v1/cache/invalidate", json=body)

        assert response.status_code == 400
        assert response.json()["error"] == "RequestValidationError"

    def test_queue_status(self, client: TestClient, stack) -> None:
        client.get("/api/v1/matches/1")
        _drain(client, stack)

        response = client.get("/api/v1/queue/status")

        assert response.status_code == 200
        body = response.json()
        assert body["queues"]["opendota"]["length"] == 0
        assert body["queues"]["opendota"]["processing"] is False
        assert "timestamp" in body

    def test_clear_queue(self, client: TestClient) -> None:
        response = client.delete("/api/v1/queue/opendota")

        assert response.status_code == 200
        assert response.json() == {"provider": "opendota", "dropped": 0}

    def test_health(self, client: TestClient) -> None:
        response = client.get("/api/v1/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["version"] == "0.1.0"
        assert body["cache"]["backend"] == "memory"
        assert body["cache"]["healthy"] is True


# ---------------------------------------------------------------------------
# Error envelope
# ---------------------------------------------------------------------------


class TestErrorHandling:
    @pytest.fixture()
    def mocked(self):
        orchestrator = MagicMock(spec=OrchestrationService)
        cache_service = MagicMock(spec=CacheService)
        cache_service.is_healthy = AsyncMock(return_value=False)
        cache_service.backend_type = "file"
        cache_service.get_stats.return_value = {}
        orchestrator.queue.get_all_status.return_value = {}
        app = _create_test_app(orchestrator, cache_service)
        return TestClient(app), orchestrator

    def test_upstream_failure_is_502(self, mocked) -> None:
        client, orchestrator = mocked
        orchestrator.queue_player_data = AsyncMock(
            side_effect=ExternalAPIError("upstream down", provider_name="opendota", status_code=503)
        )

        response = client.get("/api/v1/players/11")

        assert response.status_code == 502
        assert response.json() == {
            "status": "error",
            "error": "ExternalAPIError",
            "detail": "upstream down",
            "retryable": True,
        }

    def test_unexpected_exception_is_generic_500(self, mocked) -> None:
        client, orchestrator = mocked
        orchestrator.queue_match_data = AsyncMock(side_effect=RuntimeError("secret internals"))

        response = client.get("/api/v1/matches/1")

        assert response.status_code == 500
        assert response.json()["error"] == "InternalError"
        assert "secret" not in response.text

    def test_degraded_health(self, mocked) -> None:
        client, _ = mocked

        response = client.get("/api/v1/health")

        assert response.status_code == 200
        assert response.json()["status"] == "degraded"
