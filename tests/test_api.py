"""
Tests for the HTTP API routes, with the Sleeper client pointed at a fake server.
"""

import httpx
import pytest
from fastapi.testclient import TestClient

from backend.main import app
from backend.routes.api import get_sleeper_client
from league_history.config import settings
from league_history.services.sleeper_api import SleeperClient


async def _no_sleep(seconds):
    return None


def override_client(handler):
    async def sleeper_override():
        async with SleeperClient(transport=httpx.MockTransport(handler), sleep=_no_sleep) as sleeper:
            yield sleeper

    app.dependency_overrides[get_sleeper_client] = sleeper_override


@pytest.fixture
def client(fake, monkeypatch):
    monkeypatch.setattr(settings, "BASE_LEAGUE_ID", "200")
    monkeypatch.setattr(settings, "CHAMPIONS", {})
    monkeypatch.setattr(settings, "OWNER_ALIASES", {})
    override_client(fake.handler)
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestHealth:
    def test_root_and_health(self, client):
        assert client.get("/").json()["status"] == "ok"
        assert client.get("/health").json() == {"status": "healthy"}


class TestHistoryRoutes:
    """Tests for the routes backed by a full pipeline load."""

    def test_seasons(self, client):
        data = client.get("/api/seasons").json()
        assert [s["season"] for s in data["seasons"]] == ["2023", "2024"]
        assert data["chain"] == ["200", "100"]

    def test_standings_for_one_season(self, client):
        response = client.get("/api/standings", params={"season": "2023"})
        assert response.status_code == 200
        data = response.json()
        assert data["error"] is None
        assert data["selected"] == ["100"]
        [season] = data["season_results"]
        assert season["regular_standings"][0]["owner_name"] == "Alice"
        assert season["regular_standings"][0]["points_for"] == 200.5
        assert len(data["points_diagnostics"]) == 1

    def test_aggregate(self, client):
        data = client.get("/api/standings/aggregate").json()
        assert data["regular"][0]["key"] == "alice"
        assert data["regular"][0]["wins"] == 2

    def test_margins_limit(self, client):
        data = client.get("/api/records/margins", params={"limit": 2}).json()
        assert [m["margin"] for m in data["largest"]] == [20.0, 20.0]
        assert [m["margin"] for m in data["smallest"]] == [10.0, 12.5]

    def test_margins_rejects_bad_limit(self, client):
        assert client.get("/api/records/margins", params={"limit": 0}).status_code == 400

    def test_head_to_head(self, client):
        data = client.get("/api/records/head-to-head/Alice").json()
        assert data["owner_key"] == "alice"
        [opponent] = data["opponents"]
        assert (opponent["opponent_key"], opponent["games"], opponent["wins"]) == ("bob", 4, 3)

    def test_head_to_head_unknown_owner(self, client):
        assert client.get("/api/records/head-to-head/nobody").status_code == 404


class TestLeagueDataRoutes:
    """Tests for the direct league data routes."""

    def test_rosters(self, client):
        rosters = client.get("/api/league/200/rosters").json()
        assert [r["team_name"] for r in rosters] == ["Alice's Team", "Bob's Team"]
        assert rosters[0]["avatar"] == "https://sleepercdn.com/avatars/a1"

    def test_rosters_for_unknown_league(self, client):
        assert client.get("/api/league/999/rosters").status_code == 404

    def test_week_matchups(self, client):
        data = client.get("/api/league/200/matchups/1").json()
        [matchup] = data["matchups"]
        assert matchup["winners"] == ["1"]
        assert matchup["losers"] == ["2"]
        assert matchup["tie"] is False
        assert matchup["participants"][0]["owner_name"] == "Alice"

    def test_week_must_be_positive(self, client):
        assert client.get("/api/league/200/matchups/0").status_code == 400

    def test_players_not_found(self, client):
        response = client.get("/api/players/nfl")
        assert response.status_code == 404

    def test_upstream_failure_is_bad_gateway(self, client):
        override_client(lambda request: httpx.Response(500))
        response = client.get("/api/players/nfl")
        assert response.status_code == 502
        assert "players" in response.json()["detail"]
