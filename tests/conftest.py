"""
Shared fixtures: a fake Sleeper API served through httpx.MockTransport.
"""

import httpx
import pytest


def matchup_row(roster_id, points, matchup_id=1, **extra):
    return {"roster_id": roster_id, "matchup_id": matchup_id, "points": points, **extra}


class FakeSleeper:
    """
    Serves a two-season league: 200 (2024) links back to 100 (2023).

    Playoffs start in week 3, so weeks 1-2 are regular season and 3-5 are
    playoffs.
    """

    def __init__(self):
        self.leagues = {
            "200": {"league_id": "200", "season": "2024", "name": "League", "previous_league_id": "100",
                    "settings": {"playoff_week_start": 3}},
            "100": {"league_id": "100", "season": "2023", "name": "League", "previous_league_id": None,
                    "settings": {"playoff_week_start": 3}},
        }
        rosters = [{"roster_id": 1, "owner_id": "u1"}, {"roster_id": 2, "owner_id": "u2"}]
        self.rosters = {"100": rosters, "200": rosters}
        self.users = {
            "100": [{"user_id": "u1", "display_name": "Alice"}, {"user_id": "u2", "display_name": "Bob"}],
            "200": [{"user_id": "u1", "display_name": "Alice", "avatar": "a1"}, {"user_id": "u2", "display_name": "Bob"}],
        }
        self.matchups = {
            ("100", 1): [
                matchup_row(1, 110.5, starters=["p1", "p2"], starters_points=[100.0, 10.0]),
                matchup_row(2, 98.0, starters=["p3"], starters_points=[98.0]),
            ],
            ("100", 2): [matchup_row(1, 90.0), matchup_row(2, 100.0)],
            ("100", 3): [matchup_row(1, 120.0), matchup_row(2, 100.0)],
            ("200", 1): [matchup_row(1, 100.0), matchup_row(2, 80.0)],
            ("200", 2): [matchup_row(1, 0), matchup_row(2, 0)],
        }
        self.players = {"nfl": {"p1": {"full_name": "Josh Allen"}, "p3": {"first_name": "Bijan", "last_name": "Robinson"}}}
        self.failing_weeks = set()
        self.paths = []

    def handler(self, request):
        self.paths.append(request.url.path)
        parts = request.url.path.split("/")[2:]  # drop "", "v1"
        if parts[0] == "players":
            if parts[1] not in self.players:
                return httpx.Response(404)
            return httpx.Response(200, json=self.players[parts[1]])
        league_id = parts[1] if len(parts) > 1 else None
        if league_id not in self.leagues:
            return httpx.Response(404)
        if len(parts) == 2:
            return httpx.Response(200, json=self.leagues[league_id])
        if parts[2] == "rosters":
            return httpx.Response(200, json=self.rosters[league_id])
        if parts[2] == "users":
            return httpx.Response(200, json=self.users[league_id])
        if parts[2] == "matchups":
            week = int(parts[3])
            if (league_id, week) in self.failing_weeks:
                return httpx.Response(400)
            return httpx.Response(200, json=self.matchups.get((league_id, week), []))
        return httpx.Response(404)


@pytest.fixture
def fake():
    return FakeSleeper()
