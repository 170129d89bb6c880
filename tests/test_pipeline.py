"""
End-to-end tests for the league history pipeline against a mocked Sleeper API.
"""

import asyncio

import httpx

from league_history.parsing.snapshots import parse_snapshot
from league_history.services.pipeline import SOURCE_API, SOURCE_SNAPSHOT, LeagueHistoryPipeline
from league_history.services.sleeper_api import SleeperClient
from league_history.stats.owners import OwnerIdentity
from league_history.stats.players import FINALS_MATCHUP


async def _no_sleep(seconds):
    return None


def run_pipeline(fake, selector=None, root="200", **kwargs):
    """Load history from the fake server (see conftest.FakeSleeper)."""

    async def scenario():
        client = SleeperClient(transport=httpx.MockTransport(fake.handler), sleep=_no_sleep)
        async with client:
            pipeline = LeagueHistoryPipeline(client, root, **kwargs)
            return await pipeline.load(selector)

    return asyncio.run(scenario())


class TestFullLoad:
    """Tests for a full two-season load from the API."""

    def test_standings_per_season(self, fake):
        result = run_pipeline(fake)

        assert result.error is None
        assert [s.season for s in result.seasons] == ["2023", "2024"]
        assert result.selected == ["100", "200"]

        season_2023, season_2024 = result.season_results
        assert season_2023.source == SOURCE_API
        assert season_2023.weeks_processed == [1, 2, 3]
        alice, bob = season_2023.regular
        assert alice.owner_name == "Alice"
        assert (alice.wins, alice.losses) == (1, 1)
        assert alice.points_for == 200.5
        assert bob.points_against == 200.5
        assert [(r.owner_name, r.wins) for r in season_2023.playoff] == [("Alice", 1), ("Bob", 0)]

        # week 2 of 2024 is all zeros and gets skipped
        assert season_2024.weeks_processed == [1]
        assert any("week 2" in m and "Skipping" in m for m in result.messages)

    def test_aggregates_and_records(self, fake):
        result = run_pipeline(fake, champions={"2023": "alice"})

        alice = result.aggregate_regular[0]
        assert alice.key == "alice"
        assert (alice.wins, alice.losses) == (2, 1)
        assert alice.points_for == 300.5

        playoff_alice = next(r for r in result.aggregate_playoff if r.key == "alice")
        assert playoff_alice.champion_count == 1
        assert alice.champion_count == 1
        assert next(r for r in result.aggregate_regular if r.key == "bob").champion_count == 0
        assert any("applied" in m for m in result.messages)

        assert [(m.season, m.margin) for m in result.largest_margins] == [
            ("2023", 20.0),
            ("2024", 20.0),
            ("2023", 12.5),
            ("2023", 10.0),
        ]
        [alice_vs_bob] = result.head_to_head["alice"]
        assert (alice_vs_bob.games, alice_vs_bob.wins, alice_vs_bob.losses) == (4, 3, 1)
        assert alice_vs_bob.owner_avatar == "https://sleepercdn.com/avatars/a1"

    def test_points_diagnostics_and_player_leaders(self, fake):
        result = run_pipeline(fake)

        [diag] = result.points_diagnostics
        assert (diag.season, diag.week, diag.roster_id) == ("2023", 1, "1")
        assert (diag.official_points, diag.extracted_points) == (110.5, 110.0)

        leader = result.season_results[0].overall_player_leader
        assert (leader.player_id, leader.points) == ("p1", 100.0)
        assert leader.owner_name == "Alice"

    def test_finals_mvp_team_leaders_and_names(self, fake):
        fake.matchups[("100", 3)] = [
            {"roster_id": 1, "matchup_id": 1, "points": 120.0, "starters": ["p1", "p2"], "starters_points": [70.0, 50.0]},
            {"roster_id": 2, "matchup_id": 1, "points": 100.0, "starters": ["p3"], "starters_points": [100.0]},
        ]
        result = run_pipeline(fake, selector="2023", champions={"2023": "alice"}, player_sport="nfl")

        season_2023 = result.season_results[0]
        mvp = season_2023.finals_mvp
        assert (mvp.player_id, mvp.points, mvp.source) == ("p3", 100.0, FINALS_MATCHUP)
        assert mvp.player_name == "Bijan Robinson"
        assert mvp.owner_name == "Bob"

        alice, bob = season_2023.team_leaders
        assert (alice.player_id, alice.player_name, alice.points) == ("p1", "Josh Allen", 170.0)
        assert (bob.player_id, bob.regular_points, bob.playoff_points) == ("p3", 98.0, 100.0)
        assert season_2023.overall_player_leader.player_name == "Bijan Robinson"
        assert "/v1/players/nfl" in fake.paths

        data = season_2023.to_dict()
        assert data["finals_mvp"]["player_name"] == "Bijan Robinson"
        assert [t["roster_id"] for t in data["team_leaders"]] == ["1", "2"]

    def test_players_map_failure_leaves_names_blank(self, fake):
        result = run_pipeline(fake, selector="2023", player_sport="nba")
        leader = result.season_results[0].overall_player_leader
        assert leader.player_id == "p1"
        assert leader.player_name is None
        assert any("Error fetching players for nba" in m for m in result.messages)

    def test_names_not_fetched_by_default(self, fake):
        run_pipeline(fake, selector="2023")
        assert not any(p.startswith("/v1/players") for p in fake.paths)

    def test_incomplete_weeks_kept_when_disabled(self, fake):
        result = run_pipeline(fake, skip_incomplete_weeks=False)
        assert result.season_results[1].weeks_processed == [1, 2]

    def test_select_single_season(self, fake):
        result = run_pipeline(fake, selector="2024")
        assert result.selected == ["200"]
        assert [r.season for r in result.season_results] == ["2024"]
        assert not any("/league/100/matchups" in p for p in fake.paths)

    def test_max_weeks_caps_fetching(self, fake):
        run_pipeline(fake, selector="current", max_weeks=2)
        weeks = [p for p in fake.paths if "/matchups/" in p]
        assert weeks == ["/v1/league/200/matchups/1", "/v1/league/200/matchups/2"]

    def test_to_dict_is_plain_data(self, fake):
        data = run_pipeline(fake).to_dict()
        assert data["error"] is None
        assert data["season_results"][0]["regular_standings"][0]["points_for"] == 200.5
        assert data["head_to_head"]["bob"][0]["opponent_key"] == "alice"


class TestDegradedLoads:
    """Tests for failures that become messages instead of aborting."""

    def test_failed_week_is_reported_and_skipped(self, fake):
        fake.failing_weeks.add(("100", 2))
        result = run_pipeline(fake, selector="2023")
        assert result.error is None
        assert result.season_results[0].weeks_processed == [1, 3]
        assert any("week 2" in m and "100" in m for m in result.messages)

    def test_malformed_users_fall_back_to_placeholders(self, fake):
        fake.users["100"] = "not a list"
        result = run_pipeline(fake, selector="2023")
        assert {r.team_name for r in result.season_results[0].regular} == {"Roster 1", "Roster 2"}

    def test_no_data_sets_error(self, fake):
        result = run_pipeline(fake, root="999")
        assert result.seasons == []
        assert result.selected == ["999"]
        assert result.error.startswith("No roster/matchup data found for requested seasons. Details: ")
        assert "999" in result.error


class TestSnapshots:
    """Tests for seasons served from static snapshots."""

    @staticmethod
    def snapshot(weeks):
        return parse_snapshot({"season": "2023", **weeks}, source="2023.json")

    @staticmethod
    def game(a_score, b_score):
        return {
            "teamA": {"name": "Alpha", "ownerName": "Alice", "score": a_score},
            "teamB": {"name": "Bravo", "ownerName": "Bob", "score": b_score},
        }

    def test_snapshot_replaces_api_for_its_season(self, fake):
        snapshots = {"2023": self.snapshot({"1": [self.game(130.0, 100.0)], "3": [self.game(90.0, 95.0)]})}
        result = run_pipeline(fake, snapshots=snapshots)

        season_2023 = result.season_results[0]
        assert season_2023.source == SOURCE_SNAPSHOT
        assert season_2023.weeks_processed == [1, 3]
        assert not any("/league/100/matchups" in p for p in fake.paths)
        assert [r.team_name for r in season_2023.regular] == ["Alpha", "Bravo"]
        assert season_2023.playoff[0].team_name == "Bravo"

        # snapshot owners and API owners merge on the owner name
        alice = next(r for r in result.aggregate_regular if r.key == "alice")
        assert alice.wins == 2
        assert alice.seasons_count == 2
        assert any("Using snapshot 2023.json" in m for m in result.messages)

    def test_broken_snapshot_falls_back_to_api(self, fake):
        broken = self.snapshot({"1": [{"note": "postponed"}]})
        result = run_pipeline(fake, snapshots={"2023": broken}, selector="2023")

        season_2023 = result.season_results[0]
        assert season_2023.source == SOURCE_API
        assert season_2023.weeks_processed == [1, 2, 3]
        assert any("unusable" in m for m in result.messages)

    def test_one_sided_snapshot_matchup_is_bye(self, fake):
        bye = {"teamA": {"name": "Charlie", "ownerName": "Cara", "score": 88.0}}
        snapshots = {"2023": self.snapshot({"1": [self.game(130.0, 100.0), bye]})}
        result = run_pipeline(fake, snapshots=snapshots, selector="2023")

        season_2023 = result.season_results[0]
        assert season_2023.source == SOURCE_SNAPSHOT
        charlie = next(r for r in season_2023.regular if r.team_name == "Charlie")
        assert (charlie.wins, charlie.losses, charlie.ties) == (0, 0, 0)
        assert charlie.points_for == 88.0
        assert len(result.largest_margins) == 1

    def test_aliases_reach_records(self, fake):
        fake.users["100"][1]["display_name"] = "Bobby"
        result = run_pipeline(fake, identity=OwnerIdentity({"bobby": "bob"}))
        assert set(result.head_to_head) == {"alice", "bob"}
        assert result.head_to_head["bob"][0].games == 4
