"""
Tests for matchup grouping, points extraction and outcome resolution.
"""

import pytest

from league_history.parsing.matchups import (
    LOSS,
    POINTS_RULES,
    TIE,
    WIN,
    MatchupEntry,
    entries_from_rows,
    extract_points,
    group_entries,
    matchup_key,
    outcome_against,
    points_mismatch,
    resolve_group,
    resolve_week,
    weekly_matchup_scores,
)
from league_history.parsing.helpers import resolve
from league_history.parsing.rosters import build_roster_map


def entry(roster_id, points, matchup_id="1", week=1):
    return MatchupEntry(roster_id=str(roster_id), week=week, points=points, matchup_id=matchup_id)


class TestExtractPoints:
    """Tests for the points extraction rule table."""

    def test_flat_points_field(self):
        """Test that the flat points field is used first."""
        assert extract_points({"points": 110.5, "starters_points": [1, 2]}) == 110.5

    def test_starters_points_sum(self):
        """Test the starters_points fallback."""
        assert extract_points({"starters_points": [10.5, "20", None]}) == 30.5

    def test_players_points_restricted_to_starters(self):
        """Test that bench players in the players_points map are ignored."""
        raw = {
            "starters": ["4046", "6794"],
            "players_points": {"4046": 22.1, "6794": 10.0, "9999": 40.0},
        }
        assert resolve(POINTS_RULES, raw)[0] == "players_points_starters"
        assert extract_points(raw) == pytest.approx(32.1)

    def test_fallback_fields(self):
        """Test the final points_for / pts fallback."""
        assert extract_points({"points_for": "88.2"}) == 88.2
        assert extract_points({"pts": 7}) == 7.0

    @pytest.mark.parametrize("raw", [None, "row", {}, {"points": "n/a"}, {"starters_points": []}])
    def test_garbage_becomes_zero(self, raw):
        """Test that unusable rows score zero instead of raising."""
        assert extract_points(raw) == 0.0

    def test_points_mismatch(self):
        """Test detection of flat points disagreeing with the starters sum."""
        assert points_mismatch({"points": 100.0, "starters_points": [50.0, 49.0]}) == (100.0, 99.0)
        assert points_mismatch({"points": 99.0, "starters_points": [50.0, 49.0005]}) is None
        assert points_mismatch({"points": 99.0}) is None


class TestGrouping:
    """Tests for matchup keys and grouping."""

    def test_entries_from_rows(self):
        """Test conversion of raw API rows, dropping rows without a roster id."""
        rows = [
            {"roster_id": 1, "matchup_id": 3, "points": 100},
            {"roster_id": 2.0, "matchup_id": 3.0, "points": 90},
            {"matchup_id": 4, "points": 50},
            "not a row",
        ]
        entries = entries_from_rows(rows, week=5)
        assert [(e.roster_id, e.matchup_id, e.week) for e in entries] == [("1", "3", 5), ("2", "3", 5)]

    def test_row_week_overrides_requested_week(self):
        """Test that a row's own week field wins."""
        entries = entries_from_rows([{"roster_id": 1, "week": 7, "points": 1}], week=5)
        assert entries[0].week == 7

    def test_entries_from_non_list(self):
        """Test that a non-list response yields no entries."""
        assert entries_from_rows(None, week=1) == []
        assert entries_from_rows({"error": "x"}, week=1) == []

    def test_missing_matchup_ids_never_collide(self):
        """Test that rows without a matchup id each form their own group."""
        entries = [entry(1, 10, matchup_id=None), entry(2, 20, matchup_id=None)]
        groups = group_entries(entries)
        assert len(groups) == 2
        assert matchup_key(entries[0], 0) == ("auto", 1, 0)

    def test_same_matchup_id_different_week(self):
        """Test that the week is part of the key."""
        groups = group_entries([entry(1, 10, week=1), entry(2, 20, week=2)])
        assert len(groups) == 2


class TestOutcomes:
    """Tests for outcome resolution against the opponents' average."""

    def test_two_team_win_loss(self):
        """Test the basic head-to-head case."""
        group = resolve_group("k", [entry("A", 110.5), entry("B", 98.0)])
        a, b = group.participants
        assert (a.outcome, b.outcome) == (WIN, LOSS)
        assert a.opponent_points == 98.0
        assert b.opponent_points == 110.5
        assert group.is_head_to_head

    def test_near_equal_scores_tie(self):
        """Test that float noise below epsilon is a tie."""
        group = resolve_group("k", [entry("A", 100.0), entry("B", 100.0 + 1e-12)])
        assert [p.outcome for p in group.participants] == [TIE, TIE]

    def test_multi_team_group_uses_average(self):
        """Test that each participant is compared to the average of the others."""
        group = resolve_group("k", [entry("A", 120), entry("B", 100), entry("C", 80)])
        outcomes = {p.roster_id: (p.outcome, p.opponent_points) for p in group.participants}
        assert outcomes["A"] == (WIN, 90.0)
        assert outcomes["B"] == (TIE, 100.0)
        assert outcomes["C"] == (LOSS, 110.0)

    def test_outcomes_consistent_with_average(self):
        """Test the W/L/T rule holds for every participant of a larger group."""
        points = [101.3, 99.9, 120.0, 87.25]
        group = resolve_group("k", [entry(i, p) for i, p in enumerate(points)])
        for participant in group.participants:
            others = [p for p in points if p != participant.points]
            assert participant.outcome == outcome_against(participant.points, sum(others) / len(others))

    def test_bye_has_no_outcome(self):
        """Test that a single-participant group is a bye."""
        group = resolve_group("k", [entry("A", 95.0)])
        assert group.is_bye
        assert group.participants[0].outcome is None
        assert group.participants[0].opponent_points is None

    def test_empty_group_is_skipped(self):
        """Test that an empty group resolves to None."""
        assert resolve_group("k", []) is None

    def test_resolve_week_keeps_order(self):
        """Test that groups come back in first-seen order."""
        groups = resolve_week([entry(1, 10, "2"), entry(2, 20, "1"), entry(3, 30, "2"), entry(4, 5, "1")])
        assert [g.matchup_id for g in groups] == ["2", "1"]

    def test_has_zero_score(self):
        """Test zero detection only counts contested groups."""
        assert resolve_group("k", [entry("A", 0.0), entry("B", 90.0)]).has_zero_score()
        assert not resolve_group("k", [entry("A", 0.0)]).has_zero_score()


class TestWeeklyMatchupScores:
    """Tests for the per-week matchup view."""

    def test_winners_losers_and_metadata(self):
        """Test participants are enriched and winners/losers split."""
        roster_map = build_roster_map(
            [{"roster_id": 1, "owner_id": "u1"}, {"roster_id": 2, "owner_id": "u2"}],
            [{"user_id": "u1", "display_name": "Alice"}, {"user_id": "u2", "display_name": "Bob"}],
        )
        rows = [
            {"roster_id": 1, "matchup_id": 1, "points": 110.5, "starters": ["1"], "starters_points": [110.5]},
            {"roster_id": 2, "matchup_id": 1, "points": 98.0},
        ]
        [matchup] = weekly_matchup_scores(entries_from_rows(rows, 3), roster_map)

        assert matchup["week"] == 3
        assert matchup["winners"] == ["1"]
        assert matchup["losers"] == ["2"]
        assert matchup["tie"] is False
        assert matchup["participants"][0]["team_name"] == "Alice's Team"
        assert matchup["participants"][0]["starters_points"] == [110.5]
        assert matchup["participants"][1]["starters"] is None

    def test_tie_and_unknown_roster(self):
        """Test a tied matchup between rosters missing from the roster map."""
        rows = [
            {"roster_id": 5, "matchup_id": 2, "points": 80},
            {"roster_id": 6, "matchup_id": 2, "points": 80},
        ]
        [matchup] = weekly_matchup_scores(entries_from_rows(rows, 1), {})
        assert matchup["tie"] is True
        assert matchup["winners"] == ["5", "6"]
        assert matchup["losers"] == []
        assert matchup["participants"][0]["team_name"] is None
