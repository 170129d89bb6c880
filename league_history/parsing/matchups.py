"""
Matchup grouping and outcome resolution.

Raw weekly rows (one per roster) are turned into MatchupEntry objects, grouped
into matchups, and each participant is scored against the average of the
other participants in its group. Groups of one are byes.
"""

from dataclasses import dataclass, field
from typing import Any, Hashable, Iterable, Optional

from league_history.parsing.helpers import (
    Rule,
    as_id,
    first_present,
    is_numeric,
    resolve,
    safe_num,
    sum_numeric,
)
from league_history.parsing.rosters import RosterView

WIN = "W"
LOSS = "L"
TIE = "T"

EPSILON = 1e-9

ENTRY_ROSTER_KEYS = ("roster_id", "rosterId")
ENTRY_MATCHUP_KEYS = ("matchup_id", "matchupId", "matchup")

# Tolerance when comparing the flat points field to the starters_points sum
POINTS_MISMATCH_TOLERANCE = 0.001


def _flat_points(raw: dict) -> Optional[float]:
    value = raw.get("points")
    return float(value) if is_numeric(value) else None


def _starters_points(raw: dict) -> Optional[float]:
    values = raw.get("starters_points")
    if isinstance(values, list) and values:
        return sum_numeric(values)
    return None


def _starters_from_player_map(raw: dict) -> Optional[float]:
    starters = raw.get("starters")
    player_points = raw.get("players_points")
    if not isinstance(starters, list) or not isinstance(player_points, dict):
        return None
    matched = [player_points[str(pid)] for pid in starters if str(pid) in player_points]
    return sum_numeric(matched) if matched else None


def _fallback_points(raw: dict) -> Optional[float]:
    value = first_present(raw, "points_for", "pts")
    return float(value) if is_numeric(value) else None


POINTS_RULES: list[Rule] = [
    ("points", _flat_points),
    ("starters_points", _starters_points),
    ("players_points_starters", _starters_from_player_map),
    ("fallback", _fallback_points),
]


def extract_points(raw: Any) -> float:
    """
    Score for one raw weekly row, following POINTS_RULES in order.

    Args:
        raw: Raw matchup row from /league/{id}/matchups/{week}

    Returns:
        Points as float; 0.0 when nothing numeric is present
    """
    if not isinstance(raw, dict):
        return 0.0
    _, value = resolve(POINTS_RULES, raw)
    return safe_num(value)


def points_mismatch(raw: Any) -> Optional[tuple[float, float]]:
    """
    Compare the flat points field against the starters_points sum.

    Returns:
        (official, starters_sum) when both exist and differ, else None
    """
    if not isinstance(raw, dict):
        return None
    official = _flat_points(raw)
    starters = _starters_points(raw)
    if official is None or starters is None:
        return None
    if abs(official - starters) > POINTS_MISMATCH_TOLERANCE:
        return official, starters
    return None


@dataclass
class MatchupEntry:
    """One participant's record for one week."""

    roster_id: str
    week: int
    points: float
    matchup_id: Optional[str] = None
    raw: dict = field(default_factory=dict, repr=False)


@dataclass
class ResolvedParticipant:
    roster_id: str
    points: float
    opponent_points: Optional[float] = None  # average of the other participants
    outcome: Optional[str] = None  # None for byes


@dataclass
class ResolvedGroup:
    """One matchup after outcome resolution."""

    key: Hashable
    week: int
    matchup_id: Optional[str]
    participants: list[ResolvedParticipant]
    entries: list[MatchupEntry] = field(default_factory=list, repr=False)

    @property
    def is_bye(self) -> bool:
        return len(self.participants) == 1

    @property
    def is_head_to_head(self) -> bool:
        return len(self.participants) == 2

    def has_zero_score(self) -> bool:
        """True when a contested group holds a 0-point participant (week not played yet)."""
        return len(self.participants) >= 2 and any(p.points == 0 for p in self.participants)


def entries_from_rows(rows: Any, week: int) -> list[MatchupEntry]:
    """
    Convert raw API rows for one week into MatchupEntry objects.

    Rows without a roster id are dropped; a row's own week field wins over
    the requested week.
    """
    entries = []
    for raw in rows if isinstance(rows, list) else []:
        if not isinstance(raw, dict):
            continue
        roster_id = as_id(first_present(raw, *ENTRY_ROSTER_KEYS))
        if roster_id is None:
            continue
        row_week = raw.get("week")
        entries.append(
            MatchupEntry(
                roster_id=roster_id,
                week=int(safe_num(row_week)) if is_numeric(row_week) else week,
                points=extract_points(raw),
                matchup_id=as_id(first_present(raw, *ENTRY_MATCHUP_KEYS)),
                raw=raw,
            )
        )
    return entries


def matchup_key(entry: MatchupEntry, index: int) -> Hashable:
    """Grouping key: (matchup id, week), or a per-row synthetic key when the id is missing."""
    if entry.matchup_id is not None:
        return ("matchup", entry.matchup_id, entry.week)
    return ("auto", entry.week, index)


def group_entries(entries: Iterable[MatchupEntry]) -> dict[Hashable, list[MatchupEntry]]:
    """Group entries by matchup key, preserving first-seen order."""
    groups: dict[Hashable, list[MatchupEntry]] = {}
    for index, entry in enumerate(entries):
        groups.setdefault(matchup_key(entry, index), []).append(entry)
    return groups


def outcome_against(points: float, opponent_points: float) -> str:
    """W/L/T for points compared to the opponents' average, with EPSILON slack."""
    if points > opponent_points + EPSILON:
        return WIN
    if points < opponent_points - EPSILON:
        return LOSS
    return TIE


def resolve_group(key: Hashable, entries: list[MatchupEntry]) -> Optional[ResolvedGroup]:
    """
    Resolve outcomes for one matchup group.

    Each participant is compared to the average of everyone else in the
    group, which makes 2-team and multi-team groups follow the same rule.

    Returns:
        ResolvedGroup, or None for an empty group
    """
    if not entries:
        return None

    first = entries[0]
    if len(entries) == 1:
        participants = [ResolvedParticipant(roster_id=first.roster_id, points=first.points)]
    else:
        total = sum(e.points for e in entries)
        others = len(entries) - 1
        participants = []
        for entry in entries:
            opponent_avg = (total - entry.points) / others
            participants.append(
                ResolvedParticipant(
                    roster_id=entry.roster_id,
                    points=entry.points,
                    opponent_points=opponent_avg,
                    outcome=outcome_against(entry.points, opponent_avg),
                )
            )

    return ResolvedGroup(
        key=key,
        week=first.week,
        matchup_id=first.matchup_id,
        participants=participants,
        entries=list(entries),
    )


def resolve_week(entries: Iterable[MatchupEntry]) -> list[ResolvedGroup]:
    """Group a week's entries and resolve every group."""
    resolved = []
    for key, group in group_entries(entries).items():
        result = resolve_group(key, group)
        if result is not None:
            resolved.append(result)
    return resolved


def _participant_view(
    entry: MatchupEntry, roster_map: dict[str, RosterView]
) -> Optional[RosterView]:
    view = roster_map.get(entry.roster_id)
    if view is not None:
        return view
    owner_id = as_id(first_present(entry.raw, "owner_id", "ownerId"))
    if owner_id is None:
        return None
    return next((v for v in roster_map.values() if v.owner_id == owner_id), None)


def weekly_matchup_scores(
    entries: list[MatchupEntry], roster_map: dict[str, RosterView]
) -> list[dict[str, Any]]:
    """
    Build the per-week matchup view: participants with display metadata,
    winners (everyone at the top score), losers and a tie flag.

    Args:
        entries: One week's entries
        roster_map: roster_id -> RosterView for the league

    Returns:
        List of matchup dictionaries in first-seen order
    """
    matchups = []
    for key, group in group_entries(entries).items():
        participants = []
        for entry in group:
            view = _participant_view(entry, roster_map)
            raw = entry.raw
            participants.append(
                {
                    "roster_id": entry.roster_id,
                    "owner_id": view.owner_id if view else as_id(raw.get("owner_id")),
                    "team_name": view.team_name if view else raw.get("team_name"),
                    "owner_name": view.owner_name if view else raw.get("owner_name"),
                    "owner_username": view.owner_username if view else None,
                    "team_avatar": view.team_avatar if view else None,
                    "owner_avatar": view.owner_avatar if view else None,
                    "starters": list(raw["starters"]) if isinstance(raw.get("starters"), list) else None,
                    "starters_points": (
                        list(raw["starters_points"])
                        if isinstance(raw.get("starters_points"), list)
                        else None
                    ),
                    "score": entry.points,
                }
            )

        scores = [p["score"] for p in participants]
        top, bottom = max(scores), min(scores)
        winners = [p["roster_id"] for p in participants if abs(p["score"] - top) <= EPSILON]
        losers = [p["roster_id"] for p in participants if abs(p["score"] - top) > EPSILON]
        first = group[0]
        matchups.append(
            {
                "matchup_id": first.matchup_id if first.matchup_id is not None else "|".join(map(str, key)),
                "week": first.week,
                "participants": participants,
                "winners": winners,
                "losers": losers,
                "tie": len(participants) > 1 and abs(top - bottom) <= EPSILON,
            }
        )
    return matchups
