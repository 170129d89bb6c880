"""
Per-season standings.

Resolved weekly groups are folded into one accumulator per window (regular
season and playoffs). Rows carry W/L/T, points for/against, the ordered
result sequence and the longest win/lose streaks derived from it.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from league_history.logging_config import get_logger
from league_history.parsing.helpers import is_numeric, safe_get, safe_num
from league_history.parsing.matchups import LOSS, TIE, WIN, ResolvedGroup
from league_history.parsing.rosters import RosterView, find_roster_by_owner, placeholder_roster

logger = get_logger(__name__)

REGULAR = "regular"
PLAYOFF = "playoff"

DEFAULT_PLAYOFF_START = 15
PLAYOFF_WEEKS = 3


def playoff_start_week(league: Optional[dict]) -> int:
    """League settings.playoff_week_start, or 15 when absent, invalid or < 1."""
    value = safe_get(league, "settings", "playoff_week_start")
    if not is_numeric(value):
        return DEFAULT_PLAYOFF_START
    start = int(safe_num(value))
    return start if start >= 1 else DEFAULT_PLAYOFF_START


def playoff_end_week(playoff_start: int) -> int:
    return playoff_start + PLAYOFF_WEEKS - 1


def window_for_week(week: int, playoff_start: int) -> Optional[str]:
    """
    Window a week belongs to.

    Returns:
        REGULAR for 1..start-1, PLAYOFF for start..start+2, None otherwise
    """
    if 1 <= week < playoff_start:
        return REGULAR
    if playoff_start <= week <= playoff_end_week(playoff_start):
        return PLAYOFF
    return None


def compute_streaks(results: Iterable[str]) -> Tuple[int, int]:
    """
    Longest win and lose streaks in one pass.

    A win resets the lose counter and vice versa; a tie resets both.

    Returns:
        (max_win_streak, max_lose_streak)
    """
    max_win = max_lose = win = lose = 0
    for result in results:
        if result == WIN:
            win += 1
            lose = 0
        elif result == LOSS:
            lose += 1
            win = 0
        else:
            win = lose = 0
        max_win = max(max_win, win)
        max_lose = max(max_lose, lose)
    return max_win, max_lose


@dataclass
class SeasonStatsRow:
    """Running totals for one roster in one window."""

    roster_id: str
    wins: int = 0
    losses: int = 0
    ties: int = 0
    points_for: float = 0.0
    points_against: float = 0.0
    results: List[str] = field(default_factory=list)

    def record(self, points: float, opponent_points: Optional[float], outcome: Optional[str]) -> None:
        self.points_for += points
        if outcome is None:
            return
        self.points_against += opponent_points or 0.0
        self.results.append(outcome)
        if outcome == WIN:
            self.wins += 1
        elif outcome == LOSS:
            self.losses += 1
        elif outcome == TIE:
            self.ties += 1


class StandingsAccumulator:
    """
    Collects SeasonStatsRow per roster for one window.

    Seeding with the roster map makes rosters without games show up with
    zero stats.
    """

    def __init__(self, roster_ids: Iterable[str] = ()):
        self.rows: Dict[str, SeasonStatsRow] = {}
        for roster_id in roster_ids:
            self.row(roster_id)

    def row(self, roster_id: str) -> SeasonStatsRow:
        if roster_id not in self.rows:
            self.rows[roster_id] = SeasonStatsRow(roster_id=roster_id)
        return self.rows[roster_id]

    def add_group(self, group: ResolvedGroup) -> None:
        for participant in group.participants:
            self.row(participant.roster_id).record(
                participant.points, participant.opponent_points, participant.outcome
            )


@dataclass
class StandingsRow:
    """SeasonStatsRow joined with roster display data, ready for output."""

    roster_id: str
    team_name: str
    owner_id: Optional[str]
    owner_name: Optional[str]
    owner_username: Optional[str]
    avatar: Optional[str]
    wins: int
    losses: int
    ties: int
    points_for: float
    points_against: float
    max_win_streak: int
    max_lose_streak: int
    champion: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "roster_id": self.roster_id,
            "team_name": self.team_name,
            "owner_id": self.owner_id,
            "owner_name": self.owner_name,
            "owner_username": self.owner_username,
            "avatar": self.avatar,
            "wins": self.wins,
            "losses": self.losses,
            "ties": self.ties,
            "points_for": self.points_for,
            "points_against": self.points_against,
            "max_win_streak": self.max_win_streak,
            "max_lose_streak": self.max_lose_streak,
            "champion": self.champion,
        }


def _standings_sort_key(row: StandingsRow) -> tuple:
    return (-row.wins, -row.points_for, row.roster_id)


def build_standings(
    accumulator: StandingsAccumulator, roster_map: Mapping[str, RosterView]
) -> List[StandingsRow]:
    """
    Turn an accumulator into sorted StandingsRows.

    Args:
        accumulator: Window totals
        roster_map: roster_id -> RosterView for display fields

    Returns:
        Rows sorted by wins desc, points for desc, roster id
    """
    rows = []
    for roster_id, stats in accumulator.rows.items():
        view = roster_map.get(roster_id) or placeholder_roster(roster_id)
        max_win, max_lose = compute_streaks(stats.results)
        rows.append(
            StandingsRow(
                roster_id=roster_id,
                team_name=view.team_name,
                owner_id=view.owner_id,
                owner_name=view.owner_name,
                owner_username=view.owner_username,
                avatar=view.avatar,
                wins=stats.wins,
                losses=stats.losses,
                ties=stats.ties,
                points_for=round(stats.points_for, 2),
                points_against=round(stats.points_against, 2),
                max_win_streak=max_win,
                max_lose_streak=max_lose,
            )
        )
    return sorted(rows, key=_standings_sort_key)


def apply_champion(
    season: Optional[str],
    champions: Mapping[str, str],
    roster_map: Mapping[str, RosterView],
    playoff_rows: List[StandingsRow],
    regular_rows: Optional[List[StandingsRow]] = None,
) -> Optional[str]:
    """
    Flag the champion rows from an explicit season -> owner table.

    The owner is matched by username, then display name (case-insensitive),
    and only rosters present in the playoff standings can be flagged. The
    same roster is then flagged in the regular standings too, so both
    cross-season aggregates count the title.

    Returns:
        A message describing what happened, or None when the season has no entry
    """
    if season is None or str(season) not in champions:
        return None

    owner = str(champions[str(season)])
    view = find_roster_by_owner(roster_map, owner)
    if view is None:
        return f'Champion owner "{owner}" could not be mapped to a roster for season {season}.'

    row = next((r for r in playoff_rows if r.roster_id == view.roster_id), None)
    if row is None:
        return (
            f'Champion owner "{owner}" mapped to roster {view.roster_id} but that roster '
            f"was not present in playoff standings for season {season}."
        )

    row.champion = True
    for regular_row in regular_rows or []:
        if regular_row.roster_id == view.roster_id:
            regular_row.champion = True
    logger.info(f"Champion for season={season}: owner={owner} roster={view.roster_id}")
    return f'Champion applied for season {season}: owner "{owner}" -> roster {view.roster_id}'
