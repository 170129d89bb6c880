"""
Cross-season aggregation of standings rows.

Rows from every season are folded into lifetime totals keyed by owner
identity. Totals are sums and running maxima, and display values come from
the row with the latest season, so the result does not depend on the order
seasons are added in.
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

from league_history.stats.owners import OwnerIdentity, normalize_name
from league_history.stats.standings import StandingsRow


def season_sort_key(season: Optional[str]) -> tuple:
    """Numeric seasons ascending, then non-numeric seasons by text, then unknown."""
    if season is None:
        return (2, 0, "")
    text = str(season)
    if text.isdigit():
        return (0, int(text), text)
    return (1, 0, text)


def aggregation_key(row: StandingsRow, identity: OwnerIdentity) -> str:
    """
    Key a row folds under: owner identity, else owner id, else roster id,
    else team name.
    """
    owner_key = identity.key_for(row.owner_name, row.owner_username)
    if owner_key:
        return owner_key
    if row.owner_id:
        return f"owner:{row.owner_id}"
    if row.roster_id:
        return f"roster:{row.roster_id}"
    return f"team:{normalize_name(row.team_name)}"


@dataclass
class AggregateOwnerRow:
    key: str
    team_name: str
    owner_name: Optional[str]
    avatar: Optional[str]
    wins: int = 0
    losses: int = 0
    ties: int = 0
    points_for: float = 0.0
    points_against: float = 0.0
    max_win_streak: int = 0
    max_lose_streak: int = 0
    seasons_count: int = 0
    champion_count: int = 0
    last_season: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "team_name": self.team_name,
            "owner_name": self.owner_name,
            "avatar": self.avatar,
            "wins": self.wins,
            "losses": self.losses,
            "ties": self.ties,
            "points_for": round(self.points_for, 2),
            "points_against": round(self.points_against, 2),
            "max_win_streak": self.max_win_streak,
            "max_lose_streak": self.max_lose_streak,
            "seasons_count": self.seasons_count,
            "champion_count": self.champion_count,
            "last_season": self.last_season,
        }


class CrossSeasonAggregator:
    """
    Folds per-season StandingsRows into AggregateOwnerRows.

    Example:
        aggregator = CrossSeasonAggregator(OwnerIdentity({"oldname": "newname"}))
        aggregator.add_season("2023", regular_rows)
        aggregator.add_season("2024", regular_rows_2024)
        rows = aggregator.rows()
    """

    def __init__(self, identity: Optional[OwnerIdentity] = None):
        self.identity = identity or OwnerIdentity()
        self._rows: Dict[str, AggregateOwnerRow] = {}
        # season sort key of the row that last set each aggregate's display values
        self._display_from: Dict[str, tuple] = {}

    def add_season(self, season: Optional[str], rows: Iterable[StandingsRow]) -> None:
        for row in rows:
            self.add_row(season, row)

    def add_row(self, season: Optional[str], row: StandingsRow) -> None:
        key = aggregation_key(row, self.identity)
        agg = self._rows.get(key)
        if agg is None:
            agg = AggregateOwnerRow(key=key, team_name=row.team_name, owner_name=row.owner_name, avatar=row.avatar)
            self._rows[key] = agg

        agg.wins += row.wins
        agg.losses += row.losses
        agg.ties += row.ties
        agg.points_for += row.points_for
        agg.points_against += row.points_against
        agg.max_win_streak = max(agg.max_win_streak, row.max_win_streak)
        agg.max_lose_streak = max(agg.max_lose_streak, row.max_lose_streak)
        agg.seasons_count += 1
        if row.champion:
            agg.champion_count += 1

        # ties on season order break on team name so the winner never depends on arrival order
        rank = (season_sort_key(season), row.team_name or "")
        if key not in self._display_from or rank >= self._display_from[key]:
            self._display_from[key] = rank
            agg.team_name = row.team_name
            agg.owner_name = row.owner_name
            agg.avatar = row.avatar
            agg.last_season = season

    def rows(self) -> List[AggregateOwnerRow]:
        """Aggregates sorted by wins desc, points for desc, key."""
        return sorted(
            self._rows.values(),
            key=lambda r: (-r.wins, -round(r.points_for, 2), r.key),
        )
