"""
Victory margins and head-to-head records.

Only two-team groups produce records: one MarginRecord per matchup and one
directional H2HRecord update per side, keyed by owner identity.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Tuple

from league_history.logging_config import get_logger
from league_history.parsing.matchups import EPSILON, LOSS, TIE, WIN, ResolvedGroup
from league_history.parsing.rosters import RosterView, placeholder_roster
from league_history.stats.aggregate import season_sort_key
from league_history.stats.owners import OwnerIdentity

logger = get_logger(__name__)

DEFAULT_TOP_N = 10


@dataclass
class MarginRecord:
    season: Optional[str]
    week: int
    team_a: str
    owner_a: Optional[str]
    team_b: str
    owner_b: Optional[str]
    points_a: float
    points_b: float
    margin: float
    avatar_a: Optional[str] = None
    avatar_b: Optional[str] = None
    owner_key_a: Optional[str] = None
    owner_key_b: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "season": self.season,
            "week": self.week,
            "team_a": self.team_a,
            "owner_a": self.owner_a,
            "team_b": self.team_b,
            "owner_b": self.owner_b,
            "points_a": round(self.points_a, 2),
            "points_b": round(self.points_b, 2),
            "margin": round(self.margin, 2),
            "avatar_a": self.avatar_a,
            "avatar_b": self.avatar_b,
        }


@dataclass
class H2HRecord:
    """One owner's record against one opponent (the reverse row is stored separately)."""

    owner_key: str
    opponent_key: str
    owner_name: Optional[str] = None
    opponent_name: Optional[str] = None
    owner_avatar: Optional[str] = None
    opponent_avatar: Optional[str] = None
    games: int = 0
    wins: int = 0
    losses: int = 0
    ties: int = 0
    points_for: float = 0.0
    points_against: float = 0.0
    last_season: Optional[str] = None
    last_week: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "owner_key": self.owner_key,
            "opponent_key": self.opponent_key,
            "owner_name": self.owner_name,
            "opponent_name": self.opponent_name,
            "owner_avatar": self.owner_avatar,
            "opponent_avatar": self.opponent_avatar,
            "games": self.games,
            "wins": self.wins,
            "losses": self.losses,
            "ties": self.ties,
            "points_for": round(self.points_for, 2),
            "points_against": round(self.points_against, 2),
            "last_season": self.last_season,
            "last_week": self.last_week,
        }


def _h2h_sort_key(record: H2HRecord) -> tuple:
    return (-record.games, -record.wins, -round(record.points_for, 2), record.opponent_key)


def _margin_order(record: MarginRecord) -> tuple:
    return (season_sort_key(record.season), record.week, record.team_a, record.team_b)


class RecordsBook:
    """
    Collects margins and head-to-head tallies across leagues.

    Call register_rosters() for every processed league so avatars can be
    back-filled onto records whose roster carried none.
    """

    def __init__(self, identity: Optional[OwnerIdentity] = None):
        self.identity = identity or OwnerIdentity()
        self.margins: List[MarginRecord] = []
        self._h2h: Dict[Tuple[str, str], H2HRecord] = {}
        self._avatars: Dict[str, str] = {}

    def owner_key(self, league_id: str, view: RosterView) -> str:
        """Owner identity key, or a league-qualified roster key when the owner is unknown."""
        return self.identity.key_for(view.owner_name, view.owner_username) or f"roster:{league_id}:{view.roster_id}"

    def register_rosters(self, league_id: str, roster_map: Mapping[str, RosterView]) -> None:
        for view in roster_map.values():
            if view.avatar:
                self._avatars.setdefault(self.owner_key(league_id, view), view.avatar)

    def add_group(
        self,
        season: Optional[str],
        league_id: str,
        group: ResolvedGroup,
        roster_map: Mapping[str, RosterView],
    ) -> Optional[MarginRecord]:
        """
        Record a resolved group. Anything other than a two-team group is ignored.

        Returns:
            The MarginRecord created, or None
        """
        if not group.is_head_to_head:
            return None

        side_a, side_b = group.participants
        view_a = roster_map.get(side_a.roster_id) or placeholder_roster(side_a.roster_id)
        view_b = roster_map.get(side_b.roster_id) or placeholder_roster(side_b.roster_id)
        key_a = self.owner_key(league_id, view_a)
        key_b = self.owner_key(league_id, view_b)

        record = MarginRecord(
            season=season,
            week=group.week,
            team_a=view_a.team_name,
            owner_a=view_a.owner_name,
            team_b=view_b.team_name,
            owner_b=view_b.owner_name,
            points_a=side_a.points,
            points_b=side_b.points,
            margin=abs(side_a.points - side_b.points),
            avatar_a=view_a.avatar,
            avatar_b=view_b.avatar,
            owner_key_a=key_a,
            owner_key_b=key_b,
        )
        self.margins.append(record)

        self._update(key_a, key_b, view_a, view_b, side_a.points, side_b.points, side_a.outcome, season, group.week)
        self._update(key_b, key_a, view_b, view_a, side_b.points, side_a.points, side_b.outcome, season, group.week)
        return record

    def _update(
        self,
        owner_key: str,
        opponent_key: str,
        owner: RosterView,
        opponent: RosterView,
        points_for: float,
        points_against: float,
        outcome: Optional[str],
        season: Optional[str],
        week: int,
    ) -> None:
        record = self._h2h.get((owner_key, opponent_key))
        if record is None:
            record = H2HRecord(owner_key=owner_key, opponent_key=opponent_key)
            self._h2h[(owner_key, opponent_key)] = record

        record.games += 1
        if outcome == WIN:
            record.wins += 1
        elif outcome == LOSS:
            record.losses += 1
        elif outcome == TIE:
            record.ties += 1
        record.points_for += points_for
        record.points_against += points_against

        if record.last_week is None or (season_sort_key(season), week) >= (
            season_sort_key(record.last_season),
            record.last_week,
        ):
            record.last_season = season
            record.last_week = week
            record.owner_name = owner.owner_name or owner.team_name
            record.opponent_name = opponent.owner_name or opponent.team_name
            record.owner_avatar = owner.avatar
            record.opponent_avatar = opponent.avatar

    def _avatar(self, key: Optional[str], current: Optional[str]) -> Optional[str]:
        if current or not key:
            return current
        return self._avatars.get(self.identity.key(key) or key) or self._avatars.get(key)

    def _backfill_margin(self, record: MarginRecord) -> MarginRecord:
        record.avatar_a = self._avatar(record.owner_key_a, record.avatar_a)
        record.avatar_b = self._avatar(record.owner_key_b, record.avatar_b)
        return record

    def largest_margins(self, limit: int = DEFAULT_TOP_N) -> List[MarginRecord]:
        ordered = sorted(self.margins, key=_margin_order)
        ordered.sort(key=lambda r: r.margin, reverse=True)
        return [self._backfill_margin(r) for r in ordered[:limit]]

    def smallest_margins(self, limit: int = DEFAULT_TOP_N) -> List[MarginRecord]:
        """Closest decided games; ties (within EPSILON) are excluded."""
        decided = [r for r in self.margins if r.margin > EPSILON]
        ordered = sorted(decided, key=lambda r: (r.margin, _margin_order(r)))
        return [self._backfill_margin(r) for r in ordered[:limit]]

    def head_to_head(self, owner: str) -> List[H2HRecord]:
        """
        All opponents of one owner, most-played first.

        Args:
            owner: Raw owner name or an owner key (aliases are applied)
        """
        key = self.identity.key(owner) or owner
        rows = [r for (owner_key, _), r in self._h2h.items() if owner_key in (key, owner)]
        for row in rows:
            row.owner_avatar = self._avatar(row.owner_key, row.owner_avatar)
            row.opponent_avatar = self._avatar(row.opponent_key, row.opponent_avatar)
        return sorted(rows, key=_h2h_sort_key)

    def head_to_head_table(self) -> Dict[str, List[H2HRecord]]:
        """owner key -> sorted H2H rows, owners in key order."""
        owners = sorted({owner_key for owner_key, _ in self._h2h})
        return {owner: self.head_to_head(owner) for owner in owners}
