"""
Per-season player leaders from starter scoring.

Player points come from the parallel starters / starters_points arrays, or
from a players_points map (restricted to starters when they are listed).
Besides the season and playoff leaders, a season has a Finals MVP (top
scorer of the championship matchup) and one leader per roster. Names come
from an optional Sleeper players map.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple

from league_history.logging_config import get_logger
from league_history.parsing.helpers import safe_num
from league_history.parsing.matchups import MatchupEntry, group_entries
from league_history.parsing.rosters import RosterView
from league_history.stats.standings import playoff_end_week

logger = get_logger(__name__)

# Sources for a Finals MVP
FINALS_MATCHUP = "finals_matchup"
PLAYOFF_FALLBACK = "playoff_fallback"


def player_points(raw: Any) -> Iterator[Tuple[str, float]]:
    """Yield (player_id, points) for every starter in one raw entry."""
    if not isinstance(raw, dict):
        return
    starters = raw.get("starters")
    starters_points = raw.get("starters_points")
    # snapshots spell the map player_points
    points_map = next((raw[k] for k in ("players_points", "player_points") if isinstance(raw.get(k), dict)), None)
    if isinstance(starters, list) and isinstance(starters_points, list) and len(starters) == len(starters_points):
        pairs = zip(starters, starters_points)
    elif points_map is not None:
        if isinstance(starters, list):
            pairs = ((pid, points_map.get(str(pid))) for pid in starters)
        else:
            pairs = points_map.items()
    else:
        return

    for pid, pts in pairs:
        # "0" marks an empty starter slot
        if pid is None or str(pid) in ("", "0"):
            continue
        yield str(pid), safe_num(pts)


def player_name(players: Optional[Mapping[str, Any]], player_id: Optional[str]) -> Optional[str]:
    """
    Display name for a player from the Sleeper players map.

    Uses full_name, else "first last" when both parts are present.
    """
    if not players or not player_id:
        return None
    info = players.get(str(player_id))
    if not isinstance(info, dict):
        return None
    if info.get("full_name"):
        return str(info["full_name"])
    if info.get("first_name") and info.get("last_name"):
        return f"{info['first_name']} {info['last_name']}"
    return None


def _player_id_order(player_id: str) -> tuple:
    if player_id.isdigit():
        return (0, int(player_id), player_id)
    return (1, 0, player_id)


@dataclass
class PlayerTally:
    points: float = 0.0
    by_roster: Dict[str, float] = field(default_factory=dict)

    def add(self, roster_id: str, points: float) -> None:
        self.points += points
        self.by_roster[roster_id] = self.by_roster.get(roster_id, 0.0) + points

    @property
    def top_roster_id(self) -> Optional[str]:
        if not self.by_roster:
            return None
        return min(self.by_roster.items(), key=lambda item: (-item[1], item[0]))[0]


@dataclass
class PlayerLeader:
    player_id: str
    points: float
    top_roster_id: Optional[str] = None
    team_name: Optional[str] = None
    owner_name: Optional[str] = None
    player_name: Optional[str] = None
    source: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "player_id": self.player_id,
            "player_name": self.player_name,
            "points": round(self.points, 2),
            "top_roster_id": self.top_roster_id,
            "team_name": self.team_name,
            "owner_name": self.owner_name,
        }
        if self.source:
            data["source"] = self.source
        return data


@dataclass
class TeamLeader:
    """Top scorer for one roster; player fields are None for a roster without starters data."""

    roster_id: str
    team_name: str
    owner_name: Optional[str]
    player_id: Optional[str] = None
    player_name: Optional[str] = None
    points: float = 0.0
    regular_points: float = 0.0
    playoff_points: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "roster_id": self.roster_id,
            "team_name": self.team_name,
            "owner_name": self.owner_name,
            "player_id": self.player_id,
            "player_name": self.player_name,
            "points": round(self.points, 2),
            "regular_points": round(self.regular_points, 2),
            "playoff_points": round(self.playoff_points, 2),
        }


def _top(totals: Mapping[str, float]) -> Optional[Tuple[str, float]]:
    """Highest total, ties broken by lowest player id."""
    if not totals:
        return None
    return min(totals.items(), key=lambda item: (-item[1], _player_id_order(item[0])))


class PlayerLeaderboard:
    """
    Season-long (weeks 1..playoff end) and playoff-window player totals.

    Args:
        playoff_start: First playoff week of the season
        players: Sleeper players map (player id -> info) used for names
    """

    def __init__(self, playoff_start: int, players: Optional[Mapping[str, Any]] = None):
        self.playoff_start = playoff_start
        self.playoff_end = playoff_end_week(playoff_start)
        self.players = players or {}
        self.season: Dict[str, PlayerTally] = {}
        self.playoffs: Dict[str, PlayerTally] = {}
        self.playoff_entries: Dict[int, List[MatchupEntry]] = {}

    def add_entries(self, entries: Iterable[MatchupEntry]) -> None:
        for entry in entries:
            if not 1 <= entry.week <= self.playoff_end:
                continue
            in_playoffs = entry.week >= self.playoff_start
            if in_playoffs:
                self.playoff_entries.setdefault(entry.week, []).append(entry)
            for pid, pts in player_points(entry.raw):
                self.season.setdefault(pid, PlayerTally()).add(entry.roster_id, pts)
                if in_playoffs:
                    self.playoffs.setdefault(pid, PlayerTally()).add(entry.roster_id, pts)

    def _make_leader(
        self,
        player_id: str,
        points: float,
        top_roster_id: Optional[str],
        roster_map: Mapping[str, RosterView],
        source: Optional[str] = None,
    ) -> PlayerLeader:
        view = roster_map.get(top_roster_id) if top_roster_id else None
        return PlayerLeader(
            player_id=player_id,
            points=points,
            top_roster_id=top_roster_id,
            team_name=view.team_name if view else None,
            owner_name=view.owner_name if view else None,
            player_name=player_name(self.players, player_id),
            source=source,
        )

    def _leader(
        self, tallies: Dict[str, PlayerTally], roster_map: Mapping[str, RosterView], source: Optional[str] = None
    ) -> Optional[PlayerLeader]:
        top = _top({pid: tally.points for pid, tally in tallies.items()})
        if top is None:
            return None
        player_id, points = top
        return self._make_leader(player_id, points, tallies[player_id].top_roster_id, roster_map, source)

    def overall_leader(self, roster_map: Mapping[str, RosterView]) -> Optional[PlayerLeader]:
        return self._leader(self.season, roster_map)

    def playoff_leader(self, roster_map: Mapping[str, RosterView]) -> Optional[PlayerLeader]:
        return self._leader(self.playoffs, roster_map)

    def championship_entries(self, champion_roster_id: str) -> List[MatchupEntry]:
        """
        Entries of the championship matchup: the multi-team group holding the
        champion in the last playoff week, else in one of the two weeks before.
        """
        for week in (self.playoff_end, self.playoff_end - 1, self.playoff_end - 2):
            if week < self.playoff_start:
                break
            for group in group_entries(self.playoff_entries.get(week, [])).values():
                if len(group) > 1 and any(e.roster_id == champion_roster_id for e in group):
                    return group
        return []

    def finals_mvp(
        self, champion_roster_id: Optional[str], roster_map: Mapping[str, RosterView]
    ) -> Optional[PlayerLeader]:
        """
        Top scorer among the starters of the championship matchup.

        Without a known champion, or when the championship matchup cannot be
        found, falls back to the playoff leader.
        """
        entries = self.championship_entries(champion_roster_id) if champion_roster_id else []
        finals = PlayerLeaderboard(self.playoff_start)
        finals.add_entries(entries)
        top = _top({pid: tally.points for pid, tally in finals.season.items()})
        if top is not None:
            player_id, points = top
            return self._make_leader(
                player_id, points, finals.season[player_id].top_roster_id, roster_map, FINALS_MATCHUP
            )

        logger.debug(f"No championship matchup for roster={champion_roster_id}; using the playoff leader")
        return self._leader(self.playoffs, roster_map, PLAYOFF_FALLBACK)

    def team_leaders(self, roster_map: Mapping[str, RosterView]) -> List[TeamLeader]:
        """
        One row per roster with that roster's best player by points scored
        for it (a traded player only counts what he scored for this roster).
        """
        roster_ids = set(roster_map)
        for tally in self.season.values():
            roster_ids.update(tally.by_roster)

        leaders = []
        for roster_id in sorted(roster_ids, key=_player_id_order):
            view = roster_map.get(roster_id)
            leader = TeamLeader(
                roster_id=roster_id,
                team_name=view.team_name if view else f"Roster {roster_id}",
                owner_name=view.owner_name if view else None,
            )
            top = _top({pid: t.by_roster[roster_id] for pid, t in self.season.items() if roster_id in t.by_roster})
            if top is not None:
                player_id, points = top
                playoff_tally = self.playoffs.get(player_id)
                leader.player_id = player_id
                leader.player_name = player_name(self.players, player_id)
                leader.points = points
                leader.playoff_points = playoff_tally.by_roster.get(roster_id, 0.0) if playoff_tally else 0.0
                leader.regular_points = points - leader.playoff_points
            leaders.append(leader)
        return leaders
