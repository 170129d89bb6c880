"""
Static season snapshots.

A snapshot is a JSON document describing one season's matchups, used in
place of the live API for seasons the API cannot serve. Two shapes are
accepted:

    {"season": "2023", "1": [matchup, ...], "2": [...]}   # keyed by week
    [{"week": 1, ...matchup}, ...]                         # flat list

Each matchup carries teamA/teamB sides with a name, owner name and a score
(or a starters_points array), or top-level teamAScore/teamBScore fields.
Snapshots are converted to the same MatchupEntry shape the API path produces.
"""

import json
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from league_history.exceptions import DataShapeError
from league_history.logging_config import get_logger
from league_history.parsing.helpers import Rule, first_present, is_numeric, resolve, safe_num, sum_numeric
from league_history.parsing.matchups import MatchupEntry
from league_history.parsing.rosters import RosterView, avatar_url

logger = get_logger(__name__)

SIDES = ("teamA", "teamB")

# Non-week fields allowed at the top level of a week-keyed document
META_KEYS = ("season", "league_id", "name")


def _side_score_field(matchup: dict, side: str) -> Any:
    # teamAScore / teamBScore at the top level
    return matchup.get(f"{side}Score")


SIDE_SCORE_RULES: list[Rule] = [
    ("top_level_score", _side_score_field),
    (
        "starters_points",
        lambda matchup, side: (
            sum_numeric(matchup[side]["starters_points"])
            if isinstance(matchup[side].get("starters_points"), list) and matchup[side]["starters_points"]
            else None
        ),
    ),
    ("side_score", lambda matchup, side: first_present(matchup[side], f"{side}Score", "score", "points")),
]

SIDE_NAME_KEYS = ("name", "team_name", "team")
SIDE_OWNER_KEYS = ("ownerName", "owner_name", "owner")
SIDE_ROSTER_KEYS = ("rosterId", "roster_id")


@dataclass
class SeasonSnapshot:
    """One season's static matchups, keyed by week."""

    season: str
    weeks: dict[int, list[dict]] = field(default_factory=dict)
    source: str = ""

    @property
    def matchup_count(self) -> int:
        return sum(len(rows) for rows in self.weeks.values())


def _slug(text: str) -> str:
    return re.sub(r"[^a-z0-9]", "", str(text).lower())


def parse_snapshot(document: Any, season_hint: Optional[str] = None, source: str = "") -> SeasonSnapshot:
    """
    Validate a snapshot document and index its matchups by week.

    Args:
        document: Decoded JSON document
        season_hint: Season to use when the document has no "season" field
        source: Where the document came from (for messages)

    Returns:
        SeasonSnapshot

    Raises:
        DataShapeError: If the document is neither shape or holds no matchups

    Top-level keys that are not week lists are logged and skipped.
    """
    weeks: dict[int, list[dict]] = {}
    season = season_hint

    if isinstance(document, dict):
        if document.get("season") is not None:
            season = str(document["season"])
        for key, rows in document.items():
            if key in META_KEYS:
                continue
            if not is_numeric(key) or not isinstance(rows, list):
                logger.warning(f"Snapshot {source or season}: skipping key {key!r}, not a week list")
                continue
            weeks.setdefault(int(safe_num(key)), []).extend(r for r in rows if isinstance(r, dict))
    elif isinstance(document, list):
        for row in document:
            if not isinstance(row, dict) or not is_numeric(row.get("week")):
                raise DataShapeError(f"Snapshot {source or season}: matchup without a numeric week")
            weeks.setdefault(int(safe_num(row["week"])), []).append(row)
    else:
        raise DataShapeError(f"Snapshot {source or season}: expected an object or a list")

    if season is None:
        raise DataShapeError(f"Snapshot {source}: season is unknown")
    if not any(weeks.values()):
        raise DataShapeError(f"Snapshot {source or season}: no matchups")

    return SeasonSnapshot(season=str(season), weeks=dict(sorted(weeks.items())), source=source)


def load_snapshot_dir(directory: Path) -> tuple[dict[str, SeasonSnapshot], list[str]]:
    """
    Load every *.json file in a directory as a season snapshot.

    Files are keyed by their "season" field, else by file stem. Unreadable or
    malformed files are reported in the returned messages and skipped.

    Args:
        directory: Directory holding snapshot files

    Returns:
        (season -> SeasonSnapshot, messages)
    """
    snapshots: dict[str, SeasonSnapshot] = {}
    messages: list[str] = []
    directory = Path(directory)

    if not directory.is_dir():
        messages.append(f"No snapshot directory at {directory}; continuing without snapshots.")
        return snapshots, messages

    for path in sorted(directory.glob("*.json")):
        try:
            document = json.loads(path.read_text(encoding="utf-8"))
            snapshot = parse_snapshot(document, season_hint=path.stem, source=path.name)
        except (OSError, ValueError, DataShapeError) as e:
            logger.warning(f"Skipping snapshot {path.name}: {e}")
            messages.append(f"Error reading snapshot {path.name}: {e}")
            continue
        snapshots[snapshot.season] = snapshot
        messages.append(
            f"Loaded snapshot {path.name} as season={snapshot.season} "
            f"(weeks: {len(snapshot.weeks)}, matchups: {snapshot.matchup_count})."
        )

    return snapshots, messages


def side_score(matchup: dict, side: str) -> float:
    """Score for one side of a snapshot matchup, following SIDE_SCORE_RULES."""
    if not isinstance(matchup.get(side), dict):
        return safe_num(_side_score_field(matchup, side))
    _, value = resolve(SIDE_SCORE_RULES, matchup, side)
    return safe_num(value)


def _side_roster_id(side_data: dict, side: str, index: int) -> str:
    explicit = first_present(side_data, *SIDE_ROSTER_KEYS)
    if explicit is not None:
        return str(explicit)
    label = first_present(side_data, *SIDE_NAME_KEYS) or first_present(side_data, *SIDE_OWNER_KEYS)
    if label and _slug(label):
        return f"team:{_slug(label)}"
    return f"{side}-{index}"


def snapshot_week(
    snapshot: SeasonSnapshot, week: int
) -> tuple[list[MatchupEntry], dict[str, RosterView]]:
    """
    Convert one snapshot week into MatchupEntry objects plus a roster map.

    Both sides of a matchup share a matchup id, so they group together the
    same way live API rows do. A matchup with a single side becomes a bye.

    Raises:
        DataShapeError: If a matchup has neither side
    """
    entries: list[MatchupEntry] = []
    roster_map: dict[str, RosterView] = {}

    for index, matchup in enumerate(snapshot.weeks.get(week, [])):
        present = [side for side in SIDES if isinstance(matchup.get(side), dict)]
        if not present:
            raise DataShapeError(
                f"Snapshot season {snapshot.season} week {week}: matchup {index} has neither teamA nor teamB"
            )
        matchup_id = first_present(matchup, "matchupId", "matchup_id") or f"snapshot-{snapshot.season}-{week}-{index}"
        for side in present:
            side_data = matchup[side]
            roster_id = _side_roster_id(side_data, side, index)
            team_name = first_present(side_data, *SIDE_NAME_KEYS)
            owner_name = first_present(side_data, *SIDE_OWNER_KEYS)
            view = roster_map.get(roster_id)
            if view is None:
                roster_map[roster_id] = RosterView(
                    roster_id=roster_id,
                    team_name=str(team_name) if team_name else f"Roster {roster_id}",
                    owner_name=str(owner_name) if owner_name else None,
                    team_avatar=avatar_url(first_present(side_data, "avatar", "team_avatar")),
                    roster_raw=side_data,
                )
            entries.append(
                MatchupEntry(
                    roster_id=roster_id,
                    week=week,
                    points=side_score(matchup, side),
                    matchup_id=str(matchup_id),
                    raw=side_data,
                )
            )

    return entries, roster_map
