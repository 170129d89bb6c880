"""
Season chain resolution.

A Sleeper league is one season; each league points at the previous season
through previous_league_id. Walking that link from the newest league gives
the league's whole history.
"""

from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from league_history.logging_config import get_logger
from league_history.parsing.helpers import as_id, is_numeric, safe_num
from league_history.services.sleeper_api import SleeperClient

logger = get_logger(__name__)

MAX_HOPS = 50


@dataclass
class Season:
    league_id: str
    season: Optional[str] = None
    name: Optional[str] = None

    @property
    def sort_key(self) -> tuple:
        # numeric seasons first, ascending; everything else after
        if is_numeric(self.season):
            return (0, safe_num(self.season))
        return (1, 0.0)

    def to_dict(self) -> dict:
        return {"league_id": self.league_id, "season": self.season, "name": self.name}


@dataclass
class SeasonChain:
    """Resolved seasons (deduplicated, sorted) plus the walk that produced them."""

    seasons: List[Season] = field(default_factory=list)
    messages: List[str] = field(default_factory=list)
    chain: List[str] = field(default_factory=list)  # league ids in walk order


def sort_seasons(seasons: Iterable[Season]) -> List[Season]:
    """Deduplicate by league id (first wins) and sort ascending by season year."""
    unique: dict[str, Season] = {}
    for season in seasons:
        unique.setdefault(season.league_id, season)
    return sorted(unique.values(), key=lambda s: s.sort_key)


async def resolve_season_chain(
    client: SleeperClient,
    root_league_id: str,
    max_hops: int = MAX_HOPS,
    ttl_seconds: Optional[int] = None,
) -> SeasonChain:
    """
    Walk previous_league_id links back from a root league.

    The walk stops at the first missing link, failed fetch, repeated league
    or after max_hops leagues. A failure keeps everything found so far and
    is reported in messages.

    Args:
        client: Sleeper client
        root_league_id: Newest league in the chain
        max_hops: Maximum number of leagues to visit
        ttl_seconds: Cache TTL for league metadata

    Returns:
        SeasonChain
    """
    result = SeasonChain()
    found: List[Season] = []
    visited: set[str] = set()
    league_id: Optional[str] = as_id(root_league_id)

    while league_id and len(result.chain) < max_hops:
        if league_id in visited:
            result.messages.append(f"Season chain loops back to league {league_id}; stopping.")
            break
        visited.add(league_id)
        result.chain.append(league_id)

        try:
            league = await client.get_league(league_id, ttl_seconds)
        except Exception as e:
            logger.warning(f"Season chain broken at league={league_id}: {e}")
            result.messages.append(f"Error fetching league {league_id}: {e}")
            break

        if not isinstance(league, dict):
            result.messages.append(f"League {league_id} returned no metadata; stopping.")
            break

        found.append(
            Season(
                league_id=as_id(league.get("league_id")) or league_id,
                season=as_id(league.get("season")),
                name=league.get("name"),
            )
        )
        league_id = as_id(league.get("previous_league_id"))
        # Sleeper uses "0" for "no previous league"
        if league_id == "0":
            league_id = None
    else:
        if league_id:
            result.messages.append(f"Season chain stopped after {max_hops} leagues.")

    result.seasons = sort_seasons(found)
    logger.info(
        f"Resolved season chain from root={root_league_id}: "
        f"{len(result.seasons)} season(s), {len(result.messages)} message(s)"
    )
    return result


def select_league_ids(seasons: List[Season], selector: Optional[str], root_league_id: str) -> List[str]:
    """
    Pick which league ids a load should process.

    Args:
        seasons: Sorted seasons from resolve_season_chain
        selector: None/"all" for every season, "current"/"latest" for the newest,
            a league id or a season year for that league; anything else is
            taken as a league id
        root_league_id: Used when the chain is empty

    Returns:
        List of league ids in season order
    """
    if selector is None or str(selector).strip().lower() in ("", "all"):
        return [s.league_id for s in seasons] or [root_league_id]

    wanted = str(selector).strip()
    if wanted.lower() in ("current", "latest"):
        return [seasons[-1].league_id] if seasons else [root_league_id]

    for season in seasons:
        if season.league_id == wanted:
            return [season.league_id]
    for season in seasons:
        if season.season == wanted:
            return [season.league_id]
    return [wanted]
