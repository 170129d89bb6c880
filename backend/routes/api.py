"""
Data API routes for league history.

Every request recomputes from the (cached) Sleeper API; nothing derived is
stored.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request

from league_history.config import settings
from league_history.exceptions import LeagueHistoryError, UpstreamHttpError
from league_history.logging_config import get_logger
from league_history.parsing.matchups import entries_from_rows, weekly_matchup_scores
from league_history.services.pipeline import HistoryResult, LeagueHistoryPipeline
from league_history.services.seasons import resolve_season_chain
from league_history.services.sleeper_api import SleeperClient
from league_history.stats.owners import OwnerIdentity

logger = get_logger(__name__)

router = APIRouter()


def get_sleeper_client(request: Request) -> SleeperClient:
    """The SleeperClient created by the application lifespan."""
    return request.app.state.sleeper


def get_owner_identity() -> OwnerIdentity:
    return OwnerIdentity(settings.OWNER_ALIASES)


def get_pipeline(
    request: Request,
    client: SleeperClient = Depends(get_sleeper_client),
    identity: OwnerIdentity = Depends(get_owner_identity),
) -> LeagueHistoryPipeline:
    """Build a pipeline for this request from settings and lifespan state."""
    return LeagueHistoryPipeline(
        client,
        settings.BASE_LEAGUE_ID,
        identity=identity,
        champions=settings.CHAMPIONS,
        snapshots=getattr(request.app.state, "snapshots", {}),
        max_weeks=settings.MAX_WEEKS,
        ttl_seconds=settings.CACHE_TTL_SECONDS,
        player_sport=settings.PLAYER_SPORT or None,
    )


def upstream_error(e: Exception, what: str) -> HTTPException:
    """
    Map a client failure to an HTTP error.

    Upstream 404s stay 404; everything else is a bad gateway.
    """
    if isinstance(e, UpstreamHttpError) and e.status_code == 404:
        return HTTPException(status_code=404, detail=f"{what} not found")
    return HTTPException(status_code=502, detail=f"Failed to fetch {what}: {str(e)}")


async def load_history(request: Request, pipeline: LeagueHistoryPipeline, selector: Optional[str]) -> HistoryResult:
    result = await pipeline.load(selector)
    snapshot_messages = getattr(request.app.state, "snapshot_messages", [])
    result.messages = list(snapshot_messages) + result.messages
    return result


# Season Endpoints


@router.get("/seasons")
async def get_seasons(client: SleeperClient = Depends(get_sleeper_client)) -> dict:
    """Seasons of the configured league, oldest first."""
    chain = await resolve_season_chain(client, settings.BASE_LEAGUE_ID, ttl_seconds=settings.CACHE_TTL_SECONDS)
    return {
        "seasons": [s.to_dict() for s in chain.seasons],
        "chain": chain.chain,
        "messages": chain.messages,
    }


@router.get("/standings")
async def get_standings(
    request: Request,
    season: Optional[str] = None,
    pipeline: LeagueHistoryPipeline = Depends(get_pipeline),
) -> dict:
    """
    Regular season and playoff standings per season.

    Args:
        season: "all" (default), "current", a season year or a league id

    Returns:
        Season results with diagnostics; "error" is set when nothing loaded
    """
    logger.info(f"Standings requested: season={season}")
    result = await load_history(request, pipeline, season)
    return {
        "seasons": [s.to_dict() for s in result.seasons],
        "selected": result.selected,
        "season_results": [r.to_dict() for r in result.season_results],
        "points_diagnostics": [d.to_dict() for d in result.points_diagnostics],
        "messages": result.messages,
        "error": result.error,
    }


@router.get("/standings/aggregate")
async def get_aggregate_standings(
    request: Request,
    pipeline: LeagueHistoryPipeline = Depends(get_pipeline),
) -> dict:
    """Lifetime standings per owner across every season."""
    result = await load_history(request, pipeline, None)
    return {
        "regular": [r.to_dict() for r in result.aggregate_regular],
        "playoff": [r.to_dict() for r in result.aggregate_playoff],
        "messages": result.messages,
        "error": result.error,
    }


# Records Endpoints


@router.get("/records/margins")
async def get_margin_records(
    request: Request,
    limit: int = 10,
    pipeline: LeagueHistoryPipeline = Depends(get_pipeline),
) -> dict:
    """Largest and smallest victory margins across every season."""
    if limit < 1:
        raise HTTPException(status_code=400, detail="limit must be >= 1")
    pipeline.top_n = limit
    result = await load_history(request, pipeline, None)
    return {
        "largest": [m.to_dict() for m in result.largest_margins],
        "smallest": [m.to_dict() for m in result.smallest_margins],
        "messages": result.messages,
        "error": result.error,
    }


@router.get("/records/head-to-head/{owner}")
async def get_head_to_head(
    owner: str,
    request: Request,
    pipeline: LeagueHistoryPipeline = Depends(get_pipeline),
    identity: OwnerIdentity = Depends(get_owner_identity),
) -> dict:
    """
    One owner's record against every opponent.

    Args:
        owner: Owner display name, username or owner key (aliases apply)
    """
    result = await load_history(request, pipeline, None)
    key = identity.key(owner) or owner
    rows = result.head_to_head.get(key) or result.head_to_head.get(owner)
    if rows is None:
        raise HTTPException(status_code=404, detail=f"No head-to-head records for owner {owner}")
    return {
        "owner": owner,
        "owner_key": key,
        "opponents": [r.to_dict() for r in rows],
    }


# League Data Endpoints


@router.get("/league/{league_id}/rosters")
async def get_league_rosters(
    league_id: str,
    client: SleeperClient = Depends(get_sleeper_client),
) -> List[dict]:
    """Rosters of one league joined with their owners."""
    try:
        roster_map = await client.get_roster_map_with_owners(league_id, settings.CACHE_TTL_SECONDS)
    except LeagueHistoryError as e:
        logger.error(f"Failed to fetch rosters: league={league_id} error={e}")
        raise upstream_error(e, "rosters")
    return [view.to_dict() for view in roster_map.values()]


@router.get("/league/{league_id}/matchups/{week}")
async def get_week_matchups(
    league_id: str,
    week: int,
    client: SleeperClient = Depends(get_sleeper_client),
) -> dict:
    """
    One week's matchups with team/owner metadata, winners and losers.

    Args:
        league_id: Sleeper league id
        week: Week number
    """
    if week < 1:
        raise HTTPException(status_code=400, detail="week must be >= 1")
    try:
        rows = await client.get_matchups_for_week(league_id, week, settings.CACHE_TTL_SECONDS)
        roster_map = await client.get_roster_map_with_owners(league_id, settings.CACHE_TTL_SECONDS)
    except LeagueHistoryError as e:
        logger.error(f"Failed to fetch matchups: league={league_id} week={week} error={e}")
        raise upstream_error(e, "matchups")

    return {
        "league_id": league_id,
        "week": week,
        "matchups": weekly_matchup_scores(entries_from_rows(rows, week), roster_map),
    }


@router.get("/players/{sport}")
async def get_players(
    sport: str,
    client: SleeperClient = Depends(get_sleeper_client),
) -> dict:
    """Sleeper players dataset for a sport, keyed by player id."""
    try:
        return await client.get_players(sport)
    except LeagueHistoryError as e:
        logger.error(f"Failed to fetch players: sport={sport} error={e}")
        raise upstream_error(e, "players")
