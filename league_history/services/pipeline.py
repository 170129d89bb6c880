"""
League history pipeline.

Drives one full load: resolve the season chain, then for each selected season
fetch (or read from a snapshot) rosters and weekly matchups, resolve outcomes,
and feed standings, records, player leaders and the cross-season aggregates.
Seasons and weeks are processed one after another; failures at either level
become messages and the load carries on with whatever else is available.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from league_history.exceptions import DataShapeError
from league_history.logging_config import get_logger
from league_history.parsing.matchups import (
    MatchupEntry,
    ResolvedGroup,
    entries_from_rows,
    points_mismatch,
    resolve_week,
)
from league_history.parsing.rosters import RosterView
from league_history.parsing.snapshots import SeasonSnapshot, snapshot_week
from league_history.services.seasons import Season, SeasonChain, resolve_season_chain, select_league_ids
from league_history.services.sleeper_api import SleeperClient
from league_history.stats.aggregate import AggregateOwnerRow, CrossSeasonAggregator
from league_history.stats.owners import OwnerIdentity
from league_history.stats.players import PlayerLeader, PlayerLeaderboard, TeamLeader
from league_history.stats.records import DEFAULT_TOP_N, H2HRecord, MarginRecord, RecordsBook
from league_history.stats.standings import (
    PLAYOFF,
    REGULAR,
    StandingsAccumulator,
    StandingsRow,
    apply_champion,
    build_standings,
    playoff_end_week,
    playoff_start_week,
    window_for_week,
)

logger = get_logger(__name__)

SOURCE_API = "api"
SOURCE_SNAPSHOT = "snapshot"


@dataclass
class PointsDiagnostic:
    """A row whose flat points field disagrees with its starters_points sum."""

    season: Optional[str]
    week: int
    matchup_id: Optional[str]
    roster_id: str
    official_points: float
    extracted_points: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "season": self.season,
            "week": self.week,
            "matchup_id": self.matchup_id,
            "roster_id": self.roster_id,
            "official_points": self.official_points,
            "extracted_points": self.extracted_points,
        }


@dataclass
class SeasonResult:
    league_id: str
    season: Optional[str] = None
    name: Optional[str] = None
    regular: List[StandingsRow] = field(default_factory=list)
    playoff: List[StandingsRow] = field(default_factory=list)
    source: str = SOURCE_API
    weeks_processed: List[int] = field(default_factory=list)
    overall_player_leader: Optional[PlayerLeader] = None
    playoff_player_leader: Optional[PlayerLeader] = None
    finals_mvp: Optional[PlayerLeader] = None
    team_leaders: List[TeamLeader] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def has_data(self) -> bool:
        return bool(self.regular or self.playoff)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "league_id": self.league_id,
            "season": self.season,
            "name": self.name,
            "source": self.source,
            "regular_standings": [r.to_dict() for r in self.regular],
            "playoff_standings": [r.to_dict() for r in self.playoff],
            "weeks_processed": self.weeks_processed,
            "overall_player_leader": self.overall_player_leader.to_dict() if self.overall_player_leader else None,
            "playoff_player_leader": self.playoff_player_leader.to_dict() if self.playoff_player_leader else None,
            "finals_mvp": self.finals_mvp.to_dict() if self.finals_mvp else None,
            "team_leaders": [t.to_dict() for t in self.team_leaders],
            "error": self.error,
        }


@dataclass
class HistoryResult:
    seasons: List[Season] = field(default_factory=list)
    selected: List[str] = field(default_factory=list)
    chain: List[str] = field(default_factory=list)
    season_results: List[SeasonResult] = field(default_factory=list)
    aggregate_regular: List[AggregateOwnerRow] = field(default_factory=list)
    aggregate_playoff: List[AggregateOwnerRow] = field(default_factory=list)
    largest_margins: List[MarginRecord] = field(default_factory=list)
    smallest_margins: List[MarginRecord] = field(default_factory=list)
    head_to_head: Dict[str, List[H2HRecord]] = field(default_factory=dict)
    points_diagnostics: List[PointsDiagnostic] = field(default_factory=list)
    messages: List[str] = field(default_factory=list)
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "seasons": [s.to_dict() for s in self.seasons],
            "selected": self.selected,
            "chain": self.chain,
            "season_results": [r.to_dict() for r in self.season_results],
            "aggregate_regular": [r.to_dict() for r in self.aggregate_regular],
            "aggregate_playoff": [r.to_dict() for r in self.aggregate_playoff],
            "largest_margins": [m.to_dict() for m in self.largest_margins],
            "smallest_margins": [m.to_dict() for m in self.smallest_margins],
            "head_to_head": {owner: [r.to_dict() for r in rows] for owner, rows in self.head_to_head.items()},
            "points_diagnostics": [d.to_dict() for d in self.points_diagnostics],
            "messages": self.messages,
            "error": self.error,
        }


class _LoadState:
    """Accumulators shared by every season of one load."""

    def __init__(self, identity: OwnerIdentity):
        self.aggregate_regular = CrossSeasonAggregator(identity)
        self.aggregate_playoff = CrossSeasonAggregator(identity)
        self.records = RecordsBook(identity)
        self.diagnostics: List[PointsDiagnostic] = []
        self.messages: List[str] = []
        # Sleeper players map, only loaded when player names are requested
        self.players: Dict[str, Any] = {}


class _SeasonWork:
    """Per-season accumulators."""

    def __init__(
        self,
        result: SeasonResult,
        playoff_start: int,
        roster_map: Dict[str, RosterView],
        players: Optional[Mapping[str, Any]] = None,
    ):
        self.result = result
        self.playoff_start = playoff_start
        self.playoff_end = playoff_end_week(playoff_start)
        self.roster_map = roster_map
        self.windows = {
            REGULAR: StandingsAccumulator(roster_map),
            PLAYOFF: StandingsAccumulator(roster_map),
        }
        self.players = PlayerLeaderboard(playoff_start, players)


class LeagueHistoryPipeline:
    """
    Computes league history from the Sleeper API and optional snapshots.

    Example:
        async with SleeperClient(cache=MemoryCache()) as client:
            pipeline = LeagueHistoryPipeline(client, "1219816671624048640")
            result = await pipeline.load()
    """

    def __init__(
        self,
        client: SleeperClient,
        root_league_id: str,
        identity: Optional[OwnerIdentity] = None,
        champions: Optional[Mapping[str, str]] = None,
        snapshots: Optional[Mapping[str, SeasonSnapshot]] = None,
        max_weeks: int = 25,
        ttl_seconds: Optional[int] = None,
        skip_incomplete_weeks: bool = True,
        top_n: int = DEFAULT_TOP_N,
        player_sport: Optional[str] = None,
    ):
        """
        Initialize the pipeline.

        Args:
            client: Sleeper client (owned by the caller)
            root_league_id: Newest league of the season chain
            identity: Owner identity with alias table
            champions: season -> owner username/name
            snapshots: season -> static snapshot, used instead of the API
            max_weeks: Upper bound on weeks fetched per season
            ttl_seconds: Cache TTL for API responses
            skip_incomplete_weeks: Skip weeks with 0-point contested matchups
                (except the final playoff week)
            top_n: Length of the margin rankings
            player_sport: Sport whose players map names the player leaders
                (None leaves names unset)
        """
        self.client = client
        self.root_league_id = str(root_league_id)
        self.identity = identity or OwnerIdentity()
        self.champions = dict(champions or {})
        self.snapshots = dict(snapshots or {})
        self.max_weeks = max_weeks
        self.ttl_seconds = ttl_seconds
        self.skip_incomplete_weeks = skip_incomplete_weeks
        self.top_n = top_n
        self.player_sport = player_sport

    async def load(self, selector: Optional[str] = None) -> HistoryResult:
        """
        Run a full load.

        Args:
            selector: None/"all", "current", a league id or a season year

        Returns:
            HistoryResult; error is set only when no season produced any rows
        """
        chain: SeasonChain = await resolve_season_chain(self.client, self.root_league_id, ttl_seconds=self.ttl_seconds)
        state = _LoadState(self.identity)
        state.messages.extend(chain.messages)
        if self.player_sport:
            await self._load_players(state)

        selected = select_league_ids(chain.seasons, selector, self.root_league_id)
        known = {s.league_id: s for s in chain.seasons}
        logger.info(f"Loading league history: root={self.root_league_id} selected={selected}")

        season_results = []
        for league_id in selected:
            try:
                result = await self._load_season(league_id, known.get(league_id), state)
            except Exception as e:
                logger.error(f"Error processing league={league_id}: {e}")
                state.messages.append(f"Error processing league {league_id}: {e}")
                result = SeasonResult(league_id=league_id, error=str(e))
            season_results.append(result)

        records = state.records
        history = HistoryResult(
            seasons=chain.seasons,
            selected=selected,
            chain=chain.chain,
            season_results=season_results,
            aggregate_regular=state.aggregate_regular.rows(),
            aggregate_playoff=state.aggregate_playoff.rows(),
            largest_margins=records.largest_margins(self.top_n),
            smallest_margins=records.smallest_margins(self.top_n),
            head_to_head=records.head_to_head_table(),
            points_diagnostics=state.diagnostics,
            messages=state.messages,
        )

        if not any(r.has_data for r in season_results):
            details = " | ".join(state.messages) if state.messages else "no details"
            history.error = f"No roster/matchup data found for requested seasons. Details: {details}"
            logger.warning(f"League history load produced no data: root={self.root_league_id}")
        return history

    async def _load_players(self, state: _LoadState) -> None:
        try:
            players = await self.client.get_players(self.player_sport)
        except Exception as e:
            logger.warning(f"Players map unavailable for sport={self.player_sport}: {e}")
            state.messages.append(f"Error fetching players for {self.player_sport}: {e}; player names left blank.")
            return
        state.players = players if isinstance(players, dict) else {}

    async def _load_season(self, league_id: str, known: Optional[Season], state: _LoadState) -> SeasonResult:
        league: Optional[dict] = None
        try:
            league = await self.client.get_league(league_id, self.ttl_seconds)
        except Exception as e:
            state.messages.append(f"Error fetching league {league_id}: {e}")

        league = league if isinstance(league, dict) else {}
        season = league.get("season") or (known.season if known else None)
        result = SeasonResult(
            league_id=league_id,
            season=str(season) if season is not None else None,
            name=league.get("name") or (known.name if known else None),
        )
        playoff_start = playoff_start_week(league)

        snapshot = self.snapshots.get(result.season) if result.season else None
        work = None
        if snapshot is not None:
            try:
                work = self._season_from_snapshot(snapshot, result, playoff_start, state)
            except DataShapeError as e:
                logger.warning(f"Snapshot for season={result.season} unusable, falling back to API: {e}")
                state.messages.append(f"Snapshot for season {result.season} unusable ({e}); using the Sleeper API.")

        if work is None:
            result.source = SOURCE_API
            work = await self._season_from_api(league_id, result, playoff_start, state)

        result.regular = build_standings(work.windows[REGULAR], work.roster_map)
        result.playoff = build_standings(work.windows[PLAYOFF], work.roster_map)
        message = apply_champion(
            result.season, self.champions, work.roster_map, result.playoff, regular_rows=result.regular
        )
        if message:
            state.messages.append(message)

        result.overall_player_leader = work.players.overall_leader(work.roster_map)
        result.playoff_player_leader = work.players.playoff_leader(work.roster_map)
        champion = next((r.roster_id for r in result.playoff if r.champion), None)
        result.finals_mvp = work.players.finals_mvp(champion, work.roster_map)
        result.team_leaders = work.players.team_leaders(work.roster_map)

        state.records.register_rosters(league_id, work.roster_map)
        state.aggregate_regular.add_season(result.season, result.regular)
        state.aggregate_playoff.add_season(result.season, result.playoff)
        logger.info(
            f"Processed league={league_id} season={result.season} source={result.source} "
            f"weeks={len(result.weeks_processed)} rosters={len(work.roster_map)}"
        )
        return result

    def _season_from_snapshot(
        self, snapshot: SeasonSnapshot, result: SeasonResult, playoff_start: int, state: _LoadState
    ) -> _SeasonWork:
        # convert every week first so a bad week leaves the season untouched for the fallback
        weeks: Dict[int, List[MatchupEntry]] = {}
        roster_map: Dict[str, RosterView] = {}
        for week in snapshot.weeks:
            if window_for_week(week, playoff_start) is None:
                continue
            entries, week_rosters = snapshot_week(snapshot, week)
            weeks[week] = entries
            for roster_id, view in week_rosters.items():
                roster_map.setdefault(roster_id, view)

        if not weeks:
            raise DataShapeError(f"snapshot for season {snapshot.season} has no weeks 1..{playoff_end_week(playoff_start)}")

        result.source = SOURCE_SNAPSHOT
        state.messages.append(f"Using snapshot {snapshot.source or snapshot.season} for season {result.season}.")
        work = _SeasonWork(result, playoff_start, roster_map, state.players)
        for week, entries in weeks.items():
            self._process_week(work, result.league_id, week, entries, state)
        return work

    async def _season_from_api(
        self, league_id: str, result: SeasonResult, playoff_start: int, state: _LoadState
    ) -> _SeasonWork:
        try:
            roster_map = await self.client.get_roster_map_with_owners(league_id, self.ttl_seconds)
        except Exception as e:
            state.messages.append(f"Error fetching rosters for league {league_id}: {e}")
            roster_map = {}

        work = _SeasonWork(result, playoff_start, roster_map, state.players)
        last_week = min(self.max_weeks, work.playoff_end)
        for week in range(1, last_week + 1):
            try:
                rows = await self.client.get_matchups_for_week(league_id, week, self.ttl_seconds)
            except Exception as e:
                # later weeks may still exist, so keep going
                state.messages.append(f"Error fetching matchups for league {league_id} week {week}: {e}")
                continue
            entries = entries_from_rows(rows, week)
            if entries:
                self._process_week(work, league_id, week, entries, state)
        return work

    def _process_week(
        self, work: _SeasonWork, league_id: str, week: int, entries: List[MatchupEntry], state: _LoadState
    ) -> None:
        window = window_for_week(week, work.playoff_start)
        if window is None:
            return

        season = work.result.season
        groups: List[ResolvedGroup] = resolve_week(entries)
        if self.skip_incomplete_weeks and week != work.playoff_end and any(g.has_zero_score() for g in groups):
            state.messages.append(
                f"Skipping season {season} week {week} (contains zero scores and looks incomplete)."
            )
            return

        for entry in entries:
            mismatch = points_mismatch(entry.raw)
            if mismatch is not None:
                official, extracted = mismatch
                state.diagnostics.append(
                    PointsDiagnostic(
                        season=season,
                        week=week,
                        matchup_id=entry.matchup_id,
                        roster_id=entry.roster_id,
                        official_points=official,
                        extracted_points=extracted,
                    )
                )
                state.messages.append(
                    f"Diag season {season} week {week}: roster {entry.roster_id} mismatch "
                    f"official={official} extracted={extracted} (matchup {entry.matchup_id or 'n/a'})"
                )

        accumulator = work.windows[window]
        for group in groups:
            accumulator.add_group(group)
            state.records.add_group(season, league_id, group, work.roster_map)
        work.players.add_entries(entries)
        work.result.weeks_processed.append(week)
