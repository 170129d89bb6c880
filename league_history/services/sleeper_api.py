"""
Sleeper API client - concurrency-limited, retrying, cache-aside wrapper
around the public Sleeper REST API.

The client owns one httpx.AsyncClient and is meant to be used as an async
context manager by whoever builds it (the backend lifespan, a test, a script).
"""

import asyncio
import json
import logging
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)

from league_history.exceptions import DataShapeError, TransientNetworkError, UpstreamHttpError
from league_history.logging_config import get_logger
from league_history.parsing.rosters import RosterView, build_roster_map
from league_history.services.cache import CacheAdapter

logger = get_logger(__name__)

DEFAULT_BASE_URL = "https://api.sleeper.app/v1"
DEFAULT_TTL_SECONDS = 300
PLAYERS_TTL_SECONDS = 24 * 60 * 60


def _is_retryable(exc: BaseException) -> bool:
    """Network failures, 5xx and 429 are retried; other 4xx are final."""
    if isinstance(exc, TransientNetworkError):
        return True
    if isinstance(exc, UpstreamHttpError):
        return exc.retryable
    return False


class ConcurrencyLimiter:
    """
    Bounds the number of upstream calls in flight.

    Waiters are admitted in arrival order (asyncio.Semaphore wakes waiters
    FIFO). in_flight and peak_in_flight are kept for logging and tests.
    """

    def __init__(self, max_concurrency: int = 8):
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be >= 1")
        self.max_concurrency = max_concurrency
        self._semaphore = asyncio.Semaphore(max_concurrency)
        self.in_flight = 0
        self.peak_in_flight = 0

    async def __aenter__(self) -> "ConcurrencyLimiter":
        await self._semaphore.acquire()
        self.in_flight += 1
        self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.in_flight -= 1
        self._semaphore.release()


class SleeperClient:
    """
    Client for the Sleeper API.

    Every upstream call goes through the concurrency limiter and a tenacity
    retry loop; get() additionally consults the cache adapter first. Cache
    failures are logged and never reach the caller.
    """

    def __init__(
        self,
        cache: Optional[CacheAdapter] = None,
        base_url: str = DEFAULT_BASE_URL,
        max_concurrency: int = 8,
        max_attempts: int = 4,
        backoff_base: float = 0.25,
        namespace: str = "sleeper",
        timeout: float = 20.0,
        default_ttl: int = DEFAULT_TTL_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Initialize the client.

        Args:
            cache: Cache adapter (None disables caching)
            base_url: API root, relative paths are joined onto it
            max_concurrency: Maximum simultaneous upstream calls
            max_attempts: Total attempts per call, including the first
            backoff_base: Backoff base in seconds (doubles per retry)
            namespace: Cache key prefix
            timeout: Per-request timeout in seconds
            default_ttl: TTL used when get() is called without one
            transport: httpx transport override (tests use httpx.MockTransport)
            sleep: Backoff sleep function
        """
        self.cache = cache
        self.base_url = base_url.rstrip("/")
        self.namespace = namespace
        self.max_attempts = max_attempts
        self.backoff_base = backoff_base
        self.default_ttl = default_ttl
        self.limiter = ConcurrencyLimiter(max_concurrency)
        self._sleep = sleep
        self._http = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def __aenter__(self) -> "SleeperClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    def build_url(self, path_or_url: str) -> str:
        """Absolute URLs pass through; paths are joined onto the base URL."""
        if path_or_url.startswith(("http://", "https://")):
            return path_or_url
        return f"{self.base_url}/{path_or_url.lstrip('/')}"

    def cache_key(self, path_or_url: str) -> str:
        return f"{self.namespace}:{self.build_url(path_or_url)}"

    async def get(self, path_or_url: str, ttl_seconds: Optional[int] = None) -> Any:
        """
        Fetch JSON through the cache.

        Args:
            path_or_url: API path (e.g. "/league/123") or absolute URL
            ttl_seconds: Cache TTL for a fresh result (default: default_ttl)

        Returns:
            Decoded JSON payload

        Raises:
            UpstreamHttpError: Non-retryable status, or retries exhausted
            TransientNetworkError: Network failure after retries exhausted
        """
        url = self.build_url(path_or_url)
        key = f"{self.namespace}:{url}"

        cached = await self._cache_read(key)
        if cached is not None:
            return cached

        payload = await self.raw_request(url)
        if payload is not None:
            await self._cache_write(key, payload, self.default_ttl if ttl_seconds is None else ttl_seconds)
        return payload

    async def raw_request(self, path_or_url: str) -> Any:
        """
        Fetch JSON without touching the cache.

        The limiter slot is held for the whole retry loop, backoff sleeps
        included, so a failing endpoint cannot multiply upstream load.
        """
        url = self.build_url(path_or_url)
        async with self.limiter:
            retrying = AsyncRetrying(
                stop=stop_after_attempt(self.max_attempts),
                wait=wait_exponential(multiplier=self.backoff_base) + wait_random(0, 0.1),
                retry=retry_if_exception(_is_retryable),
                before_sleep=before_sleep_log(logger, logging.INFO),
                sleep=self._sleep,
                reraise=True,
            )
            async for attempt in retrying:
                with attempt:
                    return await self._request_once(url)

    async def _request_once(self, url: str) -> Any:
        start_time = time.time()
        try:
            response = await self._http.get(url)
        except httpx.TransportError as e:
            elapsed_ms = (time.time() - start_time) * 1000
            logger.warning(f"Sleeper API network error: {url} error={e} time={elapsed_ms:.0f}ms")
            raise TransientNetworkError(f"Unable to reach the Sleeper API: {e}") from e

        elapsed_ms = (time.time() - start_time) * 1000
        if not response.is_success:
            logger.warning(f"Sleeper API HTTP error: {url} status={response.status_code} time={elapsed_ms:.0f}ms")
            raise UpstreamHttpError(response.status_code, url)

        logger.info(f"Sleeper API response: {url} status={response.status_code} time={elapsed_ms:.0f}ms")
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            logger.error(f"Sleeper API JSON parse error: {url} error={e}")
            raise DataShapeError(f"Sleeper API returned invalid JSON for {url}") from e

    async def invalidate(self, path_or_url: str) -> None:
        """Drop the cached value for a path; adapter errors are logged."""
        if self.cache is None:
            return
        key = self.cache_key(path_or_url)
        try:
            await self.cache.delete(key)
        except Exception as e:
            logger.warning(f"Cache delete failed for {key}: {e}")

    async def _cache_read(self, key: str) -> Any:
        if self.cache is None:
            return None
        try:
            raw = await self.cache.get(key)
        except Exception as e:
            logger.warning(f"Cache read failed for {key}: {e}")
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except (TypeError, ValueError):
            logger.warning(f"Discarding unparseable cache entry {key}")
            return None

    async def _cache_write(self, key: str, payload: Any, ttl_seconds: int) -> None:
        if self.cache is None:
            return
        try:
            await self.cache.set(key, json.dumps(payload), ttl_seconds)
        except Exception as e:
            logger.warning(f"Cache write failed for {key}: {e}")

    # Convenience methods for common API calls

    async def get_league(self, league_id: str, ttl_seconds: Optional[int] = None) -> Optional[Dict[str, Any]]:
        """Get league metadata (season, name, settings, previous_league_id)."""
        return await self.get(f"/league/{league_id}", ttl_seconds)

    async def get_rosters(self, league_id: str, ttl_seconds: Optional[int] = None) -> List[Dict[str, Any]]:
        """Get all rosters in a league."""
        return await self.get(f"/league/{league_id}/rosters", ttl_seconds) or []

    async def get_users(self, league_id: str, ttl_seconds: Optional[int] = None) -> List[Dict[str, Any]]:
        """Get all users (owners) in a league."""
        return await self.get(f"/league/{league_id}/users", ttl_seconds) or []

    async def get_matchups_for_week(
        self, league_id: str, week: int, ttl_seconds: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        """
        Get the matchup rows for one week.

        Args:
            league_id: The league id
            week: Week number
        """
        return await self.get(f"/league/{league_id}/matchups/{week}", ttl_seconds) or []

    async def get_players(self, sport: str = "nfl", ttl_seconds: int = PLAYERS_TTL_SECONDS) -> Dict[str, Any]:
        """
        Get the full players dataset for a sport (large; cached for a day by default).

        Args:
            sport: Sport key (nfl, nba, ...)
        """
        return await self.get(f"/players/{sport}", ttl_seconds) or {}

    async def get_roster_map_with_owners(
        self, league_id: str, ttl_seconds: Optional[int] = None
    ) -> Dict[str, RosterView]:
        """
        Fetch rosters and users concurrently and join them into RosterViews.

        A failing users fetch degrades to placeholder owner names; a failing
        rosters fetch propagates.

        Returns:
            roster_id -> RosterView
        """
        rosters, users = await asyncio.gather(
            self.get_rosters(league_id, ttl_seconds),
            self.get_users(league_id, ttl_seconds),
            return_exceptions=True,
        )
        if isinstance(rosters, BaseException):
            raise rosters
        if isinstance(users, BaseException):
            logger.warning(f"Users unavailable for league={league_id}: {users}")
            users = []
        return build_roster_map(rosters, users)
