"""
Cache adapters for Sleeper API responses.

Every adapter satisfies the same async capability interface:
    get(key) -> str | None
    set(key, value, ttl_seconds) -> None
    delete(key) -> None

MemoryCache is used for local runs and tests; SqlCache stores entries in the
cached_responses table. Other providers should be wrapped to this interface
at the boundary rather than checked for differently named methods.
"""

import asyncio
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Protocol, Tuple, runtime_checkable

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from league_history.database.connection import session_scope
from league_history.database.models import CachedResponse
from league_history.exceptions import CacheError
from league_history.logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_TTL_SECONDS = 60

# Dialects with INSERT ... ON CONFLICT
UPSERT_INSERTS = {"sqlite": sqlite.insert, "postgresql": postgresql.insert}
UPSERT_COLUMNS = ("json_data", "fetched_at", "expires_at")


def upsert_statement(dialect_name: str, values: Dict[str, Any]):
    """INSERT ... ON CONFLICT (cache_key) DO UPDATE for the dialect, or None if it has none."""
    insert = UPSERT_INSERTS.get(dialect_name)
    if insert is None:
        return None
    statement = insert(CachedResponse).values(**values)
    return statement.on_conflict_do_update(
        index_elements=["cache_key"],
        set_={column: statement.excluded[column] for column in UPSERT_COLUMNS},
    )


@runtime_checkable
class CacheAdapter(Protocol):
    """Async key/value store with per-entry TTL."""

    async def get(self, key: str) -> Optional[str]:
        ...

    async def set(self, key: str, value: str, ttl_seconds: Optional[int] = DEFAULT_TTL_SECONDS) -> None:
        ...

    async def delete(self, key: str) -> None:
        ...


class MemoryCache:
    """In-process cache. Expired entries are dropped lazily on read."""

    def __init__(self, clock=time.monotonic):
        self._store: Dict[str, Tuple[str, Optional[float]]] = {}
        self._clock = clock

    async def get(self, key: str) -> Optional[str]:
        record = self._store.get(key)
        if record is None:
            return None
        value, expires_at = record
        if expires_at is not None and self._clock() > expires_at:
            self._store.pop(key, None)
            return None
        return value

    async def set(self, key: str, value: str, ttl_seconds: Optional[int] = DEFAULT_TTL_SECONDS) -> None:
        expires_at = self._clock() + ttl_seconds if ttl_seconds else None
        self._store[key] = (value, expires_at)

    async def delete(self, key: str) -> None:
        self._store.pop(key, None)

    def __len__(self) -> int:
        return len(self._store)


class SqlCache:
    """
    Cache adapter backed by the cached_responses table.

    Session work is synchronous SQLAlchemy, so each call runs in a worker
    thread. On SQLite and PostgreSQL a write is one INSERT ... ON CONFLICT
    (cache_key) DO UPDATE, so concurrent writers of the same key end with one
    row holding the last value. Other dialects read then write, and a racing
    insert there fails on the unique constraint as a CacheError.
    """

    def __init__(self, session_factory: Optional[sessionmaker] = None):
        """
        Initialize the SQL cache.

        Args:
            session_factory: Session factory to use (default: the configured database)
        """
        self.session_factory = session_factory

    def _get_sync(self, key: str) -> Optional[str]:
        with session_scope(self.session_factory) as db:
            row = db.query(CachedResponse).filter(CachedResponse.cache_key == key).first()
            if row is None:
                return None
            if row.is_stale:
                db.delete(row)
                return None
            return row.json_data

    def _set_sync(self, key: str, value: str, ttl_seconds: Optional[int]) -> None:
        now = datetime.now(timezone.utc)
        values = {
            "cache_key": key,
            "json_data": value,
            "fetched_at": now,
            "expires_at": now + timedelta(seconds=ttl_seconds) if ttl_seconds else None,
        }
        with session_scope(self.session_factory) as db:
            statement = upsert_statement(db.get_bind().dialect.name, values)
            if statement is not None:
                db.execute(statement)
                return
            row = db.query(CachedResponse).filter(CachedResponse.cache_key == key).first()
            if row:
                row.json_data = value
                row.fetched_at = now
                row.expires_at = values["expires_at"]
            else:
                db.add(CachedResponse(**values))

    def _delete_sync(self, key: str) -> None:
        with session_scope(self.session_factory) as db:
            db.query(CachedResponse).filter(CachedResponse.cache_key == key).delete(
                synchronize_session=False
            )

    async def get(self, key: str) -> Optional[str]:
        try:
            return await asyncio.to_thread(self._get_sync, key)
        except SQLAlchemyError as e:
            raise CacheError(f"Cache read failed for {key}: {e}") from e

    async def set(self, key: str, value: str, ttl_seconds: Optional[int] = DEFAULT_TTL_SECONDS) -> None:
        try:
            await asyncio.to_thread(self._set_sync, key, value, ttl_seconds)
        except SQLAlchemyError as e:
            raise CacheError(f"Cache write failed for {key}: {e}") from e

    async def delete(self, key: str) -> None:
        try:
            await asyncio.to_thread(self._delete_sync, key)
        except SQLAlchemyError as e:
            raise CacheError(f"Cache delete failed for {key}: {e}") from e
