"""
SQLAlchemy database models for the league history cache backend.
"""

from datetime import datetime, timezone
from sqlalchemy import Column, Integer, String, Text, DateTime
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


class CachedResponse(Base):
    """Serialized Sleeper API responses keyed by "{namespace}:{full_url}"."""

    __tablename__ = "cached_responses"

    id = Column(Integer, primary_key=True, autoincrement=True)
    cache_key = Column(String(512), unique=True, nullable=False, index=True)
    json_data = Column(Text, nullable=False)
    fetched_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
    expires_at = Column(DateTime, nullable=True)  # None = never expires

    @property
    def is_stale(self) -> bool:
        """Check if the cached response is expired."""
        if self.expires_at is None:
            return False
        # SQLite hands back naive datetimes
        expires = self.expires_at
        if expires.tzinfo is None:
            expires = expires.replace(tzinfo=timezone.utc)
        return datetime.now(timezone.utc) >= expires
