"""
Database connection and session management.
"""

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from contextlib import contextmanager
from pathlib import Path
from typing import Generator

from league_history.config import settings
from league_history.database.models import Base


def build_engine(database_url: str, echo: bool = False) -> Engine:
    """
    Create an engine, preparing the parent directory of file-backed SQLite URLs.

    Args:
        database_url: SQLAlchemy database URL
        echo: Log emitted SQL

    Returns:
        SQLAlchemy engine
    """
    is_sqlite = database_url.startswith("sqlite")
    if database_url.startswith("sqlite:///") and ":memory:" not in database_url:
        Path(database_url.replace("sqlite:///", "", 1)).parent.mkdir(parents=True, exist_ok=True)
    return create_engine(
        database_url,
        connect_args={"check_same_thread": False} if is_sqlite else {},
        echo=echo,
    )


# Engine is created on first use so importing the package never touches disk
_engine: Engine | None = None
_session_factory: sessionmaker | None = None


def get_engine() -> Engine:
    """Return the process engine for settings.DATABASE_URL."""
    global _engine
    if _engine is None:
        _engine = build_engine(settings.DATABASE_URL, echo=settings.DEBUG)
    return _engine


def get_session_factory() -> sessionmaker:
    """Return the session factory bound to get_engine()."""
    global _session_factory
    if _session_factory is None:
        _session_factory = sessionmaker(autocommit=False, autoflush=False, bind=get_engine())
    return _session_factory


def init_db(engine: Engine | None = None) -> None:
    """Create all database tables."""
    Base.metadata.create_all(bind=engine or get_engine())


@contextmanager
def session_scope(factory: sessionmaker | None = None) -> Generator[Session, None, None]:
    """
    Context manager for a database session that commits on success.
    Usage: with session_scope() as db: ...
    """
    db = (factory or get_session_factory())()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
