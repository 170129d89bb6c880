"""
Application configuration loaded from environment variables.
"""

import os
from pathlib import Path
from dotenv import load_dotenv

# Load .env file
load_dotenv()

# Base directory
BASE_DIR = Path(__file__).resolve().parent.parent


def parse_mapping(raw: str) -> dict[str, str]:
    """
    Parse a "key=value,key=value" environment string into a dict.

    Blank segments and segments without "=" are ignored.

    Args:
        raw: Raw environment value

    Returns:
        Dictionary of stripped keys to stripped values
    """
    mapping = {}
    for part in (raw or "").split(","):
        if "=" not in part:
            continue
        key, value = part.split("=", 1)
        key, value = key.strip(), value.strip()
        if key and value:
            mapping[key] = value
    return mapping


class Settings:
    """Application settings from environment variables."""

    # Sleeper API
    SLEEPER_BASE_URL: str = os.getenv("SLEEPER_BASE_URL", "https://api.sleeper.app/v1")
    SLEEPER_CONCURRENCY: int = int(os.getenv("SLEEPER_CONCURRENCY", "8"))
    SLEEPER_MAX_ATTEMPTS: int = int(os.getenv("SLEEPER_MAX_ATTEMPTS", "4"))
    SLEEPER_BACKOFF_BASE_MS: int = int(os.getenv("SLEEPER_BACKOFF_BASE_MS", "250"))

    # League history
    BASE_LEAGUE_ID: str = os.getenv("BASE_LEAGUE_ID", "1219816671624048640")
    MAX_WEEKS: int = int(os.getenv("MAX_WEEKS", "25"))
    # Sport of the players map used to name player leaders ("nfl", ...); empty disables names
    PLAYER_SPORT: str = os.getenv("PLAYER_SPORT", "").strip().lower()
    SEASON_MATCHUPS_DIR: Path = Path(
        os.getenv("SEASON_MATCHUPS_DIR", str(BASE_DIR / "static" / "season_matchups"))
    )

    # Owner aliases ("oldname=canonical,...") and champions ("2022=username,...")
    OWNER_ALIASES: dict[str, str] = parse_mapping(os.getenv("OWNER_ALIASES", ""))
    CHAMPIONS: dict[str, str] = parse_mapping(os.getenv("CHAMPIONS", ""))

    # Cache
    CACHE_BACKEND: str = os.getenv("CACHE_BACKEND", "memory").lower()
    CACHE_TTL_SECONDS: int = int(os.getenv("CACHE_TTL_SECONDS", "300"))

    # Application
    DEBUG: bool = os.getenv("DEBUG", "false").lower() == "true"

    # Frontend URL (allowed CORS origin)
    FRONTEND_URL: str = os.getenv("FRONTEND_URL", "http://localhost:5173")

    # Database (cache backend when CACHE_BACKEND=database)
    DATABASE_URL: str = os.getenv("DATABASE_URL", f"sqlite:///{BASE_DIR}/data/league_history.db")

    @classmethod
    def validate(cls) -> list[str]:
        """Validate required settings are present. Returns list of invalid settings."""
        invalid = []
        if not cls.BASE_LEAGUE_ID:
            invalid.append("BASE_LEAGUE_ID")
        if cls.SLEEPER_CONCURRENCY < 1:
            invalid.append("SLEEPER_CONCURRENCY")
        if cls.SLEEPER_MAX_ATTEMPTS < 1:
            invalid.append("SLEEPER_MAX_ATTEMPTS")
        if cls.CACHE_BACKEND not in ("memory", "database"):
            invalid.append("CACHE_BACKEND")
        return invalid


settings = Settings()
