"""
FastAPI backend application entry point.

Run with:
    python -m uvicorn backend.main:app --host localhost --port 8080 --reload
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from league_history.config import settings
from league_history.database.connection import init_db
from league_history.logging_config import get_logger, silence_noisy_loggers
from league_history.parsing.snapshots import load_snapshot_dir
from league_history.services.cache import CacheAdapter, MemoryCache, SqlCache
from league_history.services.sleeper_api import SleeperClient
from backend.routes import api

logger = get_logger(__name__)

# Log immediately when module is imported (helps debug startup issues)
logger.info("Backend module loaded - initializing FastAPI application")


def build_cache() -> CacheAdapter:
    """Cache adapter selected by CACHE_BACKEND."""
    if settings.CACHE_BACKEND == "database":
        init_db()
        logger.info("Database tables initialized")
        return SqlCache()
    return MemoryCache()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler - runs on startup and shutdown."""
    # Silence noisy loggers (after uvicorn has configured them)
    silence_noisy_loggers()

    logger.info("Starting League History API")
    invalid = settings.validate()
    if invalid:
        logger.warning(f"Invalid settings: {', '.join(invalid)}")

    snapshots, snapshot_messages = load_snapshot_dir(settings.SEASON_MATCHUPS_DIR)
    app.state.snapshots = snapshots
    app.state.snapshot_messages = snapshot_messages
    logger.info(f"Loaded {len(snapshots)} season snapshot(s) from {settings.SEASON_MATCHUPS_DIR}")

    app.state.sleeper = SleeperClient(
        cache=build_cache(),
        base_url=settings.SLEEPER_BASE_URL,
        max_concurrency=settings.SLEEPER_CONCURRENCY,
        max_attempts=settings.SLEEPER_MAX_ATTEMPTS,
        backoff_base=settings.SLEEPER_BACKOFF_BASE_MS / 1000,
        default_ttl=settings.CACHE_TTL_SECONDS,
    )
    yield
    # Shutdown: close the upstream HTTP client
    await app.state.sleeper.aclose()
    logger.info("Shutting down League History API")


app = FastAPI(
    title="League History API",
    description="Standings, records and head-to-head history for a Sleeper league",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        settings.FRONTEND_URL,
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(api.router, prefix="/api", tags=["api"])


@app.get("/")
async def root() -> dict:
    """Root endpoint - health check."""
    return {"status": "ok", "message": "League History API"}


@app.get("/health")
async def health_check() -> dict:
    """Health check endpoint."""
    return {"status": "healthy"}


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Global exception handler to prevent stack traces from leaking to users.

    Logs the full exception with traceback for debugging, but returns
    a generic error message to the client.
    """
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"},
    )
