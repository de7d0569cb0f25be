"""
Volleyball League Sessions API Server

FastAPI server for teams, weekly session registrations, invites and the free
agent board.
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import logging
import os
import uvicorn
from slowapi import _rate_limit_exceeded_handler  # type: ignore
from slowapi.errors import RateLimitExceeded  # type: ignore

from league_backend.api.routes import router, limiter as routes_limiter
from league_backend.database import db
from league_backend.services import session_service
from league_backend.utils.constants import DEFAULT_WEEKS_AHEAD

# Set up logging
# Allow log level to be configured via environment variable (default: INFO)
log_level = os.getenv("LOG_LEVEL", "INFO").upper()
numeric_level = getattr(logging, log_level, logging.INFO)
logging.basicConfig(
    level=numeric_level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan handler for startup and shutdown events."""
    logger.info("Starting up Volleyball League Sessions API...")

    # Fallback for tables not yet covered by migrations
    try:
        await db.init_database()
        logger.info("Database initialized")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}", exc_info=True)

    # Warm the session calendar so the first visitor sees upcoming sessions
    try:
        weeks_ahead = int(os.getenv("SESSION_WEEKS_AHEAD", str(DEFAULT_WEEKS_AHEAD)))
        async with db.AsyncSessionLocal() as session:
            result = await session_service.ensure_upcoming_sessions(session, weeks_ahead=weeks_ahead)
        logger.info(f"Session calendar ready ({result['inserted']} new)")
    except Exception as e:
        logger.error(f"Failed to ensure upcoming sessions: {e}", exc_info=True)

    yield  # App is running

    logger.info("Shutting down Volleyball League Sessions API...")
    await db.engine.dispose()


app = FastAPI(
    title="Volleyball League Sessions API",
    description="API for league teams, weekly session registrations and free agents",
    version="1.0.0",
    lifespan=lifespan,
)

# Setup rate limiter
app.state.limiter = routes_limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Add CORS middleware, origins configured via ALLOWED_ORIGINS env var
allowed_origins = os.getenv("ALLOWED_ORIGINS", "http://localhost:3000").split(",")
app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

# Include API routes
app.include_router(router)


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
