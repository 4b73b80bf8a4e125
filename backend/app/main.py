"""
Stage Challenge API

FastAPI application: Strava webhook reconciliation and stage challenge scoring.
"""

from contextlib import asynccontextmanager
import logging
import sys

from fastapi import FastAPI

from app.config import settings
from app.db.session import init_db
from app.api.v1.router import api_router
from app.features.challenge import get_scoring_engine
from app.features.strava.webhook import event_dispatcher


# === Logging Setup ===
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler(sys.stdout),
    ]
)
logger = logging.getLogger(__name__)


# === Lifespan ===
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    # Startup
    logger.info("Starting Stage Challenge API...")
    await init_db()
    logger.info("Database initialized")

    # Invalid challenge tables fail here, not on the first request
    get_scoring_engine()

    if not (settings.strava_client_id and settings.strava_client_secret):
        logger.warning("Strava credentials not set; token refresh and sign-in will fail")
    if not settings.strava_webhook_verify_token:
        logger.warning("STRAVA_WEBHOOK_VERIFY_TOKEN not set; webhook verification will fail")

    yield

    # Shutdown
    pending = event_dispatcher.pending_count
    if pending:
        logger.info(f"Waiting for {pending} background unit(s)...")
    await event_dispatcher.drain()
    logger.info("Shutting down...")


# === App Creation ===
app = FastAPI(
    title="Stage Challenge API",
    description="Strava activity sync and multi-stage challenge scoring",
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)


# === Routes ===
app.include_router(api_router, prefix="/api/v1")


# === Health Check ===
@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": "0.1.0"}
