"""
GPS Tracker - FastAPI Backend

Main application entry point and configuration.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from tracker.api.sessions import router as sessions_router, options_router
from tracker.services.registry import get_registry


# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    # Startup
    logger.info("Starting GPS Tracker Backend")

    config = get_registry().default_config
    logger.info(
        f"Filter thresholds: accuracy <= {config.accuracy_threshold_m:.0f} m, "
        f"movement >= {config.movement_threshold_m:.0f} m"
    )

    yield

    # Shutdown
    logger.info(f"Shutting down GPS Tracker Backend ({len(get_registry())} live sessions dropped)")


# Create FastAPI app
app = FastAPI(
    title="GPS Tracker",
    description="""
    Real-time location tracking sessions.

    ## Features
    - Filter noisy fixes (accuracy gate, movement threshold)
    - Accumulate great-circle distance along the accepted path
    - Segment, average and max speed
    - GeoJSON and formatted summaries for map/UI adapters

    ## Data Flow
    1. Create a session via POST /sessions
    2. Start it via POST /sessions/{id}/start
    3. Push fixes via POST /sessions/{id}/samples
    4. Read GET /sessions/{id}, /geojson or /summary
    5. Stop via POST /sessions/{id}/stop
    """,
    version="0.1.0",
    lifespan=lifespan,
)


# CORS middleware (allow all origins for development)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # In production, restrict this
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Include routers
app.include_router(sessions_router)
app.include_router(options_router)


@app.get("/")
async def root():
    """Root endpoint - basic health check."""
    return {
        "name": "GPS Tracker",
        "version": "0.1.0",
        "status": "running",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    registry = get_registry()

    return {
        "status": "healthy",
        "session_count": len(registry),
    }
