"""
Fitdash Backend - FastAPI Application
"""
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from fitdash import __version__
from fitdash.api import activities, goals, stats, strava
from fitdash.core.config import settings
from fitdash.core.database import init_db
from fitdash.core.exceptions import (
    DecodeError,
    FitdashError,
    InvalidPeriodError,
    NotFoundError,
    TokenExpiredError,
    UpstreamError,
)
from fitdash.core.logging import get_logger, setup_logging

logger = get_logger(__name__)

# Most specific first
ERROR_STATUS = (
    (DecodeError, 422),
    (InvalidPeriodError, 400),
    (TokenExpiredError, 401),
    (NotFoundError, 404),
    (UpstreamError, 502),
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    setup_logging()
    logger.info("Starting Fitdash Backend", version=__version__)
    await init_db()
    logger.info("Database initialized")

    yield

    # Shutdown
    logger.info("Shutting down Fitdash Backend")


app = FastAPI(
    title="Fitdash API",
    description="Endurance-training activity ingestion and analytics backend",
    version=__version__,
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(FitdashError)
async def fitdash_error_handler(request: Request, exc: FitdashError) -> JSONResponse:
    """Translate service errors into HTTP responses."""
    status_code = next(
        (code for error_type, code in ERROR_STATUS if isinstance(exc, error_type)),
        500,
    )
    logger.warning(
        "Request failed",
        path=request.url.path,
        error_type=type(exc).__name__,
        status=status_code,
    )
    return JSONResponse(status_code=status_code, content={"error": str(exc)})


# Include routers
app.include_router(activities.router, prefix="/api/activities", tags=["activities"])
app.include_router(strava.router, prefix="/api/strava", tags=["strava"])
app.include_router(stats.router, prefix="/api/stats", tags=["stats"])
app.include_router(goals.router, prefix="/api/goals", tags=["goals"])


@app.get("/api/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "ok", "timestamp": datetime.utcnow().isoformat()}
