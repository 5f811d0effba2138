"""Health & Fitness sync API - FastAPI application entry point.

Run locally:
    python -m fitsync.main
    uvicorn fitsync.main:app --port 3000
"""

import logging
import sys
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from fitsync import __version__
from fitsync.api import health
from fitsync.core.config import Settings, get_settings
from fitsync.core.database import Database
from fitsync.core.errors import register_exception_handlers
from fitsync.schemas.responses import LivenessResponse, RootResponse

logger = logging.getLogger(__name__)

_started_at = time.monotonic()


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)-8s %(name)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - connect to the store on startup, close it on shutdown."""
    settings: Settings = app.state.settings
    database = Database(settings.database_url, echo=settings.debug)
    try:
        await database.connect()
    except Exception as e:
        logger.error(f"Store connection error: {e}")
        await database.close()
        raise
    app.state.database = database
    logger.info(f"Server ready on port {settings.port}")
    yield
    logger.info("Shutting down gracefully...")
    await database.close()


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()

    app = FastAPI(
        title="Health & Fitness API",
        description="Syncs daily steps and workouts from the mobile app and serves statistics",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        logger.info(f"{request.method} {request.url.path}")
        return await call_next(request)

    register_exception_handlers(app)

    # Include routers
    app.include_router(health.router)

    @app.get("/", response_model=RootResponse)
    async def root():
        """List the available API endpoints."""
        return RootResponse(
            message="Health & Fitness API Server",
            version=__version__,
            endpoints={
                "sync": "POST /api/health/sync",
                "steps": "GET /api/health/steps/:userId",
                "workouts": "GET /api/health/workouts/:userId",
                "stats": "GET /api/health/stats/:userId",
            },
        )

    @app.get("/health", response_model=LivenessResponse)
    async def liveness():
        """Liveness check with process uptime in seconds."""
        return LivenessResponse(
            status="ok",
            timestamp=datetime.now(timezone.utc),
            uptime=round(time.monotonic() - _started_at, 3),
        )

    return app


app = create_app()


def run() -> None:
    """Start the server on the configured host and port."""
    settings = get_settings()
    configure_logging(settings)
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    run()
