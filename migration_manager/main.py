"""
Migration Manager API - FastAPI Application

Main entry point for the FastAPI application.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI

from migration_manager import __version__
from migration_manager.config import get_settings
from migration_manager.core.database import close_db, init_db
from migration_manager.routers import migration_router

# Configure logging
logging.basicConfig(
    level=get_settings().log_level.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

# Suppress noisy third-party loggers
logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
logging.getLogger("alembic.runtime.migration").setLevel(logging.WARNING)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.

    Handles startup and shutdown events.
    """
    # Startup
    logger.info("Starting Migration Manager API...")
    settings = get_settings()

    logger.info("Initializing database connection...")
    await init_db()
    logger.info("Database connection established")

    logger.info(f"Migration Manager API started in {settings.environment} mode")

    yield

    # Shutdown
    logger.info("Shutting down Migration Manager API...")
    await close_db()
    logger.info("Migration Manager API shutdown complete")


def create_app() -> FastAPI:
    """
    Create and configure FastAPI application.

    Returns:
        Configured FastAPI application instance
    """
    app = FastAPI(
        title="Migration Manager API",
        description="Export, import and apply platform schema artifacts between instances",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # Register routers
    app.include_router(migration_router)

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    return app


app = create_app()
