"""
Main FastAPI application for the MDS service
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from mds_service.api.api_v1.api import api_router
from mds_service.core.config import Settings, settings as default_settings
from mds_service.core.logging_config import setup_logging
from mds_service.db.database import DatabaseConfig, DatabaseManager
from mds_service.services.mds_sync_service import MdsSyncService
from mds_service.services.metadata_ingestion_service import MetadataIngestionService

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan management."""
    config: Settings = app.state.settings
    database: DatabaseManager = app.state.database
    sync_service: MdsSyncService = app.state.sync_service

    logger.info("Starting %s...", config.PROJECT_NAME)
    await database.create_all()
    logger.info("Database initialized")

    scheduler: asyncio.Task | None = None
    if config.SYNC_SCHEDULER_ENABLED:
        scheduler = asyncio.create_task(sync_service.start_sync_scheduler())

    try:
        yield
    finally:
        logger.info("Shutting down %s...", config.PROJECT_NAME)
        if scheduler is not None:
            sync_service.stop()
            scheduler.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await scheduler
        await database.dispose()


def create_app(config: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    config = config or default_settings
    setup_logging(
        service_name=config.SERVICE_NAME,
        log_level=config.LOG_LEVEL,
        log_format=config.LOG_FORMAT,
    )

    database = DatabaseManager(DatabaseConfig(url=config.DATABASE_URL, echo=config.DATABASE_ECHO))
    ingestion_service = MetadataIngestionService(database)

    app = FastAPI(
        title=config.PROJECT_NAME,
        description="API for FIDO metadata BLOB synchronization",
        version=config.VERSION,
        openapi_url="/openapi.json",
        docs_url="/docs",
        lifespan=lifespan,
    )
    app.state.settings = config
    app.state.database = database
    app.state.ingestion_service = ingestion_service
    app.state.sync_service = MdsSyncService(ingestion_service, config)

    app.include_router(api_router, prefix=config.API_V1_STR)

    @app.get("/health", tags=["Health"])
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy", "service": config.SERVICE_NAME}

    return app


app = create_app()


def run() -> None:
    """Serve the application with uvicorn."""
    uvicorn.run(app, host=default_settings.HOST, port=default_settings.PORT)
