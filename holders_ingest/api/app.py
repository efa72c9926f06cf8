"""
Token Holder Rank API - FastAPI application
"""
from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from holders_ingest import __version__
from holders_ingest.config import Settings, get_settings
from holders_ingest.ingestion.engine import SourceFactory
from holders_ingest.service import HoldersService, build_service

logger = structlog.get_logger()


def create_app(
    settings: Optional[Settings] = None,
    source_factory: Optional[SourceFactory] = None,
    service: Optional[HoldersService] = None,
) -> FastAPI:
    settings = settings or get_settings()
    service = service or build_service(settings, source_factory=source_factory)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Load the backup for instant startup, then start scheduled refreshes"""
        logger.info("Starting token holder API", backup_path=settings.backup_path)
        service.cold_load()
        service.scheduler.start()

        yield

        service.scheduler.stop()
        logger.info("Shutdown complete")

    app = FastAPI(
        title=settings.app_name,
        version=__version__,
        description="Cached, ranked token holder list with background refresh",
        lifespan=lifespan,
    )
    app.state.service = service

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    from holders_ingest.api.routes import router
    app.include_router(router, prefix="/api", tags=["holders"])

    @app.get("/")
    async def root():
        """Root endpoint"""
        return {
            "name": settings.app_name,
            "version": __version__,
            "status": "running",
        }

    return app
