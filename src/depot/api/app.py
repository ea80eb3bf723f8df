"""
FastAPI Application Setup.

Main application factory for the Depot publish API.

Run with: uvicorn --factory depot.api.app:create_app
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from depot.api.middleware.logging import RequestLoggingMiddleware
from depot.api.publish import PackagePublishHandler
from depot.api.routes import publish
from depot.config import DepotSettings
from depot.services.auth import ApiKeyAuthenticationService
from depot.services.deletion import DefaultDeletionService
from depot.services.indexing import DefaultIndexingService
from depot.services.interfaces import (
    AuthenticationService,
    IndexingService,
    PackageDeletionService,
    PackageService,
)
from depot.services.packages import SqlitePackageService
from depot.services.storage import FileSystemPackageStorage
from depot.version import __version__

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

logger = logging.getLogger(__name__)


def create_app(
    settings: DepotSettings | None = None,
    *,
    authentication: AuthenticationService | None = None,
    indexer: IndexingService | None = None,
    packages: PackageService | None = None,
    deletion: PackageDeletionService | None = None,
    title: str = "Depot API",
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Collaborators that are not supplied are built from the settings: API key
    authentication, SQLite package metadata, filesystem artifact storage.

    Args:
        settings: Service settings (read from DEPOT_* environment if None)
        authentication: Authentication service override
        indexer: Indexing service override
        packages: Package metadata service override
        deletion: Deletion service override
        title: Application title for OpenAPI docs

    Returns:
        Configured FastAPI application instance

    Raises:
        ConfigurationError: If the environment holds invalid settings
    """
    settings = settings or DepotSettings.from_env()
    logging.basicConfig(level=settings.log_level, format=LOG_FORMAT)

    owned_store: SqlitePackageService | None = None
    if packages is None:
        packages = owned_store = SqlitePackageService(settings.database_path)

    if indexer is None or deletion is None:
        if not isinstance(packages, SqlitePackageService):
            raise ValueError("Default indexing and deletion services require a SqlitePackageService")
        storage = FileSystemPackageStorage(settings.storage_path)
        indexer = indexer or DefaultIndexingService(packages, storage)
        deletion = deletion or DefaultDeletionService(packages, storage, settings.deletion_behavior)

    if settings.scratch_path is not None:
        settings.scratch_path.mkdir(parents=True, exist_ok=True)

    handler = PackagePublishHandler(
        authentication or ApiKeyAuthenticationService(settings.api_key),
        indexer,
        packages,
        deletion,
        scratch_dir=settings.scratch_path,
        max_package_size=settings.max_package_size,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Log start-up configuration and release owned resources on shutdown."""
        logger.info("Depot API starting up...")
        logger.info(f"Version: {__version__}")
        logger.info(f"Deletion behavior: {settings.deletion_behavior.value}")

        yield

        logger.info("Depot API shutting down...")
        if owned_store is not None:
            owned_store.close()

    app = FastAPI(
        title=title,
        description="Package registry publish API",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.publish_handler = handler

    app.add_middleware(RequestLoggingMiddleware)

    app.include_router(
        publish.router,
        prefix="/api/v2",
        tags=["Publish"],
    )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.exception(f"Unhandled exception: {exc}")
        return JSONResponse(
            status_code=500,
            content={
                "error": {
                    "type": "internal_error",
                    "message": "An unexpected error occurred",
                    "detail": str(exc) if logger.isEnabledFor(logging.DEBUG) else None,
                }
            },
        )

    @app.get("/", tags=["Root"])
    async def root() -> dict[str, object]:
        """Root endpoint with API information."""
        return {
            "name": title,
            "version": __version__,
            "status": "operational",
            "publish": "/api/v2/package",
            "docs": "/docs",
        }

    return app
