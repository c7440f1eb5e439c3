"""
FastAPI application factory for OfficeVault.

This module creates the FastAPI app with:
- Backup service lifecycle management (live store handle, catalog schema)
- CORS configuration for the office manager frontend
- Backup API routes under /api
- Error bodies for the backup error taxonomy
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .._version import __version__
from ..config import ServerConfig
from ..errors import BackupError, InconsistentError, IOFailureError, NotFoundError
from ..service import BackupService, open_backup_service
from .routes import router

logger = logging.getLogger(__name__)

ERROR_STATUS = {
    NotFoundError: 404,
    InconsistentError: 409,
    IOFailureError: 500,
}


def status_for(error: BackupError) -> int:
    for error_type, status in ERROR_STATUS.items():
        if isinstance(error, error_type):
            return status
    return 500


def create_app(
    config: ServerConfig | None = None,
    service: BackupService | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        config: Configuration (loaded from env if not provided)
        service: Prebuilt service; built from config at startup if omitted
    """
    config = config or ServerConfig.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Manage backup service lifecycle."""
        backup_service = service or await open_backup_service(config)
        app.state.backup_service = backup_service
        app.state.config = config

        yield

        backup_service.live_store.close()

    app = FastAPI(
        title="OfficeVault",
        description="Snapshot, restore and retention for the office manager database.",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(config.http.cors_origins),
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

    @app.exception_handler(BackupError)
    async def backup_error_handler(request: Request, exc: BackupError) -> JSONResponse:
        status = status_for(exc)
        if status >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        return JSONResponse(exc.to_dict(), status_code=status)

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
        return JSONResponse({"error": str(exc), "error_code": "INVALID_ARGUMENT"}, status_code=400)

    app.include_router(router, prefix="/api")

    @app.get("/health")
    async def health(request: Request):
        backup_service: BackupService = request.app.state.backup_service
        return {
            "status": "healthy",
            "service": "officevault",
            "liveStore": backup_service.live_store.is_open,
            "liveStoreGeneration": backup_service.live_store.generation,
            "snapshotDir": backup_service.store.snapshot_dir.is_dir(),
        }

    return app
