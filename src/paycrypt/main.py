"""PayCrypt - Main FastAPI Application

E-mail triggered wallet payments.

This module creates and configures the FastAPI application, including:
- Inbound MIME webhook, archive views, health and metrics routers
- Request ID middleware
- Lifespan handling that starts the SMTP listener and the archive
  reclamation loop on the same event loop as the API
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from . import __version__
from .config import Settings, get_settings
from .dependencies import AppServices, build_services
from .domain.exceptions import ArchiveEntryNotFound, StorageError
from .domain.ports.archive_port import ArchiveStorePort
from .infrastructure.ingest.inbound_router import router as inbound_router
from .infrastructure.ingest.smtp_handler import PayCryptSMTPHandler, SMTPGateway
from .infrastructure.storage.archive_router import router as archive_router
from .observability.logging_config import configure_logging
from .observability.middleware import RequestIDMiddleware
from .observability.router import router as observability_router

logger = logging.getLogger(__name__)


async def run_reclaim_loop(archive: ArchiveStorePort, interval_seconds: float) -> None:
    """Reclaim archive space periodically until cancelled."""
    while True:
        try:
            await archive.reclaim()
        except Exception as e:
            logger.error(f"Archive reclamation failed: {e}", exc_info=True)
        await asyncio.sleep(interval_seconds)


def build_smtp_gateway(services: AppServices) -> SMTPGateway:
    settings = services.settings
    return SMTPGateway(
        handler=PayCryptSMTPHandler(services.pipeline),
        admission=services.admission,
        host=settings.SMTP_HOST,
        port=settings.SMTP_PORT,
        hostname=settings.SMTP_HOSTNAME,
        banner=settings.SMTP_BANNER,
        data_size_limit=settings.SMTP_MAX_SIZE,
    )


def create_app(
    services: Optional[AppServices] = None,
    settings: Optional[Settings] = None,
) -> FastAPI:
    """Create the FastAPI application.

    Args:
        services: Prebuilt services (tests); built from settings at startup if omitted
        settings: Settings override; get_settings() if omitted

    Returns:
        FastAPI: Configured application
    """
    settings = settings or (services.settings if services else get_settings())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan handler.

        - Startup: build services, start SMTP listener and reclamation loop
        - Shutdown: stop both, close the ledger client
        """
        logger.info("PayCrypt starting up...")
        logger.info(f"Environment: {settings.ENVIRONMENT}")

        if getattr(app.state, "services", None) is None:
            app.state.services = build_services(settings)
        app_services: AppServices = app.state.services

        gateway = None
        if settings.SMTP_ENABLED:
            gateway = build_smtp_gateway(app_services)
            await gateway.start()

        reclaim_task = None
        if settings.ARCHIVE_RECLAIM_IN_PROCESS:
            reclaim_task = asyncio.create_task(
                run_reclaim_loop(app_services.archive, settings.ARCHIVE_RECLAIM_INTERVAL_SECONDS)
            )

        yield

        logger.info("PayCrypt shutting down...")
        if reclaim_task is not None:
            reclaim_task.cancel()
            try:
                await reclaim_task
            except asyncio.CancelledError:
                pass
        if gateway is not None:
            await gateway.stop()
        await app_services.close()

    app = FastAPI(
        title="PayCrypt API",
        description="E-mail triggered wallet payments",
        version=__version__,
        docs_url="/docs" if settings.ENVIRONMENT != "production" else None,
        redoc_url=None,
        lifespan=lifespan,
    )
    app.state.services = services

    app.add_middleware(RequestIDMiddleware)

    @app.exception_handler(ArchiveEntryNotFound)
    async def archive_not_found_handler(request: Request, exc: ArchiveEntryNotFound) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={"error": "not_found", "message": str(exc)},
        )

    @app.exception_handler(StorageError)
    async def storage_error_handler(request: Request, exc: StorageError) -> JSONResponse:
        logger.error(f"Storage error on {request.method} {request.url.path}: {exc}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "storage_error", "message": "Archive storage error"},
        )

    app.include_router(observability_router)
    app.include_router(inbound_router)
    app.include_router(archive_router)

    @app.get("/", tags=["Root"])
    async def root():
        return {"name": "PayCrypt", "version": __version__}

    return app


def _create_default_app() -> FastAPI:
    settings = get_settings()
    configure_logging(level=settings.LOG_LEVEL, json_format=settings.LOG_JSON)
    return create_app(settings=settings)


app = _create_default_app()
