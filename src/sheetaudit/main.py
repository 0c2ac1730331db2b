"""sheetaudit server.

Receives notifications from the bound forwarder scripts and records them
in the log spreadsheet.
"""

from collections.abc import Callable
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from loguru import logger

from sheetaudit import __version__, api
from sheetaudit.config import Settings, get_settings
from sheetaudit.credentials import SHEETS_SCOPES, GoogleCredentialsAuth, get_credentials
from sheetaudit.logging import configure_logging
from sheetaudit.service import AuditLogger
from sheetaudit.snapshot_store import SnapshotStore, create_snapshot_store
from sheetaudit.transport import GoogleSheetsTransport, Transport


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Global handler for unhandled exceptions."""
    logger.exception(
        "Unhandled exception",
        extra={"path": request.url.path, "error": str(exc)},
    )
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"},
    )


def _google_transport() -> Transport:
    credentials = get_credentials(SHEETS_SCOPES)
    return GoogleSheetsTransport(auth=GoogleCredentialsAuth(credentials))


def create_app(
    settings: Settings | None = None,
    *,
    transport_factory: Callable[[], Transport] = _google_transport,
    store: SnapshotStore | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Settings to use (defaults to the cached environment settings)
        transport_factory: Builds the spreadsheet transport at startup
        store: Snapshot store (defaults to the configured backend)
    """
    settings = settings or get_settings()

    configure_logging(
        is_production=settings.is_production,
        log_level=settings.log_level,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan handler."""
        logger.info(f"Starting sheetaudit server on port {settings.port}")
        if not settings.log_spreadsheet_id:
            logger.warning("LOG_SPREADSHEET_ID is not set; every log write will fail")

        transport = transport_factory()
        app.state.settings = settings
        app.state.audit_logger = AuditLogger(
            settings,
            transport,
            store or create_snapshot_store(settings, transport),
        )

        yield

        await transport.close()
        logger.info("Shutting down sheetaudit server")

    app = FastAPI(
        title="sheetaudit",
        description="Audit trail of edits and structural changes to Google Sheets",
        version=__version__,
        lifespan=lifespan,
        docs_url="/api/docs" if not settings.is_production else None,
        redoc_url=None,
        openapi_url="/api/openapi.json" if not settings.is_production else None,
    )

    app.add_exception_handler(Exception, unhandled_exception_handler)
    app.include_router(api.router, prefix="/api")

    @app.get("/")
    async def root() -> dict:
        return {"service": "sheetaudit", "version": __version__}

    return app
