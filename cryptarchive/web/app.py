"""FastAPI application factory.

The application lifespan owns the archive components: it opens and resets the
store, starts the archive scheduler as a background task next to request
serving, and on shutdown stops the scheduler and waits for its current tick to
finish before releasing the store.
"""

import asyncio
import time
import uuid
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from loguru import logger

from cryptarchive import __version__
from cryptarchive.core.config import ArchiveConfig
from cryptarchive.core.data.providers import KrakenClient
from cryptarchive.core.data.storage import ArchiveStore
from cryptarchive.core.exceptions import ArchiveError, ExportError, StoreError, UpstreamError
from cryptarchive.core.services import ArchiveScheduler, InstrumentRanker, SnapshotWriter
from cryptarchive.web.metrics import router as metrics_router
from cryptarchive.web.models import ErrorResponse
from cryptarchive.web.routes import archive_router
from cryptarchive.web.utils import get_request_id

_STATUS_BY_ERROR: dict[type[ArchiveError], int] = {
    UpstreamError: 502,
    StoreError: 500,
    ExportError: 500,
}


async def log_server_status(client: KrakenClient) -> None:
    """Log the upstream clock and its offset from the local clock."""
    try:
        server_time = await client.fetch_server_time()
    except UpstreamError as e:
        logger.bind(error_code=e.error_code).warning(f"Cannot read upstream server time: {e.message}")
        return
    offset = int(time.time()) - server_time.unixtime
    logger.info(
        f"Upstream server time: {server_time.unixtime} ({server_time.rfc1123}), offset {offset} seconds"
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Build the archive components, run the scheduler, tear everything down."""
    config: ArchiveConfig = app.state.config
    owns_store = app.state.store is None
    owns_client = app.state.client is None

    store = app.state.store or ArchiveStore(config.storage.db_path)
    if app.state.reset_store:
        store.reset()
    client = app.state.client or KrakenClient(config.upstream)
    writer = SnapshotWriter(store, config.storage.csv_dir, prefix=config.storage.snapshot_prefix)
    writer.ensure_directory()

    app.state.store = store
    app.state.client = client
    app.state.writer = writer

    await log_server_status(client)

    stop_event = asyncio.Event()
    scheduler_task: asyncio.Task[None] | None = None
    if app.state.run_scheduler:
        scheduler = ArchiveScheduler(
            InstrumentRanker(client, max_batch_size=config.upstream.batch_size),
            client,
            store,
            writer,
            config.scheduler,
        )
        app.state.scheduler = scheduler
        scheduler_task = scheduler.start(stop_event)

    try:
        yield
    finally:
        logger.info("Shutting down archive service")
        stop_event.set()
        if scheduler_task is not None:
            await scheduler_task
        if owns_client:
            await client.close()
        if owns_store:
            store.close()
        logger.info("Archive service stopped")


def create_app(
    config: ArchiveConfig | None = None,
    *,
    store: ArchiveStore | None = None,
    client: KrakenClient | None = None,
    run_scheduler: bool = True,
    reset_store: bool = True,
) -> FastAPI:
    """Create the FastAPI application.

    ``store`` and ``client`` may be injected; injected components are not
    closed by the application.
    """
    config = config or ArchiveConfig()
    app = FastAPI(
        title="cryptarchive",
        description="Archive of the most traded Kraken pairs",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.store = store
    app.state.client = client
    app.state.run_scheduler = run_scheduler
    app.state.reset_store = reset_store
    app.state.scheduler = None

    _setup_routes(app, Path(config.storage.csv_dir))
    _setup_exception_handlers(app)
    return app


def _setup_routes(app: FastAPI, csv_dir: Path) -> None:
    app.include_router(archive_router, tags=["archive"])
    app.include_router(metrics_router)
    app.mount("/csv", StaticFiles(directory=csv_dir, check_dir=False), name="csv")


def _setup_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ArchiveError)
    async def archive_exception_handler(request: Request, exc: ArchiveError) -> JSONResponse:
        status_code = next(
            (code for error_type, code in _STATUS_BY_ERROR.items() if isinstance(exc, error_type)),
            500,
        )
        logger.bind(error_code=exc.error_code).error(f"{request.method} {request.url.path} failed: {exc.message}")
        return JSONResponse(
            status_code=status_code,
            content=ErrorResponse(
                error=exc.__class__.__name__,
                message=exc.message,
                details={"error_code": exc.error_code, **exc.details},
                request_id=get_request_id(request) or str(uuid.uuid4()),
            ).model_dump(mode="json"),
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse(
                error="HTTPException",
                message=str(exc.detail),
                details={"status_code": exc.status_code},
                request_id=get_request_id(request) or str(uuid.uuid4()),
            ).model_dump(mode="json"),
        )
