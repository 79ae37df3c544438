"""Read-only routes over the archive store and its CSV snapshots."""

import time

from fastapi import APIRouter, Depends, HTTPException
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import FileResponse, PlainTextResponse
from loguru import logger

from cryptarchive.core.data.providers import KrakenClient
from cryptarchive.core.data.storage import ArchiveStore
from cryptarchive.core.models import ArchiveRecord
from cryptarchive.core.services import SnapshotWriter
from cryptarchive.web.models import StatusResponse
from cryptarchive.web.utils import get_client, get_store, get_writer

router = APIRouter()

INDEX_TEXT = """Crypto Archive API
Available routes:
- GET /api/status : server status
- GET /api/pairs : archived pairs
- GET /api/data : every archived record
- GET /api/data/<pair> : record of one pair
- GET /api/export/<pair> : download the CSV of one pair
- GET /api/export-latest : download the latest global CSV
- GET /csv/<file> : snapshot files
"""


def _csv_response(writer: SnapshotWriter, name: str) -> FileResponse:
    return FileResponse(writer.artifact_path(name), media_type="text/csv", filename=name)


@router.get("/", response_class=PlainTextResponse, include_in_schema=False)
def index() -> str:
    return INDEX_TEXT


@router.get("/api/status", response_model=StatusResponse)
async def status(
    client: KrakenClient = Depends(get_client),
    store: ArchiveStore = Depends(get_store),
) -> StatusResponse:
    """Compare the upstream clock with the local one and probe the store."""
    server_time = await client.fetch_server_time()
    now = int(time.time())
    return StatusResponse(
        server_time=server_time.unixtime,
        server_time_rfc=server_time.rfc1123,
        local_time=now,
        time_diff=now - server_time.unixtime,
        database_ok=await run_in_threadpool(store.ping),
    )


@router.get("/api/pairs", response_model=list[str])
def pairs(store: ArchiveStore = Depends(get_store)) -> list[str]:
    return sorted(store.distinct_names())


@router.get("/api/data", response_model=list[ArchiveRecord])
def all_data(store: ArchiveStore = Depends(get_store)) -> list[ArchiveRecord]:
    records = store.all_records()
    if not records:
        raise HTTPException(status_code=404, detail="No data available")
    return records


@router.get("/api/data/{pair}", response_model=list[ArchiveRecord])
def pair_data(pair: str, store: ArchiveStore = Depends(get_store)) -> list[ArchiveRecord]:
    records = store.records_for(pair)
    if not records:
        raise HTTPException(status_code=404, detail=f"Pair {pair} not found")
    return records


@router.get("/api/export/{pair}", response_class=FileResponse)
def export_pair(pair: str, writer: SnapshotWriter = Depends(get_writer)) -> FileResponse:
    """Write the CSV of ``pair`` now and send it as an attachment."""
    name = writer.write_one(pair)
    return _csv_response(writer, name)


@router.get("/api/export-latest", response_class=FileResponse)
def export_latest(writer: SnapshotWriter = Depends(get_writer)) -> FileResponse:
    """Send the newest global CSV, generating one when the directory is empty."""
    directory = writer.ensure_directory()
    if not any(directory.iterdir()):
        name = writer.write_all()
        logger.info(f"No snapshot on disk, generated {name} on demand")
        return _csv_response(writer, name)

    latest = writer.latest_artifact()
    if latest is None:
        raise HTTPException(status_code=404, detail="No CSV snapshot available")
    return _csv_response(writer, latest.name)
