"""Web helpers."""

from fastapi import Request

from cryptarchive.core.data.providers import KrakenClient
from cryptarchive.core.data.storage import ArchiveStore
from cryptarchive.core.services import SnapshotWriter


def get_request_id(request: Request) -> str | None:
    """Return the ``X-Request-ID`` header, if sent."""
    return request.headers.get("X-Request-ID")


def get_store(request: Request) -> ArchiveStore:
    return request.app.state.store


def get_client(request: Request) -> KrakenClient:
    return request.app.state.client


def get_writer(request: Request) -> SnapshotWriter:
    return request.app.state.writer
