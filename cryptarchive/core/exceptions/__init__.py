"""Exception handling module."""

from cryptarchive.core.exceptions.base import (
    ArchiveError,
    ExportError,
    StoreError,
    UpstreamError,
)
from cryptarchive.core.exceptions.codes import ErrorCode

__all__ = [
    "ArchiveError",
    "UpstreamError",
    "StoreError",
    "ExportError",
    "ErrorCode",
]
