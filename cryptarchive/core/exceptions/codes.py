"""Standardised error codes shared across the archive pipeline."""

from __future__ import annotations

from enum import Enum


class ErrorCode(str, Enum):
    """Stable identifiers attached to every :class:`ArchiveError`."""

    GENERAL_ERROR = "GENERAL_ERROR"
    UPSTREAM_ERROR = "UPSTREAM_ERROR"
    STORE_ERROR = "STORE_ERROR"
    EXPORT_ERROR = "EXPORT_ERROR"


__all__ = ["ErrorCode"]
