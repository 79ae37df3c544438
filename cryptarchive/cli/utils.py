"""Utility helpers shared across CLI commands."""

from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from typing import TextIO

import typer
from rich.box import SIMPLE
from rich.console import Console
from rich.table import Table

from cryptarchive.core.exceptions import ArchiveError, StoreError, UpstreamError
from cryptarchive.core.models import ArchiveRecord
from cryptarchive.core.services.snapshot import CSV_HEADER, record_row

from .constants import EXPORT_EXIT_CODE, STORE_EXIT_CODE, UPSTREAM_EXIT_CODE


def emit_error(message: str, code: str, *, details: Mapping[str, object] | None = None) -> None:
    """Print a structured error payload to stderr."""

    payload: dict[str, object] = {"code": code, "message": message}
    if details:
        payload["details"] = _sanitize_details(details)
    typer.echo(json.dumps(payload, ensure_ascii=False, default=str), err=True)


def fail(error: ArchiveError) -> typer.Exit:
    """Report ``error`` and return the matching :class:`typer.Exit`."""

    emit_error(error.message, error.error_code, details=error.details)
    if isinstance(error, UpstreamError):
        return typer.Exit(code=UPSTREAM_EXIT_CODE)
    if isinstance(error, StoreError):
        return typer.Exit(code=STORE_EXIT_CODE)
    return typer.Exit(code=EXPORT_EXIT_CODE)


def render_records(records: Sequence[ArchiveRecord], *, stream: TextIO, no_color: bool = False) -> None:
    """Render archive records as a Rich table using the CSV number formatting."""

    console = Console(file=stream, color_system=None if no_color else "auto", no_color=no_color)
    table = Table(box=SIMPLE, show_lines=False, title="Archived data")
    header_style = "" if no_color else "bold"
    for column in CSV_HEADER:
        table.add_column(column, header_style=header_style)
    for record in records:
        table.add_row(*record_row(record))
    console.print(table)
    if not records:
        console.print("No data available.")


def _sanitize_details(details: Mapping[str, object]) -> Mapping[str, object]:
    sanitized: dict[str, object] = {}
    for key, value in details.items():
        if isinstance(value, (str, int, float, bool)) or value is None:
            sanitized[key] = value
        elif isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray)):
            sanitized[key] = [str(item) for item in value]
        else:
            sanitized[key] = str(value)
    return sanitized
