"""CSV snapshots of the archive store."""

from __future__ import annotations

import csv
from collections.abc import Callable, Iterable
from datetime import datetime
from decimal import ROUND_HALF_EVEN, Decimal, localcontext
from pathlib import Path

from cryptarchive.core.data.storage import ArchiveStore
from cryptarchive.core.exceptions import ExportError, StoreError
from cryptarchive.core.logging import get_logger
from cryptarchive.core.models import ArchiveRecord

logger = get_logger("snapshot_writer")

CSV_HEADER = ["Pair", "Ask", "Bid", "Last", "Volume", "High", "Low", "Timestamp"]
BUCKET_MINUTES = 5

_PRICE_QUANTUM = Decimal("1e-8")
_VOLUME_QUANTUM = Decimal("1e-4")
# Wide enough for every DECIMAL(38, 12) value the store can hold.
_FORMAT_PRECISION = 60


def format_price(value: Decimal) -> str:
    """Fixed-point price with 8 fractional digits, half-even rounding."""
    return _fixed_point(value, _PRICE_QUANTUM)


def format_volume(value: Decimal) -> str:
    """Fixed-point volume with 4 fractional digits, half-even rounding."""
    return _fixed_point(value, _VOLUME_QUANTUM)


def _fixed_point(value: Decimal, quantum: Decimal) -> str:
    with localcontext() as ctx:
        ctx.prec = _FORMAT_PRECISION
        return f"{Decimal(value).quantize(quantum, rounding=ROUND_HALF_EVEN):f}"


def bucket_name(prefix: str, now: datetime) -> str:
    """``<prefix>_<dd>_<MM>_<yyyy>_<HH>_<mm>.csv`` with minutes floored to the bucket."""
    minutes = (now.minute // BUCKET_MINUTES) * BUCKET_MINUTES
    return f"{prefix}_{now.day:02d}_{now.month:02d}_{now.year}_{now.hour:02d}_{minutes:02d}.csv"


def record_row(record: ArchiveRecord) -> list[str]:
    return [
        record.pair,
        format_price(record.ask),
        format_price(record.bid),
        format_price(record.last),
        format_volume(record.volume),
        format_price(record.high),
        format_price(record.low),
        record.timestamp,
    ]


class SnapshotWriter:
    """Writes the archive (or one pair of it) to time-bucketed CSV files."""

    def __init__(
        self,
        store: ArchiveStore,
        directory: str | Path,
        *,
        prefix: str = "crypto_data",
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.store = store
        self.directory = Path(directory)
        self.prefix = prefix
        self._clock = clock

    def ensure_directory(self) -> Path:
        """Create the snapshot directory if needed and return it."""
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ExportError(f"Cannot create snapshot directory: {e}", path=str(self.directory)) from e
        return self.directory

    def artifact_path(self, name: str) -> Path:
        return self.directory / name

    def write_all(self) -> str:
        """Dump every archived record; return the artifact file name."""
        name = bucket_name(self.prefix, self._clock())
        return self._write(name, self.store.all_records)

    def write_one(self, display_name: str) -> str:
        """Dump the record of ``display_name``; return the artifact file name."""
        name = f"{display_name}_{bucket_name(self.prefix, self._clock())}"
        return self._write(name, lambda: self.store.records_for(display_name))

    def _write(self, name: str, load: Callable[[], Iterable[ArchiveRecord]]) -> str:
        self.ensure_directory()
        path = self.artifact_path(name)
        try:
            records = list(load())
        except StoreError as e:
            raise ExportError(f"Cannot read records for {name}: {e.message}", path=str(path)) from e

        try:
            with open(path, "w", newline="", encoding="utf-8") as file:
                writer = csv.writer(file)
                writer.writerow(CSV_HEADER)
                writer.writerows(record_row(record) for record in records)
        except OSError as e:
            raise ExportError(f"Cannot write snapshot {name}: {e}", path=str(path)) from e
        except ArithmeticError as e:
            raise ExportError(f"Cannot format records for {name}: {e!r}", path=str(path)) from e

        logger.info(f"Snapshot {name} written with {len(records)} records")
        return name

    def latest_artifact(self) -> Path | None:
        """Most recently modified global snapshot, if any."""
        if not self.directory.is_dir():
            return None
        candidates = [
            path for path in self.directory.iterdir() if path.is_file() and path.name.startswith(f"{self.prefix}_")
        ]
        if not candidates:
            return None
        return max(candidates, key=lambda path: path.stat().st_mtime)


__all__ = [
    "CSV_HEADER",
    "SnapshotWriter",
    "bucket_name",
    "format_price",
    "format_volume",
    "record_row",
]
