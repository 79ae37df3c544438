"""DuckDB backed archive of the latest quote per pair."""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from decimal import Decimal
from pathlib import Path

import duckdb

from cryptarchive.core.data.storage.duckdb_factory import ArchiveDuckDBFactory, DuckDBFactoryConfig
from cryptarchive.core.exceptions import StoreError
from cryptarchive.core.logging import get_logger
from cryptarchive.core.models import ArchiveRecord, QuoteSample

logger = get_logger("archive_store")

TABLE_NAME = "crypto_data"

_CREATE_TABLE = f"""
    CREATE TABLE IF NOT EXISTS {TABLE_NAME} (
        pair VARCHAR PRIMARY KEY,
        ask_price DECIMAL(38, 12),
        bid_price DECIMAL(38, 12),
        last_trade_price DECIMAL(38, 12),
        volume DECIMAL(38, 12),
        high_price DECIMAL(38, 12),
        low_price DECIMAL(38, 12),
        timestamp VARCHAR
    )
"""

_SELECT_COLUMNS = "pair, ask_price, bid_price, last_trade_price, volume, high_price, low_price, timestamp"

# Prices are bound as fixed-point text; DuckDB mis-binds Decimals with a positive exponent.
_DECIMAL_PARAMS = ", ".join(["CAST(? AS DECIMAL(38, 12))"] * 6)


def _fixed_text(value: Decimal) -> str:
    return format(value, "f")


class ArchiveStore:
    """Keyed record store with upsert-by-pair semantics.

    One connection is shared by the scheduler (sole writer) and the HTTP
    handlers (readers); every call holds the store lock for its duration, so
    each call is atomic but no transaction spans several calls.
    """

    def __init__(self, db_path: str | Path = ":memory:", *, auto_init: bool = True) -> None:
        self.db_path = str(db_path)
        self._factory = ArchiveDuckDBFactory(DuckDBFactoryConfig(database=self.db_path))
        self._lock = threading.RLock()
        self._conn: duckdb.DuckDBPyConnection | None = None
        if auto_init:
            self.init()

    def __enter__(self) -> "ArchiveStore":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def init(self) -> "ArchiveStore":
        """Open the database and create the archive table when absent."""
        with self._lock:
            if self._conn is not None:
                return self
            try:
                conn = self._factory.create_connection()
                conn.execute(_CREATE_TABLE)
            except (duckdb.Error, OSError) as e:
                raise StoreError(f"Cannot initialise archive store at {self.db_path}: {e}", operation="init") from e
            self._conn = conn
        logger.info(f"Archive store ready at {self.db_path}")
        return self

    def close(self) -> None:
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    @contextmanager
    def _cursor(self, operation: str) -> Iterator[duckdb.DuckDBPyConnection]:
        with self._lock:
            if self._conn is None:
                raise StoreError("Archive store is not initialised", operation=operation)
            try:
                yield self._conn
            except duckdb.Error as e:
                raise StoreError(f"Archive store {operation} failed: {e}", operation=operation) from e

    def reset(self) -> None:
        """Delete every record."""
        with self._cursor("reset") as conn:
            conn.execute(f"DELETE FROM {TABLE_NAME}")
        logger.info("Archive store reset")

    def upsert(self, display_name: str, sample: QuoteSample, timestamp: str) -> None:
        """Insert the record for ``display_name`` or overwrite all of its fields."""
        with self._cursor("upsert") as conn:
            conn.execute(
                f"""
                INSERT OR REPLACE INTO {TABLE_NAME} ({_SELECT_COLUMNS})
                VALUES (?, {_DECIMAL_PARAMS}, ?)
                """,
                [
                    display_name,
                    *(
                        _fixed_text(value)
                        for value in (sample.ask, sample.bid, sample.last, sample.volume, sample.high, sample.low)
                    ),
                    timestamp,
                ],
            )

    def all_records(self) -> list[ArchiveRecord]:
        with self._cursor("all_records") as conn:
            rows = conn.execute(f"SELECT {_SELECT_COLUMNS} FROM {TABLE_NAME} ORDER BY pair").fetchall()
        return [_to_record(row) for row in rows]

    def records_for(self, display_name: str) -> list[ArchiveRecord]:
        with self._cursor("records_for") as conn:
            rows = conn.execute(
                f"SELECT {_SELECT_COLUMNS} FROM {TABLE_NAME} WHERE pair = ?",
                [display_name],
            ).fetchall()
        return [_to_record(row) for row in rows]

    def distinct_names(self) -> set[str]:
        with self._cursor("distinct_names") as conn:
            rows = conn.execute(f"SELECT DISTINCT pair FROM {TABLE_NAME}").fetchall()
        return {row[0] for row in rows}

    def ping(self) -> bool:
        """Return True when the store answers a trivial query."""
        try:
            with self._cursor("ping") as conn:
                conn.execute("SELECT 1").fetchone()
        except StoreError:
            return False
        return True


def _to_record(row: tuple) -> ArchiveRecord:
    pair, ask, bid, last, volume, high, low, timestamp = row
    return ArchiveRecord(
        pair=pair,
        ask=ask,
        bid=bid,
        last=last,
        volume=volume,
        high=high,
        low=low,
        timestamp=timestamp,
    )


__all__ = ["ArchiveStore", "TABLE_NAME"]
