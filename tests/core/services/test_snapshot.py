from __future__ import annotations

import csv
import os
from datetime import datetime
from decimal import Decimal
from pathlib import Path

import pytest

from cryptarchive.core.data.storage import ArchiveStore
from cryptarchive.core.exceptions import ExportError
from cryptarchive.core.models import QuoteSample
from cryptarchive.core.services.snapshot import (
    CSV_HEADER,
    SnapshotWriter,
    bucket_name,
    format_price,
    format_volume,
)

FIXED_NOW = datetime(2024, 3, 7, 9, 14, 59)


def _writer(store: ArchiveStore, directory: Path) -> SnapshotWriter:
    return SnapshotWriter(store, directory, clock=lambda: FIXED_NOW)


def _read(path: Path) -> list[list[str]]:
    with open(path, newline="", encoding="utf-8") as file:
        return list(csv.reader(file))


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("0.999999995", "1.00000000"),
        ("42000.1", "42000.10000000"),
        ("0.000000005", "0.00000000"),
        ("0.000000015", "0.00000002"),
        ("0", "0.00000000"),
    ],
)
def test_format_price(value: str, expected: str) -> None:
    assert format_price(Decimal(value)) == expected


@pytest.mark.parametrize(
    ("value", "expected"),
    [("12.3", "12.3000"), ("0.00005", "0.0000"), ("1234567.89015", "1234567.8902")],
)
def test_format_volume(value: str, expected: str) -> None:
    assert format_volume(Decimal(value)) == expected


@pytest.mark.parametrize(
    ("minute", "bucket"),
    [(0, "00"), (4, "00"), (5, "05"), (14, "10"), (59, "55")],
)
def test_bucket_name_floors_minutes(minute: int, bucket: str) -> None:
    now = datetime(2024, 12, 1, 23, minute)

    assert bucket_name("crypto_data", now) == f"crypto_data_01_12_2024_23_{bucket}.csv"


def test_write_all_writes_header_and_rows(store: ArchiveStore, tmp_path: Path) -> None:
    store.upsert(
        "XBTUSD",
        QuoteSample(
            ask=Decimal("0.999999995"),
            bid=Decimal("0.5"),
            last=Decimal("0.75"),
            volume=Decimal("12.3"),
            high=Decimal("1"),
            low=Decimal("0.25"),
        ),
        "2024-03-07T09:14:00+00:00",
    )
    store.upsert("ETHUSD", QuoteSample(last=Decimal("3000")), "2024-03-07T09:14:01+00:00")
    writer = _writer(store, tmp_path / "csv")

    name = writer.write_all()

    assert name == "crypto_data_07_03_2024_09_10.csv"
    rows = _read(tmp_path / "csv" / name)
    assert rows[0] == CSV_HEADER
    assert rows[1][0] == "ETHUSD"
    assert rows[2] == [
        "XBTUSD",
        "1.00000000",
        "0.50000000",
        "0.75000000",
        "12.3000",
        "1.00000000",
        "0.25000000",
        "2024-03-07T09:14:00+00:00",
    ]


def test_write_all_on_empty_store_writes_header_only(store: ArchiveStore, tmp_path: Path) -> None:
    writer = _writer(store, tmp_path)

    name = writer.write_all()

    assert _read(tmp_path / name) == [CSV_HEADER]


def test_write_one_prefixes_pair_name(store: ArchiveStore, tmp_path: Path) -> None:
    store.upsert("XBTUSD", QuoteSample(last=Decimal("1")), "t")
    store.upsert("ETHUSD", QuoteSample(last=Decimal("2")), "t")
    writer = _writer(store, tmp_path)

    name = writer.write_one("ETHUSD")

    assert name == "ETHUSD_crypto_data_07_03_2024_09_10.csv"
    rows = _read(tmp_path / name)
    assert len(rows) == 2
    assert rows[1][0] == "ETHUSD"


def test_same_bucket_overwrites_file(store: ArchiveStore, tmp_path: Path) -> None:
    writer = _writer(store, tmp_path)
    writer.write_all()
    store.upsert("XBTUSD", QuoteSample(last=Decimal("1")), "t")

    name = writer.write_all()

    assert len(_read(tmp_path / name)) == 2
    assert len(list(tmp_path.iterdir())) == 1


def test_ensure_directory_creates_nested_path(store: ArchiveStore, tmp_path: Path) -> None:
    target = tmp_path / "a" / "b"

    assert _writer(store, target).ensure_directory() == target
    assert target.is_dir()


def test_unwritable_directory_raises_export_error(store: ArchiveStore, tmp_path: Path) -> None:
    blocker = tmp_path / "file"
    blocker.write_text("x", encoding="utf-8")

    with pytest.raises(ExportError):
        _writer(store, blocker / "csv").write_all()


def test_store_failure_raises_export_error(tmp_path: Path) -> None:
    closed = ArchiveStore(":memory:")
    closed.close()

    with pytest.raises(ExportError) as exc_info:
        _writer(closed, tmp_path).write_all()

    assert exc_info.value.path is not None


def test_latest_artifact_picks_newest_global_snapshot(store: ArchiveStore, tmp_path: Path) -> None:
    older = tmp_path / "crypto_data_01_01_2024_00_00.csv"
    newer = tmp_path / "crypto_data_01_01_2024_00_05.csv"
    per_pair = tmp_path / "XBTUSD_crypto_data_01_01_2024_00_10.csv"
    for path in (older, newer, per_pair):
        path.write_text("Pair\n", encoding="utf-8")
    os.utime(older, (1_000_000, 1_000_000))
    os.utime(newer, (2_000_000, 2_000_000))
    os.utime(per_pair, (3_000_000, 3_000_000))

    assert _writer(store, tmp_path).latest_artifact() == newer


def test_latest_artifact_none_when_missing(store: ArchiveStore, tmp_path: Path) -> None:
    assert _writer(store, tmp_path / "absent").latest_artifact() is None
    assert _writer(store, tmp_path).latest_artifact() is None


def test_format_handles_values_wider_than_default_context() -> None:
    assert format_price(Decimal("99999999999999999999999")) == "99999999999999999999999.00000000"
    assert format_volume(Decimal("12345678901234567890123456.123456789012")) == "12345678901234567890123456.1235"


def test_huge_stored_value_is_written(store: ArchiveStore, tmp_path: Path) -> None:
    store.upsert("XBTUSD", QuoteSample(ask=Decimal("99999999999999999999999")), "t")

    name = _writer(store, tmp_path).write_all()

    assert _read(tmp_path / name)[1][1] == "99999999999999999999999.00000000"
