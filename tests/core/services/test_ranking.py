from __future__ import annotations

from decimal import Decimal

import pytest

from cryptarchive.core.exceptions import UpstreamError
from cryptarchive.core.models import AssetPairEntry, QuoteSample
from cryptarchive.core.services import InstrumentRanker


class StubClient:
    """Catalog and quotes served from dictionaries."""

    def __init__(self, catalog: dict[str, str], volumes: dict[str, str], *, catalog_error: bool = False) -> None:
        self.catalog = catalog
        self.volumes = volumes
        self.catalog_error = catalog_error
        self.requested: list[str] = []
        self.batch_sizes: list[int | None] = []

    async def fetch_instrument_catalog(self) -> dict[str, AssetPairEntry]:
        if self.catalog_error:
            raise UpstreamError("catalog down", endpoint="/AssetPairs")
        return {internal_id: AssetPairEntry(altname=altname) for internal_id, altname in self.catalog.items()}

    async def fetch_quotes(self, internal_ids, max_batch_size=None) -> dict[str, QuoteSample]:
        self.requested = list(internal_ids)
        self.batch_sizes.append(max_batch_size)
        return {
            internal_id: QuoteSample(volume=Decimal(self.volumes[internal_id]))
            for internal_id in self.requested
            if internal_id in self.volumes
        }


@pytest.mark.asyncio
async def test_selects_highest_volume_first() -> None:
    client = StubClient({"A": "AUSD", "B": "BUSD", "C": "CUSD"}, {"A": "50", "B": "200", "C": "10"})

    top = await InstrumentRanker(client).select_top_by_volume(2)

    assert [entry.display_name for entry in top] == ["BUSD", "AUSD"]
    assert [entry.volume for entry in top] == [Decimal("200"), Decimal("50")]


@pytest.mark.asyncio
async def test_missing_quote_counts_as_zero_volume() -> None:
    client = StubClient({"A": "AUSD", "B": "BUSD", "C": "CUSD"}, {"A": "5", "C": "1"})

    top = await InstrumentRanker(client).select_top_by_volume(3)

    assert [entry.internal_id for entry in top] == ["A", "C", "B"]
    assert top[-1].volume == Decimal(0)


@pytest.mark.asyncio
async def test_entries_without_display_name_are_excluded() -> None:
    client = StubClient({"A": "AUSD", "B.d": "", "C": "CUSD"}, {"A": "1", "B.d": "1000", "C": "2"})

    top = await InstrumentRanker(client).select_top_by_volume(5)

    assert [entry.internal_id for entry in top] == ["C", "A"]
    assert client.requested == ["A", "C"]


@pytest.mark.asyncio
async def test_k_larger_than_candidates_returns_all() -> None:
    client = StubClient({"A": "AUSD", "B": "BUSD"}, {"A": "1", "B": "2"})

    top = await InstrumentRanker(client).select_top_by_volume(20)

    assert len(top) == 2


@pytest.mark.asyncio
async def test_equal_volumes_keep_catalog_order() -> None:
    client = StubClient(
        {"A": "AUSD", "B": "BUSD", "C": "CUSD", "D": "DUSD"},
        {"A": "7", "B": "9", "C": "7", "D": "7"},
    )

    top = await InstrumentRanker(client).select_top_by_volume(4)

    assert [entry.internal_id for entry in top] == ["B", "A", "C", "D"]


@pytest.mark.asyncio
async def test_result_is_non_increasing() -> None:
    volumes = {f"P{i}": str(v) for i, v in enumerate([3, 14, 1, 59, 26, 5, 35, 8, 97, 93])}
    client = StubClient({internal_id: internal_id for internal_id in volumes}, volumes)

    top = await InstrumentRanker(client).select_top_by_volume(6)

    assert len(top) == 6
    assert all(first.volume >= second.volume for first, second in zip(top, top[1:]))
    assert top[0].internal_id == "P8"


@pytest.mark.asyncio
async def test_batch_size_is_forwarded() -> None:
    client = StubClient({"A": "AUSD"}, {"A": "1"})

    await InstrumentRanker(client, max_batch_size=3).select_top_by_volume(1)

    assert client.batch_sizes == [3]


@pytest.mark.asyncio
@pytest.mark.parametrize("k", [0, -3])
async def test_non_positive_k_is_rejected(k: int) -> None:
    client = StubClient({"A": "AUSD"}, {"A": "1"})

    with pytest.raises(ValueError):
        await InstrumentRanker(client).select_top_by_volume(k)


@pytest.mark.asyncio
async def test_catalog_failure_propagates() -> None:
    client = StubClient({}, {}, catalog_error=True)

    with pytest.raises(UpstreamError):
        await InstrumentRanker(client).select_top_by_volume(3)
