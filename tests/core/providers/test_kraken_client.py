from __future__ import annotations

from decimal import Decimal

import httpx
import pytest

from cryptarchive.core.config import UpstreamConfig
from cryptarchive.core.data.providers import KrakenClient
from cryptarchive.core.exceptions import UpstreamError
from cryptarchive.core.monitoring import MetricsCollector
from tests.fakes import FakeKrakenAPI, ticker_payload


def _client(fake_api: FakeKrakenAPI, metrics: MetricsCollector, **kwargs) -> KrakenClient:
    return KrakenClient(UpstreamConfig(), transport=fake_api.transport, metrics=metrics, **kwargs)


@pytest.mark.asyncio
async def test_fetch_server_time(fake_api: FakeKrakenAPI, metrics: MetricsCollector) -> None:
    async with _client(fake_api, metrics) as client:
        server_time = await client.fetch_server_time()

    assert server_time.unixtime == 1_700_000_000
    assert server_time.rfc1123.startswith("Tue")
    assert fake_api.paths == ["/0/public/Time"]


@pytest.mark.asyncio
async def test_catalog_preserves_upstream_order(fake_api: FakeKrakenAPI, metrics: MetricsCollector) -> None:
    fake_api.add_pair("XXBTZUSD", "XBTUSD")
    fake_api.add_pair("XETHZUSD", "ETHUSD")
    fake_api.add_pair("SOLUSD", "SOLUSD")

    async with _client(fake_api, metrics) as client:
        catalog = await client.fetch_instrument_catalog()

    assert list(catalog) == ["XXBTZUSD", "XETHZUSD", "SOLUSD"]
    assert catalog["XETHZUSD"].altname == "ETHUSD"


@pytest.mark.asyncio
async def test_api_error_list_raises(fake_api: FakeKrakenAPI, metrics: MetricsCollector) -> None:
    fake_api.api_error = "EGeneral:Temporary lockout"

    async with _client(fake_api, metrics) as client:
        with pytest.raises(UpstreamError, match="Temporary lockout") as exc_info:
            await client.fetch_instrument_catalog()

    assert exc_info.value.details["api_errors"] == ["EGeneral:Temporary lockout"]


@pytest.mark.asyncio
async def test_http_error_status_raises(fake_api: FakeKrakenAPI, metrics: MetricsCollector) -> None:
    fake_api.status_code = 500

    async with _client(fake_api, metrics) as client:
        with pytest.raises(UpstreamError) as exc_info:
            await client.fetch_server_time()

    assert exc_info.value.status_code == 500
    assert exc_info.value.endpoint == "/Time"


@pytest.mark.asyncio
async def test_undecodable_body_raises(metrics: MetricsCollector) -> None:
    transport = httpx.MockTransport(lambda request: httpx.Response(200, text="<html>oops</html>"))

    async with KrakenClient(transport=transport, metrics=metrics) as client:
        with pytest.raises(UpstreamError, match="Undecodable"):
            await client.fetch_server_time()


@pytest.mark.asyncio
async def test_transport_failure_raises(metrics: MetricsCollector) -> None:
    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    async with KrakenClient(transport=httpx.MockTransport(refuse), metrics=metrics) as client:
        with pytest.raises(UpstreamError, match="ConnectError"):
            await client.fetch_server_time()

    assert metrics.registry.get_sample_value(
        "cryptarchive_upstream_failures_total", {"endpoint": "/Time"}
    ) == 1.0


@pytest.mark.asyncio
async def test_fetch_quotes_batches_with_delay_between_batches(
    fake_api: FakeKrakenAPI, metrics: MetricsCollector
) -> None:
    ids = [f"PAIR{i:02d}" for i in range(12)]
    for index, internal_id in enumerate(ids):
        fake_api.add_pair(internal_id, internal_id, ticker_payload("1", str(index)))

    sleeps: list[tuple[float, int]] = []

    async def record_sleep(delay: float) -> None:
        sleeps.append((delay, len(fake_api.ticker_calls)))

    async with _client(fake_api, metrics, sleep=record_sleep) as client:
        quotes = await client.fetch_quotes(ids)

    assert [len(batch) for batch in fake_api.ticker_calls] == [10, 2]
    assert fake_api.ticker_calls[0] == ids[:10]
    assert sleeps == [(pytest.approx(0.2), 1)]
    assert set(quotes) == set(ids)
    assert quotes["PAIR11"].volume == Decimal("11")


@pytest.mark.asyncio
async def test_single_batch_does_not_sleep(fake_api: FakeKrakenAPI, metrics: MetricsCollector) -> None:
    fake_api.add_pair("A", "A", ticker_payload("1", "1"))
    sleeps: list[float] = []

    async def record_sleep(delay: float) -> None:
        sleeps.append(delay)

    async with _client(fake_api, metrics, sleep=record_sleep) as client:
        await client.fetch_quotes(["A"])

    assert sleeps == []


@pytest.mark.asyncio
async def test_failing_batch_is_skipped(fake_api: FakeKrakenAPI, metrics: MetricsCollector) -> None:
    ids = ["A", "B", "C", "D"]
    for internal_id in ids:
        fake_api.add_pair(internal_id, internal_id, ticker_payload("1", "5"))
    fake_api.fail_for(["C"])

    async def no_sleep(delay: float) -> None:
        return None

    async with _client(fake_api, metrics, sleep=no_sleep) as client:
        quotes = await client.fetch_quotes(ids, max_batch_size=2)

    assert set(quotes) == {"A", "B"}
    assert len(fake_api.ticker_calls) == 2


@pytest.mark.asyncio
async def test_fetch_quotes_rejects_non_positive_batch(fake_api: FakeKrakenAPI, metrics: MetricsCollector) -> None:
    async with _client(fake_api, metrics) as client:
        with pytest.raises(ValueError):
            await client.fetch_quotes(["A"], max_batch_size=-1)


@pytest.mark.asyncio
async def test_fetch_quote_returns_sample(fake_api: FakeKrakenAPI, metrics: MetricsCollector) -> None:
    fake_api.add_pair("XXBTZUSD", "XBTUSD", ticker_payload("42000.1", "1234.5", ask="42000.2", bid="42000.0"))

    async with _client(fake_api, metrics) as client:
        sample = await client.fetch_quote("XXBTZUSD")

    assert sample.ask == Decimal("42000.2")
    assert sample.bid == Decimal("42000.0")
    assert sample.volume == Decimal("1234.5")
    assert fake_api.ticker_calls == [["XXBTZUSD"]]


@pytest.mark.asyncio
async def test_fetch_quote_without_data_raises(fake_api: FakeKrakenAPI, metrics: MetricsCollector) -> None:
    fake_api.add_pair("XXBTZUSD", "XBTUSD")

    async with _client(fake_api, metrics) as client:
        with pytest.raises(UpstreamError, match="No ticker data"):
            await client.fetch_quote("XXBTZUSD")


@pytest.mark.asyncio
async def test_requests_are_counted(fake_api: FakeKrakenAPI, metrics: MetricsCollector) -> None:
    async with _client(fake_api, metrics) as client:
        await client.fetch_server_time()
        await client.fetch_server_time()

    assert metrics.registry.get_sample_value(
        "cryptarchive_upstream_requests_total", {"endpoint": "/Time"}
    ) == 2.0


@pytest.mark.integration
@pytest.mark.asyncio
async def test_live_server_time() -> None:
    async with KrakenClient() as client:
        server_time = await client.fetch_server_time()

    assert server_time.unixtime > 1_600_000_000
