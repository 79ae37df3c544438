"""Kraken public REST API client.

Wraps the three read-only endpoints the archive needs: server time, the
asset-pair catalog and the ticker lookup. Ticker lookups over many pairs are
split into fixed-size batches separated by a fixed delay so that the request
rate stays within the public API limits regardless of catalog size.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable, Iterable
from typing import Any

import httpx
from pydantic import ValidationError

from cryptarchive.core.config import UpstreamConfig
from cryptarchive.core.exceptions import UpstreamError
from cryptarchive.core.logging import get_logger
from cryptarchive.core.models import AssetPairEntry, Envelope, QuoteSample, ServerTime, TickerEntry
from cryptarchive.core.monitoring import MetricsCollector, get_metrics_collector

logger = get_logger("kraken_client")

TIME_ENDPOINT = "/Time"
ASSET_PAIRS_ENDPOINT = "/AssetPairs"
TICKER_ENDPOINT = "/Ticker"


class KrakenClient:
    """Async client for the Kraken public market-data endpoints."""

    def __init__(
        self,
        config: UpstreamConfig | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        metrics: MetricsCollector | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.config = config or UpstreamConfig()
        self._transport = transport
        self._metrics = metrics
        self._sleep = sleep
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "KrakenClient":
        self._ensure_client()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    @property
    def metrics(self) -> MetricsCollector:
        return self._metrics or get_metrics_collector()

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.config.base_url,
                timeout=httpx.Timeout(self.config.timeout),
                headers={"User-Agent": self.config.user_agent},
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the underlying connection pool."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _get_result(self, endpoint: str, params: dict[str, str] | None = None) -> Any:
        """GET ``endpoint`` and return the ``result`` payload of the envelope.

        Raises:
            UpstreamError: on transport failure, HTTP error status, undecodable
                body or a non-empty ``error`` list.
        """
        client = self._ensure_client()
        started = time.perf_counter()
        success = False
        try:
            try:
                response = await client.get(endpoint, params=params)
                response.raise_for_status()
            except httpx.HTTPStatusError as e:
                raise UpstreamError(
                    f"HTTP {e.response.status_code} from {endpoint}",
                    endpoint=endpoint,
                    status_code=e.response.status_code,
                ) from e
            except httpx.HTTPError as e:
                raise UpstreamError(
                    f"Request to {endpoint} failed: {type(e).__name__}: {e}",
                    endpoint=endpoint,
                ) from e

            try:
                envelope = Envelope.model_validate(response.json())
            except ValueError as e:
                raise UpstreamError(f"Undecodable response from {endpoint}: {e}", endpoint=endpoint) from e

            if envelope.error:
                raise UpstreamError(
                    f"API error from {endpoint}: {', '.join(envelope.error)}",
                    endpoint=endpoint,
                    details={"api_errors": list(envelope.error)},
                )
            if envelope.result is None:
                raise UpstreamError(f"Missing result in response from {endpoint}", endpoint=endpoint)

            success = True
            return envelope.result
        finally:
            self.metrics.observe_request(endpoint, time.perf_counter() - started, success=success)

    async def fetch_server_time(self) -> ServerTime:
        """Return the upstream clock."""
        result = await self._get_result(TIME_ENDPOINT)
        try:
            return ServerTime.model_validate(result)
        except ValidationError as e:
            raise UpstreamError(f"Malformed server time payload: {e}", endpoint=TIME_ENDPOINT) from e

    async def fetch_instrument_catalog(self) -> dict[str, AssetPairEntry]:
        """Return the asset-pair catalog keyed by internal id, in upstream order."""
        result = await self._get_result(ASSET_PAIRS_ENDPOINT)
        if not isinstance(result, dict):
            raise UpstreamError("Asset pair catalog is not an object", endpoint=ASSET_PAIRS_ENDPOINT)

        catalog: dict[str, AssetPairEntry] = {}
        for internal_id, raw in result.items():
            try:
                catalog[internal_id] = AssetPairEntry.model_validate(raw)
            except ValidationError as e:
                logger.warning(f"Skipping malformed catalog entry {internal_id}: {e}")
        return catalog

    async def fetch_quotes(
        self,
        internal_ids: Iterable[str],
        max_batch_size: int | None = None,
    ) -> dict[str, QuoteSample]:
        """Fetch tickers for ``internal_ids`` in contiguous batches.

        A failing batch is logged and skipped; the returned mapping then simply
        lacks the instruments of that batch.
        """
        ids = list(internal_ids)
        batch_size = max_batch_size or self.config.batch_size
        if batch_size <= 0:
            raise ValueError("max_batch_size must be positive")

        quotes: dict[str, QuoteSample] = {}
        for batch_index, start in enumerate(range(0, len(ids), batch_size)):
            if batch_index:
                await self._sleep(self.config.batch_delay)
            batch = ids[start : start + batch_size]
            try:
                result = await self._get_result(TICKER_ENDPOINT, {"pair": ",".join(batch)})
                quotes.update(self._decode_tickers(result))
            except UpstreamError as e:
                logger.bind(error_code=e.error_code).warning(
                    f"Ticker batch {batch_index + 1} ({len(batch)} pairs) skipped: {e.message}"
                )
        return quotes

    async def fetch_quote(self, internal_id: str) -> QuoteSample:
        """Fetch a fresh ticker for a single instrument."""
        result = await self._get_result(TICKER_ENDPOINT, {"pair": internal_id})
        tickers = self._decode_tickers(result)
        if internal_id in tickers:
            return tickers[internal_id]
        if len(tickers) == 1:
            return next(iter(tickers.values()))
        raise UpstreamError(f"No ticker data found for {internal_id}", endpoint=TICKER_ENDPOINT)

    @staticmethod
    def _decode_tickers(result: Any) -> dict[str, QuoteSample]:
        if not isinstance(result, dict):
            raise UpstreamError("Ticker payload is not an object", endpoint=TICKER_ENDPOINT)

        tickers: dict[str, QuoteSample] = {}
        for internal_id, raw in result.items():
            try:
                tickers[internal_id] = TickerEntry.model_validate(raw).to_sample()
            except ValidationError as e:
                logger.warning(f"Skipping malformed ticker entry {internal_id}: {e}")
        return tickers


__all__ = ["KrakenClient", "TIME_ENDPOINT", "ASSET_PAIRS_ENDPOINT", "TICKER_ENDPOINT"]
