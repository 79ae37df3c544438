"""Selection of the most actively traded instruments."""

from __future__ import annotations

from decimal import Decimal

from cryptarchive.core.data.providers import KrakenClient
from cryptarchive.core.logging import get_logger
from cryptarchive.core.models import Instrument, RankedInstrument

logger = get_logger("instrument_ranker")

DEFAULT_TOP_N = 20


class InstrumentRanker:
    """Ranks the whole upstream catalog by trailing 24h volume."""

    def __init__(self, client: KrakenClient, *, max_batch_size: int | None = None) -> None:
        self.client = client
        self.max_batch_size = max_batch_size

    async def candidates(self) -> list[Instrument]:
        """Catalog instruments with a display name, in catalog order."""
        catalog = await self.client.fetch_instrument_catalog()
        return [
            Instrument(internal_id=internal_id, display_name=entry.altname)
            for internal_id, entry in catalog.items()
            if entry.altname
        ]

    async def select_top_by_volume(self, k: int = DEFAULT_TOP_N) -> list[RankedInstrument]:
        """Return at most ``k`` instruments ordered by descending 24h volume.

        Instruments without a returned quote count as zero volume. Equal
        volumes keep catalog order.

        Raises:
            UpstreamError: when the catalog cannot be fetched.
        """
        if k <= 0:
            raise ValueError("k must be a positive integer")

        instruments = await self.candidates()
        quotes = await self.client.fetch_quotes(
            [instrument.internal_id for instrument in instruments],
            self.max_batch_size,
        )
        ranked = [
            RankedInstrument(
                instrument=instrument,
                volume=quotes[instrument.internal_id].volume if instrument.internal_id in quotes else Decimal(0),
            )
            for instrument in instruments
        ]
        ranked.sort(key=lambda entry: entry.volume, reverse=True)
        top = ranked[:k]

        for rank, entry in enumerate(top, start=1):
            logger.info(
                f"Pair #{rank}: {entry.display_name} (internal id: {entry.internal_id}, volume: {entry.volume:.2f})"
            )
        logger.info(f"Ranked {len(instruments)} instruments, {len(quotes)} quoted, kept {len(top)}")
        return top


__all__ = ["DEFAULT_TOP_N", "InstrumentRanker"]
