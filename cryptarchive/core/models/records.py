"""Persisted archive rows."""

from decimal import Decimal

from pydantic import BaseModel, field_serializer

from cryptarchive.core.models.market import QuoteSample


class ArchiveRecord(BaseModel):
    """One row of the archive, unique per ``pair``."""

    pair: str
    ask: Decimal
    bid: Decimal
    last: Decimal
    volume: Decimal
    high: Decimal
    low: Decimal
    timestamp: str

    @classmethod
    def from_sample(cls, pair: str, sample: QuoteSample, timestamp: str) -> "ArchiveRecord":
        return cls(
            pair=pair,
            ask=sample.ask,
            bid=sample.bid,
            last=sample.last,
            volume=sample.volume,
            high=sample.high,
            low=sample.low,
            timestamp=timestamp,
        )

    @field_serializer("ask", "bid", "last", "volume", "high", "low", when_used="json")
    def serialize_decimal(self, value: Decimal) -> float:
        """Serialize prices as JSON numbers."""
        return float(value)
