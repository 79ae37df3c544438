"""Instrument and quote models."""

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


class Instrument(BaseModel):
    """A tradable pair as listed by the upstream catalog."""

    model_config = ConfigDict(frozen=True)

    internal_id: str
    display_name: str


class QuoteSample(BaseModel):
    """Prices captured for one instrument at a single instant."""

    model_config = ConfigDict(frozen=True)

    ask: Decimal = Field(default=Decimal(0), ge=0)
    bid: Decimal = Field(default=Decimal(0), ge=0)
    last: Decimal = Field(default=Decimal(0), ge=0)
    volume: Decimal = Field(default=Decimal(0), ge=0)
    high: Decimal = Field(default=Decimal(0), ge=0)
    low: Decimal = Field(default=Decimal(0), ge=0)


class RankedInstrument(BaseModel):
    """Instrument paired with the 24h volume used to order the selection."""

    model_config = ConfigDict(frozen=True)

    instrument: Instrument
    volume: Decimal = Decimal(0)

    @property
    def display_name(self) -> str:
        return self.instrument.display_name

    @property
    def internal_id(self) -> str:
        return self.instrument.internal_id


class ServerTime(BaseModel):
    """Upstream clock reading."""

    unixtime: int
    rfc1123: str = ""
