"""Data models."""

from cryptarchive.core.models.market import (
    Instrument,
    QuoteSample,
    RankedInstrument,
    ServerTime,
)
from cryptarchive.core.models.records import ArchiveRecord
from cryptarchive.core.models.upstream import AssetPairEntry, Envelope, TickerEntry

__all__ = [
    "ArchiveRecord",
    "AssetPairEntry",
    "Envelope",
    "Instrument",
    "QuoteSample",
    "RankedInstrument",
    "ServerTime",
    "TickerEntry",
]
