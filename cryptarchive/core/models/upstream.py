"""Typed views over the upstream JSON envelopes.

Every field defaults to empty so that a missing key decodes as "absent"
instead of failing the whole response. Numeric extraction from ticker
entries falls back to zero for missing or malformed values.
"""

from decimal import Decimal, InvalidOperation
from typing import Any

from pydantic import BaseModel, ConfigDict

from cryptarchive.core.models.market import QuoteSample


class Envelope(BaseModel):
    """Common response wrapper: ``{"error": [...], "result": ...}``."""

    model_config = ConfigDict(extra="ignore")

    error: list[str] = []
    result: Any = None


class AssetPairEntry(BaseModel):
    """Catalog entry of ``/AssetPairs``."""

    model_config = ConfigDict(extra="ignore")

    altname: str = ""
    wsname: str = ""


class TickerEntry(BaseModel):
    """Ticker entry of ``/Ticker``.

    ``a``/``b``/``c`` hold the ask, bid and last trade, price first.
    ``v``/``h``/``l`` hold ``[today, last 24 hours]`` values.
    """

    model_config = ConfigDict(extra="ignore")

    a: list[str] = []
    b: list[str] = []
    c: list[str] = []
    v: list[str] = []
    h: list[str] = []
    l: list[str] = []  # noqa: E741

    def to_sample(self) -> QuoteSample:
        return QuoteSample(
            ask=_pick(self.a, 0),
            bid=_pick(self.b, 0),
            last=_pick(self.c, 0),
            volume=_pick(self.v, 1),
            high=_pick(self.h, 1),
            low=_pick(self.l, 1),
        )


def _pick(values: list[str], index: int) -> Decimal:
    if index >= len(values):
        return Decimal(0)
    try:
        value = Decimal(values[index])
    except (InvalidOperation, TypeError):
        return Decimal(0)
    if not value.is_finite() or value < 0:
        return Decimal(0)
    return value
