"""Market-data providers."""

from cryptarchive.core.data.providers.kraken import KrakenClient

__all__ = ["KrakenClient"]
