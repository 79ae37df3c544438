"""cryptarchive - archive of the most traded Kraken pairs.

Polls the Kraken public API, keeps the latest quote of the top pairs by 24h
volume in a DuckDB store, and publishes it over HTTP and as periodic CSV
snapshots.
"""

from cryptarchive.core.config import ArchiveConfig, ConfigManager
from cryptarchive.core.data.providers import KrakenClient
from cryptarchive.core.data.storage import ArchiveStore
from cryptarchive.core.services import ArchiveScheduler, InstrumentRanker, SnapshotWriter

__version__ = "0.1.0"

__all__ = [
    "ArchiveConfig",
    "ArchiveScheduler",
    "ArchiveStore",
    "ConfigManager",
    "InstrumentRanker",
    "KrakenClient",
    "SnapshotWriter",
]
