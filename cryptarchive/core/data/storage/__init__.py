"""Local persistence."""

from cryptarchive.core.data.storage.archive_store import ArchiveStore
from cryptarchive.core.data.storage.duckdb_factory import ArchiveDuckDBFactory, DuckDBFactoryConfig

__all__ = ["ArchiveStore", "ArchiveDuckDBFactory", "DuckDBFactoryConfig"]
