"""Archive pipeline services."""

from cryptarchive.core.services.ranking import DEFAULT_TOP_N, InstrumentRanker
from cryptarchive.core.services.scheduler import ArchiveScheduler, SchedulerState, TickReport
from cryptarchive.core.services.snapshot import SnapshotWriter

__all__ = [
    "ArchiveScheduler",
    "DEFAULT_TOP_N",
    "InstrumentRanker",
    "SchedulerState",
    "SnapshotWriter",
    "TickReport",
]
