"""Periodic archive loop.

Each tick ranks the catalog, refreshes and upserts the top instruments, and
every ``export_every`` ticks writes a CSV snapshot of the whole store. Ticks
start on a fixed grid of ``interval_seconds``; a tick that overruns its slot
makes the loop skip the missed slots. The loop only waits between ticks, so a
stop request never interrupts a tick in progress.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from cryptarchive.core.config import SchedulerConfig
from cryptarchive.core.data.providers import KrakenClient
from cryptarchive.core.data.storage import ArchiveStore
from cryptarchive.core.exceptions import ExportError, StoreError, UpstreamError
from cryptarchive.core.logging import get_logger, log_context
from cryptarchive.core.models import RankedInstrument
from cryptarchive.core.monitoring import MetricsCollector, get_metrics_collector
from cryptarchive.core.services.ranking import InstrumentRanker
from cryptarchive.core.services.snapshot import SnapshotWriter

logger = get_logger("archive_scheduler")


class SchedulerState(str, Enum):
    """Lifecycle of an :class:`ArchiveScheduler`."""

    IDLE = "idle"
    RUNNING = "running"
    STOPPED = "stopped"


@dataclass
class TickReport:
    """Outcome of one archive tick."""

    cycle: int
    ranked: int = 0
    archived: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    ranking_failed: bool = False
    exported: str | None = None


def _local_timestamp() -> str:
    return datetime.now().astimezone().isoformat(timespec="seconds")


def _next_slot(scheduled: float, now: float, interval: float) -> float:
    """First grid slot after ``scheduled`` that is still ahead of ``now``."""
    slot = scheduled + interval
    if slot <= now:
        slot += ((now - slot) // interval + 1) * interval
    return slot


class ArchiveScheduler:
    """Drives ranking, persistence and snapshot export on a fixed interval."""

    def __init__(
        self,
        ranker: InstrumentRanker,
        client: KrakenClient,
        store: ArchiveStore,
        writer: SnapshotWriter,
        config: SchedulerConfig | None = None,
        *,
        metrics: MetricsCollector | None = None,
        timestamp: Callable[[], str] = _local_timestamp,
    ) -> None:
        self.ranker = ranker
        self.client = client
        self.store = store
        self.writer = writer
        self.config = config or SchedulerConfig()
        self._metrics = metrics
        self._timestamp = timestamp
        self.state = SchedulerState.IDLE
        self.tick_counter = 0
        self.cycles = 0
        self._task: asyncio.Task[None] | None = None

    @property
    def metrics(self) -> MetricsCollector:
        return self._metrics or get_metrics_collector()

    def start(self, stop_event: asyncio.Event) -> asyncio.Task[None]:
        """Schedule :meth:`run` on the running loop and return its task."""
        self._claim()
        self._task = asyncio.create_task(self._loop(stop_event), name="archive-scheduler")
        return self._task

    async def run(self, stop_event: asyncio.Event) -> None:
        """Tick every ``interval_seconds`` until ``stop_event`` is set."""
        self._claim()
        await self._loop(stop_event)

    def _claim(self) -> None:
        if self.state is not SchedulerState.IDLE:
            raise RuntimeError(f"Scheduler cannot start from state {self.state.value}")
        self.state = SchedulerState.RUNNING

    async def _loop(self, stop_event: asyncio.Event) -> None:
        interval = self.config.interval_seconds
        logger.info(
            f"Archive scheduler started: every {interval:g}s, top {self.config.top_n}, "
            f"snapshot every {self.config.export_every} ticks"
        )
        loop = asyncio.get_running_loop()
        next_tick = loop.time() + interval
        try:
            while not stop_event.is_set():
                try:
                    await asyncio.wait_for(stop_event.wait(), timeout=max(0.0, next_tick - loop.time()))
                except TimeoutError:
                    await self._guarded_tick()
                    next_tick = _next_slot(next_tick, loop.time(), interval)
                else:
                    break
        finally:
            self.state = SchedulerState.STOPPED
            logger.info("Archive scheduler stopped")

    async def _guarded_tick(self) -> None:
        try:
            await self.run_tick()
        except Exception:
            self.metrics.record_failure("tick")
            logger.exception(f"Archive cycle {self.cycles} aborted, continuing with the next one")

    async def run_tick(self) -> TickReport:
        """Run one archive cycle; never raises the pipeline's domain errors."""
        self.cycles += 1
        report = TickReport(cycle=self.cycles)
        with log_context(cycle=self.cycles):
            logger.info("Starting archive cycle")
            ranked = await self._rank(report)
            for entry in ranked:
                await self._archive_one(entry, report)

            self.tick_counter += 1
            remaining = max(self.config.export_every - self.tick_counter, 0)
            logger.info(
                f"Archive cycle {self.tick_counter}/{self.config.export_every} done "
                f"({len(report.archived)} archived, {len(report.failed)} failed), "
                f"next snapshot in {remaining} ticks"
            )
            if self.tick_counter >= self.config.export_every:
                report.exported = await self._export()

            self.metrics.record_cycle(len(report.archived), self.tick_counter)
        return report

    async def _rank(self, report: TickReport) -> list[RankedInstrument]:
        try:
            ranked = await self.ranker.select_top_by_volume(self.config.top_n)
        except UpstreamError as e:
            report.ranking_failed = True
            self.metrics.record_failure("ranking")
            logger.bind(error_code=e.error_code).error(f"Ranking failed, skipping persistence: {e.message}")
            return []
        report.ranked = len(ranked)
        return ranked

    async def _archive_one(self, entry: RankedInstrument, report: TickReport) -> None:
        try:
            sample = await self.client.fetch_quote(entry.internal_id)
        except UpstreamError as e:
            report.failed.append(entry.display_name)
            self.metrics.record_failure("quote")
            logger.bind(error_code=e.error_code).warning(
                f"Ticker fetch failed for {entry.internal_id}: {e.message}"
            )
            return

        try:
            await asyncio.to_thread(self.store.upsert, entry.display_name, sample, self._timestamp())
        except StoreError as e:
            report.failed.append(entry.display_name)
            self.metrics.record_failure("store")
            logger.bind(error_code=e.error_code).error(f"Upsert failed for {entry.display_name}: {e.message}")
            return

        report.archived.append(entry.display_name)
        logger.info(
            f"Archived {entry.display_name} | Ask: {sample.ask:.8f} | Bid: {sample.bid:.8f} | "
            f"Last: {sample.last:.8f} | High: {sample.high:.8f} | Low: {sample.low:.8f}"
        )

    async def _export(self) -> str | None:
        logger.info("Exporting global snapshot")
        try:
            name = await asyncio.to_thread(self.writer.write_all)
        except ExportError as e:
            self.metrics.record_export(success=False)
            self.metrics.record_failure("export")
            logger.bind(error_code=e.error_code).error(
                f"Snapshot export failed, retrying next tick: {e.message}"
            )
            return None
        self.metrics.record_export(success=True)
        self.tick_counter = 0
        logger.info(f"Snapshot exported: {name}")
        return name


__all__ = ["ArchiveScheduler", "SchedulerState", "TickReport"]
