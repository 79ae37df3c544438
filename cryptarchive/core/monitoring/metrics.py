"""Prometheus metrics helpers for the archive service."""

from __future__ import annotations

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, generate_latest


class MetricsCollector:
    """Collects and exposes Prometheus metrics for upstream calls and archive cycles."""

    def __init__(self, *, registry: CollectorRegistry | None = None) -> None:
        self.registry = registry or CollectorRegistry()
        self.upstream_latency_seconds = Histogram(
            "cryptarchive_upstream_latency_seconds",
            "Latency distribution for market-data API requests.",
            ("endpoint",),
            buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, float("inf")),
            registry=self.registry,
        )
        self.upstream_requests_total = Counter(
            "cryptarchive_upstream_requests_total",
            "Total count of market-data API requests.",
            ("endpoint",),
            registry=self.registry,
        )
        self.upstream_failures_total = Counter(
            "cryptarchive_upstream_failures_total",
            "Total count of failed market-data API requests.",
            ("endpoint",),
            registry=self.registry,
        )
        self.archive_cycles_total = Counter(
            "cryptarchive_archive_cycles_total",
            "Archive cycles executed by the scheduler.",
            registry=self.registry,
        )
        self.archived_records_total = Counter(
            "cryptarchive_archived_records_total",
            "Records upserted into the archive store.",
            registry=self.registry,
        )
        self.archive_failures_total = Counter(
            "cryptarchive_archive_failures_total",
            "Instrument-level archive failures grouped by stage.",
            ("stage",),
            registry=self.registry,
        )
        self.snapshot_exports_total = Counter(
            "cryptarchive_snapshot_exports_total",
            "Snapshot export attempts grouped by outcome.",
            ("status",),
            registry=self.registry,
        )
        self.ticks_since_export = Gauge(
            "cryptarchive_ticks_since_export",
            "Scheduler ticks counted since the last successful snapshot export.",
            registry=self.registry,
        )

    def observe_request(self, endpoint: str, latency_seconds: float, *, success: bool = True) -> None:
        """Record an upstream request execution."""

        self.upstream_latency_seconds.labels(endpoint=endpoint).observe(latency_seconds)
        self.upstream_requests_total.labels(endpoint=endpoint).inc()
        if not success:
            self.upstream_failures_total.labels(endpoint=endpoint).inc()

    def record_cycle(self, archived: int, tick_counter: int) -> None:
        """Record a finished scheduler tick."""

        self.archive_cycles_total.inc()
        if archived:
            self.archived_records_total.inc(archived)
        self.ticks_since_export.set(tick_counter)

    def record_failure(self, stage: str) -> None:
        """Count an instrument or tick level failure."""

        label = stage if stage in _ALLOWED_STAGES else "__other__"
        self.archive_failures_total.labels(stage=label).inc()

    def record_export(self, *, success: bool) -> None:
        """Count a snapshot export attempt."""

        self.snapshot_exports_total.labels(status="success" if success else "failure").inc()

    def render(self) -> bytes:
        """Render metrics in Prometheus exposition format."""

        return generate_latest(self.registry)


_DEFAULT_COLLECTOR: MetricsCollector | None = None


def get_metrics_collector() -> MetricsCollector:
    """Return the global metrics collector instance."""

    global _DEFAULT_COLLECTOR
    if _DEFAULT_COLLECTOR is None:
        _DEFAULT_COLLECTOR = MetricsCollector()
    return _DEFAULT_COLLECTOR


def configure_metrics_collector(collector: MetricsCollector | None) -> None:
    """Override the global metrics collector for application wiring or tests."""

    global _DEFAULT_COLLECTOR
    _DEFAULT_COLLECTOR = collector


_ALLOWED_STAGES = {
    "ranking",
    "quote",
    "store",
    "export",
    "tick",
}
