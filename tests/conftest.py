"""Pytest configuration and shared fixtures for the cryptarchive test suite."""

from __future__ import annotations

from collections.abc import Iterator

import pytest

from cryptarchive.core.data.storage import ArchiveStore
from cryptarchive.core.monitoring import MetricsCollector, configure_metrics_collector
from tests.fakes import FakeKrakenAPI


def pytest_addoption(parser: pytest.Parser) -> None:
    """Register command-line options for controlling integration tests."""

    parser.addoption(
        "--cryptarchive-run-integration",
        action="store_true",
        default=False,
        help="Run integration tests that call the live Kraken API.",
    )


def pytest_configure(config: pytest.Config) -> None:
    """Register the integration marker."""

    config.addinivalue_line(
        "markers",
        "integration: marks tests requiring network access to the live API",
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Skip integration tests unless explicitly requested."""

    if config.getoption("--cryptarchive-run-integration"):
        return

    skip_integration = pytest.mark.skip(
        reason="integration tests require --cryptarchive-run-integration",
    )
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_integration)


@pytest.fixture
def metrics() -> Iterator[MetricsCollector]:
    collector = MetricsCollector()
    configure_metrics_collector(collector)
    yield collector
    configure_metrics_collector(None)


@pytest.fixture
def store() -> Iterator[ArchiveStore]:
    archive = ArchiveStore(":memory:")
    yield archive
    archive.close()


@pytest.fixture
def fake_api() -> FakeKrakenAPI:
    return FakeKrakenAPI()
