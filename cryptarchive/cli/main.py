"""Main entry point for the cryptarchive command line interface."""

from __future__ import annotations

import asyncio
import sys
import time
from pathlib import Path

import typer
import uvicorn

from cryptarchive.core.config import ArchiveConfig, ConfigManager
from cryptarchive.core.data.providers import KrakenClient
from cryptarchive.core.data.storage import ArchiveStore
from cryptarchive.core.exceptions import ArchiveError
from cryptarchive.core.logging import configure_logging
from cryptarchive.core.services import ArchiveScheduler, InstrumentRanker, SnapshotWriter, TickReport
from cryptarchive.web import create_app

from .utils import fail, render_records


def _config(ctx: typer.Context) -> ArchiveConfig:
    ctx.ensure_object(dict)
    return ctx.obj["config"]


def _writer(config: ArchiveConfig, store: ArchiveStore) -> SnapshotWriter:
    return SnapshotWriter(store, config.storage.csv_dir, prefix=config.storage.snapshot_prefix)


async def _archive_once(config: ArchiveConfig, store: ArchiveStore) -> TickReport:
    async with KrakenClient(config.upstream) as client:
        scheduler = ArchiveScheduler(
            InstrumentRanker(client, max_batch_size=config.upstream.batch_size),
            client,
            store,
            _writer(config, store),
            config.scheduler,
        )
        return await scheduler.run_tick()


def create_cli() -> typer.Typer:
    """Create the Typer application."""

    app = typer.Typer(add_completion=False, help="Kraken top-volume pair archive")

    @app.callback()
    def main(
        ctx: typer.Context,
        config_path: Path | None = typer.Option(
            None,
            "--config",
            "-c",
            help="TOML configuration file (default: ./cryptarchive.toml).",
        ),
        log_level: str | None = typer.Option(
            None,
            "--log-level",
            help="Logging level; overrides the configuration file.",
        ),
    ) -> None:
        ctx.ensure_object(dict)
        config = ConfigManager(config_path).get_config()
        if log_level:
            config.logging.level = log_level.upper()
        configure_logging(
            level=config.logging.level,
            file_output=config.logging.file is not None,
            file_path=config.logging.file,
        )
        ctx.obj["config"] = config

    @app.command("serve")
    def serve(
        ctx: typer.Context,
        host: str | None = typer.Option(None, "--host", help="Listen address."),
        port: int | None = typer.Option(None, "--port", help="Listen port."),
    ) -> None:
        """Reset the store, then serve the HTTP API while archiving every interval."""

        config = _config(ctx)
        app_instance = create_app(config)
        typer.echo("Server started. Press Ctrl+C to stop.")
        uvicorn.run(
            app_instance,
            host=host or config.web.host,
            port=port or config.web.port,
            log_level=config.logging.level.lower(),
        )

    @app.command("archive-once")
    def archive_once(ctx: typer.Context) -> None:
        """Run a single archive cycle against the configured store."""

        config = _config(ctx)
        try:
            with ArchiveStore(config.storage.db_path) as store:
                report = asyncio.run(_archive_once(config, store))
        except ArchiveError as error:
            raise fail(error) from error

        typer.echo(
            f"Cycle {report.cycle}: {report.ranked} ranked, {len(report.archived)} archived, "
            f"{len(report.failed)} failed"
        )
        if report.ranking_failed:
            typer.echo("Ranking failed; nothing was archived.", err=True)

    @app.command("export")
    def export(
        ctx: typer.Context,
        pair: str | None = typer.Option(None, "--pair", help="Export a single pair only."),
    ) -> None:
        """Write a CSV snapshot of the store."""

        config = _config(ctx)
        try:
            with ArchiveStore(config.storage.db_path) as store:
                writer = _writer(config, store)
                name = writer.write_one(pair) if pair else writer.write_all()
        except ArchiveError as error:
            raise fail(error) from error
        typer.echo(str(writer.artifact_path(name)))

    @app.command("show")
    def show(
        ctx: typer.Context,
        no_color: bool = typer.Option(False, "--no-color", help="Disable colorized output."),
    ) -> None:
        """Print the archived records."""

        config = _config(ctx)
        try:
            with ArchiveStore(config.storage.db_path) as store:
                records = store.all_records()
        except ArchiveError as error:
            raise fail(error) from error
        render_records(records, stream=sys.stdout, no_color=no_color)

    @app.command("server-time")
    def server_time(ctx: typer.Context) -> None:
        """Print the upstream server time and the local offset."""

        config = _config(ctx)

        async def _fetch():
            async with KrakenClient(config.upstream) as client:
                return await client.fetch_server_time()

        try:
            result = asyncio.run(_fetch())
        except ArchiveError as error:
            raise fail(error) from error

        offset = int(time.time()) - result.unixtime
        typer.echo(f"Unix timestamp: {result.unixtime}")
        typer.echo(f"RFC 1123: {result.rfc1123}")
        typer.echo(f"Offset from server: {offset} seconds")

    return app


app = create_cli()


def run() -> None:
    """Console script entry point."""
    app()


if __name__ == "__main__":
    run()
