"""Command line interface."""

from cryptarchive.cli.main import app, create_cli

__all__ = ["app", "create_cli"]
