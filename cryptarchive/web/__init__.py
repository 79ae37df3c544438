"""HTTP interface over the archive."""

from cryptarchive.web.app import create_app

__all__ = ["create_app"]
