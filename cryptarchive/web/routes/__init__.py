"""API routes."""

from cryptarchive.web.routes.archive_routes import router as archive_router

__all__ = ["archive_router"]
