"""Response models of the HTTP interface."""

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field


class StatusResponse(BaseModel):
    """Upstream clock versus local clock, plus store health."""

    server_time: int = Field(..., description="Upstream unix time")
    server_time_rfc: str = Field(..., description="Upstream time, RFC 1123")
    local_time: int = Field(..., description="Local unix time")
    time_diff: int = Field(..., description="Local minus upstream, seconds")
    database_ok: bool = Field(..., description="Archive store answers queries")


class ErrorResponse(BaseModel):
    """Error payload returned by every failing route."""

    success: bool = Field(False, description="Always false")
    error: str = Field(..., description="Error type")
    message: str = Field(..., description="Error message")
    details: dict[str, Any] | None = Field(None, description="Structured error context")
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC), description="Error timestamp")
    request_id: str | None = Field(None, description="Request id for tracing")
