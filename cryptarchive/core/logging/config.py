"""Options accepted by :func:`cryptarchive.core.logging.configure_logging`."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict


class LogConfig(BaseModel):
    """Where structured log lines go and from which level."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    level: str = "INFO"
    console_output: bool = True
    # Text stream for console lines; None means the current sys.stderr.
    console_stream: Any = None
    file_output: bool = False
    file_path: str | None = None
    extra: dict[str, Any] = {}


__all__ = ["LogConfig"]
