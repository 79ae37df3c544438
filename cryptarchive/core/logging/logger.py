"""Structured JSON-lines logging on top of loguru.

Every record carries a ``trace_id``; records emitted inside
:func:`log_context` also carry the context fields (the archive scheduler
tags each tick with its ``cycle`` number this way).
"""

from __future__ import annotations

import json
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, datetime
from pathlib import Path
from typing import IO, Any, Iterator
from uuid import uuid4

from loguru import logger

from cryptarchive.core.logging.config import LogConfig

_trace_id: ContextVar[str | None] = ContextVar("cryptarchive_trace_id", default=None)
_context: ContextVar[dict[str, Any]] = ContextVar("cryptarchive_log_context", default={})

_TOP_LEVEL_FIELDS = ("trace_id", "error_code", "component")


def _ensure_trace_id() -> str:
    trace_id = _trace_id.get()
    if trace_id is None:
        trace_id = uuid4().hex
        _trace_id.set(trace_id)
    return trace_id


def _patch_record(record: dict[str, Any]) -> None:
    extra = record["extra"]
    if not extra.get("trace_id"):
        extra["trace_id"] = _ensure_trace_id()
    for key, value in _context.get().items():
        if extra.get(key) is None:
            extra[key] = value
    for key in ("component", "error_code"):
        extra.setdefault(key, None)


def _to_json(record: dict[str, Any]) -> str:
    extra = record["extra"]
    payload: dict[str, Any] = {
        "timestamp": record["time"].isoformat() if "time" in record else datetime.now(UTC).isoformat(),
        "level": record["level"].name,
        "message": record["message"],
    }
    payload.update({key: extra.get(key) for key in _TOP_LEVEL_FIELDS})

    context = {key: value for key, value in extra.items() if key not in _TOP_LEVEL_FIELDS}
    if context:
        payload["context"] = context
    exception = record.get("exception")
    if exception and exception.type is not None:
        payload["exception"] = f"{exception.type.__name__}: {exception.value}"
    return json.dumps(payload, default=str)


class _JsonLinesSink:
    """Loguru sink writing one JSON object per line.

    Without a stream or a path the sink writes to whatever ``sys.stderr`` is
    at emit time.
    """

    def __init__(self, stream: IO[str] | None = None, path: str | None = None) -> None:
        self._stream = stream
        self._path = Path(path) if path else None
        if self._path is not None:
            self._path.parent.mkdir(parents=True, exist_ok=True)

    def __call__(self, message: Any) -> None:
        line = _to_json(message.record) + "\n"
        if self._path is not None:
            with self._path.open("a", encoding="utf-8") as file:
                file.write(line)
            return
        stream = self._stream or sys.stderr
        stream.write(line)
        stream.flush()


def _apply(config: LogConfig) -> None:
    level = config.level.upper()
    handlers: list[dict[str, Any]] = []
    if config.console_output:
        handlers.append({"sink": _JsonLinesSink(stream=config.console_stream), "level": level})
    if config.file_output and config.file_path:
        handlers.append({"sink": _JsonLinesSink(path=config.file_path), "level": level})
    logger.configure(handlers=handlers, patcher=_patch_record, extra=dict(config.extra))


def configure_logging(level: str = "INFO", **kwargs: Any) -> None:
    """(Re)configure the global logger.

    Args:
        level: minimum level name
        **kwargs: remaining :class:`LogConfig` fields
    """

    _apply(LogConfig(level=level, **kwargs))


def get_logger(name: str | None = None) -> Any:
    """Return the global logger bound to the component ``name``."""

    return logger.bind(component=name) if name else logger


def bind(**kwargs: Any) -> Any:
    return logger.bind(**kwargs)


@contextmanager
def log_context(*, trace_id: str | None = None, **extra: Any) -> Iterator[str]:
    """Attach a trace id and extra fields to every record logged inside the block."""

    context_token = _context.set({**_context.get(), **extra})
    active_trace = trace_id or uuid4().hex
    trace_token = _trace_id.set(active_trace)
    try:
        yield active_trace
    finally:
        _trace_id.reset(trace_token)
        _context.reset(context_token)


def current_trace_id() -> str:
    return _ensure_trace_id()


configure_logging()


__all__ = [
    "bind",
    "configure_logging",
    "current_trace_id",
    "get_logger",
    "log_context",
    "logger",
]
