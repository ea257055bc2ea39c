"""Logging setup for labelsense.

Every module logs through the standard :mod:`logging` package. While an
image moves through the pipeline its id (and the batch it belongs to, if
any) is kept in a context variable and printed after each message, so
interleaved lines from concurrent analyses can be told apart::

    [INFO] 2024-05-02 10:41:07,311 - labelsense.services.label_detection - OCR completed: 42 words detected [image_id=698ddb3e]
"""

from __future__ import annotations

import logging
import sys
import time
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Iterator, TextIO

LOG_FORMAT = "[%(levelname)s] %(asctime)s - %(name)s - %(message)s"

# Libraries that log every request or decoded chunk at INFO/DEBUG.
NOISY_LOGGERS = ("httpx", "httpcore", "PIL", "pytesseract", "asyncio", "uvicorn.access")

_fields: ContextVar[tuple[tuple[str, Any], ...]] = ContextVar("labelsense_log_fields", default=())

_HANDLER_MARK = "_labelsense_handler"


class ContextualFormatter(logging.Formatter):
    """Formatter that appends the active image context as ``[key=value ...]``."""

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        pairs = _fields.get()
        if not pairs:
            return line
        rendered = " ".join(f"{key}={value}" for key, value in pairs)
        return f"{line} [{rendered}]"


@contextmanager
def log_context(**fields: Any) -> Iterator[None]:
    """Tag every log line emitted inside the block with ``fields``.

    Nested blocks add to (or override) the outer fields; the outer set is
    restored on exit. Each asyncio task sees its own copy.
    """
    merged = dict(_fields.get())
    merged.update(fields)
    token = _fields.set(tuple(merged.items()))
    try:
        yield
    finally:
        _fields.reset(token)


def current_log_context() -> dict[str, Any]:
    return dict(_fields.get())


def parse_log_level(value: str | int | None, default: int = logging.INFO) -> int:
    """Turn ``"debug"``/``"WARNING"``/``10`` into a level; unknown names give ``default``."""
    if isinstance(value, int):
        return value
    if not value:
        return default
    resolved = logging.getLevelName(value.strip().upper())
    if isinstance(resolved, int):
        return resolved
    return default


def _install_handler(level: int, stream: TextIO | None = None) -> None:
    root = logging.getLogger()
    for existing in [h for h in root.handlers if getattr(h, _HANDLER_MARK, False)]:
        root.removeHandler(existing)
    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(ContextualFormatter(LOG_FORMAT))
    setattr(handler, _HANDLER_MARK, True)
    root.addHandler(handler)
    root.setLevel(level)


def configure_logging(
    level: int | str = logging.INFO,
    third_party_level: int = logging.WARNING,
    stream: TextIO | None = None,
) -> None:
    """Route all logging to one stderr handler with the contextual format.

    Safe to call more than once (API lifespan, CLI entry point); the
    handler installed by an earlier call is replaced rather than doubled.

    Args:
        level: Level for the root logger, as a constant or a name.
        third_party_level: Level applied to :data:`NOISY_LOGGERS`.
        stream: Alternative output stream, stderr by default.
    """
    _install_handler(parse_log_level(level), stream)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(third_party_level)


def get_logger(name: str) -> logging.Logger:
    """Return ``logging.getLogger(name)``.

    When nothing has configured logging yet, a contextual stderr handler
    is installed at INFO so library use outside the CLI and API still
    produces readable output.
    """
    if not logging.getLogger().handlers:
        _install_handler(logging.INFO)
    return logging.getLogger(name)


@contextmanager
def log_duration(
    logger: logging.Logger, operation: str, level: int = logging.DEBUG
) -> Iterator[None]:
    """Log the start and end of ``operation`` with its duration in ms.

    A failure is logged at ERROR with the elapsed time and re-raised.
    """
    logger.log(level, "Starting: %s", operation)
    started = time.perf_counter()
    try:
        yield
    except Exception:
        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.error("Failed: %s after %.0f ms", operation, elapsed_ms)
        raise
    elapsed_ms = (time.perf_counter() - started) * 1000
    logger.log(level, "Completed: %s in %.0f ms", operation, elapsed_ms)


def log_exception(
    logger: logging.Logger,
    message: str,
    exc: BaseException,
    **context: Any,
) -> None:
    """Log ``exc`` with its traceback under ``message``, tagged with ``context``."""
    with log_context(**context):
        logger.error("%s: %s", message, exc, exc_info=exc)
