"""Logging utilities for stocksync.

Every module asks for its logger through :func:`get_logger`. Sync runs and
scheduler ticks wrap their work in :func:`log_context` so each line carries
the account and trigger it belongs to.
"""

from __future__ import annotations

import logging
import os
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Iterator

_log_context: ContextVar[dict[str, Any]] = ContextVar("log_context", default={})

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
_QUIET_LOGGERS = ("httpx", "httpcore", "asyncio", "uvicorn.access")
_configured = False


class ContextualFormatter(logging.Formatter):
    """Appends ``[key=value ...]`` for the active :func:`log_context`."""

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        fields = _log_context.get()
        if not fields:
            return message
        suffix = " ".join(f"{key}={value}" for key, value in fields.items())
        return f"{message} [{suffix}]"


@contextmanager
def log_context(**fields: Any) -> Iterator[None]:
    """Add ``fields`` to every log line emitted inside the block.

    Usage::

        with log_context(account_id="10012345", trigger="scheduler"):
            logger.info("Starting sync")

    Nested blocks extend the outer fields; the outer set is restored on exit.
    """
    token = _log_context.set({**_log_context.get(), **fields})
    try:
        yield
    finally:
        _log_context.reset(token)


def current_log_context() -> dict[str, Any]:
    return dict(_log_context.get())


def _resolve_level(level: int | str | None) -> int:
    if level is None:
        level = os.environ.get("LOG_LEVEL", "INFO")
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.strip().upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def _stream_handler(stream=None) -> logging.Handler:
    handler = logging.StreamHandler(stream)
    handler.setFormatter(ContextualFormatter(LOG_FORMAT))
    return handler


def configure_logging(
    level: int | str | None = None,
    third_party_level: int = logging.WARNING,
) -> None:
    """Install the stderr handler on the root logger.

    ``level`` accepts a number or a name such as ``"DEBUG"``; when omitted the
    ``LOG_LEVEL`` environment variable is used, then ``INFO``. The CLI group
    and the ASGI lifespan call this; only the first call has an effect.
    """
    global _configured
    if _configured:
        return
    _configured = True

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(_stream_handler(sys.stderr))
    root.setLevel(_resolve_level(level))

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(third_party_level)


def get_logger(name: str) -> logging.Logger:
    """Return the logger for ``name``.

    Before :func:`configure_logging` runs, and when nothing else installed a
    root handler, the logger gets its own stream handler at INFO.
    """
    logger = logging.getLogger(name)
    if not _configured and not logger.handlers and not logging.getLogger().handlers:
        logger.addHandler(_stream_handler())
        logger.setLevel(logging.INFO)
    return logger


def log_exception(
    logger: logging.Logger,
    message: str,
    exc: BaseException,
    **context: Any,
) -> None:
    """Log ``exc`` with its traceback and extra context fields."""
    with log_context(**context):
        logger.error("%s: %s", message, exc, exc_info=exc)
