from __future__ import annotations

import logging
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from stocksync.infrastructure.observability import (
    current_log_context,
    get_logger,
    log_context,
    log_exception,
)
from stocksync.infrastructure.observability.logging import ContextualFormatter


def _record(message: str) -> logging.LogRecord:
    return logging.LogRecord("stocksync.test", logging.INFO, __file__, 1, message, None, None)


def test_log_context_nests_and_restores() -> None:
    assert current_log_context() == {}

    with log_context(account_id="ACC1"):
        with log_context(trigger="scheduler"):
            assert current_log_context() == {"account_id": "ACC1", "trigger": "scheduler"}
        assert current_log_context() == {"account_id": "ACC1"}

    assert current_log_context() == {}


def test_contextual_formatter_appends_fields() -> None:
    formatter = ContextualFormatter("%(message)s")

    assert formatter.format(_record("plain")) == "plain"
    with log_context(account_id="ACC1", trigger="manual"):
        assert formatter.format(_record("Starting stock sync")) == (
            "Starting stock sync [account_id=ACC1 trigger=manual]"
        )


def test_log_exception_includes_traceback_and_context(caplog) -> None:
    caplog.set_level(logging.INFO)
    logger = get_logger("stocksync.test")

    try:
        raise RuntimeError("provider down")
    except RuntimeError as exc:
        log_exception(logger, "Stock sync failed", exc, page=2)

    record = caplog.records[-1]
    assert record.levelno == logging.ERROR
    assert record.getMessage() == "Stock sync failed: provider down"
    assert record.exc_info is not None
