from __future__ import annotations

import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path

from .config import DB_PATH_ENV, DatabaseConfig, get_db_path


class PersistenceError(Exception):
    """Raised when the SQLite store cannot be opened, read or written."""


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_iso(moment: datetime) -> str:
    """Format an aware datetime as fixed-width ISO-8601 UTC with ``Z`` suffix.

    Microseconds are always written so stored timestamps compare correctly
    as plain strings inside SQL.
    """

    stamp = moment.astimezone(timezone.utc).isoformat(timespec="microseconds")
    return stamp.replace("+00:00", "Z")


def iso_utcnow() -> str:
    return to_iso(utcnow())


def apply_pragmas(
    conn: sqlite3.Connection,
    *,
    enable_wal: bool = True,
    busy_timeout_ms: int | None = None,
) -> None:
    """WAL lets the API read the cache while a sync rewrites it."""

    statements = []
    if enable_wal:
        statements.append("PRAGMA journal_mode=WAL")
    if busy_timeout_ms is not None:
        statements.append(f"PRAGMA busy_timeout={int(busy_timeout_ms)}")
    for statement in statements:
        try:
            conn.execute(statement)
        except sqlite3.Error as exc:
            raise PersistenceError(f"{statement} failed: {exc}") from exc


@contextmanager
def get_connection(
    db_path: str | Path | None = None,
    *,
    timeout: float | None = None,
    enable_wal: bool | None = None,
    check_same_thread: bool = True,
) -> Iterator[sqlite3.Connection]:
    """Open the stock cache database and close it when the block exits.

    Arguments left as ``None`` come from ``config.json`` (see
    :class:`DatabaseConfig`); the path also honours ``STOCKSYNC_DB_PATH``.
    """

    config = DatabaseConfig.read()
    path = Path(db_path) if db_path is not None else get_db_path()
    wait = config.timeout if timeout is None else timeout
    wal = config.enable_wal if enable_wal is None else enable_wal

    path.parent.mkdir(parents=True, exist_ok=True)
    try:
        conn = sqlite3.connect(path, timeout=wait, check_same_thread=check_same_thread)
    except sqlite3.Error as exc:
        raise PersistenceError(
            f"Cannot open stock cache at {path} (set {DB_PATH_ENV} to move it): {exc}"
        ) from exc
    try:
        apply_pragmas(conn, enable_wal=wal, busy_timeout_ms=int(wait * 1000))
        yield conn
    finally:
        conn.close()
