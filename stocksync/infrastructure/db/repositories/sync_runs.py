from __future__ import annotations

import sqlite3
from typing import Any

from ..schema import ensure_schema
from .base import BaseRepository


class SyncRunRepository(BaseRepository):
    """Append-only history of real sync attempts."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        super().__init__(conn)
        ensure_schema(self.conn)

    def start(self, account_id: str, *, trigger: str, started_at: str) -> int:
        cur = self._write(
            'INSERT INTO sync_runs (account_id, "trigger", started_at, status) '
            "VALUES (?, ?, ?, 'running')",
            (account_id, trigger, started_at),
        )
        return cur.lastrowid or 0

    def finish(
        self,
        run_id: int,
        *,
        status: str,
        finished_at: str,
        pages_fetched: int = 0,
        listings_fetched: int = 0,
        listings_kept: int = 0,
        error: str | None = None,
    ) -> None:
        self._write(
            """
            UPDATE sync_runs
            SET status = ?, finished_at = ?, pages_fetched = ?, listings_fetched = ?,
                listings_kept = ?, error = ?
            WHERE id = ?
            """,
            (
                status,
                finished_at,
                pages_fetched,
                listings_fetched,
                listings_kept,
                error,
                run_id,
            ),
        )

    def list_recent(self, account_id: str, limit: int = 20) -> list[dict[str, Any]]:
        return self._fetch_all_as_dicts(
            """
            SELECT id, account_id, "trigger", started_at, finished_at, status,
                   pages_fetched, listings_fetched, listings_kept, error
            FROM sync_runs WHERE account_id = ?
            ORDER BY id DESC LIMIT ?
            """,
            (account_id, limit),
        )
