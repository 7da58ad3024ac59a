from __future__ import annotations

import sqlite3
from typing import Any

from ..connection import PersistenceError
from ..schema import ensure_schema
from .base import BaseRepository


class StockCacheRepository(BaseRepository):
    """One cached stock document per provider account.

    The row doubles as the sync lock: ``sync_status = 'in_progress'`` with a
    recent ``updated_at`` means another run owns the account.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        super().__init__(conn)
        ensure_schema(self.conn)

    def get(self, account_id: str) -> dict[str, Any] | None:
        row = self._fetch_one_as_dict(
            """
            SELECT account_id, listings, last_sync_time, total_count, sync_status,
                   created_at, updated_at
            FROM stock_cache WHERE account_id = ?
            """,
            (account_id,),
        )
        if row is None:
            return None
        row["listings"] = self._loads(row["listings"], [])
        return row

    def list_account_ids(self) -> list[str]:
        rows = self._fetch_all_as_dicts(
            "SELECT account_id FROM stock_cache ORDER BY account_id"
        )
        return [row["account_id"] for row in rows]

    def try_acquire_sync_lock(
        self, account_id: str, *, now: str, stale_before: str
    ) -> bool:
        """Mark the account ``in_progress`` unless a live lock already exists.

        Creates the row on the first run. A lock whose ``updated_at`` is not
        newer than ``stale_before`` is taken over. Returns False, leaving the
        row untouched, when another run holds the lock.
        """
        before = self.conn.total_changes
        self._write(
            """
            INSERT INTO stock_cache (
                account_id, listings, total_count, sync_status, created_at, updated_at
            ) VALUES (?, '[]', 0, 'in_progress', ?, ?)
            ON CONFLICT(account_id) DO UPDATE SET
                sync_status = 'in_progress',
                updated_at = excluded.updated_at
            WHERE NOT (
                stock_cache.sync_status = 'in_progress'
                AND stock_cache.updated_at > ?
            )
            """,
            (account_id, now, now, stale_before),
        )
        return self.conn.total_changes > before

    def mark_success(
        self, account_id: str, listings: list[dict[str, Any]], *, synced_at: str
    ) -> None:
        """Replace the cached listings wholesale and flag the run successful."""
        cur = self._write(
            """
            UPDATE stock_cache
            SET listings = ?, last_sync_time = ?, total_count = ?,
                sync_status = 'success', updated_at = ?
            WHERE account_id = ?
            """,
            (self._dumps(listings), synced_at, len(listings), synced_at, account_id),
        )
        if cur.rowcount == 0:
            raise PersistenceError(f"No stock cache row for account {account_id}")

    def mark_failed(self, account_id: str, *, failed_at: str) -> None:
        """Flip the status to ``failed``; listings and last sync time stay."""
        self._write(
            "UPDATE stock_cache SET sync_status = 'failed', updated_at = ? "
            "WHERE account_id = ?",
            (failed_at, account_id),
        )

    def replace_listings(
        self,
        account_id: str,
        listings: list[dict[str, Any]],
        *,
        expected_updated_at: str | None,
    ) -> bool:
        """Rewrite listings in place if the row is unchanged since it was read.

        Status and timestamps are left alone. Returns False without writing
        when a sync or lock takeover has touched the row since
        ``expected_updated_at`` was read.
        """
        cur = self._write(
            "UPDATE stock_cache SET listings = ? WHERE account_id = ? AND updated_at IS ?",
            (self._dumps(listings), account_id, expected_updated_at),
        )
        return cur.rowcount > 0
