"""Shared plumbing for the stock cache repositories.

Rows come back as plain dicts keyed by column name. JSON columns go through
:meth:`BaseRepository._loads` / :meth:`BaseRepository._dumps`, and writes go
through :meth:`BaseRepository._write` so driver errors surface as
:class:`PersistenceError`.
"""

from __future__ import annotations

import json
import sqlite3
from typing import Any, Iterable

from ..connection import PersistenceError

Params = tuple[Any, ...] | None


def _as_dicts(cur: sqlite3.Cursor, rows: Iterable[tuple]) -> list[dict[str, Any]]:
    names = [column[0] for column in cur.description]
    return [dict(zip(names, row)) for row in rows]


class BaseRepository:
    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn

    def _fetch_all_as_dicts(self, query: str, params: Params = None) -> list[dict[str, Any]]:
        cur = self.conn.execute(query, params or ())
        return _as_dicts(cur, cur.fetchall())

    def _fetch_one_as_dict(self, query: str, params: Params = None) -> dict[str, Any] | None:
        cur = self.conn.execute(query, params or ())
        row = cur.fetchone()
        return _as_dicts(cur, [row])[0] if row else None

    def _write(self, query: str, params: Params = None) -> sqlite3.Cursor:
        """Run one write statement and commit; roll back and raise on failure."""
        try:
            cur = self.conn.execute(query, params or ())
            self.conn.commit()
        except sqlite3.Error as exc:
            self.conn.rollback()
            raise PersistenceError(f"Write failed: {exc}") from exc
        return cur

    @staticmethod
    def _loads(raw: str | None, default: Any) -> Any:
        if not raw:
            return default
        try:
            return json.loads(raw)
        except json.JSONDecodeError as exc:
            raise PersistenceError(f"Corrupt JSON column: {exc}") from exc

    @staticmethod
    def _dumps(value: Any) -> str:
        return json.dumps(value, ensure_ascii=False, separators=(",", ":"))
