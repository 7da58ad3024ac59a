from __future__ import annotations

import sqlite3

from ..connection import PersistenceError, iso_utcnow
from .tables import SCHEMA_VERSION_SQL

CURRENT_SCHEMA_VERSION = 1


class SchemaMigrator:
    """Tracks which table layout a database file was created with.

    ``schema_version`` holds a single row. A file stamped with a version newer
    than this code understands is refused rather than silently reused.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn
        conn.executescript(SCHEMA_VERSION_SQL)

    def version(self) -> int | None:
        row = self.conn.execute("SELECT MAX(version) FROM schema_version").fetchone()
        return row[0] if row else None

    def stamp(self, version: int = CURRENT_SCHEMA_VERSION) -> None:
        current = self.version()
        if current is not None and current > version:
            raise PersistenceError(
                f"Database schema version {current} is newer than supported version {version}"
            )
        if current == version:
            return
        self.conn.execute("DELETE FROM schema_version")
        self.conn.execute(
            "INSERT INTO schema_version (version, applied_at) VALUES (?, ?)",
            (version, iso_utcnow()),
        )
