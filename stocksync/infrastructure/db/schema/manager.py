from __future__ import annotations

import sqlite3

from .migrations import SchemaMigrator
from .tables import (
    SCHEMA_STOCK_CACHE_SQL,
    SCHEMA_SYNC_RUNS_SQL,
    SCHEMA_VEHICLE_METADATA_SQL,
)


def ensure_schema(conn: sqlite3.Connection) -> None:
    """Create the stock cache tables and stamp the schema version.

    Safe to call on every connection; repositories do so on construction.
    """
    migrator = SchemaMigrator(conn)
    conn.executescript(
        SCHEMA_STOCK_CACHE_SQL + SCHEMA_VEHICLE_METADATA_SQL + SCHEMA_SYNC_RUNS_SQL
    )
    migrator.stamp()
    conn.commit()
