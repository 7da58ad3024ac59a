from __future__ import annotations

SCHEMA_VERSION_SQL = """
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY,
    applied_at TEXT NOT NULL
);
"""

SCHEMA_STOCK_CACHE_SQL = """
CREATE TABLE IF NOT EXISTS stock_cache (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    account_id TEXT NOT NULL UNIQUE,
    listings TEXT NOT NULL DEFAULT '[]',
    last_sync_time TEXT,
    total_count INTEGER NOT NULL DEFAULT 0,
    sync_status TEXT NOT NULL DEFAULT 'in_progress'
        CHECK (sync_status IN ('success', 'failed', 'in_progress')),
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
"""

SCHEMA_VEHICLE_METADATA_SQL = """
CREATE TABLE IF NOT EXISTS vehicle_metadata (
    registration TEXT PRIMARY KEY,
    fields TEXT NOT NULL DEFAULT '{}',
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
"""

SCHEMA_SYNC_RUNS_SQL = """
CREATE TABLE IF NOT EXISTS sync_runs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    account_id TEXT NOT NULL,
    "trigger" TEXT NOT NULL,
    started_at TEXT NOT NULL,
    finished_at TEXT,
    status TEXT NOT NULL,
    pages_fetched INTEGER DEFAULT 0,
    listings_fetched INTEGER DEFAULT 0,
    listings_kept INTEGER DEFAULT 0,
    error TEXT
);
CREATE INDEX IF NOT EXISTS idx_sync_runs_account_id ON sync_runs (account_id);
"""
