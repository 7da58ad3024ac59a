from __future__ import annotations

import sqlite3
from typing import Any

from ..connection import iso_utcnow
from ..schema import ensure_schema
from .base import BaseRepository


class VehicleMetadataRepository(BaseRepository):
    """Locally curated per-vehicle fields keyed by normalized registration."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        super().__init__(conn)
        ensure_schema(self.conn)

    def get(self, registration: str) -> dict[str, Any] | None:
        row = self._fetch_one_as_dict(
            "SELECT registration, fields, created_at, updated_at "
            "FROM vehicle_metadata WHERE registration = ?",
            (registration,),
        )
        if row is None:
            return None
        row["fields"] = self._loads(row["fields"], {})
        return row

    def all_fields(self) -> dict[str, dict[str, Any]]:
        rows = self._fetch_all_as_dicts("SELECT registration, fields FROM vehicle_metadata")
        return {row["registration"]: self._loads(row["fields"], {}) for row in rows}

    def set_field(self, registration: str, field: str, value: Any) -> bool:
        """Upsert one field. Returns True when the entry was newly created."""
        existing = self.get(registration)
        now = iso_utcnow()
        if existing is None:
            self._write(
                "INSERT INTO vehicle_metadata (registration, fields, created_at, updated_at) "
                "VALUES (?, ?, ?, ?)",
                (registration, self._dumps({field: value}), now, now),
            )
            return True
        fields = {**existing["fields"], field: value}
        self._write(
            "UPDATE vehicle_metadata SET fields = ?, updated_at = ? WHERE registration = ?",
            (self._dumps(fields), now, registration),
        )
        return False
