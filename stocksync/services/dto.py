"""
Centralized DTOs returned by the stocksync services.

Field names are snake_case in Python and camelCase on the wire, matching the
JSON the dealership UI already consumes.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    model_config = ConfigDict(
        extra="forbid", alias_generator=to_camel, populate_by_name=True
    )


# --- Stock DTOs ---
class StockSnapshotDTO(WireModel):
    results: list[dict[str, Any]] = Field(default_factory=list)
    last_sync_time: str | None = None
    total_vehicles: int = 0
    sync_status: str = "unknown"


class SyncStatusDTO(WireModel):
    last_sync_time: str | None = None
    sync_status: str = "unknown"
    total_count: int = 0
    next_sync_times: list[str] = Field(default_factory=list)
    next_sync_at: str | None = None


class SyncTriggerDTO(WireModel):
    success: bool
    message: str
    total_listings: int | None = None
    skipped: bool | None = None
    error: str | None = None


class SyncRunDTO(WireModel):
    id: int
    account_id: str
    trigger: str
    started_at: str
    finished_at: str | None = None
    status: str
    pages_fetched: int = 0
    listings_fetched: int = 0
    listings_kept: int = 0
    error: str | None = None


# --- Lookup DTOs ---
class LookupResultDTO(WireModel):
    source: Literal["local", "fallback"]
    vehicle: dict[str, Any]
    features: list[Any] = Field(default_factory=list)
    media: dict[str, Any] = Field(default_factory=dict)


# --- Overlay DTOs ---
class OverlayEntryDTO(WireModel):
    registration: str
    reserve_link: str = ""
    fields: dict[str, Any] = Field(default_factory=dict)


class OverlayUpdateDTO(WireModel):
    registration: str
    field: str
    value: Any = None
    created: bool = False
    listings_updated: int = 0
