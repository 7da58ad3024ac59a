"""Listing helpers shared by the sync engine and the read services.

Listings are kept as the provider returns them: a nested JSON object with
``vehicle``, ``features``, ``media`` and ``metadata`` sections. Only the
registration and the lifecycle state are interpreted here.
"""

from __future__ import annotations

import copy
from collections.abc import Iterable, Mapping
from enum import Enum
from typing import Any

Listing = dict[str, Any]

# Read-time defaults for overlay fields that have no stored entry.
OVERLAY_DEFAULTS: dict[str, Any] = {"reserveLink": ""}


class LifecycleState(str, Enum):
    """Advert lifecycle states reported by the provider."""

    FORECOURT = "FORECOURT"
    SALE_IN_PROGRESS = "SALE_IN_PROGRESS"
    DUE_IN = "DUE_IN"
    SOLD = "SOLD"
    WASTEBIN = "WASTEBIN"
    DELETED = "DELETED"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def from_string(cls, value: str | None) -> "LifecycleState":
        if not value:
            return cls.UNKNOWN
        try:
            return cls(value.strip().upper())
        except ValueError:
            return cls.UNKNOWN


DEFAULT_ACTIVE_STATES: frozenset[str] = frozenset(
    {LifecycleState.FORECOURT.value, LifecycleState.SALE_IN_PROGRESS.value}
)


def normalize_identifier(value: str | None) -> str:
    """Strip all whitespace and uppercase a registration."""
    if not value:
        return ""
    return "".join(str(value).split()).upper()


def listing_identifier(listing: Mapping[str, Any]) -> str:
    vehicle = listing.get("vehicle")
    if not isinstance(vehicle, Mapping):
        return ""
    return normalize_identifier(vehicle.get("registration"))


def lifecycle_state(listing: Mapping[str, Any]) -> str | None:
    metadata = listing.get("metadata")
    if not isinstance(metadata, Mapping):
        return None
    state = metadata.get("lifecycleState")
    return str(state).strip().upper() if state else None


def is_active(listing: Mapping[str, Any], active_states: Iterable[str]) -> bool:
    """Return True when the listing's lifecycle state counts as for sale.

    Listings without a lifecycle state are never active.
    """
    state = lifecycle_state(listing)
    return state is not None and state in {s.upper() for s in active_states}


def filter_active(
    listings: Iterable[Listing], active_states: Iterable[str]
) -> list[Listing]:
    states = frozenset(s.upper() for s in active_states)
    return [listing for listing in listings if is_active(listing, states)]


def overlay_values(fields: Mapping[str, Any] | None) -> dict[str, Any]:
    """Stored overlay fields laid over the read-time defaults."""
    return {**OVERLAY_DEFAULTS, **(fields or {})}


def merge_overlay(listing: Mapping[str, Any], fields: Mapping[str, Any] | None) -> Listing:
    """Return a copy of ``listing`` with overlay fields injected into ``vehicle``."""
    merged = copy.deepcopy(dict(listing))
    vehicle = merged.get("vehicle")
    if not isinstance(vehicle, dict):
        vehicle = {}
    merged["vehicle"] = {**vehicle, **overlay_values(fields)}
    return merged
