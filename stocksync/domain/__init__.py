"""Domain layer: pure listing logic with no infrastructure concerns."""

from .listing import (
    DEFAULT_ACTIVE_STATES,
    OVERLAY_DEFAULTS,
    LifecycleState,
    Listing,
    filter_active,
    is_active,
    lifecycle_state,
    listing_identifier,
    merge_overlay,
    normalize_identifier,
    overlay_values,
)

__all__ = [
    "DEFAULT_ACTIVE_STATES",
    "OVERLAY_DEFAULTS",
    "LifecycleState",
    "Listing",
    "filter_active",
    "is_active",
    "lifecycle_state",
    "listing_identifier",
    "merge_overlay",
    "normalize_identifier",
    "overlay_values",
]
