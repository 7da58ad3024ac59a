"""Stock synchronization: the engine and its outcome types."""

from .engine import LOCK_WINDOW, SyncEngine, SyncProgress, total_pages_for
from .outcome import (
    FAILED_MESSAGE,
    SKIPPED_MESSAGE,
    SUCCESS_MESSAGE,
    SyncFailed,
    SyncOutcome,
    SyncSkipped,
    SyncSuccess,
)

__all__ = [
    "FAILED_MESSAGE",
    "LOCK_WINDOW",
    "SKIPPED_MESSAGE",
    "SUCCESS_MESSAGE",
    "SyncEngine",
    "SyncFailed",
    "SyncOutcome",
    "SyncProgress",
    "SyncSkipped",
    "SyncSuccess",
    "total_pages_for",
]
