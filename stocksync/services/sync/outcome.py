"""Result types for a sync attempt.

A run ends in exactly one of three ways, each its own frozen dataclass:

* :class:`SyncSuccess` - listings fetched, filtered and stored.
* :class:`SyncSkipped` - another run holds the account's lock; nothing changed.
* :class:`SyncFailed` - the run aborted; the previous snapshot is kept.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Union

SUCCESS_MESSAGE = "Stock synced successfully"
SKIPPED_MESSAGE = "Sync already in progress"
FAILED_MESSAGE = "Stock sync failed"


@dataclass(frozen=True)
class SyncSuccess:
    listings: list[dict[str, Any]] = field(default_factory=list, repr=False)
    count: int = 0
    pages_fetched: int = 0
    run_id: int | None = None

    success = True
    skipped = False
    message = SUCCESS_MESSAGE

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": True,
            "message": self.message,
            "totalListings": self.count,
        }


@dataclass(frozen=True)
class SyncSkipped:
    reason: str = SKIPPED_MESSAGE

    success = False
    skipped = True
    message = SKIPPED_MESSAGE

    def to_dict(self) -> dict[str, Any]:
        return {"success": False, "message": self.message, "skipped": True}


@dataclass(frozen=True)
class SyncFailed:
    reason: str
    run_id: int | None = None

    success = False
    skipped = False
    message = FAILED_MESSAGE

    def to_dict(self) -> dict[str, Any]:
        return {"success": False, "message": self.message, "error": self.reason}


SyncOutcome = Union[SyncSuccess, SyncSkipped, SyncFailed]
