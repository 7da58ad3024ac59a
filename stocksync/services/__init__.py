"""Service layer: the sync engine, the read service and the scheduler."""

from .scheduler import SCHEDULE_TIMES, SyncScheduler, next_run_after
from .stock import NotFoundError, StockService
from .sync import SyncEngine, SyncFailed, SyncOutcome, SyncSkipped, SyncSuccess

__all__ = [
    "NotFoundError",
    "SCHEDULE_TIMES",
    "StockService",
    "SyncEngine",
    "SyncFailed",
    "SyncOutcome",
    "SyncScheduler",
    "SyncSkipped",
    "SyncSuccess",
    "next_run_after",
]
