"""Wall-clock scheduler that triggers stock syncs at fixed times of day.

The scheduler sleeps until the next of :data:`SCHEDULE_TIMES` (server local
time), runs the sync callable once and repeats. It keeps a small in-memory
state snapshot for status endpoints; overlapping runs are prevented by the
sync engine's own lock, not here.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import asdict, dataclass
from datetime import datetime, time, timedelta
from typing import Any, Literal

from stocksync.infrastructure.observability import get_logger, log_context
from stocksync.services.sync import SyncOutcome

# Changing the schedule requires a redeploy.
SCHEDULE_TIMES: tuple[str, ...] = ("06:00", "12:00", "18:00")

SyncCallable = Callable[..., Awaitable[SyncOutcome]]
SchedulerStatus = Literal["idle", "running", "stopping"]


def parse_schedule(times: Sequence[str]) -> list[time]:
    """Parse ``HH:MM`` strings into sorted :class:`datetime.time` values."""
    parsed = []
    for value in times:
        hours, _, minutes = value.partition(":")
        parsed.append(time(hour=int(hours), minute=int(minutes or 0)))
    return sorted(parsed)


def next_run_after(now: datetime, times: Sequence[str] = SCHEDULE_TIMES) -> datetime:
    """Return the first scheduled moment strictly after ``now``."""
    slots = parse_schedule(times)
    if not slots:
        raise ValueError("At least one schedule time is required")
    for day_offset in (0, 1):
        day = now.date() + timedelta(days=day_offset)
        for slot in slots:
            candidate = datetime.combine(day, slot, tzinfo=now.tzinfo)
            if candidate > now:
                return candidate
    raise AssertionError("unreachable: tomorrow always has a slot")


@dataclass
class SchedulerState:
    """Current state snapshot for the scheduler."""

    status: SchedulerStatus = "idle"
    next_run_at: str | None = None
    last_run_started_at: str | None = None
    last_outcome: dict[str, Any] | None = None
    last_error: str | None = None
    runs: int = 0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class SyncScheduler:
    """Background task that runs a sync at each scheduled time."""

    def __init__(
        self,
        *,
        sync_callable: SyncCallable,
        account_id: str,
        times: Sequence[str] = SCHEDULE_TIMES,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._sync_callable = sync_callable
        self._account_id = account_id
        self._times = tuple(times)
        self._clock = clock
        self._logger = get_logger(__name__)

        self._state = SchedulerState()
        self._task: asyncio.Task | None = None
        self._lock = asyncio.Lock()
        self._stop_event = asyncio.Event()

    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> SchedulerState:
        """Start the scheduler loop if it is not already running."""
        async with self._lock:
            if self.is_running():
                return self._state
            self._stop_event.clear()
            self._task = asyncio.create_task(self._run_loop())
            self._state.status = "running"
            self._logger.info(
                "Stock sync scheduler started; runs at %s", ", ".join(self._times)
            )
            return self._state

    async def stop(self) -> SchedulerState:
        """Stop the loop and wait for an in-flight run to finish."""
        async with self._lock:
            if self._task is None:
                return self._state
            self._state.status = "stopping"
            self._stop_event.set()

        await self._task

        async with self._lock:
            self._task = None
            self._state.status = "idle"
            self._state.next_run_at = None
            self._logger.info("Stock sync scheduler stopped")
            return self._state

    def get_status(self) -> dict[str, Any]:
        return self._state.to_dict()

    async def _run_loop(self) -> None:
        while not self._stop_event.is_set():
            now = self._clock()
            next_at = next_run_after(now, self._times)
            self._state.next_run_at = next_at.isoformat()
            delay = max(0.0, (next_at - now).total_seconds())
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
                break
            except asyncio.TimeoutError:
                pass
            await self._tick()

    async def _tick(self) -> None:
        with log_context(account_id=self._account_id, trigger="scheduler"):
            self._state.last_run_started_at = self._clock().isoformat()
            self._state.runs += 1
            self._logger.info("Running scheduled stock sync")
            try:
                outcome = await self._sync_callable(self._account_id, trigger="scheduler")
            except Exception as exc:
                self._logger.exception("Scheduled stock sync crashed")
                self._state.last_error = str(exc)
                return

            self._state.last_outcome = outcome.to_dict()
            if outcome.skipped:
                self._logger.info("Scheduled stock sync skipped (already running)")
            elif outcome.success:
                self._state.last_error = None
                self._logger.info(
                    "Scheduled stock sync completed: %d vehicles", outcome.count
                )
            else:
                self._state.last_error = outcome.reason
                self._logger.error("Scheduled stock sync failed: %s", outcome.reason)
