"""Stock sync engine.

``SyncEngine.run_sync`` is the single entry point used by the scheduler, the
manual trigger endpoint, the CLI and the cold-cache bootstrap. A run:

1. takes the account's lock (an ``in_progress`` status younger than the lock
   window) or returns :class:`SyncSkipped` without touching anything;
2. authenticates against the provider;
3. fetches every page strictly in order;
4. keeps only listings in an active lifecycle state;
5. replaces the cached listings wholesale.

Any failure after the lock is taken flips the status to ``failed`` and keeps
the previous listings and ``last_sync_time``. Nothing is raised to callers.
"""

from __future__ import annotations

import math
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from stocksync.domain import DEFAULT_ACTIVE_STATES, filter_active, listing_identifier
from stocksync.infrastructure.db import to_iso, utcnow
from stocksync.infrastructure.db.repositories import (
    StockCacheRepository,
    SyncRunRepository,
)
from stocksync.infrastructure.http import (
    DEFAULT_PAGE_SIZE,
    AutoTraderClient,
    StockPage,
)
from stocksync.infrastructure.observability import log_context, log_exception
from stocksync.services.base import BaseService, ConnectionFactory

from .outcome import SyncFailed, SyncOutcome, SyncSkipped, SyncSuccess

LOCK_WINDOW = timedelta(minutes=10)


@dataclass
class SyncProgress:
    """Counters kept while a run is in flight, recorded even on failure."""

    pages_fetched: int = 0
    listings_fetched: int = 0
    listings_kept: int = 0


def total_pages_for(page: StockPage, page_size: int) -> int:
    """Number of pages to request, learned from the first page.

    Uses the provider's page count when present, otherwise
    ``ceil(total_results / page_size)``. Always at least one.
    """
    if page.total_pages is not None and page.total_pages > 0:
        return page.total_pages
    if page.total_results is not None and page_size > 0:
        return max(1, math.ceil(page.total_results / page_size))
    return 1


class SyncEngine(BaseService):
    """Fetch, filter and store one provider account's stock."""

    def __init__(
        self,
        connection_factory: ConnectionFactory,
        *,
        provider: AutoTraderClient,
        key: str,
        secret: str,
        page_size: int = DEFAULT_PAGE_SIZE,
        active_states: Iterable[str] = DEFAULT_ACTIVE_STATES,
        lock_window: timedelta = LOCK_WINDOW,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        super().__init__(connection_factory)
        self._provider = provider
        self._key = key
        self._secret = secret
        self._page_size = page_size
        self._active_states = frozenset(s.upper() for s in active_states)
        self._lock_window = lock_window
        self._clock = clock

    async def run_sync(self, account_id: str, *, trigger: str = "manual") -> SyncOutcome:
        """Run one sync for ``account_id`` and report how it ended."""
        with log_context(account_id=account_id, trigger=trigger):
            if not account_id:
                self._logger.error("Stock sync requested without an advertiser id")
                return SyncFailed("No advertiser id configured")

            try:
                acquired = self._acquire_lock(account_id)
            except Exception as exc:
                log_exception(self._logger, "Could not take the sync lock", exc)
                return SyncFailed(str(exc))
            if not acquired:
                self._logger.info("Stock sync skipped: already in progress")
                return SyncSkipped()

            run_id: int | None = None
            progress = SyncProgress()
            try:
                run_id = self._with_connection(
                    lambda conn: SyncRunRepository(conn).start(
                        account_id, trigger=trigger, started_at=to_iso(self._clock())
                    )
                )
                self._logger.info("Starting stock sync")
                token = await self._provider.authenticate(self._key, self._secret)
                fetched = await self._fetch_all(token, account_id, progress)
                kept = filter_active(fetched, self._active_states)
                progress.listings_kept = len(kept)
                synced_at = to_iso(self._clock())
                self._with_connection(
                    lambda conn: StockCacheRepository(conn).mark_success(
                        account_id, kept, synced_at=synced_at
                    )
                )
            except Exception as exc:
                reason = str(exc) or exc.__class__.__name__
                log_exception(self._logger, "Stock sync failed", exc)
                self._mark_failed(account_id)
                self._finish_run(run_id, "failed", progress, error=reason)
                return SyncFailed(reason, run_id=run_id)

            self._finish_run(run_id, "success", progress)
            self._logger.info(
                "Stock sync finished: %d of %d listings active across %d pages",
                progress.listings_kept,
                progress.listings_fetched,
                progress.pages_fetched,
            )
            return SyncSuccess(
                listings=kept,
                count=len(kept),
                pages_fetched=progress.pages_fetched,
                run_id=run_id,
            )

    def _acquire_lock(self, account_id: str) -> bool:
        now = self._clock()
        return self._with_connection(
            lambda conn: StockCacheRepository(conn).try_acquire_sync_lock(
                account_id,
                now=to_iso(now),
                stale_before=to_iso(now - self._lock_window),
            )
        )

    async def _fetch_all(
        self, token: str, account_id: str, progress: SyncProgress
    ) -> list[dict[str, Any]]:
        first = await self._provider.fetch_page(token, account_id, 1, self._page_size)
        total_pages = total_pages_for(first, self._page_size)
        items = list(first.items)
        progress.pages_fetched = 1
        progress.listings_fetched = len(items)
        self._logger.info(
            "Fetched page 1 of %d (%d vehicles)", total_pages, len(first.items)
        )

        for page_number in range(2, total_pages + 1):
            page = await self._provider.fetch_page(
                token, account_id, page_number, self._page_size
            )
            items.extend(page.items)
            progress.pages_fetched = page_number
            progress.listings_fetched = len(items)
            self._logger.info(
                "Fetched page %d of %d (%d vehicles)",
                page_number,
                total_pages,
                len(page.items),
            )
        return self._drop_repeats(items)

    def _drop_repeats(self, items: list[dict[str, Any]]) -> list[dict[str, Any]]:
        seen: set[str] = set()
        unique: list[dict[str, Any]] = []
        for item in items:
            identifier = listing_identifier(item)
            if identifier and identifier in seen:
                self._logger.warning("Dropping repeated listing %s", identifier)
                continue
            if identifier:
                seen.add(identifier)
            unique.append(item)
        return unique

    def _mark_failed(self, account_id: str) -> None:
        try:
            self._with_connection(
                lambda conn: StockCacheRepository(conn).mark_failed(
                    account_id, failed_at=to_iso(self._clock())
                )
            )
        except Exception as exc:
            log_exception(self._logger, "Could not record failed sync status", exc)

    def _finish_run(
        self,
        run_id: int | None,
        status: str,
        progress: SyncProgress,
        *,
        error: str | None = None,
    ) -> None:
        if run_id is None:
            return
        try:
            self._with_connection(
                lambda conn: SyncRunRepository(conn).finish(
                    run_id,
                    status=status,
                    finished_at=to_iso(self._clock()),
                    pages_fetched=progress.pages_fetched,
                    listings_fetched=progress.listings_fetched,
                    listings_kept=progress.listings_kept,
                    error=error,
                )
            )
        except Exception as exc:
            log_exception(self._logger, "Could not record sync run history", exc)
