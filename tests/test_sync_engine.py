from __future__ import annotations

import asyncio
import logging
import sqlite3
import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from stocksync.infrastructure.db import PersistenceError, get_connection
from stocksync.infrastructure.db.repositories import StockCacheRepository, SyncRunRepository
from stocksync.infrastructure.http import AuthError, ProviderError, StockPage
from stocksync.services.sync import (
    SyncEngine,
    SyncFailed,
    SyncSkipped,
    SyncSuccess,
    total_pages_for,
)


def _listing(registration: str, state: str | None = "FORECOURT") -> dict:
    listing: dict = {
        "vehicle": {"registration": registration, "make": "Ford", "model": "Focus"},
        "features": [],
        "media": {"images": []},
    }
    if state is not None:
        listing["metadata"] = {"lifecycleState": state}
    return listing


class StubProvider:
    """Serves fixed pages and records every call."""

    def __init__(
        self,
        pages: list[list[dict]],
        *,
        total_pages: int | None = None,
        total_results: int | None = None,
        delay: float = 0.0,
    ) -> None:
        self.pages = pages
        self.total_pages = len(pages) if total_pages is None and total_results is None else total_pages
        self.total_results = total_results
        self.delay = delay
        self.fail_auth = False
        self.fail_page: int | None = None
        self.auth_calls = 0
        self.page_calls: list[int] = []

    async def authenticate(self, key: str, secret: str) -> str:
        self.auth_calls += 1
        await asyncio.sleep(self.delay)
        if self.fail_auth:
            raise AuthError("Authentication rejected: 401", status_code=401)
        return "token-123"

    async def fetch_page(self, token, account_id, page_number, page_size=100) -> StockPage:
        assert token == "token-123"
        self.page_calls.append(page_number)
        await asyncio.sleep(self.delay)
        if self.fail_page == page_number:
            raise ProviderError(f"Stock page {page_number} request failed", status_code=503)
        return StockPage(
            items=list(self.pages[page_number - 1]),
            total_pages=self.total_pages,
            total_results=self.total_results,
        )

    async def close(self) -> None:
        return None


def _engine(db_path: Path, provider: StubProvider, **kwargs) -> SyncEngine:
    return SyncEngine.from_sqlite_path(
        db_path, provider=provider, key="key", secret="secret", **kwargs
    )


def _cache_row(db_path: Path, account_id: str = "ACC1") -> dict | None:
    conn = sqlite3.connect(db_path)
    try:
        return StockCacheRepository(conn).get(account_id)
    finally:
        conn.close()


def _runs(db_path: Path, account_id: str = "ACC1") -> list[dict]:
    conn = sqlite3.connect(db_path)
    try:
        return SyncRunRepository(conn).list_recent(account_id)
    finally:
        conn.close()


def test_sync_persists_only_active_listings(tmp_path: Path) -> None:
    db_path = tmp_path / "stock.db"
    provider = StubProvider(
        [
            [
                _listing("AB12CDE", "FORECOURT"),
                _listing("CD34EFG", "SOLD"),
                _listing("EF56GHI", "SALE_IN_PROGRESS"),
                _listing("GH78IJK", None),
                _listing("IJ90KLM", "DUE_IN"),
            ]
        ]
    )

    outcome = asyncio.run(_engine(db_path, provider).run_sync("ACC1"))

    assert isinstance(outcome, SyncSuccess)
    assert outcome.count == 2
    row = _cache_row(db_path)
    assert row["sync_status"] == "success"
    assert row["total_count"] == 2
    assert [item["vehicle"]["registration"] for item in row["listings"]] == [
        "AB12CDE",
        "EF56GHI",
    ]
    assert row["last_sync_time"] is not None


def test_active_states_are_configurable(tmp_path: Path) -> None:
    db_path = tmp_path / "stock.db"
    provider = StubProvider([[_listing("AB12CDE", "FORECOURT"), _listing("CD34EFG", "DUE_IN")]])

    outcome = asyncio.run(
        _engine(db_path, provider, active_states={"due_in"}).run_sync("ACC1")
    )

    assert outcome.count == 1
    assert outcome.listings[0]["vehicle"]["registration"] == "CD34EFG"


def test_concurrent_syncs_run_once(tmp_path: Path) -> None:
    db_path = tmp_path / "stock.db"
    provider = StubProvider([[_listing("AB12CDE")]], delay=0.01)
    engine = _engine(db_path, provider)

    async def run():
        return await asyncio.gather(engine.run_sync("ACC1"), engine.run_sync("ACC1"))

    outcomes = asyncio.run(run())

    assert sum(isinstance(outcome, SyncSkipped) for outcome in outcomes) == 1
    assert sum(isinstance(outcome, SyncSuccess) for outcome in outcomes) == 1
    assert provider.auth_calls == 1
    assert provider.page_calls == [1]
    skipped = next(outcome for outcome in outcomes if outcome.skipped)
    assert skipped.to_dict() == {
        "success": False,
        "message": "Sync already in progress",
        "skipped": True,
    }
    # A skipped run writes no history.
    assert len(_runs(db_path)) == 1


def test_repeated_syncs_are_idempotent(tmp_path: Path) -> None:
    db_path = tmp_path / "stock.db"
    provider = StubProvider([[_listing("AB12CDE"), _listing("CD34EFG", "SOLD")]])
    engine = _engine(db_path, provider)

    first = asyncio.run(engine.run_sync("ACC1"))
    first_row = _cache_row(db_path)
    second = asyncio.run(engine.run_sync("ACC1"))
    second_row = _cache_row(db_path)

    assert isinstance(first, SyncSuccess) and isinstance(second, SyncSuccess)
    assert first_row["listings"] == second_row["listings"]
    assert first_row["total_count"] == second_row["total_count"] == 1
    assert second_row["sync_status"] == "success"
    assert provider.auth_calls == 2


def test_auth_failure_keeps_previous_snapshot(tmp_path: Path) -> None:
    db_path = tmp_path / "stock.db"
    provider = StubProvider([[_listing("AB12CDE"), _listing("CD34EFG")]])
    engine = _engine(db_path, provider)
    asyncio.run(engine.run_sync("ACC1"))
    before = _cache_row(db_path)

    provider.fail_auth = True
    outcome = asyncio.run(engine.run_sync("ACC1"))

    assert isinstance(outcome, SyncFailed)
    assert "401" in outcome.reason
    assert outcome.to_dict()["message"] == "Stock sync failed"
    after = _cache_row(db_path)
    assert after["sync_status"] == "failed"
    assert after["listings"] == before["listings"]
    assert after["last_sync_time"] == before["last_sync_time"]
    assert after["total_count"] == 2


def test_auth_failure_on_first_sync_leaves_empty_failed_row(tmp_path: Path) -> None:
    db_path = tmp_path / "stock.db"
    provider = StubProvider([[_listing("AB12CDE")]])
    provider.fail_auth = True

    outcome = asyncio.run(_engine(db_path, provider).run_sync("ACC1"))

    assert isinstance(outcome, SyncFailed)
    row = _cache_row(db_path)
    assert row["sync_status"] == "failed"
    assert row["listings"] == []
    assert row["last_sync_time"] is None


def test_page_failure_aborts_without_partial_write(tmp_path: Path) -> None:
    db_path = tmp_path / "stock.db"
    provider = StubProvider([[_listing("AB12CDE")], [_listing("CD34EFG")], [_listing("EF56GHI")]])
    provider.fail_page = 2

    outcome = asyncio.run(_engine(db_path, provider).run_sync("ACC1"))

    assert isinstance(outcome, SyncFailed)
    assert provider.page_calls == [1, 2]
    assert _cache_row(db_path)["listings"] == []


def test_failed_run_releases_lock(tmp_path: Path) -> None:
    db_path = tmp_path / "stock.db"
    provider = StubProvider([[_listing("AB12CDE")]])
    engine = _engine(db_path, provider)
    provider.fail_auth = True
    asyncio.run(engine.run_sync("ACC1"))

    provider.fail_auth = False
    outcome = asyncio.run(engine.run_sync("ACC1"))

    assert isinstance(outcome, SyncSuccess)


class FailingConnections:
    """Opens real connections except on the given call numbers."""

    def __init__(self, db_path: Path, fail_on: dict[int, Exception]) -> None:
        self.db_path = db_path
        self.fail_on = fail_on
        self.calls = 0

    def __call__(self):
        self.calls += 1
        error = self.fail_on.get(self.calls)
        if error is not None:
            raise error
        return get_connection(self.db_path)


# Connection order for a failing run: lock, run start, failed status, run finish.
@pytest.mark.parametrize(
    "error",
    [PersistenceError("database is locked"), OSError("disk gone")],
    ids=["persistence", "os"],
)
def test_failed_status_write_keeps_original_reason(
    tmp_path: Path, caplog, error: Exception
) -> None:
    caplog.set_level(logging.INFO)
    provider = StubProvider([[_listing("AB12CDE")]])
    provider.fail_auth = True
    connections = FailingConnections(tmp_path / "stock.db", {3: error, 4: error})
    engine = SyncEngine(connections, provider=provider, key="key", secret="secret")

    outcome = asyncio.run(engine.run_sync("ACC1"))

    assert isinstance(outcome, SyncFailed)
    assert outcome.reason == "Authentication rejected: 401"
    assert connections.calls == 4
    messages = [record.getMessage() for record in caplog.records]
    assert any(m.startswith("Could not record failed sync status") for m in messages)
    assert any(m.startswith("Could not record sync run history") for m in messages)


def test_unexpected_error_taking_lock_returns_failure(tmp_path: Path) -> None:
    provider = StubProvider([[_listing("AB12CDE")]])
    connections = FailingConnections(tmp_path / "stock.db", {1: OSError("disk gone")})
    engine = SyncEngine(connections, provider=provider, key="key", secret="secret")

    outcome = asyncio.run(engine.run_sync("ACC1"))

    assert isinstance(outcome, SyncFailed)
    assert outcome.reason == "disk gone"
    assert provider.auth_calls == 0


def test_unusable_db_path_returns_failure(tmp_path: Path) -> None:
    blocker = tmp_path / "file.txt"
    blocker.write_text("not a directory", encoding="utf-8")
    provider = StubProvider([[_listing("AB12CDE")]])

    outcome = asyncio.run(_engine(blocker / "stock.db", provider).run_sync("ACC1"))

    assert isinstance(outcome, SyncFailed)
    assert provider.auth_calls == 0


def test_page_count_derived_from_total_results(tmp_path: Path) -> None:
    db_path = tmp_path / "stock.db"
    pages = [
        [_listing(f"P1V{i:03d}") for i in range(100)],
        [_listing(f"P2V{i:03d}") for i in range(100)],
        [_listing(f"P3V{i:03d}") for i in range(50)],
    ]
    provider = StubProvider(pages, total_results=250)

    outcome = asyncio.run(_engine(db_path, provider, page_size=100).run_sync("ACC1"))

    assert provider.page_calls == [1, 2, 3]
    assert outcome.count == 250
    assert outcome.pages_fetched == 3


def test_total_pages_for_prefers_provider_count() -> None:
    assert total_pages_for(StockPage(total_pages=4, total_results=250), 100) == 4
    assert total_pages_for(StockPage(total_pages=0, total_results=250), 100) == 3
    assert total_pages_for(StockPage(total_results=0), 100) == 1
    assert total_pages_for(StockPage(), 100) == 1


def test_listings_repeated_across_pages_are_dropped(tmp_path: Path) -> None:
    db_path = tmp_path / "stock.db"
    provider = StubProvider(
        [
            [_listing("AB12CDE"), _listing("CD34EFG")],
            [_listing("cd34 efg"), _listing("EF56GHI")],
        ]
    )

    outcome = asyncio.run(_engine(db_path, provider).run_sync("ACC1"))

    assert [item["vehicle"]["registration"] for item in outcome.listings] == [
        "AB12CDE",
        "CD34EFG",
        "EF56GHI",
    ]


def test_sync_runs_are_recorded(tmp_path: Path) -> None:
    db_path = tmp_path / "stock.db"
    provider = StubProvider([[_listing("AB12CDE"), _listing("CD34EFG", "SOLD")]])
    engine = _engine(db_path, provider)

    success = asyncio.run(engine.run_sync("ACC1", trigger="scheduler"))
    provider.fail_auth = True
    failure = asyncio.run(engine.run_sync("ACC1"))

    runs = _runs(db_path)
    assert [run["id"] for run in runs] == [failure.run_id, success.run_id]
    latest, earliest = runs
    assert earliest["trigger"] == "scheduler"
    assert earliest["status"] == "success"
    assert earliest["pages_fetched"] == 1
    assert earliest["listings_fetched"] == 2
    assert earliest["listings_kept"] == 1
    assert earliest["finished_at"] is not None
    assert latest["trigger"] == "manual"
    assert latest["status"] == "failed"
    assert "401" in latest["error"]


def test_missing_account_id_fails_without_provider_calls(tmp_path: Path) -> None:
    provider = StubProvider([[_listing("AB12CDE")]])

    outcome = asyncio.run(_engine(tmp_path / "stock.db", provider).run_sync(""))

    assert isinstance(outcome, SyncFailed)
    assert provider.auth_calls == 0
