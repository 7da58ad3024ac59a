from __future__ import annotations

import importlib
import sys
from pathlib import Path

import pytest
from click.testing import CliRunner

PROJECT_ROOT = Path(__file__).resolve().parents[2]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from stocksync.app.config import Settings
from stocksync.app.dependencies import build_services
from stocksync.infrastructure.http import AuthError, StockPage
from stocksync.interfaces.cli import cli, lookup, reserve_link, runs, status, sync
from stocksync.interfaces.cli.context import CLIContext


def _listing(registration: str, state: str = "FORECOURT") -> dict:
    return {
        "vehicle": {"registration": registration, "make": "Ford", "model": "Focus"},
        "metadata": {"lifecycleState": state},
    }


class StubProvider:
    def __init__(self) -> None:
        self.listings = [_listing("AB12CDE"), _listing("CD34EFG", "SOLD")]
        self.fail_auth = False
        self.closed = 0

    async def authenticate(self, key: str, secret: str) -> str:
        if self.fail_auth:
            raise AuthError("Authentication rejected: 401", status_code=401)
        return "token"

    async def fetch_page(self, token, account_id, page_number, page_size=100) -> StockPage:
        return StockPage(items=list(self.listings), total_pages=1)

    async def close(self) -> None:
        self.closed += 1


class StubRegistry:
    async def lookup(self, identifier: str) -> dict | None:
        return None

    async def close(self) -> None:
        return None


@pytest.fixture
def provider(tmp_path: Path, monkeypatch) -> StubProvider:
    provider = StubProvider()
    settings = Settings(
        autotrader_key="key",
        autotrader_secret="secret",
        advertiser_id="ACC1",
        db_path=tmp_path / "cli.db",
    )

    def fake_build_cli_context(db_path=None) -> CLIContext:
        services = build_services(settings, provider=provider, registry=StubRegistry())
        return CLIContext(settings=settings, services=services)

    # The package re-exports commands under the same names as their modules.
    for name in ("sync", "status", "lookup"):
        module = importlib.import_module(f"stocksync.interfaces.cli.{name}")
        monkeypatch.setattr(module, "build_cli_context", fake_build_cli_context)
    return provider


def test_sync_command_reports_success(provider: StubProvider) -> None:
    result = CliRunner().invoke(sync, [])

    assert result.exit_code == 0
    assert "Stock synced successfully" in result.output
    assert "1 active vehicles" in result.output
    assert provider.closed == 1


def test_sync_command_failure_exits_nonzero(provider: StubProvider) -> None:
    provider.fail_auth = True

    result = CliRunner().invoke(sync, [])

    assert result.exit_code == 1
    assert "Stock sync failed" in result.output
    assert provider.closed == 1


def test_status_and_runs_after_sync(provider: StubProvider) -> None:
    runner = CliRunner()
    runner.invoke(sync, [])

    status_result = runner.invoke(status, [])
    runs_result = runner.invoke(runs, ["--limit", "5"])

    assert status_result.exit_code == 0
    assert "success" in status_result.output
    assert "06:00, 12:00, 18:00" in status_result.output
    assert runs_result.exit_code == 0
    assert "cli" in runs_result.output


def test_runs_without_history(provider: StubProvider) -> None:
    result = CliRunner().invoke(runs, [])

    assert result.exit_code == 0
    assert "No sync runs recorded yet" in result.output


def test_lookup_command_hit_and_miss(provider: StubProvider) -> None:
    runner = CliRunner()
    runner.invoke(sync, [])

    hit = runner.invoke(lookup, ["ab12 cde"])
    miss = runner.invoke(lookup, ["ZZ99ZZZ"])

    assert hit.exit_code == 0
    assert "cached stock" in hit.output
    assert "Focus" in hit.output
    assert miss.exit_code == 1
    assert "not found" in miss.output


def test_reserve_link_command_creates_then_updates(provider: StubProvider) -> None:
    runner = CliRunner()
    runner.invoke(sync, [])

    first = runner.invoke(reserve_link, ["AB12CDE", "https://r/1"])
    second = runner.invoke(reserve_link, ["ab12cde", "https://r/2"])

    assert first.exit_code == 0
    assert "Created reserve link for AB12CDE" in first.output
    assert "1 cached listings updated" in first.output
    assert second.exit_code == 0
    assert "Updated reserve link" in second.output


def test_cli_group_lists_commands() -> None:
    result = CliRunner().invoke(cli, ["--help"])

    assert result.exit_code == 0
    for name in ("sync", "status", "runs", "lookup", "reserve-link", "check-provider", "schedule", "serve"):
        assert name in result.output


@pytest.mark.parametrize(
    ("value", "style"),
    [
        ("success", "green"),
        ("failed", "red"),
        ("in_progress", "yellow"),
        ("running", "yellow"),
    ],
)
def test_status_values_are_styled(value: str, style: str) -> None:
    status_module = importlib.import_module("stocksync.interfaces.cli.status")

    assert status_module._styled(value) == f"[{style}]{value}[/{style}]"


def test_unknown_status_is_left_plain() -> None:
    status_module = importlib.import_module("stocksync.interfaces.cli.status")

    assert status_module._styled("syncing") == "syncing"
