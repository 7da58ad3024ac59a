"""Stock synchronization commands."""

from __future__ import annotations

import asyncio
from collections import Counter

import click
from rich.console import Console
from rich.table import Table

from stocksync.app.dependencies import AppServices
from stocksync.domain import lifecycle_state
from stocksync.infrastructure.http import AuthError, ProviderError
from stocksync.interfaces.cli.context import build_cli_context
from stocksync.services.sync import SyncFailed, SyncOutcome, SyncSkipped

console = Console()

db_option = click.option(
    "--db",
    "db_path",
    default=None,
    help="Path to the SQLite database. Defaults to STOCKSYNC_DB_PATH or config.json.",
)
account_option = click.option(
    "--account-id",
    default=None,
    help="Advertiser id to sync. Defaults to AUTOTRADER_ADVERTISER_ID.",
)


async def _run_sync(services: AppServices, account_id: str) -> SyncOutcome:
    try:
        return await services.sync_engine.run_sync(account_id, trigger="cli")
    finally:
        await services.aclose()


@click.command(name="sync")
@db_option
@account_option
@click.pass_context
def sync(ctx: click.Context, db_path: str | None, account_id: str | None) -> None:
    """Fetch all stock pages from AutoTrader and replace the local cache.

    Uses the same lock as the scheduler: if another sync started less than
    ten minutes ago this command reports it and exits without fetching.
    """
    cli_context = build_cli_context(db_path)
    account = cli_context.account_id(account_id)
    if not account:
        console.print("[red]No advertiser id; set AUTOTRADER_ADVERTISER_ID or pass --account-id.[/red]")
        ctx.exit(1)

    console.print(
        f"[bold]Syncing stock for advertiser {account}[/bold] into {cli_context.db_path}..."
    )
    with console.status("Running sync..."):
        outcome = asyncio.run(_run_sync(cli_context.services, account))

    if isinstance(outcome, SyncSkipped):
        console.print(f"[yellow]{outcome.message}; nothing fetched.[/yellow]")
        return
    if isinstance(outcome, SyncFailed):
        console.print(f"[red]{outcome.message}: {outcome.reason}[/red]")
        ctx.exit(1)
    console.print(
        f"[green]{outcome.message}[/green]: {outcome.count} active vehicles "
        f"across {outcome.pages_fetched} pages"
    )


async def _first_provider_page(services: AppServices, account_id: str):
    settings = services.settings
    try:
        token = await services.provider.authenticate(
            settings.autotrader_key, settings.autotrader_secret
        )
        return await services.provider.fetch_page(token, account_id, 1, settings.page_size)
    finally:
        await services.aclose()


@click.command(name="check-provider")
@account_option
@click.pass_context
def check_provider(ctx: click.Context, account_id: str | None) -> None:
    """Authenticate and read the first stock page without touching the cache."""
    cli_context = build_cli_context()
    settings = cli_context.settings
    missing = settings.missing_provider_settings()
    account = cli_context.account_id(account_id)
    if account_id:
        missing = [name for name in missing if name != "AUTOTRADER_ADVERTISER_ID"]
    if missing:
        console.print(f"[red]Missing settings: {', '.join(missing)}[/red]")
        ctx.exit(1)

    console.print(f"Checking {settings.autotrader_base_url} for advertiser {account}...")
    try:
        page = asyncio.run(_first_provider_page(cli_context.services, account))
    except AuthError as exc:
        console.print(f"[red]Authentication failed: {exc}[/red]")
        ctx.exit(1)
    except ProviderError as exc:
        console.print(f"[red]Stock request failed: {exc}[/red]")
        ctx.exit(1)

    console.print("[green]Authentication successful.[/green]")
    console.print(
        f"Page 1: {len(page.items)} vehicles; total results={page.total_results}, "
        f"total pages={page.total_pages}"
    )
    states = Counter(lifecycle_state(item) or "(none)" for item in page.items)
    table = Table(title="Lifecycle states on page 1")
    table.add_column("State", style="bold")
    table.add_column("Vehicles", justify="right")
    for state, count in states.most_common():
        marker = " *" if state in settings.active_states else ""
        table.add_row(f"{state}{marker}", str(count))
    console.print(table)
    console.print("* kept by sync")
