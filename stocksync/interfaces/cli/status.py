"""Read-only views of the stock cache and its sync history."""

from __future__ import annotations

import click
from rich.console import Console
from rich.table import Table

from stocksync.interfaces.cli.context import build_cli_context
from stocksync.interfaces.cli.sync import account_option, db_option

console = Console()

_STATUS_STYLES = {
    "success": "green",
    "failed": "red",
    "in_progress": "yellow",
    "running": "yellow",
}


def _styled(status: str) -> str:
    style = _STATUS_STYLES.get(status)
    return f"[{style}]{status}[/{style}]" if style else status


@click.command(name="status")
@db_option
@account_option
@click.pass_context
def status(ctx: click.Context, db_path: str | None, account_id: str | None) -> None:
    """Show when the cache was last synced and when the next sync is due."""
    cli_context = build_cli_context(db_path)
    account = cli_context.account_id(account_id)
    if not account:
        console.print("[red]No advertiser id; set AUTOTRADER_ADVERTISER_ID or pass --account-id.[/red]")
        ctx.exit(1)

    report = cli_context.services.stock_service.get_sync_status(account)
    table = Table(title=f"Stock cache for {account}", show_header=False)
    table.add_column("Field", style="bold")
    table.add_column("Value")
    table.add_row("Status", _styled(report.sync_status))
    table.add_row("Last sync", report.last_sync_time or "never")
    table.add_row("Vehicles", str(report.total_count))
    table.add_row("Schedule", ", ".join(report.next_sync_times))
    table.add_row("Next sync", report.next_sync_at or "-")
    console.print(table)


@click.command(name="runs")
@db_option
@account_option
@click.option("--limit", default=10, show_default=True, type=click.IntRange(1, 200))
@click.pass_context
def runs(ctx: click.Context, db_path: str | None, account_id: str | None, limit: int) -> None:
    """List recent sync attempts, newest first."""
    cli_context = build_cli_context(db_path)
    account = cli_context.account_id(account_id)
    if not account:
        console.print("[red]No advertiser id; set AUTOTRADER_ADVERTISER_ID or pass --account-id.[/red]")
        ctx.exit(1)

    history = cli_context.services.stock_service.list_sync_runs(account, limit=limit)
    if not history:
        console.print("[yellow]No sync runs recorded yet.[/yellow]")
        return

    table = Table(title=f"Sync runs for {account}")
    table.add_column("ID", justify="right")
    table.add_column("Trigger")
    table.add_column("Started")
    table.add_column("Finished")
    table.add_column("Status")
    table.add_column("Pages", justify="right")
    table.add_column("Fetched", justify="right")
    table.add_column("Kept", justify="right")
    table.add_column("Error")
    for run in history:
        table.add_row(
            str(run.id),
            run.trigger,
            run.started_at,
            run.finished_at or "-",
            _styled(run.status),
            str(run.pages_fetched),
            str(run.listings_fetched),
            str(run.listings_kept),
            run.error or "",
        )
    console.print(table)
