"""Long-running commands: the foreground scheduler and the HTTP API."""

from __future__ import annotations

import asyncio

import click
import uvicorn
from rich.console import Console

from stocksync.app.dependencies import AppServices
from stocksync.interfaces.cli.context import build_cli_context
from stocksync.interfaces.cli.sync import account_option, db_option
from stocksync.services.scheduler import SCHEDULE_TIMES, SyncScheduler

console = Console()


async def _run_scheduler(services: AppServices, account_id: str) -> None:
    scheduler = SyncScheduler(
        sync_callable=services.sync_engine.run_sync,
        account_id=account_id,
    )
    await scheduler.start()
    try:
        await asyncio.Event().wait()
    finally:
        await scheduler.stop()
        await services.aclose()


@click.command(name="schedule")
@db_option
@account_option
@click.pass_context
def schedule(ctx: click.Context, db_path: str | None, account_id: str | None) -> None:
    """Run scheduled syncs in the foreground until interrupted."""
    cli_context = build_cli_context(db_path)
    account = cli_context.account_id(account_id)
    if not account:
        console.print("[red]No advertiser id; set AUTOTRADER_ADVERTISER_ID or pass --account-id.[/red]")
        ctx.exit(1)

    console.print(
        f"[bold]Scheduling stock syncs for {account}[/bold] at {', '.join(SCHEDULE_TIMES)} "
        "(Ctrl+C to stop)"
    )
    try:
        asyncio.run(_run_scheduler(cli_context.services, account))
    except KeyboardInterrupt:
        console.print("Scheduler stopped.")


@click.command(name="serve")
@click.option("--host", default="127.0.0.1", show_default=True)
@click.option("--port", default=8000, show_default=True, type=int)
@click.option("--reload", is_flag=True, help="Reload on code changes (development).")
def serve(host: str, port: int, reload: bool) -> None:
    """Serve the HTTP API with uvicorn; the scheduler runs inside it."""
    uvicorn.run("stocksync.app.api:app", host=host, port=port, reload=reload)
