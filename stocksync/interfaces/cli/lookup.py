"""Single-vehicle commands: lookup and reserve links."""

from __future__ import annotations

import asyncio

import click
from rich.console import Console
from rich.table import Table

from stocksync.app.dependencies import AppServices
from stocksync.interfaces.cli.context import build_cli_context
from stocksync.interfaces.cli.sync import account_option, db_option
from stocksync.services.dto import LookupResultDTO
from stocksync.services.stock import NotFoundError

console = Console()

_SUMMARY_FIELDS = (
    "registration",
    "make",
    "model",
    "derivative",
    "yearOfManufacture",
    "fuelType",
    "transmissionType",
    "colour",
    "odometerReadingMiles",
    "reserveLink",
)


async def _lookup(services: AppServices, account_id: str, registration: str) -> LookupResultDTO:
    try:
        return await services.stock_service.lookup_by_identifier(account_id, registration)
    finally:
        await services.aclose()


@click.command(name="lookup")
@click.argument("registration")
@db_option
@account_option
@click.pass_context
def lookup(
    ctx: click.Context, registration: str, db_path: str | None, account_id: str | None
) -> None:
    """Look a vehicle up in the cached stock, then in the vehicle registry."""
    cli_context = build_cli_context(db_path)
    account = cli_context.account_id(account_id)
    try:
        result = asyncio.run(_lookup(cli_context.services, account, registration))
    except NotFoundError as exc:
        console.print(f"[red]{exc}[/red]")
        ctx.exit(1)

    source = "cached stock" if result.source == "local" else "vehicle registry"
    table = Table(title=f"Vehicle from {source}", show_header=False)
    table.add_column("Field", style="bold")
    table.add_column("Value")
    for name in _SUMMARY_FIELDS:
        value = result.vehicle.get(name)
        if value not in (None, ""):
            table.add_row(name, str(value))
    console.print(table)
    if result.features:
        console.print(f"{len(result.features)} features listed")


@click.command(name="reserve-link")
@click.argument("registration")
@click.argument("url", required=False, default="")
@db_option
@click.pass_context
def reserve_link(ctx: click.Context, registration: str, url: str, db_path: str | None) -> None:
    """Set (or clear, when URL is omitted) the reserve link for a registration."""
    cli_context = build_cli_context(db_path)
    try:
        result = cli_context.services.stock_service.set_overlay_field(
            registration, "reserveLink", url
        )
    except ValueError as exc:
        console.print(f"[red]{exc}[/red]")
        ctx.exit(1)

    action = "Created" if result.created else "Updated"
    console.print(
        f"[green]{action} reserve link for {result.registration}[/green]; "
        f"{result.listings_updated} cached listings updated"
    )
