"""Entry point for running the stocksync CLI.

This module defines a top-level Click group that aggregates the subcommands
in the ``stocksync.interfaces.cli`` package. Executing
``python -m stocksync.interfaces.cli`` invokes this group.
"""

import click

from stocksync.infrastructure.observability import configure_logging

from .lookup import lookup, reserve_link
from .serve import schedule, serve
from .status import runs, status
from .sync import check_provider, sync


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.option("--log-level", default=None, help="Override LOG_LEVEL for this run.")
def cli(log_level: str | None) -> None:
    """stocksync command-line interface."""
    configure_logging(level=log_level)


cli.add_command(sync)
cli.add_command(check_provider)
cli.add_command(status)
cli.add_command(runs)
cli.add_command(lookup)
cli.add_command(reserve_link)
cli.add_command(schedule)
cli.add_command(serve)


if __name__ == "__main__":
    cli()
