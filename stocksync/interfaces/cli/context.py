"""Shared helpers for composing CLI command contexts.

Commands build a :class:`CLIContext` from the environment (plus an optional
``--db`` override) and reach the services through it.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from pathlib import Path

from stocksync.app.config import Settings
from stocksync.app.dependencies import AppServices, build_services


@dataclass(frozen=True)
class CLIContext:
    """Container for CLI settings and wired services."""

    settings: Settings
    services: AppServices

    @property
    def db_path(self) -> Path:
        return self.settings.db_path

    def account_id(self, override: str | None = None) -> str:
        return override or self.settings.advertiser_id


def build_cli_context(db_path: str | Path | None = None) -> CLIContext:
    """Build the CLI context from environment settings and an optional db path."""

    settings = Settings.from_env()
    if db_path is not None:
        settings = dataclasses.replace(settings, db_path=Path(db_path).expanduser())
    return CLIContext(settings=settings, services=build_services(settings))
