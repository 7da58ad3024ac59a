"""Runtime settings for stocksync.

Credentials and endpoints come from the environment so deployments never
write secrets to ``config.json``; database options stay in
:mod:`stocksync.infrastructure.db.config`.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from stocksync.domain import DEFAULT_ACTIVE_STATES
from stocksync.infrastructure.db import get_db_path
from stocksync.infrastructure.http import DEFAULT_PAGE_SIZE, SANDBOX_BASE_URL
from stocksync.infrastructure.http.ukvd import DEFAULT_ENDPOINT, DEFAULT_PACKAGE

_TRUE_VALUES = {"1", "true", "yes", "on"}


def _parse_bool(raw: str | None, default: bool) -> bool:
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in _TRUE_VALUES


def _parse_float(raw: str | None, default: float) -> float:
    try:
        return float(raw) if raw else default
    except ValueError:
        return default


def _parse_states(raw: str | None) -> frozenset[str]:
    if not raw:
        return DEFAULT_ACTIVE_STATES
    states = frozenset(part.strip().upper() for part in raw.split(",") if part.strip())
    return states or DEFAULT_ACTIVE_STATES


@dataclass(frozen=True)
class Settings:
    """Provider credentials, registry access and local storage options."""

    autotrader_key: str = ""
    autotrader_secret: str = ""
    advertiser_id: str = ""
    autotrader_base_url: str = SANDBOX_BASE_URL
    page_size: int = DEFAULT_PAGE_SIZE
    active_states: frozenset[str] = field(default_factory=lambda: DEFAULT_ACTIVE_STATES)
    ukvd_api_key: str | None = None
    ukvd_package: str = DEFAULT_PACKAGE
    ukvd_endpoint: str = DEFAULT_ENDPOINT
    db_path: Path = field(default_factory=get_db_path)
    scheduler_enabled: bool = True
    http_timeout: float = 30.0

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        env = os.environ if environ is None else environ
        page_size = int(_parse_float(env.get("AUTOTRADER_PAGE_SIZE"), DEFAULT_PAGE_SIZE))
        db_path = env.get("STOCKSYNC_DB_PATH")
        return cls(
            autotrader_key=env.get("AUTOTRADER_KEY", ""),
            autotrader_secret=env.get("AUTOTRADER_SECRET", ""),
            advertiser_id=env.get("AUTOTRADER_ADVERTISER_ID", ""),
            autotrader_base_url=env.get("AUTOTRADER_BASE_URL") or SANDBOX_BASE_URL,
            page_size=page_size if page_size > 0 else DEFAULT_PAGE_SIZE,
            active_states=_parse_states(env.get("AUTOTRADER_ACTIVE_STATES")),
            ukvd_api_key=env.get("UKVD_API_KEY") or None,
            ukvd_package=env.get("UKVD_PACKAGE") or DEFAULT_PACKAGE,
            ukvd_endpoint=env.get("UKVD_ENDPOINT") or DEFAULT_ENDPOINT,
            db_path=Path(db_path).expanduser() if db_path else get_db_path(),
            scheduler_enabled=_parse_bool(env.get("STOCKSYNC_SCHEDULER_ENABLED"), True),
            http_timeout=_parse_float(env.get("STOCKSYNC_HTTP_TIMEOUT"), 30.0),
        )

    def missing_provider_settings(self) -> list[str]:
        """Names of the provider variables that are still empty."""
        required = {
            "AUTOTRADER_KEY": self.autotrader_key,
            "AUTOTRADER_SECRET": self.autotrader_secret,
            "AUTOTRADER_ADVERTISER_ID": self.advertiser_id,
        }
        return [name for name, value in required.items() if not value]


__all__ = ["Settings"]
