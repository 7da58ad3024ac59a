from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict

DEFAULT_DB_TIMEOUT = 30.0
DEFAULT_DB_FILENAME = "stocksync.db"
DB_PATH_ENV = "STOCKSYNC_DB_PATH"

_CONFIG_FILE = Path(__file__).resolve().parents[3] / "config.json"


@dataclass(frozen=True)
class DatabaseConfig:
    """The ``db`` and ``paths`` settings of an optional ``config.json``.

    Example file::

        {"paths": {"db_path": "data/stock.db"},
         "db": {"timeout_seconds": 10, "enable_wal": true}}

    ``db_timeout_seconds`` at the top level is accepted as an older
    spelling of ``db.timeout_seconds``.
    """

    db_path: Path
    timeout: float = DEFAULT_DB_TIMEOUT
    enable_wal: bool = True

    @classmethod
    def read(cls, config_path: Path | str | None = None) -> "DatabaseConfig":
        source = Path(config_path) if config_path is not None else _CONFIG_FILE
        raw = load_config(source)
        paths = raw.get("paths") if isinstance(raw.get("paths"), dict) else {}
        db = raw.get("db") if isinstance(raw.get("db"), dict) else {}

        db_path = Path(paths.get("db_path", DEFAULT_DB_FILENAME))
        if not db_path.is_absolute():
            db_path = (source.parent / db_path).resolve()

        timeout = db.get("timeout_seconds", raw.get("db_timeout_seconds"))
        try:
            timeout = float(timeout) if timeout is not None else DEFAULT_DB_TIMEOUT
        except (TypeError, ValueError):
            timeout = DEFAULT_DB_TIMEOUT

        return cls(db_path=db_path, timeout=timeout, enable_wal=bool(db.get("enable_wal", True)))


def load_config(config_path: Path | str | None = None) -> Dict[str, Any]:
    """Return the parsed ``config.json``, or an empty dict when there is none."""

    path = Path(config_path) if config_path is not None else _CONFIG_FILE
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return {}
    data = json.loads(text)
    return data if isinstance(data, dict) else {}


def get_db_path(config_path: Path | str | None = None) -> Path:
    """``STOCKSYNC_DB_PATH`` if set, else the configured or default cache file."""

    override = os.environ.get(DB_PATH_ENV)
    if override:
        return Path(override).expanduser()
    return DatabaseConfig.read(config_path).db_path
