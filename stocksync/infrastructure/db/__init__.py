from .config import DEFAULT_DB_TIMEOUT, get_db_path, load_config
from .connection import (
    PersistenceError,
    apply_pragmas,
    get_connection,
    iso_utcnow,
    to_iso,
    utcnow,
)
from .schema import SchemaMigrator, ensure_schema

__all__ = [
    "DEFAULT_DB_TIMEOUT",
    "PersistenceError",
    "SchemaMigrator",
    "apply_pragmas",
    "ensure_schema",
    "get_connection",
    "get_db_path",
    "iso_utcnow",
    "load_config",
    "to_iso",
    "utcnow",
]
