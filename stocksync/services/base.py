"""Connection handling shared by the stock services.

A service holds a factory rather than a path, so tests can hand it a
temporary database. Each unit of work opens its own short-lived connection.
"""

from __future__ import annotations

import sqlite3
from contextlib import AbstractContextManager
from functools import partial
from pathlib import Path
from typing import Any, Callable, TypeVar

from stocksync.infrastructure.db import get_connection
from stocksync.infrastructure.observability import get_logger

ConnectionFactory = Callable[[], AbstractContextManager[sqlite3.Connection]]
T = TypeVar("T")
ServiceT = TypeVar("ServiceT", bound="BaseService")


def sqlite_connection_factory(db_path: str | Path) -> ConnectionFactory:
    return partial(get_connection, db_path)


class BaseService:
    """Owns a connection factory and a logger named after the subclass module.

    ``SyncEngine.from_sqlite_path("stocksync.db", provider=client)`` is the
    production entry point; tests call the constructor with their own factory.
    """

    def __init__(self, connection_factory: ConnectionFactory) -> None:
        self._connection_factory = connection_factory
        self._logger = get_logger(type(self).__module__)

    @classmethod
    def from_sqlite_path(cls: type[ServiceT], db_path: str | Path, **kwargs: Any) -> ServiceT:
        return cls(sqlite_connection_factory(db_path), **kwargs)

    def _with_connection(self, fn: Callable[[sqlite3.Connection], T]) -> T:
        with self._connection_factory() as conn:
            return fn(conn)
