# sqldal — minimal data-access layer for relational databases
# Copyright (C) 2024-2026 Dr Horst Herb
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU Affero General Public License for more details.
#
# You should have received a copy of the GNU Affero General Public License
# along with this program.  If not, see <https://www.gnu.org/licenses/>.

"""Driver boundary — DB-API drivers the handle can sit on.

A :class:`Driver` knows how to open a connection from
:class:`~sqldal.config.ConnectionParams`, how to check it is alive, how
to start an explicit transaction, and how to compile a statement without
running it.  Everything else (cursors, commit, rollback, close) is plain
DB-API 2.0.

Connections are opened in autocommit mode so that statements outside a
transaction take effect immediately; transactions are always explicit.

Drivers are registered by name and lazily discovered on first access.
New drivers can be registered at runtime via :func:`register_driver`.
"""

from __future__ import annotations

import logging
import re
import sqlite3
from collections.abc import Callable
from contextlib import closing
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import pymysql

from sqldal.config import ConnectionParams, redact_dsn

logger = logging.getLogger(__name__)


def _accept_statement(conn: Any, sql: str) -> None:
    """Prepare check for drivers that cannot compile without executing."""


@dataclass(frozen=True)
class Driver:
    """A named set of connection primitives.

    Attributes:
        name: Registry name, matched against ``ConnectionParams.driver``.
        open: Opens and returns a DB-API connection.
        ping: Raises if the connection is not alive.
        begin: Starts an explicit transaction on the connection.
        prepare: Compiles a statement on the connection without running
            it; raises the driver's error if the SQL is invalid.
    """

    name: str
    open: Callable[[ConnectionParams], Any]
    ping: Callable[[Any], None]
    begin: Callable[[Any], None]
    prepare: Callable[[Any, str], None] = _accept_statement


# Registry: driver name -> Driver
_REGISTRY: dict[str, Driver] = {}


def register_driver(driver: Driver) -> None:
    """Register *driver* under its name, replacing any previous entry."""
    _ensure_builtins()
    _REGISTRY[driver.name] = driver


def get_driver(name: str) -> Driver:
    """Return the driver registered as *name*.

    Raises :class:`ValueError` if no such driver is registered.
    """
    _ensure_builtins()
    driver = _REGISTRY.get(name)
    if driver is None:
        raise ValueError(
            f"Unknown driver {name!r}. Available: {sorted(_REGISTRY.keys())}"
        )
    return driver


def list_drivers() -> list[str]:
    """Return names of all registered drivers."""
    _ensure_builtins()
    return list(_REGISTRY.keys())


# ---------------------------------------------------------------------------
# MySQL (PyMySQL)
# ---------------------------------------------------------------------------

# DSN options PyMySQL understands; the rest are accepted for DSN
# compatibility and ignored.
_MYSQL_OPTIONS = {"charset": "charset"}


def mysql_connect_kwargs(dsn: str) -> dict[str, Any]:
    """Translate a DSN into ``pymysql.connect`` keyword arguments."""
    params = ConnectionParams.from_dsn(dsn)
    kwargs: dict[str, Any] = {
        "host": params.host,
        "port": params.port,
        "user": params.user,
        "password": params.password,
        "database": params.database or None,
        "autocommit": True,
    }
    for key, value in params.options:
        target = _MYSQL_OPTIONS.get(key)
        if target is None:
            logger.debug("Ignoring DSN option %s=%s", key, value)
            continue
        kwargs[target] = value
    return kwargs


def _open_mysql(params: ConnectionParams) -> Any:
    dsn = params.dsn()
    conn = pymysql.connect(**mysql_connect_kwargs(dsn))
    logger.debug("MySQL connection opened: %s", redact_dsn(dsn))
    return conn


def _ping_mysql(conn: Any) -> None:
    conn.ping(reconnect=False)


def _begin_mysql(conn: Any) -> None:
    conn.begin()


# pyformat placeholders (%s, %(name)s) and the %% escape
_PYFORMAT_RE = re.compile(r"%\(\w+\)s|%s|%%")


def server_placeholders(sql: str) -> str:
    """Rewrite PyMySQL placeholders as the ``?`` markers ``PREPARE`` expects."""
    return _PYFORMAT_RE.sub(lambda m: "%" if m.group() == "%%" else "?", sql)


def _prepare_mysql(conn: Any, sql: str) -> None:
    with closing(conn.cursor()) as cur:
        cur.execute("PREPARE sqldal_check FROM %s", (server_placeholders(sql),))
        cur.execute("DEALLOCATE PREPARE sqldal_check")


# ---------------------------------------------------------------------------
# SQLite (stdlib)
# ---------------------------------------------------------------------------


def _open_sqlite(params: ConnectionParams) -> sqlite3.Connection:
    path = params.database or ":memory:"
    if path != ":memory:":
        path = str(Path(path).expanduser())
        Path(path).parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(path, check_same_thread=False, isolation_level=None)
    if params.option("foreign_keys", "on") == "on":
        conn.execute("PRAGMA foreign_keys=ON")

    logger.debug("SQLite connection opened: %s", path)
    return conn


def _ping_sqlite(conn: sqlite3.Connection) -> None:
    conn.execute("SELECT 1").fetchone()


def _begin_sqlite(conn: sqlite3.Connection) -> None:
    conn.execute("BEGIN")


_BINDINGS_RE = re.compile(r"statement uses (\d+)")


def _prepare_sqlite(conn: sqlite3.Connection, sql: str) -> None:
    """Compile *sql* under ``EXPLAIN`` so nothing is executed.

    sqlite3 binds parameters only after the statement compiles, so a
    binding-count error means the SQL compiled; it is explained again
    with NULL bound to every placeholder.
    """
    with closing(conn.cursor()) as cur:
        try:
            cur.execute(f"EXPLAIN {sql}")
        except sqlite3.ProgrammingError as exc:
            match = _BINDINGS_RE.search(str(exc))
            if match is None:
                raise
            cur.execute(f"EXPLAIN {sql}", (None,) * int(match.group(1)))


# ---------------------------------------------------------------------------
# Lazy built-in registration
# ---------------------------------------------------------------------------


def _ensure_builtins() -> None:
    """Register the built-in drivers on first access."""
    if "mysql" in _REGISTRY:
        return
    _REGISTRY["mysql"] = Driver(
        "mysql", _open_mysql, _ping_mysql, _begin_mysql, _prepare_mysql
    )
    _REGISTRY["sqlite"] = Driver(
        "sqlite", _open_sqlite, _ping_sqlite, _begin_sqlite, _prepare_sqlite
    )
