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

"""Tests for sqldal.drivers — registry and built-in drivers."""

from __future__ import annotations

import sqlite3
from unittest.mock import MagicMock, call, patch

import pymysql
import pytest

from sqldal import drivers
from sqldal.config import ConnectionParams
from sqldal.drivers import (
    Driver,
    get_driver,
    list_drivers,
    mysql_connect_kwargs,
    register_driver,
    server_placeholders,
)


@pytest.fixture
def custom_driver():
    driver = Driver("custom", open=MagicMock(), ping=MagicMock(), begin=MagicMock())
    register_driver(driver)
    yield driver
    drivers._REGISTRY.pop("custom", None)


class TestRegistry:
    def test_builtins(self):
        names = list_drivers()
        assert "mysql" in names
        assert "sqlite" in names

    def test_unknown(self):
        with pytest.raises(ValueError, match="Unknown driver"):
            get_driver("oracle")

    def test_register(self, custom_driver):
        assert get_driver("custom") is custom_driver
        assert "mysql" in list_drivers()

    def test_prepare_defaults_to_accept(self, custom_driver):
        assert custom_driver.prepare(MagicMock(), "anything") is None


class TestMySQL:
    def test_connect_kwargs(self):
        dsn = ConnectionParams(
            host="db", database="shop", user="app", password="pw"
        ).with_options(charset="utf8mb4").dsn()
        assert mysql_connect_kwargs(dsn) == {
            "host": "db",
            "port": 3306,
            "user": "app",
            "password": "pw",
            "database": "shop",
            "autocommit": True,
            "charset": "utf8mb4",
        }

    def test_empty_database_is_none(self):
        assert mysql_connect_kwargs("app:pw@tcp(db:3306)/")["database"] is None

    def test_open_uses_pymysql(self):
        params = ConnectionParams(host="db", database="shop", user="app", password="pw")
        with patch("sqldal.drivers.pymysql.connect") as connect:
            conn = get_driver("mysql").open(params)
        connect.assert_called_once_with(**mysql_connect_kwargs(params.dsn()))
        assert conn is connect.return_value

    def test_ping_does_not_reconnect(self):
        conn = MagicMock()
        get_driver("mysql").ping(conn)
        conn.ping.assert_called_once_with(reconnect=False)

    def test_begin(self):
        conn = MagicMock()
        get_driver("mysql").begin(conn)
        conn.begin.assert_called_once_with()

    def test_prepare_on_server(self):
        conn = MagicMock()
        cursor = conn.cursor.return_value
        get_driver("mysql").prepare(conn, "SELECT a FROM t WHERE b = %s AND c = %(c)s")
        assert cursor.execute.call_args_list == [
            call("PREPARE sqldal_check FROM %s", ("SELECT a FROM t WHERE b = ? AND c = ?",)),
            call("DEALLOCATE PREPARE sqldal_check"),
        ]
        cursor.close.assert_called_once_with()

    def test_prepare_error_propagates(self):
        conn = MagicMock()
        cursor = conn.cursor.return_value
        cursor.execute.side_effect = pymysql.err.ProgrammingError(1146, "Table 'shop.t' doesn't exist")
        with pytest.raises(pymysql.err.ProgrammingError):
            get_driver("mysql").prepare(conn, "SELECT a FROM t")
        cursor.close.assert_called_once_with()

    def test_server_placeholders(self):
        assert server_placeholders("x LIKE '10%%' AND y = %s") == "x LIKE '10%' AND y = ?"


class TestSQLite:
    def test_memory(self):
        driver = get_driver("sqlite")
        conn = driver.open(ConnectionParams(driver="sqlite", database=":memory:"))
        driver.ping(conn)
        assert conn.execute("PRAGMA foreign_keys").fetchone()[0] == 1
        conn.close()

    def test_foreign_keys_can_be_disabled(self):
        params = ConnectionParams(driver="sqlite", database=":memory:", options={"foreign_keys": "off"})
        conn = get_driver("sqlite").open(params)
        assert conn.execute("PRAGMA foreign_keys").fetchone()[0] == 0
        conn.close()

    def test_file_creates_parent(self, tmp_path):
        path = tmp_path / "nested" / "data.db"
        conn = get_driver("sqlite").open(ConnectionParams(driver="sqlite", database=str(path)))
        conn.close()
        assert path.exists()

    def test_autocommit_and_explicit_begin(self):
        driver = get_driver("sqlite")
        conn = driver.open(ConnectionParams(driver="sqlite", database=":memory:"))
        assert not conn.in_transaction
        driver.begin(conn)
        assert conn.in_transaction
        conn.rollback()
        assert not conn.in_transaction
        conn.close()

    def test_prepare_compiles_without_running(self):
        driver = get_driver("sqlite")
        conn = driver.open(ConnectionParams(driver="sqlite", database=":memory:"))
        conn.execute("CREATE TABLE t (x INTEGER NOT NULL)")
        driver.prepare(conn, "INSERT INTO t (x) VALUES (?)")
        driver.prepare(conn, "SELECT x FROM t WHERE x BETWEEN ? AND ?")
        assert conn.execute("SELECT COUNT(*) FROM t").fetchone()[0] == 0
        with pytest.raises(sqlite3.OperationalError, match="no such table"):
            driver.prepare(conn, "INSERT INTO missing (x) VALUES (?)")
        with pytest.raises(sqlite3.OperationalError, match="syntax error"):
            driver.prepare(conn, "SELEC x FRM t")
        conn.close()
