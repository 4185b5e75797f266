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

"""Tests for sqldal.connection — connect and release."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pymysql
import pytest

from sqldal import drivers
from sqldal.config import ConnectionParams
from sqldal.connection import connect, release
from sqldal.drivers import Driver, register_driver
from sqldal.errors import ErrorClassifier, ErrorTable, HandleStateError
from sqldal.handle import DalHandle, Mode


def _mem_params() -> ConnectionParams:
    return ConnectionParams(driver="sqlite", database=":memory:")


@pytest.fixture
def flaky_driver():
    conn = MagicMock()
    driver = Driver(
        "flaky",
        open=MagicMock(return_value=conn),
        ping=MagicMock(side_effect=pymysql.err.OperationalError(2003, "Can't connect")),
        begin=MagicMock(),
    )
    register_driver(driver)
    yield driver, conn
    drivers._REGISTRY.pop("flaky", None)


class TestConnect:
    def test_sqlite_memory(self):
        handle, err = connect(_mem_params())
        assert not err.failed
        assert err.code == ""
        assert handle.is_open
        assert handle.mode is Mode.PLAIN
        assert handle.driver.name == "sqlite"
        assert not handle.release().failed

    def test_then_execute_and_query(self):
        handle, _ = connect(_mem_params())
        assert not handle.execute("CREATE TABLE t (x INTEGER)").failed
        rows, err = handle.query("SELECT 1 AS one")
        assert not err.failed
        assert rows == [{"one": "1"}]
        handle.release()

    def test_wrong_password(self):
        params = ConnectionParams(host="db", database="shop", user="app", password="wrong")
        exc = pymysql.err.OperationalError(
            1045, "Access denied for user 'app'@'10.0.0.2' (using password: YES)"
        )
        with patch("sqldal.drivers.pymysql.connect", side_effect=exc):
            handle, err = connect(params)
        assert err.code == "1045"
        assert err.message == "INCORRECT USER NAME OR PASSWORD"
        assert err.function == "connect"
        assert not handle.is_open
        assert handle.conn is None

    def test_unknown_driver(self):
        handle, err = connect(ConnectionParams(driver="nope"))
        assert err.failed
        assert err.code == "0"
        assert isinstance(err.cause, ValueError)
        assert not handle.is_open

    def test_ping_failure_closes_connection(self, flaky_driver):
        _, conn = flaky_driver
        handle, err = connect(ConnectionParams(driver="flaky"))
        assert err.code == "2003"
        assert not handle.is_open
        assert handle.conn is None
        conn.close.assert_called_once_with()

    def test_ping_failure_with_failing_close(self, flaky_driver):
        _, conn = flaky_driver
        conn.close.side_effect = pymysql.err.Error("Already closed")
        handle, err = connect(ConnectionParams(driver="flaky"))
        assert err.code == "2003"

    def test_custom_classifier(self):
        classifier = ErrorClassifier(ErrorTable.for_language("es"))
        handle, err = connect(ConnectionParams(driver="nope"), classifier=classifier)
        assert err.message == "ERROR DESCONOCIDO"
        assert handle.classifier is classifier


class TestRelease:
    def test_closes_connection(self):
        handle, _ = connect(_mem_params())
        err = release(handle)
        assert not err.failed
        assert not handle.is_open
        _, err = handle.query("SELECT 1")
        assert isinstance(err.cause, HandleStateError)

    def test_second_close_reports_its_own_error(self):
        conn = MagicMock()
        conn.close.side_effect = [None, pymysql.err.Error("Already closed")]
        handle = DalHandle(conn, drivers.get_driver("mysql"))
        handle.is_open = True
        assert not handle.release().failed
        err = handle.release()
        assert err.failed
        assert str(err.cause) == "Already closed"
        assert conn.close.call_count == 2

    def test_handle_without_connection(self):
        err = DalHandle().release()
        assert isinstance(err.cause, HandleStateError)

    def test_context_manager(self):
        handle, _ = connect(_mem_params())
        with handle as h:
            assert h.is_open
        assert not handle.is_open
