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

"""Minimal data-access layer over DB-API connections.

Supports MySQL (via PyMySQL) and SQLite (built-in).

Usage::

    from sqldal import ConnectionParams, connect

    handle, err = connect(ConnectionParams(host="db", database="shop",
                                           user="app", password="secret"))
    if err.failed:
        print(err.code, err.message)
    else:
        handle.begin_transaction()
        handle.execute("INSERT INTO orders (item) VALUES (%s)", "book")
        committed, err = handle.end_transaction()
        rows, err = handle.query("SELECT * FROM orders")
        handle.release()
"""

from sqldal.config import ConnectionParams, redact_dsn
from sqldal.connection import connect, release
from sqldal.drivers import Driver, get_driver, list_drivers, register_driver
from sqldal.errors import (
    UNKNOWN_CODE,
    ClassifiedError,
    DalError,
    ErrorClassifier,
    ErrorRecord,
    ErrorTable,
    HandleStateError,
    default_classifier,
)
from sqldal.handle import DalHandle, Mode
from sqldal.operations import NULL_SENTINEL, ResultRow, ResultSet
from sqldal.statements import PreparedStatement
from sqldal.transactions import Outcome, Transaction, transaction

__all__ = [
    "ConnectionParams",
    "redact_dsn",
    "connect",
    "release",
    "Driver",
    "get_driver",
    "list_drivers",
    "register_driver",
    "UNKNOWN_CODE",
    "ClassifiedError",
    "DalError",
    "ErrorClassifier",
    "ErrorRecord",
    "ErrorTable",
    "HandleStateError",
    "default_classifier",
    "DalHandle",
    "Mode",
    "NULL_SENTINEL",
    "ResultRow",
    "ResultSet",
    "PreparedStatement",
    "Outcome",
    "Transaction",
    "transaction",
]
