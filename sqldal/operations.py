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

"""Pure-function execution helpers.

All functions take a DB-API connection or cursor as their first
argument.  SQL is passed in directly — callers are responsible for
writing driver-appropriate placeholders (``%s`` for PyMySQL, ``?`` for
SQLite).

Rows are materialized in a generic tabular form: one ``dict`` per
record, mapping column name to the value's textual representation, with
NULL rendered as :data:`NULL_SENTINEL`.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

logger = logging.getLogger(__name__)

NULL_SENTINEL = "--"

ResultRow = dict[str, str]
ResultSet = list[ResultRow]


def run(conn: Any, sql: str, params: Sequence[Any] = ()) -> Any:
    """Execute *sql* with positional *params* and return the open cursor.

    The cursor is closed before re-raising if execution fails.
    """
    cur = conn.cursor()
    try:
        if params:
            cur.execute(sql, tuple(params))
        else:
            cur.execute(sql)
    except Exception:
        cur.close()
        raise
    return cur


def to_text(value: Any) -> str:
    """Render a column value the way the server sends it as text."""
    if value is None:
        return NULL_SENTINEL
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).decode("utf-8", errors="replace")
    return str(value)


def column_names(cursor: Any) -> list[str]:
    """Return the column names of the cursor's current result.

    Statements that return no rows have no columns.
    """
    if cursor.description is None:
        return []
    return [col[0] for col in cursor.description]


def fetch_rows(cursor: Any, columns: Sequence[str], into: ResultSet) -> None:
    """Append one row per remaining record to *into*.

    Rows read before a failure stay in *into*; the error propagates.
    """
    while True:
        record = cursor.fetchone()
        if record is None:
            break
        into.append({name: to_text(value) for name, value in zip(columns, record)})


def read_last_insert_id(cursor: Any) -> int:
    """Return the insert id reported after an execute.

    Drivers report ``None`` for an unknown insert id; it is read as 0.
    """
    return int(cursor.lastrowid or 0)


def read_affected_rows(cursor: Any) -> int:
    """Return the affected-row count reported after an execute."""
    return int(cursor.rowcount)
