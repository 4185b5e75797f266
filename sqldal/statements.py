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

"""Prepared statements."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from sqldal.errors import HandleStateError
from sqldal.operations import run
from sqldal.transactions import Transaction

logger = logging.getLogger(__name__)


class PreparedStatement:
    """A SQL template bound to a connection, optionally inside a transaction.

    The statement is reused for every execution with fresh parameters.
    One bound to a transaction stops working once that transaction ends,
    but it is never closed automatically: :meth:`close` must be called.
    """

    def __init__(
        self,
        conn: Any,
        sql: str,
        *,
        transaction: Transaction | None = None,
    ) -> None:
        if not sql or not sql.strip():
            raise ValueError("Cannot prepare an empty statement")
        self.sql = sql
        self.transaction = transaction
        self.closed = False
        self._conn = conn
        logger.debug("Prepared statement: %s", sql)

    def execute(self, params: Sequence[Any] = ()) -> Any:
        """Execute with *params* and return the open cursor."""
        if self.closed:
            raise HandleStateError("Prepared statement is closed")
        if self.transaction is not None and self.transaction.closed:
            raise HandleStateError(
                "Prepared statement belongs to a transaction that has ended"
            )
        return run(self._conn, self.sql, params)

    def close(self) -> None:
        self.closed = True
