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

"""The DAL handle — one connection, at most one transaction, at most one
prepared statement.

The handle's :class:`Mode` is updated exactly where a transaction or
statement starts or ends, and every execution site dispatches on it.
No public method raises on a driver error: each returns an
:class:`~sqldal.errors.ErrorRecord` that the caller checks.
"""

from __future__ import annotations

import logging
from contextlib import closing
from enum import Enum
from typing import Any

from sqldal.drivers import Driver
from sqldal.errors import ErrorClassifier, ErrorRecord, HandleStateError, default_classifier
from sqldal.operations import (
    ResultSet,
    column_names,
    fetch_rows,
    read_affected_rows,
    read_last_insert_id,
    run,
)
from sqldal.statements import PreparedStatement
from sqldal.transactions import Transaction

logger = logging.getLogger(__name__)


class Mode(Enum):
    """Which execution path the handle currently routes through."""

    PLAIN = "plain"
    TRANSACTIONAL = "transactional"
    PREPARED = "prepared"
    PREPARED_IN_TRANSACTION = "prepared_in_transaction"

    @property
    def in_transaction(self) -> bool:
        return self in (Mode.TRANSACTIONAL, Mode.PREPARED_IN_TRANSACTION)

    @property
    def prepared(self) -> bool:
        return self in (Mode.PREPARED, Mode.PREPARED_IN_TRANSACTION)

    def with_transaction(self, active: bool) -> Mode:
        return _MODES[(active, self.prepared)]

    def with_statement(self, active: bool) -> Mode:
        return _MODES[(self.in_transaction, active)]


# (in transaction, prepared) -> mode
_MODES = {
    (False, False): Mode.PLAIN,
    (True, False): Mode.TRANSACTIONAL,
    (False, True): Mode.PREPARED,
    (True, True): Mode.PREPARED_IN_TRANSACTION,
}


class DalHandle:
    """Session object over one DB-API connection.

    Created by :func:`sqldal.connect`; not safe for concurrent use.

    Attributes:
        is_open: True between a successful connect and :meth:`release`.
        conn: The owned DB-API connection.
        driver: The :class:`~sqldal.drivers.Driver` that opened it.
        classifier: Classifier used for every returned error.
        transaction: The active :class:`Transaction`, if any.
        statement: The active :class:`PreparedStatement`, if any.
        mode: Current :class:`Mode`.
        last_insert_id: Insert id reported by the last successful execute.
        last_affected_rows: Row count reported by the last successful execute.
    """

    def __init__(
        self,
        conn: Any = None,
        driver: Driver | None = None,
        *,
        classifier: ErrorClassifier | None = None,
    ) -> None:
        self.conn = conn
        self.driver = driver
        self.classifier = classifier or default_classifier()
        self.is_open = False
        self.transaction: Transaction | None = None
        self.statement: PreparedStatement | None = None
        self.mode = Mode.PLAIN
        self.last_insert_id = 0
        self.last_affected_rows = 0

    def __repr__(self) -> str:
        state = "open" if self.is_open else "closed"
        driver = self.driver.name if self.driver else None
        return f"<DalHandle {state} driver={driver} mode={self.mode.value}>"

    def __enter__(self) -> DalHandle:
        return self

    def __exit__(self, *exc_info: object) -> None:
        if self.is_open:
            self.release()

    @property
    def errors(self) -> list[BaseException]:
        """Execution failures accumulated by the active transaction."""
        if self.transaction is None:
            return []
        return list(self.transaction.errors)

    def _classify(self, error: BaseException | None) -> ErrorRecord:
        # Origin is the public method that called this helper.
        return self.classifier.classify(error, stacklevel=2)

    def _require_open(self) -> None:
        if not self.is_open:
            raise HandleStateError("Handle is not open")

    # --- Connection ---------------------------------------------------------

    def release(self) -> ErrorRecord:
        """Close the underlying connection.

        Each call is an independent close attempt; calling it twice
        reports whatever the driver reports for the second close.
        """
        logger.info("Releasing connection")
        self.is_open = False
        try:
            if self.conn is None:
                raise HandleStateError("Handle has no connection")
            self.conn.close()
        except Exception as exc:
            return self._classify(exc)
        return ErrorRecord.none()

    # --- Transactions -------------------------------------------------------

    def begin_transaction(self) -> ErrorRecord:
        """Start a transaction on the handle's connection."""
        try:
            self._require_open()
            if self.transaction is not None:
                raise HandleStateError("A transaction is already active")
            self.driver.begin(self.conn)
        except Exception as exc:
            return self._classify(exc)

        self.transaction = Transaction(self.conn)
        self.mode = self.mode.with_transaction(True)
        logger.debug("Transaction started")
        return ErrorRecord.none()

    def end_transaction(self) -> tuple[bool, ErrorRecord]:
        """Commit the active transaction, or roll it back if any execute failed.

        Returns ``(committed, error)``.  The transaction is discarded
        whatever the result.  An active prepared statement stays on the
        handle and must still be released.
        """
        tx = self.transaction
        if tx is None:
            return False, self._classify(HandleStateError("No active transaction"))

        self.transaction = None
        self.mode = self.mode.with_transaction(False)
        try:
            committed = tx.finish()
        except Exception as exc:
            return False, self._classify(exc)
        return committed, ErrorRecord.none()

    # --- Prepared statements ------------------------------------------------

    def prepare(self, sql: str) -> ErrorRecord:
        """Prepare *sql* against the active transaction or the connection.

        The driver compiles the SQL first, so invalid SQL fails here
        rather than on the first execute.  A previously prepared statement
        is replaced but not released.
        """
        try:
            self._require_open()
            statement = PreparedStatement(self.conn, sql, transaction=self.transaction)
            self.driver.prepare(self.conn, statement.sql)
        except Exception as exc:
            return self._classify(exc)

        if self.statement is not None and not self.statement.closed:
            logger.warning(
                "Replacing prepared statement without releasing it: %s",
                self.statement.sql,
            )
        self.statement = statement
        self.mode = self.mode.with_statement(True)
        return ErrorRecord.none()

    def release_statement(self) -> ErrorRecord:
        """Close the active prepared statement."""
        statement = self.statement
        if statement is None:
            return self._classify(HandleStateError("No prepared statement to release"))

        logger.info("Releasing prepared statement")
        statement.close()
        self.statement = None
        self.mode = self.mode.with_statement(False)
        return ErrorRecord.none()

    # --- Execution ----------------------------------------------------------

    def _query_cursor(self, sql: str, params: tuple[Any, ...]) -> Any:
        mode = self.mode
        if mode is Mode.PREPARED or mode is Mode.PREPARED_IN_TRANSACTION:
            return self.statement.execute(params)
        if mode is Mode.PLAIN or mode is Mode.TRANSACTIONAL:
            # A DB-API connection has one transaction, so a query issued
            # while one is open reads inside it.
            logger.debug("Query (%s): %s", mode.value, sql)
            return run(self.conn, sql, params)
        raise AssertionError(f"Unhandled mode {mode!r}")

    def _exec_cursor(self, sql: str, params: tuple[Any, ...]) -> Any:
        mode = self.mode
        if mode is Mode.PREPARED or mode is Mode.PREPARED_IN_TRANSACTION:
            return self.statement.execute(params)
        if mode is Mode.TRANSACTIONAL:
            logger.debug("Exec in transaction: %s", sql)
            return run(self.conn, sql, params)
        if mode is Mode.PLAIN:
            logger.debug("Exec: %s", sql)
            return run(self.conn, sql, params)
        raise AssertionError(f"Unhandled mode {mode!r}")

    def query(self, sql: str, *params: Any) -> tuple[ResultSet, ErrorRecord]:
        """Run a row-returning statement.

        With a prepared statement active, *sql* is ignored and *params*
        are bound to the prepared statement.

        Returns ``(rows, error)``.  On a read failure *rows* holds the
        rows read before it.
        """
        rows: ResultSet = []
        try:
            self._require_open()
            cursor = self._query_cursor(sql, params)
        except Exception as exc:
            return rows, self._classify(exc)

        with closing(cursor):
            try:
                columns = column_names(cursor)
                fetch_rows(cursor, columns, rows)
            except Exception as exc:
                return rows, self._classify(exc)
        return rows, ErrorRecord.none()

    def execute(self, sql: str, *params: Any) -> ErrorRecord:
        """Run a data-changing statement.

        With a prepared statement active, *sql* is ignored.  On success
        :attr:`last_insert_id` and :attr:`last_affected_rows` are updated;
        on failure the active transaction, if any, is marked failed so
        that :meth:`end_transaction` rolls back.
        """
        try:
            self._require_open()
            cursor = self._exec_cursor(sql, params)
        except Exception as exc:
            if self.transaction is not None:
                self.transaction.record_failure(exc)
            return self._classify(exc)

        if self.transaction is not None:
            self.transaction.record_success()
        # Each counter is read on its own; the first failure is reported.
        error: Exception | None = None
        with closing(cursor):
            try:
                self.last_insert_id = read_last_insert_id(cursor)
            except Exception as exc:
                error = exc
            try:
                self.last_affected_rows = read_affected_rows(cursor)
            except Exception as exc:
                error = error or exc
        return self._classify(error)
