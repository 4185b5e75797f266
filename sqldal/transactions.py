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

"""Transactions with an explicit outcome.

A :class:`Transaction` records whether every statement executed inside
it succeeded.  The outcome alone decides between commit and rollback
when the transaction ends.
"""

from __future__ import annotations

import logging
from collections.abc import Generator
from contextlib import contextmanager
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from sqldal.handle import DalHandle

logger = logging.getLogger(__name__)


class Outcome(Enum):
    """State of an open transaction."""

    PENDING = "pending"        # nothing executed yet
    SUCCEEDED = "succeeded"    # every execution so far succeeded
    FAILED = "failed"          # at least one execution failed; sticky


class Transaction:
    """An explicit transaction on a DB-API connection.

    Attributes:
        outcome: Current :class:`Outcome`.
        errors: Every execution failure recorded in this transaction.
        closed: True once committed or rolled back.
    """

    def __init__(self, conn: Any) -> None:
        self._conn = conn
        self.outcome = Outcome.PENDING
        self.errors: list[BaseException] = []
        self.closed = False

    @property
    def failed(self) -> bool:
        return self.outcome is Outcome.FAILED

    def record_success(self) -> None:
        if self.outcome is Outcome.PENDING:
            self.outcome = Outcome.SUCCEEDED

    def record_failure(self, error: BaseException) -> None:
        self.errors.append(error)
        self.outcome = Outcome.FAILED

    def finish(self) -> bool:
        """Commit, or roll back if the outcome is FAILED.

        Returns True if the transaction was committed.  Driver errors
        propagate; the transaction counts as closed either way.
        """
        self.closed = True
        if self.failed:
            logger.info(
                "Rolling back transaction after %d failed statement(s)",
                len(self.errors),
            )
            self._conn.rollback()
            return False
        self._conn.commit()
        logger.info("Transaction committed")
        return True


@contextmanager
def transaction(handle: DalHandle) -> Generator[DalHandle, None, None]:
    """Run a block inside a transaction on *handle*.

    Usage::

        with transaction(handle):
            handle.execute("INSERT INTO ...", 1)
            handle.execute("UPDATE ...", 2)
        # committed here, unless an execute failed

    An exception raised by the block marks the transaction failed, rolls
    it back, and propagates.  Failures to begin or end the transaction
    raise :class:`~sqldal.errors.ClassifiedError`.
    """
    handle.begin_transaction().raise_for_error()
    try:
        yield handle
    except Exception as exc:
        if handle.transaction is not None:
            handle.transaction.record_failure(exc)
        handle.end_transaction()
        raise

    committed, err = handle.end_transaction()
    err.raise_for_error()
    if not committed:
        logger.debug("Transaction block finished without commit")
