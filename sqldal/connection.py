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

"""Connection manager — opens, checks, and releases DAL handles."""

from __future__ import annotations

import logging

from sqldal.config import ConnectionParams
from sqldal.drivers import get_driver
from sqldal.errors import ErrorClassifier, ErrorRecord, default_classifier
from sqldal.handle import DalHandle

logger = logging.getLogger(__name__)


def connect(
    params: ConnectionParams,
    *,
    classifier: ErrorClassifier | None = None,
) -> tuple[DalHandle, ErrorRecord]:
    """Open a connection described by *params* and check it is alive.

    Returns ``(handle, error)``.  The handle is open only if the ping
    succeeded; on any failure it is a closed, connection-less handle and
    *error* says why.
    """
    classifier = classifier or default_classifier()

    try:
        driver = get_driver(params.driver)
        conn = driver.open(params)
    except Exception as exc:
        logger.debug("Could not open %s connection to %s", params.driver, params.host)
        return DalHandle(classifier=classifier), classifier.classify(exc)

    try:
        driver.ping(conn)
    except Exception as exc:
        logger.debug("Ping failed for %s connection to %s", params.driver, params.host)
        try:
            conn.close()
        except Exception as close_exc:
            logger.warning("Error closing unreachable connection: %s", close_exc)
        return DalHandle(classifier=classifier), classifier.classify(exc)

    handle = DalHandle(conn, driver, classifier=classifier)
    handle.is_open = True
    logger.debug("Connected via %s driver to database %r", driver.name, params.database)
    return handle, ErrorRecord.none()


def release(handle: DalHandle) -> ErrorRecord:
    """Close *handle*'s connection (see :meth:`DalHandle.release`)."""
    return handle.release()
