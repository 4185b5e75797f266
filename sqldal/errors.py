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

"""Error classification — maps raw driver errors to a stable vocabulary.

Every failure surfaced by a database driver is reduced to an
:class:`ErrorRecord` carrying a short code, a translated human-readable
message, the original exception, and the call site that asked for the
classification.  The set of categories is closed; new ones are added by
extending an :class:`ErrorTable`, never by special-casing callers.

Usage::

    from sqldal.errors import ErrorClassifier, ErrorTable

    classifier = ErrorClassifier(ErrorTable.for_language("es"))
    record = classifier.classify(exc)
    if record.failed:
        print(record.code, record.message)
"""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from functools import lru_cache
from types import MappingProxyType

logger = logging.getLogger(__name__)

UNKNOWN_CODE = "0"

_CONNECTION_REFUSED_EN = (
    "No connection could be made because the target machine actively refused it"
)
_CONNECTION_REFUSED_ES = (
    "No se puede establecer una conexión ya que el equipo de destino "
    "denegó expresamente dicha conexión"
)

# Language -> (code -> message).  "tcp" is produced by message parsing,
# "2003" is the client-side code PyMySQL raises for the same failure.
_MESSAGES: dict[str, dict[str, str]] = {
    "en": {
        "0": "UNKNOWN ERROR",
        "1045": "INCORRECT USER NAME OR PASSWORD",
        "1049": "UNKNOWN DATABASE",
        "1451": "CANNOT DELETE BECAUSE IT IS REFERENCED BY ANOTHER TABLE",
        "1064": "SQL SYNTAX ERROR",
        "tcp": _CONNECTION_REFUSED_EN,
        "2003": _CONNECTION_REFUSED_EN,
    },
    "es": {
        "0": "ERROR DESCONOCIDO",
        "1045": "USUARIO O CONTRASEÑA INCORRECTOS",
        "1049": "BASE DE DATOS DESCONOCIDA",
        "1451": "NO SE PUEDE BORRAR PORQUE ESTA REFERENCIADA EN OTRA TABLA",
        "1064": "ERROR EN LA SINTAXIS DEL SQL",
        "tcp": _CONNECTION_REFUSED_ES,
        "2003": _CONNECTION_REFUSED_ES,
    },
}


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class DalError(Exception):
    """Base exception for the data-access layer."""


class ClassifiedError(DalError):
    """Raised by :meth:`ErrorRecord.raise_for_error` for a failed record.

    Attributes:
        record: The classified error that triggered the exception.
    """

    def __init__(self, record: ErrorRecord) -> None:
        self.record = record
        super().__init__(f"[{record.code}] {record.message}: {record.cause}")


class HandleStateError(DalError):
    """Raised when a handle is used out of sequence (closed, no transaction...)."""


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ErrorRecord:
    """Outcome of a DAL operation.

    A record without a ``cause`` means success and is safe to discard.

    Attributes:
        code: Classified error code (``""`` on success).
        message: Translated category message (``""`` on success).
        cause: The underlying exception, if any.
        file: Source file of the frame that requested classification.
        function: Function name of that frame.
        line: Line number of that frame.
    """

    code: str = ""
    message: str = ""
    cause: BaseException | None = None
    file: str = ""
    function: str = ""
    line: int = 0

    @classmethod
    def none(cls) -> ErrorRecord:
        """Return the success value."""
        return cls()

    @property
    def failed(self) -> bool:
        return self.cause is not None

    @property
    def origin(self) -> str:
        """``file:line in function`` of the classification request."""
        if not self.file:
            return ""
        return f"{self.file}:{self.line} in {self.function}"

    def raise_for_error(self) -> None:
        """Raise :class:`ClassifiedError` if this record is a failure."""
        if self.cause is not None:
            raise ClassifiedError(self) from self.cause

    def __str__(self) -> str:
        if self.cause is None:
            return "no error"
        return f"[{self.code}] {self.message} ({self.cause})"


# ---------------------------------------------------------------------------
# Translation table
# ---------------------------------------------------------------------------


class ErrorTable(Mapping[str, str]):
    """Immutable code -> message table.

    The table must contain the :data:`UNKNOWN_CODE` entry, which is the
    fallback for every code it does not know.
    """

    def __init__(self, entries: Mapping[str, str], *, language: str = "") -> None:
        if UNKNOWN_CODE not in entries:
            raise ValueError(f"Error table must define the {UNKNOWN_CODE!r} entry")
        self._entries = MappingProxyType(dict(entries))
        self.language = language

    @classmethod
    def for_language(cls, language: str = "en") -> ErrorTable:
        """Return the built-in table for *language* (``"en"`` or ``"es"``)."""
        return _builtin_table(language)

    @staticmethod
    def languages() -> list[str]:
        return list(_MESSAGES.keys())

    def translate(self, code: str) -> str:
        """Return the message for *code*, or the unknown-error message."""
        return self._entries.get(code) or self._entries[UNKNOWN_CODE]

    def extended(self, entries: Mapping[str, str]) -> ErrorTable:
        """Return a new table with *entries* added (or overriding)."""
        return ErrorTable({**self._entries, **entries}, language=self.language)

    def __getitem__(self, code: str) -> str:
        return self._entries[code]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"ErrorTable(language={self.language!r}, codes={list(self._entries)})"


@lru_cache(maxsize=None)
def _builtin_table(language: str) -> ErrorTable:
    messages = _MESSAGES.get(language)
    if messages is None:
        raise ValueError(
            f"Unknown language {language!r}. Available: {sorted(_MESSAGES.keys())}"
        )
    return ErrorTable(messages, language=language)


# ---------------------------------------------------------------------------
# Classifier
# ---------------------------------------------------------------------------


def extract_code(error: BaseException) -> str:
    """Extract a raw error code from a driver exception.

    MySQL DB-API drivers put the server error number in ``args[0]``.
    Otherwise the message is parsed: the text before the first ``:`` must
    split into exactly two space-separated tokens, the second being the
    code (``"Error 1045: Access denied"`` -> ``"1045"``).  Anything else
    yields :data:`UNKNOWN_CODE`.
    """
    if isinstance(error, ConnectionRefusedError):
        return "tcp"

    args = getattr(error, "args", ())
    if args and isinstance(args[0], int) and not isinstance(args[0], bool):
        return str(args[0])

    head, sep, _ = str(error).partition(":")
    if sep:
        tokens = head.split(" ")
        if len(tokens) == 2:
            return tokens[1]
    return UNKNOWN_CODE


class ErrorClassifier:
    """Turns raw driver exceptions into :class:`ErrorRecord` values.

    Parameters
    ----------
    table:
        The translation table to consult.  Tables are immutable, so one
        classifier can be shared by every handle in the process.
    """

    def __init__(self, table: ErrorTable) -> None:
        self.table = table

    def classify(self, error: BaseException | None, *, stacklevel: int = 1) -> ErrorRecord:
        """Classify *error*.

        ``None`` yields :meth:`ErrorRecord.none`.  *stacklevel* selects the
        frame recorded as the origin: ``1`` is the direct caller of this
        method, ``2`` its caller, and so on.
        """
        if error is None:
            return ErrorRecord.none()

        code = extract_code(error)
        if code not in self.table:
            code = UNKNOWN_CODE

        file, function, line = _call_site(stacklevel + 1)
        return ErrorRecord(
            code=code,
            message=self.table.translate(code),
            cause=error,
            file=file,
            function=function,
            line=line,
        )


def _call_site(depth: int) -> tuple[str, str, int]:
    try:
        frame = sys._getframe(depth)
    except ValueError:
        return "", "", 0
    return frame.f_code.co_filename, frame.f_code.co_name, frame.f_lineno


@lru_cache(maxsize=1)
def default_classifier() -> ErrorClassifier:
    """Return the process-wide classifier.

    The language is read once from ``SQLDAL_LANGUAGE`` (default ``"en"``).
    """
    language = os.environ.get("SQLDAL_LANGUAGE", "en")
    logger.debug("Using %r error messages", language)
    return ErrorClassifier(ErrorTable.for_language(language))
