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

"""Connection parameters and the driver connection string (DSN).

The DSN format is the one externally visible encoding of the package::

    user:password@protocol(host:port)/database?options

Parameters can be given explicitly, parsed from a DSN, or read from
``SQLDAL_*`` environment variables.
"""

from __future__ import annotations

import os
import re
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from typing import Any
from urllib.parse import parse_qsl, urlencode

DEFAULT_PORT = 3306
DEFAULT_OPTIONS: tuple[tuple[str, str], ...] = (
    ("parseTime", "true"),
    ("loc", "America/Bogota"),
)

_DSN_RE = re.compile(
    r"^(?P<user>[^:@]*)(?::(?P<password>.*))?"
    r"@(?P<protocol>\w+)\((?P<host>[^()]*?)(?::(?P<port>\d+))?\)"
    r"/(?P<database>[^?]*)(?:\?(?P<query>.*))?$"
)
_PASSWORD_RE = re.compile(r"^([^:@]*):.*@(?=\w+\()")


def redact_dsn(dsn: str) -> str:
    """Replace the password in *dsn* with ``***``.

    >>> redact_dsn("app:s3cret@tcp(db:3306)/shop")
    'app:***@tcp(db:3306)/shop'
    """
    return _PASSWORD_RE.sub(r"\1:***@", dsn, count=1)


@dataclass(frozen=True)
class ConnectionParams:
    """Everything needed to open one database connection.

    Attributes:
        host: Server host name or address.
        port: Server port.
        database: Database (schema) name; for SQLite, a file path or
            ``":memory:"``.
        user: Login name.
        password: Login password (never shown in ``repr``).
        driver: Registered driver name (see :mod:`sqldal.drivers`).
        protocol: Transport written into the DSN.
        options: Extra DSN options, in order.  A mapping or any iterable of
            pairs is accepted and frozen into a tuple of pairs.
    """

    host: str = "localhost"
    port: int = DEFAULT_PORT
    database: str = ""
    user: str = ""
    password: str = field(default="", repr=False)
    driver: str = "mysql"
    protocol: str = "tcp"
    options: tuple[tuple[str, str], ...] = DEFAULT_OPTIONS

    def __post_init__(self) -> None:
        options = self.options.items() if isinstance(self.options, Mapping) else self.options
        object.__setattr__(self, "options", tuple((key, value) for key, value in options))
        object.__setattr__(self, "port", int(self.port))

    def dsn(self) -> str:
        """Build the driver connection string."""
        dsn = (
            f"{self.user}:{self.password}@{self.protocol}"
            f"({self.host}:{self.port})/{self.database}"
        )
        if self.options:
            dsn += "?" + urlencode(self.options)
        return dsn

    def option(self, name: str, default: str | None = None) -> str | None:
        """Return the value of DSN option *name*."""
        for key, value in self.options:
            if key == name:
                return value
        return default

    def with_options(self, **options: str) -> ConnectionParams:
        """Return a copy with *options* merged over the current ones."""
        merged = dict(self.options)
        merged.update(options)
        return replace(self, options=tuple(merged.items()))

    @classmethod
    def from_dsn(cls, dsn: str, **overrides: Any) -> ConnectionParams:
        """Parse a DSN built by :meth:`dsn`.

        Raises :class:`ValueError` if *dsn* does not match the format.
        """
        match = _DSN_RE.match(dsn)
        if match is None:
            raise ValueError(f"Invalid DSN {redact_dsn(dsn)!r}")
        parts = match.groupdict()
        values: dict[str, Any] = {
            "user": parts["user"],
            "password": parts["password"] or "",
            "protocol": parts["protocol"],
            "host": parts["host"],
            "port": int(parts["port"]) if parts["port"] else DEFAULT_PORT,
            "database": parts["database"],
            "options": tuple(parse_qsl(parts["query"] or "", keep_blank_values=True)),
        }
        values.update(overrides)
        return cls(**values)

    @classmethod
    def from_env(
        cls,
        prefix: str = "SQLDAL_",
        environ: Mapping[str, str] | None = None,
    ) -> ConnectionParams:
        """Read parameters from environment variables.

        ``{prefix}DSN`` takes precedence; otherwise ``HOST``, ``PORT``,
        ``DATABASE``, ``USER`` and ``PASSWORD`` are read individually.
        ``{prefix}DRIVER`` applies in both cases.
        """
        env = os.environ if environ is None else environ
        driver = env.get(f"{prefix}DRIVER", "mysql")

        dsn = env.get(f"{prefix}DSN")
        if dsn:
            return cls.from_dsn(dsn, driver=driver)

        return cls(
            host=env.get(f"{prefix}HOST", "localhost"),
            port=int(env.get(f"{prefix}PORT", DEFAULT_PORT)),
            database=env.get(f"{prefix}DATABASE", ""),
            user=env.get(f"{prefix}USER", ""),
            password=env.get(f"{prefix}PASSWORD", ""),
            driver=driver,
        )
