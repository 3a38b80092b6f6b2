from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any

from gra_core.logging import get_logger
from sqlalchemy.exc import DBAPIError

if TYPE_CHECKING:
    from contextlib import AbstractAsyncContextManager

    from sqlalchemy.ext.asyncio import AsyncConnection

logger = get_logger(__name__)

# Largest LIMIT MySQL accepts; used when only OFFSET was requested.
MYSQL_MAX_LIMIT = 18446744073709551615


class Dialect(str, Enum):
    """SQL dialects the ORM can generate statements for."""

    SQLITE = "sqlite"
    POSTGRESQL = "postgresql"
    MYSQL = "mysql"

    @property
    def numbered(self) -> bool:
        """True when the driver expects ``$1, $2, ...`` markers."""
        return self is Dialect.POSTGRESQL

    @classmethod
    def from_name(cls, name: str) -> Dialect:
        """
        Resolve a dialect from a name such as SQLAlchemy's ``dialect.name``.

        Raises:
            ValueError: If the name is not a supported dialect.
        """
        aliases = {"postgres": cls.POSTGRESQL, "mariadb": cls.MYSQL}
        key = name.lower()
        if key in aliases:
            return aliases[key]
        return cls(key)


# Ordered canary queries; each one only parses under its own dialect.
PROBES: tuple[tuple[Dialect, str], ...] = (
    (Dialect.POSTGRESQL, "SELECT 1::integer"),
    (Dialect.SQLITE, "SELECT sqlite_version()"),
    (Dialect.MYSQL, "SELECT VERSION()"),
)

DEFAULT_DIALECT = Dialect.SQLITE


def placeholder(dialect: Dialect, index: int) -> str:
    """
    Return the bind marker for the 1-based parameter ``index``.

    >>> placeholder(Dialect.POSTGRESQL, 3)
    '$3'
    """
    if dialect is Dialect.POSTGRESQL:
        return f"${index}"
    if dialect is Dialect.MYSQL:
        return "%s"
    return "?"


def rewrite_placeholders(sql: str, dialect: Dialect, start: int = 0) -> str:
    """
    Rewrite ``?`` markers into the driver's marker style.

    Markers inside single-quoted literals are left alone. For PostgreSQL the
    numbering continues after ``start`` so a fragment can be appended to a
    statement that already consumed ``start`` parameters.

    For MySQL every literal ``%`` is doubled, inside quotes too: the context
    always hands the driver a parameter tuple (possibly empty), and aiomysql
    and PyMySQL then run the statement through ``%`` formatting.

    >>> rewrite_placeholders("a = ? AND b = ?", Dialect.POSTGRESQL, start=1)
    'a = $2 AND b = $3'
    >>> rewrite_placeholders("name LIKE 'A%' AND id = ?", Dialect.MYSQL)
    "name LIKE 'A%%' AND id = %s"
    """
    if dialect is Dialect.SQLITE:
        return sql
    if dialect is Dialect.MYSQL:
        sql = sql.replace("%", "%%")
    if "?" not in sql:
        return sql

    out: list[str] = []
    count = start
    in_literal = False
    for char in sql:
        if char == "'":
            in_literal = not in_literal
        elif char == "?" and not in_literal:
            count += 1
            out.append(placeholder(dialect, count))
            continue
        out.append(char)
    return "".join(out)


def limit_clause(dialect: Dialect, limit: int | None, offset: int | None) -> str:
    """
    Build the LIMIT/OFFSET tail of a SELECT.

    SQLite and MySQL reject OFFSET without LIMIT, so an unbounded LIMIT is
    emitted for them when only an offset is set.
    """
    if limit is None and offset:
        if dialect is Dialect.SQLITE:
            limit = -1
        elif dialect is Dialect.MYSQL:
            limit = MYSQL_MAX_LIMIT

    parts = []
    if limit is not None:
        parts.append(f"LIMIT {int(limit)}")
    if offset:
        parts.append(f"OFFSET {int(offset)}")
    return " ".join(parts)


def adapt_value(dialect: Dialect, value: Any) -> Any:
    """
    Convert a Python value into something the dialect's driver binds natively.

    SQLite stores timestamps as ISO-8601 text.
    """
    if dialect is Dialect.SQLITE and isinstance(value, datetime):
        return value.isoformat(sep=" ")
    return value


def _probe_scope(connection: AsyncConnection) -> AbstractAsyncContextManager[Any]:
    # A failed probe must not abort a transaction the caller already holds.
    if connection.in_transaction():
        return connection.begin_nested()
    return connection.begin()


async def detect_dialect(connection: AsyncConnection) -> Dialect:
    """
    Probe a live connection to find out which dialect it speaks.

    The first canary query that succeeds wins. When none succeeds the default
    dialect is returned and the fallback is logged as a warning.
    """
    for dialect, probe in PROBES:
        try:
            async with _probe_scope(connection):
                await connection.exec_driver_sql(probe)
        except DBAPIError as e:
            logger.debug("Dialect probe %r failed: %s", probe, e.orig)
            continue
        logger.debug("Detected %s dialect", dialect.value)
        return dialect

    logger.warning(
        "Could not detect the database dialect; falling back to %s. "
        "Set GRA_DB_DIALECT to silence this.",
        DEFAULT_DIALECT.value,
    )
    return DEFAULT_DIALECT
