from collections.abc import AsyncGenerator
from typing import Any, Optional

from gra_core.config import gra_settings
from gra_core.logging import get_logger
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from .context import EntityContext

logger = get_logger(__name__)

_engine: Optional[AsyncEngine] = None


def _enable_sqlite_foreign_keys(engine: AsyncEngine) -> None:
    """
    Enable SQLite foreign key enforcement for every DBAPI connection.
    """

    @event.listens_for(engine.sync_engine.pool, "connect")  # pragma: no cover
    def _set_sqlite_pragma(dbapi_connection, _):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def init_db(
    database_url: Optional[str] = None,
    *,
    echo: Optional[bool] = None,
    **engine_kwargs: Any,
) -> AsyncEngine:
    """
    Initialize the asynchronous SQLAlchemy engine used by ``get_context``.

    Args:
        database_url: Connection URL (e.g. 'sqlite+aiosqlite:///db.sqlite3').
            Defaults to ``GRA_DATABASE_URL``.
        echo: Log emitted SQL through SQLAlchemy. Defaults to ``GRA_DB_ECHO``.
        **engine_kwargs: Passed to ``create_async_engine``.

    Raises:
        RuntimeError: If no URL is given and none is configured.

    Example:
        >>> init_db("sqlite+aiosqlite:///db.sqlite3")
    """
    global _engine

    database_url = database_url or gra_settings.DATABASE_URL
    if not database_url:
        msg = "No database URL given and GRA_DATABASE_URL is not set."
        raise RuntimeError(msg)

    # Normalize PostgreSQL async driver
    if database_url.startswith("postgresql://"):
        database_url = database_url.replace("postgresql://", "postgresql+asyncpg://", 1)

    is_sqlite = database_url.startswith("sqlite")

    options: dict[str, Any] = {
        "echo": gra_settings.DB_ECHO if echo is None else echo,
        **engine_kwargs,
    }

    if is_sqlite:
        # SQLite does not support pooling options
        options.pop("pool_size", None)
        options.pop("max_overflow", None)
        options.pop("pool_pre_ping", None)
    else:
        options.setdefault("pool_pre_ping", True)

    _engine = create_async_engine(database_url, **options)

    if is_sqlite:
        _enable_sqlite_foreign_keys(_engine)

    logger.debug("Initialized database engine for %s", _engine.url.drivername)
    return _engine


async def close_db() -> None:
    """
    Dispose of the database engine and clean up resources.

    Example:
        >>> await close_db()
    """
    global _engine

    if _engine is not None:
        await _engine.dispose()
        _engine = None


def get_engine() -> AsyncEngine:
    if _engine is None:
        msg = "Database not initialized. Call init_db() first."
        raise RuntimeError(msg)
    return _engine


async def get_context() -> AsyncGenerator[EntityContext, None]:
    """
    Async generator that yields an EntityContext on a fresh connection.

    The connection's transaction is committed when the consumer finishes and
    rolled back if it raises. Suitable as a request-scoped dependency.

    Example:
        >>> async for ctx in get_context():
        ...     ctx.add(user)
        ...     await ctx.save_changes()
    """
    engine = get_engine()
    async with engine.connect() as conn:
        ctx = await EntityContext.create(conn)
        async with ctx.transaction():
            yield ctx
