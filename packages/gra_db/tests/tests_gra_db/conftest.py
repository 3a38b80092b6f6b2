from unittest.mock import MagicMock

import pytest
import pytest_asyncio
from gra_db import Dialect, EntityContext
from sqlalchemy.ext.asyncio import create_async_engine

from .models import SCHEMA

DATABASE_URL = "sqlite+aiosqlite:///:memory:"  # in-memory DB for tests


@pytest_asyncio.fixture()
async def engine():
    """Provide an engine over a fresh in-memory database with all tables."""
    async_engine = create_async_engine(DATABASE_URL, echo=False)

    async with async_engine.begin() as conn:
        for ddl in SCHEMA:
            await conn.exec_driver_sql(ddl)

    yield async_engine

    await async_engine.dispose()


@pytest_asyncio.fixture()
async def ctx(engine):
    """Provide an EntityContext bound to the test engine (dialect probed)."""
    return await EntityContext.create(engine)


@pytest.fixture()
def pg_ctx():
    """A PostgreSQL-flavoured context for SQL generation only (no I/O)."""
    return EntityContext(MagicMock(), dialect=Dialect.POSTGRESQL)


@pytest.fixture()
def mysql_ctx():
    """A MySQL-flavoured context for SQL generation only (no I/O)."""
    return EntityContext(MagicMock(), dialect=Dialect.MYSQL)
