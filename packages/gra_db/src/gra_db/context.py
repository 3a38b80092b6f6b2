from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any, AsyncIterator, Sequence, Type, TypeVar

from gra_core.config import GraSettings, gra_settings
from gra_core.logging import get_logger
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

from . import schema
from .dialects import Dialect, adapt_value, detect_dialect, placeholder
from .exceptions import GraDBError, MissingIdentifierError, QueryError, SaveChangesError
from .queryset import QuerySet
from .tracking import ChangeTracker, EntityState
from .transaction import Atomic, atomic
from .validator import EntityValidator

if TYPE_CHECKING:
    from sqlalchemy.engine import CursorResult

logger = get_logger(__name__)

T = TypeVar("T")
Bind = AsyncEngine | AsyncConnection

_VERBS = {
    EntityState.ADDED: "insert",
    EntityState.MODIFIED: "update",
    EntityState.DELETED: "delete",
}


async def resolve_dialect(
    bind: Bind,
    dialect: Dialect | str | None = None,
    settings: GraSettings | None = None,
) -> Dialect:
    """
    Decide which dialect a context speaks.

    An explicit ``dialect`` wins, then ``settings.DB_DIALECT``; only when both
    are unset is the live connection probed.
    """
    if dialect is not None:
        return dialect if isinstance(dialect, Dialect) else Dialect.from_name(dialect)

    settings = settings or gra_settings
    if settings.DB_DIALECT:
        return Dialect.from_name(settings.DB_DIALECT)

    if isinstance(bind, AsyncConnection):
        return await detect_dialect(bind)
    async with bind.connect() as conn:
        return await detect_dialect(conn)


class EntityContext:
    """
    Unit of work over a database bind.

    Tracks entity states and turns them into INSERT, UPDATE and DELETE
    statements on ``save_changes()``; hands out ``QuerySet`` readers through
    ``set()``.

    The bind decides transaction behaviour:

    - ``AsyncEngine``: each statement runs in its own short transaction and is
      committed immediately.
    - ``AsyncConnection``: statements run on the caller's connection and the
      caller commits or rolls back (see ``transaction()``).

    A context is a single-task object; do not share one between tasks.

    Example:
        >>> ctx = await EntityContext.create(engine)
        >>> ctx.add(User(name="Ada"))
        >>> await ctx.save_changes()
        1
        >>> await ctx.set(User).where("name = ?", "Ada").first()
    """

    def __init__(self, bind: Bind, *, dialect: Dialect):
        self.bind = bind
        self.dialect = dialect
        self.change_tracker = ChangeTracker()

    @classmethod
    async def create(
        cls,
        bind: Bind,
        *,
        dialect: Dialect | str | None = None,
        settings: GraSettings | None = None,
    ) -> EntityContext:
        """Build a context, resolving its dialect (see ``resolve_dialect``)."""
        resolved = await resolve_dialect(bind, dialect, settings)
        return cls(bind, dialect=resolved)

    # --- State transitions (no I/O) ---

    def add(self, entity: Any) -> None:
        """Mark an entity for insertion on the next save."""
        EntityValidator.validate_instance(entity)
        self.change_tracker.set_state(entity, EntityState.ADDED)

    def update(self, entity: Any) -> None:
        """Mark an entity for update on the next save."""
        EntityValidator.validate_instance(entity)
        self.change_tracker.set_state(entity, EntityState.MODIFIED)

    def delete(self, entity: Any) -> None:
        """Mark an entity for deletion on the next save."""
        EntityValidator.validate_instance(entity)
        self.change_tracker.set_state(entity, EntityState.DELETED)

    def attach(self, entity: Any) -> None:
        """Start tracking an existing row's entity as Unchanged."""
        EntityValidator.validate_instance(entity)
        self.change_tracker.track(entity, EntityState.UNCHANGED)

    def entry_state(self, entity: Any) -> EntityState:
        return self.change_tracker.get_state(entity)

    # --- Reads ---

    def set(self, entity_type: Type[T]) -> QuerySet[T]:
        """Return a QuerySet over the table of ``entity_type``."""
        return QuerySet(self, EntityValidator.validate_entity(entity_type))

    # --- Connection handling ---

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[AsyncConnection]:
        """Yield the connection statements should run on."""
        if isinstance(self.bind, AsyncConnection):
            yield self.bind
            return
        async with self.bind.begin() as conn:
            yield conn

    def transaction(self) -> Atomic:
        """
        Atomic block on the context's connection.

        Raises:
            GraDBError: If the context is bound to an engine instead of a
                connection.
        """
        if not isinstance(self.bind, AsyncConnection):
            msg = "transaction() requires a context bound to an AsyncConnection"
            raise GraDBError(msg)
        return atomic(self.bind)

    def _adapt(self, params: Sequence[Any]) -> tuple[Any, ...]:
        return tuple(adapt_value(self.dialect, p) for p in params)

    async def _execute(self, sql: str, params: Sequence[Any]) -> int:
        logger.debug("%s %r", sql, params)
        async with self.connection() as conn:
            result: CursorResult[Any] = await conn.exec_driver_sql(
                sql, self._adapt(params)
            )
            return result.rowcount

    async def _insert(self, sql: str, params: Sequence[Any], *, returning: bool) -> Any:
        logger.debug("%s %r", sql, params)
        async with self.connection() as conn:
            result = await conn.exec_driver_sql(sql, self._adapt(params))
            if returning:
                return result.scalar()
            return result.lastrowid

    async def fetch_all(self, sql: str, params: Sequence[Any]) -> list[dict[str, Any]]:
        """
        Run a SELECT and return its rows as column-name dictionaries.

        Raises:
            QueryError: If the driver rejects the statement.
        """
        logger.debug("%s %r", sql, params)
        try:
            async with self.connection() as conn:
                result = await conn.exec_driver_sql(sql, self._adapt(params))
                return [dict(row) for row in result.mappings()]
        except DBAPIError as e:
            msg = f"Query failed: {sql}: {e.orig}"
            raise QueryError(msg) from e

    async def fetch_scalar(self, sql: str, params: Sequence[Any]) -> Any:
        """Run a SELECT and return the first column of the first row."""
        logger.debug("%s %r", sql, params)
        try:
            async with self.connection() as conn:
                result = await conn.exec_driver_sql(sql, self._adapt(params))
                return result.scalar()
        except DBAPIError as e:
            msg = f"Query failed: {sql}: {e.orig}"
            raise QueryError(msg) from e

    # --- Persistence ---

    async def save_changes(self) -> int:
        """
        Persist every tracked change and return the number of entities written.

        Entities are processed in the order they were first tracked. Added and
        Modified entities become Unchanged; Deleted entities stop being
        tracked.

        Raises:
            SaveChangesError: On the first failing statement. Its ``affected``
                attribute counts the entities already persisted; they are not
                rolled back. Bind the context to a connection inside
                ``transaction()`` when the batch must be atomic.
        """
        affected = 0
        for entity, state in self.change_tracker.entries():
            if state is EntityState.UNCHANGED:
                continue
            try:
                if state is EntityState.ADDED:
                    await self._insert_entity(entity)
                elif state is EntityState.MODIFIED:
                    await self._update_entity(entity)
                else:
                    await self._delete_entity(entity)
            except (DBAPIError, MissingIdentifierError) as e:
                reason = e.orig if isinstance(e, DBAPIError) else e
                msg = (
                    f"Failed to {_VERBS[state]} {type(entity).__name__} "
                    f"in {schema.table_name(entity)}: {reason}"
                )
                raise SaveChangesError(msg, affected=affected) from e

            if state is EntityState.DELETED:
                self.change_tracker.untrack(entity)
            else:
                self.change_tracker.set_state(entity, EntityState.UNCHANGED)
            affected += 1

        if affected:
            logger.debug("Saved %d entities", affected)
        return affected

    async def _insert_entity(self, entity: Any) -> None:
        schema.stamp_timestamps(entity, created=True)

        table = schema.table_name(entity)
        data = schema.field_data(entity, exclude_id=True, dialect=self.dialect)
        id_column = schema.identifier(entity)

        if data.columns:
            sql = (
                f"INSERT INTO {table} ({', '.join(data.columns)}) "
                f"VALUES ({', '.join(data.placeholders)})"
            )
        elif self.dialect is Dialect.MYSQL:
            sql = f"INSERT INTO {table} () VALUES ()"
        else:
            sql = f"INSERT INTO {table} DEFAULT VALUES"

        returning = id_column is not None and self.dialect is Dialect.POSTGRESQL
        if returning:
            sql += f" RETURNING {id_column.name}"

        new_id = await self._insert(sql, data.values, returning=returning)
        if new_id:
            schema.set_id(entity, new_id)

    def _require_id(self, entity: Any, verb: str) -> tuple[str, Any]:
        info = schema.identifier(entity)
        if info is None:
            msg = f"Cannot {verb} {type(entity).__name__}: it has no identifier field"
            raise MissingIdentifierError(msg)
        return info.name, schema.get_value(entity, info.path)

    async def _update_entity(self, entity: Any) -> None:
        id_column, id_value = self._require_id(entity, "update")
        schema.stamp_timestamps(entity, created=False)

        table = schema.table_name(entity)
        data = schema.field_data(entity, exclude_id=True, dialect=self.dialect)
        if not data.columns:
            return

        assignments = ", ".join(
            f"{col} = {ph}" for col, ph in zip(data.columns, data.placeholders)
        )
        where = f"{id_column} = {placeholder(self.dialect, len(data.values) + 1)}"
        sql = f"UPDATE {table} SET {assignments} WHERE {where}"

        rowcount = await self._execute(sql, [*data.values, id_value])
        if rowcount == 0:
            logger.warning("UPDATE matched no row in %s for id=%r", table, id_value)

    async def _delete_entity(self, entity: Any) -> None:
        id_column, id_value = self._require_id(entity, "delete")

        table = schema.table_name(entity)
        sql = f"DELETE FROM {table} WHERE {id_column} = {placeholder(self.dialect, 1)}"

        rowcount = await self._execute(sql, [id_value])
        if rowcount == 0:
            logger.warning("DELETE matched no row in %s for id=%r", table, id_value)
