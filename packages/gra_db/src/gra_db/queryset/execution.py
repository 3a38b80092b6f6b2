from __future__ import annotations

from typing import Any

from gra_db import schema
from gra_db.exceptions import (
    DoesNotExistError,
    MissingIdentifierError,
    MultipleObjectsReturnedError,
)
from gra_db.materialize import materialize
from gra_db.tracking import EntityState

from .construction import QuerySetConstruction, T


class QuerySetExecution(QuerySetConstruction[T]):
    """
    Terminal operators.

    Each one builds its SQL from the current clauses at call time and awaits a
    single round trip. Driver failures surface as ``QueryError``.
    """

    def _id_column(self) -> str:
        info = schema.identifier(self.entity_type)
        if info is None:
            msg = f"{self.entity_type.__name__} has no identifier field"
            raise MissingIdentifierError(msg)
        if self._joins:
            return f"{self.table}.{info.name}"
        return info.name

    def _capped(self, count: int) -> Any:
        # A tighter limit set by the caller still applies.
        if self._limit is not None:
            count = min(self._limit, count)
        return self.take(count)

    async def to_list(self) -> list[T]:
        """
        Execute the query and return every match as a new entity instance.

        Results are tracked as Unchanged unless ``as_no_tracking()`` was used.

        Example:
            >>> users = await ctx.set(User).order_by("name").to_list()
        """
        sql, args = self.to_sql()
        rows = await self.context.fetch_all(sql, args)
        results = [materialize(self.entity_type, row) for row in rows]
        if self._tracking:
            for entity in results:
                self.context.change_tracker.track(entity, EntityState.UNCHANGED)
        return results

    async def first_or_default(self) -> T | None:
        """Return the first match, or None when nothing matches."""
        results = await self._capped(1).to_list()
        return results[0] if results else None

    async def first(self) -> T:
        """
        Return the first match.

        Raises:
            DoesNotExistError: If nothing matches.
        """
        result = await self.first_or_default()
        if result is None:
            msg = f"{self.entity_type.__name__} matching query does not exist"
            raise DoesNotExistError(msg)
        return result

    async def single(self) -> T:
        """
        Return the only match.

        At most two rows are fetched, enough to detect ambiguity.

        Raises:
            DoesNotExistError: If nothing matches.
            MultipleObjectsReturnedError: If more than one row matches.
        """
        results = await self._capped(2).to_list()
        if not results:
            msg = f"{self.entity_type.__name__} matching query does not exist"
            raise DoesNotExistError(msg)
        if len(results) > 1:
            msg = f"single() returned more than one {self.entity_type.__name__}"
            raise MultipleObjectsReturnedError(msg)
        return results[0]

    async def last(self) -> T | None:
        """Return the match with the highest identifier, or None."""
        return await self.order_by_descending(self._id_column()).first_or_default()

    async def count(self) -> int:
        """
        Return the number of matching rows.

        Example:
            >>> await ctx.set(User).where("is_active = ?", True).count()
            # SELECT COUNT(*) FROM user WHERE is_active = ?
        """
        sql, args = self.count_sql()
        return int(await self.context.fetch_scalar(sql, args) or 0)

    async def any(self) -> bool:
        """Return True when at least one row matches."""
        return await self.count() > 0

    async def find(self, pk: Any) -> T | None:
        """
        Return the entity with identifier ``pk``, or None.

        Example:
            >>> user = await ctx.set(User).find(42)
        """
        return await self.where(f"{self._id_column()} = ?", pk).first_or_default()
