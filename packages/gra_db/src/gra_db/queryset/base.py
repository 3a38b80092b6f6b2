from __future__ import annotations

from typing import (
    TYPE_CHECKING,
    Any,
    Generic,
    Type,
    TypeVar,
)

from gra_db import schema
from gra_db.dialects import Dialect, limit_clause, rewrite_placeholders

if TYPE_CHECKING:
    from gra_db.context import EntityContext

T = TypeVar("T")

# Every clause a QuerySet carries, with its empty value.
_CLAUSES: dict[str, Any] = {
    "_select": (),
    "_distinct": False,
    "_joins": (),
    "_join_args": (),
    "_where": (),
    "_args": (),
    "_group": (),
    "_having": (),
    "_having_args": (),
    "_order": "",
    "_limit": None,
    "_offset": None,
    "_tracking": True,
}


class QuerySetBase(Generic[T]):
    """
    Fundamental state of a QuerySet.

    Holds the owning context, the entity type and the accumulated clauses.
    Conditions are stored exactly as written, with ``?`` markers; the full
    statement is assembled in textual order (JOIN, WHERE, GROUP BY, HAVING)
    and its markers are rewritten for the dialect in one pass, so numbered
    placeholders always line up with the argument tuple.
    """

    def __init__(
        self,
        context: EntityContext,
        entity_type: Type[T],
        **clauses: Any,
    ):
        unknown = set(clauses) - set(_CLAUSES)
        if unknown:
            raise TypeError(f"unknown QuerySet clauses: {sorted(unknown)}")

        self.context = context
        self.entity_type: Type[T] = entity_type
        self._select: tuple[str, ...] = clauses.get("_select", ())
        self._distinct: bool = clauses.get("_distinct", False)
        self._joins: tuple[tuple[str, str, str], ...] = clauses.get("_joins", ())
        self._join_args: tuple[Any, ...] = clauses.get("_join_args", ())
        self._where: tuple[str, ...] = clauses.get("_where", ())
        self._args: tuple[Any, ...] = clauses.get("_args", ())
        self._group: tuple[str, ...] = clauses.get("_group", ())
        self._having: tuple[str, ...] = clauses.get("_having", ())
        self._having_args: tuple[Any, ...] = clauses.get("_having_args", ())
        self._order: str = clauses.get("_order", "")
        self._limit: int | None = clauses.get("_limit")
        self._offset: int | None = clauses.get("_offset")
        self._tracking: bool = clauses.get("_tracking", True)

    def _clone(self, **changes: Any) -> Any:
        """
        Return a new instance of the current class with some clauses replaced.

        Using self.__class__ keeps the top-most class of the layer chain, so
        the copy keeps every construction and execution method.
        """
        state = {name: getattr(self, name) for name in _CLAUSES}
        state.update(changes)
        return self.__class__(self.context, self.entity_type, **state)

    @property
    def dialect(self) -> Dialect:
        return self.context.dialect

    @property
    def table(self) -> str:
        return schema.table_name(self.entity_type)

    @property
    def tracking(self) -> bool:
        return self._tracking

    @staticmethod
    def _joined(conditions: tuple[str, ...]) -> str:
        if len(conditions) == 1:
            return conditions[0]
        return " AND ".join(f"({c})" for c in conditions)

    def _where_text(self) -> str:
        return self._joined(self._where)

    def _columns_sql(self) -> str:
        if self._select:
            columns = ", ".join(self._select)
        elif self._joins:
            # Bare * would return the joined tables' columns under clashing names.
            columns = f"{self.table}.*"
        else:
            columns = "*"
        return f"DISTINCT {columns}" if self._distinct else columns

    def _body_sql(self) -> str:
        """FROM through HAVING, still carrying ``?`` markers."""
        sql = f" FROM {self.table}"
        for kind, table, on in self._joins:
            sql += f" {kind} JOIN {table} ON {on}"
        if self._where:
            sql += f" WHERE {self._where_text()}"
        if self._group:
            sql += f" GROUP BY {', '.join(self._group)}"
        if self._having:
            sql += f" HAVING {self._joined(self._having)}"
        return sql

    def _bound_args(self) -> tuple[Any, ...]:
        # Same order as the markers appear in _body_sql.
        return (*self._join_args, *self._args, *self._having_args)

    def _select_sql(self) -> str:
        sql = f"SELECT {self._columns_sql()}{self._body_sql()}"
        if self._order:
            sql += f" ORDER BY {self._order}"
        tail = limit_clause(self.dialect, self._limit, self._offset)
        if tail:
            sql += f" {tail}"
        return sql

    def to_sql(self) -> tuple[str, tuple[Any, ...]]:
        """
        Build the SELECT a terminal operator would run, with its arguments.

        Example:
            >>> ctx.set(User).where("age > ?", 18).take(5).to_sql()
            ('SELECT * FROM user WHERE age > ? LIMIT 5', (18,))
        """
        sql = rewrite_placeholders(self._select_sql(), self.dialect)
        return sql, self._bound_args()

    def count_sql(self) -> tuple[str, tuple[Any, ...]]:
        """
        Build the COUNT statement.

        Paging, DISTINCT and grouping change what a row is, so those queries
        are counted through a subquery.
        """
        wrapped = (
            self._limit is not None
            or self._offset
            or self._distinct
            or self._group
            or self._having
        )
        if wrapped:
            inner = self._clone(_order="")._select_sql()
            sql = f"SELECT COUNT(*) FROM ({inner}) AS counted"
        else:
            sql = f"SELECT COUNT(*){self._body_sql()}"
        return rewrite_placeholders(sql, self.dialect), self._bound_args()

    def __repr__(self) -> str:
        sql, args = self.to_sql()
        return f"<{self.__class__.__name__} {self.entity_type.__name__}: {sql} {args!r}>"
