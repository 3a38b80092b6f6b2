from __future__ import annotations

from typing import Any, Iterable

from .base import QuerySetBase, T


class QuerySetConstruction(QuerySetBase[T]):
    """
    Fluent API for composing a query.

    Every method returns a new QuerySet; the receiver is never modified, so
    an intermediate QuerySet can be branched freely.
    """

    def _and(self, condition: str, args: Iterable[Any]) -> Any:
        return self._clone(
            _where=(*self._where, condition),
            _args=(*self._args, *args),
        )

    def where(self, condition: str, *args: Any) -> Any:
        """
        Add a raw SQL condition, ANDed with earlier conditions.

        Use ``?`` for every bound value regardless of dialect.

        Example:
            >>> ctx.set(Product).where("price > ?", 10).where("in_stock = ?", True)
            # SELECT * FROM product WHERE (price > ?) AND (in_stock = ?)
        """
        return self._and(condition, args)

    def where_or(self, condition: str, *args: Any) -> Any:
        """
        Add a condition ORed with everything filtered so far.

        Example:
            >>> ctx.set(User).where("age > ?", 65).where_or("age < ?", 18)
            # SELECT * FROM user WHERE (age > ?) OR (age < ?)
        """
        if not self._where:
            return self._and(condition, args)
        return self._clone(
            _where=(f"({self._where_text()}) OR ({condition})",),
            _args=(*self._args, *args),
        )

    def where_in(self, column: str, values: Iterable[Any]) -> Any:
        """
        Add ``column IN (...)`` with one placeholder per value.

        An empty ``values`` returns the QuerySet unchanged instead of emitting
        invalid ``IN ()`` SQL.

        Example:
            >>> ctx.set(User).where_in("id", [1, 2, 3])
            # SELECT * FROM user WHERE id IN (?, ?, ?)
        """
        values = list(values)
        if not values:
            return self
        markers = ", ".join("?" for _ in values)
        return self._and(f"{column} IN ({markers})", values)

    def where_like(self, column: str, pattern: str) -> Any:
        """
        Add ``column LIKE ?`` with the pattern bound as a parameter.

        Example:
            >>> ctx.set(User).where_like("email", "%@example.com")
        """
        return self._and(f"{column} LIKE ?", (pattern,))

    def where_null(self, column: str) -> Any:
        return self._and(f"{column} IS NULL", ())

    def where_not_null(self, column: str) -> Any:
        return self._and(f"{column} IS NOT NULL", ())

    def order_by(self, column: str) -> Any:
        """
        Order ascending by ``column``, replacing any previous ordering.

        Example:
            >>> ctx.set(User).order_by("name")
            # SELECT * FROM user ORDER BY name
        """
        return self._clone(_order=column)

    def order_by_descending(self, column: str) -> Any:
        """Order descending by ``column``, replacing any previous ordering."""
        return self._clone(_order=f"{column} DESC")

    def select(self, *columns: str) -> Any:
        """
        Restrict the selected columns, replacing any previous selection.

        Fields whose column is not selected keep their defaults on the
        materialised entities.

        Example:
            >>> ctx.set(User).select("id", "name")
            # SELECT id, name FROM user
        """
        return self._clone(_select=columns)

    def distinct(self) -> Any:
        return self._clone(_distinct=True)

    def group_by(self, *columns: str) -> Any:
        """Group by ``columns``, replacing any previous grouping."""
        return self._clone(_group=columns)

    def having(self, condition: str, *args: Any) -> Any:
        """
        Add a HAVING condition, ANDed with earlier ones.

        Example:
            >>> ctx.set(User).select("age").group_by("age").having("COUNT(*) > ?", 1)
        """
        return self._clone(
            _having=(*self._having, condition),
            _having_args=(*self._having_args, *args),
        )

    def _join(self, kind: str, table: str, on: str, args: Iterable[Any]) -> Any:
        return self._clone(
            _joins=(*self._joins, (kind, table, on)),
            _join_args=(*self._join_args, *args),
        )

    def inner_join(self, table: str, on: str, *args: Any) -> Any:
        """
        Add ``INNER JOIN table ON on``; ``on`` may carry ``?`` markers.

        Only the entity's own columns are selected unless ``select()`` says
        otherwise.

        Example:
            >>> ctx.set(User).inner_join("orders", "orders.user_id = user.id")
            # SELECT user.* FROM user INNER JOIN orders ON orders.user_id = user.id
        """
        return self._join("INNER", table, on, args)

    def left_join(self, table: str, on: str, *args: Any) -> Any:
        return self._join("LEFT", table, on, args)

    def right_join(self, table: str, on: str, *args: Any) -> Any:
        return self._join("RIGHT", table, on, args)

    def take(self, count: int) -> Any:
        """
        Limit the number of rows returned.

        Raises:
            ValueError: If ``count`` is negative.
        """
        if count < 0:
            msg = f"take() expects a non-negative count, got {count}"
            raise ValueError(msg)
        return self._clone(_limit=count)

    def skip(self, count: int) -> Any:
        """
        Skip the first ``count`` rows.

        Raises:
            ValueError: If ``count`` is negative.
        """
        if count < 0:
            msg = f"skip() expects a non-negative count, got {count}"
            raise ValueError(msg)
        return self._clone(_offset=count)

    def as_no_tracking(self) -> Any:
        """
        Do not register returned entities with the change tracker.

        Use for read-only fan-out queries.
        """
        return self._clone(_tracking=False)
