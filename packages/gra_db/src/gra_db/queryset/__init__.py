from __future__ import annotations

from typing import TypeVar

from .execution import QuerySetExecution

T = TypeVar("T")


class QuerySet(QuerySetExecution[T]):
    """
    Lazy, immutable query builder for one entity type.

    A QuerySet accumulates WHERE, ORDER BY, LIMIT and OFFSET clauses without
    touching the database. Each transformation returns a new QuerySet, so a
    filtered set can be reused for both ``count()`` and ``to_list()``.

    SQL is built fresh and executed only by the async terminal methods:
        - to_list()
        - first() / first_or_default() / single() / last()
        - count() / any()
        - find()

    Conditions are raw SQL fragments with ``?`` markers; the markers are
    renumbered for dialects that need ``$1, $2, ...``.

    Examples:
        >>> adults = ctx.set(User).where("age >= ?", 18)
        >>> total = await adults.count()
        >>> page = await adults.order_by("name").skip(20).take(10).to_list()
    """


__all__ = ["QuerySet"]
