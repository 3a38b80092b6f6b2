from __future__ import annotations

from functools import wraps
from typing import TYPE_CHECKING, Any, Awaitable, Callable, ParamSpec, Self, TypeVar

if TYPE_CHECKING:
    from contextlib import AbstractAsyncContextManager
    from types import TracebackType

    from sqlalchemy.ext.asyncio import AsyncConnection

P = ParamSpec("P")
T = TypeVar("T")


class Atomic:
    """
    Transaction block over an ``AsyncConnection``.

    Works as an async context manager and as a decorator. Commits on success,
    rolls back on exception, and uses a SAVEPOINT when the connection is
    already inside a transaction.

    Run ``save_changes()`` inside an atomic block to make a whole unit of work
    all-or-nothing:

    Examples:
        >>> ctx = await EntityContext.create(conn)
        >>> async with atomic(conn):
        ...     ctx.add(order)
        ...     ctx.add(invoice)
        ...     await ctx.save_changes()
    """

    def __init__(self, connection: AsyncConnection):
        self.connection = connection
        self._cm: AbstractAsyncContextManager[Any] | None = None

    def _get_transaction_cm(self) -> AbstractAsyncContextManager[Any]:
        """
        Select the transaction strategy.

        Returns:
            begin()        -> new top-level transaction
            begin_nested() -> SAVEPOINT for nested usage
        """
        if self.connection.in_transaction():
            return self.connection.begin_nested()
        return self.connection.begin()

    async def __aenter__(self) -> Self:
        self._cm = self._get_transaction_cm()
        await self._cm.__aenter__()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if self._cm:
            await self._cm.__aexit__(exc_type, exc, tb)

    def __call__(self, func: Callable[P, Awaitable[T]]) -> Callable[P, Awaitable[T]]:
        """
        Wrap an async function so each call runs in its own atomic block.

        Example:
            >>> @atomic(conn)
            ... async def checkout():
            ...     await ctx.save_changes()
        """

        @wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            async with Atomic(self.connection):
                return await func(*args, **kwargs)

        return wrapper


def atomic(connection: AsyncConnection) -> Atomic:
    """
    Factory helper for creating an Atomic manager.

    Examples:
        >>> async with atomic(conn):
        ...     await ctx.save_changes()
    """
    return Atomic(connection)
