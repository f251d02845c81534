"""
Unit of work — one transaction, one Result.

    async def work(session: AsyncSession) -> Order:
        ...
        if row is None:
            raise MarketFailure(Errors.not_found("ORDER_NOT_FOUND", "Order not found"))
        ...

    result = await transact(session_factory, work, what="cancel order")

Raising MarketFailure inside work rolls back every write made so far and
surfaces as Error(failure.error). Any other exception also rolls back and
becomes a STORE_ERROR.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable

from kungfu import Error, Ok, Result
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from bazaar.errors import Errors, MarketError, MarketFailure


async def transact[T](
    session_factory: async_sessionmaker[AsyncSession],
    work: Callable[[AsyncSession], Awaitable[T]],
    *,
    what: str,
) -> Result[T, MarketError]:
    try:
        async with session_factory() as session, session.begin():
            return Ok(await work(session))
    except MarketFailure as failure:
        return Error(failure.error)
    except Exception as e:
        return Error(Errors.store(f"Failed to {what}: {e}", e))


__all__ = ("transact",)
