"""
Inventory ledger — per-product stock, changed only by guarded statements.

Every mutation is a single UPDATE whose WHERE clause carries the guard, so
concurrent checkouts never lose an update and never drive stock negative:

    UPDATE products SET quantity = quantity - :n
     WHERE id = :id AND track_quantity AND quantity >= :n

The session-level functions join the caller's transaction (order placement,
cancellation); InventoryLedger wraps each in its own.
"""

from __future__ import annotations

from kungfu import Result
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from bazaar._types import utcnow
from bazaar.db import ProductTable, transact
from bazaar.errors import Errors, MarketError, MarketFailure


def _check_quantity(quantity: int) -> MarketError | None:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
        return Errors.validation("INVALID_QUANTITY", "Quantity must be a positive integer")
    return None


async def _stock_row(session: AsyncSession, product_id: str) -> tuple[int, bool] | None:
    row = (await session.execute(
        select(ProductTable.quantity, ProductTable.track_quantity).where(ProductTable.id == product_id)
    )).one_or_none()
    return (row.quantity, row.track_quantity) if row is not None else None


# ═══════════════════════════════════════════════════════════════════════════════
# Session-scoped operations
# ═══════════════════════════════════════════════════════════════════════════════


async def decrement_stock(session: AsyncSession, product_id: str, quantity: int) -> None:
    """
    Take quantity units. Untracked products are unlimited.

    Raises MarketFailure: NOT_FOUND for an unknown product, CONFLICT
    INSUFFICIENT_STOCK when fewer than quantity units remain.
    """
    if (invalid := _check_quantity(quantity)) is not None:
        raise MarketFailure(invalid)

    result = await session.execute(
        update(ProductTable)
        .where(
            ProductTable.id == product_id,
            ProductTable.track_quantity.is_(True),
            ProductTable.quantity >= quantity,
        )
        .values(quantity=ProductTable.quantity - quantity, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 1:
        return

    stock = await _stock_row(session, product_id)
    if stock is None:
        raise MarketFailure(Errors.not_found("PRODUCT_NOT_FOUND", f"Product {product_id} not found"))
    available, tracked = stock
    if not tracked:
        return
    raise MarketFailure(Errors.conflict(
        "INSUFFICIENT_STOCK",
        "Not enough stock for one or more items",
        productId=product_id,
        available=available,
        requested=quantity,
    ))


async def restore_stock(session: AsyncSession, product_id: str, quantity: int) -> bool:
    """Give quantity units back. False for untracked or deleted products."""
    if (invalid := _check_quantity(quantity)) is not None:
        raise MarketFailure(invalid)
    result = await session.execute(
        update(ProductTable)
        .where(ProductTable.id == product_id, ProductTable.track_quantity.is_(True))
        .values(quantity=ProductTable.quantity + quantity, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def reserve_available(session: AsyncSession, product_id: str, quantity: int) -> int:
    """
    Take up to quantity units, clamping at zero. Returns the shortfall.

    Used when a payment lands for an order whose stock was already released.
    """
    stock = await _stock_row(session, product_id)
    if stock is None:
        return quantity
    available, tracked = stock
    if not tracked:
        return 0
    await session.execute(
        update(ProductTable)
        .where(ProductTable.id == product_id)
        .values(quantity=func.max(ProductTable.quantity - quantity, 0), updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    return max(quantity - available, 0)


# ═══════════════════════════════════════════════════════════════════════════════
# Ledger
# ═══════════════════════════════════════════════════════════════════════════════


class InventoryLedger:
    """
    Standalone stock operations, one transaction each.

    Example:
        ledger = InventoryLedger(session_factory)
        match await ledger.decrement_on_order("prod_1", 2):
            case Error(MarketError(code="INSUFFICIENT_STOCK")):
                ...
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def decrement_on_order(self, product_id: str, quantity: int) -> Result[None, MarketError]:
        async def work(session: AsyncSession) -> None:
            await decrement_stock(session, product_id, quantity)

        return await transact(self._session_factory, work, what="decrement stock")

    async def restore_on_cancel(self, product_id: str, quantity: int) -> Result[bool, MarketError]:
        async def work(session: AsyncSession) -> bool:
            return await restore_stock(session, product_id, quantity)

        return await transact(self._session_factory, work, what="restore stock")

    async def stock(self, product_id: str) -> Result[int | None, MarketError]:
        """Units on hand; None for untracked products."""

        async def work(session: AsyncSession) -> int | None:
            row = await _stock_row(session, product_id)
            if row is None:
                raise MarketFailure(Errors.not_found("PRODUCT_NOT_FOUND", f"Product {product_id} not found"))
            available, tracked = row
            return available if tracked else None

        return await transact(self._session_factory, work, what="read stock")


__all__ = (
    "decrement_stock",
    "restore_stock",
    "reserve_available",
    "InventoryLedger",
)
