"""
Cart store — one cart per owner, scoped by the resolved identity.

Every operation takes the CartOwner produced by the identity resolver and
only ever touches that owner's cart. A line item id belonging to another
owner's cart is Forbidden, never silently ignored.
"""

from __future__ import annotations

import logging

from kungfu import Error, Result
from sqlalchemy import delete, select
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from bazaar._types import new_id, utcnow
from bazaar.cart._types import Cart, CartItem, MergeReport, NewCartItem
from bazaar.db import CartItemTable, CartTable, transact
from bazaar.errors import Errors, MarketError, MarketFailure
from bazaar.identity import CartOwner, GuestOwner, UserOwner

log = logging.getLogger("bazaar.cart")


# ═══════════════════════════════════════════════════════════════════════════════
# Row helpers
# ═══════════════════════════════════════════════════════════════════════════════


def _is_count(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _cap(quantity: int, max_quantity: int | None) -> int:
    return quantity if max_quantity is None else min(quantity, max_quantity)


def _tighter(a: int | None, b: int | None) -> int | None:
    limits = [x for x in (a, b) if x is not None]
    return min(limits) if limits else None


def _item_from_row(row: CartItemTable) -> CartItem:
    return CartItem(
        id=row.id,
        product_id=row.product_id,
        vendor_id=row.vendor_id,
        name=row.name,
        unit_price=row.unit_price,
        quantity=row.quantity,
        max_quantity=row.max_quantity,
        image=row.image,
    )


def _owned_by(owner: CartOwner):
    return select(CartTable).where(
        CartTable.owner_type == owner.owner_type,
        CartTable.owner_id == owner.owner_id,
    )


async def _find_cart(session: AsyncSession, owner: CartOwner) -> CartTable | None:
    return (await session.execute(_owned_by(owner))).scalar_one_or_none()


async def _ensure_cart(session: AsyncSession, owner: CartOwner) -> CartTable:
    """Get or create; concurrent creators converge on the same row."""
    now = utcnow()
    await session.execute(
        sqlite_insert(CartTable)
        .values(
            id=new_id("cart", 12),
            owner_type=owner.owner_type,
            owner_id=owner.owner_id,
            created_at=now,
            updated_at=now,
        )
        .on_conflict_do_nothing(index_elements=["owner_type", "owner_id"])
    )
    return (await session.execute(_owned_by(owner))).scalar_one()


async def _lines(session: AsyncSession, cart_id: str) -> list[CartItemTable]:
    stmt = (
        select(CartItemTable)
        .where(CartItemTable.cart_id == cart_id)
        .order_by(CartItemTable.created_at, CartItemTable.id)
    )
    return list((await session.execute(stmt)).scalars().all())


async def _snapshot(session: AsyncSession, cart: CartTable) -> Cart:
    await session.flush()
    items = tuple(_item_from_row(r) for r in await _lines(session, cart.id))
    return Cart(id=cart.id, owner_type=cart.owner_type, owner_id=cart.owner_id, items=items)


async def _owned_line(session: AsyncSession, cart: CartTable, item_id: str) -> CartItemTable | None:
    """The line if it is in cart; None if it exists nowhere; Forbidden otherwise."""
    line = await session.get(CartItemTable, item_id)
    if line is None:
        return None
    if line.cart_id != cart.id:
        raise MarketFailure(Errors.forbidden("CART_ITEM_FORBIDDEN", "Cart item belongs to another cart"))
    return line


# ═══════════════════════════════════════════════════════════════════════════════
# Store
# ═══════════════════════════════════════════════════════════════════════════════


class CartStore:
    """
    Example:
        carts = CartStore(session_factory)
        cart = (await carts.add_item(owner, NewCartItem(...))).unwrap()
        report = (await carts.merge_guest_into_user(guest_id, user_id)).unwrap()
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get_or_create(self, owner: CartOwner) -> Result[Cart, MarketError]:
        async def work(session: AsyncSession) -> Cart:
            return await _snapshot(session, await _ensure_cart(session, owner))

        return await transact(self._session_factory, work, what="load cart")

    async def get_cart(self, cart_id: str, owner: CartOwner) -> Result[Cart, MarketError]:
        """Explicit lookup by id; only the owning identity may read it."""

        async def work(session: AsyncSession) -> Cart:
            row = await session.get(CartTable, cart_id)
            if row is None:
                raise MarketFailure(Errors.not_found("CART_NOT_FOUND", "Cart not found"))
            if (row.owner_type, row.owner_id) != (owner.owner_type, owner.owner_id):
                raise MarketFailure(Errors.forbidden("CART_FORBIDDEN", "Cart belongs to another owner"))
            return await _snapshot(session, row)

        return await transact(self._session_factory, work, what="load cart")

    async def add_item(self, owner: CartOwner, item: NewCartItem) -> Result[Cart, MarketError]:
        """Append a line, or add to the quantity of the line with the same product."""
        if not _is_count(item.quantity) or item.quantity < 1:
            return Error(Errors.validation("INVALID_QUANTITY", "Quantity must be a positive integer", field="quantity"))
        if item.max_quantity is not None and (not _is_count(item.max_quantity) or item.max_quantity < 1):
            return Error(Errors.validation("INVALID_QUANTITY", "Maximum quantity must be a positive integer", field="maxQuantity"))
        if not _is_count(item.unit_price) or item.unit_price < 0:
            return Error(Errors.validation("INVALID_PRICE", "Price must be a non-negative amount", field="price"))

        async def work(session: AsyncSession) -> Cart:
            cart = await _ensure_cart(session, owner)
            stmt = select(CartItemTable).where(
                CartItemTable.cart_id == cart.id,
                CartItemTable.product_id == item.product_id,
            )
            line = (await session.execute(stmt)).scalar_one_or_none()
            if line is None:
                session.add(CartItemTable(
                    id=new_id("item", 8),
                    cart_id=cart.id,
                    product_id=item.product_id,
                    vendor_id=item.vendor_id,
                    name=item.name,
                    unit_price=item.unit_price,
                    quantity=_cap(item.quantity, item.max_quantity),
                    max_quantity=item.max_quantity,
                    image=item.image,
                    created_at=utcnow(),
                ))
            else:
                limit = item.max_quantity if item.max_quantity is not None else line.max_quantity
                line.max_quantity = limit
                line.quantity = _cap(line.quantity + item.quantity, limit)
            cart.updated_at = utcnow()
            return await _snapshot(session, cart)

        return await transact(self._session_factory, work, what="add cart item")

    async def remove_item(self, owner: CartOwner, item_id: str) -> Result[Cart, MarketError]:
        """Idempotent: removing an absent line returns the cart unchanged."""

        async def work(session: AsyncSession) -> Cart:
            cart = await _ensure_cart(session, owner)
            line = await _owned_line(session, cart, item_id)
            if line is not None:
                await session.delete(line)
                cart.updated_at = utcnow()
            return await _snapshot(session, cart)

        return await transact(self._session_factory, work, what="remove cart item")

    async def update_quantity(self, owner: CartOwner, item_id: str, quantity: int) -> Result[Cart, MarketError]:
        """
        Set a line's quantity. Zero or less removes the line.

        An unknown item id is a no-op that returns the current cart.
        """
        if not _is_count(quantity):
            return Error(Errors.validation("INVALID_QUANTITY", "Quantity must be an integer", field="quantity"))

        async def work(session: AsyncSession) -> Cart:
            cart = await _ensure_cart(session, owner)
            line = await _owned_line(session, cart, item_id)
            if line is not None:
                if quantity <= 0:
                    await session.delete(line)
                else:
                    line.quantity = _cap(quantity, line.max_quantity)
                cart.updated_at = utcnow()
            return await _snapshot(session, cart)

        return await transact(self._session_factory, work, what="update cart item")

    async def clear(self, owner: CartOwner) -> Result[Cart, MarketError]:
        async def work(session: AsyncSession) -> Cart:
            cart = await _ensure_cart(session, owner)
            await session.execute(delete(CartItemTable).where(CartItemTable.cart_id == cart.id))
            cart.updated_at = utcnow()
            return await _snapshot(session, cart)

        return await transact(self._session_factory, work, what="clear cart")

    async def delete_cart(self, owner: CartOwner, *, force: bool = False) -> Result[bool, MarketError]:
        """
        Drop the cart row and its lines. Ok(False) if there was none.

        A user cart is only deleted with force=True.
        """
        if isinstance(owner, UserOwner) and not force:
            return Error(Errors.forbidden("CART_DELETE_FORBIDDEN", "User carts can only be cleared, not deleted"))

        async def work(session: AsyncSession) -> bool:
            cart = await _find_cart(session, owner)
            if cart is None:
                return False
            await session.execute(delete(CartItemTable).where(CartItemTable.cart_id == cart.id))
            await session.execute(delete(CartTable).where(CartTable.id == cart.id))
            return True

        return await transact(self._session_factory, work, what="delete cart")

    async def merge_guest_into_user(self, guest_session_id: str, user_id: str) -> Result[MergeReport, MarketError]:
        """
        Fold the guest cart into the user cart, then delete the guest cart.

        Lines for the same product sum their quantities (capped by the
        tighter max_quantity). Everything happens in one transaction, so a
        retry after success finds no guest cart and returns the user cart
        untouched.
        """
        guest = GuestOwner(guest_session_id)
        user = UserOwner(user_id)

        async def work(session: AsyncSession) -> MergeReport:
            target = await _ensure_cart(session, user)
            source = await _find_cart(session, guest)
            if source is None:
                return MergeReport(cart=await _snapshot(session, target), guest_cart_found=False)

            guest_lines = await _lines(session, source.id)
            existing = {line.product_id: line for line in await _lines(session, target.id)}
            merged = added = 0
            for g in guest_lines:
                mine = existing.get(g.product_id)
                if mine is not None:
                    limit = _tighter(mine.max_quantity, g.max_quantity)
                    mine.max_quantity = limit
                    mine.quantity = _cap(mine.quantity + g.quantity, limit)
                    merged += 1
                else:
                    session.add(CartItemTable(
                        id=new_id("item", 8),
                        cart_id=target.id,
                        product_id=g.product_id,
                        vendor_id=g.vendor_id,
                        name=g.name,
                        unit_price=g.unit_price,
                        quantity=g.quantity,
                        max_quantity=g.max_quantity,
                        image=g.image,
                        created_at=utcnow(),
                    ))
                    added += 1

            await session.flush()
            await session.execute(delete(CartItemTable).where(CartItemTable.cart_id == source.id))
            await session.execute(delete(CartTable).where(CartTable.id == source.id))
            target.updated_at = utcnow()

            log.info(
                "merged guest cart %s into %s: guest_items=%d merged=%d added=%d",
                source.id, target.id, len(guest_lines), merged, added,
            )
            return MergeReport(
                cart=await _snapshot(session, target),
                guest_cart_found=True,
                guest_items=len(guest_lines),
                merged=merged,
                added=added,
            )

        return await transact(self._session_factory, work, what="merge carts")


__all__ = ("CartStore",)
