"""
Order store — the order aggregate and its guarded transitions.

Every transition that two requests could race on is one conditional UPDATE
whose rowcount decides the winner:

    cancel   UPDATE orders SET status='cancelled' WHERE id=:id AND status IN (cancellable)
    release  UPDATE orders SET inventory_released=1 WHERE id=:id AND NOT inventory_released
    fulfil   UPDATE order_items SET fulfillment_status='fulfilled'
              WHERE id=:id AND vendor_id=:v AND fulfillment_status='pending'
                AND order_id IN (SELECT id FROM orders WHERE status != 'cancelled')

When the guard fails, a follow-up read only decides which error to return.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Iterable, Sequence
from datetime import datetime

from kungfu import Error, Ok, Result
from sqlalchemy import Select, exists, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from bazaar._types import new_id, utcnow
from bazaar.db import OrderItemTable, OrderTable, transact
from bazaar.errors import Errors, MarketFailure, MarketError
from bazaar.inventory import decrement_stock, reserve_available, restore_stock
from bazaar.orders._states import CANCELLABLE, LEGACY, Trigger, can_transition, canonical_status, check_transition
from bazaar.orders._types import (
    AdminUpdate,
    CancelReport,
    FulfillmentStatus,
    Order,
    OrderDraft,
    OrderItem,
    OrderStatus,
    PaymentApplied,
    PaymentOutcome,
    PaymentStatus,
)

log = logging.getLogger("bazaar.orders")


# ═══════════════════════════════════════════════════════════════════════════════
# Row helpers
# ═══════════════════════════════════════════════════════════════════════════════


def _stored(statuses: Iterable[OrderStatus]) -> list[str]:
    """Every stored value, legacy included, that reads as one of statuses."""
    wanted = set(statuses)
    return [s.value for s in wanted] + [old for old, new in LEGACY.items() if new in wanted]


def _item_from_row(row: OrderItemTable) -> OrderItem:
    return OrderItem(
        id=row.id,
        order_id=row.order_id,
        product_id=row.product_id,
        product_name=row.product_name,
        vendor_id=row.vendor_id,
        vendor_name=row.vendor_name,
        quantity=row.quantity,
        unit_price=row.unit_price,
        fulfillment_status=FulfillmentStatus(row.fulfillment_status),
        fulfilled_at=row.fulfilled_at,
        image=row.image,
    )


def order_from_rows(row: OrderTable, items: Sequence[OrderItemTable]) -> Order:
    return Order(
        id=row.id,
        buyer_id=row.buyer_id,
        buyer_name=row.buyer_name,
        buyer_email=row.buyer_email,
        items=tuple(_item_from_row(i) for i in sorted(items, key=lambda i: i.position)),
        subtotal=row.subtotal,
        discount_total=row.discount_total,
        shipping_fee=row.shipping_fee,
        tax=row.tax,
        total=row.total,
        currency=row.currency,
        status=canonical_status(row.status),
        payment_status=PaymentStatus(row.payment_status),
        shipping_address=row.shipping_address,
        created_at=row.created_at,
        updated_at=row.updated_at,
        payment_method=row.payment_method,
        payment_provider=row.payment_provider,
        payment_reference=row.payment_reference,
        paid_at=row.paid_at,
        inventory_released=row.inventory_released,
        tracking_number=row.tracking_number,
        notes=row.notes,
        coupon_code=row.coupon_code,
    )


async def _load_many(session: AsyncSession, stmt: Select[tuple[OrderTable]]) -> list[Order]:
    rows = (await session.execute(stmt.execution_options(populate_existing=True))).scalars().all()
    if not rows:
        return []
    item_rows = (await session.execute(
        select(OrderItemTable)
        .where(OrderItemTable.order_id.in_([r.id for r in rows]))
        .execution_options(populate_existing=True)
    )).scalars().all()
    by_order: defaultdict[str, list[OrderItemTable]] = defaultdict(list)
    for item in item_rows:
        by_order[item.order_id].append(item)
    return [order_from_rows(r, by_order[r.id]) for r in rows]


async def _load(session: AsyncSession, order_id: str) -> Order | None:
    orders = await _load_many(session, select(OrderTable).where(OrderTable.id == order_id))
    return orders[0] if orders else None


async def _require(session: AsyncSession, order_id: str) -> Order:
    order = await _load(session, order_id)
    if order is None:
        raise MarketFailure(Errors.not_found("ORDER_NOT_FOUND", "Order not found"))
    return order


async def _release_inventory(session: AsyncSession, order: Order) -> tuple[bool, tuple[OrderItem, ...]]:
    """
    Give every line's stock back, once per order.

    Returns (released, restored). released is False when an earlier
    cancellation or payment failure already did it.
    """
    result = await session.execute(
        update(OrderTable)
        .where(OrderTable.id == order.id, OrderTable.inventory_released.is_(False))
        .values(inventory_released=True, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        return False, ()
    restored = [item for item in order.items if await restore_stock(session, item.product_id, item.quantity)]
    return True, tuple(restored)


async def _reserve_again(session: AsyncSession, order: Order) -> dict[str, int]:
    """Take released stock back for an order that got paid after all. Returns shortfalls."""
    shortfalls: dict[str, int] = {}
    if not order.inventory_released or order.status == OrderStatus.CANCELLED:
        return shortfalls
    for item in order.items:
        if short := await reserve_available(session, item.product_id, item.quantity):
            shortfalls[item.product_id] = shortfalls.get(item.product_id, 0) + short
    await session.execute(
        update(OrderTable)
        .where(OrderTable.id == order.id)
        .values(inventory_released=False)
        .execution_options(synchronize_session=False)
    )
    return shortfalls


async def _complete_if_fulfilled(session: AsyncSession, order_id: str) -> None:
    """processing → fulfilled once no line is left pending."""
    if not can_transition(OrderStatus.PROCESSING, OrderStatus.FULFILLED, Trigger.SYSTEM):
        return
    pending = exists().where(
        OrderItemTable.order_id == order_id,
        OrderItemTable.fulfillment_status == FulfillmentStatus.PENDING.value,
    )
    result = await session.execute(
        update(OrderTable)
        .where(OrderTable.id == order_id, OrderTable.status.in_(_stored([OrderStatus.PROCESSING])), ~pending)
        .values(status=OrderStatus.FULFILLED.value)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 1:
        log.info("order %s fulfilled: every line shipped", order_id)


# ═══════════════════════════════════════════════════════════════════════════════
# Store
# ═══════════════════════════════════════════════════════════════════════════════


class OrderStore:
    """
    Orders backed by the orders / order_items tables.

    Example:
        match await orders.cancel_with_restore(order_id):
            case Ok(report):
                report.restored_count
            case Error(MarketError(code="ORDER_ALREADY_CANCELLED")):
                ...
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    # ───────────────────────────────────────────────────────────────────────────
    # Reads
    # ───────────────────────────────────────────────────────────────────────────

    async def get(self, order_id: str) -> Result[Order | None, MarketError]:
        async def work(session: AsyncSession) -> Order | None:
            return await _load(session, order_id)

        return await transact(self._session_factory, work, what="get order")

    async def list_for_buyer(self, buyer_id: str, *, limit: int = 100) -> Result[list[Order], MarketError]:
        stmt = (
            select(OrderTable)
            .where(OrderTable.buyer_id == buyer_id)
            .order_by(OrderTable.created_at.desc())
            .limit(limit)
        )
        return await self._list(stmt)

    async def list_for_vendor(self, vendor_id: str, *, limit: int = 100) -> Result[list[Order], MarketError]:
        """Orders containing at least one of the vendor's lines."""
        containing = select(OrderItemTable.order_id).where(OrderItemTable.vendor_id == vendor_id)
        stmt = (
            select(OrderTable)
            .where(OrderTable.id.in_(containing))
            .order_by(OrderTable.created_at.desc())
            .limit(limit)
        )
        return await self._list(stmt)

    async def list_all(
        self,
        *,
        status: OrderStatus | None = None,
        limit: int = 100,
    ) -> Result[list[Order], MarketError]:
        stmt = select(OrderTable).order_by(OrderTable.created_at.desc()).limit(limit)
        if status is not None:
            stmt = stmt.where(OrderTable.status.in_(_stored([status])))
        return await self._list(stmt)

    async def _list(self, stmt: Select[tuple[OrderTable]]) -> Result[list[Order], MarketError]:
        async def work(session: AsyncSession) -> list[Order]:
            return await _load_many(session, stmt)

        return await transact(self._session_factory, work, what="list orders")

    # ───────────────────────────────────────────────────────────────────────────
    # Placement
    # ───────────────────────────────────────────────────────────────────────────

    async def place(self, draft: OrderDraft) -> Result[Order, MarketError]:
        """
        Insert the order and take stock for every line, all or nothing.

        One line short of stock (409 INSUFFICIENT_STOCK) aborts the order and
        gives back whatever the earlier lines took.
        """

        async def work(session: AsyncSession) -> Order:
            if not draft.lines:
                raise MarketFailure(Errors.validation("EMPTY_CART", "Cart is empty"))
            now = utcnow()
            order_id = new_id("order", 8)
            session.add(OrderTable(
                id=order_id,
                buyer_id=draft.buyer.user_id,
                buyer_name=draft.buyer.name,
                buyer_email=draft.buyer.email,
                subtotal=draft.subtotal,
                discount_total=draft.discount_total,
                shipping_fee=draft.shipping_fee,
                tax=draft.tax,
                total=draft.total,
                currency=draft.currency,
                status=OrderStatus.PENDING_PAYMENT.value,
                payment_status=PaymentStatus.PENDING.value,
                payment_method=draft.payment_method,
                inventory_released=False,
                shipping_address=draft.shipping_address.to_dict(),
                coupon_code=draft.coupon_code,
                created_at=now,
                updated_at=now,
            ))
            for position, line in enumerate(draft.lines):
                await decrement_stock(session, line.product_id, line.quantity)
                session.add(OrderItemTable(
                    id=new_id("oitem", 8),
                    order_id=order_id,
                    product_id=line.product_id,
                    product_name=line.product_name,
                    vendor_id=line.vendor_id,
                    vendor_name=line.vendor_name,
                    quantity=line.quantity,
                    unit_price=line.unit_price,
                    fulfillment_status=FulfillmentStatus.PENDING.value,
                    image=line.image,
                    position=position,
                ))
            await session.flush()
            return await _require(session, order_id)

        result = await transact(self._session_factory, work, what="place order")
        match result:
            case Ok(order):
                log.info("order %s placed: %d lines, total %d", order.id, len(order.items), order.total)
        return result

    async def set_payment_reference(
        self,
        order_id: str,
        reference: str,
        *,
        provider: str,
    ) -> Result[Order, MarketError]:
        """Attach a new payment attempt. Only unpaid, pending_payment orders."""

        async def work(session: AsyncSession) -> Order:
            result = await session.execute(
                update(OrderTable)
                .where(
                    OrderTable.id == order_id,
                    OrderTable.payment_status != PaymentStatus.PAID.value,
                    OrderTable.status.in_(_stored([OrderStatus.PENDING_PAYMENT])),
                )
                .values(payment_reference=reference, payment_provider=provider, updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            order = await _require(session, order_id)
            if result.rowcount == 1:
                return order
            if order.payment_status == PaymentStatus.PAID:
                raise MarketFailure(Errors.conflict(
                    "ORDER_ALREADY_PAID",
                    "Order has already been paid",
                    paymentStatus=order.payment_status.value,
                ))
            raise MarketFailure(Errors.conflict(
                "ORDER_NOT_PAYABLE",
                "Order is not in a payable state",
                currentStatus=order.status.value,
            ))

        return await transact(self._session_factory, work, what="set payment reference")

    # ───────────────────────────────────────────────────────────────────────────
    # Cancellation + Fulfilment
    # ───────────────────────────────────────────────────────────────────────────

    async def cancel_with_restore(self, order_id: str) -> Result[CancelReport, MarketError]:
        """
        Cancel and give back stock in one transaction.

        A second call is 409 ORDER_ALREADY_CANCELLED and restores nothing.
        """

        async def work(session: AsyncSession) -> CancelReport:
            result = await session.execute(
                update(OrderTable)
                .where(OrderTable.id == order_id, OrderTable.status.in_(_stored(CANCELLABLE)))
                .values(status=OrderStatus.CANCELLED.value, updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            order = await _require(session, order_id)
            if result.rowcount != 1:
                if order.status == OrderStatus.CANCELLED:
                    raise MarketFailure(Errors.conflict("ORDER_ALREADY_CANCELLED", "Order is already cancelled"))
                raise MarketFailure(Errors.conflict(
                    "ORDER_NOT_CANCELLABLE",
                    f"Cannot cancel an order that is {order.status}",
                    currentStatus=order.status.value,
                ))
            _, restored = await _release_inventory(session, order)
            return CancelReport(order=await _require(session, order_id), restored_items=restored)

        result = await transact(self._session_factory, work, what="cancel order")
        match result:
            case Ok(report):
                log.info("order %s cancelled, %d lines restored", order_id, report.restored_count)
        return result

    async def fulfill_item(self, order_id: str, item_id: str, vendor_id: str) -> Result[OrderItem, MarketError]:
        """pending → fulfilled, once, by the owning vendor, never on a cancelled order."""

        async def work(session: AsyncSession) -> OrderItem:
            now = utcnow()
            live_orders = select(OrderTable.id).where(OrderTable.status != OrderStatus.CANCELLED.value)
            result = await session.execute(
                update(OrderItemTable)
                .where(
                    OrderItemTable.id == item_id,
                    OrderItemTable.order_id == order_id,
                    OrderItemTable.vendor_id == vendor_id,
                    OrderItemTable.fulfillment_status == FulfillmentStatus.PENDING.value,
                    OrderItemTable.order_id.in_(live_orders),
                )
                .values(fulfillment_status=FulfillmentStatus.FULFILLED.value, fulfilled_at=now)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 1:
                await session.execute(
                    update(OrderTable)
                    .where(OrderTable.id == order_id)
                    .values(updated_at=now)
                    .execution_options(synchronize_session=False)
                )
                await _complete_if_fulfilled(session, order_id)
                row = (await session.execute(
                    select(OrderItemTable)
                    .where(OrderItemTable.id == item_id)
                    .execution_options(populate_existing=True)
                )).scalar_one()
                return _item_from_row(row)

            found = (await session.execute(
                select(OrderItemTable.vendor_id, OrderItemTable.fulfillment_status, OrderTable.status)
                .join(OrderTable, OrderTable.id == OrderItemTable.order_id)
                .where(OrderItemTable.id == item_id, OrderItemTable.order_id == order_id)
            )).one_or_none()
            if found is None:
                raise MarketFailure(Errors.not_found("ORDER_ITEM_NOT_FOUND", "Order item not found"))
            if found.vendor_id != vendor_id:
                raise MarketFailure(Errors.forbidden("NOT_ITEM_OWNER", "You can only fulfill your own items"))
            if found.status == OrderStatus.CANCELLED.value:
                raise MarketFailure(Errors.conflict("ORDER_CANCELLED", "Cannot fulfill items of a cancelled order"))
            raise MarketFailure(Errors.conflict("ITEM_ALREADY_FULFILLED", "Item has already been fulfilled"))

        result = await transact(self._session_factory, work, what="fulfill order item")
        match result:
            case Ok(item):
                log.info("order %s item %s fulfilled by %s", order_id, item.id, vendor_id)
        return result

    # ───────────────────────────────────────────────────────────────────────────
    # Admin
    # ───────────────────────────────────────────────────────────────────────────

    async def admin_update(self, order_id: str, changes: AdminUpdate) -> Result[tuple[Order, Order], MarketError]:
        """
        Apply an admin correction. Returns (before, after).

        Cancellation is not a plain status write; it goes through
        cancel_with_restore so stock comes back.
        """

        async def work(session: AsyncSession) -> tuple[Order, Order]:
            if changes.status == OrderStatus.CANCELLED:
                raise MarketFailure(Errors.validation(
                    "USE_CANCEL", "Cancel the order instead of setting its status to cancelled"
                ))
            before = await _require(session, order_id)
            now = utcnow()
            values: dict[str, object] = {"updated_at": now}
            status = before.status
            paying = changes.payment_status
            if paying == before.payment_status:
                paying = None
            if paying is not None:
                if before.payment_status == PaymentStatus.PAID:
                    raise MarketFailure(Errors.conflict(
                        "ORDER_ALREADY_PAID",
                        "A paid order cannot change payment status",
                        paymentStatus=before.payment_status.value,
                    ))
                if before.status == OrderStatus.CANCELLED:
                    raise MarketFailure(Errors.conflict(
                        "ORDER_CANCELLED", "Cannot change payment status of a cancelled order"
                    ))
                values["payment_status"] = paying.value
                if paying == PaymentStatus.PAID:
                    values["paid_at"] = now
                    if can_transition(status, OrderStatus.PROCESSING, Trigger.PAYMENT):
                        status = OrderStatus.PROCESSING
            if changes.status is not None and changes.status != status:
                match check_transition(status, changes.status, Trigger.ADMIN):
                    case Ok(status):
                        pass
                    case Error(e):
                        raise MarketFailure(e)
            if status != before.status:
                values["status"] = status.value
            if changes.tracking_number is not None:
                values["tracking_number"] = changes.tracking_number.strip() or None
            if changes.notes is not None:
                values["notes"] = changes.notes

            result = await session.execute(
                update(OrderTable)
                .where(
                    OrderTable.id == order_id,
                    OrderTable.status.in_(_stored([before.status])),
                    OrderTable.payment_status == before.payment_status.value,
                )
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise MarketFailure(Errors.conflict("ORDER_CHANGED", "Order changed while updating; reload and retry"))
            if paying == PaymentStatus.PAID:
                if shortfalls := await _reserve_again(session, before):
                    log.error("order %s marked paid after stock release; short %s", order_id, shortfalls)
            elif paying == PaymentStatus.FAILED:
                released, restored = await _release_inventory(session, before)
                log.info("order %s marked failed by admin, released=%s restored=%d", order_id, released, len(restored))
            return before, await _require(session, order_id)

        return await transact(self._session_factory, work, what="update order")

    # ───────────────────────────────────────────────────────────────────────────
    # Payment notifications
    # ───────────────────────────────────────────────────────────────────────────

    async def mark_paid(
        self,
        order_id: str,
        *,
        reference: str,
        amount: int,
        provider: str,
        channel: str | None = None,
        paid_at: datetime | None = None,
    ) -> Result[PaymentApplied, MarketError]:
        """
        Record a successful charge.

        A charge for an already paid order changes nothing. A charge whose
        amount differs from the order total changes nothing. Otherwise the
        order is paid and, if still pending_payment, moves to processing.
        """

        async def work(session: AsyncSession) -> PaymentApplied:
            order = await _require(session, order_id)
            if order.payment_status == PaymentStatus.PAID:
                same = order.payment_reference == reference
                return PaymentApplied(PaymentOutcome.ALREADY_PAID if same else PaymentOutcome.DUPLICATE_IGNORED, order)
            if amount != order.total:
                return PaymentApplied(PaymentOutcome.AMOUNT_MISMATCH, order)

            now = utcnow()
            values: dict[str, object] = {
                "payment_status": PaymentStatus.PAID.value,
                "payment_reference": reference,
                "payment_provider": provider,
                "paid_at": paid_at or now,
                "updated_at": now,
            }
            if channel:
                values["payment_method"] = channel
            if can_transition(order.status, OrderStatus.PROCESSING, Trigger.PAYMENT):
                values["status"] = OrderStatus.PROCESSING.value
            result = await session.execute(
                update(OrderTable)
                .where(OrderTable.id == order_id, OrderTable.payment_status != PaymentStatus.PAID.value)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                current = await _require(session, order_id)
                return PaymentApplied(PaymentOutcome.DUPLICATE_IGNORED, current)

            shortfalls = await _reserve_again(session, order)
            return PaymentApplied(
                PaymentOutcome.RECORDED,
                await _require(session, order_id),
                shortfalls=shortfalls,
            )

        return await transact(self._session_factory, work, what="record payment")

    async def mark_payment_failed(
        self,
        order_id: str,
        *,
        reference: str,
        provider: str,
    ) -> Result[PaymentApplied, MarketError]:
        """
        Record a failed charge and release the order's stock.

        Stock goes back at most once per order, whether the release comes
        from this failure, an earlier failure, or a cancellation.
        """

        async def work(session: AsyncSession) -> PaymentApplied:
            order = await _require(session, order_id)
            if order.payment_status == PaymentStatus.PAID:
                return PaymentApplied(PaymentOutcome.FAILURE_IGNORED, order)
            if order.payment_status == PaymentStatus.FAILED and order.payment_reference == reference:
                return PaymentApplied(PaymentOutcome.DUPLICATE_FAILURE, order)

            result = await session.execute(
                update(OrderTable)
                .where(OrderTable.id == order_id, OrderTable.payment_status != PaymentStatus.PAID.value)
                .values(
                    payment_status=PaymentStatus.FAILED.value,
                    payment_reference=reference,
                    payment_provider=provider,
                    updated_at=utcnow(),
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                return PaymentApplied(PaymentOutcome.FAILURE_IGNORED, await _require(session, order_id))

            released, restored = await _release_inventory(session, order)
            return PaymentApplied(
                PaymentOutcome.FAILURE_RECORDED,
                await _require(session, order_id),
                restored=restored,
                released=released,
            )

        return await transact(self._session_factory, work, what="record payment failure")


__all__ = ("OrderStore", "order_from_rows")
