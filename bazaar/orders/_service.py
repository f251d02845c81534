"""
Order service — authorization, gating and audit around the order store.

    orders = OrderService(OrderStore(sf), UserStore(sf), AuditLog(sf), Policy())

    match await orders.fulfill(vendor, order_id, item_id, context):
        case Ok(item):
            ...
        case Error(e):
            e.status_code  # 403 NOT_ITEM_OWNER / VENDOR_SUSPENDED, 409 ITEM_ALREADY_FULFILLED ...
"""

from __future__ import annotations

import logging

from kungfu import Error, Ok, Result

from bazaar.audit import AuditEntry, AuditLog, RequestContext, Severity
from bazaar.errors import ErrorKind, Errors, MarketError
from bazaar.identity import Actor, Role, UserStore
from bazaar.orders._access import view_for
from bazaar.orders._store import OrderStore
from bazaar.orders._types import AdminUpdate, CancelReport, Order, OrderItem, OrderView
from bazaar.policy import Action, Policy, Resource
from bazaar.verification import gate_fulfillment

log = logging.getLogger("bazaar.orders")


def _snapshot(order: Order) -> dict[str, str | None]:
    return {
        "status": order.status.value,
        "paymentStatus": order.payment_status.value,
        "trackingNumber": order.tracking_number,
        "notes": order.notes,
    }


class OrderService:
    def __init__(self, orders: OrderStore, users: UserStore, audit: AuditLog, policy: Policy) -> None:
        self._orders = orders
        self._users = users
        self._audit = audit
        self._policy = policy

    # ═══════════════════════════════════════════════════════════════════════════
    # Reads
    # ═══════════════════════════════════════════════════════════════════════════

    async def get(self, actor: Actor | None, order_id: str) -> Result[OrderView, MarketError]:
        """Orders the caller may not see are reported as not found."""
        match self._policy.authorize(actor, Action.READ, Resource.ORDER):
            case Ok(caller):
                pass
            case Error(e):
                return Error(e)

        match await self._orders.get(order_id):
            case Ok(None):
                return Error(Errors.not_found("ORDER_NOT_FOUND", "Order not found"))
            case Ok(order):
                view = view_for(caller, order)
                if view is None:
                    return Error(Errors.not_found("ORDER_NOT_FOUND", "Order not found"))
                return Ok(view)
            case Error(e):
                return Error(e)

    async def browse(self, actor: Actor | None) -> Result[list[OrderView], MarketError]:
        match self._policy.authorize(actor, Action.READ, Resource.ORDER):
            case Ok(caller):
                pass
            case Error(e):
                return Error(e)

        if caller.role.is_admin:
            found = await self._orders.list_all()
        elif caller.role == Role.VENDOR:
            found = await self._vendor_orders(caller.user_id)
        else:
            found = await self._orders.list_for_buyer(caller.user_id)

        match found:
            case Ok(orders):
                return Ok([v for o in orders if (v := view_for(caller, o)) is not None])
            case Error(e):
                return Error(e)

    async def _vendor_orders(self, vendor_id: str) -> Result[list[Order], MarketError]:
        """Orders with the vendor's lines, plus anything it bought itself."""
        match await self._orders.list_for_vendor(vendor_id):
            case Ok(selling):
                pass
            case Error(e):
                return Error(e)
        match await self._orders.list_for_buyer(vendor_id):
            case Ok(buying):
                pass
            case Error(e):
                return Error(e)
        merged = {o.id: o for o in [*selling, *buying]}
        return Ok(sorted(merged.values(), key=lambda o: o.created_at, reverse=True))

    # ═══════════════════════════════════════════════════════════════════════════
    # Writes
    # ═══════════════════════════════════════════════════════════════════════════

    async def cancel(
        self,
        actor: Actor | None,
        order_id: str,
        context: RequestContext = RequestContext(),
    ) -> Result[CancelReport, MarketError]:
        match self._policy.authorize(actor, Action.CANCEL, Resource.ORDER):
            case Ok(admin):
                pass
            case Error(e):
                return Error(e)

        result = await self._orders.cancel_with_restore(order_id)
        match result:
            case Ok(report):
                await self._audit.emit(AuditEntry(
                    action="ORDER_CANCELLED",
                    category="order",
                    target_id=order_id,
                    target_type="order",
                    target_name=f"Order {order_id}",
                    actor=admin,
                    details={
                        "restoredItems": report.restored_count,
                        "totalItems": len(report.order.items),
                        "restored": [
                            {"productId": i.product_id, "quantity": i.quantity}
                            for i in report.restored_items
                        ],
                    },
                    new_value={"status": report.order.status.value},
                    severity=Severity.WARNING,
                    context=context,
                ))
            case Error(e) if e.kind == ErrorKind.CONFLICT:
                await self._audit.emit(AuditEntry(
                    action="ORDER_CANCEL_REJECTED",
                    category="order",
                    target_id=order_id,
                    target_type="order",
                    actor=admin,
                    details={"code": e.code, "reason": e.message},
                    severity=Severity.WARNING,
                    context=context,
                ))
        return result

    async def fulfill(
        self,
        actor: Actor | None,
        order_id: str,
        item_id: str,
        context: RequestContext = RequestContext(),
    ) -> Result[OrderItem, MarketError]:
        match self._policy.authorize(actor, Action.FULFILL, Resource.ORDER_ITEM):
            case Ok(vendor_actor):
                pass
            case Error(e):
                return Error(e)

        match await self._users.get(vendor_actor.user_id):
            case Ok(None):
                return Error(Errors.not_found("VENDOR_NOT_FOUND", "Vendor not found"))
            case Ok(vendor):
                pass
            case Error(e):
                return Error(e)

        match gate_fulfillment(vendor):
            case Error(e):
                log.info("fulfilment blocked for vendor %s: %s", vendor.id, e.code)
                return Error(e)
            case Ok(_):
                pass

        result = await self._orders.fulfill_item(order_id, item_id, vendor.id)
        match result:
            case Ok(item):
                await self._audit.emit(AuditEntry(
                    action="ORDER_ITEM_FULFILLED",
                    category="order",
                    target_id=order_id,
                    target_type="order",
                    target_name=f"Order {order_id}",
                    actor=vendor_actor,
                    details={"itemId": item.id, "productId": item.product_id, "quantity": item.quantity},
                    new_value={"fulfillmentStatus": item.fulfillment_status.value},
                    context=context,
                ))
            case Error(e) if e.kind in (ErrorKind.CONFLICT, ErrorKind.FORBIDDEN):
                await self._audit.emit(AuditEntry(
                    action="ORDER_ITEM_FULFILL_REJECTED",
                    category="order",
                    target_id=order_id,
                    target_type="order",
                    actor=vendor_actor,
                    details={"itemId": item_id, "code": e.code},
                    severity=Severity.WARNING,
                    context=context,
                ))
        return result

    async def update(
        self,
        actor: Actor | None,
        order_id: str,
        changes: AdminUpdate,
        context: RequestContext = RequestContext(),
    ) -> Result[Order, MarketError]:
        match self._policy.authorize(actor, Action.UPDATE, Resource.ORDER):
            case Ok(admin):
                pass
            case Error(MarketError(kind=ErrorKind.FORBIDDEN)):
                return Error(Errors.forbidden("FORBIDDEN", "Only admins can update orders"))
            case Error(e):
                return Error(e)

        if changes.is_empty:
            return Error(Errors.validation("NO_CHANGES", "No updates provided"))

        match await self._orders.admin_update(order_id, changes):
            case Ok((before, after)):
                pass
            case Error(e):
                return Error(e)

        await self._audit.emit(AuditEntry(
            action="ORDER_UPDATED",
            category="order",
            target_id=order_id,
            target_type="order",
            target_name=f"Order {order_id}",
            actor=admin,
            details={k: v for k, v in _snapshot(after).items() if _snapshot(before)[k] != v},
            previous_value=_snapshot(before),
            new_value=_snapshot(after),
            context=context,
        ))
        return Ok(after)


__all__ = ("OrderService",)
