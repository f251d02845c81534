"""
Read scoping — which orders a caller sees, and which lines they may act on.

    buyer   own orders only
    vendor  orders containing any of its lines; only its own pending lines
            on a live order are actionable
    admin   everything, nothing actionable (admins move orders, not lines)
"""

from __future__ import annotations

from bazaar.identity import Actor, Role
from bazaar.orders._types import ItemView, Order, OrderItem, OrderStatus, OrderView


def fulfillable_by(order: Order, item: OrderItem, vendor_id: str) -> bool:
    return (
        item.vendor_id == vendor_id
        and not item.is_fulfilled
        and order.status != OrderStatus.CANCELLED
    )


def view_for(actor: Actor, order: Order) -> OrderView | None:
    """None when the order must stay hidden from actor."""
    if actor.role.is_admin:
        return OrderView(order, tuple(ItemView(item) for item in order.items))

    if actor.role == Role.VENDOR and actor.user_id in order.vendor_ids:
        return OrderView(order, tuple(
            ItemView(item, actionable=fulfillable_by(order, item, actor.user_id))
            for item in order.items
        ))

    if order.buyer_id == actor.user_id:
        return OrderView(order, tuple(ItemView(item) for item in order.items))

    return None


__all__ = ("fulfillable_by", "view_for")
