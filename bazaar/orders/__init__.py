"""
Orders — placement, lifecycle, fulfilment and payment state.

    from bazaar import orders as O

    store = O.OrderStore(session_factory)
    report = (await store.cancel_with_restore(order_id)).unwrap()
    report.restored_count
"""

from bazaar.orders._types import (
    OrderStatus,
    PaymentStatus,
    FulfillmentStatus,
    ShippingAddress,
    OrderItem,
    Order,
    OrderLine,
    OrderDraft,
    CancelReport,
    PaymentOutcome,
    PaymentApplied,
    AdminUpdate,
    ItemView,
    OrderView,
)
from bazaar.orders._states import (
    Trigger,
    TRANSITIONS,
    CANCELLABLE,
    TERMINAL,
    LEGACY,
    canonical_status,
    can_transition,
    check_transition,
)
from bazaar.orders._store import OrderStore, order_from_rows
from bazaar.orders._access import fulfillable_by, view_for
from bazaar.orders._service import OrderService

__all__ = (
    # Types
    "OrderStatus",
    "PaymentStatus",
    "FulfillmentStatus",
    "ShippingAddress",
    "OrderItem",
    "Order",
    "OrderLine",
    "OrderDraft",
    "CancelReport",
    "PaymentOutcome",
    "PaymentApplied",
    "AdminUpdate",
    "ItemView",
    "OrderView",
    # State machine
    "Trigger",
    "TRANSITIONS",
    "CANCELLABLE",
    "TERMINAL",
    "LEGACY",
    "canonical_status",
    "can_transition",
    "check_transition",
    # Store + service
    "OrderStore",
    "order_from_rows",
    "fulfillable_by",
    "view_for",
    "OrderService",
)
