"""
Order types.

Money is integer minor units throughout. An Order is a snapshot: product
names and vendor names are copied onto the lines at placement time.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any

from bazaar.identity import Actor

# ═══════════════════════════════════════════════════════════════════════════════
# Statuses
# ═══════════════════════════════════════════════════════════════════════════════


class OrderStatus(StrEnum):
    PENDING_PAYMENT = "pending_payment"
    PROCESSING = "processing"
    FULFILLED = "fulfilled"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentStatus(StrEnum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"


class FulfillmentStatus(StrEnum):
    PENDING = "pending"
    FULFILLED = "fulfilled"


# ═══════════════════════════════════════════════════════════════════════════════
# Order
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class ShippingAddress:
    full_name: str
    phone: str
    address: str
    city: str
    region: str

    def to_dict(self) -> dict[str, str]:
        return {
            "fullName": self.full_name,
            "phone": self.phone,
            "address": self.address,
            "city": self.city,
            "region": self.region,
        }


@dataclass(frozen=True, slots=True)
class OrderItem:
    id: str
    order_id: str
    product_id: str
    product_name: str
    vendor_id: str
    vendor_name: str
    quantity: int
    unit_price: int
    fulfillment_status: FulfillmentStatus = FulfillmentStatus.PENDING
    fulfilled_at: datetime | None = None
    image: str | None = None

    @property
    def line_total(self) -> int:
        return self.unit_price * self.quantity

    @property
    def is_fulfilled(self) -> bool:
        return self.fulfillment_status == FulfillmentStatus.FULFILLED


@dataclass(frozen=True, slots=True)
class Order:
    """
    Order header + lines.

    inventory_released: stock for every line has been given back, by
    cancellation or by a failed payment. Never set twice.
    """

    id: str
    buyer_id: str
    buyer_name: str
    buyer_email: str
    items: tuple[OrderItem, ...]
    subtotal: int
    discount_total: int
    shipping_fee: int
    tax: int
    total: int
    currency: str
    status: OrderStatus
    payment_status: PaymentStatus
    shipping_address: dict[str, Any]
    created_at: datetime
    updated_at: datetime
    payment_method: str | None = None
    payment_provider: str | None = None
    payment_reference: str | None = None
    paid_at: datetime | None = None
    inventory_released: bool = False
    tracking_number: str | None = None
    notes: str | None = None
    coupon_code: str | None = None

    @property
    def vendor_ids(self) -> frozenset[str]:
        return frozenset(item.vendor_id for item in self.items)

    def item(self, item_id: str) -> OrderItem | None:
        return next((i for i in self.items if i.id == item_id), None)


# ═══════════════════════════════════════════════════════════════════════════════
# Placement
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class OrderLine:
    """A priced cart line, ready to become an OrderItem."""

    product_id: str
    product_name: str
    vendor_id: str
    vendor_name: str
    quantity: int
    unit_price: int
    image: str | None = None

    @property
    def line_total(self) -> int:
        return self.unit_price * self.quantity


@dataclass(frozen=True, slots=True)
class OrderDraft:
    buyer: Actor
    lines: tuple[OrderLine, ...]
    shipping_address: ShippingAddress
    payment_method: str | None = None
    shipping_fee: int = 0
    tax: int = 0
    discount_total: int = 0
    coupon_code: str | None = None
    currency: str = "GHS"

    @property
    def subtotal(self) -> int:
        return sum(line.line_total for line in self.lines)

    @property
    def total(self) -> int:
        return self.subtotal - self.discount_total + self.shipping_fee + self.tax


# ═══════════════════════════════════════════════════════════════════════════════
# Results + Views
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class CancelReport:
    """restored_items: lines whose stock actually went back (tracked products)."""

    order: Order
    restored_items: tuple[OrderItem, ...] = ()

    @property
    def restored_count(self) -> int:
        return len(self.restored_items)


class PaymentOutcome(StrEnum):
    RECORDED = "recorded"
    ALREADY_PAID = "already_paid"
    DUPLICATE_IGNORED = "duplicate_ignored"
    AMOUNT_MISMATCH = "amount_mismatch"
    FAILURE_RECORDED = "failure_recorded"
    FAILURE_IGNORED = "failure_ignored"
    DUPLICATE_FAILURE = "duplicate_failure"


@dataclass(frozen=True, slots=True)
class PaymentApplied:
    """
    What a gateway notification did to an order.

    restored: lines whose stock went back because the payment failed.
    released: this notification released the order's inventory.
    shortfalls: product id → units that could not be re-reserved when a
    payment landed after its stock had been released.
    """

    outcome: PaymentOutcome
    order: Order
    restored: tuple[OrderItem, ...] = ()
    released: bool = False
    shortfalls: dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class AdminUpdate:
    """Fields an admin may change. None leaves the field untouched."""

    status: OrderStatus | None = None
    payment_status: PaymentStatus | None = None
    tracking_number: str | None = None
    notes: str | None = None

    @property
    def is_empty(self) -> bool:
        return all(v is None for v in (self.status, self.payment_status, self.tracking_number, self.notes))


@dataclass(frozen=True, slots=True)
class ItemView:
    """actionable: the viewer may fulfil this line right now."""

    item: OrderItem
    actionable: bool = False


@dataclass(frozen=True, slots=True)
class OrderView:
    order: Order
    items: tuple[ItemView, ...] = field(default_factory=tuple)


__all__ = (
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
)
