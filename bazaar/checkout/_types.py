"""
Checkout inputs and outputs.
"""

from __future__ import annotations

from dataclasses import dataclass

from bazaar.cart import CartStore
from bazaar.identity import UserStore
from bazaar.orders import Order, OrderStore, ShippingAddress
from bazaar.payments import PaymentInit, PaymentService
from bazaar.products import ProductStore


@dataclass(frozen=True, slots=True)
class CheckoutRequest:
    """
    What the buyer submits. Amounts are minor units.

    Prices never come from here: lines are priced from the catalogue.
    """

    shipping_address: ShippingAddress
    payment_method: str | None = None
    shipping_fee: int = 0
    tax: int = 0
    discount_total: int = 0
    coupon_code: str | None = None


@dataclass(frozen=True, slots=True)
class CheckoutDeps:
    carts: CartStore
    products: ProductStore
    users: UserStore
    orders: OrderStore
    payments: PaymentService
    currency: str = "GHS"


@dataclass(frozen=True, slots=True)
class Placement:
    """
    A placed order with its first payment attempt.

    cart_cleared is False when the order stands but emptying the cart failed.
    """

    order: Order
    payment: PaymentInit
    cart_cleared: bool = True


__all__ = ("CheckoutRequest", "CheckoutDeps", "Placement")
