"""
Cart types.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class CartItem:
    id: str
    product_id: str
    vendor_id: str
    name: str
    unit_price: int
    quantity: int
    max_quantity: int | None = None
    image: str | None = None

    @property
    def line_total(self) -> int:
        return self.unit_price * self.quantity


@dataclass(frozen=True, slots=True)
class NewCartItem:
    """What a caller asks to put in the cart."""

    product_id: str
    vendor_id: str
    name: str
    unit_price: int
    quantity: int
    max_quantity: int | None = None
    image: str | None = None


@dataclass(frozen=True, slots=True)
class Cart:
    """
    A cart and its lines.

    Note: Exactly one cart exists per (owner_type, owner_id).
    """

    id: str
    owner_type: str
    owner_id: str
    items: tuple[CartItem, ...] = ()

    @property
    def subtotal(self) -> int:
        return sum(item.line_total for item in self.items)

    @property
    def item_count(self) -> int:
        return sum(item.quantity for item in self.items)

    @property
    def is_empty(self) -> bool:
        return not self.items

    def line_for(self, product_id: str) -> CartItem | None:
        return next((i for i in self.items if i.product_id == product_id), None)


@dataclass(frozen=True, slots=True)
class MergeReport:
    """
    Outcome of folding a guest cart into a user cart.

    guest_cart_found is False when there was nothing to merge, including
    a retry after the guest cart was already consumed.
    """

    cart: Cart
    guest_cart_found: bool
    guest_items: int = 0
    merged: int = 0
    added: int = 0


__all__ = ("CartItem", "NewCartItem", "Cart", "MergeReport")
