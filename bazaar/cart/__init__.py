"""
Cart — per-owner carts with guest → user merge on login.

    from bazaar.cart import CartStore, NewCartItem

    carts = CartStore(session_factory)
    await carts.add_item(resolution.owner, NewCartItem(product_id, vendor_id, name, price, 2))
"""

from bazaar.cart._types import CartItem, NewCartItem, Cart, MergeReport
from bazaar.cart._store import CartStore

__all__ = (
    "CartItem",
    "NewCartItem",
    "Cart",
    "MergeReport",
    "CartStore",
)
