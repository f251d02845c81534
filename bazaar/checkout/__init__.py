"""
Checkout — order placement as a computation graph.

    checkout = CheckoutService(CheckoutDeps(carts, products, users, orders, payments), audit, policy)
    placement = (await checkout.place_order(buyer, request)).unwrap()
"""

from bazaar.checkout._types import CheckoutRequest, CheckoutDeps, Placement
from bazaar.checkout._nodes import (
    AddressNode,
    TotalsNode,
    CartNode,
    PricedLinesNode,
    DraftNode,
    PlacedOrderNode,
)
from bazaar.checkout._service import CheckoutService

__all__ = (
    "CheckoutRequest",
    "CheckoutDeps",
    "Placement",
    "AddressNode",
    "TotalsNode",
    "CartNode",
    "PricedLinesNode",
    "DraftNode",
    "PlacedOrderNode",
    "CheckoutService",
)
