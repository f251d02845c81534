"""
Checkout — buyer's cart to a placed, payable order.

    match await checkout.place_order(buyer, CheckoutRequest(address), context):
        case Ok(placement):
            placement.order.id, placement.payment.reference
        case Error(e):
            ...  # 400 EMPTY_CART / PRODUCT_UNAVAILABLE, 409 INSUFFICIENT_STOCK, 502 PAYMENT_UNAVAILABLE
"""

from __future__ import annotations

import logging

from kungfu import Error, Ok, Result

from bazaar import graph as G
from bazaar.audit import AuditEntry, AuditLog, RequestContext
from bazaar.checkout._nodes import PlacedOrderNode
from bazaar.checkout._types import CheckoutDeps, CheckoutRequest, Placement
from bazaar.errors import MarketError, MarketFailure
from bazaar.identity import Actor, UserOwner
from bazaar.policy import Action, Policy, Resource

log = logging.getLogger("bazaar.checkout")


class CheckoutService:
    def __init__(self, deps: CheckoutDeps, audit: AuditLog, policy: Policy) -> None:
        self._deps = deps
        self._audit = audit
        self._policy = policy

    async def place_order(
        self,
        actor: Actor | None,
        request: CheckoutRequest,
        context: RequestContext = RequestContext(),
    ) -> Result[Placement, MarketError]:
        match self._policy.authorize(actor, Action.CREATE, Resource.ORDER):
            case Ok(buyer):
                pass
            case Error(e):
                return Error(e)

        try:
            placed = await G.compose(
                PlacedOrderNode,
                G.given(Actor, buyer),
                G.given(CheckoutRequest, request),
                G.given(CheckoutDeps, self._deps),
            )
        except MarketFailure as failure:
            log.info("checkout for %s rejected: %s", buyer.user_id, failure.error.code)
            return Error(failure.error)

        order = placed.order
        match await self._deps.carts.clear(UserOwner(buyer.user_id)):
            case Ok(_):
                cleared = True
            case Error(e):
                log.error("order %s placed but cart of %s not cleared: %s", order.id, buyer.user_id, e.message)
                cleared = False

        await self._audit.emit(AuditEntry(
            action="ORDER_PLACED",
            category="order",
            target_id=order.id,
            target_type="order",
            target_name=f"Order {order.id}",
            actor=buyer,
            details={
                "items": len(order.items),
                "total": order.total,
                "currency": order.currency,
                "paymentReference": placed.payment.reference,
            },
            new_value={"status": order.status.value, "paymentStatus": order.payment_status.value},
            context=context,
        ))
        return Ok(Placement(order=order, payment=placed.payment, cart_cleared=cleared))


__all__ = ("CheckoutService",)
