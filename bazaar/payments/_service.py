"""
Payment attempts — get a reference from the gateway, pin it on the order.

    match await payments.initialize(buyer, order_id, context):
        case Ok(init):
            init.reference, init.amount
        case Error(e):
            ...  # 404 hidden order, 409 ORDER_ALREADY_PAID / ORDER_NOT_PAYABLE

The reference is stored before it is returned, so the webhook can always
match a charge back to its order.
"""

from __future__ import annotations

import logging

import combinators as C
from combinators import RetryPolicy
from combinators import lift as L
from kungfu import Error, LazyCoroResult, Ok, Result

from bazaar.audit import AuditEntry, AuditLog, RequestContext
from bazaar.errors import Errors, MarketError
from bazaar.identity import Actor
from bazaar.orders import Order, OrderStatus, OrderStore, PaymentStatus
from bazaar.payments._gateway import PaymentAttempt, PaymentGateway, PaymentInit, ReferenceGateway
from bazaar.policy import Action, Policy, Resource

log = logging.getLogger("bazaar.payments")


class PaymentService:
    def __init__(
        self,
        orders: OrderStore,
        audit: AuditLog,
        policy: Policy,
        gateway: PaymentGateway | None = None,
        *,
        retry: RetryPolicy[MarketError] | None = None,
    ) -> None:
        self._orders = orders
        self._audit = audit
        self._policy = policy
        self._gateway = gateway or ReferenceGateway()
        self._retry = retry or RetryPolicy.fixed(times=3, delay_seconds=0.2)

    def attempt(self, order: Order) -> LazyCoroResult[PaymentAttempt, MarketError]:
        """Lazy: ask the gateway (with retry), then store the reference."""
        gateway = self._gateway
        init = C.retry(
            L.catching_async(
                lambda: gateway.initialize(order),
                on_error=lambda e: Errors.upstream("PAYMENT_UNAVAILABLE", f"Payment initialisation failed: {e}", e),
            ),
            policy=self._retry,
        )
        return init.then(lambda started: self._pin(order, started))

    async def _pin(self, order: Order, started: PaymentInit) -> Result[PaymentAttempt, MarketError]:
        match await self._orders.set_payment_reference(order.id, started.reference, provider=self._gateway.provider):
            case Ok(pinned):
                log.info("payment %s initialised for order %s", started.reference, order.id)
                return Ok(PaymentAttempt(order=pinned, init=started))
            case Error(e):
                return Error(e)

    async def initialize(
        self,
        actor: Actor | None,
        order_id: str,
        context: RequestContext = RequestContext(),
    ) -> Result[PaymentInit, MarketError]:
        """Start a new attempt for the caller's own unpaid order."""
        match self._policy.authorize(actor, Action.PAY, Resource.ORDER):
            case Ok(buyer):
                pass
            case Error(e):
                return Error(e)

        match await self._orders.get(order_id):
            case Ok(Order() as order) if order.buyer_id == buyer.user_id:
                pass
            case Ok(_):
                return Error(Errors.not_found("ORDER_NOT_FOUND", "Order not found"))
            case Error(e):
                return Error(e)

        if order.payment_status == PaymentStatus.PAID:
            return Error(Errors.conflict(
                "ORDER_ALREADY_PAID", "Order has already been paid", paymentStatus=order.payment_status.value
            ))
        if order.status != OrderStatus.PENDING_PAYMENT:
            return Error(Errors.conflict(
                "ORDER_NOT_PAYABLE", "Order is not in a payable state", currentStatus=order.status.value
            ))

        match await self.attempt(order):
            case Ok(PaymentAttempt(init=started)):
                pass
            case Error(e):
                return Error(e)

        await self._audit.emit(AuditEntry(
            action="PAYMENT_INITIALIZED",
            category="order",
            target_id=order.id,
            target_type="order",
            target_name=f"Order {order.id}",
            actor=buyer,
            details={
                "reference": started.reference,
                "amount": started.amount,
                "currency": started.currency,
                "previousReference": order.payment_reference,
                "previousPaymentStatus": order.payment_status.value,
            },
            context=context,
        ))
        return Ok(started)


__all__ = ("PaymentService",)
