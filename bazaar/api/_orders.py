"""
/api/orders — checkout, reads, admin updates, vendor fulfilment, cancellation.
"""

from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from bazaar.api._codecs import (
    AdminOrderUpdateIn,
    OrderItemActionIn,
    OrderItemOut,
    OrderOut,
    PaymentOut,
    PlaceOrderIn,
    PlacementOut,
)
from bazaar.api._http import ActorDep, ContextDep, NO_STORE, ServicesDep, reply, unwrap
from bazaar.errors import Errors, MarketFailure
from bazaar.orders import ItemView, Order, OrderStatus, OrderView, canonical_status

router = APIRouter(prefix="/api/orders", tags=["orders"])


def _full_view(order: Order) -> OrderView:
    return OrderView(order, tuple(ItemView(i) for i in order.items))


def _status(value: str | None) -> OrderStatus | None:
    if value is None:
        return None
    try:
        return canonical_status(value)
    except ValueError:
        raise MarketFailure(Errors.validation("INVALID_STATUS", f"Unknown order status: {value}")) from None


@router.post("")
async def place_order(body: PlaceOrderIn, actor: ActorDep, services: ServicesDep, context: ContextDep) -> JSONResponse:
    placement = unwrap(await services.checkout.place_order(actor, body.to_domain(), context))
    return reply(PlacementOut.from_domain(placement).dump(), status_code=201)


@router.get("")
async def list_orders(actor: ActorDep, services: ServicesDep) -> JSONResponse:
    views = unwrap(await services.order_service.browse(actor))
    return reply({"orders": [OrderOut.from_domain(v).dump() for v in views]}, headers=NO_STORE)


@router.get("/{order_id}")
async def get_order(order_id: str, actor: ActorDep, services: ServicesDep) -> JSONResponse:
    view = unwrap(await services.order_service.get(actor, order_id))
    return reply({"order": OrderOut.from_domain(view).dump()}, headers=NO_STORE)


@router.put("/{order_id}")
async def update_order(
    order_id: str,
    body: AdminOrderUpdateIn,
    actor: ActorDep,
    services: ServicesDep,
    context: ContextDep,
) -> JSONResponse:
    changes = body.to_domain(_status(body.status))
    order = unwrap(await services.order_service.update(actor, order_id, changes, context))
    return reply({"success": True, "order": OrderOut.from_domain(_full_view(order)).dump()})


@router.patch("/{order_id}")
async def act_on_item(
    order_id: str,
    body: OrderItemActionIn,
    actor: ActorDep,
    services: ServicesDep,
    context: ContextDep,
) -> JSONResponse:
    if body.action != "fulfill":
        raise MarketFailure(Errors.validation("INVALID_ACTION", "Invalid action"))
    if not body.item_id:
        raise MarketFailure(Errors.validation("ITEM_ID_REQUIRED", "itemId is required"))
    item = unwrap(await services.order_service.fulfill(actor, order_id, body.item_id, context))
    return reply({"success": True, "item": OrderItemOut.from_domain(item).dump()})


@router.delete("/{order_id}")
async def cancel_order(order_id: str, actor: ActorDep, services: ServicesDep, context: ContextDep) -> JSONResponse:
    report = unwrap(await services.order_service.cancel(actor, order_id, context))
    return reply({
        "success": True,
        "order": OrderOut.from_domain(_full_view(report.order)).dump(),
        "restoredItems": report.restored_count,
    })


@router.post("/{order_id}/payment")
async def start_payment(order_id: str, actor: ActorDep, services: ServicesDep, context: ContextDep) -> JSONResponse:
    init = unwrap(await services.payments.initialize(actor, order_id, context))
    return reply({"success": True, "payment": PaymentOut.from_domain(init).dump()})


__all__ = ("router",)
