"""
/api/cart — the caller's cart, guest or user.
"""

from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from bazaar.api._codecs import CartActionIn, CartOut
from bazaar.api._http import (
    NO_STORE,
    ResolutionDep,
    ServicesDep,
    clear_guest_cookie,
    remember_guest,
    reply,
    set_ui_cookies,
    unwrap,
)
from bazaar.errors import Errors, MarketFailure
from bazaar.identity import GUEST_COOKIE, is_guest_id

router = APIRouter(prefix="/api/cart", tags=["cart"])


@router.get("")
async def get_cart(services: ServicesDep, resolution: ResolutionDep) -> JSONResponse:
    cart = unwrap(await services.carts.get_or_create(resolution.owner))
    response = reply({"success": True, "cart": CartOut.from_domain(cart).dump()}, headers=NO_STORE)
    remember_guest(response, resolution, services.settings)
    return response


@router.post("")
async def change_cart(body: CartActionIn, services: ServicesDep, resolution: ResolutionDep) -> JSONResponse:
    carts = services.carts
    owner = resolution.owner
    match body.action:
        case "add":
            if body.item is None:
                raise MarketFailure(Errors.validation("ITEM_REQUIRED", "Item required"))
            result = await carts.add_item(owner, body.item.to_domain())
        case "remove":
            if not body.item_id:
                raise MarketFailure(Errors.validation("ITEM_ID_REQUIRED", "Item ID required"))
            result = await carts.remove_item(owner, body.item_id)
        case "update" | "update_quantity":
            if not body.item_id or body.quantity is None:
                raise MarketFailure(Errors.validation("ITEM_ID_REQUIRED", "Item ID and quantity required"))
            result = await carts.update_quantity(owner, body.item_id, body.quantity)
        case "clear":
            result = await carts.clear(owner)
        case _:
            raise MarketFailure(Errors.validation("INVALID_ACTION", "Invalid action"))

    cart = unwrap(result)
    response = reply({"success": True, "cart": CartOut.from_domain(cart).dump()}, headers=NO_STORE)
    remember_guest(response, resolution, services.settings)
    return response


@router.delete("")
async def clear_cart(services: ServicesDep, resolution: ResolutionDep) -> JSONResponse:
    # a guest minted on this request owns no cart yet
    if not resolution.issued_guest:
        unwrap(await services.carts.clear(resolution.owner))
    response = reply({"success": True})
    remember_guest(response, resolution, services.settings)
    return response


@router.post("/merge")
async def merge_cart(request: Request, services: ServicesDep) -> JSONResponse:
    """Called right after login: fold the guest cart into the user's."""
    actor = await services.identity.actor(request.cookies)
    if actor is None:
        raise MarketFailure(Errors.authentication("Not authenticated"))

    guest_id = request.cookies.get(GUEST_COOKIE)
    if not guest_id or not is_guest_id(guest_id):
        response = reply({"success": True, "message": "No guest cart to merge", "merged": False})
        set_ui_cookies(response, actor, services.settings)
        return response

    report = unwrap(await services.carts.merge_guest_into_user(guest_id, actor.user_id))
    response = reply({
        "success": True,
        "message": "Cart merged successfully" if report.guest_cart_found else "No guest cart to merge",
        "merged": report.guest_cart_found,
        "guestItems": report.guest_items,
        "mergedItems": report.merged,
        "addedItems": report.added,
        "cart": CartOut.from_domain(report.cart).dump(),
    })
    clear_guest_cookie(response, services.settings)
    set_ui_cookies(response, actor, services.settings)
    return response


__all__ = ("router",)
