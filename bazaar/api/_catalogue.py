"""
/api/products, /api/vendors/verify and /api/admin/users.
"""

from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from bazaar.api._codecs import ProductIn, ProductOut, UserActionIn, UserActionOut, VerificationOut
from bazaar.api._http import ActorDep, ContextDep, ServicesDep, reply, unwrap
from bazaar.errors import Errors, MarketFailure
from bazaar.identity import Actor, Role, User

router = APIRouter(tags=["catalogue"])


@router.get("/api/products")
async def list_products(actor: ActorDep, services: ServicesDep, mine: bool = False) -> JSONResponse:
    products = unwrap(await services.catalogue.browse(actor, mine=mine))
    return reply({"products": [ProductOut.from_domain(p).dump() for p in products]})


@router.post("/api/products")
async def create_product(body: ProductIn, actor: ActorDep, services: ServicesDep, context: ContextDep) -> JSONResponse:
    created = unwrap(await services.catalogue.create(actor, body.to_domain(), context))
    return reply(
        {"success": True, "product": ProductOut.from_domain(created.product).dump(), "message": created.message},
        status_code=201,
    )


# ═══════════════════════════════════════════════════════════════════════════════
# Vendor verification
# ═══════════════════════════════════════════════════════════════════════════════


def _require_vendor(actor: Actor | None) -> Actor:
    if actor is None:
        raise MarketFailure(Errors.authentication())
    if actor.role != Role.VENDOR:
        raise MarketFailure(Errors.forbidden("FORBIDDEN", "Only vendors can submit verification"))
    return actor


@router.get("/api/vendors/verify")
async def verification_state(actor: ActorDep, services: ServicesDep) -> JSONResponse:
    vendor_actor = _require_vendor(actor)
    match unwrap(await services.users.get(vendor_actor.user_id)):
        case User() as vendor:
            return reply({"vendor": VerificationOut.from_domain(vendor).dump()})
        case None:
            raise MarketFailure(Errors.not_found("VENDOR_NOT_FOUND", "Vendor not found"))


@router.post("/api/vendors/verify")
async def submit_verification(actor: ActorDep, services: ServicesDep, context: ContextDep) -> JSONResponse:
    vendor = unwrap(await services.kyc.start_verification(_require_vendor(actor), context))
    return reply({
        "success": True,
        "vendor": VerificationOut.from_domain(vendor).dump(),
        "message": "Verification submitted",
    })


# ═══════════════════════════════════════════════════════════════════════════════
# Admin
# ═══════════════════════════════════════════════════════════════════════════════


@router.patch("/api/admin/users")
async def manage_user(body: UserActionIn, actor: ActorDep, services: ServicesDep, context: ContextDep) -> JSONResponse:
    done = unwrap(await services.user_admin.apply(actor, body.to_domain(), context))
    return reply(UserActionOut.from_domain(done).dump())


__all__ = ("router",)
