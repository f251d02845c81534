"""
Request plumbing shared by the routers: services, caller, context, cookies.
"""

from __future__ import annotations

from typing import Annotated, Any

from fastapi import Depends, Request, Response
from fastapi.responses import JSONResponse
from kungfu import Error, Ok, Result

from bazaar.audit import RequestContext
from bazaar.config import Settings
from bazaar.errors import MarketError, MarketFailure
from bazaar.identity import GUEST_COOKIE, Actor, GuestOwner, Resolution
from bazaar.services import Services

ROLE_COOKIE = "user_role"
AUTH_COOKIE = "is_authenticated"

NO_STORE = {"Cache-Control": "no-cache, no-store, must-revalidate", "Pragma": "no-cache"}


def get_services(request: Request) -> Services:
    return request.app.state.services


ServicesDep = Annotated[Services, Depends(get_services)]


async def get_actor(request: Request, services: ServicesDep) -> Actor | None:
    return await services.identity.actor(request.cookies)


async def get_resolution(request: Request, services: ServicesDep) -> Resolution:
    return await services.identity.resolve(request.cookies)


def get_context(request: Request) -> RequestContext:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        ip = forwarded.split(",")[0].strip()
    else:
        ip = request.client.host if request.client else None
    return RequestContext(ip_address=ip, user_agent=request.headers.get("user-agent"))


ActorDep = Annotated[Actor | None, Depends(get_actor)]
ResolutionDep = Annotated[Resolution, Depends(get_resolution)]
ContextDep = Annotated[RequestContext, Depends(get_context)]


def unwrap[T](result: Result[T, MarketError]) -> T:
    """Ok value, or raise so the MarketFailure handler renders the error."""
    match result:
        case Ok(value):
            return value
        case Error(e):
            raise MarketFailure(e)


def render_error(error: MarketError) -> JSONResponse:
    return JSONResponse(status_code=error.status_code, content=error.to_body())


# ═══════════════════════════════════════════════════════════════════════════════
# Cookies
# ═══════════════════════════════════════════════════════════════════════════════


def set_guest_cookie(response: Response, guest_id: str, settings: Settings) -> None:
    response.set_cookie(
        GUEST_COOKIE,
        guest_id,
        max_age=int(settings.guest_ttl.total_seconds()),
        httponly=True,
        secure=settings.secure_cookies,
        samesite="lax",
        path="/",
    )


def clear_guest_cookie(response: Response, settings: Settings) -> None:
    response.set_cookie(
        GUEST_COOKIE,
        "",
        max_age=0,
        httponly=True,
        secure=settings.secure_cookies,
        samesite="lax",
        path="/",
    )


def set_ui_cookies(response: Response, actor: Actor, settings: Settings) -> None:
    """Readable by the client for rendering only; authorization never reads them."""
    max_age = int(settings.session_ttl.total_seconds())
    for name, value in ((ROLE_COOKIE, actor.role.value), (AUTH_COOKIE, "true")):
        response.set_cookie(
            name,
            value,
            max_age=max_age,
            httponly=False,
            secure=settings.secure_cookies,
            samesite="lax",
            path="/",
        )


def remember_guest(response: Response, resolution: Resolution, settings: Settings) -> None:
    match resolution:
        case Resolution(owner=GuestOwner(guest_id), issued_guest=True):
            set_guest_cookie(response, guest_id, settings)


def reply(content: Any, status_code: int = 200, headers: dict[str, str] | None = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=content, headers=headers)


__all__ = (
    "ROLE_COOKIE",
    "AUTH_COOKIE",
    "NO_STORE",
    "get_services",
    "ServicesDep",
    "ActorDep",
    "ResolutionDep",
    "ContextDep",
    "unwrap",
    "render_error",
    "set_guest_cookie",
    "clear_guest_cookie",
    "set_ui_cookies",
    "remember_guest",
    "reply",
)
