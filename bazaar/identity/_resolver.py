"""
Identity resolver — cookies in, cart owner out.

    resolution = await resolver.resolve(request.cookies)
    if resolution.issued_guest:
        set_guest_cookie(response, resolution.owner.guest_session_id)

Always succeeds: any failure to validate a session falls back to guest.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping

from kungfu import Error, Ok

from bazaar._types import new_id
from bazaar.identity._sessions import SessionStore
from bazaar.identity._types import Actor, GuestOwner, Resolution, UserOwner

log = logging.getLogger("bazaar.identity")

SESSION_COOKIE = "session_token"
GUEST_COOKIE = "guest_session_id"
GUEST_PREFIX = "guest"


def new_guest_id() -> str:
    return new_id(GUEST_PREFIX, 12)


def is_guest_id(value: str) -> bool:
    return value.startswith(f"{GUEST_PREFIX}_") and len(value) > len(GUEST_PREFIX) + 1


class IdentityResolver:
    def __init__(self, sessions: SessionStore) -> None:
        self._sessions = sessions

    async def actor(self, cookies: Mapping[str, str]) -> Actor | None:
        """The authenticated caller, or None."""
        token = cookies.get(SESSION_COOKIE)
        if not token:
            return None
        match await self._sessions.validate(token):
            case Ok(actor):
                return actor
            case Error(e):
                log.warning("session validation failed, treating caller as guest: %s", e.message)
                return None

    async def resolve(self, cookies: Mapping[str, str]) -> Resolution:
        actor = await self.actor(cookies)
        if actor is not None:
            return Resolution(owner=UserOwner(actor.user_id), actor=actor)

        guest_id = cookies.get(GUEST_COOKIE)
        if guest_id and is_guest_id(guest_id):
            return Resolution(owner=GuestOwner(guest_id))

        return Resolution(owner=GuestOwner(new_guest_id()), issued_guest=True)


__all__ = (
    "SESSION_COOKIE",
    "GUEST_COOKIE",
    "IdentityResolver",
    "is_guest_id",
    "new_guest_id",
)
