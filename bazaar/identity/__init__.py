"""
Identity — sessions, accounts and cart ownership.

    from bazaar import identity as I

    resolver = I.IdentityResolver(I.SessionStore(session_factory))
    resolution = await resolver.resolve(request.cookies)

    match resolution.owner:
        case I.UserOwner(user_id):
            ...
        case I.GuestOwner(guest_id):
            ...
"""

from bazaar.identity._types import (
    Role,
    UserStatus,
    VerificationStatus,
    VerificationRecord,
    User,
    Actor,
    UserOwner,
    GuestOwner,
    CartOwner,
    Resolution,
)
from bazaar.identity._users import UserStore, user_from_row
from bazaar.identity._sessions import IssuedSession, SessionStore, hash_token
from bazaar.identity._resolver import (
    SESSION_COOKIE,
    GUEST_COOKIE,
    IdentityResolver,
    is_guest_id,
    new_guest_id,
)

__all__ = (
    "Role",
    "UserStatus",
    "VerificationStatus",
    "VerificationRecord",
    "User",
    "Actor",
    "UserOwner",
    "GuestOwner",
    "CartOwner",
    "Resolution",
    "UserStore",
    "user_from_row",
    "IssuedSession",
    "SessionStore",
    "hash_token",
    "SESSION_COOKIE",
    "GUEST_COOKIE",
    "IdentityResolver",
    "is_guest_id",
    "new_guest_id",
)
