"""
Identity types — who is calling, and who owns a cart.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum

# ═══════════════════════════════════════════════════════════════════════════════
# Roles + Statuses
# ═══════════════════════════════════════════════════════════════════════════════


class Role(StrEnum):
    BUYER = "buyer"
    VENDOR = "vendor"
    ADMIN = "admin"
    MASTER_ADMIN = "master_admin"

    @property
    def is_admin(self) -> bool:
        return self in (Role.ADMIN, Role.MASTER_ADMIN)


class UserStatus(StrEnum):
    ACTIVE = "active"
    SUSPENDED = "suspended"
    BANNED = "banned"
    DELETED = "deleted"


class VerificationStatus(StrEnum):
    """
    Vendor verification lifecycle.

        pending → under_review → verified | rejected
        any → suspended (admin)
    """

    PENDING = "pending"
    UNDER_REVIEW = "under_review"
    VERIFIED = "verified"
    REJECTED = "rejected"
    SUSPENDED = "suspended"


# ═══════════════════════════════════════════════════════════════════════════════
# User
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class VerificationRecord:
    status: VerificationStatus
    notes: str | None = None
    verified_at: datetime | None = None
    verified_by: str | None = None
    kyc_job_id: str | None = None


@dataclass(frozen=True, slots=True)
class User:
    """
    A stored account.

    verification is None for non-vendors.
    """

    id: str
    email: str
    name: str
    role: Role
    status: UserStatus
    is_deleted: bool
    business_name: str | None = None
    store_status: str | None = None
    verification: VerificationRecord | None = None

    @property
    def display_name(self) -> str:
        return self.business_name or self.name


# ═══════════════════════════════════════════════════════════════════════════════
# Actor — the authenticated caller
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Actor:
    """
    Identity + role derived from a live session.

    Note: Never built from client-readable cookies.
    """

    user_id: str
    role: Role
    name: str = ""
    email: str = ""


# ═══════════════════════════════════════════════════════════════════════════════
# Cart Owner — tagged union
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class UserOwner:
    user_id: str

    @property
    def owner_type(self) -> str:
        return "user"

    @property
    def owner_id(self) -> str:
        return self.user_id


@dataclass(frozen=True, slots=True)
class GuestOwner:
    guest_session_id: str

    @property
    def owner_type(self) -> str:
        return "guest"

    @property
    def owner_id(self) -> str:
        return self.guest_session_id


type CartOwner = UserOwner | GuestOwner
"""Sole key for cart lookup."""


@dataclass(frozen=True, slots=True)
class Resolution:
    """
    Outcome of identity resolution.

    issued_guest: a new guest id was minted; the caller must set the cookie.
    """

    owner: CartOwner
    actor: Actor | None = None
    issued_guest: bool = False


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
)
