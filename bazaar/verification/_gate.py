"""
Verification gate — may this vendor publish, may it fulfil?

Who gets coerced and who gets rejected is data, not branching:

    PUBLISH_MODES = {Role.VENDOR: COERCE, Role.ADMIN: REJECT, ...}

A vendor saving an active product while unverified gets a draft (soft block).
An admin doing the same on the vendor's behalf gets 403 VENDOR_NOT_VERIFIED.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import StrEnum

from kungfu import Error, Ok, Result

from bazaar.errors import Errors, MarketError
from bazaar.identity import Role, User, UserStatus, VerificationStatus


class PublishMode(StrEnum):
    COERCE = "coerce"
    REJECT = "reject"


PUBLISH_MODES: Mapping[Role, PublishMode] = {
    Role.VENDOR: PublishMode.COERCE,
    Role.ADMIN: PublishMode.REJECT,
    Role.MASTER_ADMIN: PublishMode.REJECT,
}


@dataclass(frozen=True, slots=True)
class PublishDecision:
    """
    publish: the product may be stored as active.
    coerced: an active request was downgraded to draft.
    """

    publish: bool
    coerced: bool = False


def verification_status(vendor: User) -> VerificationStatus:
    return vendor.verification.status if vendor.verification else VerificationStatus.PENDING


def can_publish(vendor: User) -> bool:
    return vendor.role == Role.VENDOR and verification_status(vendor) == VerificationStatus.VERIFIED


def gate_publish(
    role: Role,
    vendor: User,
    *,
    wants_active: bool,
    modes: Mapping[Role, PublishMode] = PUBLISH_MODES,
) -> Result[PublishDecision, MarketError]:
    if not wants_active:
        return Ok(PublishDecision(publish=False))
    if can_publish(vendor):
        return Ok(PublishDecision(publish=True))

    match modes.get(role):
        case PublishMode.COERCE:
            return Ok(PublishDecision(publish=False, coerced=True))
        case PublishMode.REJECT:
            return Error(Errors.forbidden(
                "VENDOR_NOT_VERIFIED",
                "Vendor verification required to publish products",
                details='Products can only be published (status: active) for verified vendors. '
                        'Set status to "draft" instead.',
                verificationStatus=verification_status(vendor).value,
            ))
        case _:
            return Error(Errors.forbidden("FORBIDDEN", "Only vendors and admins can create products"))


def gate_fulfillment(vendor: User) -> Result[User, MarketError]:
    """Suspended vendors keep their data but cannot move orders."""
    if vendor.status == UserStatus.SUSPENDED or verification_status(vendor) == VerificationStatus.SUSPENDED:
        return Error(Errors.forbidden("VENDOR_SUSPENDED", "Vendor account is suspended"))
    return Ok(vendor)


__all__ = (
    "PublishMode",
    "PUBLISH_MODES",
    "PublishDecision",
    "verification_status",
    "can_publish",
    "gate_publish",
    "gate_fulfillment",
)
