"""
Admin user management — status, verification and deletion actions.

    match await admin.apply(actor, UserActionRequest(user_id, "suspend", reason="Chargebacks")):
        case Ok(done):
            done.user.status, done.message
        case Error(e):
            ...  # 400 REASON_REQUIRED / INVALID_ACTION, 403, 404 USER_NOT_FOUND

Each action is planned first (pure: checks + column changes), then applied
and audited. Planning never touches storage.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from typing import Any

from kungfu import Error, Ok, Result

from bazaar._types import utcnow
from bazaar.audit import AuditEntry, AuditLog, RequestContext, Severity
from bazaar.errors import Errors, MarketError
from bazaar.identity import (
    Actor,
    Role,
    SessionStore,
    User,
    UserStatus,
    UserStore,
    VerificationStatus,
)
from bazaar.policy import Action, Policy, Resource

log = logging.getLogger("bazaar.admin")


# ═══════════════════════════════════════════════════════════════════════════════
# Types
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class UserActionRequest:
    user_id: str
    action: str
    reason: str | None = None


@dataclass(frozen=True, slots=True)
class UserActionDone:
    """user is the account after the action (a tombstone for permanent_delete)."""

    user: User
    action: str
    message: str


@dataclass(frozen=True, slots=True)
class _Plan:
    audit_action: str
    changes: dict[str, Any] = field(default_factory=dict)
    severity: Severity = Severity.INFO
    revoke_sessions: bool = False
    hard_delete: bool = False


type _Planner = Callable[[Actor, User, str | None], Result[_Plan, MarketError]]


def _require_reason(reason: str | None, what: str) -> Result[str, MarketError]:
    if reason is None or not reason.strip():
        return Error(Errors.validation("REASON_REQUIRED", f"Reason is required for {what}"))
    return Ok(reason.strip())


def _require_vendor(target: User) -> Result[User, MarketError]:
    if target.role != Role.VENDOR:
        return Error(Errors.validation("NOT_A_VENDOR", "Only vendors can be verified"))
    return Ok(target)


# ═══════════════════════════════════════════════════════════════════════════════
# Planners
# ═══════════════════════════════════════════════════════════════════════════════


def _approve_verification(admin: Actor, target: User, reason: str | None) -> Result[_Plan, MarketError]:
    return _require_vendor(target).map(lambda _: _Plan(
        audit_action="VENDOR_VERIFICATION_APPROVED",
        changes={
            "verification_status": VerificationStatus.VERIFIED.value,
            "verification_notes": reason or "Approved by admin",
            "verified_at": utcnow(),
            "verified_by": admin.user_id,
            "store_status": "active",
            "status": UserStatus.ACTIVE.value,
        },
    ))


def _reject_verification(admin: Actor, target: User, reason: str | None) -> Result[_Plan, MarketError]:
    match _require_vendor(target):
        case Error(e):
            return Error(e)
    return _require_reason(reason, "rejection").map(lambda why: _Plan(
        audit_action="VENDOR_VERIFICATION_REJECTED",
        changes={
            "verification_status": VerificationStatus.REJECTED.value,
            "verification_notes": why,
            "store_status": "inactive",
        },
        severity=Severity.WARNING,
    ))


def _suspend(admin: Actor, target: User, reason: str | None) -> Result[_Plan, MarketError]:
    def plan(why: str) -> _Plan:
        changes: dict[str, Any] = {"status": UserStatus.SUSPENDED.value}
        # Only a verified vendor has a verification to suspend; activate gives it back.
        if target.verification is not None and target.verification.status == VerificationStatus.VERIFIED:
            changes["verification_status"] = VerificationStatus.SUSPENDED.value
            changes["verification_notes"] = why
            changes["store_status"] = "suspended"
        return _Plan(audit_action="USER_SUSPENDED", changes=changes)

    return _require_reason(reason, "suspension").map(plan)


def _activate(admin: Actor, target: User, reason: str | None) -> Result[_Plan, MarketError]:
    changes: dict[str, Any] = {"status": UserStatus.ACTIVE.value}
    if target.verification is not None and target.verification.status == VerificationStatus.SUSPENDED:
        changes["verification_status"] = VerificationStatus.VERIFIED.value
        changes["store_status"] = "active"
    return Ok(_Plan(audit_action="USER_ACTIVATED", changes=changes))


def _ban(admin: Actor, target: User, reason: str | None) -> Result[_Plan, MarketError]:
    return _require_reason(reason, "ban").map(lambda _: _Plan(
        audit_action="USER_BANNED",
        changes={"status": UserStatus.BANNED.value},
        severity=Severity.WARNING,
        revoke_sessions=True,
    ))


def _delete(admin: Actor, target: User, reason: str | None) -> Result[_Plan, MarketError]:
    if target.role == Role.MASTER_ADMIN:
        return Error(Errors.forbidden("CANNOT_DELETE_MASTER_ADMIN", "Cannot delete super admin account"))
    if target.id == admin.user_id:
        return Error(Errors.forbidden("CANNOT_DELETE_SELF", "Cannot delete your own account"))
    if target.role == Role.ADMIN and admin.role != Role.MASTER_ADMIN:
        return Error(Errors.forbidden("FORBIDDEN", "Only master admin can delete admin accounts"))
    return _require_reason(reason, "deletion").map(lambda _: _Plan(
        audit_action="USER_DELETED",
        changes={"is_deleted": True, "status": UserStatus.DELETED.value},
        revoke_sessions=True,
    ))


def _permanent_delete(admin: Actor, target: User, reason: str | None) -> Result[_Plan, MarketError]:
    if admin.role != Role.MASTER_ADMIN:
        return Error(Errors.forbidden("FORBIDDEN", "Only super admin can permanently delete users"))
    if target.role == Role.MASTER_ADMIN:
        return Error(Errors.forbidden("CANNOT_DELETE_MASTER_ADMIN", "Cannot permanently delete super admin account"))
    if target.id == admin.user_id:
        return Error(Errors.forbidden("CANNOT_DELETE_SELF", "Cannot delete your own account"))
    return Ok(_Plan(
        audit_action="USER_PERMANENTLY_DELETED",
        changes={"is_deleted": True, "status": UserStatus.DELETED.value},
        severity=Severity.WARNING,
        hard_delete=True,
    ))


def _restore(admin: Actor, target: User, reason: str | None) -> Result[_Plan, MarketError]:
    if not target.is_deleted:
        return Error(Errors.validation("USER_NOT_DELETED", "User is not deleted"))
    return Ok(_Plan(
        audit_action="USER_RESTORED",
        changes={"is_deleted": False, "status": UserStatus.ACTIVE.value},
    ))


PLANNERS: dict[str, _Planner] = {
    "approve_verification": _approve_verification,
    "reject_verification": _reject_verification,
    "suspend": _suspend,
    "activate": _activate,
    "ban": _ban,
    "delete": _delete,
    "permanent_delete": _permanent_delete,
    "restore": _restore,
}


def _state(user: User) -> dict[str, Any]:
    return {
        "status": user.status.value,
        "verificationStatus": user.verification.status.value if user.verification else None,
    }


def _jsonable(changes: dict[str, Any]) -> dict[str, Any]:
    return {k: v.isoformat() if hasattr(v, "isoformat") else v for k, v in changes.items()}


# ═══════════════════════════════════════════════════════════════════════════════
# Service
# ═══════════════════════════════════════════════════════════════════════════════


class UserAdmin:
    def __init__(self, users: UserStore, sessions: SessionStore, audit: AuditLog, policy: Policy) -> None:
        self._users = users
        self._sessions = sessions
        self._audit = audit
        self._policy = policy

    async def apply(
        self,
        actor: Actor | None,
        request: UserActionRequest,
        context: RequestContext = RequestContext(),
    ) -> Result[UserActionDone, MarketError]:
        match self._policy.authorize(actor, Action.MANAGE, Resource.USER):
            case Ok(admin):
                pass
            case Error(e):
                return Error(e)

        if not request.user_id or not request.action:
            return Error(Errors.validation("VALIDATION_ERROR", "userId and action are required"))

        planner = PLANNERS.get(request.action)
        if planner is None:
            return Error(Errors.validation("INVALID_ACTION", "Invalid action"))

        match await self._users.get(request.user_id):
            case Ok(None):
                return Error(Errors.not_found("USER_NOT_FOUND", "User not found"))
            case Ok(target):
                pass
            case Error(e):
                return Error(e)

        match planner(admin, target, request.reason):
            case Ok(plan):
                pass
            case Error(e):
                return Error(e)

        match await self._execute(target, plan):
            case Ok(after):
                pass
            case Error(e):
                return Error(e)

        log.info("admin %s applied %s to user %s", admin.user_id, request.action, target.id)
        details: dict[str, Any] = {"email": target.email}
        if request.reason:
            details["reason"] = request.reason
        await self._audit.emit(AuditEntry(
            action=plan.audit_action,
            category="vendor" if "verification" in request.action else "user",
            target_id=target.id,
            target_type="user",
            target_name=target.email,
            actor=admin,
            details=details,
            previous_value=_state(target),
            new_value=_jsonable(plan.changes),
            severity=plan.severity,
            context=context,
        ))
        return Ok(UserActionDone(
            user=after,
            action=request.action,
            message=f"User {request.action.replace('_', ' ', 1)} successfully",
        ))

    async def _execute(self, target: User, plan: _Plan) -> Result[User, MarketError]:
        if plan.hard_delete:
            match await self._users.delete(target.id):
                case Ok(_):
                    return Ok(replace(target, status=UserStatus.DELETED, is_deleted=True))
                case Error(e):
                    return Error(e)

        match await self._users.update(target.id, plan.changes):
            case Ok(None):
                return Error(Errors.not_found("USER_NOT_FOUND", "User not found"))
            case Ok(after):
                pass
            case Error(e):
                return Error(e)

        if plan.revoke_sessions:
            match await self._sessions.revoke_all(target.id):
                case Error(e):
                    log.error("sessions of user %s not revoked: %s", target.id, e.message)
                case Ok(count):
                    log.info("revoked %d sessions of user %s", count, target.id)
        return Ok(after)


__all__ = (
    "UserActionRequest",
    "UserActionDone",
    "PLANNERS",
    "UserAdmin",
)
