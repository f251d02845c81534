"""
KYC — automated identity verification for vendors.

start_verification submits a job to the provider, retrying transient
failures; if the provider stays unavailable the vendor is queued for manual
review instead of failing. Results arrive later through the provider's
signed callback and are applied by apply_result.

Result codes:
    0810, 0820  verified
    1xxx        rejected
    other       under_review (needs a human)
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol

import combinators as C
from combinators import RetryPolicy
from combinators import lift as L
from kungfu import Error, Ok, Result

from bazaar._types import utcnow
from bazaar.audit import AuditEntry, AuditLog, RequestContext, Severity
from bazaar.errors import Errors, MarketError
from bazaar.identity import Actor, Role, User, UserStore, VerificationStatus
from bazaar.verification._gate import verification_status

log = logging.getLogger("bazaar.verification")

VERIFIED_CODES = frozenset({"0810", "0820"})
KYC_VERIFIER = "kyc_provider"
SIGNATURE_SUFFIX = "sid_request"


# ═══════════════════════════════════════════════════════════════════════════════
# Provider boundary
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class KycJob:
    job_id: str
    status: str = "submitted"


class KycProvider(Protocol):
    async def create_job(self, vendor: User) -> KycJob: ...


@dataclass(frozen=True, slots=True)
class KycResult:
    """A verification result delivered by the provider's callback."""

    result_code: str
    result_text: str
    user_id: str | None
    job_id: str | None = None
    actions: Mapping[str, str] = field(default_factory=dict)
    signature: str | None = None
    timestamp: str | None = None


@dataclass(frozen=True, slots=True)
class KycOutcome:
    user_id: str
    status: VerificationStatus


# ═══════════════════════════════════════════════════════════════════════════════
# Pure helpers
# ═══════════════════════════════════════════════════════════════════════════════


def status_for_result(result_code: str) -> VerificationStatus:
    if result_code in VERIFIED_CODES:
        return VerificationStatus.VERIFIED
    if result_code.startswith("1"):
        return VerificationStatus.REJECTED
    return VerificationStatus.UNDER_REVIEW


def notes_for_result(result: KycResult, status: VerificationStatus) -> str:
    match status:
        case VerificationStatus.VERIFIED:
            notes = "Identity verified via KYC provider"
        case VerificationStatus.REJECTED:
            notes = f"Verification failed: {result.result_text}"
        case _:
            notes = f"Requires manual review: {result.result_text}"

    checks = [
        f"{label}: {result.actions[key]}"
        for key, label in (("Document_Check", "Document"), ("Selfie_Check", "Selfie"), ("Liveness_Check", "Liveness"))
        if result.actions.get(key)
    ]
    return f"{notes} ({', '.join(checks)})" if checks else notes


def sign_callback(api_key: str, partner_id: str, timestamp: str) -> str:
    """base64(HMAC-SHA256(api_key, timestamp + partner_id + "sid_request"))"""
    digest = hmac.new(
        api_key.encode(),
        f"{timestamp}{partner_id}{SIGNATURE_SUFFIX}".encode(),
        hashlib.sha256,
    ).digest()
    return base64.b64encode(digest).decode()


def verify_callback_signature(api_key: str, partner_id: str, timestamp: str, signature: str) -> bool:
    return hmac.compare_digest(sign_callback(api_key, partner_id, timestamp), signature)


# ═══════════════════════════════════════════════════════════════════════════════
# Service
# ═══════════════════════════════════════════════════════════════════════════════


class KycService:
    """
    Example:
        kyc = KycService(users, audit, provider, partner_id="1234", api_key=key)
        vendor = (await kyc.start_verification(actor)).unwrap()
        outcome = (await kyc.apply_result(result)).unwrap()
    """

    def __init__(
        self,
        users: UserStore,
        audit: AuditLog,
        provider: KycProvider | None = None,
        *,
        partner_id: str | None = None,
        api_key: str | None = None,
        require_signature: bool = False,
        retry: RetryPolicy[MarketError] | None = None,
    ) -> None:
        self._users = users
        self._audit = audit
        self._provider = provider
        self._partner_id = partner_id
        self._api_key = api_key
        self._require_signature = require_signature
        self._retry = retry or RetryPolicy.fixed(times=3, delay_seconds=0.5)

    async def _vendor(self, user_id: str) -> Result[User, MarketError]:
        match await self._users.get(user_id):
            case Ok(User(role=Role.VENDOR) as vendor):
                return Ok(vendor)
            case Ok(_):
                return Error(Errors.not_found("VENDOR_NOT_FOUND", "Vendor not found"))
            case Error(e):
                return Error(e)

    def _manual_review(self, error: MarketError) -> KycJob | None:
        log.warning("KYC provider unavailable, falling back to manual review: %s", error.message)
        return None

    async def start_verification(
        self,
        actor: Actor,
        context: RequestContext = RequestContext(),
    ) -> Result[User, MarketError]:
        """Submit the calling vendor for verification. Never fails on provider outage."""
        match await self._vendor(actor.user_id):
            case Ok(vendor):
                pass
            case Error(e):
                return Error(e)

        if verification_status(vendor) == VerificationStatus.VERIFIED:
            return Error(Errors.conflict("ALREADY_VERIFIED", "Vendor is already verified"))

        job: KycJob | None = None
        if self._provider is not None:
            provider = self._provider
            attempt = C.retry(
                L.catching_async(
                    lambda: provider.create_job(vendor),
                    on_error=lambda e: Errors.upstream("KYC_UNAVAILABLE", f"KYC provider error: {e}", e),
                ),
                policy=self._retry,
            )
            match await C.recover_with(attempt, handler=self._manual_review):
                case Ok(KycJob() as submitted):
                    job = submitted
                case _:
                    job = None

        changes: dict[str, Any] = {"verification_status": VerificationStatus.UNDER_REVIEW.value}
        if job is not None:
            changes["kyc_job_id"] = job.job_id
            changes["verification_notes"] = f"KYC verification submitted (job {job.job_id})"
        else:
            changes["verification_notes"] = "Submitted for manual review"

        match await self._users.update(vendor.id, changes):
            case Ok(User() as updated):
                pass
            case Ok(None):
                return Error(Errors.not_found("VENDOR_NOT_FOUND", "Vendor not found"))
            case Error(e):
                return Error(e)

        await self._audit.emit(AuditEntry(
            action="VENDOR_VERIFICATION_SUBMITTED",
            category="vendor",
            target_id=vendor.id,
            target_type="vendor",
            target_name=vendor.email,
            actor=actor,
            details={"jobId": job.job_id if job else None, "manualReview": job is None},
            previous_value={"verificationStatus": verification_status(vendor).value},
            new_value={"verificationStatus": VerificationStatus.UNDER_REVIEW.value},
            context=context,
        ))
        return Ok(updated)

    def _check_signature(self, result: KycResult) -> Result[None, MarketError]:
        if not self._require_signature:
            return Ok(None)
        if not (result.signature and result.timestamp and self._api_key and self._partner_id):
            return Error(Errors.authentication("Missing signature", code="INVALID_SIGNATURE"))
        if not verify_callback_signature(self._api_key, self._partner_id, result.timestamp, result.signature):
            return Error(Errors.authentication("Invalid signature", code="INVALID_SIGNATURE"))
        return Ok(None)

    async def apply_result(self, result: KycResult) -> Result[KycOutcome, MarketError]:
        match self._check_signature(result):
            case Error(e):
                log.warning("rejected KYC callback for job %s: %s", result.job_id, e.message)
                return Error(e)
            case Ok(_):
                pass

        if not result.user_id:
            return Error(Errors.validation("MISSING_USER_ID", "Missing user ID"))

        match await self._vendor(result.user_id):
            case Ok(vendor):
                pass
            case Error(e):
                return Error(e)

        status = status_for_result(result.result_code)
        changes: dict[str, Any] = {
            "verification_status": status.value,
            "verification_notes": notes_for_result(result, status),
        }
        if result.job_id:
            changes["kyc_job_id"] = result.job_id
        if status == VerificationStatus.VERIFIED:
            changes["verified_at"] = utcnow()
            changes["verified_by"] = KYC_VERIFIER
            changes["store_status"] = "active"

        match await self._users.update(vendor.id, changes):
            case Ok(User()):
                pass
            case Ok(None):
                return Error(Errors.not_found("VENDOR_NOT_FOUND", "Vendor not found"))
            case Error(e):
                return Error(e)

        log.info("vendor %s verification updated to %s (job %s)", vendor.id, status, result.job_id)
        await self._audit.emit(AuditEntry(
            action="VENDOR_VERIFICATION_RESULT",
            category="vendor",
            target_id=vendor.id,
            target_type="vendor",
            target_name=vendor.email,
            details={"status": status.value, "resultCode": result.result_code, "resultText": result.result_text},
            previous_value={"verificationStatus": verification_status(vendor).value},
            new_value={"verificationStatus": status.value},
            severity=Severity.INFO if status == VerificationStatus.VERIFIED else Severity.WARNING,
        ))
        return Ok(KycOutcome(user_id=vendor.id, status=status))


__all__ = (
    "VERIFIED_CODES",
    "KYC_VERIFIER",
    "KycJob",
    "KycProvider",
    "KycResult",
    "KycOutcome",
    "status_for_result",
    "notes_for_result",
    "sign_callback",
    "verify_callback_signature",
    "KycService",
)
