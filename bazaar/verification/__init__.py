"""
Verification — vendor gating and KYC.

    from bazaar import verification as VG

    match VG.gate_publish(actor.role, vendor, wants_active=True):
        case Ok(VG.PublishDecision(publish=False, coerced=True)):
            ...  # saved as draft, audit PRODUCT_PUBLISH_BLOCKED
"""

from bazaar.verification._gate import (
    PublishMode,
    PUBLISH_MODES,
    PublishDecision,
    verification_status,
    can_publish,
    gate_publish,
    gate_fulfillment,
)
from bazaar.verification._kyc import (
    VERIFIED_CODES,
    KYC_VERIFIER,
    KycJob,
    KycProvider,
    KycResult,
    KycOutcome,
    status_for_result,
    notes_for_result,
    sign_callback,
    verify_callback_signature,
    KycService,
)

__all__ = (
    "PublishMode",
    "PUBLISH_MODES",
    "PublishDecision",
    "verification_status",
    "can_publish",
    "gate_publish",
    "gate_fulfillment",
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
