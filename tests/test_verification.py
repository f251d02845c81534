import pytest
from combinators import RetryPolicy

from bazaar.identity import Role, UserStatus, VerificationStatus
from bazaar.products import NewProduct, ProductStatus
from bazaar.verification import (
    KYC_VERIFIER,
    KycJob,
    KycResult,
    KycService,
    gate_fulfillment,
    gate_publish,
    notes_for_result,
    sign_callback,
    status_for_result,
)
from tests.conftest import actor_for

SCARF = NewProduct(name="Kente Scarf", price=5000, quantity=3)


class FailingProvider:
    def __init__(self) -> None:
        self.calls = 0

    async def create_job(self, vendor) -> KycJob:
        self.calls += 1
        raise TimeoutError("provider timed out")


class StaticProvider:
    async def create_job(self, vendor) -> KycJob:
        return KycJob(job_id=f"job_{vendor.id}")


def kyc_service(services, provider=None, **kwargs) -> KycService:
    return KycService(
        services.users,
        services.audit,
        provider,
        retry=RetryPolicy.fixed(times=2, delay_seconds=0.01),
        **kwargs,
    )


# ═══════════════════════════════════════════════════════════════════════════════
# Publish gate
# ═══════════════════════════════════════════════════════════════════════════════


async def test_unverified_vendor_is_coerced_to_draft(market):
    vendor = await market.vendor("kwame@example.com", verified=False)

    created = (await market.services.catalogue.create(actor_for(vendor), SCARF)).unwrap()

    assert created.coerced
    assert created.product.status == ProductStatus.DRAFT
    assert "verified" in created.message
    [blocked] = (await market.services.audit.query(action="PRODUCT_PUBLISH_BLOCKED")).unwrap()
    assert blocked.target_id == vendor.id


async def test_admin_publishing_for_unverified_vendor_is_rejected(market):
    vendor = await market.vendor("kwame@example.com", verified=False)
    admin = await market.user("efua@example.com", "Efua Mensah", Role.ADMIN)
    request = NewProduct(name="Kente Scarf", price=5000, vendor_id=vendor.id)

    error = (await market.services.catalogue.create(actor_for(admin), request)).unwrap_err()

    assert (error.code, error.status_code) == ("VENDOR_NOT_VERIFIED", 403)
    assert error.details["verificationStatus"] == "pending"
    assert (await market.services.products.query(status=None, vendor_id=vendor.id)).unwrap() == []


async def test_admin_may_save_draft_for_unverified_vendor(market):
    vendor = await market.vendor("kwame@example.com", verified=False)
    admin = await market.user("efua@example.com", "Efua Mensah", Role.ADMIN)
    request = NewProduct(name="Kente Scarf", price=5000, vendor_id=vendor.id, status=ProductStatus.DRAFT)

    created = (await market.services.catalogue.create(actor_for(admin), request)).unwrap()

    assert created.product.status == ProductStatus.DRAFT
    assert not created.coerced
    assert [e.action for e in (await market.services.audit.query()).unwrap()] == ["ADMIN_PRODUCT_CREATED"]


async def test_verified_vendor_publishes(market):
    vendor = await market.vendor("kwame@example.com")
    created = (await market.services.catalogue.create(actor_for(vendor), SCARF)).unwrap()
    assert created.product.status == ProductStatus.ACTIVE
    assert not created.coerced


async def test_buyers_cannot_create_products(market):
    buyer = await market.user("ama@example.com")
    error = (await market.services.catalogue.create(actor_for(buyer), SCARF)).unwrap_err()
    assert error.status_code == 403


async def test_admin_must_name_a_vendor(market):
    admin = await market.user("efua@example.com", "Efua Mensah", Role.ADMIN)
    error = (await market.services.catalogue.create(actor_for(admin), SCARF)).unwrap_err()
    assert error.code == "VENDOR_ID_REQUIRED"


async def test_browse_shows_own_drafts_only_to_the_vendor(market):
    vendor = await market.vendor("kwame@example.com", verified=False)
    await market.services.catalogue.create(actor_for(vendor), SCARF)

    assert (await market.services.catalogue.browse(None)).unwrap() == []
    mine = (await market.services.catalogue.browse(actor_for(vendor), mine=True)).unwrap()
    assert [p.status for p in mine] == [ProductStatus.DRAFT]


async def test_gate_table_for_other_roles(market):
    vendor = await market.vendor("kwame@example.com", verified=False)
    error = gate_publish(Role.BUYER, vendor, wants_active=True).unwrap_err()
    assert error.code == "FORBIDDEN"
    assert gate_publish(Role.BUYER, vendor, wants_active=False).unwrap().publish is False


async def test_fulfilment_gate(market):
    vendor = await market.vendor("kwame@example.com")
    assert gate_fulfillment(vendor)
    suspended = (await market.services.users.update(vendor.id, {"status": UserStatus.SUSPENDED.value})).unwrap()
    assert gate_fulfillment(suspended).unwrap_err().code == "VENDOR_SUSPENDED"


# ═══════════════════════════════════════════════════════════════════════════════
# KYC
# ═══════════════════════════════════════════════════════════════════════════════


@pytest.mark.parametrize(("code", "status"), [
    ("0810", VerificationStatus.VERIFIED),
    ("0820", VerificationStatus.VERIFIED),
    ("1012", VerificationStatus.REJECTED),
    ("0814", VerificationStatus.UNDER_REVIEW),
])
def test_result_codes(code, status):
    assert status_for_result(code) == status


def test_notes_list_the_checks():
    result = KycResult("1012", "Document expired", "user_1", actions={"Document_Check": "Failed", "Selfie_Check": ""})
    notes = notes_for_result(result, VerificationStatus.REJECTED)
    assert notes == "Verification failed: Document expired (Document: Failed)"


async def test_start_verification_submits_job(market):
    vendor = await market.vendor("kwame@example.com", verified=False)
    kyc = kyc_service(market.services, StaticProvider())

    updated = (await kyc.start_verification(actor_for(vendor))).unwrap()

    assert updated.verification.status == VerificationStatus.UNDER_REVIEW
    assert updated.verification.kyc_job_id == f"job_{vendor.id}"


async def test_provider_outage_falls_back_to_manual_review(market):
    vendor = await market.vendor("kwame@example.com", verified=False)
    provider = FailingProvider()
    kyc = kyc_service(market.services, provider)

    updated = (await kyc.start_verification(actor_for(vendor))).unwrap()

    assert provider.calls == 2
    assert updated.verification.status == VerificationStatus.UNDER_REVIEW
    assert updated.verification.notes == "Submitted for manual review"
    [entry] = (await market.services.audit.query(action="VENDOR_VERIFICATION_SUBMITTED")).unwrap()
    assert entry.details["manualReview"] is True


async def test_verified_vendor_cannot_resubmit(market):
    vendor = await market.vendor("kwame@example.com")
    error = (await market.services.kyc.start_verification(actor_for(vendor))).unwrap_err()
    assert error.code == "ALREADY_VERIFIED"


async def test_apply_verified_result_activates_store(market):
    vendor = await market.vendor("kwame@example.com", verified=False)

    outcome = (await market.services.kyc.apply_result(
        KycResult("0810", "Enroll User", vendor.id, job_id="job_9")
    )).unwrap()

    assert outcome.status == VerificationStatus.VERIFIED
    stored = (await market.services.users.get(vendor.id)).unwrap()
    assert stored.store_status == "active"
    assert stored.verification.verified_by == KYC_VERIFIER
    assert stored.verification.kyc_job_id == "job_9"


async def test_apply_rejected_result(market):
    vendor = await market.vendor("kwame@example.com", verified=False)
    outcome = (await market.services.kyc.apply_result(KycResult("1020", "Face mismatch", vendor.id))).unwrap()
    assert outcome.status == VerificationStatus.REJECTED
    stored = (await market.services.users.get(vendor.id)).unwrap()
    assert stored.store_status == "pending"


async def test_result_for_non_vendor(market):
    buyer = await market.user("ama@example.com")
    error = (await market.services.kyc.apply_result(KycResult("0810", "ok", buyer.id))).unwrap_err()
    assert error.code == "VENDOR_NOT_FOUND"
    missing = (await market.services.kyc.apply_result(KycResult("0810", "ok", None))).unwrap_err()
    assert missing.code == "MISSING_USER_ID"


async def test_signed_callbacks(market):
    vendor = await market.vendor("kwame@example.com", verified=False)
    kyc = kyc_service(market.services, partner_id="1234", api_key="kyc-key", require_signature=True)
    timestamp = "2026-03-01T10:00:00Z"

    unsigned = (await kyc.apply_result(KycResult("0810", "ok", vendor.id))).unwrap_err()
    forged = (await kyc.apply_result(KycResult("0810", "ok", vendor.id, signature="AAAA", timestamp=timestamp))).unwrap_err()
    signed = KycResult("0810", "ok", vendor.id, signature=sign_callback("kyc-key", "1234", timestamp), timestamp=timestamp)

    assert unsigned.status_code == forged.status_code == 401
    assert (await kyc.apply_result(signed)).unwrap().status == VerificationStatus.VERIFIED
