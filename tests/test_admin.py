import pytest

from bazaar.admin import PLANNERS, UserActionRequest
from bazaar.identity import Role, UserStatus, VerificationStatus
from tests.conftest import actor_for


@pytest.fixture
async def admin(market):
    return actor_for(await market.user("efua@example.com", "Efua Mensah", Role.ADMIN))


@pytest.fixture
async def master(market):
    return actor_for(await market.user("root@example.com", "Nana Agyei", Role.MASTER_ADMIN))


async def act(market, actor, user_id, action, reason=None):
    return await market.services.user_admin.apply(actor, UserActionRequest(user_id, action, reason))


def test_every_action_has_a_planner():
    assert set(PLANNERS) == {
        "approve_verification",
        "reject_verification",
        "suspend",
        "activate",
        "ban",
        "delete",
        "permanent_delete",
        "restore",
    }


async def test_approve_vendor(market, admin):
    vendor = await market.vendor("kwame@example.com", verified=False)

    done = (await act(market, admin, vendor.id, "approve_verification")).unwrap()

    assert done.user.verification.status == VerificationStatus.VERIFIED
    assert done.user.verification.verified_by == admin.user_id
    assert done.user.store_status == "active"
    assert done.message == "User approve verification successfully"
    [entry] = (await market.services.audit.query(action="VENDOR_VERIFICATION_APPROVED")).unwrap()
    assert entry.category == "vendor"
    assert entry.previous_value == {"status": "active", "verificationStatus": "pending"}
    assert entry.actor_id == admin.user_id


async def test_verification_actions_need_a_vendor(market, admin):
    buyer = await market.user("ama@example.com")
    error = (await act(market, admin, buyer.id, "approve_verification")).unwrap_err()
    assert error.code == "NOT_A_VENDOR"


async def test_reject_needs_reason(market, admin):
    vendor = await market.vendor("kwame@example.com", verified=False)

    assert (await act(market, admin, vendor.id, "reject_verification")).unwrap_err().code == "REASON_REQUIRED"
    done = (await act(market, admin, vendor.id, "reject_verification", "Blurry ID photo")).unwrap()

    assert done.user.verification.status == VerificationStatus.REJECTED
    assert done.user.verification.notes == "Blurry ID photo"


async def test_suspend_and_activate_round_trip_verification(market, admin):
    vendor = await market.vendor("kwame@example.com")

    suspended = (await act(market, admin, vendor.id, "suspend", "Chargebacks")).unwrap().user
    assert suspended.status == UserStatus.SUSPENDED
    assert suspended.verification.status == VerificationStatus.SUSPENDED
    assert suspended.store_status == "suspended"

    active = (await act(market, admin, vendor.id, "activate")).unwrap().user
    assert active.status == UserStatus.ACTIVE
    assert active.verification.status == VerificationStatus.VERIFIED


async def test_activate_never_promotes_an_unverified_vendor(market, admin):
    vendor = await market.vendor("kwame@example.com", verified=False)

    suspended = (await act(market, admin, vendor.id, "suspend", "Spam listings")).unwrap().user
    assert suspended.verification.status == VerificationStatus.PENDING

    active = (await act(market, admin, vendor.id, "activate")).unwrap().user
    assert active.verification.status == VerificationStatus.PENDING


async def test_ban_revokes_sessions(market, admin):
    buyer = await market.user("ama@example.com")
    issued = (await market.services.sessions.create(buyer.id)).unwrap()

    done = (await act(market, admin, buyer.id, "ban", "Fraud")).unwrap()

    assert done.user.status == UserStatus.BANNED
    assert (await market.services.sessions.validate(issued.token)).unwrap() is None


async def test_soft_delete_and_restore(market, admin):
    buyer = await market.user("ama@example.com")

    not_deleted = (await act(market, admin, buyer.id, "restore")).unwrap_err()
    assert not_deleted.code == "USER_NOT_DELETED"

    deleted = (await act(market, admin, buyer.id, "delete", "Requested by user")).unwrap().user
    assert deleted.is_deleted and deleted.status == UserStatus.DELETED

    restored = (await act(market, admin, buyer.id, "restore")).unwrap().user
    assert not restored.is_deleted and restored.status == UserStatus.ACTIVE


async def test_delete_protections(market, admin, master):
    other_admin = await market.user("yaw@example.com", "Yaw Darko", Role.ADMIN)

    codes = [
        (await act(market, admin, master.user_id, "delete", "x")).unwrap_err().code,
        (await act(market, admin, admin.user_id, "delete", "x")).unwrap_err().code,
        (await act(market, admin, other_admin.id, "delete", "x")).unwrap_err().code,
    ]
    assert codes == ["CANNOT_DELETE_MASTER_ADMIN", "CANNOT_DELETE_SELF", "FORBIDDEN"]

    assert (await act(market, master, other_admin.id, "delete", "Left the team")).unwrap().user.is_deleted


async def test_permanent_delete_is_master_only(market, admin, master):
    buyer = await market.user("ama@example.com")

    denied = (await act(market, admin, buyer.id, "permanent_delete")).unwrap_err()
    assert denied.status_code == 403

    done = (await act(market, master, buyer.id, "permanent_delete")).unwrap()
    assert done.user.id == buyer.id
    assert (await market.services.users.get(buyer.id)).unwrap() is None
    [entry] = (await market.services.audit.query(action="USER_PERMANENTLY_DELETED")).unwrap()
    assert entry.target_id == buyer.id


async def test_request_checks(market, admin):
    buyer = await market.user("ama@example.com")

    assert (await act(market, None, buyer.id, "ban", "x")).unwrap_err().status_code == 401
    assert (await act(market, actor_for(buyer), buyer.id, "ban", "x")).unwrap_err().status_code == 403
    assert (await act(market, admin, "", "ban", "x")).unwrap_err().code == "VALIDATION_ERROR"
    assert (await act(market, admin, buyer.id, "promote")).unwrap_err().code == "INVALID_ACTION"
    assert (await act(market, admin, "user_missing", "ban", "x")).unwrap_err().code == "USER_NOT_FOUND"
