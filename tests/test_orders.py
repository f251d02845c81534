import asyncio

import pytest

from bazaar.errors import ErrorKind
from bazaar.identity import Role, UserStatus
from bazaar.orders import AdminUpdate, FulfillmentStatus, OrderDraft, OrderLine, OrderStatus, PaymentOutcome, PaymentStatus
from bazaar.orders import Trigger, can_transition, canonical_status, check_transition
from bazaar.services import Services
from tests.conftest import ADDRESS, Market, actor_for


async def paid(market, order):
    applied = (await market.services.orders.mark_paid(
        order.id, reference="REF_PAID", amount=order.total, provider="paystack"
    )).unwrap()
    assert applied.outcome == PaymentOutcome.RECORDED
    return applied.order


# ═══════════════════════════════════════════════════════════════════════════════
# State table
# ═══════════════════════════════════════════════════════════════════════════════


def test_only_payment_moves_pending_to_processing():
    assert can_transition(OrderStatus.PENDING_PAYMENT, OrderStatus.PROCESSING, Trigger.PAYMENT)
    assert not can_transition(OrderStatus.PENDING_PAYMENT, OrderStatus.PROCESSING, Trigger.ADMIN)


@pytest.mark.parametrize("terminal", [OrderStatus.CANCELLED, OrderStatus.DELIVERED])
def test_terminal_states_are_locked(terminal):
    error = check_transition(terminal, OrderStatus.PROCESSING, Trigger.ADMIN).unwrap_err()
    assert error.code == "ORDER_TERMINAL"


@pytest.mark.parametrize(("legacy", "canonical"), [
    ("pending", OrderStatus.PENDING_PAYMENT),
    ("confirmed", OrderStatus.PROCESSING),
    ("shipped", OrderStatus.PROCESSING),
    ("delivered", OrderStatus.DELIVERED),
])
def test_legacy_statuses_map_onto_canonical(legacy, canonical):
    assert canonical_status(legacy) == canonical


def test_unknown_status_raises():
    with pytest.raises(ValueError):
        canonical_status("teleported")


# ═══════════════════════════════════════════════════════════════════════════════
# Placement + cancellation
# ═══════════════════════════════════════════════════════════════════════════════


async def test_place_takes_stock_and_computes_total(market):
    vendor = await market.vendor("kwame@example.com")
    scarf = await market.product(vendor, quantity=10, price=5000)
    buyer = await market.user("ama@example.com")

    order = await market.order(buyer, (scarf, 3))

    assert order.status == OrderStatus.PENDING_PAYMENT
    assert order.payment_status == PaymentStatus.PENDING
    assert order.subtotal == order.total == 15000
    assert order.shipping_address["fullName"] == "Ama Owusu"
    assert await market.stock(scarf) == 7


async def test_place_is_all_or_nothing(market):
    vendor = await market.vendor("kwame@example.com")
    scarf = await market.product(vendor, quantity=10)
    butter = await market.product(vendor, name="Shea Butter", quantity=1)
    buyer = await market.user("ama@example.com")

    draft = OrderDraft(
        buyer=actor_for(buyer),
        lines=(
            OrderLine(scarf.id, scarf.name, vendor.id, "Kente House", 4, scarf.price),
            OrderLine(butter.id, butter.name, vendor.id, "Kente House", 2, butter.price),
        ),
        shipping_address=ADDRESS,
    )
    error = (await market.services.orders.place(draft)).unwrap_err()

    assert error.code == "INSUFFICIENT_STOCK"
    assert error.details["productId"] == butter.id
    assert await market.stock(scarf) == 10
    assert await market.stock(butter) == 1
    assert (await market.services.orders.list_for_buyer(buyer.id)).unwrap() == []


async def test_cancel_restores_stock_exactly_once(market):
    vendor = await market.vendor("kwame@example.com")
    scarf = await market.product(vendor, quantity=10)
    buyer = await market.user("ama@example.com")
    admin = actor_for(await market.user("efua@example.com", "Efua Mensah", Role.ADMIN))
    order = await market.order(buyer, (scarf, 4))

    report = (await market.services.order_service.cancel(admin, order.id)).unwrap()
    assert report.order.status == OrderStatus.CANCELLED
    assert report.order.inventory_released
    assert report.restored_count == 1
    assert await market.stock(scarf) == 10

    again = (await market.services.order_service.cancel(admin, order.id)).unwrap_err()
    assert again.code == "ORDER_ALREADY_CANCELLED"
    assert again.status_code == 409
    assert await market.stock(scarf) == 10

    actions = [e.action for e in (await market.services.audit.query(target_id=order.id)).unwrap()]
    assert sorted(actions) == ["ORDER_CANCELLED", "ORDER_CANCEL_REJECTED"]


async def test_only_admins_cancel(market):
    vendor = await market.vendor("kwame@example.com")
    scarf = await market.product(vendor)
    buyer = await market.user("ama@example.com")
    order = await market.order(buyer, (scarf, 1))

    denied = (await market.services.order_service.cancel(actor_for(buyer), order.id)).unwrap_err()
    assert denied.kind == ErrorKind.FORBIDDEN
    anonymous = (await market.services.order_service.cancel(None, order.id)).unwrap_err()
    assert anonymous.status_code == 401


async def test_fulfilled_order_cannot_be_cancelled(market):
    vendor = await market.vendor("kwame@example.com")
    scarf = await market.product(vendor, quantity=5)
    buyer = await market.user("ama@example.com")
    admin = actor_for(await market.user("efua@example.com", "Efua Mensah", Role.ADMIN))
    order = await paid(market, await market.order(buyer, (scarf, 2)))

    (await market.services.order_service.update(admin, order.id, AdminUpdate(status=OrderStatus.FULFILLED))).unwrap()
    error = (await market.services.order_service.cancel(admin, order.id)).unwrap_err()

    assert error.code == "ORDER_NOT_CANCELLABLE"
    assert await market.stock(scarf) == 3


# ═══════════════════════════════════════════════════════════════════════════════
# Fulfilment
# ═══════════════════════════════════════════════════════════════════════════════


async def test_vendor_fulfils_own_line_once(market):
    vendor = await market.vendor("kwame@example.com")
    scarf = await market.product(vendor)
    buyer = await market.user("ama@example.com")
    order = await market.order(buyer, (scarf, 1))
    item_id = order.items[0].id
    orders = market.services.order_service

    item = (await orders.fulfill(actor_for(vendor), order.id, item_id)).unwrap()
    assert item.fulfillment_status == FulfillmentStatus.FULFILLED
    assert item.fulfilled_at is not None

    again = (await orders.fulfill(actor_for(vendor), order.id, item_id)).unwrap_err()
    assert again.code == "ITEM_ALREADY_FULFILLED"


async def test_other_vendor_cannot_fulfil(market):
    kwame = await market.vendor("kwame@example.com")
    yaa = await market.vendor("yaa@example.com", business_name="Yaa Beads")
    scarf = await market.product(kwame)
    buyer = await market.user("ama@example.com")
    order = await market.order(buyer, (scarf, 1))

    error = (await market.services.order_service.fulfill(actor_for(yaa), order.id, order.items[0].id)).unwrap_err()
    assert error.code == "NOT_ITEM_OWNER"
    assert error.status_code == 403


async def test_cancelled_order_locks_fulfilment(market):
    vendor = await market.vendor("kwame@example.com")
    scarf = await market.product(vendor)
    buyer = await market.user("ama@example.com")
    admin = actor_for(await market.user("efua@example.com", "Efua Mensah", Role.ADMIN))
    order = await market.order(buyer, (scarf, 1))
    (await market.services.order_service.cancel(admin, order.id)).unwrap()

    error = (await market.services.order_service.fulfill(actor_for(vendor), order.id, order.items[0].id)).unwrap_err()
    assert error.code == "ORDER_CANCELLED"


async def test_suspended_vendor_cannot_fulfil(market):
    vendor = await market.vendor("kwame@example.com")
    scarf = await market.product(vendor)
    buyer = await market.user("ama@example.com")
    order = await market.order(buyer, (scarf, 1))
    (await market.services.users.update(vendor.id, {"status": UserStatus.SUSPENDED.value})).unwrap()

    error = (await market.services.order_service.fulfill(actor_for(vendor), order.id, order.items[0].id)).unwrap_err()
    assert error.code == "VENDOR_SUSPENDED"


async def test_concurrent_fulfils_succeed_once(settings, file_session_factory):
    market = Market(Services.build(settings, file_session_factory))
    vendor = await market.vendor("kwame@example.com")
    scarf = await market.product(vendor)
    buyer = await market.user("ama@example.com")
    order = await market.order(buyer, (scarf, 1))
    actor = actor_for(vendor)

    results = await asyncio.gather(*(
        market.services.order_service.fulfill(actor, order.id, order.items[0].id) for _ in range(4)
    ))

    assert len([r for r in results if r]) == 1
    assert {r.unwrap_err().code for r in results if not r} == {"ITEM_ALREADY_FULFILLED"}


async def test_concurrent_cancels_restore_once(settings, file_session_factory):
    market = Market(Services.build(settings, file_session_factory))
    vendor = await market.vendor("kwame@example.com")
    scarf = await market.product(vendor, quantity=6)
    buyer = await market.user("ama@example.com")
    admin = actor_for(await market.user("efua@example.com", "Efua Mensah", Role.ADMIN))
    order = await market.order(buyer, (scarf, 4))

    results = await asyncio.gather(*(market.services.order_service.cancel(admin, order.id) for _ in range(3)))

    assert len([r for r in results if r]) == 1
    assert await market.stock(scarf) == 6


# ═══════════════════════════════════════════════════════════════════════════════
# Admin updates + reads
# ═══════════════════════════════════════════════════════════════════════════════


async def test_admin_walks_the_happy_path(market):
    vendor = await market.vendor("kwame@example.com")
    scarf = await market.product(vendor)
    buyer = await market.user("ama@example.com")
    admin = actor_for(await market.user("efua@example.com", "Efua Mensah", Role.ADMIN))
    order = await paid(market, await market.order(buyer, (scarf, 1)))
    orders = market.services.order_service

    assert order.status == OrderStatus.PROCESSING
    shipped = (await orders.update(admin, order.id, AdminUpdate(tracking_number=" GH123 "))).unwrap()
    assert shipped.tracking_number == "GH123"
    done = (await orders.update(admin, order.id, AdminUpdate(status=OrderStatus.FULFILLED))).unwrap()
    assert done.status == OrderStatus.FULFILLED
    delivered = (await orders.update(admin, order.id, AdminUpdate(status=OrderStatus.DELIVERED))).unwrap()
    assert delivered.status == OrderStatus.DELIVERED

    locked = (await orders.update(admin, order.id, AdminUpdate(status=OrderStatus.PROCESSING))).unwrap_err()
    assert locked.code == "ORDER_TERMINAL"


async def test_admin_update_rules(market):
    vendor = await market.vendor("kwame@example.com")
    scarf = await market.product(vendor)
    buyer = await market.user("ama@example.com")
    admin = actor_for(await market.user("efua@example.com", "Efua Mensah", Role.ADMIN))
    order = await market.order(buyer, (scarf, 1))
    orders = market.services.order_service

    assert (await orders.update(admin, order.id, AdminUpdate())).unwrap_err().code == "NO_CHANGES"
    cancel = (await orders.update(admin, order.id, AdminUpdate(status=OrderStatus.CANCELLED))).unwrap_err()
    assert cancel.code == "USE_CANCEL"
    skip = (await orders.update(admin, order.id, AdminUpdate(status=OrderStatus.PROCESSING))).unwrap_err()
    assert skip.code == "INVALID_TRANSITION"
    buyer_try = (await orders.update(actor_for(buyer), order.id, AdminUpdate(notes="hi"))).unwrap_err()
    assert buyer_try.status_code == 403


async def test_read_scoping(market):
    kwame = await market.vendor("kwame@example.com")
    yaa = await market.vendor("yaa@example.com", business_name="Yaa Beads")
    scarf = await market.product(kwame)
    beads = await market.product(yaa, name="Glass Beads", price=1200)
    ama = await market.user("ama@example.com")
    kofi = await market.user("kofi@example.com", "Kofi Boateng")
    admin = actor_for(await market.user("efua@example.com", "Efua Mensah", Role.ADMIN))
    order = await market.order(ama, (scarf, 1), (beads, 2))
    orders = market.services.order_service

    assert (await orders.get(actor_for(ama), order.id)).unwrap().order.id == order.id
    hidden = (await orders.get(actor_for(kofi), order.id)).unwrap_err()
    assert hidden.code == "ORDER_NOT_FOUND"

    view = (await orders.get(actor_for(kwame), order.id)).unwrap()
    actionable = {v.item.vendor_id: v.actionable for v in view.items}
    assert actionable == {kwame.id: True, yaa.id: False}

    admin_view = (await orders.get(admin, order.id)).unwrap()
    assert not any(v.actionable for v in admin_view.items)

    assert [v.order.id for v in (await orders.browse(actor_for(yaa))).unwrap()] == [order.id]
    assert (await orders.browse(actor_for(kofi))).unwrap() == []


# ═══════════════════════════════════════════════════════════════════════════════
# Admin payment corrections
# ═══════════════════════════════════════════════════════════════════════════════


async def test_admin_marking_paid_moves_order_to_processing(market):
    vendor = await market.vendor("kwame@example.com")
    scarf = await market.product(vendor)
    buyer = await market.user("ama@example.com")
    admin = actor_for(await market.user("efua@example.com", "Efua Mensah", Role.ADMIN))
    order = await market.order(buyer, (scarf, 1))
    orders = market.services.order_service

    updated = (await orders.update(admin, order.id, AdminUpdate(payment_status=PaymentStatus.PAID))).unwrap()
    assert updated.payment_status == PaymentStatus.PAID
    assert updated.status == OrderStatus.PROCESSING
    assert updated.paid_at is not None

    late = (await market.services.orders.mark_paid(
        order.id, reference="REF_LATE", amount=order.total, provider="paystack"
    )).unwrap()
    assert late.outcome == PaymentOutcome.DUPLICATE_IGNORED
    assert late.order.status == OrderStatus.PROCESSING

    done = (await orders.update(admin, order.id, AdminUpdate(status=OrderStatus.FULFILLED))).unwrap()
    assert done.status == OrderStatus.FULFILLED


async def test_admin_marks_paid_and_fulfilled_together(market):
    vendor = await market.vendor("kwame@example.com")
    scarf = await market.product(vendor)
    buyer = await market.user("ama@example.com")
    admin = actor_for(await market.user("efua@example.com", "Efua Mensah", Role.ADMIN))
    order = await market.order(buyer, (scarf, 1))

    updated = (await market.services.order_service.update(
        admin, order.id, AdminUpdate(status=OrderStatus.FULFILLED, payment_status=PaymentStatus.PAID)
    )).unwrap()

    assert updated.status == OrderStatus.FULFILLED


async def test_admin_marking_failed_releases_stock_once(market):
    vendor = await market.vendor("kwame@example.com")
    scarf = await market.product(vendor, quantity=10)
    buyer = await market.user("ama@example.com")
    admin = actor_for(await market.user("efua@example.com", "Efua Mensah", Role.ADMIN))
    order = await market.order(buyer, (scarf, 3))
    orders = market.services.order_service
    assert await market.stock(scarf) == 7

    failed = (await orders.update(admin, order.id, AdminUpdate(payment_status=PaymentStatus.FAILED))).unwrap()
    assert failed.payment_status == PaymentStatus.FAILED
    assert failed.inventory_released
    assert await market.stock(scarf) == 10

    report = (await orders.cancel(admin, order.id)).unwrap()
    assert report.restored_count == 0
    assert await market.stock(scarf) == 10


async def test_admin_marking_paid_after_failure_takes_stock_again(market):
    vendor = await market.vendor("kwame@example.com")
    scarf = await market.product(vendor, quantity=10)
    buyer = await market.user("ama@example.com")
    admin = actor_for(await market.user("efua@example.com", "Efua Mensah", Role.ADMIN))
    order = await market.order(buyer, (scarf, 3))
    orders = market.services.order_service

    (await orders.update(admin, order.id, AdminUpdate(payment_status=PaymentStatus.FAILED))).unwrap()
    paid_now = (await orders.update(admin, order.id, AdminUpdate(payment_status=PaymentStatus.PAID))).unwrap()

    assert paid_now.status == OrderStatus.PROCESSING
    assert not paid_now.inventory_released
    assert await market.stock(scarf) == 7


@pytest.mark.parametrize("downgrade", [PaymentStatus.PENDING, PaymentStatus.FAILED])
async def test_paid_order_payment_status_is_locked(market, downgrade):
    vendor = await market.vendor("kwame@example.com")
    scarf = await market.product(vendor, quantity=10)
    buyer = await market.user("ama@example.com")
    admin = actor_for(await market.user("efua@example.com", "Efua Mensah", Role.ADMIN))
    order = await paid(market, await market.order(buyer, (scarf, 2)))

    error = (await market.services.order_service.update(
        admin, order.id, AdminUpdate(payment_status=downgrade)
    )).unwrap_err()

    assert error.code == "ORDER_ALREADY_PAID"
    assert error.status_code == 409
    assert await market.stock(scarf) == 8


# ═══════════════════════════════════════════════════════════════════════════════
# Derived completion
# ═══════════════════════════════════════════════════════════════════════════════


async def test_order_completes_when_last_line_is_fulfilled(market):
    kwame = await market.vendor("kwame@example.com")
    yaa = await market.vendor("yaa@example.com", business_name="Yaa Beads")
    scarf = await market.product(kwame)
    beads = await market.product(yaa, name="Glass Beads", price=1200)
    buyer = await market.user("ama@example.com")
    order = await paid(market, await market.order(buyer, (scarf, 1), (beads, 2)))
    orders = market.services.order_service
    lines = {item.vendor_id: item.id for item in order.items}

    (await orders.fulfill(actor_for(kwame), order.id, lines[kwame.id])).unwrap()
    halfway = (await market.services.orders.get(order.id)).unwrap()
    assert halfway.status == OrderStatus.PROCESSING

    (await orders.fulfill(actor_for(yaa), order.id, lines[yaa.id])).unwrap()
    complete = (await market.services.orders.get(order.id)).unwrap()
    assert complete.status == OrderStatus.FULFILLED


async def test_unpaid_order_is_not_completed_by_fulfilment(market):
    vendor = await market.vendor("kwame@example.com")
    scarf = await market.product(vendor)
    buyer = await market.user("ama@example.com")
    order = await market.order(buyer, (scarf, 1))

    (await market.services.order_service.fulfill(actor_for(vendor), order.id, order.items[0].id)).unwrap()

    assert (await market.services.orders.get(order.id)).unwrap().status == OrderStatus.PENDING_PAYMENT
