import json
from dataclasses import replace

import httpx
import pytest

from bazaar.api import create_app
from bazaar.identity import GUEST_COOKIE, SESSION_COOKIE, GuestOwner, Role, User, VerificationStatus
from bazaar.payments import SIGNATURE_HEADER, sign_payload
from bazaar.services import Services
from tests.conftest import Market

SECRET = "sk_test_bazaar"

CHECKOUT = {
    "shippingAddress": {
        "fullName": "Ama Owusu",
        "phone": "0241234567",
        "address": "12 Oxford St",
        "city": "Accra",
        "region": "Greater Accra",
    },
    "paymentMethod": "mobile_money",
    "shippingFee": 1500,
}


@pytest.fixture
def api_settings(settings):
    return replace(settings, paystack_secret=SECRET)


@pytest.fixture
def app(api_settings, session_factory, gateway):
    return create_app(api_settings, session_factory, gateway=gateway)


@pytest.fixture
def market(app) -> Market:
    services: Services = app.state.services
    return Market(services)


@pytest.fixture
async def client(app):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


async def login(client: httpx.AsyncClient, market: Market, user: User) -> None:
    issued = (await market.services.sessions.create(user.id)).unwrap()
    client.cookies.set(SESSION_COOKIE, issued.token)


def cart_item(product, quantity: int = 1) -> dict:
    return {
        "productId": product.id,
        "vendorId": product.vendor_id,
        "name": product.name,
        "price": product.price,
        "quantity": quantity,
    }


# ═══════════════════════════════════════════════════════════════════════════════
# Cart
# ═══════════════════════════════════════════════════════════════════════════════


async def test_first_visit_mints_guest_cookie(client):
    response = await client.get("/api/cart")

    assert response.status_code == 200
    assert response.headers["cache-control"] == "no-cache, no-store, must-revalidate"
    body = response.json()
    assert body["cart"]["ownerType"] == "guest"
    assert body["cart"]["items"] == []
    assert response.cookies.get(GUEST_COOKIE, "").startswith("guest")


async def test_guest_cookie_is_reused(client):
    first = await client.get("/api/cart")
    second = await client.get("/api/cart")

    assert first.json()["cart"]["id"] == second.json()["cart"]["id"]
    assert GUEST_COOKIE not in second.cookies


async def test_cart_actions(client, market):
    vendor = await market.vendor("kwame@example.com")
    scarf = await market.product(vendor)

    added = await client.post("/api/cart", json={"action": "add", "item": cart_item(scarf, 2)})
    assert added.status_code == 200
    cart = added.json()["cart"]
    assert cart["itemCount"] == 2
    assert cart["subtotal"] == 10000
    item_id = cart["items"][0]["id"]

    updated = await client.post("/api/cart", json={"action": "update", "itemId": item_id, "quantity": 3})
    assert updated.json()["cart"]["items"][0]["quantity"] == 3

    removed = await client.post("/api/cart", json={"action": "remove", "itemId": item_id})
    assert removed.json()["cart"]["items"] == []


async def test_guests_see_only_their_own_cart(app, market):
    vendor = await market.vendor("kwame@example.com")
    scarf = await market.product(vendor)
    transport = httpx.ASGITransport(app=app)

    async with (
        httpx.AsyncClient(transport=transport, base_url="http://test") as first,
        httpx.AsyncClient(transport=transport, base_url="http://test") as second,
    ):
        mine = (await first.get("/api/cart")).json()["cart"]
        await second.post("/api/cart", json={"action": "add", "item": cart_item(scarf, 3)})
        again = (await first.get("/api/cart")).json()["cart"]
        theirs = (await second.get("/api/cart")).json()["cart"]

    assert first.cookies[GUEST_COOKIE] != second.cookies[GUEST_COOKIE]
    assert again["id"] == mine["id"] != theirs["id"]
    assert again["items"] == []
    assert [i["quantity"] for i in theirs["items"]] == [3]


async def test_clearing_without_a_cart_stores_nothing(client, market):
    response = await client.delete("/api/cart")

    assert response.status_code == 200
    guest_id = response.cookies[GUEST_COOKIE]
    assert (await market.services.carts.delete_cart(GuestOwner(guest_id))).unwrap() is False


@pytest.mark.parametrize(
    ("payload", "code"),
    [
        ({"action": "add"}, "ITEM_REQUIRED"),
        ({"action": "remove"}, "ITEM_ID_REQUIRED"),
        ({"action": "update", "itemId": "x"}, "ITEM_ID_REQUIRED"),
        ({"action": "juggle"}, "INVALID_ACTION"),
    ],
)
async def test_cart_action_errors(client, payload, code):
    response = await client.post("/api/cart", json=payload)

    assert response.status_code == 400
    assert response.json()["code"] == code


async def test_malformed_body_is_a_validation_error(client):
    response = await client.post("/api/cart", json={"item": {"productId": "p"}})

    assert response.status_code == 400
    body = response.json()
    assert body["code"] == "VALIDATION_ERROR"
    assert any(e["field"] == "action" for e in body["errors"])


async def test_merge_requires_login(client):
    response = await client.post("/api/cart/merge")

    assert response.status_code == 401


async def test_merge_folds_guest_cart_and_sets_ui_cookies(client, market):
    vendor = await market.vendor("kwame@example.com")
    scarf = await market.product(vendor)
    buyer = await market.user("ama@example.com")

    await client.post("/api/cart", json={"action": "add", "item": cart_item(scarf, 2)})
    await login(client, market, buyer)
    response = await client.post("/api/cart/merge")

    assert response.status_code == 200
    body = response.json()
    assert body["merged"] is True
    assert body["addedItems"] == 1
    assert body["cart"]["ownerType"] == "user"
    assert body["cart"]["itemCount"] == 2
    assert response.cookies.get("user_role") == "buyer"
    assert response.cookies.get("is_authenticated") == "true"


async def test_merge_without_guest_cookie(client, market):
    buyer = await market.user("ama@example.com")
    await login(client, market, buyer)

    response = await client.post("/api/cart/merge")

    assert response.json() == {"success": True, "message": "No guest cart to merge", "merged": False}


# ═══════════════════════════════════════════════════════════════════════════════
# Orders
# ═══════════════════════════════════════════════════════════════════════════════


async def place(client, market) -> tuple[User, dict]:
    vendor = await market.vendor("kwame@example.com")
    scarf = await market.product(vendor)
    buyer = await market.user("ama@example.com")
    await login(client, market, buyer)
    await client.post("/api/cart", json={"action": "add", "item": cart_item(scarf, 2)})
    response = await client.post("/api/orders", json=CHECKOUT)
    assert response.status_code == 201
    return vendor, response.json()


async def test_place_order(client, market):
    _, body = await place(client, market)

    assert body["success"] is True
    assert body["cartCleared"] is True
    order = body["order"]
    assert order["status"] == "pending_payment"
    assert order["total"] == 11500
    assert order["shippingAddress"]["phone"] == "+233241234567"
    assert body["payment"]["reference"] == "REF_1"
    assert body["payment"]["amount"] == 11500

    cart = await client.get("/api/cart")
    assert cart.json()["cart"]["items"] == []


async def test_anonymous_checkout_is_rejected(client):
    response = await client.post("/api/orders", json=CHECKOUT)

    assert response.status_code == 401
    assert response.json()["code"] == "AUTHENTICATION_REQUIRED"


async def test_read_and_list_orders(client, market):
    _, body = await place(client, market)
    order_id = body["order"]["id"]

    listed = await client.get("/api/orders")
    fetched = await client.get(f"/api/orders/{order_id}")

    assert [o["id"] for o in listed.json()["orders"]] == [order_id]
    assert fetched.json()["order"]["id"] == order_id
    assert (await client.get("/api/orders/missing")).status_code == 404


async def test_unknown_status_is_rejected(client, market):
    _, body = await place(client, market)
    admin = await market.user("efua@example.com", "Efua Mensah", Role.ADMIN)
    await login(client, market, admin)

    response = await client.put(f"/api/orders/{body['order']['id']}", json={"status": "teleported"})

    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_STATUS"


async def test_admin_cancels_once(client, market):
    _, body = await place(client, market)
    order_id = body["order"]["id"]
    admin = await market.user("efua@example.com", "Efua Mensah", Role.ADMIN)
    await login(client, market, admin)

    first = await client.delete(f"/api/orders/{order_id}")
    second = await client.delete(f"/api/orders/{order_id}")

    assert first.status_code == 200
    assert first.json()["restoredItems"] == 1
    assert first.json()["order"]["status"] == "cancelled"
    assert second.status_code == 409
    assert second.json()["code"] == "ORDER_ALREADY_CANCELLED"


async def test_vendor_fulfils_line(client, market):
    vendor, body = await place(client, market)
    order_id = body["order"]["id"]
    item_id = body["order"]["items"][0]["id"]
    await login(client, market, vendor)

    view = await client.get(f"/api/orders/{order_id}")
    assert view.json()["order"]["items"][0]["actionable"] is True

    first = await client.patch(f"/api/orders/{order_id}", json={"action": "fulfill", "itemId": item_id})
    second = await client.patch(f"/api/orders/{order_id}", json={"action": "fulfill", "itemId": item_id})

    assert first.status_code == 200
    assert first.json()["item"]["fulfillmentStatus"] == "fulfilled"
    assert second.status_code == 409
    assert second.json()["code"] == "ITEM_ALREADY_FULFILLED"


async def test_fulfil_requires_action_and_item(client, market):
    vendor, body = await place(client, market)
    await login(client, market, vendor)
    order_id = body["order"]["id"]

    wrong = await client.patch(f"/api/orders/{order_id}", json={"action": "ship"})
    missing = await client.patch(f"/api/orders/{order_id}", json={"action": "fulfill"})

    assert wrong.json()["code"] == "INVALID_ACTION"
    assert missing.json()["code"] == "ITEM_ID_REQUIRED"


async def test_payment_outage_is_a_bad_gateway(client, market, gateway):
    gateway.failures = 10
    vendor = await market.vendor("kwame@example.com")
    scarf = await market.product(vendor)
    buyer = await market.user("ama@example.com")
    await login(client, market, buyer)
    await client.post("/api/cart", json={"action": "add", "item": cart_item(scarf)})

    response = await client.post("/api/orders", json=CHECKOUT)

    assert response.status_code == 502
    assert response.json()["code"] == "PAYMENT_UNAVAILABLE"
    assert await market.stock(scarf) == 10


# ═══════════════════════════════════════════════════════════════════════════════
# Webhooks
# ═══════════════════════════════════════════════════════════════════════════════


async def test_payment_webhook(client, market):
    _, body = await place(client, market)
    order = body["order"]
    raw = json.dumps({
        "event": "charge.success",
        "data": {
            "reference": body["payment"]["reference"],
            "amount": order["total"],
            "currency": "GHS",
            "channel": "mobile_money",
            "metadata": {"orderId": order["id"]},
        },
    }).encode()

    rejected = await client.post("/api/webhooks/payment", content=raw, headers={SIGNATURE_HEADER: "nope"})
    accepted = await client.post(
        "/api/webhooks/payment", content=raw, headers={SIGNATURE_HEADER: sign_payload(SECRET, raw)}
    )

    assert rejected.status_code == 401
    assert rejected.json()["code"] == "INVALID_SIGNATURE"
    assert accepted.status_code == 200
    assert accepted.json() == {"received": True, "event": "charge.success", "handled": True, "outcome": "recorded"}

    fetched = await client.get(f"/api/orders/{order['id']}")
    assert fetched.json()["order"]["paymentStatus"] == "paid"
    assert fetched.json()["order"]["status"] == "processing"


async def test_unconfigured_payment_webhook_in_production(settings, session_factory):
    app = create_app(replace(settings, env="production"), session_factory)
    market = Market(app.state.services)
    vendor = await market.vendor("kwame@example.com")
    scarf = await market.product(vendor)
    order = await market.order(await market.user("ama@example.com"), (scarf, 1))
    raw = json.dumps({
        "event": "charge.success",
        "data": {"reference": "REF_FORGED", "amount": order.total, "metadata": {"orderId": order.id}},
    }).encode()

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.post("/api/webhooks/payment", content=raw)

    assert response.status_code == 503
    assert response.json()["code"] == "PAYMENT_NOT_CONFIGURED"
    assert (await market.services.orders.get(order.id)).unwrap().payment_status.value == "pending"


async def test_kyc_webhook(client, market):
    vendor = await market.vendor("kwame@example.com", verified=False)
    await login(client, market, vendor)
    submitted = await client.post("/api/vendors/verify")
    assert submitted.json()["vendor"]["verificationStatus"] == VerificationStatus.UNDER_REVIEW.value

    response = await client.post("/api/webhooks/kyc", json={
        "ResultCode": "0810",
        "ResultText": "Enroll User",
        "SmileJobID": "job_1",
        "PartnerParams": {"user_id": vendor.id},
    })

    assert response.json() == {"success": True, "userId": vendor.id, "status": "verified"}
    state = await client.get("/api/vendors/verify")
    assert state.json()["vendor"]["storeStatus"] == "active"


async def test_kyc_webhook_rejects_garbage(client):
    response = await client.post("/api/webhooks/kyc", content=b"not json")

    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_PAYLOAD"


# ═══════════════════════════════════════════════════════════════════════════════
# Catalogue + admin
# ═══════════════════════════════════════════════════════════════════════════════


async def test_unverified_vendor_product_is_saved_as_draft(client, market):
    vendor = await market.vendor("kwame@example.com", verified=False)
    await login(client, market, vendor)

    response = await client.post("/api/products", json={"name": "Kente Scarf", "price": 5000, "status": "active"})

    assert response.status_code == 201
    assert response.json()["product"]["status"] == "draft"
    mine = await client.get("/api/products", params={"mine": "true"})
    assert [p["name"] for p in mine.json()["products"]] == ["Kente Scarf"]
    assert (await client.get("/api/products")).json()["products"] == []


async def test_admin_user_action(client, market):
    vendor = await market.vendor("kwame@example.com", verified=False)
    admin = await market.user("efua@example.com", "Efua Mensah", Role.ADMIN)
    await login(client, market, admin)

    response = await client.patch("/api/admin/users", json={"userId": vendor.id, "action": "approve_verification"})

    assert response.status_code == 200
    assert response.json()["user"]["verificationStatus"] == "verified"


async def test_unhandled_error_renders_500(app, market, monkeypatch):
    async def explode(actor):
        raise RuntimeError("boom")

    buyer = await market.user("ama@example.com")
    monkeypatch.setattr(market.services.order_service, "browse", explode)
    transport = httpx.ASGITransport(app=app, raise_app_exceptions=False)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        await login(client, market, buyer)
        response = await client.get("/api/orders")

    assert response.status_code == 500
    assert response.json() == {"error": "Internal server error", "code": "INTERNAL_ERROR"}
