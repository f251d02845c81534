"""
Checkout graph.

    AddressNode ─────────────────────────┐
    CartNode ── PricedLinesNode ── DraftNode ── PlacedOrderNode
    TotalsNode ──────────────────────────┘

AddressNode and TotalsNode are pure; CartNode reads the buyer's cart while
they run. Any node that cannot continue raises MarketFailure.
"""

import logging

import combinators as C
from kungfu import Error, LazyCoroResult, Ok, Result

from bazaar import graph as G
from bazaar import saga as S
from bazaar.cart import Cart, CartItem
from bazaar.checkout._types import CheckoutDeps, CheckoutRequest
from bazaar.errors import Errors, MarketError, MarketFailure
from bazaar.identity import Actor, UserOwner
from bazaar.orders import Order, OrderDraft, OrderLine, ShippingAddress
from bazaar.payments import PaymentAttempt, PaymentInit
from bazaar.products import ProductStatus
from bazaar.validation import (
    collect_validation_errors,
    normalize_address,
    normalize_phone,
    validate_address,
    validate_city,
    validate_name,
    validate_phone,
    validate_region,
)

log = logging.getLogger("bazaar.checkout")

_PRICING_CONCURRENCY = 4


# ═══════════════════════════════════════════════════════════════════════════════
# Inputs
# ═══════════════════════════════════════════════════════════════════════════════


@G.node
class AddressNode:
    """Validated, normalised shipping address. Reports every bad field at once."""

    def __init__(self, data: ShippingAddress) -> None:
        self.data = data

    @classmethod
    async def __compose__(cls, request: CheckoutRequest) -> "AddressNode":
        raw = request.shipping_address
        report = collect_validation_errors([
            ("fullName", validate_name(raw.full_name, "Full name")),
            ("phone", validate_phone(raw.phone)),
            ("address", validate_address(raw.address)),
            ("city", validate_city(raw.city)),
            ("region", validate_region(raw.region)),
        ])
        if not report.valid:
            raise MarketFailure(report.to_error())
        return cls(ShippingAddress(
            full_name=raw.full_name.strip(),
            phone=normalize_phone(raw.phone),
            address=normalize_address(raw.address),
            city=raw.city.strip(),
            region=raw.region.strip(),
        ))


@G.node
class TotalsNode:
    """Fees and discount as submitted; all must be non-negative whole minor units."""

    def __init__(self, shipping_fee: int, tax: int, discount_total: int) -> None:
        self.shipping_fee = shipping_fee
        self.tax = tax
        self.discount_total = discount_total

    @classmethod
    async def __compose__(cls, request: CheckoutRequest) -> "TotalsNode":
        for field, value in (
            ("shippingFee", request.shipping_fee),
            ("tax", request.tax),
            ("discountTotal", request.discount_total),
        ):
            if not isinstance(value, int) or isinstance(value, bool) or value < 0:
                raise MarketFailure(Errors.validation(
                    "INVALID_AMOUNT", f"{field} must be a non-negative amount", field=field
                ))
        return cls(request.shipping_fee, request.tax, request.discount_total)


@G.node
class CartNode:
    """The buyer's own server-side cart. Empty is a 400."""

    def __init__(self, data: Cart) -> None:
        self.data = data

    @classmethod
    async def __compose__(cls, buyer: Actor, deps: CheckoutDeps) -> "CartNode":
        match await deps.carts.get_or_create(UserOwner(buyer.user_id)):
            case Ok(cart) if cart.is_empty:
                raise MarketFailure(Errors.validation("EMPTY_CART", "Cart is empty"))
            case Ok(cart):
                return cls(cart)
            case Error(e):
                raise MarketFailure(e)


# ═══════════════════════════════════════════════════════════════════════════════
# Pricing
# ═══════════════════════════════════════════════════════════════════════════════


async def _price_line(deps: CheckoutDeps, item: CartItem) -> Result[OrderLine, MarketError]:
    """Catalogue price and vendor name for one cart line."""
    match await deps.products.get(item.product_id):
        case Ok(product) if product is not None and product.status == ProductStatus.ACTIVE:
            pass
        case Ok(_):
            return Error(Errors.validation(
                "PRODUCT_UNAVAILABLE",
                f"{item.name} is no longer available",
                productId=item.product_id,
            ))
        case Error(e):
            return Error(e)

    match await deps.users.get(product.vendor_id):
        case Ok(vendor):
            vendor_name = vendor.display_name if vendor is not None else ""
        case Error(e):
            return Error(e)

    return Ok(OrderLine(
        product_id=product.id,
        product_name=product.name,
        vendor_id=product.vendor_id,
        vendor_name=vendor_name,
        quantity=item.quantity,
        unit_price=product.price,
        image=product.image or item.image,
    ))


@G.node
class PricedLinesNode:
    """Every cart line priced from the catalogue. One unavailable product fails the lot."""

    def __init__(self, lines: tuple[OrderLine, ...]) -> None:
        self.lines = lines

    @classmethod
    async def __compose__(cls, cart: CartNode, deps: CheckoutDeps) -> "PricedLinesNode":

        def price(item: CartItem) -> LazyCoroResult[OrderLine, MarketError]:
            return LazyCoroResult(lambda: _price_line(deps, item))

        result = await C.traverse_par(list(cart.data.items), price, concurrency=_PRICING_CONCURRENCY)()

        match result:
            case Ok(lines):
                return cls(tuple(lines))
            case Error(e):
                raise MarketFailure(e)


@G.node
class DraftNode:
    def __init__(self, data: OrderDraft) -> None:
        self.data = data

    @classmethod
    async def __compose__(
        cls,
        buyer: Actor,
        request: CheckoutRequest,
        deps: CheckoutDeps,
        address: AddressNode,
        lines: PricedLinesNode,
        totals: TotalsNode,
    ) -> "DraftNode":
        draft = OrderDraft(
            buyer=buyer,
            lines=lines.lines,
            shipping_address=address.data,
            payment_method=request.payment_method,
            shipping_fee=totals.shipping_fee,
            tax=totals.tax,
            discount_total=totals.discount_total,
            coupon_code=request.coupon_code,
            currency=deps.currency,
        )
        if draft.discount_total > draft.subtotal:
            raise MarketFailure(Errors.validation(
                "INVALID_DISCOUNT", "Discount cannot exceed the order subtotal", field="discountTotal"
            ))
        return cls(draft)


# ═══════════════════════════════════════════════════════════════════════════════
# Placement
# ═══════════════════════════════════════════════════════════════════════════════


@G.node
class PlacedOrderNode:
    """
    Saga: place order (takes stock) → start payment.

    If the payment attempt fails the order is cancelled and its stock given back.
    """

    def __init__(self, order: Order, payment: PaymentInit) -> None:
        self.order = order
        self.payment = payment

    @classmethod
    async def __compose__(cls, draft: DraftNode, deps: CheckoutDeps) -> "PlacedOrderNode":
        placement: S.Saga[PaymentAttempt, MarketError] = S.step(
            action=LazyCoroResult(lambda: deps.orders.place(draft.data)),
            compensate=lambda order: deps.orders.cancel_with_restore(order.id),
        ).then(lambda order: S.step(action=deps.payments.attempt(order)))

        match await S.run(placement):
            case Ok(result):
                attempt = result.value
                return cls(attempt.order, attempt.init)
            case Error(failure):
                if not failure.rollback_complete:
                    log.error("checkout rollback incomplete for buyer %s", draft.data.buyer.user_id)
                raise MarketFailure(failure.error)


__all__ = (
    "AddressNode",
    "TotalsNode",
    "CartNode",
    "PricedLinesNode",
    "DraftNode",
    "PlacedOrderNode",
)
