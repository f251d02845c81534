"""
Wire models — camelCase JSON in and out.

Request models convert with .to_domain(); response models are built with
.from_domain(...). Money stays in minor units on the wire.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from bazaar.admin import UserActionDone, UserActionRequest
from bazaar.cart import Cart, CartItem, NewCartItem
from bazaar.checkout import CheckoutRequest, Placement
from bazaar.identity import User
from bazaar.orders import (
    AdminUpdate,
    ItemView,
    OrderItem,
    OrderStatus,
    OrderView,
    PaymentStatus,
    ShippingAddress,
)
from bazaar.payments import PaymentInit
from bazaar.products import NewProduct, Product, ProductStatus
from bazaar.verification import KycResult


class Wire(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def dump(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


# ═══════════════════════════════════════════════════════════════════════════════
# Cart
# ═══════════════════════════════════════════════════════════════════════════════


class CartItemIn(Wire):
    product_id: str
    vendor_id: str
    name: str
    price: int
    quantity: int = 1
    max_quantity: int | None = None
    image: str | None = None

    def to_domain(self) -> NewCartItem:
        return NewCartItem(
            product_id=self.product_id,
            vendor_id=self.vendor_id,
            name=self.name,
            unit_price=self.price,
            quantity=self.quantity,
            max_quantity=self.max_quantity,
            image=self.image,
        )


class CartActionIn(Wire):
    action: str
    item: CartItemIn | None = None
    item_id: str | None = None
    quantity: int | None = None


class CartItemOut(Wire):
    id: str
    product_id: str
    vendor_id: str
    name: str
    price: int
    quantity: int
    max_quantity: int | None
    image: str | None

    @classmethod
    def from_domain(cls, item: CartItem) -> CartItemOut:
        return cls(
            id=item.id,
            product_id=item.product_id,
            vendor_id=item.vendor_id,
            name=item.name,
            price=item.unit_price,
            quantity=item.quantity,
            max_quantity=item.max_quantity,
            image=item.image,
        )


class CartOut(Wire):
    id: str
    owner_type: str
    items: list[CartItemOut]
    item_count: int
    subtotal: int

    @classmethod
    def from_domain(cls, cart: Cart) -> CartOut:
        return cls(
            id=cart.id,
            owner_type=cart.owner_type,
            items=[CartItemOut.from_domain(i) for i in cart.items],
            item_count=cart.item_count,
            subtotal=cart.subtotal,
        )


# ═══════════════════════════════════════════════════════════════════════════════
# Orders
# ═══════════════════════════════════════════════════════════════════════════════


class ShippingAddressIn(Wire):
    """Everything optional here; the checkout validators report what is missing."""

    full_name: str | None = None
    phone: str | None = None
    address: str | None = None
    city: str | None = None
    region: str | None = None

    def to_domain(self) -> ShippingAddress:
        return ShippingAddress(
            full_name=self.full_name or "",
            phone=self.phone or "",
            address=self.address or "",
            city=self.city or "",
            region=self.region or "",
        )


class PlaceOrderIn(Wire):
    shipping_address: ShippingAddressIn = Field(default_factory=ShippingAddressIn)
    payment_method: str | None = None
    shipping_fee: int = 0
    tax: int = 0
    discount_total: int = 0
    coupon_code: str | None = None

    def to_domain(self) -> CheckoutRequest:
        return CheckoutRequest(
            shipping_address=self.shipping_address.to_domain(),
            payment_method=self.payment_method,
            shipping_fee=self.shipping_fee,
            tax=self.tax,
            discount_total=self.discount_total,
            coupon_code=self.coupon_code,
        )


class AdminOrderUpdateIn(Wire):
    status: str | None = None
    payment_status: PaymentStatus | None = None
    tracking_number: str | None = None
    notes: str | None = None

    def to_domain(self, status: OrderStatus | None) -> AdminUpdate:
        return AdminUpdate(
            status=status,
            payment_status=self.payment_status,
            tracking_number=self.tracking_number,
            notes=self.notes,
        )


class OrderItemActionIn(Wire):
    action: str
    item_id: str | None = None


class OrderItemOut(Wire):
    id: str
    product_id: str
    product_name: str
    vendor_id: str
    vendor_name: str
    quantity: int
    unit_price: int
    line_total: int
    fulfillment_status: str
    fulfilled_at: datetime | None
    image: str | None
    actionable: bool = False

    @classmethod
    def from_domain(cls, item: OrderItem, actionable: bool = False) -> OrderItemOut:
        return cls(
            id=item.id,
            product_id=item.product_id,
            product_name=item.product_name,
            vendor_id=item.vendor_id,
            vendor_name=item.vendor_name,
            quantity=item.quantity,
            unit_price=item.unit_price,
            line_total=item.line_total,
            fulfillment_status=item.fulfillment_status.value,
            fulfilled_at=item.fulfilled_at,
            image=item.image,
            actionable=actionable,
        )

    @classmethod
    def from_view(cls, view: ItemView) -> OrderItemOut:
        return cls.from_domain(view.item, view.actionable)


class OrderOut(Wire):
    id: str
    buyer_id: str
    buyer_name: str
    buyer_email: str
    status: str
    payment_status: str
    items: list[OrderItemOut]
    subtotal: int
    discount_total: int
    shipping_fee: int
    tax: int
    total: int
    currency: str
    shipping_address: dict[str, Any]
    payment_method: str | None
    payment_reference: str | None
    paid_at: datetime | None
    tracking_number: str | None
    notes: str | None
    coupon_code: str | None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_domain(cls, view: OrderView) -> OrderOut:
        order = view.order
        return cls(
            id=order.id,
            buyer_id=order.buyer_id,
            buyer_name=order.buyer_name,
            buyer_email=order.buyer_email,
            status=order.status.value,
            payment_status=order.payment_status.value,
            items=[OrderItemOut.from_view(v) for v in view.items],
            subtotal=order.subtotal,
            discount_total=order.discount_total,
            shipping_fee=order.shipping_fee,
            tax=order.tax,
            total=order.total,
            currency=order.currency,
            shipping_address=order.shipping_address,
            payment_method=order.payment_method,
            payment_reference=order.payment_reference,
            paid_at=order.paid_at,
            tracking_number=order.tracking_number,
            notes=order.notes,
            coupon_code=order.coupon_code,
            created_at=order.created_at,
            updated_at=order.updated_at,
        )


class PaymentOut(Wire):
    order_id: str
    reference: str
    amount: int
    currency: str
    email: str

    @classmethod
    def from_domain(cls, init: PaymentInit) -> PaymentOut:
        return cls(
            order_id=init.order_id,
            reference=init.reference,
            amount=init.amount,
            currency=init.currency,
            email=init.email,
        )


class PlacementOut(Wire):
    success: bool = True
    order: OrderOut
    payment: PaymentOut
    cart_cleared: bool

    @classmethod
    def from_domain(cls, placement: Placement) -> PlacementOut:
        view = OrderView(placement.order, tuple(ItemView(i) for i in placement.order.items))
        return cls(
            order=OrderOut.from_domain(view),
            payment=PaymentOut.from_domain(placement.payment),
            cart_cleared=placement.cart_cleared,
        )


# ═══════════════════════════════════════════════════════════════════════════════
# Products
# ═══════════════════════════════════════════════════════════════════════════════


class ProductIn(Wire):
    name: str | None = None
    price: int | None = None
    vendor_id: str | None = None
    description: str | None = None
    compare_price: int | None = None
    quantity: int = 0
    track_quantity: bool = True
    status: ProductStatus | None = None
    category_attributes: dict[str, Any] = Field(default_factory=dict)
    image: str | None = None

    def to_domain(self) -> NewProduct:
        return NewProduct(
            name=self.name or "",
            price=self.price,  # type: ignore[arg-type]
            vendor_id=self.vendor_id,
            description=self.description,
            compare_price=self.compare_price,
            quantity=self.quantity,
            track_quantity=self.track_quantity,
            status=self.status,
            category_attributes=self.category_attributes,
            image=self.image,
        )


class ProductOut(Wire):
    id: str
    vendor_id: str
    name: str
    price: int
    compare_price: int | None
    quantity: int
    track_quantity: bool
    in_stock: bool
    status: str
    description: str | None
    category_attributes: dict[str, Any]
    is_featured: bool
    image: str | None
    created_at: datetime | None

    @classmethod
    def from_domain(cls, product: Product) -> ProductOut:
        return cls(
            id=product.id,
            vendor_id=product.vendor_id,
            name=product.name,
            price=product.price,
            compare_price=product.compare_price,
            quantity=product.quantity,
            track_quantity=product.track_quantity,
            in_stock=product.in_stock,
            status=product.status.value,
            description=product.description,
            category_attributes=product.category_attributes,
            is_featured=product.is_featured,
            image=product.image,
            created_at=product.created_at,
        )


# ═══════════════════════════════════════════════════════════════════════════════
# Users + Verification
# ═══════════════════════════════════════════════════════════════════════════════


class UserActionIn(Wire):
    user_id: str | None = None
    action: str | None = None
    reason: str | None = None

    def to_domain(self) -> UserActionRequest:
        return UserActionRequest(user_id=self.user_id or "", action=self.action or "", reason=self.reason)


class UserOut(Wire):
    id: str
    email: str
    name: str
    role: str
    status: str
    verification_status: str | None

    @classmethod
    def from_domain(cls, user: User) -> UserOut:
        return cls(
            id=user.id,
            email=user.email,
            name=user.name,
            role=user.role.value,
            status=user.status.value,
            verification_status=user.verification.status.value if user.verification else None,
        )


class UserActionOut(Wire):
    success: bool = True
    user: UserOut
    message: str

    @classmethod
    def from_domain(cls, done: UserActionDone) -> UserActionOut:
        return cls(user=UserOut.from_domain(done.user), message=done.message)


class VerificationOut(Wire):
    id: str
    business_name: str | None
    verification_status: str | None
    verification_notes: str | None
    verified_at: datetime | None
    store_status: str | None

    @classmethod
    def from_domain(cls, vendor: User) -> VerificationOut:
        record = vendor.verification
        return cls(
            id=vendor.id,
            business_name=vendor.business_name,
            verification_status=record.status.value if record else None,
            verification_notes=record.notes if record else None,
            verified_at=record.verified_at if record else None,
            store_status=vendor.store_status,
        )


def kyc_result_from_payload(payload: dict[str, Any]) -> KycResult:
    """The provider's callback body, PascalCase as it sends it."""
    partner = payload.get("PartnerParams")
    partner = partner if isinstance(partner, dict) else {}
    actions = payload.get("Actions")
    actions = actions if isinstance(actions, dict) else {}
    return KycResult(
        result_code=str(payload.get("ResultCode") or ""),
        result_text=str(payload.get("ResultText") or ""),
        user_id=partner.get("user_id") or None,
        job_id=payload.get("SmileJobID") or partner.get("job_id") or None,
        actions={str(k): str(v) for k, v in actions.items() if v},
        signature=payload.get("signature"),
        timestamp=payload.get("timestamp"),
    )


__all__ = (
    "Wire",
    "CartItemIn",
    "CartActionIn",
    "CartItemOut",
    "CartOut",
    "ShippingAddressIn",
    "PlaceOrderIn",
    "AdminOrderUpdateIn",
    "OrderItemActionIn",
    "OrderItemOut",
    "OrderOut",
    "PaymentOut",
    "PlacementOut",
    "ProductIn",
    "ProductOut",
    "UserActionIn",
    "UserOut",
    "UserActionOut",
    "VerificationOut",
    "kyc_result_from_payload",
)
