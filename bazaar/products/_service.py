"""
Product service — creation through the verification gate.

    created = (await products.create(actor, NewProduct(name="Kente stole", price=25000))).unwrap()
    created.product.status   # draft if the vendor is not verified yet
    created.coerced          # True when an active request was downgraded
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from kungfu import Error, Ok, Result

from bazaar.audit import AuditEntry, AuditLog, RequestContext, Severity
from bazaar.errors import Errors, MarketError
from bazaar.identity import Actor, Role, User, UserStore
from bazaar.policy import Action, Policy, Resource
from bazaar.products._store import ProductStore
from bazaar.products._types import NewProduct, Product, ProductStatus
from bazaar.validation import (
    collect_validation_errors,
    validate_product_name,
    validate_text_field,
    ValidationResult,
)
from bazaar.verification import gate_publish, verification_status

log = logging.getLogger("bazaar.products")

DRAFT_MESSAGE = "Product saved as draft. Your store must be verified before products can be published."


@dataclass(frozen=True, slots=True)
class ProductCreated:
    product: Product
    coerced: bool
    message: str


def _amount(value: int | None, field: str, *, required: bool, positive: bool) -> ValidationResult:
    if value is None:
        if required:
            return ValidationResult.fail("REQUIRED_FIELD", "Name and price are required")
        return ValidationResult.ok()
    if isinstance(value, bool) or not isinstance(value, int) or value < 0 or (positive and value == 0):
        return ValidationResult.fail("INVALID_AMOUNT", f"{field} must be a valid amount")
    return ValidationResult.ok()


def _validate(product: NewProduct) -> Result[NewProduct, MarketError]:
    report = collect_validation_errors([
        ("name", validate_product_name(product.name)),
        ("price", _amount(product.price, "Price", required=True, positive=True)),
        ("comparePrice", _amount(product.compare_price, "Compare price", required=False, positive=False)),
        ("quantity", _amount(product.quantity, "Quantity", required=True, positive=False)),
        ("description", validate_text_field(product.description, "Description", max_length=5000)),
    ])
    if not report.valid:
        return Error(report.to_error())
    return Ok(product)


class ProductService:
    def __init__(self, products: ProductStore, users: UserStore, audit: AuditLog, policy: Policy) -> None:
        self._products = products
        self._users = users
        self._audit = audit
        self._policy = policy

    async def _target_vendor(self, actor: Actor, product: NewProduct) -> Result[User, MarketError]:
        """The caller for vendors; the named vendor for admins."""
        if actor.role.is_admin:
            if not product.vendor_id:
                return Error(Errors.validation(
                    "VENDOR_ID_REQUIRED", "Admin must specify vendorId when creating products"
                ))
            vendor_id = product.vendor_id
        else:
            vendor_id = actor.user_id

        match await self._users.get(vendor_id):
            case Ok(None):
                return Error(Errors.not_found("VENDOR_NOT_FOUND", "Vendor not found"))
            case Ok(User(role=Role.VENDOR) as vendor):
                return Ok(vendor)
            case Ok(_):
                return Error(Errors.validation("NOT_A_VENDOR", "Target user is not a vendor"))
            case Error(e):
                return Error(e)

    async def create(
        self,
        actor: Actor | None,
        product: NewProduct,
        context: RequestContext = RequestContext(),
    ) -> Result[ProductCreated, MarketError]:
        match self._policy.authorize(actor, Action.CREATE, Resource.PRODUCT):
            case Ok(caller):
                pass
            case Error(e):
                return Error(e)

        match await self._target_vendor(caller, product):
            case Ok(vendor):
                pass
            case Error(e):
                return Error(e)

        match _validate(product):
            case Error(e):
                return Error(e)
            case Ok(_):
                pass

        match gate_publish(caller.role, vendor, wants_active=product.wants_active):
            case Ok(decision):
                pass
            case Error(e):
                log.info("publish rejected for vendor %s by %s: %s", vendor.id, caller.user_id, e.code)
                return Error(e)

        if decision.coerced:
            await self._audit.emit(AuditEntry(
                action="PRODUCT_PUBLISH_BLOCKED",
                category="product",
                target_id=vendor.id,
                target_type="vendor",
                target_name=vendor.email,
                actor=caller,
                details=(
                    "Unverified vendor attempted to publish product. "
                    f"Verification status: {verification_status(vendor)}. Auto-saving as draft."
                ),
                severity=Severity.WARNING,
                context=context,
            ))

        if decision.publish:
            status = ProductStatus.ACTIVE
        elif product.wants_active:
            status = ProductStatus.DRAFT
        else:
            status = product.status or ProductStatus.DRAFT

        match await self._products.create(product, vendor_id=vendor.id, status=status):
            case Ok(created):
                pass
            case Error(e):
                return Error(e)

        on_behalf = caller.role.is_admin
        await self._audit.emit(AuditEntry(
            action="ADMIN_PRODUCT_CREATED" if on_behalf else "PRODUCT_CREATED",
            category="product",
            target_id=created.id,
            target_type="product",
            target_name=created.name,
            actor=caller,
            details=(
                f'Admin created product "{created.name}" for vendor {vendor.email}'
                if on_behalf
                else f'Vendor created product "{created.name}"'
            ),
            context=context,
        ))
        return Ok(ProductCreated(
            product=created,
            coerced=decision.coerced,
            message=DRAFT_MESSAGE if decision.coerced else "Product created",
        ))

    async def browse(self, actor: Actor | None, *, mine: bool = False) -> Result[list[Product], MarketError]:
        """Active catalogue, or every status of the calling vendor's own products."""
        if mine and actor is not None and actor.role == Role.VENDOR:
            return await self._products.query(status=None, vendor_id=actor.user_id)
        return await self._products.query(status=ProductStatus.ACTIVE)


__all__ = ("DRAFT_MESSAGE", "ProductCreated", "ProductService")
