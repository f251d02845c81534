"""
Product types.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any


class ProductStatus(StrEnum):
    DRAFT = "draft"
    ACTIVE = "active"
    ARCHIVED = "archived"


@dataclass(frozen=True, slots=True)
class Product:
    """
    A catalogue entry. Prices are minor units.

    Note: status is ACTIVE only while the owning vendor is verified at
    publish time.
    """

    id: str
    vendor_id: str
    name: str
    price: int
    quantity: int
    track_quantity: bool
    status: ProductStatus
    description: str | None = None
    compare_price: int | None = None
    category_attributes: dict[str, Any] = field(default_factory=dict)
    is_featured: bool = False
    image: str | None = None
    created_at: datetime | None = None

    @property
    def in_stock(self) -> bool:
        return not self.track_quantity or self.quantity > 0


@dataclass(frozen=True, slots=True)
class NewProduct:
    """
    A creation request.

    status None means "publish if allowed". vendor_id is required when an
    admin creates on a vendor's behalf and ignored for vendors.
    """

    name: str
    price: int
    vendor_id: str | None = None
    description: str | None = None
    compare_price: int | None = None
    quantity: int = 0
    track_quantity: bool = True
    status: ProductStatus | None = None
    category_attributes: dict[str, Any] = field(default_factory=dict)
    image: str | None = None

    @property
    def wants_active(self) -> bool:
        return self.status in (None, ProductStatus.ACTIVE)


__all__ = ("ProductStatus", "Product", "NewProduct")
