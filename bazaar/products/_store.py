"""
Product store — catalogue rows.

Stock quantity is only ever changed through the inventory ledger.
"""

from __future__ import annotations

from kungfu import Error, Ok, Result
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from bazaar._types import new_id, utcnow
from bazaar.db import ProductTable
from bazaar.errors import Errors, MarketError
from bazaar.products._types import NewProduct, Product, ProductStatus


def product_from_row(row: ProductTable) -> Product:
    return Product(
        id=row.id,
        vendor_id=row.vendor_id,
        name=row.name,
        price=row.price,
        quantity=row.quantity,
        track_quantity=row.track_quantity,
        status=ProductStatus(row.status),
        description=row.description,
        compare_price=row.compare_price,
        category_attributes=dict(row.category_attributes or {}),
        is_featured=row.is_featured,
        image=row.image,
        created_at=row.created_at,
    )


class ProductStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def create(
        self,
        product: NewProduct,
        *,
        vendor_id: str,
        status: ProductStatus,
    ) -> Result[Product, MarketError]:
        """Persist with the status the verification gate decided on."""
        now = utcnow()
        row = ProductTable(
            id=new_id("prod", 8),
            vendor_id=vendor_id,
            name=product.name.strip(),
            description=product.description,
            price=product.price,
            compare_price=product.compare_price,
            quantity=product.quantity,
            track_quantity=product.track_quantity,
            status=status.value,
            category_attributes=dict(product.category_attributes),
            is_featured=False,
            image=product.image,
            created_at=now,
            updated_at=now,
        )
        try:
            async with self._session_factory() as session, session.begin():
                session.add(row)
            return Ok(product_from_row(row))
        except Exception as e:
            return Error(Errors.store(f"Failed to create product: {e}", e))

    async def get(self, product_id: str) -> Result[Product | None, MarketError]:
        try:
            async with self._session_factory() as session:
                row = await session.get(ProductTable, product_id)
                return Ok(product_from_row(row) if row is not None else None)
        except Exception as e:
            return Error(Errors.store(f"Failed to get product: {e}", e))

    async def query(
        self,
        *,
        status: ProductStatus | None = ProductStatus.ACTIVE,
        vendor_id: str | None = None,
        limit: int = 100,
    ) -> Result[list[Product], MarketError]:
        stmt = select(ProductTable).order_by(ProductTable.created_at.desc()).limit(limit)
        if status is not None:
            stmt = stmt.where(ProductTable.status == status.value)
        if vendor_id is not None:
            stmt = stmt.where(ProductTable.vendor_id == vendor_id)
        try:
            async with self._session_factory() as session:
                rows = (await session.execute(stmt)).scalars().all()
                return Ok([product_from_row(r) for r in rows])
        except Exception as e:
            return Error(Errors.store(f"Failed to list products: {e}", e))


__all__ = ("ProductStore", "product_from_row")
