"""
Products — catalogue entries and gated creation.
"""

from bazaar.products._types import ProductStatus, Product, NewProduct
from bazaar.products._store import ProductStore, product_from_row
from bazaar.products._service import DRAFT_MESSAGE, ProductCreated, ProductService

__all__ = (
    "ProductStatus",
    "Product",
    "NewProduct",
    "ProductStore",
    "product_from_row",
    "DRAFT_MESSAGE",
    "ProductCreated",
    "ProductService",
)
