"""
Persistence — SQLAlchemy async models and database setup.

    from bazaar import db

    session_factory, engine = await db.create_database("sqlite+aiosqlite:///market.db")
"""

from bazaar.db._tables import (
    Base,
    UserTable,
    SessionTable,
    CartTable,
    CartItemTable,
    ProductTable,
    OrderTable,
    OrderItemTable,
    AuditLogTable,
)
from bazaar.db._engine import create_database
from bazaar.db._unit import transact

__all__ = (
    "Base",
    "UserTable",
    "SessionTable",
    "CartTable",
    "CartItemTable",
    "ProductTable",
    "OrderTable",
    "OrderItemTable",
    "AuditLogTable",
    "create_database",
    "transact",
)
