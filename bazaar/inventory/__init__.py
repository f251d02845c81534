"""
Inventory — stock decrement on order, restore on cancel.
"""

from bazaar.inventory._ledger import (
    decrement_stock,
    restore_stock,
    reserve_available,
    InventoryLedger,
)

__all__ = (
    "decrement_stock",
    "restore_stock",
    "reserve_available",
    "InventoryLedger",
)
