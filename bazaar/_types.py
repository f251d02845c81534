"""
Identifiers and clock helpers shared by every store.
"""

from __future__ import annotations

import secrets
from datetime import UTC, datetime


def new_id(prefix: str, nbytes: int) -> str:
    """
    Prefixed random identifier: `cart_` + 2*nbytes hex chars.

        new_id("guest", 12)  # guest_3f9c0a...  (24 hex)
    """
    return f"{prefix}_{secrets.token_hex(nbytes)}"


def utcnow() -> datetime:
    """Naive UTC timestamp, the form SQLite DateTime columns round-trip."""
    return datetime.now(UTC).replace(tzinfo=None)


__all__ = ("new_id", "utcnow")
