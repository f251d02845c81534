"""
Payment gateway boundary.

The gateway only hands out a reference for a payment attempt; the charge
itself happens client-side and comes back through the webhook.
"""

from __future__ import annotations

import hashlib
import hmac
import secrets
import time
from dataclasses import dataclass
from typing import Protocol

from bazaar.orders import Order

PROVIDER = "paystack"

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def _base36(n: int) -> str:
    digits = []
    while n:
        n, r = divmod(n, 36)
        digits.append(_BASE36[r])
    return "".join(reversed(digits)) or "0"


def generate_reference(now_ms: int | None = None) -> str:
    """MH_<millis base36>_<6 random base36>, upper-cased."""
    stamp = _base36(time.time_ns() // 1_000_000 if now_ms is None else now_ms)
    tail = "".join(secrets.choice(_BASE36) for _ in range(6))
    return f"MH_{stamp}_{tail}".upper()


# ═══════════════════════════════════════════════════════════════════════════════
# Gateway
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class PaymentInit:
    """What the client needs to open the payment popup. amount is minor units."""

    order_id: str
    reference: str
    amount: int
    currency: str
    email: str


@dataclass(frozen=True, slots=True)
class PaymentAttempt:
    """An attempt whose reference is already stored on the order."""

    order: Order
    init: PaymentInit


class PaymentGateway(Protocol):
    provider: str

    async def initialize(self, order: Order) -> PaymentInit: ...


class ReferenceGateway:
    """Server-side reference generation; no network call."""

    provider = PROVIDER

    async def initialize(self, order: Order) -> PaymentInit:
        return PaymentInit(
            order_id=order.id,
            reference=generate_reference(),
            amount=order.total,
            currency=order.currency,
            email=order.buyer_email,
        )


# ═══════════════════════════════════════════════════════════════════════════════
# Webhook signatures
# ═══════════════════════════════════════════════════════════════════════════════


def sign_payload(secret: str, body: bytes) -> str:
    """HMAC-SHA512 of the raw body, hex. Sent as x-paystack-signature."""
    return hmac.new(secret.encode(), body, hashlib.sha512).hexdigest()


def verify_payload_signature(secret: str, body: bytes, signature: str | None) -> bool:
    if not signature:
        return False
    return hmac.compare_digest(sign_payload(secret, body), signature)


__all__ = (
    "PROVIDER",
    "generate_reference",
    "PaymentInit",
    "PaymentAttempt",
    "PaymentGateway",
    "ReferenceGateway",
    "sign_payload",
    "verify_payload_signature",
)
