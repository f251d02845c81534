"""
Payment webhook — gateway notifications applied to orders.

    ack = (await webhook.handle(raw_body, request.headers.get(SIGNATURE_HEADER))).unwrap()

charge.success and charge.failed move the order; every other event is
acknowledged and ignored. Notifications the gateway may redeliver (same
reference twice, success after success) are no-ops. A notification for an
order we do not know is acknowledged so the gateway stops retrying; a
storage failure is not, so it will.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from kungfu import Error, Ok, Result

from bazaar.audit import AuditEntry, AuditLog, Severity
from bazaar.errors import Errors, MarketError
from bazaar.orders import OrderStore, PaymentApplied, PaymentOutcome
from bazaar.payments._gateway import PROVIDER, verify_payload_signature

log = logging.getLogger("bazaar.webhooks")

SIGNATURE_HEADER = "x-paystack-signature"


@dataclass(frozen=True, slots=True)
class ChargeEvent:
    """amount is minor units, as the gateway sends it."""

    event: str
    reference: str
    amount: int
    currency: str
    order_id: str | None = None
    channel: str | None = None
    paid_at: datetime | None = None
    customer_email: str | None = None


@dataclass(frozen=True, slots=True)
class WebhookAck:
    event: str
    handled: bool
    outcome: PaymentOutcome | None = None


def _parse_time(value: Any) -> datetime | None:
    if not isinstance(value, str):
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(UTC).replace(tzinfo=None)
    return parsed


def parse_charge(event: str, data: Mapping[str, Any]) -> ChargeEvent:
    metadata = data.get("metadata") or {}
    customer = data.get("customer") or {}
    amount = data.get("amount")
    return ChargeEvent(
        event=event,
        reference=str(data.get("reference") or ""),
        amount=amount if isinstance(amount, int) and not isinstance(amount, bool) else -1,
        currency=str(data.get("currency") or ""),
        order_id=metadata.get("orderId") if isinstance(metadata, Mapping) else None,
        channel=data.get("channel"),
        paid_at=_parse_time(data.get("paid_at")),
        customer_email=customer.get("email") if isinstance(customer, Mapping) else None,
    )


class PaymentWebhook:
    def __init__(
        self,
        orders: OrderStore,
        audit: AuditLog,
        *,
        secret: str | None = None,
        require_signature: bool = False,
    ) -> None:
        self._orders = orders
        self._audit = audit
        self._secret = secret
        self._require_signature = require_signature

    async def handle(self, body: bytes, signature: str | None) -> Result[WebhookAck, MarketError]:
        if not self._secret and self._require_signature:
            log.error("payment webhook rejected: no gateway secret configured")
            return Error(Errors.unavailable("PAYMENT_NOT_CONFIGURED", "Payment gateway not configured"))
        if self._secret and not verify_payload_signature(self._secret, body, signature):
            log.error("payment webhook rejected: invalid signature")
            return Error(Errors.authentication("Invalid signature", code="INVALID_SIGNATURE"))

        try:
            payload = json.loads(body)
        except ValueError:
            return Error(Errors.validation("INVALID_PAYLOAD", "Invalid payload"))
        if not isinstance(payload, dict):
            return Error(Errors.validation("INVALID_PAYLOAD", "Invalid payload"))

        event = str(payload.get("event") or "")
        data = payload.get("data")
        log.info("payment webhook event %s", event)

        match event:
            case "charge.success" | "charge.failed" if isinstance(data, Mapping):
                charge = parse_charge(event, data)
            case "charge.success" | "charge.failed":
                return Error(Errors.validation("INVALID_PAYLOAD", "Invalid payload"))
            case _:
                log.info("payment webhook event %s ignored", event)
                return Ok(WebhookAck(event=event, handled=False))

        if not charge.order_id:
            log.error("payment webhook %s has no orderId in metadata (ref %s)", event, charge.reference)
            return Ok(WebhookAck(event=event, handled=False))

        if event == "charge.success":
            applied = await self._orders.mark_paid(
                charge.order_id,
                reference=charge.reference,
                amount=charge.amount,
                provider=PROVIDER,
                channel=charge.channel,
                paid_at=charge.paid_at,
            )
        else:
            applied = await self._orders.mark_payment_failed(
                charge.order_id,
                reference=charge.reference,
                provider=PROVIDER,
            )

        match applied:
            case Ok(result):
                await self._report(charge, result)
                return Ok(WebhookAck(event=event, handled=True, outcome=result.outcome))
            case Error(MarketError(code="ORDER_NOT_FOUND")):
                log.error("payment webhook for unknown order %s (ref %s)", charge.order_id, charge.reference)
                return Ok(WebhookAck(event=event, handled=False))
            case Error(e):
                log.error("payment webhook for order %s failed: %s", charge.order_id, e.message)
                return Error(e)

    async def _report(self, charge: ChargeEvent, applied: PaymentApplied) -> None:
        order = applied.order

        def entry(action: str, details: dict[str, Any], severity: Severity = Severity.WARNING) -> AuditEntry:
            return AuditEntry(
                action=action,
                category="order",
                target_id=order.id,
                target_type="order",
                target_name=f"Order {order.id}",
                details=details,
                severity=severity,
            )

        match applied.outcome:
            case PaymentOutcome.RECORDED:
                log.info("order %s marked as paid (ref %s)", order.id, charge.reference)
                await self._audit.emit(entry("PAYMENT_RECEIVED", {
                    "reference": charge.reference,
                    "amount": charge.amount,
                    "currency": charge.currency,
                    "channel": charge.channel,
                    "customerEmail": charge.customer_email,
                }, Severity.INFO))
                if applied.shortfalls:
                    log.error("order %s paid after stock release; short %s", order.id, applied.shortfalls)
                    await self._audit.emit(entry("PAYMENT_STOCK_SHORTFALL", {
                        "reference": charge.reference,
                        "shortfalls": applied.shortfalls,
                    }, Severity.CRITICAL))
            case PaymentOutcome.ALREADY_PAID:
                log.info("duplicate webhook: order %s already paid with %s", order.id, charge.reference)
            case PaymentOutcome.DUPLICATE_IGNORED:
                log.warning("order %s already paid (ref %s), ignoring %s",
                            order.id, order.payment_reference, charge.reference)
                await self._audit.emit(entry("PAYMENT_DUPLICATE_IGNORED", {
                    "existingReference": order.payment_reference,
                    "newReference": charge.reference,
                    "reason": "Order already paid, ignoring duplicate payment attempt",
                }))
            case PaymentOutcome.AMOUNT_MISMATCH:
                log.error("amount mismatch for order %s: paid %d, expected %d", order.id, charge.amount, order.total)
                await self._audit.emit(entry("PAYMENT_AMOUNT_MISMATCH", {
                    "reference": charge.reference,
                    "paidAmount": charge.amount,
                    "expectedAmount": order.total,
                    "currency": charge.currency,
                }))
            case PaymentOutcome.FAILURE_RECORDED:
                details: dict[str, Any] = {
                    "reference": charge.reference,
                    "amount": charge.amount,
                    "currency": charge.currency,
                    "inventoryRestored": len(applied.restored),
                    "totalItems": len(order.items),
                }
                if not applied.released:
                    details["reason"] = "Inventory already restored by an earlier failure or cancellation"
                log.info("order %s payment failed, %d/%d lines restored",
                         order.id, len(applied.restored), len(order.items))
                await self._audit.emit(entry("PAYMENT_FAILED", details))
            case PaymentOutcome.FAILURE_IGNORED:
                log.info("order %s already paid, ignoring failed charge %s", order.id, charge.reference)
            case PaymentOutcome.DUPLICATE_FAILURE:
                log.info("duplicate failure webhook for order %s (ref %s)", order.id, charge.reference)


__all__ = (
    "SIGNATURE_HEADER",
    "ChargeEvent",
    "WebhookAck",
    "parse_charge",
    "PaymentWebhook",
)
