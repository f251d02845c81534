"""
Payments — gateway references, payment attempts and the gateway webhook.

    webhook = PaymentWebhook(orders, audit, secret=settings.paystack_secret)
    match await webhook.handle(body, signature):
        case Ok(ack):
            ...
"""

from bazaar.payments._gateway import (
    PROVIDER,
    generate_reference,
    PaymentInit,
    PaymentAttempt,
    PaymentGateway,
    ReferenceGateway,
    sign_payload,
    verify_payload_signature,
)
from bazaar.payments._service import PaymentService
from bazaar.payments._webhook import (
    SIGNATURE_HEADER,
    ChargeEvent,
    WebhookAck,
    parse_charge,
    PaymentWebhook,
)

__all__ = (
    "PROVIDER",
    "generate_reference",
    "PaymentInit",
    "PaymentAttempt",
    "PaymentGateway",
    "ReferenceGateway",
    "sign_payload",
    "verify_payload_signature",
    "PaymentService",
    "SIGNATURE_HEADER",
    "ChargeEvent",
    "WebhookAck",
    "parse_charge",
    "PaymentWebhook",
)
