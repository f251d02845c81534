"""
/api/webhooks — payment gateway and KYC provider callbacks.

Both read the raw body: the payment signature covers the exact bytes sent.
"""

from __future__ import annotations

import json

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from bazaar.api._codecs import kyc_result_from_payload
from bazaar.api._http import ServicesDep, reply, unwrap
from bazaar.errors import Errors, MarketFailure
from bazaar.payments import SIGNATURE_HEADER

router = APIRouter(prefix="/api/webhooks", tags=["webhooks"])


@router.post("/payment")
async def payment_webhook(request: Request, services: ServicesDep) -> JSONResponse:
    body = await request.body()
    ack = unwrap(await services.payment_webhook.handle(body, request.headers.get(SIGNATURE_HEADER)))
    return reply({
        "received": True,
        "event": ack.event,
        "handled": ack.handled,
        "outcome": ack.outcome.value if ack.outcome else None,
    })


@router.post("/kyc")
async def kyc_webhook(request: Request, services: ServicesDep) -> JSONResponse:
    try:
        payload = json.loads(await request.body())
    except ValueError:
        raise MarketFailure(Errors.validation("INVALID_PAYLOAD", "Invalid payload")) from None
    if not isinstance(payload, dict):
        raise MarketFailure(Errors.validation("INVALID_PAYLOAD", "Invalid payload"))

    outcome = unwrap(await services.kyc.apply_result(kyc_result_from_payload(payload)))
    return reply({"success": True, "userId": outcome.user_id, "status": outcome.status.value})


__all__ = ("router",)
