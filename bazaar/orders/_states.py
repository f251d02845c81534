"""
Order state machine — legal transitions as a table.

    pending_payment ──payment──▶ processing ──admin/system──▶ fulfilled ──admin──▶ delivered
           │                         │
           └──────────admin──────────┴──▶ cancelled

system is the store completing an order once its last line is fulfilled.
cancelled and delivered are terminal. Older records may carry legacy
statuses; canonical_status() maps them onto the table above.
"""

from __future__ import annotations

from collections.abc import Mapping
from enum import StrEnum

from kungfu import Error, Ok, Result

from bazaar.errors import Errors, MarketError
from bazaar.orders._types import OrderStatus


class Trigger(StrEnum):
    """What moved the order."""

    PAYMENT = "payment"
    SYSTEM = "system"
    ADMIN = "admin"


TRANSITIONS: Mapping[tuple[OrderStatus, OrderStatus], frozenset[Trigger]] = {
    (OrderStatus.PENDING_PAYMENT, OrderStatus.PROCESSING): frozenset({Trigger.PAYMENT}),
    (OrderStatus.PROCESSING, OrderStatus.FULFILLED): frozenset({Trigger.ADMIN, Trigger.SYSTEM}),
    (OrderStatus.FULFILLED, OrderStatus.DELIVERED): frozenset({Trigger.ADMIN}),
    (OrderStatus.PENDING_PAYMENT, OrderStatus.CANCELLED): frozenset({Trigger.ADMIN}),
    (OrderStatus.PROCESSING, OrderStatus.CANCELLED): frozenset({Trigger.ADMIN}),
}

CANCELLABLE: frozenset[OrderStatus] = frozenset(
    src for (src, dst) in TRANSITIONS if dst == OrderStatus.CANCELLED
)

TERMINAL: frozenset[OrderStatus] = frozenset({OrderStatus.CANCELLED, OrderStatus.DELIVERED})

LEGACY: Mapping[str, OrderStatus] = {
    "pending": OrderStatus.PENDING_PAYMENT,
    "confirmed": OrderStatus.PROCESSING,
    # the shipment itself is carried by tracking_number
    "shipped": OrderStatus.PROCESSING,
}


def canonical_status(value: str) -> OrderStatus:
    """Raises ValueError for a value that is neither canonical nor legacy."""
    if value in LEGACY:
        return LEGACY[value]
    return OrderStatus(value)


def can_transition(src: OrderStatus, dst: OrderStatus, trigger: Trigger) -> bool:
    return trigger in TRANSITIONS.get((src, dst), frozenset())


def check_transition(src: OrderStatus, dst: OrderStatus, trigger: Trigger) -> Result[OrderStatus, MarketError]:
    if can_transition(src, dst, trigger):
        return Ok(dst)
    if src in TERMINAL:
        return Error(Errors.conflict(
            "ORDER_TERMINAL",
            f"Order is {src} and can no longer change status",
            currentStatus=src.value,
        ))
    return Error(Errors.conflict(
        "INVALID_TRANSITION",
        f"Cannot move order from {src} to {dst}",
        currentStatus=src.value,
        requestedStatus=dst.value,
    ))


__all__ = (
    "Trigger",
    "TRANSITIONS",
    "CANCELLABLE",
    "TERMINAL",
    "LEGACY",
    "canonical_status",
    "can_transition",
    "check_transition",
)
