"""
Error taxonomy — every fallible operation returns Result[T, MarketError].

    match await carts.add_item(owner, item):
        case Ok(cart):
            ...
        case Error(e):
            return e.status_code, e.code

The HTTP status is a property of the kind, so handlers never pick codes by hand.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


# ═══════════════════════════════════════════════════════════════════════════════
# Error Kind — Category + HTTP status
# ═══════════════════════════════════════════════════════════════════════════════


class ErrorKind(Enum):
    """
    Error categories. The value is the HTTP status.

    NOT_FOUND is also used to hide resources the caller may not see.
    """

    VALIDATION = 400
    AUTHENTICATION_REQUIRED = 401
    FORBIDDEN = 403
    NOT_FOUND = 404
    CONFLICT = 409
    INTERNAL = 500
    UPSTREAM = 502
    UNAVAILABLE = 503


# ═══════════════════════════════════════════════════════════════════════════════
# Market Error — Value, not exception
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class MarketError:
    """
    A user-actionable failure.

    code: stable machine-readable identifier (VENDOR_NOT_VERIFIED, ...).
    details: extra fields merged into the HTTP error body.
    cause: underlying exception for STORE/UPSTREAM errors, never serialized.
    """

    kind: ErrorKind
    code: str
    message: str
    details: dict[str, Any] = field(default_factory=dict)
    cause: Exception | None = field(default=None, compare=False, repr=False)

    @property
    def status_code(self) -> int:
        return self.kind.value

    def to_body(self) -> dict[str, Any]:
        return {"error": self.message, "code": self.code, **self.details}


class MarketFailure(Exception):
    """
    Exception carrier for a MarketError.

    Raised inside a transaction to roll it back, and inside graph nodes
    where a plain return cannot stop the computation.
    """

    def __init__(self, error: MarketError) -> None:
        super().__init__(f"{error.code}: {error.message}")
        self.error = error


# ═══════════════════════════════════════════════════════════════════════════════
# Factories
# ═══════════════════════════════════════════════════════════════════════════════


class Errors:
    """Factory methods for MarketError."""

    @staticmethod
    def validation(code: str, message: str, **details: Any) -> MarketError:
        return MarketError(ErrorKind.VALIDATION, code, message, details)

    @staticmethod
    def authentication(
        message: str = "Authentication required",
        code: str = "AUTHENTICATION_REQUIRED",
    ) -> MarketError:
        return MarketError(ErrorKind.AUTHENTICATION_REQUIRED, code, message)

    @staticmethod
    def forbidden(code: str, message: str, **details: Any) -> MarketError:
        return MarketError(ErrorKind.FORBIDDEN, code, message, details)

    @staticmethod
    def not_found(code: str, message: str) -> MarketError:
        return MarketError(ErrorKind.NOT_FOUND, code, message)

    @staticmethod
    def conflict(code: str, message: str, **details: Any) -> MarketError:
        return MarketError(ErrorKind.CONFLICT, code, message, details)

    @staticmethod
    def upstream(code: str, message: str, cause: Exception | None = None) -> MarketError:
        return MarketError(ErrorKind.UPSTREAM, code, message, cause=cause)

    @staticmethod
    def unavailable(code: str, message: str) -> MarketError:
        return MarketError(ErrorKind.UNAVAILABLE, code, message)

    @staticmethod
    def store(message: str, cause: Exception | None = None) -> MarketError:
        return MarketError(ErrorKind.INTERNAL, "STORE_ERROR", message, cause=cause)


__all__ = (
    "ErrorKind",
    "MarketError",
    "MarketFailure",
    "Errors",
)
