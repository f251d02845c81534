"""
Validation result types.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from bazaar.errors import Errors, MarketError


class BlockedType(StrEnum):
    PROFANITY = "profanity"
    CONTACT_INFO = "contact_info"
    URL = "url"
    HATE_SPEECH = "hate_speech"
    SOCIAL_HANDLE = "social_handle"


@dataclass(frozen=True, slots=True)
class ValidationResult:
    """
    Outcome of one validator.

    code/message are set only when valid is False.
    """

    valid: bool
    code: str | None = None
    message: str | None = None
    blocked_type: BlockedType | None = None

    @staticmethod
    def ok() -> ValidationResult:
        return VALID

    @staticmethod
    def fail(code: str, message: str, blocked_type: BlockedType | None = None) -> ValidationResult:
        return ValidationResult(False, code, message, blocked_type)

    def to_error(self, field: str | None = None) -> MarketError:
        details: dict[str, str] = {}
        if field is not None:
            details["field"] = field
        if self.blocked_type is not None:
            details["blockedType"] = self.blocked_type.value
        return Errors.validation(self.code or "VALIDATION_ERROR", self.message or "Invalid input", **details)


VALID = ValidationResult(True)


@dataclass(frozen=True, slots=True)
class FieldError:
    field: str
    code: str
    message: str


@dataclass(frozen=True, slots=True)
class ValidationReport:
    """All failures of a multi-field form."""

    errors: tuple[FieldError, ...]

    @property
    def valid(self) -> bool:
        return not self.errors

    def to_error(self) -> MarketError:
        first = self.errors[0]
        return Errors.validation(
            first.code,
            first.message,
            errors=[{"field": e.field, "code": e.code, "message": e.message} for e in self.errors],
        )


__all__ = (
    "BlockedType",
    "ValidationResult",
    "VALID",
    "FieldError",
    "ValidationReport",
)
