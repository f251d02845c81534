"""
Field validators — phone, email, names, addresses and free text.

Every validator returns a ValidationResult and never raises.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

from bazaar.validation._safety import validate_content_safety
from bazaar.validation._types import VALID, FieldError, ValidationReport, ValidationResult

# Mobile operators and landlines.
GHANA_PHONE_PREFIXES = frozenset({
    "020", "023", "024", "025", "026", "027", "028", "029",
    "050", "054", "055", "059",
    "030", "031", "032", "033", "034", "035", "036", "037", "038", "039",
})

_PHONE_NOISE = re.compile(r"[\s\-()]")
_PHONE_DIGITS = re.compile(r"^\+?\d+$", re.ASCII)
_EMAIL = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")
_WHITESPACE = re.compile(r"\s+")
_REPEATED_RUN = re.compile(r"(.)\1{4,}")
_LEADING_RUN = re.compile(r"^(.)\1{7,}")

GARBAGE_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"^(.)\1{4,}"),
    re.compile(r"(.)\1{5,}"),
    re.compile(r"^[a-z]{10,}$", re.IGNORECASE),
    re.compile(r"^\d{8,}$", re.ASCII),
    re.compile(r"^\d[\d\s\-.]+\d$", re.ASCII),
    re.compile(r"^[^a-zA-Z0-9]+$"),
    re.compile(r"^[^a-zA-Z]*$"),
    re.compile(r"^asdf", re.IGNORECASE),
    re.compile(r"^qwer", re.IGNORECASE),
    re.compile(r"^zxcv", re.IGNORECASE),
    re.compile(r"^hjkl", re.IGNORECASE),
    re.compile(r"^test+$", re.IGNORECASE),
    re.compile(r"^xxx+$", re.IGNORECASE),
    re.compile(r"^abc+$", re.IGNORECASE),
    re.compile(r"^n/a$", re.IGNORECASE),
    re.compile(r"^na$", re.IGNORECASE),
    re.compile(r"^none$", re.IGNORECASE),
    re.compile(r"^\?+$"),
    re.compile(r"^\.+$"),
    re.compile(r"^[!@#$%^&*()_+=]+$"),
)

# Whole-value keyboard mash; brand names that merely start this way pass.
KEYBOARD_MASH: tuple[re.Pattern[str], ...] = tuple(
    re.compile(p, re.IGNORECASE) for p in (r"^asdf+$", r"^qwer+$", r"^zxcv+$", r"^hjkl+$")
)

EMAIL_KEYBOARD_RUNS = ("qwer", "asdf", "zxcv", "hjkl", "yuio")


def _is_garbage(text: str) -> bool:
    return any(p.search(text) for p in GARBAGE_PATTERNS)


def _without_spaces(text: str) -> str:
    return _WHITESPACE.sub("", text)


# ═══════════════════════════════════════════════════════════════════════════════
# Phone
# ═══════════════════════════════════════════════════════════════════════════════


def validate_phone(phone: str | None) -> ValidationResult:
    """
    Ghana numbers only: +233XXXXXXXXX, 0XXXXXXXXX, or the 9-digit form
    without the leading zero.
    """
    if not phone:
        return ValidationResult.fail("INVALID_PHONE", "Phone number is required")

    cleaned = _PHONE_NOISE.sub("", phone)
    if not _PHONE_DIGITS.match(cleaned):
        return ValidationResult.fail("INVALID_PHONE", "Phone number can only contain digits")

    if cleaned.startswith("+233"):
        if len(cleaned) != 13:
            return ValidationResult.fail(
                "INVALID_PHONE", "Please enter a valid Ghana phone number (+233XXXXXXXXX)"
            )
        return VALID

    if cleaned.startswith("+"):
        return ValidationResult.fail(
            "INVALID_PHONE", "Only Ghana phone numbers are accepted (+233 or 0XX format)"
        )

    if cleaned.startswith("0"):
        if len(cleaned) != 10:
            return ValidationResult.fail("INVALID_PHONE", "Please enter a valid 10-digit phone number")
        if cleaned[:3] not in GHANA_PHONE_PREFIXES:
            return ValidationResult.fail("INVALID_PHONE", "Please enter a valid Ghana phone number")
        return VALID

    if len(cleaned) == 9 and f"0{cleaned}"[:3] in GHANA_PHONE_PREFIXES:
        return VALID

    return ValidationResult.fail("INVALID_PHONE", "Please enter a valid phone number")


def normalize_phone(phone: str) -> str:
    """E.164 form for local Ghana numbers; anything else is returned cleaned."""
    cleaned = _PHONE_NOISE.sub("", phone)
    if cleaned.startswith("+"):
        return cleaned
    if cleaned.startswith("0") and len(cleaned) == 10:
        return f"+233{cleaned[1:]}"
    if len(cleaned) == 9:
        return f"+233{cleaned}"
    return cleaned


# ═══════════════════════════════════════════════════════════════════════════════
# Email
# ═══════════════════════════════════════════════════════════════════════════════


def validate_email(email: str | None) -> ValidationResult:
    """Format check plus rejection of machine-generated looking local parts."""
    if not email:
        return ValidationResult.fail("INVALID_EMAIL", "Email is required")

    trimmed = email.strip().lower()
    if not _EMAIL.match(trimmed):
        return ValidationResult.fail("INVALID_EMAIL", "Please enter a valid email address")

    unreadable = ValidationResult.fail("INVALID_EMAIL", "Please enter a valid, human-readable email address")
    local = trimmed.split("@", 1)[0]

    if len(local) > 30:
        return unreadable

    vowels = sum(1 for c in local if c in "aeiou")
    consonants = sum(1 for c in local if c in "bcdfghjklmnpqrstvwxyz")
    if len(local) > 15 and consonants > 0 and vowels / consonants < 0.15:
        return unreadable

    if _REPEATED_RUN.search(local):
        return unreadable

    if any(run in local for run in EMAIL_KEYBOARD_RUNS):
        return unreadable

    return VALID


# ═══════════════════════════════════════════════════════════════════════════════
# Names
# ═══════════════════════════════════════════════════════════════════════════════


def validate_name(name: str | None, field_name: str = "Name") -> ValidationResult:
    trimmed = (name or "").strip()
    if not trimmed:
        return ValidationResult.fail("INVALID_NAME", f"{field_name} is required")
    if len(trimmed) < 2:
        return ValidationResult.fail("INVALID_NAME", f"{field_name} is too short")
    if len(trimmed) > 50:
        return ValidationResult.fail("INVALID_NAME", f"{field_name} is too long")
    if _is_garbage(_without_spaces(trimmed)):
        return ValidationResult.fail("INVALID_NAME", f"Please enter a valid {field_name.lower()}")
    if not validate_content_safety(trimmed).valid:
        return ValidationResult.fail("UNSAFE_CONTENT", f"{field_name} contains prohibited or unsafe content")
    return VALID


def _looks_mashed(trimmed: str) -> bool:
    squeezed = _without_spaces(trimmed)
    return bool(_LEADING_RUN.search(trimmed)) or any(p.search(squeezed) for p in KEYBOARD_MASH)


def validate_product_name(name: str | None) -> ValidationResult:
    """
    Lenient on purpose: brand names are often odd. Only safety failures and
    obvious junk are rejected.
    """
    trimmed = (name or "").strip()
    if not trimmed:
        return ValidationResult.fail("REQUIRED_FIELD", "Product name is required")
    if len(trimmed) < 2:
        return ValidationResult.fail("INVALID_NAME", "Product name must be at least 2 characters")
    if len(trimmed) > 120:
        return ValidationResult.fail("INVALID_NAME", "Product name must be 120 characters or less")

    safety = validate_content_safety(trimmed)
    if not safety.valid:
        return ValidationResult.fail(
            "UNSAFE_CONTENT",
            "Product name contains prohibited or unsafe content",
            safety.blocked_type,
        )

    if _looks_mashed(trimmed):
        return ValidationResult.fail("INVALID_NAME", "Please enter a valid product name")
    return VALID


def validate_business_name(name: str | None, field_name: str = "Business name") -> ValidationResult:
    trimmed = (name or "").strip()
    if not trimmed:
        return ValidationResult.fail("INVALID_BUSINESS_NAME", f"{field_name} is required")
    if len(trimmed) < 2:
        return ValidationResult.fail("INVALID_BUSINESS_NAME", f"{field_name} is too short")
    if len(trimmed) > 120:
        return ValidationResult.fail("INVALID_BUSINESS_NAME", f"{field_name} is too long")

    safety = validate_content_safety(trimmed)
    if not safety.valid:
        return ValidationResult.fail(
            "UNSAFE_CONTENT",
            f"{field_name} contains prohibited or unsafe content",
            safety.blocked_type,
        )

    if _looks_mashed(trimmed):
        return ValidationResult.fail("INVALID_BUSINESS_NAME", f"Please enter a valid {field_name.lower()}")
    return VALID


# ═══════════════════════════════════════════════════════════════════════════════
# Address
# ═══════════════════════════════════════════════════════════════════════════════


def normalize_address(address: str) -> str:
    return _WHITESPACE.sub(" ", address.strip())


def validate_address(address: str | None, field_name: str = "Address") -> ValidationResult:
    cleaned = normalize_address(address or "")
    if not cleaned:
        return ValidationResult.fail("INVALID_ADDRESS", f"{field_name} is required")
    if len(cleaned) < 5:
        return ValidationResult.fail("INVALID_ADDRESS", f"{field_name} is too short")
    if _is_garbage(_without_spaces(cleaned)):
        return ValidationResult.fail("INVALID_ADDRESS", f"Please enter a valid {field_name.lower()}")
    return VALID


def validate_city(city: str | None) -> ValidationResult:
    cleaned = (city or "").strip()
    if not cleaned:
        return ValidationResult.fail("INVALID_CITY", "City is required")
    if len(cleaned) < 2:
        return ValidationResult.fail("INVALID_CITY", "City name is too short")
    if _is_garbage(cleaned):
        return ValidationResult.fail("INVALID_CITY", "Please enter a valid city name")
    return VALID


def validate_region(region: str | None) -> ValidationResult:
    if not (region or "").strip():
        return ValidationResult.fail("INVALID_REGION", "Region is required")
    return VALID


# ═══════════════════════════════════════════════════════════════════════════════
# Free text
# ═══════════════════════════════════════════════════════════════════════════════


def validate_text_field(
    value: str | None,
    field_name: str,
    *,
    required: bool = False,
    min_length: int = 0,
    max_length: int = 10000,
) -> ValidationResult:
    """Length bounds, then content safety. Empty optional values pass."""
    cleaned = (value or "").strip()
    if not cleaned:
        if required:
            return ValidationResult.fail("REQUIRED_FIELD", f"{field_name} is required")
        if not value:
            return VALID
    if len(cleaned) < min_length:
        return ValidationResult.fail("TOO_SHORT", f"{field_name} must be at least {min_length} characters")
    if len(cleaned) > max_length:
        return ValidationResult.fail("TOO_LONG", f"{field_name} must be less than {max_length} characters")
    return validate_content_safety(cleaned)


# ═══════════════════════════════════════════════════════════════════════════════
# Combinators
# ═══════════════════════════════════════════════════════════════════════════════


def validate_fields(results: Iterable[ValidationResult]) -> ValidationResult:
    """First failure, or VALID."""
    return next((r for r in results if not r.valid), VALID)


def collect_validation_errors(results: Iterable[tuple[str, ValidationResult]]) -> ValidationReport:
    """
    Every failure, keyed by field.

        report = collect_validation_errors([
            ("address", validate_address(body.address)),
            ("city", validate_city(body.city)),
        ])
        if not report.valid:
            return Error(report.to_error())
    """
    return ValidationReport(tuple(
        FieldError(field, result.code, result.message)
        for field, result in results
        if not result.valid and result.code and result.message
    ))


__all__ = (
    "GHANA_PHONE_PREFIXES",
    "GARBAGE_PATTERNS",
    "validate_phone",
    "normalize_phone",
    "validate_email",
    "validate_name",
    "validate_product_name",
    "validate_business_name",
    "normalize_address",
    "validate_address",
    "validate_city",
    "validate_region",
    "validate_text_field",
    "validate_fields",
    "collect_validation_errors",
)
