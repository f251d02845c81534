"""
Content safety — profanity, hate speech and contact-info leakage.

Matching runs against de-obfuscated text: lowercased, accents stripped,
long character runs collapsed, l33t digits mapped back to letters. Word
patterns are tried both with the spacing kept and with letter-spacing
removed ("f u c k" → "fuck"); contact patterns run on the raw input.
"""

from __future__ import annotations

import re
import unicodedata

from bazaar.validation._types import VALID, BlockedType, ValidationResult


def _rx(pattern: str, flags: int = 0) -> re.Pattern[str]:
    return re.compile(pattern, flags | re.ASCII)


PROFANITY_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    _rx(p, re.IGNORECASE)
    for p in (
        r"\bf+u+c+k+",
        r"\bs+h+i+t+",
        r"\bb+i+t+c+h+",
        r"\ba+s+s+h+o+l+e+",
        r"\bd+a+m+n+",
        r"\bc+u+n+t+",
        r"\bd+i+c+k+",
        r"\bp+u+s+s+y+",
        r"\bc+o+c+k+",
        r"\bn+i+g+g+",
        r"\bf+a+g+",
        r"\bw+h+o+r+e+",
        r"\bs+l+u+t+",
        r"\bb+a+s+t+a+r+d+",
        r"\bp+o+r+n+",
        r"\bs+e+x+y+",
        r"\bn+u+d+e+",
        r"\bx+x+x+",
    )
)

HATE_SPEECH_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    _rx(p, re.IGNORECASE)
    for p in (
        r"\bkill\s+(?:you|them|all)",
        r"\bdie\b",
        r"\bhate\s+(?:you|them|all)",
        r"\bterrorist",
    )
)

EMAIL_PATTERN = _rx(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")

PHONE_PATTERNS: tuple[re.Pattern[str], ...] = (
    _rx(r"(?:0|\+233)\s*\d{2}\s*\d{3}\s*\d{4}"),
    _rx(r"\+\d{10,15}"),
    _rx(r"\d{3}[\s\-]?\d{3}[\s\-]?\d{4}"),
)

URL_PATTERN = _rx(r"(?:https?://|www\.)[^\s]+", re.IGNORECASE)

# Shorthands (ig, fb) need a separator after them so "midnight" or "big" never match.
SOCIAL_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    _rx(p, re.IGNORECASE)
    for p in (
        r"\bwhatsapp\s*[:\-]?\s*[\d+]+|wa\.me/\d+",
        r"\btelegram\s*[:\-]?\s*@?\w+|t\.me/\w+",
        r"\binstagram\s*[:\-]?\s*@?\w+|\big(?:\s+|[:\-]|@)\s*@?\w+",
        r"\bfacebook\s*[:\-]?\s*@?\w+|\bfb(?:\s+|[:\-]|@)\s*@?\w+",
        r"\btwitter\s*[:\-]?\s*@?\w+|(?:^|[^\w])@\w{3,}",
    )
)

_COMBINING_MARKS = re.compile("[\u0300-\u036f]")
_RUNS = re.compile(r"(.)\1{2,}")
_LETTER_SPACING = _rx(r"(\w)\s+(?=\w)")
_LEET = str.maketrans({"0": "o", "1": "i", "3": "e", "4": "a", "5": "s", "@": "a", "$": "s"})


def normalize_for_safety(text: str) -> tuple[str, str]:
    """Return (spaced, collapsed) de-obfuscated forms of text."""
    text = unicodedata.normalize("NFD", text.lower())
    text = _COMBINING_MARKS.sub("", text)
    text = _RUNS.sub(r"\1\1", text)
    spaced = text.translate(_LEET)
    return spaced, _LETTER_SPACING.sub(r"\1", spaced)


def _matches(patterns: tuple[re.Pattern[str], ...], *texts: str) -> bool:
    return any(p.search(t) for p in patterns for t in texts)


def validate_content_safety(content: str | None) -> ValidationResult:
    """
    Screen free text. Empty input is safe.

    Checked in order: profanity, hate speech, email, phone, URL, social handle.
    """
    if not content:
        return VALID

    spaced, collapsed = normalize_for_safety(content)

    if _matches(PROFANITY_PATTERNS, collapsed, spaced):
        return ValidationResult.fail(
            "UNSAFE_CONTENT",
            "This field contains prohibited or unsafe content",
            BlockedType.PROFANITY,
        )

    if _matches(HATE_SPEECH_PATTERNS, spaced, collapsed):
        return ValidationResult.fail(
            "UNSAFE_CONTENT",
            "This field contains prohibited or unsafe content",
            BlockedType.HATE_SPEECH,
        )

    if EMAIL_PATTERN.search(content):
        return ValidationResult.fail(
            "UNSAFE_CONTENT",
            "Contact information (email addresses) is not allowed in this field",
            BlockedType.CONTACT_INFO,
        )

    if _matches(PHONE_PATTERNS, content):
        return ValidationResult.fail(
            "UNSAFE_CONTENT",
            "Contact information (phone numbers) is not allowed in this field",
            BlockedType.CONTACT_INFO,
        )

    if URL_PATTERN.search(content):
        return ValidationResult.fail(
            "UNSAFE_CONTENT",
            "URLs and links are not allowed in this field",
            BlockedType.URL,
        )

    if _matches(SOCIAL_PATTERNS, content):
        return ValidationResult.fail(
            "UNSAFE_CONTENT",
            "Social media handles are not allowed in this field",
            BlockedType.SOCIAL_HANDLE,
        )

    return VALID


__all__ = (
    "PROFANITY_PATTERNS",
    "HATE_SPEECH_PATTERNS",
    "EMAIL_PATTERN",
    "PHONE_PATTERNS",
    "URL_PATTERN",
    "SOCIAL_PATTERNS",
    "normalize_for_safety",
    "validate_content_safety",
)
