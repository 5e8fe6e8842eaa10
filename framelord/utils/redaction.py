"""
Redaction helpers used before anything user-identifying reaches logs or prompts.

Provides:
- redact(): stable hash for correlation without exposure
- mask_phone() / mask_email(): partial masks for delivery logs
- redact_pii(): placeholder substitution for free text
- sanitize_for_prompt(): strip known prompt-injection markers
"""

from __future__ import annotations

import re
from hashlib import sha256

INJECTION_PATTERNS = [
    r"ignore\s+(previous|above|all)\s+instructions?",
    r"disregard\s+(previous|above|all)\s+instructions?",
    r"forget\s+(previous|above|all)\s+instructions?",
    r"new\s+instructions?:",
    r"\[INST\]",
    r"\[/INST\]",
    r"<\|im_start\|>",
    r"<\|im_end\|>",
]
INJECTION_REGEX = re.compile("|".join(INJECTION_PATTERNS), re.IGNORECASE)

_EMAIL_RE = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")
_PHONE_RE = re.compile(r"\+?\d[\d\s().-]{8,}\d")
_CARD_RE = re.compile(r"\b(?:\d{4}[-\s]?){3}\d{4}\b")


def redact(value: str | None) -> str:
    """
    Return a stable hash representation of a sensitive string.
    """
    if not value:
        return "hash:missing"
    digest = sha256(value.encode("utf-8")).hexdigest()[:12]
    return f"hash:{digest}"


def mask_phone(phone: str | None) -> str:
    """
    Mask a phone number as first 4 chars + **** + last 2.

    Example:
        "+15551234567" -> "+155****67"
    """
    if not phone:
        return "(none)"
    if len(phone) <= 6:
        return "****"
    return f"{phone[:4]}****{phone[-2:]}"


def mask_email(email: str | None) -> str:
    """Keep the first character of the local part and the domain."""
    if not email or "@" not in email:
        return "(none)"
    local, _, domain = email.partition("@")
    return f"{local[:1]}***@{domain}"


def redact_pii(text: str | None, max_length: int = 500) -> str:
    """
    Replace emails, phone numbers and card numbers with placeholders.

    Args:
        text: Text that may contain PII
        max_length: Maximum length of returned text
    """
    if not text:
        return ""

    text = _EMAIL_RE.sub("[EMAIL]", text)
    text = _CARD_RE.sub("[CARD]", text)
    text = _PHONE_RE.sub("[PHONE]", text)
    return text[:max_length]


def sanitize_for_prompt(text: str | None, max_length: int = 20000) -> str:
    """
    Clean user text before it is embedded in an LLM payload.

    Known injection markers are replaced with [REDACTED] and the text is
    truncated to max_length. The payload itself is JSON-encoded by callers.
    """
    if not text:
        return ""

    text = text[:max_length]
    text = INJECTION_REGEX.sub("[REDACTED]", text)
    return text.strip()
