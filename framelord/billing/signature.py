"""
Stripe webhook signature verification.

Header format: "t=<unix ts>,v1=<hex hmac>[,v1=<hex hmac>...]". The signed
payload is "<t>.<raw body>", HMAC-SHA256 keyed with the endpoint secret.
"""

from __future__ import annotations

import hashlib
import hmac
import json
import time
from typing import Any

from framelord.config import STRIPE_SIGNATURE_TOLERANCE_SECONDS
from framelord.infrastructure.settings import is_production
from framelord.observability.logging import get_logger
from framelord.observability.telemetry import counter

logger = get_logger(__name__)


class SignatureVerificationError(ValueError):
    """Stripe-Signature header missing, malformed, stale or not matching."""


def parse_signature_header(header: str | None) -> tuple[int, list[str]]:
    """
    Split a Stripe-Signature header into (timestamp, [v1 signatures]).

    Raises:
        SignatureVerificationError: Missing header, no timestamp, or no v1 entries
    """
    if not header:
        raise SignatureVerificationError("Missing Stripe-Signature header")

    timestamp: int | None = None
    signatures: list[str] = []
    for item in header.split(","):
        key, sep, value = item.strip().partition("=")
        if not sep:
            continue
        if key == "t":
            try:
                timestamp = int(value)
            except ValueError as e:
                raise SignatureVerificationError("Invalid signature timestamp") from e
        elif key == "v1" and value:
            signatures.append(value)

    if timestamp is None:
        raise SignatureVerificationError("Signature header has no timestamp")
    if not signatures:
        raise SignatureVerificationError("Signature header has no v1 signatures")
    return timestamp, signatures


def compute_signature(secret: str, timestamp: int, payload: str | bytes) -> str:
    if isinstance(payload, bytes):
        payload = payload.decode("utf-8")
    signed = f"{timestamp}.{payload}".encode()
    return hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()


def verify_signature(
    payload: str | bytes,
    header: str | None,
    secret: str,
    tolerance: int = STRIPE_SIGNATURE_TOLERANCE_SECONDS,
    now: float | None = None,
) -> bool:
    """
    Verify a webhook payload against its Stripe-Signature header.

    Any matching v1 entry is accepted (Stripe sends several during secret
    rotation). tolerance <= 0 disables the timestamp check.

    Raises:
        SignatureVerificationError: On any verification failure
    """
    timestamp, signatures = parse_signature_header(header)
    expected = compute_signature(secret, timestamp, payload)

    if not any(hmac.compare_digest(expected, candidate) for candidate in signatures):
        counter("webhook.signature_mismatch")
        raise SignatureVerificationError("No signatures found matching the expected signature")

    if tolerance > 0:
        current = now if now is not None else time.time()
        if timestamp < current - tolerance:
            counter("webhook.signature_stale")
            raise SignatureVerificationError("Timestamp outside the tolerance zone")

    return True


def construct_event(
    payload: str | bytes,
    header: str | None,
    secret: str | None,
    tolerance: int = STRIPE_SIGNATURE_TOLERANCE_SECONDS,
) -> dict[str, Any]:
    """
    Verify (when a secret is configured) and parse a webhook body.

    Without a secret the payload is parsed unverified, which is only allowed
    outside production.

    Raises:
        SignatureVerificationError: Verification failed, or no secret in production
        ValueError: Body is not a JSON object
    """
    if secret:
        verify_signature(payload, header, secret, tolerance=tolerance)
    elif is_production():
        raise SignatureVerificationError("Webhook secret not configured")
    else:
        logger.warning("STRIPE_WEBHOOK_SECRET not set; accepting unverified webhook (dev only)")

    try:
        event = json.loads(payload)
    except (TypeError, ValueError) as e:
        raise ValueError("Invalid webhook payload") from e
    if not isinstance(event, dict):
        raise ValueError("Invalid webhook payload")
    return event
