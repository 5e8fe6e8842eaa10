"""
Outbound SMS through the Twilio Messages API.

Numbers are normalized to E.164 before sending; US numbers without a
country code get +1.
"""

from __future__ import annotations

import os
import re

import httpx

from framelord.config import SMS_MAX_BODY_LENGTH
from framelord.observability.logging import get_logger
from framelord.observability.telemetry import counter
from framelord.providers.http import ProviderNotConfiguredError, send_request
from framelord.utils.redaction import mask_phone

logger = get_logger(__name__)

TWILIO_API_BASE = "https://api.twilio.com/2010-04-01"

E164_PATTERN = re.compile(r"^\+[1-9]\d{1,14}$")
_NON_PHONE_CHARS = re.compile(r"[^\d+]")


def is_valid_e164(phone: str) -> bool:
    return bool(E164_PATTERN.match(phone))


def normalize_phone_number(raw: str | None) -> str | None:
    """Return raw as an E.164 number, or None if it cannot be normalized."""
    if not raw:
        return None
    cleaned = _NON_PHONE_CHARS.sub("", raw)

    if cleaned.startswith("+") and is_valid_e164(cleaned):
        return cleaned
    if len(cleaned) == 10 and not cleaned.startswith("+"):
        return f"+1{cleaned}"
    if len(cleaned) == 11 and cleaned.startswith("1"):
        return f"+{cleaned}"
    return None


class TwilioClient:
    """Sends SMS with Basic auth against one Twilio account."""

    def __init__(
        self,
        account_sid: str | None = None,
        auth_token: str | None = None,
        from_number: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.account_sid = (
            account_sid if account_sid is not None else os.getenv("TWILIO_ACCOUNT_SID", "")
        )
        self.auth_token = (
            auth_token if auth_token is not None else os.getenv("TWILIO_AUTH_TOKEN", "")
        )
        if from_number is None:
            from_number = os.getenv("TWILIO_PHONE_NUMBER") or os.getenv("TWILIO_FROM_NUMBER", "")
        self.from_number = from_number
        self.transport = transport

    def missing_settings(self) -> list[str]:
        missing = []
        if not self.account_sid:
            missing.append("TWILIO_ACCOUNT_SID")
        if not self.auth_token:
            missing.append("TWILIO_AUTH_TOKEN")
        if not self.from_number:
            missing.append("TWILIO_PHONE_NUMBER")
        return missing

    @property
    def configured(self) -> bool:
        return not self.missing_settings()

    async def send_sms(self, to: str, body: str) -> dict[str, object]:
        """
        Send one SMS.

        Returns:
            {"success": True, "sid": Twilio message sid}

        Raises:
            ValueError: Missing fields, invalid number or body over 1600 chars
            ProviderNotConfiguredError: Twilio env vars missing
            ProviderRequestError: Twilio rejected the message
        """
        if not to or not body:
            raise ValueError("Missing required fields: to, body")

        normalized = normalize_phone_number(to)
        if not normalized:
            raise ValueError("Invalid phone number format")
        if len(body) > SMS_MAX_BODY_LENGTH:
            raise ValueError(f"Message exceeds {SMS_MAX_BODY_LENGTH} character limit")

        if not self.configured:
            raise ProviderNotConfiguredError("twilio", "Twilio not configured")

        response = await send_request(
            "twilio",
            "POST",
            f"{TWILIO_API_BASE}/Accounts/{self.account_sid}/Messages.json",
            transport=self.transport,
            auth=(self.account_sid, self.auth_token),
            data={"To": normalized, "From": self.from_number, "Body": body},
        )
        data = response.json()

        counter("messaging.sms.sent")
        logger.info("SMS sent to %s (sid=%s)", mask_phone(normalized), data.get("sid"))
        return {"success": True, "sid": data.get("sid")}


def get_twilio_client() -> TwilioClient:
    return TwilioClient()
