"""Transactional email through the SendGrid v3 mail/send API."""

from __future__ import annotations

import os
import time
from typing import Any

import httpx

from framelord.observability.logging import get_logger
from framelord.observability.telemetry import counter
from framelord.providers.http import ProviderNotConfiguredError, send_request
from framelord.utils.redaction import mask_email

logger = get_logger(__name__)

SENDGRID_SEND_URL = "https://api.sendgrid.com/v3/mail/send"


def build_mail_payload(
    to: str,
    from_email: str,
    from_name: str,
    subject: str | None = None,
    html: str | None = None,
    text: str | None = None,
    template_id: str | None = None,
    dynamic_template_data: dict[str, Any] | None = None,
    reply_to: str | None = None,
) -> dict[str, Any]:
    """
    Build the mail/send body.

    A template_id wins over subject/html; otherwise text/plain (if given)
    precedes text/html in content.
    """
    personalization: dict[str, Any] = {"to": [{"email": to}]}
    if dynamic_template_data:
        personalization["dynamic_template_data"] = dynamic_template_data

    payload: dict[str, Any] = {
        "personalizations": [personalization],
        "from": {"email": from_email, "name": from_name},
    }

    if template_id:
        payload["template_id"] = template_id
    else:
        content = []
        if text:
            content.append({"type": "text/plain", "value": text})
        content.append({"type": "text/html", "value": html})
        payload["subject"] = subject
        payload["content"] = content

    if reply_to:
        payload["reply_to"] = {"email": reply_to}
    return payload


class SendGridClient:
    def __init__(
        self,
        api_key: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key if api_key is not None else os.getenv("SENDGRID_API_KEY", "")
        self.from_email = os.getenv("SENDGRID_FROM_EMAIL", "noreply@framelord.com")
        self.from_name = os.getenv("SENDGRID_FROM_NAME", "FrameLord")
        self.transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    async def send_email(
        self,
        to: str,
        subject: str | None = None,
        html: str | None = None,
        text: str | None = None,
        template_id: str | None = None,
        dynamic_template_data: dict[str, Any] | None = None,
        reply_to: str | None = None,
    ) -> dict[str, object]:
        """
        Send one email.

        Returns:
            {"success": True, "message_id": x-message-id header or "sg-<epoch ms>"}

        Raises:
            ValueError: Missing "to", or neither template_id nor subject + html
            ProviderNotConfiguredError: SENDGRID_API_KEY missing
            ProviderRequestError: SendGrid rejected the message
        """
        if not to:
            raise ValueError("Missing required field: to")
        if not template_id and (not subject or not html):
            raise ValueError("Missing required fields: subject and html (or templateId)")
        if not self.configured:
            raise ProviderNotConfiguredError("sendgrid", "SendGrid not configured")

        payload = build_mail_payload(
            to,
            self.from_email,
            self.from_name,
            subject=subject,
            html=html,
            text=text,
            template_id=template_id,
            dynamic_template_data=dynamic_template_data,
            reply_to=reply_to,
        )

        response = await send_request(
            "sendgrid",
            "POST",
            SENDGRID_SEND_URL,
            transport=self.transport,
            headers={"Authorization": f"Bearer {self.api_key}"},
            json=payload,
        )

        message_id = response.headers.get("x-message-id") or f"sg-{int(time.time() * 1000)}"
        counter("messaging.email.sent")
        logger.info("Email sent to %s (message_id=%s)", mask_email(to), message_id)
        return {"success": True, "message_id": message_id}


def get_sendgrid_client() -> SendGridClient:
    return SendGridClient()
