"""
Outbound messaging proxies (Twilio SMS, SendGrid email).

Validation failures are 400, missing provider configuration is 500 and
provider rejections are 502.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from framelord.api.errors import bad_request, provider_http_error
from framelord.messaging.email import SendGridClient, get_sendgrid_client
from framelord.messaging.sms import TwilioClient, get_twilio_client
from framelord.providers.http import ProviderError

router = APIRouter(prefix="/api/messaging", tags=["messaging"])


class SmsRequest(BaseModel):
    to: str | None = None
    body: str | None = None


class SmsResponse(BaseModel):
    success: bool
    sid: str | None = None


class EmailRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    to: str | None = None
    subject: str | None = None
    html: str | None = None
    text: str | None = None
    template_id: str | None = Field(default=None, alias="templateId")
    dynamic_template_data: dict[str, Any] | None = Field(
        default=None, alias="dynamicTemplateData"
    )
    reply_to: str | None = Field(default=None, alias="replyTo")


class EmailResponse(BaseModel):
    success: bool
    message_id: str


@router.post("/sms", response_model=SmsResponse)
async def send_sms(
    request: SmsRequest,
    twilio: TwilioClient = Depends(get_twilio_client),
) -> SmsResponse:
    try:
        result = await twilio.send_sms(request.to or "", request.body or "")
    except ValueError as e:
        raise bad_request(e) from None
    except ProviderError as e:
        raise provider_http_error(e) from None
    return SmsResponse(**result)


@router.post("/email", response_model=EmailResponse)
async def send_email(
    request: EmailRequest,
    sendgrid: SendGridClient = Depends(get_sendgrid_client),
) -> EmailResponse:
    try:
        result = await sendgrid.send_email(
            request.to or "",
            subject=request.subject,
            html=request.html,
            text=request.text,
            template_id=request.template_id,
            dynamic_template_data=request.dynamic_template_data,
            reply_to=request.reply_to,
        )
    except ValueError as e:
        raise bad_request(e) from None
    except ProviderError as e:
        raise provider_http_error(e) from None
    return EmailResponse(**result)
