"""Health check endpoints for the FrameLord API.

/health is the liveness probe; /api/health/integrations reports which
third-party providers are configured (presence and key shape only, no
outbound calls).
"""

from __future__ import annotations

import os
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any, Literal

from fastapi import APIRouter
from pydantic import BaseModel, Field

from framelord.config import APP_VERSION, LLM_PROVIDER

router = APIRouter(tags=["health"])

CheckStatus = Literal["ok", "missing", "invalid"]


class IntegrationCheck(BaseModel):
    configured: bool
    status: CheckStatus
    details: str | None = None


class IntegrationsResponse(BaseModel):
    status: Literal["ok", "degraded"]
    timestamp: str
    checks: dict[str, IntegrationCheck] = Field(default_factory=dict)


def _prefixed_key_check(env_var: str, prefix: str, label: str) -> IntegrationCheck:
    value = os.getenv(env_var, "")
    if not value:
        return IntegrationCheck(configured=False, status="missing", details=f"{env_var} not set")
    if not value.startswith(prefix):
        return IntegrationCheck(
            configured=False,
            status="invalid",
            details=f"{label} key should start with '{prefix}'",
        )
    return IntegrationCheck(configured=True, status="ok")


def _present_check(env_var: str) -> IntegrationCheck:
    if not os.getenv(env_var):
        return IntegrationCheck(configured=False, status="missing", details=f"{env_var} not set")
    return IntegrationCheck(configured=True, status="ok")


def check_stripe() -> IntegrationCheck:
    check = _prefixed_key_check("STRIPE_SECRET_KEY", "sk_", "Stripe secret")
    if check.status == "ok" and not os.getenv("STRIPE_WEBHOOK_SECRET"):
        check.details = "STRIPE_WEBHOOK_SECRET not set; webhooks are unverified"
    return check


def check_openai() -> IntegrationCheck:
    return _prefixed_key_check("OPENAI_API_KEY", "sk-", "OpenAI")


def check_gemini() -> IntegrationCheck:
    if os.getenv("GEMINI_API_KEY"):
        return _present_check("GEMINI_API_KEY")
    return _present_check("GOOGLE_API_KEY")


def check_twilio() -> IntegrationCheck:
    required = ["TWILIO_ACCOUNT_SID", "TWILIO_AUTH_TOKEN", "TWILIO_PHONE_NUMBER"]
    present = {name: os.getenv(name, "") for name in required}
    if not present["TWILIO_PHONE_NUMBER"]:
        present["TWILIO_PHONE_NUMBER"] = os.getenv("TWILIO_FROM_NUMBER", "")

    missing = [name for name, value in present.items() if not value]
    if missing:
        return IntegrationCheck(
            configured=False, status="missing", details=f"Missing: {', '.join(missing)}"
        )
    if not present["TWILIO_ACCOUNT_SID"].startswith("AC"):
        return IntegrationCheck(
            configured=False,
            status="invalid",
            details="TWILIO_ACCOUNT_SID should start with 'AC'",
        )
    return IntegrationCheck(configured=True, status="ok")


def check_sendgrid() -> IntegrationCheck:
    return _present_check("SENDGRID_API_KEY")


def check_nanobanana() -> IntegrationCheck:
    return _present_check("NANOBANANA_API_KEY")


INTEGRATION_CHECKS: dict[str, Callable[[], IntegrationCheck]] = {
    "stripe": check_stripe,
    "openai": check_openai,
    "gemini": check_gemini,
    "twilio": check_twilio,
    "sendgrid": check_sendgrid,
    "nanobanana": check_nanobanana,
}


@router.get("/health")
async def health_check() -> dict[str, Any]:
    """Service status, version, and LLM credential readiness (presence only)."""
    has_openai_key = bool(os.getenv("OPENAI_API_KEY"))
    has_google_key = bool(os.getenv("GOOGLE_API_KEY"))
    has_project = bool(os.getenv("GOOGLE_CLOUD_PROJECT"))
    if LLM_PROVIDER == "gemini":
        llm_ready = has_google_key or has_project
    else:
        llm_ready = has_openai_key

    return {
        "status": "healthy",
        "service": "FrameLord API",
        "version": APP_VERSION,
        "timestamp": datetime.now(UTC).isoformat(),
        "llm": {
            "ready": llm_ready,
            "provider": LLM_PROVIDER,
            "openai_api_key": has_openai_key,
            "google_api_key": has_google_key,
            "google_cloud_project": has_project,
        },
    }


@router.get("/api/health/integrations", response_model=IntegrationsResponse)
async def integrations_health() -> IntegrationsResponse:
    checks = {name: check() for name, check in INTEGRATION_CHECKS.items()}
    overall = "ok" if all(c.status == "ok" for c in checks.values()) else "degraded"
    return IntegrationsResponse(
        status=overall,
        timestamp=datetime.now(UTC).isoformat(),
        checks=checks,
    )
