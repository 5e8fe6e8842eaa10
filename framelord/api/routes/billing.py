"""
Stripe billing endpoints.

- POST /api/stripe/checkout: start a subscription checkout
- POST /api/stripe/portal: open the customer billing portal
- POST /api/stripe/webhook: receive Stripe events (signature-verified)
- GET  /api/stripe/billing/{tenant_id}: stored billing state
- GET  /api/stripe/features/{tenant_id}/{feature}: feature gate check
"""

from __future__ import annotations

import os
from typing import Any

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from pydantic import BaseModel, ConfigDict, Field

from framelord.api.errors import bad_request, provider_http_error
from framelord.api.middleware.auth import require_admin_auth
from framelord.billing.models import TenantBilling
from framelord.billing.plans import (
    PLAN_NAMES,
    can_use_feature,
    get_features_for_tier,
    get_required_tier,
    is_production_tier,
)
from framelord.billing.repository import (
    get_tenant_billing,
    has_active_subscription,
    is_canceled_but_valid,
    reset_billing_state,
)
from framelord.billing.signature import SignatureVerificationError, construct_event
from framelord.billing.stripe_client import StripeClient, get_stripe_client
from framelord.billing.webhook import handle_stripe_event
from framelord.observability.logging import get_logger
from framelord.observability.telemetry import counter
from framelord.providers.http import ProviderError

router = APIRouter(prefix="/api/stripe", tags=["billing"])
logger = get_logger(__name__)


# ============================================================================
# Request/Response Models
# ============================================================================


class CheckoutRequest(BaseModel):
    """Missing fields are reported as 400, not 422, so every field is optional here."""

    model_config = ConfigDict(populate_by_name=True)

    plan: str | None = None
    email: str | None = None
    tenant_id: str | None = Field(default=None, alias="tenantId")
    user_id: str | None = Field(default=None, alias="userId")
    success_url: str | None = Field(default=None, alias="successUrl")
    cancel_url: str | None = Field(default=None, alias="cancelUrl")


class CheckoutResponse(BaseModel):
    session_id: str
    url: str


class PortalRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    stripe_customer_id: str | None = Field(default=None, alias="stripeCustomerId")
    tenant_id: str | None = Field(default=None, alias="tenantId")
    return_url: str | None = Field(default=None, alias="returnUrl")


class PortalResponse(BaseModel):
    url: str


class BillingStateResponse(BaseModel):
    billing: TenantBilling
    plan_name: str
    has_active_subscription: bool
    is_canceled_but_valid: bool
    features: list[str]


class FeatureCheckResponse(BaseModel):
    feature: str
    allowed: bool
    tier: str
    required_tier: str | None


# ============================================================================
# Checkout / Portal
# ============================================================================


@router.post("/checkout", response_model=CheckoutResponse)
async def create_checkout(
    request: CheckoutRequest,
    stripe: StripeClient = Depends(get_stripe_client),
) -> CheckoutResponse:
    missing = [
        name
        for name, value in (
            ("plan", request.plan),
            ("email", request.email),
            ("tenantId", request.tenant_id),
            ("userId", request.user_id),
        )
        if not value
    ]
    if missing:
        raise HTTPException(
            status_code=400, detail=f"Missing required fields: {', '.join(missing)}"
        )
    if not is_production_tier(request.plan):
        raise HTTPException(status_code=400, detail=f"Invalid plan: {request.plan}")

    try:
        session = await stripe.create_checkout_session(
            plan=request.plan,
            email=request.email,
            tenant_id=request.tenant_id,
            user_id=request.user_id,
            success_url=request.success_url,
            cancel_url=request.cancel_url,
        )
    except ValueError as e:
        raise bad_request(e) from None
    except ProviderError as e:
        raise provider_http_error(e) from None

    return CheckoutResponse(**session)


@router.post("/portal", response_model=PortalResponse)
async def create_portal(
    request: PortalRequest,
    stripe: StripeClient = Depends(get_stripe_client),
) -> PortalResponse:
    """Use stripeCustomerId, or look it up from the tenant's billing row."""
    customer_id = request.stripe_customer_id
    if not customer_id and request.tenant_id:
        customer_id = get_tenant_billing(request.tenant_id).stripe_customer_id
    if not customer_id:
        raise HTTPException(status_code=400, detail="No Stripe customer for this tenant")

    try:
        session = await stripe.create_portal_session(customer_id, return_url=request.return_url)
    except ProviderError as e:
        raise provider_http_error(e) from None

    return PortalResponse(**session)


# ============================================================================
# Webhook
# ============================================================================


@router.post("/webhook")
async def stripe_webhook(
    request: Request,
    stripe_signature: str | None = Header(None, alias="Stripe-Signature"),
) -> dict[str, Any]:
    """
    Receive a Stripe event.

    The raw body is verified against STRIPE_WEBHOOK_SECRET before it is
    parsed; a handler failure returns 400 so Stripe retries the delivery.
    """
    payload = await request.body()
    secret = os.getenv("STRIPE_WEBHOOK_SECRET", "")

    if secret and not stripe_signature:
        counter("webhook.signature_missing")
        raise HTTPException(status_code=400, detail="Missing Stripe-Signature header")

    try:
        event = construct_event(payload, stripe_signature, secret)
    except SignatureVerificationError as e:
        counter("webhook.signature_invalid")
        logger.warning("Stripe webhook signature verification failed: %s", e)
        raise HTTPException(
            status_code=400, detail="Webhook signature verification failed"
        ) from None
    except ValueError as e:
        raise bad_request(e) from None

    result = handle_stripe_event(event)
    if not result.success:
        raise HTTPException(status_code=400, detail=result.error or "Webhook handling failed")

    return {"received": True, **result.model_dump()}


# ============================================================================
# Billing state
# ============================================================================


@router.get("/billing/{tenant_id}", response_model=BillingStateResponse)
async def billing_state(tenant_id: str) -> BillingStateResponse:
    billing = get_tenant_billing(tenant_id)
    return BillingStateResponse(
        billing=billing,
        plan_name=PLAN_NAMES.get(billing.current_plan_tier, billing.current_plan_tier),
        has_active_subscription=has_active_subscription(tenant_id),
        is_canceled_but_valid=is_canceled_but_valid(tenant_id),
        features=get_features_for_tier(billing.current_plan_tier),
    )


@router.get("/features/{tenant_id}/{feature}", response_model=FeatureCheckResponse)
async def feature_check(tenant_id: str, feature: str) -> FeatureCheckResponse:
    tier = get_tenant_billing(tenant_id).current_plan_tier
    return FeatureCheckResponse(
        feature=feature,
        allowed=can_use_feature(tier, feature),
        tier=tier,
        required_tier=get_required_tier(feature),
    )


@router.delete("/billing/{tenant_id}")
async def reset_billing(
    tenant_id: str,
    authenticated: bool = Depends(require_admin_auth),
) -> dict[str, Any]:
    """Admin: drop the tenant's billing row (back to beta_free / none)."""
    reset_billing_state(tenant_id)
    logger.info("Billing state reset for tenant %s", tenant_id)
    return {"success": True, "tenant_id": tenant_id}
