"""
Stripe Checkout and Billing Portal sessions over the REST API.

Requests are form-encoded (Stripe does not take JSON bodies) and are sent
once: session creation is not idempotent, so failures are not retried.
"""

from __future__ import annotations

import os

import httpx

from framelord.billing.plans import get_stripe_price_ids
from framelord.config import BASE_URL
from framelord.observability.logging import get_logger
from framelord.observability.telemetry import counter
from framelord.providers.http import ProviderNotConfiguredError, send_request

logger = get_logger(__name__)

STRIPE_API_BASE = "https://api.stripe.com/v1"


class StripeClient:
    """Creates Checkout and Billing Portal sessions."""

    def __init__(
        self,
        secret_key: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.secret_key = (
            secret_key if secret_key is not None else os.getenv("STRIPE_SECRET_KEY", "")
        )
        self.transport = transport

    @property
    def configured(self) -> bool:
        return self.secret_key.startswith("sk_")

    def _require_configured(self) -> None:
        if not self.configured:
            raise ProviderNotConfiguredError("stripe", "Stripe not configured")

    async def _post(self, path: str, form: dict[str, str]) -> dict:
        response = await send_request(
            "stripe",
            "POST",
            f"{STRIPE_API_BASE}{path}",
            transport=self.transport,
            headers={"Authorization": f"Bearer {self.secret_key}"},
            data=form,
        )
        return response.json()

    async def create_checkout_session(
        self,
        plan: str,
        email: str,
        tenant_id: str,
        user_id: str,
        success_url: str | None = None,
        cancel_url: str | None = None,
    ) -> dict[str, str]:
        """
        Start a subscription checkout for a production plan.

        Returns:
            {"session_id": ..., "url": ...}

        Raises:
            ProviderNotConfiguredError: STRIPE_SECRET_KEY missing or not an sk_ key
            ValueError: No Stripe price configured for plan
            ProviderRequestError: Stripe rejected the request
        """
        self._require_configured()

        price_id = get_stripe_price_ids().get(plan)
        if not price_id:
            raise ValueError(f"No price configured for plan: {plan}")

        form = {
            "mode": "subscription",
            "line_items[0][price]": price_id,
            "line_items[0][quantity]": "1",
            "success_url": success_url or f"{BASE_URL}/dashboard?checkout=success",
            "cancel_url": cancel_url or f"{BASE_URL}/dashboard?checkout=canceled",
            "customer_email": email,
            "metadata[tenantId]": tenant_id,
            "metadata[userId]": user_id,
            "metadata[plan]": plan,
        }

        data = await self._post("/checkout/sessions", form)
        counter("stripe.checkout_session.created")
        logger.info("Stripe checkout session %s created for tenant %s", data.get("id"), tenant_id)
        return {"session_id": data.get("id", ""), "url": data.get("url", "")}

    async def create_portal_session(
        self, customer_id: str, return_url: str | None = None
    ) -> dict[str, str]:
        """
        Open a Billing Portal session for an existing customer.

        Raises:
            ProviderNotConfiguredError: STRIPE_SECRET_KEY missing or not an sk_ key
            ProviderRequestError: Stripe rejected the request
        """
        self._require_configured()

        form = {"customer": customer_id, "return_url": return_url or f"{BASE_URL}/dashboard"}
        data = await self._post("/billing_portal/sessions", form)
        counter("stripe.portal_session.created")
        logger.info("Stripe portal session created for customer %s", customer_id)
        return {"url": data.get("url", "")}


def get_stripe_client() -> StripeClient:
    """FastAPI dependency; tests override it with a MockTransport-backed client."""
    return StripeClient()
