"""Unit tests for plans, Stripe signatures, the billing repository and Stripe sessions

Tests cover:
- Feature gating across beta and production tiers
- Price id mapping from STRIPE_PRICE_* environment variables
- Stripe-Signature parsing and verification (rotation, tolerance)
- construct_event behaviour with and without a webhook secret
- Tenant billing state transitions
- Checkout / portal session requests
"""

from __future__ import annotations

import asyncio
import json
import time
from datetime import timedelta
from urllib.parse import parse_qs

import httpx
import pytest

from framelord.billing import plans, repository
from framelord.billing.models import utc_now
from framelord.billing.signature import (
    SignatureVerificationError,
    compute_signature,
    construct_event,
    parse_signature_header,
    verify_signature,
)
from framelord.billing.stripe_client import StripeClient
from framelord.observability.telemetry import get_counter
from framelord.providers.http import ProviderNotConfiguredError

SECRET = "whsec_test"
PAYLOAD = json.dumps({"id": "evt_1", "type": "invoice.paid"})


def _header(payload=PAYLOAD, secret=SECRET, timestamp=None, extra=""):
    timestamp = int(time.time()) if timestamp is None else timestamp
    return f"t={timestamp},{extra}v1={compute_signature(secret, timestamp, payload)}"


class TestPlans:
    @pytest.mark.parametrize(
        ("tier", "feature", "allowed"),
        [
            ("beta_free", "notes_tab", True),
            ("beta_free", "network_health", False),
            ("basic", "network_health", True),
            ("pro", "ai_personality_inference", True),
            ("beta_plus", "ai_personality_inference", False),
            ("elite", "api_access", True),
            ("enterprise_beta", "api_access", True),
            ("pro", "unknown_feature", False),
            ("elite", "unknown_feature", True),
        ],
    )
    def test_can_use_feature(self, tier, feature, allowed):
        assert plans.can_use_feature(tier, feature) is allowed

    def test_features_for_tier(self):
        free = plans.get_features_for_tier("beta_free")
        assert "framescan_tab" in free
        assert "sms_notifications" not in free
        assert set(free) < set(plans.get_features_for_tier("ultra_beta"))

    def test_beta_to_production(self):
        assert plans.beta_to_production_tier("beta_plus") == "basic"
        assert plans.beta_to_production_tier("ultra_beta") == "pro"
        assert plans.beta_to_production_tier("enterprise_beta") == "elite"
        assert plans.beta_to_production_tier("pro") == "pro"
        assert plans.beta_to_production_tier("mystery") == "basic"

    def test_price_ids_read_from_env(self, monkeypatch):
        assert plans.get_stripe_price_ids() == {}

        monkeypatch.setenv("STRIPE_PRICE_BASIC", "price_basic")
        monkeypatch.setenv("STRIPE_PRICE_PRO", "price_pro")

        assert plans.get_stripe_price_ids() == {"basic": "price_basic", "pro": "price_pro"}
        assert plans.plan_for_price_id("price_pro") == "pro"
        assert plans.plan_for_price_id("price_other") is None
        assert plans.plan_for_price_id(None) is None


class TestSignature:
    def test_parse_header(self):
        assert parse_signature_header("t=100, v1=abc, v0=old, v1=def") == (100, ["abc", "def"])

    @pytest.mark.parametrize(
        ("header", "message"),
        [
            (None, "Missing"),
            ("", "Missing"),
            ("v1=abc", "no timestamp"),
            ("t=100", "no v1"),
            ("t=soon,v1=abc", "Invalid signature timestamp"),
        ],
    )
    def test_parse_header_errors(self, header, message):
        with pytest.raises(SignatureVerificationError, match=message):
            parse_signature_header(header)

    def test_valid_signature(self):
        assert verify_signature(PAYLOAD, _header(), SECRET)
        assert verify_signature(PAYLOAD.encode(), _header(), SECRET)

    def test_any_matching_v1_is_accepted(self):
        assert verify_signature(PAYLOAD, _header(extra="v1=deadbeef,"), SECRET)

    def test_mismatch(self):
        with pytest.raises(SignatureVerificationError, match="No signatures found"):
            verify_signature(PAYLOAD, _header(secret="whsec_other"), SECRET)
        assert get_counter("webhook.signature_mismatch") == 1

    def test_tampered_payload(self):
        with pytest.raises(SignatureVerificationError):
            verify_signature(PAYLOAD + " ", _header(), SECRET)

    def test_stale_timestamp(self):
        now = time.time()
        header = _header(timestamp=int(now) - 600)

        with pytest.raises(SignatureVerificationError, match="tolerance zone"):
            verify_signature(PAYLOAD, header, SECRET, tolerance=300, now=now)
        assert verify_signature(PAYLOAD, header, SECRET, tolerance=0, now=now)

    def test_construct_event_verified(self):
        assert construct_event(PAYLOAD, _header(), SECRET)["id"] == "evt_1"

    def test_construct_event_without_secret_in_development(self):
        assert construct_event(PAYLOAD, None, None)["type"] == "invoice.paid"

    def test_construct_event_without_secret_in_production(self, monkeypatch):
        monkeypatch.setenv("FRAMELORD_ENV", "production")
        with pytest.raises(SignatureVerificationError, match="not configured"):
            construct_event(PAYLOAD, None, "")

    @pytest.mark.parametrize("body", ["not json", "[1, 2]"])
    def test_construct_event_invalid_body(self, body):
        with pytest.raises(ValueError, match="Invalid webhook payload"):
            construct_event(body, None, None)


class TestBillingRepository:
    def test_unknown_tenant_reads_default_state(self):
        billing = repository.get_tenant_billing("tenant_new")

        assert billing.current_plan_tier == "beta_free"
        assert billing.billing_status == "none"
        assert not repository.has_active_subscription("tenant_new")

    def test_initialize_is_idempotent(self):
        first = repository.initialize_tenant_billing("t1", "beta_plus")
        again = repository.initialize_tenant_billing("t1", "elite")

        assert first.current_plan_tier == "beta_plus"
        assert again.current_plan_tier == "beta_plus"

    def test_checkout_then_status_changes(self):
        billing = repository.update_billing_from_checkout("t1", "cus_1", "sub_1", "pro")
        subscribed_at = billing.subscribed_at

        assert repository.has_active_subscription("t1")
        assert repository.get_current_plan_tier("t1") == "pro"

        repository.update_subscription_status("t1", "past_due")
        assert repository.is_past_due("t1")

        # A second checkout keeps the original subscribed_at
        again = repository.update_billing_from_checkout("t1", "cus_1", "sub_2", "elite")
        assert again.subscribed_at == subscribed_at
        assert repository.TenantBillingRepository.find_tenant_by_subscription("sub_2") == "t1"
        assert repository.TenantBillingRepository.find_tenant_by_customer("cus_1") == "t1"

    def test_cancel_keeps_tier_until_period_end(self):
        repository.update_billing_from_checkout("t1", "cus_1", "sub_1", "basic")
        now = utc_now()

        repository.handle_subscription_canceled("t1", now + timedelta(days=10))

        assert repository.get_current_plan_tier("t1") == "basic"
        assert repository.is_canceled_but_valid("t1", now=now)
        assert not repository.is_canceled_but_valid("t1", now=now + timedelta(days=11))

    def test_downgrade_clears_subscription(self):
        repository.update_billing_from_checkout("t1", "cus_1", "sub_1", "pro")

        billing = repository.downgrade_to_free_tier("t1")

        assert billing.current_plan_tier == "beta_free"
        assert billing.billing_status == "none"
        assert billing.stripe_subscription_id is None
        assert billing.stripe_customer_id == "cus_1"

    def test_update_plan_tier(self):
        repository.update_plan_tier("t1", "elite")
        assert repository.get_tenant_billing("t1").current_plan_tier == "elite"

    def test_reset(self):
        repository.update_plan_tier("t1", "elite")
        repository.update_plan_tier("t2", "pro")

        repository.reset_billing_state("t1")
        assert repository.get_current_plan_tier("t1") == "beta_free"
        assert repository.get_current_plan_tier("t2") == "pro"

        repository.reset_billing_state()
        assert repository.get_current_plan_tier("t2") == "beta_free"


class TestStripeClient:
    def test_checkout_session(self, transport, monkeypatch):
        monkeypatch.setenv("STRIPE_PRICE_PRO", "price_pro")
        mock = transport(
            lambda request: httpx.Response(
                200, json={"id": "cs_123", "url": "https://checkout.stripe.com/cs_123"}
            )
        )
        client = StripeClient(secret_key="sk_test_1", transport=mock)

        result = asyncio.run(
            client.create_checkout_session("pro", "ann@example.com", "tenant_1", "user_1")
        )

        assert result == {"session_id": "cs_123", "url": "https://checkout.stripe.com/cs_123"}
        request = mock.requests[0]
        assert request.url.path == "/v1/checkout/sessions"
        assert request.headers["Authorization"] == "Bearer sk_test_1"
        form = parse_qs(request.content.decode())
        assert form["line_items[0][price]"] == ["price_pro"]
        assert form["metadata[tenantId]"] == ["tenant_1"]
        assert form["mode"] == ["subscription"]

    def test_checkout_requires_price(self):
        client = StripeClient(secret_key="sk_test_1")
        with pytest.raises(ValueError, match="No price configured"):
            asyncio.run(client.create_checkout_session("elite", "a@b.c", "t", "u"))

    def test_requires_secret_key(self):
        assert not StripeClient(secret_key="pk_live_wrong").configured
        with pytest.raises(ProviderNotConfiguredError):
            asyncio.run(StripeClient(secret_key="").create_portal_session("cus_1"))

    def test_portal_session(self, transport):
        mock = transport(
            lambda request: httpx.Response(200, json={"url": "https://billing.stripe.com/p"})
        )
        client = StripeClient(secret_key="sk_test_1", transport=mock)

        result = asyncio.run(client.create_portal_session("cus_1", return_url="https://app/x"))

        assert result == {"url": "https://billing.stripe.com/p"}
        form = parse_qs(mock.requests[0].content.decode())
        assert form == {"customer": ["cus_1"], "return_url": ["https://app/x"]}
