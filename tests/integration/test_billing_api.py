"""Integration tests for health, Stripe billing and credit endpoints

Tests cover:
- /health and /api/health/integrations
- Checkout / portal validation and provider errors
- Signed webhook delivery end to end (including duplicates)
- Billing state and feature gates
- Credit balance, image scan charges (402) and admin-only changes
"""

from __future__ import annotations

import json
import time

import httpx

from framelord.billing.repository import update_billing_from_checkout
from framelord.billing.signature import compute_signature
from framelord.billing.stripe_client import StripeClient, get_stripe_client

WEBHOOK_SECRET = "whsec_integration"


def _signed(body: dict) -> tuple[str, dict[str, str]]:
    payload = json.dumps(body)
    timestamp = int(time.time())
    signature = compute_signature(WEBHOOK_SECRET, timestamp, payload)
    return payload, {
        "Stripe-Signature": f"t={timestamp},v1={signature}",
        "Content-Type": "application/json",
    }


def _checkout_event(event_id="evt_1"):
    return {
        "id": event_id,
        "type": "checkout.session.completed",
        "data": {
            "object": {
                "customer": "cus_1",
                "subscription": "sub_1",
                "metadata": {"tenantId": "tenant_1", "plan": "elite"},
            }
        },
    }


class TestHealth:
    def test_root(self, client):
        body = client.get("/").json()
        assert body["service"] == "FrameLord API"
        assert body["endpoints"]["framescan"] == "/api/framescan"

    def test_health(self, client, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")

        response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["llm"]["provider"] == "openai"
        assert body["llm"]["ready"] is True
        assert response.headers["X-Frame-Options"] == "DENY"

    def test_integrations_degraded_without_keys(self, client):
        body = client.get("/api/health/integrations").json()

        assert body["status"] == "degraded"
        assert body["checks"]["stripe"]["status"] == "missing"
        assert body["checks"]["twilio"]["details"].startswith("Missing: TWILIO_ACCOUNT_SID")

    def test_integrations_key_shapes(self, client, monkeypatch):
        monkeypatch.setenv("STRIPE_SECRET_KEY", "pk_test_wrong")
        monkeypatch.setenv("OPENAI_API_KEY", "sk-ok")
        monkeypatch.setenv("TWILIO_ACCOUNT_SID", "XX123")
        monkeypatch.setenv("TWILIO_AUTH_TOKEN", "token")
        monkeypatch.setenv("TWILIO_FROM_NUMBER", "+15550001111")

        checks = client.get("/api/health/integrations").json()["checks"]

        assert checks["stripe"]["status"] == "invalid"
        assert checks["openai"]["status"] == "ok"
        assert checks["twilio"]["status"] == "invalid"


class TestCheckout:
    def test_missing_fields(self, client):
        response = client.post("/api/stripe/checkout", json={"plan": "pro"})

        assert response.status_code == 400
        assert response.json()["detail"] == "Missing required fields: email, tenantId, userId"

    def test_invalid_plan(self, client):
        response = client.post(
            "/api/stripe/checkout",
            json={"plan": "beta_plus", "email": "a@b.co", "tenantId": "t", "userId": "u"},
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid plan: beta_plus"

    def test_stripe_not_configured(self, client):
        response = client.post(
            "/api/stripe/checkout",
            json={"plan": "pro", "email": "a@b.co", "tenantId": "t", "userId": "u"},
        )
        assert response.status_code == 500
        assert response.json()["detail"] == "Stripe not configured"

    def test_checkout_session(self, client, transport, monkeypatch):
        monkeypatch.setenv("STRIPE_PRICE_PRO", "price_pro")
        mock = transport(
            lambda request: httpx.Response(200, json={"id": "cs_1", "url": "https://pay/cs_1"})
        )
        client.app.dependency_overrides[get_stripe_client] = lambda: StripeClient(
            secret_key="sk_test_1", transport=mock
        )

        response = client.post(
            "/api/stripe/checkout",
            json={"plan": "pro", "email": "a@b.co", "tenantId": "t", "userId": "u"},
        )

        assert response.status_code == 200
        assert response.json() == {"session_id": "cs_1", "url": "https://pay/cs_1"}

    def test_upstream_failure_is_sanitized(self, client, transport, monkeypatch):
        monkeypatch.setenv("STRIPE_PRICE_PRO", "price_pro")
        mock = transport(
            lambda request: httpx.Response(
                400, json={"error": {"message": "No such price: 'price_pro' for sk_test_1"}}
            )
        )
        client.app.dependency_overrides[get_stripe_client] = lambda: StripeClient(
            secret_key="sk_test_1", transport=mock
        )

        response = client.post(
            "/api/stripe/checkout",
            json={"plan": "pro", "email": "a@b.co", "tenantId": "t", "userId": "u"},
        )

        assert response.status_code == 502
        assert "price_pro" not in response.json()["detail"]

    def test_portal_looks_up_customer(self, client, transport):
        update_billing_from_checkout("tenant_1", "cus_9", "sub_9", "pro")
        mock = transport(lambda request: httpx.Response(200, json={"url": "https://portal"}))
        client.app.dependency_overrides[get_stripe_client] = lambda: StripeClient(
            secret_key="sk_test_1", transport=mock
        )

        response = client.post("/api/stripe/portal", json={"tenantId": "tenant_1"})

        assert response.json() == {"url": "https://portal"}
        assert b"customer=cus_9" in mock.requests[0].content

    def test_portal_without_customer(self, client):
        response = client.post("/api/stripe/portal", json={"tenantId": "tenant_nobody"})
        assert response.status_code == 400


class TestWebhook:
    def test_signed_event_updates_billing(self, client, monkeypatch):
        monkeypatch.setenv("STRIPE_WEBHOOK_SECRET", WEBHOOK_SECRET)
        payload, headers = _signed(_checkout_event())

        response = client.post("/api/stripe/webhook", content=payload, headers=headers)

        assert response.status_code == 200
        assert response.json()["received"] is True
        assert response.json()["duplicate"] is False

        state = client.get("/api/stripe/billing/tenant_1").json()
        assert state["billing"]["current_plan_tier"] == "elite"
        assert state["plan_name"] == "Elite"
        assert state["has_active_subscription"] is True
        assert "api_access" in state["features"]

        again = client.post("/api/stripe/webhook", content=payload, headers=headers)
        assert again.json()["duplicate"] is True

    def test_missing_signature(self, client, monkeypatch):
        monkeypatch.setenv("STRIPE_WEBHOOK_SECRET", WEBHOOK_SECRET)

        response = client.post("/api/stripe/webhook", content=json.dumps(_checkout_event()))

        assert response.status_code == 400
        assert response.json()["detail"] == "Missing Stripe-Signature header"

    def test_bad_signature(self, client, monkeypatch):
        monkeypatch.setenv("STRIPE_WEBHOOK_SECRET", WEBHOOK_SECRET)
        payload, headers = _signed(_checkout_event())

        response = client.post("/api/stripe/webhook", content=payload + " ", headers=headers)

        assert response.status_code == 400
        assert response.json()["detail"] == "Webhook signature verification failed"

    def test_unverified_in_development(self, client):
        response = client.post("/api/stripe/webhook", content=json.dumps(_checkout_event()))
        assert response.status_code == 200

    def test_handler_failure_returns_400(self, client):
        event = {"id": "evt_2", "type": "invoice.payment_failed", "data": {"object": {}}}

        response = client.post("/api/stripe/webhook", content=json.dumps(event))

        assert response.status_code == 400
        assert "cannot identify tenant" in response.json()["detail"]

    def test_feature_check(self, client):
        body = client.get("/api/stripe/features/tenant_1/sms_notifications").json()
        assert body == {
            "feature": "sms_notifications",
            "allowed": False,
            "tier": "beta_free",
            "required_tier": "ultra_beta",
        }

    def test_reset_requires_admin_key(self, client, monkeypatch):
        update_billing_from_checkout("tenant_1", "cus_1", "sub_1", "pro")
        monkeypatch.setenv("FRAMELORD_ADMIN_API_KEY", "admin-key")

        assert client.delete("/api/stripe/billing/tenant_1").status_code == 401
        response = client.delete(
            "/api/stripe/billing/tenant_1", headers={"Authorization": "Bearer admin-key"}
        )
        assert response.json() == {"success": True, "tenant_id": "tenant_1"}
        state = client.get("/api/stripe/billing/tenant_1").json()
        assert state["billing"]["current_plan_tier"] == "beta_free"


class TestCredits:
    def test_catalog(self, client):
        assert len(client.get("/api/credits/packages").json()) == 4
        assert client.get("/api/credits/costs").json() == {
            "text": 0,
            "image": {"basic": 0, "detailed": 5},
        }

    def test_balance_and_use(self, client):
        assert client.get("/api/credits/tenant_1").json()["available"] == 10

        response = client.post("/api/credits/tenant_1/use", json={"tier": "detailed"})
        assert response.json()["available"] == 5

        client.post("/api/credits/tenant_1/use", json={"tier": "detailed"})
        response = client.post("/api/credits/tenant_1/use", json={"tier": "detailed"})
        assert response.status_code == 402
        assert response.json()["detail"] == "Insufficient credits: detailed scan costs 5"

        transactions = client.get("/api/credits/tenant_1/transactions").json()
        assert [t["amount"] for t in transactions] == [-5, -5]

    def test_unknown_tier(self, client):
        response = client.post("/api/credits/tenant_1/use", json={"tier": "premium"})
        assert response.status_code == 400

    def test_admin_changes(self, client, monkeypatch):
        monkeypatch.setenv("FRAMELORD_ADMIN_API_KEY", "admin-key")
        admin = {"Authorization": "Bearer admin-key"}

        denied = client.post("/api/credits/tenant_1/purchase", json={"packageId": "pkg_pro"})
        assert denied.status_code == 401

        response = client.post(
            "/api/credits/tenant_1/purchase", json={"packageId": "pkg_pro"}, headers=admin
        )
        assert response.json()["available"] == 110

        response = client.post(
            "/api/credits/tenant_1/bonus", json={"amount": 5, "reason": "Promo"}, headers=admin
        )
        assert response.json()["balance"]["bonus_credits"] == 5

        invalid = client.post(
            "/api/credits/tenant_1/refund", json={"amount": 0, "reason": "x"}, headers=admin
        )
        assert invalid.status_code == 422

        unknown = client.post(
            "/api/credits/tenant_1/purchase", json={"packageId": "pkg_x"}, headers=admin
        )
        assert unknown.status_code == 400

        client.delete("/api/credits/tenant_1", headers=admin)
        assert client.get("/api/credits/tenant_1").json()["available"] == 10
