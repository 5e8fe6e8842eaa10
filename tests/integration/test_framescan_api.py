"""Integration tests for the FrameScan endpoints

Tests cover:
- Text scan end to end with an injected LLM caller
- Error mapping (400 invalid input, 422 rejected, 429 throttle/budget, 502 bad answer)
- Public scan gate (one free scan per client, 403 afterwards, also for overlapping requests)
- Image scan with NanoBanana annotations, up-front credit charging (402) and refunds
- Report listing, lookup and deletion
"""

from __future__ import annotations

import asyncio

import httpx

from framelord.credits.repository import CreditRepository
from framelord.crm.contacts import ContactRepository
from framelord.framescan.throttle import get_scan_count, increment_scan_count
from framelord.infrastructure.llm_budget import record_llm_call
from framelord.llm.caller import get_llm_caller
from framelord.messaging.annotate import NanoBananaClient, get_nanobanana_client
from framelord.providers.http import ProviderNotConfiguredError, ProviderRequestError

CLIENT = {"X-Client-Id": "dash-1"}


def _use_llm(client, llm):
    client.app.dependency_overrides[get_llm_caller] = lambda: llm
    return llm


def _use_annotator(client, transport, payload=None):
    mock = transport(
        lambda request: httpx.Response(
            200,
            json=payload
            or {
                "annotations": [
                    {"label": "Eye contact", "x": 0.4, "y": 0.2, "width": 0.2, "height": 0.1}
                ],
                "annotatedImageUrl": "https://cdn.example.com/annotated.png",
            },
        )
    )
    client.app.dependency_overrides[get_nanobanana_client] = lambda: NanoBananaClient(
        api_key="nb_test", transport=mock
    )
    return mock


def _slow(llm, delay=0.05):
    """Hold each LLM call open so overlapping requests share the await window."""

    async def call(messages):
        await asyncio.sleep(delay)
        return await llm(messages)

    return call


def _post_concurrently(app, path, bodies, headers=None):
    async def run():
        async with httpx.AsyncClient(
            transport=httpx.ASGITransport(app=app), base_url="http://testserver"
        ) as http:
            return await asyncio.gather(
                *(http.post(path, json=body, headers=headers) for body in bodies)
            )

    return [response.status_code for response in asyncio.run(run())]


class TestTextScan:
    def test_scan_stores_report(self, client, fake_llm, scan_result):
        contact = ContactRepository.create_contact(full_name="Morgan Lee")
        llm = _use_llm(client, fake_llm(scan_result()))

        response = client.post(
            "/api/framescan/text",
            json={
                "content": "Let's meet Tuesday at 3 to sign.",
                "domain": "generic",
                "contactIds": [contact.id],
                "context": {"channel": "email"},
            },
            headers=CLIENT,
        )

        assert response.status_code == 200
        body = response.json()
        assert body["report"]["score"]["frame_score"] == 83
        assert body["report"]["subject_type"] == "contact"
        assert body["summary"].startswith("83/100")
        assert len(body["weakest_axes"]) == 3
        assert len(llm.calls) == 1

        stored = client.get(f"/api/framescan/reports?contactId={contact.id}").json()
        assert stored["total"] == 1
        assert ContactRepository.get_contact(contact.id).frame.current_score == 83

        session = client.get("/api/framescan/session/dash-1").json()
        assert session["scan_count"] == 1

    def test_empty_content(self, client, fake_llm, scan_result):
        llm = _use_llm(client, fake_llm(scan_result()))

        response = client.post("/api/framescan/text", json={"content": "  "}, headers=CLIENT)

        assert response.status_code == 400
        assert response.json()["detail"] == "content is required"
        assert llm.calls == []

    def test_unknown_domain(self, client, fake_llm, scan_result):
        _use_llm(client, fake_llm(scan_result()))

        response = client.post(
            "/api/framescan/text", json={"content": "hi", "domain": "tarot"}, headers=CLIENT
        )
        assert response.status_code == 400

    def test_rejected_content(self, client, fake_llm):
        _use_llm(
            client,
            fake_llm(
                {
                    "modality": "text",
                    "domain": "generic",
                    "status": "rejected",
                    "rejectionReason": "Not enough content",
                }
            ),
        )

        response = client.post("/api/framescan/text", json={"content": "ok"}, headers=CLIENT)

        assert response.status_code == 422
        assert response.json()["detail"] == {
            "error": "rejected",
            "rejection_reason": "Not enough content",
        }

    def test_unusable_answer(self, client, fake_llm):
        _use_llm(client, fake_llm("I'd rather not."))

        response = client.post("/api/framescan/text", json={"content": "hi"}, headers=CLIENT)

        assert response.status_code == 502
        assert response.json()["detail"] == "FrameScan analysis failed"

    def test_provider_not_configured(self, client, fake_llm):
        _use_llm(client, fake_llm(ProviderNotConfiguredError("openai", "OpenAI not configured")))

        response = client.post("/api/framescan/text", json={"content": "hi"}, headers=CLIENT)

        assert response.status_code == 500
        assert response.json()["detail"] == "OpenAI not configured"

    def test_network_failure(self, client, fake_llm):
        _use_llm(client, fake_llm(ConnectionError("unreachable")))

        response = client.post("/api/framescan/text", json={"content": "hi"}, headers=CLIENT)
        assert response.status_code == 503

    def test_session_throttle(self, client, fake_llm, scan_result):
        _use_llm(client, fake_llm(scan_result()))
        for _ in range(50):
            increment_scan_count("dash-1")

        response = client.post("/api/framescan/text", json={"content": "hi"}, headers=CLIENT)

        assert response.status_code == 429
        assert "Frame scan limit reached" in response.json()["detail"]

    def test_session_limit_holds_for_overlapping_requests(self, client, fake_llm, scan_result):
        llm = fake_llm(scan_result())
        _use_llm(client, _slow(llm))
        for _ in range(48):
            increment_scan_count("dash-1")

        codes = _post_concurrently(
            client.app, "/api/framescan/text", [{"content": "hi"}] * 5, headers=CLIENT
        )

        assert sorted(codes) == [200, 200, 429, 429, 429]
        assert len(llm.calls) == 2
        assert get_scan_count("dash-1") == 50

    def test_failed_scan_does_not_count(self, client, fake_llm):
        _use_llm(client, fake_llm("not json"))

        response = client.post("/api/framescan/text", json={"content": "hi"}, headers=CLIENT)

        assert response.status_code == 502
        assert get_scan_count("dash-1") == 0

    def test_provider_rejection_is_502(self, client, fake_llm):
        _use_llm(
            client,
            fake_llm(ProviderRequestError("Gemini request failed", "gemini", upstream_status=400)),
        )

        response = client.post("/api/framescan/text", json={"content": "hi"}, headers=CLIENT)

        assert response.status_code == 502

    def test_llm_budget(self, client, fake_llm, scan_result):
        llm = _use_llm(client, fake_llm(scan_result()))
        for _ in range(500):
            record_llm_call("dash-1")

        response = client.post("/api/framescan/text", json={"content": "hi"}, headers=CLIENT)

        assert response.status_code == 429
        assert response.json()["detail"].startswith("Daily AI usage limit")
        assert llm.calls == []

    def test_content_too_long(self, client, fake_llm, scan_result):
        _use_llm(client, fake_llm(scan_result()))

        response = client.post(
            "/api/framescan/text", json={"content": "x" * 20001}, headers=CLIENT
        )

        assert response.status_code == 422
        assert response.json()["invalid_fields"] == ["content"]


class TestPublicScan:
    def test_one_free_scan(self, client, fake_llm, scan_result):
        _use_llm(client, fake_llm(scan_result()))
        headers = {"X-Client-Id": "anon-42"}

        first = client.post("/api/framescan/public", json={"content": "hi"}, headers=headers)
        second = client.post("/api/framescan/public", json={"content": "hi"}, headers=headers)

        assert first.status_code == 200
        assert second.status_code == 403
        assert "already used" in second.json()["detail"]

    def test_overlapping_requests_get_one_free_scan(self, client, fake_llm, scan_result):
        llm = fake_llm(scan_result())
        _use_llm(client, _slow(llm))

        codes = _post_concurrently(
            client.app,
            "/api/framescan/public",
            [{"content": "hi"}] * 5,
            headers={"X-Client-Id": "anon-burst"},
        )

        assert sorted(codes) == [200, 403, 403, 403, 403]
        assert len(llm.calls) == 1

    def test_failed_scan_does_not_use_the_gate(self, client, fake_llm, scan_result):
        _use_llm(client, fake_llm("garbage", scan_result()))
        headers = {"X-Client-Id": "anon-7"}

        assert client.post("/api/framescan/public", json={"content": "hi"}, headers=headers).status_code == 502
        assert client.post("/api/framescan/public", json={"content": "hi"}, headers=headers).status_code == 200


class TestImageScan:
    def test_image_scan_charges_credits(self, client, fake_llm, scan_result, transport):
        _use_llm(client, fake_llm(scan_result(modality="image", domain="profile_photo")))
        _use_annotator(client, transport)

        response = client.post(
            "/api/framescan/image",
            json={
                "imageUrl": "https://cdn.example.com/me.png",
                "tier": "detailed",
                "tenantId": "tenant_1",
            },
            headers=CLIENT,
        )

        assert response.status_code == 200
        body = response.json()
        assert body["annotations"][0]["label"] == "Eye contact"
        assert body["annotated_image_url"] == "https://cdn.example.com/annotated.png"
        assert CreditRepository.get_available_credits("tenant_1") == 5
        txn = CreditRepository.list_transactions("tenant_1")[0]
        assert txn.scan_report_id == body["report"]["id"]

    def test_insufficient_credits(self, client, fake_llm, scan_result, transport):
        llm = _use_llm(client, fake_llm(scan_result(modality="image", domain="profile_photo")))
        annotator = _use_annotator(client, transport)
        CreditRepository.use_credits_for_scan("tenant_1", "detailed")
        CreditRepository.use_credits_for_scan("tenant_1", "detailed")

        response = client.post(
            "/api/framescan/image",
            json={
                "imageUrl": "https://cdn.example.com/me.png",
                "tier": "detailed",
                "tenantId": "tenant_1",
            },
        )

        assert response.status_code == 402
        assert llm.calls == []
        assert annotator.requests == []

    def test_overlapping_scans_cannot_overspend(self, client, fake_llm, scan_result, transport):
        llm = fake_llm(scan_result(modality="image", domain="profile_photo"))
        _use_llm(client, _slow(llm))
        _use_annotator(client, transport)
        body = {
            "imageUrl": "https://cdn.example.com/me.png",
            "tier": "detailed",
            "tenantId": "tenant_1",
        }

        codes = _post_concurrently(client.app, "/api/framescan/image", [body] * 4, headers=CLIENT)

        assert sorted(codes) == [200, 200, 402, 402]
        assert len(llm.calls) == 2
        assert CreditRepository.get_available_credits("tenant_1") == 0
        uses = [t for t in CreditRepository.list_transactions("tenant_1") if t.type == "use"]
        assert len(uses) == 2
        assert all(t.scan_report_id for t in uses)

    def test_failed_scan_is_refunded(self, client, fake_llm, transport):
        _use_llm(client, fake_llm("not json"))
        _use_annotator(client, transport)

        response = client.post(
            "/api/framescan/image",
            json={
                "imageUrl": "https://cdn.example.com/me.png",
                "tier": "detailed",
                "tenantId": "tenant_1",
            },
            headers=CLIENT,
        )

        assert response.status_code == 502
        assert CreditRepository.get_available_credits("tenant_1") == 10
        assert [t.type for t in CreditRepository.list_transactions("tenant_1")] == [
            "refund",
            "use",
        ]

    def test_annotator_not_configured(self, client, fake_llm, scan_result):
        _use_llm(client, fake_llm(scan_result(modality="image", domain="profile_photo")))

        response = client.post(
            "/api/framescan/image", json={"imageUrl": "https://cdn.example.com/me.png"}
        )

        assert response.status_code == 500
        assert response.json()["detail"] == "NanoBanana API key not configured"


class TestReports:
    def test_get_and_delete(self, client, fake_llm, scan_result):
        _use_llm(client, fake_llm(scan_result()))
        report_id = client.post(
            "/api/framescan/text", json={"content": "hi"}, headers=CLIENT
        ).json()["report"]["id"]

        fetched = client.get(f"/api/framescan/reports/{report_id}")
        assert fetched.status_code == 200
        assert fetched.json()["report"]["title"] == "Confident follow-up email"

        assert client.delete(f"/api/framescan/reports/{report_id}").json() == {
            "success": True,
            "id": report_id,
        }
        assert client.get(f"/api/framescan/reports/{report_id}").status_code == 404
        assert client.delete(f"/api/framescan/reports/{report_id}").status_code == 404
