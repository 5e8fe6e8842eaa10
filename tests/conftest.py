"""Shared pytest fixtures for FrameLord tests.

The API module initializes the database on import, so FRAMELORD_DB_PATH must
point at a scratch location before anything imports framelord.api.app.
Each test then gets its own fresh SQLite file and cleared in-memory state.
"""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path

os.environ["FRAMELORD_DB_PATH"] = str(
    Path(tempfile.mkdtemp(prefix="framelord-tests-")) / "framelord.db"
)
os.environ["FRAMELORD_ENV"] = "development"
os.environ["FRAMELORD_LLM_PROVIDER"] = "openai"
# The API suite sends far more than 60 requests a minute from one client
os.environ["FRAMELORD_RATE_LIMIT_RPM"] = "100000"
os.environ["FRAMELORD_RATE_LIMIT_RPH"] = "100000"

import httpx  # noqa: E402
import pytest  # noqa: E402

from framelord.framescan.public_gate import reset_public_scan  # noqa: E402
from framelord.framescan.throttle import reset_scan_count  # noqa: E402
from framelord.infrastructure.database import init_database, reset_pool  # noqa: E402
from framelord.infrastructure.llm_budget import reset_budgets  # noqa: E402
from framelord.observability.telemetry import reset_counters, reset_latencies  # noqa: E402

PROVIDER_ENV_VARS = (
    "FRAMELORD_ADMIN_API_KEY",
    "STRIPE_SECRET_KEY",
    "STRIPE_WEBHOOK_SECRET",
    "STRIPE_PRICE_BASIC",
    "STRIPE_PRICE_PRO",
    "STRIPE_PRICE_ELITE",
    "OPENAI_API_KEY",
    "GOOGLE_API_KEY",
    "GEMINI_API_KEY",
    "TWILIO_ACCOUNT_SID",
    "TWILIO_AUTH_TOKEN",
    "TWILIO_PHONE_NUMBER",
    "TWILIO_FROM_NUMBER",
    "SENDGRID_API_KEY",
    "SENDGRID_FROM_EMAIL",
    "NANOBANANA_API_KEY",
)


@pytest.fixture(autouse=True)
def isolated_state(tmp_path, monkeypatch):
    """Fresh database and empty in-memory counters for every test."""
    monkeypatch.setenv("FRAMELORD_DB_PATH", str(tmp_path / "framelord.db"))
    for var in PROVIDER_ENV_VARS:
        monkeypatch.delenv(var, raising=False)

    reset_pool()
    init_database()
    reset_scan_count()
    reset_public_scan()
    reset_budgets()
    reset_counters()
    reset_latencies()

    yield

    reset_pool()


@pytest.fixture
def client():
    """TestClient over the real app; dependency overrides are cleared afterwards."""
    from fastapi.testclient import TestClient

    from framelord.api.app import app

    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def make_scan_result(
    modality: str = "text",
    domain: str = "generic",
    score: int = 2,
    band: str = "mild_apex",
    win_win: str = "win_win",
) -> dict:
    """A valid camelCase FrameScan answer with every axis at the same score."""
    from framelord.framescan.types import AXIS_IDS

    return {
        "modality": modality,
        "domain": domain,
        "status": "ok",
        "title": "Confident follow-up email",
        "overallFrame": "apex",
        "overallWinWinState": win_win,
        "axes": [
            {"axisId": axis_id, "score": score, "band": band, "notes": f"{axis_id} looks solid"}
            for axis_id in AXIS_IDS
        ],
        "diagnostics": {
            "primaryPatterns": ["clear ask"],
            "supportingEvidence": ["States the next step directly"],
        },
        "corrections": {
            "topShifts": [
                {
                    "axisId": "assumptive_state",
                    "shift": "Assume the meeting",
                    "protocolSteps": ["Propose a time"],
                }
            ],
            "sampleRewrites": [{"purpose": "close", "apexVersion": "Tuesday at 3 works."}],
        },
    }


class FakeLLM:
    """Async LLMCaller stand-in that records the messages it was sent."""

    def __init__(self, *responses: str | dict | Exception):
        self.responses = list(responses)
        self.calls: list[list[dict[str, str]]] = []

    async def __call__(self, messages: list[dict[str, str]]) -> str:
        self.calls.append(messages)
        response = self.responses[min(len(self.calls), len(self.responses)) - 1]
        if isinstance(response, Exception):
            raise response
        if isinstance(response, dict):
            return json.dumps(response)
        return response


@pytest.fixture
def scan_result():
    return make_scan_result


@pytest.fixture
def fake_llm():
    return FakeLLM


def mock_transport(handler) -> httpx.MockTransport:
    """Wrap a request -> response function, recording every request on .requests."""
    requests: list[httpx.Request] = []

    def _handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return handler(request)

    transport = httpx.MockTransport(_handler)
    transport.requests = requests  # type: ignore[attr-defined]
    return transport


@pytest.fixture
def transport():
    return mock_transport
