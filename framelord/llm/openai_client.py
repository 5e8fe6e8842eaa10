"""
OpenAI chat completions over HTTPS.

Backs the /api/llm/openai proxy and is the default LLM for FrameScan and
psychometric inference. Network failures and 429/5xx answers are retried
with exponential backoff (LLM_MAX_RETRIES attempts).
"""

from __future__ import annotations

import os
from typing import Any

import httpx

from framelord.config import LLM_MAX_RETRIES, OPENAI_MODEL, OPENAI_TEMPERATURE
from framelord.observability.logging import get_logger
from framelord.observability.telemetry import counter
from framelord.providers.http import ProviderNotConfiguredError, send_request

logger = get_logger(__name__)

OPENAI_CHAT_URL = "https://api.openai.com/v1/chat/completions"
OPENAI_TRANSCRIBE_URL = "https://api.openai.com/v1/audio/transcriptions"

VALID_ROLES = frozenset({"system", "user", "assistant"})


def validate_messages(messages: Any) -> list[dict[str, str]]:
    """
    Check a chat message list.

    Raises:
        ValueError: If messages is empty, not a list, or has malformed entries
    """
    if not isinstance(messages, list) or not messages:
        raise ValueError("messages must be a non-empty array")

    cleaned: list[dict[str, str]] = []
    for index, message in enumerate(messages):
        if not isinstance(message, dict):
            raise ValueError(f"messages[{index}] must be an object")
        role = message.get("role")
        content = message.get("content")
        if role not in VALID_ROLES:
            raise ValueError(f"messages[{index}].role must be one of system, user, assistant")
        if not isinstance(content, str):
            raise ValueError(f"messages[{index}].content must be a string")
        cleaned.append({"role": role, "content": content})
    return cleaned


class OpenAIClient:
    """Thin async client for the OpenAI chat completions endpoint."""

    def __init__(
        self,
        api_key: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key if api_key is not None else os.getenv("OPENAI_API_KEY", "")
        self.transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    async def chat_completion(
        self,
        messages: list[dict[str, str]],
        model: str | None = None,
        temperature: float | None = None,
    ) -> dict[str, str]:
        """
        Run a chat completion.

        Returns:
            {"text": first choice content or "", "model": model used}

        Raises:
            ValueError: Invalid messages
            ProviderNotConfiguredError: OPENAI_API_KEY missing
            ProviderRequestError: Upstream failure after retries
        """
        cleaned = validate_messages(messages)
        if not self.configured:
            raise ProviderNotConfiguredError("openai", "OpenAI API key not configured")

        model = model or OPENAI_MODEL
        payload = {
            "model": model,
            "messages": cleaned,
            "temperature": OPENAI_TEMPERATURE if temperature is None else temperature,
        }

        response = await send_request(
            "openai",
            "POST",
            OPENAI_CHAT_URL,
            transport=self.transport,
            attempts=LLM_MAX_RETRIES,
            headers={"Authorization": f"Bearer {self.api_key}"},
            json=payload,
        )
        data = response.json()

        choices = data.get("choices") or []
        text = ""
        if choices:
            text = (choices[0].get("message") or {}).get("content") or ""

        counter("llm.openai.completions")
        logger.debug("OpenAI completion: model=%s chars=%d", model, len(text))
        return {"text": text, "model": data.get("model", model)}

    async def transcribe(self, body: bytes, content_type: str) -> dict[str, str]:
        """
        Forward a multipart audio upload to Whisper unchanged.

        The caller's multipart body (file, model and any options) and its
        boundary-bearing Content-Type are passed through as-is.

        Returns:
            {"text": transcript or ""}

        Raises:
            ProviderNotConfiguredError: OPENAI_API_KEY missing
            ValueError: content_type is not multipart/form-data, or the body is empty
            ProviderRequestError: Upstream failure after retries
        """
        if not self.configured:
            raise ProviderNotConfiguredError("openai", "OpenAI API key not configured")
        if "multipart/form-data" not in (content_type or ""):
            raise ValueError("Content-Type must be multipart/form-data")
        if not body:
            raise ValueError("Audio upload is empty")

        response = await send_request(
            "openai",
            "POST",
            OPENAI_TRANSCRIBE_URL,
            transport=self.transport,
            attempts=LLM_MAX_RETRIES,
            headers={"Authorization": f"Bearer {self.api_key}", "Content-Type": content_type},
            content=body,
        )
        text = response.json().get("text") or ""

        counter("llm.openai.transcriptions")
        logger.debug("OpenAI transcription: bytes=%d chars=%d", len(body), len(text))
        return {"text": text}

    async def complete_text(self, messages: list[dict[str, str]]) -> str:
        """LLM-caller interface used by FrameScan and psychometric inference."""
        result = await self.chat_completion(messages)
        return result["text"]


def get_openai_client() -> OpenAIClient:
    """FastAPI dependency; tests override it with a MockTransport-backed client."""
    return OpenAIClient()
