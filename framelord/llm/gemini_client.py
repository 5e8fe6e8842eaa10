"""
Gemini generateContent over HTTPS (API-key auth).

Serves the /api/llm/gemini/chat and /api/llm/gemini/analyze proxies.
Server-side inference that runs through the Gemini SDK uses
framelord.llm.gemini and framelord.llm.retry instead.
"""

from __future__ import annotations

import os
from typing import Any

import httpx

from framelord.config import LLM_MAX_RETRIES
from framelord.observability.logging import get_logger
from framelord.observability.telemetry import counter
from framelord.providers.http import ProviderNotConfiguredError, send_request

logger = get_logger(__name__)

GEMINI_API_BASE = "https://generativelanguage.googleapis.com/v1beta/models"
DEFAULT_CHAT_MODEL = "gemini-2.0-flash"
DEFAULT_CHAT_TEMPERATURE = 0.7
DEFAULT_ANALYZE_TEMPERATURE = 0.1


def _generation_config(temperature: float, json_output: bool = False) -> dict[str, Any]:
    config: dict[str, Any] = {
        "temperature": temperature,
        "topP": 0.95,
        "topK": 40,
        "maxOutputTokens": 8192,
    }
    if json_output:
        config["responseMimeType"] = "application/json"
    return config


def build_chat_contents(messages: Any) -> list[dict[str, Any]]:
    """
    Convert [{role, content}] into Gemini contents.

    Any role other than "user" is sent as "model".

    Raises:
        ValueError: If messages is empty or malformed
    """
    if not isinstance(messages, list) or not messages:
        raise ValueError("messages array required")

    contents = []
    for index, message in enumerate(messages):
        if not isinstance(message, dict) or not isinstance(message.get("content"), str):
            raise ValueError(f"messages[{index}] must have string content")
        role = "user" if message.get("role") == "user" else "model"
        contents.append({"role": role, "parts": [{"text": message["content"]}]})
    return contents


def extract_text(data: dict[str, Any]) -> str:
    """First candidate's first text part, or "" when the response is empty."""
    candidates = data.get("candidates") or []
    if not candidates:
        return ""
    parts = (candidates[0].get("content") or {}).get("parts") or []
    if not parts:
        return ""
    return parts[0].get("text") or ""


class GeminiHTTPClient:
    """Async client for generativelanguage.googleapis.com."""

    def __init__(
        self,
        api_key: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = (
            api_key
            if api_key is not None
            else os.getenv("GEMINI_API_KEY", os.getenv("GOOGLE_API_KEY", ""))
        )
        self.transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    async def _generate(self, model: str, body: dict[str, Any]) -> str:
        if not self.configured:
            raise ProviderNotConfiguredError("gemini", "API key not configured")

        response = await send_request(
            "gemini",
            "POST",
            f"{GEMINI_API_BASE}/{model}:generateContent",
            transport=self.transport,
            attempts=LLM_MAX_RETRIES,
            params={"key": self.api_key},
            json=body,
        )
        counter("llm.gemini.completions")
        return extract_text(response.json())

    async def chat(
        self,
        messages: list[dict[str, str]],
        model: str | None = None,
        temperature: float | None = None,
        system_instruction: str | None = None,
    ) -> dict[str, str]:
        """
        Multi-turn chat.

        Returns:
            {"text": ..., "model": ...}
        """
        contents = build_chat_contents(messages)
        model = model or DEFAULT_CHAT_MODEL
        body: dict[str, Any] = {
            "contents": contents,
            "generationConfig": _generation_config(
                DEFAULT_CHAT_TEMPERATURE if temperature is None else temperature
            ),
        }
        if system_instruction:
            body["systemInstruction"] = {"parts": [{"text": system_instruction}]}

        text = await self._generate(model, body)
        return {"text": text, "model": model}

    async def analyze(
        self,
        prompt: str,
        model: str | None = None,
        system_instruction: str | None = None,
        media_base64: str | None = None,
        media_mime_type: str | None = None,
    ) -> dict[str, str]:
        """
        Single-shot analysis with optional inline media; asks for JSON output.
        Media parts go before the text part.
        """
        if not prompt:
            raise ValueError("prompt required")

        parts: list[dict[str, Any]] = []
        if media_base64 and media_mime_type:
            parts.append({"inlineData": {"mimeType": media_mime_type, "data": media_base64}})
        parts.append({"text": prompt})

        model = model or DEFAULT_CHAT_MODEL
        body: dict[str, Any] = {
            "contents": [{"role": "user", "parts": parts}],
            "generationConfig": _generation_config(DEFAULT_ANALYZE_TEMPERATURE, json_output=True),
        }
        if system_instruction:
            body["systemInstruction"] = {"parts": [{"text": system_instruction}]}

        text = await self._generate(model, body)
        return {"text": text, "model": model}


def get_gemini_http_client() -> GeminiHTTPClient:
    return GeminiHTTPClient()
