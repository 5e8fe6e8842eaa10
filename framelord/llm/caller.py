"""
Pluggable LLM caller for server-side inference.

FrameScan and psychometric inference only need "messages in, text out".
LLMCaller is that contract; get_llm_caller() picks OpenAI over HTTPS or the
Gemini SDK based on FRAMELORD_LLM_PROVIDER.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

from framelord.infrastructure.settings import LLM_PROVIDER
from framelord.llm.openai_client import OpenAIClient

LLMCaller = Callable[[list[dict[str, str]]], Awaitable[str]]


async def gemini_sdk_caller(messages: list[dict[str, str]]) -> str:
    """Run chat-style messages through the Gemini SDK (system messages become the instruction)."""
    from framelord.llm.retry import call_llm

    system_parts = [m["content"] for m in messages if m.get("role") == "system"]
    user_parts = [m["content"] for m in messages if m.get("role") != "system"]

    return await asyncio.to_thread(
        call_llm,
        "\n\n".join(user_parts),
        "inference",
        "\n\n".join(system_parts) or None,
    )


def get_llm_caller() -> LLMCaller:
    """FastAPI dependency returning the configured LLM caller."""
    if LLM_PROVIDER == "gemini":
        return gemini_sdk_caller
    return OpenAIClient().complete_text
