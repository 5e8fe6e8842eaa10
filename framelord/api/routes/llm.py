"""
LLM and image-annotation proxies.

Keeps provider keys server-side. Each call is charged against the caller's
daily LLM budget before it is forwarded.

- POST /api/llm/openai: OpenAI chat completion
- POST /api/llm/openai/transcribe: OpenAI Whisper transcription (multipart passthrough)
- POST /api/llm/gemini: Gemini multi-turn chat
- POST /api/llm/gemini/analyze: Gemini single-shot analysis (optional media)
- POST /api/annotate: NanoBanana image annotation
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, ConfigDict, Field

from framelord.api.dependencies import charge_llm_budget, get_client_id
from framelord.api.errors import bad_request, provider_http_error
from framelord.llm.gemini_client import GeminiHTTPClient, get_gemini_http_client
from framelord.llm.openai_client import OpenAIClient, get_openai_client
from framelord.messaging.annotate import NanoBananaClient, get_nanobanana_client
from framelord.providers.http import ProviderError

router = APIRouter(prefix="/api", tags=["llm"])


# ============================================================================
# Request/Response Models
# ============================================================================


class OpenAIChatRequest(BaseModel):
    # Shape is checked by the client so malformed messages are a 400
    messages: Any = None
    model: str | None = None
    temperature: float | None = Field(default=None, ge=0, le=2)


class GeminiChatRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    messages: Any = None
    system_instruction: str | None = Field(default=None, alias="systemInstruction")
    model: str | None = None
    temperature: float | None = Field(default=None, ge=0, le=2)


class GeminiAnalyzeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    prompt: str | None = None
    system_instruction: str | None = Field(default=None, alias="systemInstruction")
    model: str | None = None
    media_base64: str | None = Field(default=None, alias="mediaBase64")
    media_mime_type: str | None = Field(default=None, alias="mediaMimeType")


class CompletionResponse(BaseModel):
    text: str
    model: str


class TranscriptionResponse(BaseModel):
    text: str


class AnnotateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    image_url: str | None = Field(default=None, alias="imageUrl")
    image_base64: str | None = Field(default=None, alias="imageBase64")
    prompt: str | None = None


# ============================================================================
# Endpoints
# ============================================================================


@router.post("/llm/openai", response_model=CompletionResponse)
async def openai_chat(
    request: OpenAIChatRequest,
    client_id: str = Depends(get_client_id),
    openai: OpenAIClient = Depends(get_openai_client),
) -> CompletionResponse:
    charge_llm_budget(client_id, "openai_proxy")
    try:
        result = await openai.chat_completion(
            request.messages, model=request.model, temperature=request.temperature
        )
    except ValueError as e:
        raise bad_request(e) from None
    except ProviderError as e:
        raise provider_http_error(e) from None
    return CompletionResponse(**result)


@router.post("/llm/openai/transcribe", response_model=TranscriptionResponse)
async def openai_transcribe(
    request: Request,
    client_id: str = Depends(get_client_id),
    openai: OpenAIClient = Depends(get_openai_client),
) -> TranscriptionResponse:
    """Whisper transcription; the multipart body is forwarded unparsed."""
    charge_llm_budget(client_id, "openai_transcribe")
    try:
        result = await openai.transcribe(
            await request.body(), request.headers.get("content-type", "")
        )
    except ValueError as e:
        raise bad_request(e) from None
    except ProviderError as e:
        raise provider_http_error(e) from None
    return TranscriptionResponse(**result)


@router.post("/llm/gemini", response_model=CompletionResponse)
async def gemini_chat(
    request: GeminiChatRequest,
    client_id: str = Depends(get_client_id),
    gemini: GeminiHTTPClient = Depends(get_gemini_http_client),
) -> CompletionResponse:
    charge_llm_budget(client_id, "gemini_proxy")
    try:
        result = await gemini.chat(
            request.messages,
            model=request.model,
            temperature=request.temperature,
            system_instruction=request.system_instruction,
        )
    except ValueError as e:
        raise bad_request(e) from None
    except ProviderError as e:
        raise provider_http_error(e) from None
    return CompletionResponse(**result)


@router.post("/llm/gemini/analyze", response_model=CompletionResponse)
async def gemini_analyze(
    request: GeminiAnalyzeRequest,
    client_id: str = Depends(get_client_id),
    gemini: GeminiHTTPClient = Depends(get_gemini_http_client),
) -> CompletionResponse:
    charge_llm_budget(client_id, "gemini_proxy")
    try:
        result = await gemini.analyze(
            request.prompt or "",
            model=request.model,
            system_instruction=request.system_instruction,
            media_base64=request.media_base64,
            media_mime_type=request.media_mime_type,
        )
    except ValueError as e:
        raise bad_request(e) from None
    except ProviderError as e:
        raise provider_http_error(e) from None
    return CompletionResponse(**result)


@router.post("/annotate")
async def annotate(
    request: AnnotateRequest,
    annotator: NanoBananaClient = Depends(get_nanobanana_client),
) -> dict[str, Any]:
    try:
        return await annotator.annotate_image(
            image_url=request.image_url,
            image_base64=request.image_base64,
            prompt=request.prompt,
        )
    except ValueError as e:
        raise bad_request(e) from None
    except ProviderError as e:
        raise provider_http_error(e) from None
