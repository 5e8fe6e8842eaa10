"""
Gemini SDK model manager.

Holds one shared GenerativeModel for server-side inference when
FRAMELORD_LLM_PROVIDER=gemini. Two SDK backends are supported:
  1. Vertex AI (google-cloud-aiplatform) when GOOGLE_CLOUD_PROJECT is set
  2. google-generativeai with GOOGLE_API_KEY otherwise
"""

from __future__ import annotations

import os
from functools import lru_cache
from typing import Any

from framelord.infrastructure.settings import GEMINI_LOCATION, GEMINI_MODEL
from framelord.observability.logging import get_logger

logger = get_logger(__name__)

# "vertexai" or "genai" once a backend has been initialized
_backend: str | None = None


class GeminiInitializationError(RuntimeError):
    """Raised when no Gemini SDK backend can be initialized."""


def _model_name() -> str:
    return os.getenv("GEMINI_MODEL") or GEMINI_MODEL


def _init_vertex() -> Any | None:
    project = os.getenv("GOOGLE_CLOUD_PROJECT")
    if not project:
        return None

    try:
        import vertexai
        from vertexai.generative_models import GenerativeModel
    except ImportError:
        logger.info("GOOGLE_CLOUD_PROJECT set but google-cloud-aiplatform is not installed")
        return None

    location = os.getenv("GEMINI_LOCATION") or GEMINI_LOCATION
    vertexai.init(project=project, location=location)
    logger.info(
        "Initialized Gemini (Vertex AI): project=%s location=%s model=%s",
        project,
        location,
        _model_name(),
    )
    return GenerativeModel(_model_name())


def _init_genai() -> Any | None:
    api_key = os.getenv("GOOGLE_API_KEY")
    if not api_key:
        return None

    try:
        import google.generativeai as genai
    except ImportError:
        logger.info("GOOGLE_API_KEY set but google-generativeai is not installed")
        return None

    genai.configure(api_key=api_key)
    logger.info("Initialized Gemini (google-generativeai): model=%s", _model_name())
    return genai.GenerativeModel(_model_name())


@lru_cache(maxsize=1)
def get_gemini_model() -> Any:
    """
    Shared GenerativeModel with no system instruction.

    Raises:
        GeminiInitializationError: If neither backend is usable
    """
    global _backend

    try:
        model = _init_vertex()
        if model is not None:
            _backend = "vertexai"
            return model

        model = _init_genai()
        if model is not None:
            _backend = "genai"
            return model
    except Exception as e:
        logger.error("Failed to initialize Gemini model: %s", e)
        raise GeminiInitializationError(f"Failed to initialize Gemini: {e}") from e

    raise GeminiInitializationError(
        "No Gemini backend available. Set GOOGLE_CLOUD_PROJECT (Vertex AI) "
        "or GOOGLE_API_KEY (google-generativeai)."
    )


def get_gemini_model_with_options(system_instruction: str | None = None) -> Any:
    """
    Model carrying a system instruction.

    System instructions are bound per model instance, so a fresh model is
    built when one is given; otherwise the cached singleton is returned.
    """
    base = get_gemini_model()
    if system_instruction is None:
        return base

    if _backend == "vertexai":
        from vertexai.generative_models import GenerativeModel

        return GenerativeModel(_model_name(), system_instruction=system_instruction)

    import google.generativeai as genai

    return genai.GenerativeModel(_model_name(), system_instruction=system_instruction)


def clear_model_cache() -> None:
    """Forget the cached model (tests, credential rotation)."""
    global _backend
    get_gemini_model.cache_clear()
    _backend = None
