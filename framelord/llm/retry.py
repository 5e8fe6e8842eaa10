"""Gemini SDK call with retry.

Transient SDK failures (deadline, unavailable, quota, internal) are converted
to TimeoutError/ConnectionError/OSError so tenacity can retry them. Other API
errors become a ProviderRequestError (502) and are not retried.
"""

from __future__ import annotations

from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from framelord.config import LLM_MAX_RETRIES, LLM_TIMEOUT_SECONDS
from framelord.infrastructure.settings import GEMINI_MAX_TOKENS, GEMINI_TEMPERATURE
from framelord.llm.gemini import get_gemini_model_with_options
from framelord.observability.logging import get_logger
from framelord.observability.telemetry import counter
from framelord.providers.http import ProviderRequestError

logger = get_logger(__name__)


@retry(
    stop=stop_after_attempt(LLM_MAX_RETRIES),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type((TimeoutError, ConnectionError, OSError)),
    reraise=True,
)
def call_llm(
    prompt: str,
    counter_prefix: str = "llm",
    system_instruction: str | None = None,
    json_output: bool = True,
) -> str:
    """Generate content with the shared Gemini model.

    Args:
        prompt: User content sent to the model
        counter_prefix: Telemetry prefix (framescan, psychometric)
        system_instruction: Optional system instruction
        json_output: Ask the model for application/json output

    Returns:
        The model's response text.

    Raises:
        TimeoutError / ConnectionError / OSError: Retryable SDK failures
        ProviderRequestError: Non-retryable API errors (bad argument, permission)
    """
    from google.api_core.exceptions import (
        DeadlineExceeded,
        GoogleAPICallError,
        InternalServerError,
        ResourceExhausted,
        ServiceUnavailable,
    )

    model = get_gemini_model_with_options(system_instruction=system_instruction)

    generation_config: dict[str, object] = {
        "temperature": GEMINI_TEMPERATURE,
        "max_output_tokens": GEMINI_MAX_TOKENS,
    }
    if json_output:
        generation_config["response_mime_type"] = "application/json"

    try:
        response = model.generate_content(prompt, generation_config=generation_config)
        counter(f"{counter_prefix}.gemini.success")
        return response.text
    except DeadlineExceeded as e:
        counter(f"{counter_prefix}.gemini.timeout")
        logger.warning("Gemini call timed out after %ds", LLM_TIMEOUT_SECONDS)
        raise TimeoutError(f"Gemini call timed out: {e}") from e
    except (ServiceUnavailable, InternalServerError) as e:
        counter(f"{counter_prefix}.gemini.unavailable")
        logger.warning("Gemini unavailable, will retry: %s", e)
        raise ConnectionError(f"Gemini unavailable: {e}") from e
    except ResourceExhausted as e:
        counter(f"{counter_prefix}.gemini.rate_limited")
        logger.warning("Gemini rate limited, will retry: %s", e)
        raise OSError(f"Gemini rate limited: {e}") from e
    except GoogleAPICallError as e:
        # InvalidArgument, PermissionDenied and similar: retrying cannot help
        counter(f"{counter_prefix}.gemini.rejected")
        logger.error("Gemini rejected the call: %s", e)
        raise ProviderRequestError(
            f"Gemini request failed: {e.message}",
            "gemini",
            status_code=502,
            upstream_status=e.code,
        ) from e
