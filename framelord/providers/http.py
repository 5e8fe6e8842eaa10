"""
Shared outbound HTTP plumbing for third-party providers.

Every provider (Stripe, Twilio, SendGrid, NanoBanana, OpenAI, Gemini) is
reached over plain HTTPS with httpx. send_request() normalizes transport
failures and non-2xx responses into ProviderRequestError so routes can map
them to 502/503 in one place.
"""

from __future__ import annotations

from typing import Any

import httpx
from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_exponential

from framelord.config import HTTP_TIMEOUT_SECONDS
from framelord.observability.logging import get_logger
from framelord.observability.telemetry import counter, time_block

logger = get_logger(__name__)

RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})


class ProviderError(RuntimeError):
    def __init__(self, message: str, provider: str, status_code: int = 500):
        super().__init__(message)
        self.provider = provider
        self.status_code = status_code


class ProviderNotConfiguredError(ProviderError):
    """Credentials for a provider are missing or malformed (HTTP 500)."""

    def __init__(self, provider: str, message: str | None = None):
        super().__init__(message or f"{provider} not configured", provider, status_code=500)


class ProviderRequestError(ProviderError):
    """The provider was unreachable (503) or answered with an error (502)."""

    def __init__(
        self,
        message: str,
        provider: str,
        status_code: int = 502,
        upstream_status: int | None = None,
    ):
        super().__init__(message, provider, status_code=status_code)
        self.upstream_status = upstream_status

    @property
    def retryable(self) -> bool:
        return self.upstream_status is None or self.upstream_status in RETRYABLE_STATUS_CODES


def _is_retryable(exc: BaseException) -> bool:
    return isinstance(exc, ProviderRequestError) and exc.retryable


def _error_message(response: httpx.Response) -> str:
    """Pull the provider's error message out of the common JSON shapes."""
    try:
        data = response.json()
    except ValueError:
        return response.text[:200] or f"HTTP {response.status_code}"

    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str):
            return error
        if data.get("message"):
            return str(data["message"])
        errors = data.get("errors")
        if isinstance(errors, list) and errors and isinstance(errors[0], dict):
            return str(errors[0].get("message", "Unknown error"))
    return f"HTTP {response.status_code}"


async def _send_once(
    provider: str,
    method: str,
    url: str,
    transport: httpx.AsyncBaseTransport | None,
    **kwargs: Any,
) -> httpx.Response:
    async with httpx.AsyncClient(transport=transport, timeout=HTTP_TIMEOUT_SECONDS) as client:
        try:
            response = await client.request(method, url, **kwargs)
        except httpx.TimeoutException as e:
            counter(f"provider.{provider}.timeout")
            logger.warning("%s request timed out", provider)
            raise ProviderRequestError(
                f"{provider} request timed out", provider, status_code=503
            ) from e
        except httpx.RequestError as e:
            counter(f"provider.{provider}.network_error")
            logger.error("%s request failed: %s", provider, e)
            raise ProviderRequestError(
                f"{provider} request failed", provider, status_code=503
            ) from e

    if response.is_error:
        message = _error_message(response)
        counter(f"provider.{provider}.http_{response.status_code}")
        logger.error("%s returned %d: %s", provider, response.status_code, message)
        raise ProviderRequestError(
            message, provider, status_code=502, upstream_status=response.status_code
        )

    return response


async def send_request(
    provider: str,
    method: str,
    url: str,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
    attempts: int = 1,
    **kwargs: Any,
) -> httpx.Response:
    """
    Send one provider request, retrying 429/5xx/network failures when attempts > 1.

    Args:
        provider: Short provider name used in logs and counters
        transport: Optional httpx transport (tests inject httpx.MockTransport)
        attempts: Total attempts; keep at 1 for non-idempotent calls

    Raises:
        ProviderRequestError: Network failure (503) or non-2xx response (502)
    """
    response: httpx.Response | None = None
    with time_block(f"provider.{provider}.latency"):
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(max(attempts, 1)),
            wait=wait_exponential(multiplier=0.5, min=0.5, max=8),
            retry=retry_if_exception(_is_retryable),
            reraise=True,
        ):
            with attempt:
                response = await _send_once(provider, method, url, transport, **kwargs)

    assert response is not None
    counter(f"provider.{provider}.success")
    return response
