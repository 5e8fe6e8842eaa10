"""
Map domain and provider exceptions to HTTPException.

Routes catch what they expect and call one of these helpers so that status
codes and sanitized details stay the same across routers.
"""

from __future__ import annotations

from fastapi import HTTPException

from framelord.observability.telemetry import counter
from framelord.providers.http import ProviderError, ProviderNotConfiguredError
from framelord.utils.error_sanitizer import get_safe_error_detail, sanitize_error_message


def bad_request(error: Exception) -> HTTPException:
    return HTTPException(status_code=400, detail=sanitize_error_message(str(error), 400))


def not_found(error: Exception) -> HTTPException:
    return HTTPException(status_code=404, detail=sanitize_error_message(str(error), 404))


def provider_http_error(error: ProviderError) -> HTTPException:
    """
    500 for missing configuration, 502/503 for upstream failures.

    The upstream message is logged by get_safe_error_detail() and never
    returned; clients see "<Provider> not configured" or a generic 5xx text.
    """
    counter(f"api.provider_error.{error.provider}")
    if isinstance(error, ProviderNotConfiguredError):
        detail = get_safe_error_detail(error, error.status_code, context=str(error))
    else:
        detail = get_safe_error_detail(error, error.status_code)
    return HTTPException(status_code=error.status_code, detail=detail)
