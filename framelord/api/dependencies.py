"""Shared FastAPI dependencies."""

from __future__ import annotations

from fastapi import Header, HTTPException, Request

from framelord.api.middleware.rate_limit import get_client_ip
from framelord.infrastructure.llm_budget import check_budget, record_llm_call
from framelord.observability.logging import get_logger

logger = get_logger(__name__)


def get_client_id(
    request: Request,
    x_client_id: str | None = Header(None, alias="X-Client-Id"),
) -> str:
    """Anonymous caller identity: the dashboard's client id, else the client IP."""
    if x_client_id and x_client_id.strip():
        return x_client_id.strip()[:128]
    return get_client_ip(request)


def charge_llm_budget(client_id: str, call_type: str) -> None:
    """
    Count one LLM call against client_id's daily budget.

    Raises:
        HTTPException 429: User or global daily budget exhausted
    """
    budget = check_budget(client_id)
    if not budget.is_allowed:
        logger.warning("LLM budget exceeded for %s: %s", client_id, budget.reason)
        raise HTTPException(
            status_code=429,
            detail="Daily AI usage limit reached. Please try again tomorrow.",
        )
    record_llm_call(client_id, call_type)
