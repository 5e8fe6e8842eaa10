"""
LLM budget tracking (in-memory, per process).

Caps LLM calls per user and globally per day so a runaway client cannot burn
through the OpenAI/Gemini quota. Counters live in a TTLCache and reset on
restart, which is acceptable for abuse prevention.

Budget limits:
- Per user: LLM_USER_DAILY_LIMIT calls per day (default 500)
- Global: LLM_GLOBAL_DAILY_LIMIT calls per day (default 10,000)
"""

from __future__ import annotations

from typing import NamedTuple

from cachetools import TTLCache

from framelord.config import LLM_GLOBAL_DAILY_LIMIT, LLM_USER_DAILY_LIMIT
from framelord.observability.logging import get_logger
from framelord.observability.telemetry import counter

logger = get_logger(__name__)

DEFAULT_USER_DAILY_LIMIT = LLM_USER_DAILY_LIMIT
DEFAULT_GLOBAL_DAILY_LIMIT = LLM_GLOBAL_DAILY_LIMIT

_DAY_SECONDS = 86400
_user_calls: TTLCache[str, int] = TTLCache(maxsize=10000, ttl=_DAY_SECONDS)
_global_counter: TTLCache[str, int] = TTLCache(maxsize=1, ttl=_DAY_SECONDS)
_GLOBAL_KEY = "__global__"


class BudgetStatus(NamedTuple):
    """Current budget status for a user."""

    user_calls_today: int
    user_limit: int
    global_calls_today: int
    global_limit: int
    is_allowed: bool
    reason: str | None


def check_budget(
    user_id: str,
    user_limit: int = DEFAULT_USER_DAILY_LIMIT,
    global_limit: int = DEFAULT_GLOBAL_DAILY_LIMIT,
) -> BudgetStatus:
    """
    Check whether user_id may make another LLM call today.

    Returns:
        BudgetStatus; is_allowed is False with a reason when a limit is hit
    """
    user_calls = _user_calls.get(user_id, 0)
    global_calls = _global_counter.get(_GLOBAL_KEY, 0)

    reason: str | None = None
    if user_calls >= user_limit:
        reason = f"User daily limit exceeded ({user_calls}/{user_limit})"
    elif global_calls >= global_limit:
        reason = f"Global daily limit exceeded ({global_calls}/{global_limit})"

    if reason:
        counter("llm.budget.denied")

    return BudgetStatus(
        user_calls_today=user_calls,
        user_limit=user_limit,
        global_calls_today=global_calls,
        global_limit=global_limit,
        is_allowed=reason is None,
        reason=reason,
    )


def record_llm_call(user_id: str, call_type: str = "chat") -> None:
    """
    Record one LLM call against the user and global budgets.

    Args:
        user_id: Caller identity (tenant id or client IP)
        call_type: framescan, psychometric, openai_proxy, gemini_proxy
    """
    _user_calls[user_id] = _user_calls.get(user_id, 0) + 1
    _global_counter[_GLOBAL_KEY] = _global_counter.get(_GLOBAL_KEY, 0) + 1

    counter(f"llm.budget.call.{call_type}")
    logger.debug("Recorded LLM call: user=%s, type=%s", user_id, call_type)


def reset_budgets() -> None:
    """Clear all counters (tests)."""
    _user_calls.clear()
    _global_counter.clear()
