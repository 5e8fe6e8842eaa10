"""
Plan tiers, price mapping and feature gating.

Beta tiers (beta_free .. enterprise_beta) are granted manually; production
tiers (basic, pro, elite) are sold through Stripe. Both share the same level
scale so feature gates work across them.
"""

from __future__ import annotations

import os
from enum import Enum


class PlanTier(str, Enum):
    BETA_FREE = "beta_free"
    BETA_PLUS = "beta_plus"
    ULTRA_BETA = "ultra_beta"
    ENTERPRISE_BETA = "enterprise_beta"
    BASIC = "basic"
    PRO = "pro"
    ELITE = "elite"


BETA_TIERS: frozenset[str] = frozenset(
    {"beta_free", "beta_plus", "ultra_beta", "enterprise_beta"}
)
PRODUCTION_TIERS: frozenset[str] = frozenset({"basic", "pro", "elite"})

PLAN_LEVELS: dict[str, int] = {
    "beta_free": 0,
    "beta_plus": 1,
    "ultra_beta": 2,
    "enterprise_beta": 3,
    "basic": 1,
    "pro": 2,
    "elite": 3,
}

PLAN_NAMES: dict[str, str] = {
    "beta_free": "Beta Free",
    "beta_plus": "Beta Plus",
    "ultra_beta": "Ultra Beta",
    "enterprise_beta": "Enterprise Beta",
    "basic": "Basic",
    "pro": "Pro",
    "elite": "Elite",
}

# Monthly price in cents
PLAN_PRICES: dict[str, int] = {
    "beta_free": 0,
    "beta_plus": 0,
    "ultra_beta": 0,
    "enterprise_beta": 0,
    "basic": 2900,
    "pro": 7900,
    "elite": 19900,
}

_BETA_TO_PRODUCTION: dict[str, str] = {
    "beta_free": "basic",
    "beta_plus": "basic",
    "ultra_beta": "pro",
    "enterprise_beta": "elite",
}

# Feature -> minimum tier that unlocks it
FEATURE_REQUIREMENTS: dict[str, str] = {
    # beta_free
    "preflight_briefing": "beta_free",
    "things_due_today": "beta_free",
    "live_feed": "beta_free",
    "frame_analytics": "beta_free",
    "apex_blueprint": "beta_free",
    "timeline_tab": "beta_free",
    "notes_tab": "beta_free",
    "tasks_tab": "beta_free",
    "framescan_tab": "beta_free",
    "task_reminders": "beta_free",
    # beta_plus
    "network_health": "beta_plus",
    "radar_widget": "beta_plus",
    "wants_streaks": "beta_plus",
    "personal_intel_card": "beta_plus",
    "mini_graph_card": "beta_plus",
    "ai_briefing_expanded": "beta_plus",
    "custom_domains": "beta_plus",
    "export_data": "beta_plus",
    "calendar_integration": "beta_plus",
    # ultra_beta
    "personality_tests_card": "ultra_beta",
    "next_move_card": "ultra_beta",
    "ai_talking_points": "ultra_beta",
    "ai_next_move_suggestions": "ultra_beta",
    "ai_personality_inference": "ultra_beta",
    "sms_notifications": "ultra_beta",
    "case_call_reminders": "ultra_beta",
    # enterprise_beta
    "call_analyzer_card": "enterprise_beta",
    "ai_call_analysis": "enterprise_beta",
    "api_access": "enterprise_beta",
    "team_collaboration": "enterprise_beta",
}

# Level required for features missing from FEATURE_REQUIREMENTS
UNKNOWN_FEATURE_LEVEL = 3


def is_beta_tier(tier: str) -> bool:
    return tier in BETA_TIERS


def is_production_tier(tier: str) -> bool:
    return tier in PRODUCTION_TIERS


def beta_to_production_tier(tier: str) -> str:
    """Production tier a beta user is offered when beta ends; production tiers map to themselves."""
    if is_production_tier(tier):
        return tier
    return _BETA_TO_PRODUCTION.get(tier, "basic")


def get_plan_level(tier: str) -> int:
    return PLAN_LEVELS.get(tier, 0)


def get_required_tier(feature: str) -> str | None:
    return FEATURE_REQUIREMENTS.get(feature)


def can_use_feature(tier: str, feature: str) -> bool:
    """True if tier's level reaches the level of the feature's required tier."""
    required = FEATURE_REQUIREMENTS.get(feature)
    required_level = PLAN_LEVELS[required] if required else UNKNOWN_FEATURE_LEVEL
    return get_plan_level(tier) >= required_level


def get_features_for_tier(tier: str) -> list[str]:
    return sorted(feature for feature in FEATURE_REQUIREMENTS if can_use_feature(tier, feature))


def get_stripe_price_ids() -> dict[str, str]:
    """Production tier -> Stripe price id, read from STRIPE_PRICE_* at call time."""
    prices = {
        "basic": os.getenv("STRIPE_PRICE_BASIC", ""),
        "pro": os.getenv("STRIPE_PRICE_PRO", ""),
        "elite": os.getenv("STRIPE_PRICE_ELITE", ""),
    }
    return {tier: price for tier, price in prices.items() if price}


def plan_for_price_id(price_id: str | None) -> str | None:
    """Reverse lookup of get_stripe_price_ids()."""
    if not price_id:
        return None
    for tier, configured in get_stripe_price_ids().items():
        if configured == price_id:
            return tier
    return None
