"""Per-domain priority axes and display labels."""

from __future__ import annotations

DOMAIN_PRIORITY_AXES: dict[str, tuple[str, ...]] = {
    "generic": ("assumptive_state", "buyer_seller_position", "win_win_integrity"),
    "sales_email": (
        "buyer_seller_position",
        "internal_sale",
        "win_win_integrity",
        "persuasion_style",
    ),
    "dating_message": (
        "pedestalization",
        "assumptive_state",
        "self_trust_vs_permission",
        "win_win_integrity",
    ),
    "leadership_update": (
        "assumptive_state",
        "identity_vs_tactic",
        "field_strength",
        "win_win_integrity",
    ),
    "social_post": ("field_strength", "identity_vs_tactic", "persuasion_style"),
    "profile_photo": (
        "assumptive_state",
        "pedestalization",
        "field_strength",
        "buyer_seller_position",
    ),
    "team_photo": ("field_strength", "win_win_integrity", "assumptive_state"),
    "landing_page_hero": ("buyer_seller_position", "persuasion_style", "field_strength"),
    "social_post_image": ("field_strength", "pedestalization", "identity_vs_tactic"),
}

DOMAIN_LABELS: dict[str, str] = {
    "generic": "Generic text scan",
    "sales_email": "Sales email scan",
    "dating_message": "Dating message scan",
    "leadership_update": "Leadership update scan",
    "social_post": "Social post scan",
    "profile_photo": "Profile photo scan",
    "team_photo": "Team photo scan",
    "landing_page_hero": "Landing page hero scan",
    "social_post_image": "Social post image scan",
}


def get_priority_axes(domain: str) -> tuple[str, ...]:
    """Priority axes for domain; unknown domains have none."""
    return DOMAIN_PRIORITY_AXES.get(domain, ())


def get_domain_label(domain: str) -> str:
    return DOMAIN_LABELS.get(domain, "Frame scan")
