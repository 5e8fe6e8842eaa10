"""
FrameScan vocabulary and result models.

Axis scores run from -3 (strong slave) to +3 (strong apex). score_to_band()
maps a score onto the five named bands.
"""

from __future__ import annotations

from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class FrameAxisId(str, Enum):
    ASSUMPTIVE_STATE = "assumptive_state"
    BUYER_SELLER_POSITION = "buyer_seller_position"
    IDENTITY_VS_TACTIC = "identity_vs_tactic"
    INTERNAL_SALE = "internal_sale"
    WIN_WIN_INTEGRITY = "win_win_integrity"
    PERSUASION_STYLE = "persuasion_style"
    PEDESTALIZATION = "pedestalization"
    SELF_TRUST_VS_PERMISSION = "self_trust_vs_permission"
    FIELD_STRENGTH = "field_strength"


class WinWinState(str, Enum):
    WIN_WIN = "win_win"
    WIN_LOSE = "win_lose"
    LOSE_LOSE = "lose_lose"
    NEUTRAL = "neutral"


class FrameBand(str, Enum):
    STRONG_SLAVE = "strong_slave"
    MILD_SLAVE = "mild_slave"
    NEUTRAL = "neutral"
    MILD_APEX = "mild_apex"
    STRONG_APEX = "strong_apex"


class OverallFrame(str, Enum):
    APEX = "apex"
    SLAVE = "slave"
    MIXED = "mixed"


class AnnotationSeverity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


AXIS_IDS: tuple[str, ...] = tuple(axis.value for axis in FrameAxisId)
WIN_WIN_STATES: tuple[str, ...] = tuple(state.value for state in WinWinState)
BANDS: tuple[str, ...] = tuple(band.value for band in FrameBand)
OVERALL_FRAMES: tuple[str, ...] = tuple(frame.value for frame in OverallFrame)

TEXT_DOMAIN_IDS: tuple[str, ...] = (
    "generic",
    "sales_email",
    "dating_message",
    "leadership_update",
    "social_post",
)
IMAGE_DOMAIN_IDS: tuple[str, ...] = (
    "profile_photo",
    "team_photo",
    "landing_page_hero",
    "social_post_image",
)
DOMAIN_IDS: tuple[str, ...] = TEXT_DOMAIN_IDS + IMAGE_DOMAIN_IDS

APEX_BANDS = frozenset({FrameBand.MILD_APEX.value, FrameBand.STRONG_APEX.value})
SLAVE_BANDS = frozenset({FrameBand.MILD_SLAVE.value, FrameBand.STRONG_SLAVE.value})

Modality = Literal["text", "image"]


def is_text_domain(domain: str) -> bool:
    return domain in TEXT_DOMAIN_IDS


def is_image_domain(domain: str) -> bool:
    return domain in IMAGE_DOMAIN_IDS


def score_to_band(score: float) -> str:
    if score <= -2:
        return FrameBand.STRONG_SLAVE.value
    if score <= -0.5:
        return FrameBand.MILD_SLAVE.value
    if score <= 0.5:
        return FrameBand.NEUTRAL.value
    if score <= 2:
        return FrameBand.MILD_APEX.value
    return FrameBand.STRONG_APEX.value


class FrameAxisScore(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    axis_id: FrameAxisId
    score: int = Field(..., ge=-3, le=3)
    band: FrameBand
    notes: str = ""


class FrameScanDiagnostics(BaseModel):
    primary_patterns: list[str] = Field(default_factory=list)
    supporting_evidence: list[str] = Field(default_factory=list)


class FrameCorrectionShift(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    axis_id: str
    shift: str
    protocol_steps: list[str] = Field(default_factory=list)


class FrameSampleRewrite(BaseModel):
    purpose: str
    apex_version: str


class FrameCorrections(BaseModel):
    top_shifts: list[FrameCorrectionShift] = Field(default_factory=list)
    sample_rewrites: list[FrameSampleRewrite] = Field(default_factory=list)


class FrameScanResult(BaseModel):
    """What the LLM analysis produces for one text or image."""

    model_config = ConfigDict(use_enum_values=True)

    modality: Modality
    domain: str
    status: Literal["ok", "rejected"] = "ok"
    rejection_reason: str | None = None
    title: str | None = None
    overall_frame: OverallFrame = OverallFrame.MIXED
    overall_win_win_state: WinWinState = WinWinState.NEUTRAL
    axes: list[FrameAxisScore] = Field(default_factory=list)
    diagnostics: FrameScanDiagnostics = Field(default_factory=FrameScanDiagnostics)
    corrections: FrameCorrections = Field(default_factory=FrameCorrections)


class WeightedAxisScore(BaseModel):
    axis_id: str
    raw_score: int
    normalized_score: float
    weight: int
    band: str


class FrameScore(BaseModel):
    """0-100 aggregate score with its breakdown."""

    frame_score: int = Field(..., ge=0, le=100)
    overall_frame: str
    overall_win_win_state: str
    domain: str
    axis_scores: list[WeightedAxisScore] = Field(default_factory=list)
    weighted_axis_score: float
    notes: list[str] = Field(default_factory=list)


class ImageAnnotation(BaseModel):
    """A callout on an image region; coordinates are fractions of the image (0-1)."""

    model_config = ConfigDict(use_enum_values=True)

    id: str
    label: str
    description: str
    severity: AnnotationSeverity = AnnotationSeverity.INFO
    x: float = Field(..., ge=0, le=1)
    y: float = Field(..., ge=0, le=1)
    width: float = Field(..., ge=0, le=1)
    height: float = Field(..., ge=0, le=1)
