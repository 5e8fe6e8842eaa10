"""
FrameScan scoring.

Each axis score (-3..3) is normalized to 0-100 and averaged with weight 2 for
the domain's priority axes and 1 otherwise. The Win/Win state then subtracts
a fixed penalty and the result is clamped to 0-100.
"""

from __future__ import annotations

import math

from framelord.framescan.domains import get_priority_axes
from framelord.framescan.types import (
    APEX_BANDS,
    SLAVE_BANDS,
    FrameAxisScore,
    FrameScanResult,
    FrameScore,
    OverallFrame,
    WeightedAxisScore,
)

NEUTRAL_SCORE = 50.0

WIN_WIN_PENALTIES: dict[str, int] = {
    "win_win": 0,
    "neutral": 5,
    "win_lose": 15,
    "lose_lose": 30,
}


def normalize_axis_score(score: float) -> float:
    clamped = max(-3.0, min(3.0, score))
    return (clamped + 3) / 6 * 100


def axis_weight(axis_id: str, domain: str) -> int:
    return 2 if axis_id in get_priority_axes(domain) else 1


def _round_half_up(value: float) -> int:
    # Built-in round() sends .5 to the even neighbour; scores round .5 up
    return math.floor(value + 0.5)


def apply_win_win_adjustment(base_score: float, win_win_state: str) -> float:
    adjusted = base_score - WIN_WIN_PENALTIES.get(win_win_state, 0)
    return max(0.0, min(100.0, adjusted))


def _band_counts(axes: list[FrameAxisScore]) -> tuple[int, int]:
    apex = sum(1 for axis in axes if axis.band in APEX_BANDS)
    slave = sum(1 for axis in axes if axis.band in SLAVE_BANDS)
    return apex, slave


def derive_overall_frame(frame_score: float, axes: list[FrameAxisScore]) -> str:
    """apex/slave need both the score threshold and a band majority; otherwise mixed."""
    if not axes:
        return OverallFrame.MIXED.value

    apex_count, slave_count = _band_counts(axes)
    half = len(axes) / 2
    if frame_score >= 70 and apex_count > half:
        return OverallFrame.APEX.value
    if frame_score <= 30 and slave_count > half:
        return OverallFrame.SLAVE.value
    return OverallFrame.MIXED.value


def score_frame_scan(result: FrameScanResult) -> FrameScore:
    domain = result.domain
    axes = result.axes

    weighted = [
        WeightedAxisScore(
            axis_id=axis.axis_id,
            raw_score=axis.score,
            normalized_score=normalize_axis_score(axis.score),
            weight=axis_weight(axis.axis_id, domain),
            band=axis.band,
        )
        for axis in axes
    ]

    total_weight = sum(w.weight for w in weighted)
    if total_weight:
        base_score = sum(w.normalized_score * w.weight for w in weighted) / total_weight
    else:
        base_score = NEUTRAL_SCORE

    adjusted = apply_win_win_adjustment(base_score, result.overall_win_win_state)
    apex_count, slave_count = _band_counts(axes)
    priority_axes = get_priority_axes(domain)

    notes = [
        f"Base frame score before Win/Win adjustment: {base_score:.1f}",
        f"Final frame score after Win/Win adjustment: {adjusted:.1f}",
        f"Win/Win state: {result.overall_win_win_state}",
        f"Domain: {domain}",
        (
            f"Priority axes for this domain: {', '.join(priority_axes)}"
            if priority_axes
            else "No priority axes defined for this domain"
        ),
        (
            f"Axis distribution: {apex_count} apex bands, {slave_count} slave bands, "
            f"{len(axes) - apex_count - slave_count} neutral"
        ),
    ]

    return FrameScore(
        frame_score=_round_half_up(adjusted),
        overall_frame=derive_overall_frame(adjusted, axes),
        overall_win_win_state=result.overall_win_win_state,
        domain=domain,
        axis_scores=weighted,
        weighted_axis_score=round(base_score, 2),
        notes=notes,
    )


def summarize_frame_score(score: FrameScore) -> str:
    frame_label = score.overall_frame.capitalize()
    win_win_label = score.overall_win_win_state.replace("_", "-")
    return f"{score.frame_score}/100 • {frame_label} Frame • {win_win_label}"


def get_score_severity(frame_score: float) -> str:
    if frame_score >= 80:
        return "excellent"
    if frame_score >= 65:
        return "good"
    if frame_score >= 45:
        return "neutral"
    if frame_score >= 25:
        return "warning"
    return "critical"


def get_weakest_axes(score: FrameScore, n: int = 3) -> list[WeightedAxisScore]:
    return sorted(score.axis_scores, key=lambda axis: axis.normalized_score)[:n]


def get_strongest_axes(score: FrameScore, n: int = 3) -> list[WeightedAxisScore]:
    return sorted(score.axis_scores, key=lambda axis: axis.normalized_score, reverse=True)[:n]
