"""Unit tests for FrameScan scoring

Tests cover:
- Axis normalization and band mapping
- Priority axis weighting per domain
- Win/Win penalties and clamping
- Half-point scores round up
- Overall frame derivation (score threshold + band majority)
- Summary, severity and weakest/strongest axis helpers
"""

from __future__ import annotations

import pytest

from framelord.framescan.normalize import validate_frame_scan_result
from framelord.framescan.scoring import (
    apply_win_win_adjustment,
    axis_weight,
    derive_overall_frame,
    get_score_severity,
    get_strongest_axes,
    get_weakest_axes,
    normalize_axis_score,
    score_frame_scan,
    summarize_frame_score,
)
from framelord.framescan.types import AXIS_IDS, FrameAxisScore, FrameScanResult, score_to_band


@pytest.mark.parametrize(
    ("score", "expected"),
    [(-3, 0.0), (0, 50.0), (3, 100.0), (-5, 0.0), (7, 100.0)],
)
def test_normalize_axis_score(score, expected):
    assert normalize_axis_score(score) == pytest.approx(expected)


@pytest.mark.parametrize(
    ("score", "band"),
    [(-3, "strong_slave"), (-1, "mild_slave"), (0, "neutral"), (1, "mild_apex"), (3, "strong_apex")],
)
def test_score_to_band(score, band):
    assert score_to_band(score) == band


def test_priority_axes_weigh_double():
    assert axis_weight("buyer_seller_position", "sales_email") == 2
    assert axis_weight("pedestalization", "sales_email") == 1


def test_win_win_adjustment_penalties_and_clamp():
    assert apply_win_win_adjustment(80, "win_win") == 80
    assert apply_win_win_adjustment(80, "neutral") == 75
    assert apply_win_win_adjustment(80, "win_lose") == 65
    assert apply_win_win_adjustment(20, "lose_lose") == 0


def test_uniform_apex_scan_scores_high(scan_result):
    result = validate_frame_scan_result(scan_result(score=2))
    score = score_frame_scan(result)

    assert score.frame_score == 83
    assert score.overall_frame == "apex"
    assert score.weighted_axis_score == pytest.approx(83.33, abs=0.01)
    assert len(score.axis_scores) == len(AXIS_IDS)
    assert any("Win/Win state: win_win" in note for note in score.notes)


def test_lose_lose_scan_is_penalized(scan_result):
    result = validate_frame_scan_result(
        scan_result(score=-3, band="strong_slave", win_win="lose_lose")
    )
    score = score_frame_scan(result)

    assert score.frame_score == 0
    assert score.overall_frame == "slave"


def test_priority_axes_move_the_weighted_average(scan_result):
    raw = scan_result(domain="sales_email", score=0, band="neutral")
    for axis in raw["axes"]:
        if axis["axisId"] == "buyer_seller_position":
            axis.update(score=3, band="strong_apex")
    score = score_frame_scan(validate_frame_scan_result(raw))

    # sales_email: 4 priority axes at weight 2, 5 others at weight 1
    assert score.weighted_axis_score == pytest.approx((100 * 2 + 50 * 2 * 3 + 50 * 5) / 13, abs=0.01)


def test_half_point_scores_round_up():
    # generic: none of these four axes is a priority axis, so each weighs 1
    axes = [
        FrameAxisScore(axis_id="identity_vs_tactic", score=0, band="neutral"),
        FrameAxisScore(axis_id="internal_sale", score=0, band="neutral"),
        FrameAxisScore(axis_id="persuasion_style", score=0, band="neutral"),
        FrameAxisScore(axis_id="pedestalization", score=3, band="strong_apex"),
    ]
    result = FrameScanResult(
        modality="text", domain="generic", overall_win_win_state="win_win", axes=axes
    )

    score = score_frame_scan(result)

    assert score.weighted_axis_score == 62.5
    assert score.frame_score == 63


def test_high_score_without_band_majority_is_mixed():
    axes = [
        FrameAxisScore(axis_id=axis_id, score=3, band="neutral") for axis_id in AXIS_IDS
    ]
    assert derive_overall_frame(90, axes) == "mixed"
    assert derive_overall_frame(90, []) == "mixed"


def test_summary_and_severity(scan_result):
    score = score_frame_scan(validate_frame_scan_result(scan_result(win_win="win_lose")))

    assert summarize_frame_score(score) == f"{score.frame_score}/100 • Mixed Frame • win-lose"
    assert get_score_severity(85) == "excellent"
    assert get_score_severity(65) == "good"
    assert get_score_severity(50) == "neutral"
    assert get_score_severity(30) == "warning"
    assert get_score_severity(10) == "critical"


def test_weakest_and_strongest_axes(scan_result):
    raw = scan_result(score=0, band="neutral")
    raw["axes"][0].update(score=-3, band="strong_slave")
    raw["axes"][1].update(score=3, band="strong_apex")
    score = score_frame_scan(validate_frame_scan_result(raw))

    assert get_weakest_axes(score, 1)[0].axis_id == AXIS_IDS[0]
    assert get_strongest_axes(score, 1)[0].axis_id == AXIS_IDS[1]
    assert len(get_weakest_axes(score)) == 3
