"""Unit tests for FrameScan result normalization and validation

Tests cover:
- camelCase and snake_case answers normalize to the same shape
- Missing lists default to []
- Rejected results only need a reason
- Contract violations (modality, domain, frame, axis score/band/notes)
"""

from __future__ import annotations

import pytest

from framelord.framescan.normalize import (
    FrameScanValidationError,
    normalize_frame_scan_report,
    validate_frame_scan_result,
)


class TestNormalize:
    def test_fills_missing_lists(self):
        normalized = normalize_frame_scan_report({"modality": "text", "domain": "generic"})

        assert normalized["axes"] == []
        assert normalized["diagnostics"] == {"primary_patterns": [], "supporting_evidence": []}
        assert normalized["corrections"] == {"top_shifts": [], "sample_rewrites": []}
        assert normalized["overall_frame"] == "mixed"
        assert normalized["overall_win_win_state"] == "neutral"

    def test_snake_and_camel_case_agree(self, scan_result):
        camel = scan_result()
        snake = normalize_frame_scan_report(camel)

        assert normalize_frame_scan_report(snake) == snake
        assert snake["corrections"]["top_shifts"][0]["protocol_steps"] == ["Propose a time"]
        assert snake["corrections"]["sample_rewrites"][0]["apex_version"] == "Tuesday at 3 works."

    def test_malformed_shift_is_replaced(self):
        normalized = normalize_frame_scan_report(
            {"corrections": {"topShifts": ["not a dict"], "sampleRewrites": [None]}}
        )
        assert normalized["corrections"]["top_shifts"][0]["shift"] == "Malformed shift data"
        assert normalized["corrections"]["sample_rewrites"] == []

    def test_rejects_non_dict(self):
        with pytest.raises(FrameScanValidationError):
            normalize_frame_scan_report(["axes"])


class TestValidate:
    def test_valid_result(self, scan_result):
        result = validate_frame_scan_result(scan_result())

        assert result.status == "ok"
        assert result.overall_frame == "apex"
        assert result.axes[0].axis_id == "assumptive_state"
        assert result.diagnostics.primary_patterns == ["clear ask"]

    def test_missing_status_counts_as_ok(self, scan_result):
        raw = scan_result()
        del raw["status"]
        assert validate_frame_scan_result(raw).status == "ok"

    def test_rejected_result(self):
        result = validate_frame_scan_result(
            {
                "modality": "text",
                "domain": "generic",
                "status": "rejected",
                "rejectionReason": "  Not a message  ",
            }
        )
        assert result.status == "rejected"
        assert result.rejection_reason == "Not a message"
        assert result.axes == []

    def test_rejected_without_reason_fails(self):
        with pytest.raises(FrameScanValidationError, match="rejectionReason"):
            validate_frame_scan_result(
                {"modality": "text", "domain": "generic", "status": "rejected"}
            )

    @pytest.mark.parametrize(
        ("field", "value", "message"),
        [
            ("modality", "video", "Invalid modality"),
            ("domain", "poetry", "Invalid domain"),
            ("overallFrame", "beta", "Invalid overallFrame"),
            ("overallWinWinState", "draw", "Invalid overallWinWinState"),
            ("axes", [], "non-empty"),
        ],
    )
    def test_top_level_violations(self, scan_result, field, value, message):
        raw = scan_result()
        raw[field] = value
        with pytest.raises(FrameScanValidationError, match=message):
            validate_frame_scan_result(raw)

    @pytest.mark.parametrize(
        ("update", "message"),
        [
            ({"axisId": "charisma"}, "axisId is invalid"),
            ({"score": 4}, "score must be an integer"),
            ({"score": 1.5}, "score must be an integer"),
            ({"score": True}, "score must be an integer"),
            ({"band": "ultra_apex"}, "band is invalid"),
            ({"notes": None}, "notes must be a string"),
        ],
    )
    def test_axis_violations(self, scan_result, update, message):
        raw = scan_result()
        raw["axes"][0].update(update)
        with pytest.raises(FrameScanValidationError, match=message):
            validate_frame_scan_result(raw)

    def test_integral_float_score_is_accepted(self, scan_result):
        raw = scan_result()
        raw["axes"][0]["score"] = 2.0
        assert validate_frame_scan_result(raw).axes[0].score == 2
