"""
Normalization and validation of raw FrameScan LLM output.

The model answers in camelCase JSON; older or sloppier answers use
snake_case or omit list fields. normalize_frame_scan_report() accepts
either spelling and fills every list with []. validate_frame_scan_result()
enforces the result contract and returns a FrameScanResult.
"""

from __future__ import annotations

from typing import Any

from framelord.framescan.types import (
    AXIS_IDS,
    BANDS,
    DOMAIN_IDS,
    OVERALL_FRAMES,
    WIN_WIN_STATES,
    FrameScanResult,
)


class FrameScanValidationError(ValueError):
    """LLM output does not match the FrameScan result contract."""


def _pick(obj: dict[str, Any], camel: str, snake: str, default: Any = None) -> Any:
    if camel in obj and obj[camel] is not None:
        return obj[camel]
    return obj.get(snake, default)


def _as_list(value: Any) -> list[Any]:
    return value if isinstance(value, list) else []


def _as_dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _normalize_axis(axis: Any) -> Any:
    if not isinstance(axis, dict):
        return axis
    return {
        "axis_id": _pick(axis, "axisId", "axis_id"),
        "score": axis.get("score"),
        "band": axis.get("band"),
        "notes": axis.get("notes"),
    }


def _normalize_shift(shift: Any) -> dict[str, Any]:
    if not isinstance(shift, dict):
        return {"axis_id": "assumptive_state", "shift": "Malformed shift data", "protocol_steps": []}
    return {
        "axis_id": _pick(shift, "axisId", "axis_id", ""),
        "shift": str(shift.get("shift") or ""),
        "protocol_steps": [str(s) for s in _as_list(_pick(shift, "protocolSteps", "protocol_steps"))],
    }


def _normalize_rewrite(rewrite: Any) -> dict[str, Any] | None:
    if not isinstance(rewrite, dict):
        return None
    return {
        "purpose": str(rewrite.get("purpose") or ""),
        "apex_version": str(_pick(rewrite, "apexVersion", "apex_version", "")),
    }


def normalize_frame_scan_report(raw: Any) -> dict[str, Any]:
    """
    Return raw as a snake_case dict with every list field present.

    Idempotent: normalizing an already normalized dict returns the same shape.

    Raises:
        FrameScanValidationError: raw is not a dict
    """
    if not isinstance(raw, dict):
        raise FrameScanValidationError("FrameScanResult must be a non-null object")

    diagnostics = _as_dict(raw.get("diagnostics"))
    corrections = _as_dict(raw.get("corrections"))
    rewrites = [
        r
        for r in (
            _normalize_rewrite(item)
            for item in _as_list(_pick(corrections, "sampleRewrites", "sample_rewrites"))
        )
        if r is not None
    ]

    return {
        "modality": raw.get("modality") or "text",
        "domain": raw.get("domain") or "generic",
        "status": raw.get("status") or "ok",
        "rejection_reason": _pick(raw, "rejectionReason", "rejection_reason"),
        "title": raw.get("title") if isinstance(raw.get("title"), str) else None,
        "overall_frame": _pick(raw, "overallFrame", "overall_frame") or "mixed",
        "overall_win_win_state": _pick(raw, "overallWinWinState", "overall_win_win_state")
        or "neutral",
        "axes": [_normalize_axis(axis) for axis in _as_list(raw.get("axes"))],
        "diagnostics": {
            "primary_patterns": [
                str(p) for p in _as_list(_pick(diagnostics, "primaryPatterns", "primary_patterns"))
            ],
            "supporting_evidence": [
                str(e)
                for e in _as_list(_pick(diagnostics, "supportingEvidence", "supporting_evidence"))
            ],
        },
        "corrections": {
            "top_shifts": [
                _normalize_shift(s) for s in _as_list(_pick(corrections, "topShifts", "top_shifts"))
            ],
            "sample_rewrites": rewrites,
        },
    }


def _validate_axes(axes: Any) -> None:
    if not isinstance(axes, list) or not axes:
        raise FrameScanValidationError("axes must be a non-empty array")

    for i, axis in enumerate(axes):
        if not isinstance(axis, dict):
            raise FrameScanValidationError(f"axes[{i}] must be an object")

        axis_id = _pick(axis, "axisId", "axis_id")
        if axis_id not in AXIS_IDS:
            raise FrameScanValidationError(f"axes[{i}].axisId is invalid: {axis_id}")

        score = axis.get("score")
        is_integral = isinstance(score, int) or (isinstance(score, float) and score.is_integer())
        # bool is an int subclass; true/false are not scores
        if isinstance(score, bool) or not is_integral or not -3 <= score <= 3:
            raise FrameScanValidationError(
                f"axes[{i}].score must be an integer from -3 to 3, got: {score}"
            )

        if axis.get("band") not in BANDS:
            raise FrameScanValidationError(f"axes[{i}].band is invalid: {axis.get('band')}")

        if not isinstance(axis.get("notes"), str):
            raise FrameScanValidationError(f"axes[{i}].notes must be a string")


def validate_frame_scan_result(raw: Any) -> FrameScanResult:
    """
    Validate raw LLM output and return it as a FrameScanResult.

    A missing status counts as "ok". Rejected results only need modality,
    domain and a non-empty rejectionReason.

    Raises:
        FrameScanValidationError: On the first contract violation
    """
    if not isinstance(raw, dict):
        raise FrameScanValidationError("FrameScanResult must be an object")

    modality = raw.get("modality")
    if modality not in ("text", "image"):
        raise FrameScanValidationError(f'Invalid modality: {modality}. Must be "text" or "image"')

    domain = raw.get("domain")
    if domain not in DOMAIN_IDS:
        raise FrameScanValidationError(f"Invalid domain: {domain}")

    if raw.get("status") == "rejected":
        reason = _pick(raw, "rejectionReason", "rejection_reason")
        if not isinstance(reason, str) or not reason.strip():
            raise FrameScanValidationError(
                "Rejected scans must include a non-empty rejectionReason"
            )
        return FrameScanResult(
            modality=modality,
            domain=domain,
            status="rejected",
            rejection_reason=reason.strip(),
        )

    overall_frame = _pick(raw, "overallFrame", "overall_frame")
    if overall_frame not in OVERALL_FRAMES:
        raise FrameScanValidationError(
            f'Invalid overallFrame: {overall_frame}. Must be "apex", "slave", or "mixed"'
        )

    win_win = _pick(raw, "overallWinWinState", "overall_win_win_state")
    if win_win not in WIN_WIN_STATES:
        raise FrameScanValidationError(f"Invalid overallWinWinState: {win_win}")

    _validate_axes(raw.get("axes"))

    normalized = normalize_frame_scan_report({**raw, "status": "ok", "rejectionReason": None})
    normalized["rejection_reason"] = None
    return FrameScanResult.model_validate(normalized)
