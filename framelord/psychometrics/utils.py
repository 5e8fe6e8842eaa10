"""Parsing helpers shared by the psychometric inference functions."""

from __future__ import annotations

import math
from collections.abc import Iterable
from typing import Any

from framelord.config import PSYCHOMETRIC_MAX_EVIDENCE_ENTRIES
from framelord.psychometrics.models import (
    ConfidenceLevel,
    DarkTraitRisk,
    PsychometricEvidence,
)

# Inference only looks at the most recent entries
MAX_EVIDENCE_ENTRIES = PSYCHOMETRIC_MAX_EVIDENCE_ENTRIES

DISC_TYPES = frozenset({"D", "I", "S", "C", "DI", "ID", "SC", "CS"})

MBTI_TYPES = frozenset(
    {
        "ISTJ", "ISFJ", "INFJ", "INTJ",
        "ISTP", "ISFP", "INFP", "INTP",
        "ESTP", "ESFP", "ENFP", "ENTP",
        "ESTJ", "ESFJ", "ENFJ", "ENTJ",
    }
)  # fmt: skip

_LEVELS = {
    "insufficient": ConfidenceLevel.INSUFFICIENT,
    "none": ConfidenceLevel.INSUFFICIENT,
    "low": ConfidenceLevel.LOW,
    "medium": ConfidenceLevel.MEDIUM,
    "moderate": ConfidenceLevel.MEDIUM,
    "high": ConfidenceLevel.HIGH,
    "confirmed": ConfidenceLevel.CONFIRMED,
    "very_high": ConfidenceLevel.CONFIRMED,
}

_RISKS = {
    "insufficient": DarkTraitRisk.INSUFFICIENT,
    "none": DarkTraitRisk.INSUFFICIENT,
    "low": DarkTraitRisk.LOW,
    "medium": DarkTraitRisk.MEDIUM,
    "moderate": DarkTraitRisk.MEDIUM,
    "high": DarkTraitRisk.HIGH,
}


def is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def clamp01(value: Any) -> float:
    """Clamp to [0, 1]; NaN and non-numbers become 0.5."""
    if not is_number(value) or math.isnan(value):
        return 0.5
    return float(min(1.0, max(0.0, value)))


def _key(raw: Any) -> str:
    return str(raw or "").strip().lower()


def parse_confidence_level(raw: Any) -> ConfidenceLevel:
    return _LEVELS.get(_key(raw), ConfidenceLevel.LOW)


def parse_dark_trait_risk(raw: Any) -> DarkTraitRisk:
    return _RISKS.get(_key(raw), DarkTraitRisk.INSUFFICIENT)


def parse_disc_type(raw: Any) -> str | None:
    if not raw:
        return None
    value = str(raw).strip().upper()
    return value if value in DISC_TYPES else None


def parse_mbti_type(raw: Any) -> str | None:
    if not raw:
        return None
    value = str(raw).strip().upper()
    return value if value in MBTI_TYPES else None


def parse_mbti_candidates(raw: Any) -> list[str]:
    if not isinstance(raw, list):
        return []
    return [t for t in (parse_mbti_type(item) for item in raw) if t is not None]


def count_words(text: str) -> int:
    return len(text.split())


def prepare_evidence(
    entries: Iterable[PsychometricEvidence],
) -> list[PsychometricEvidence]:
    """Oldest-to-newest, trimmed to the last MAX_EVIDENCE_ENTRIES."""
    ordered = sorted(entries, key=lambda e: e.created_at)
    return ordered[-MAX_EVIDENCE_ENTRIES:]


def evidence_to_json(entries: Iterable[PsychometricEvidence]) -> list[dict[str, str]]:
    return [
        {
            "sourceType": str(e.source_type),
            "createdAt": e.created_at.isoformat(),
            "rawText": e.raw_text,
        }
        for e in entries
    ]
