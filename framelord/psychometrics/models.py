"""
Psychometric profile and evidence models.

Profiles are speculative summaries inferred from evidence (notes, FrameScans,
transcripts). Trait scores are 0-1.
"""

from __future__ import annotations

import json
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


def utc_now() -> datetime:
    return datetime.now(UTC)


def _parse_dt(value: str) -> datetime:
    parsed = datetime.fromisoformat(value)
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)


class ConfidenceLevel(str, Enum):
    INSUFFICIENT = "insufficient"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CONFIRMED = "confirmed"


class DarkTraitRisk(str, Enum):
    INSUFFICIENT = "insufficient"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ProfileStatus(str, Enum):
    INSUFFICIENT_DATA = "insufficient_data"
    SPECULATIVE = "speculative"
    CONFIRMED = "confirmed"


class EvidenceSourceType(str, Enum):
    NOTE = "note"
    VOICE_NOTE = "voice_note"
    FRAMESCAN = "framescan"
    ASSESSMENT = "assessment"


class BigFiveScores(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    openness: float = Field(default=0.5, ge=0, le=1)
    conscientiousness: float = Field(default=0.5, ge=0, le=1)
    extraversion: float = Field(default=0.5, ge=0, le=1)
    agreeableness: float = Field(default=0.5, ge=0, le=1)
    neuroticism: float = Field(default=0.5, ge=0, le=1)
    confidence: ConfidenceLevel = ConfidenceLevel.INSUFFICIENT


class MbtiProfile(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    primary_type: str | None = None
    candidate_types: list[str] = Field(default_factory=list)
    confidence: ConfidenceLevel = ConfidenceLevel.INSUFFICIENT


class DiscProfile(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    type: str | None = None
    confidence: ConfidenceLevel = ConfidenceLevel.INSUFFICIENT


class DarkTraitProfile(BaseModel):
    """Behavioral risk signals from communication patterns; not a diagnosis."""

    model_config = ConfigDict(use_enum_values=True)

    narcissism: float = Field(default=0.2, ge=0, le=1)
    machiavellianism: float = Field(default=0.2, ge=0, le=1)
    psychopathy: float = Field(default=0.2, ge=0, le=1)
    overall_risk: DarkTraitRisk = DarkTraitRisk.INSUFFICIENT
    confidence: ConfidenceLevel = ConfidenceLevel.INSUFFICIENT
    explanation_notes: list[str] = Field(default_factory=list)


class PsychometricProfile(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    contact_id: str
    status: ProfileStatus = ProfileStatus.INSUFFICIENT_DATA
    big_five: BigFiveScores = Field(default_factory=BigFiveScores)
    mbti: MbtiProfile | None = None
    disc: DiscProfile | None = None
    dark_traits: DarkTraitProfile | None = None
    updated_at: datetime = Field(default_factory=utc_now)

    def to_db_dict(self) -> dict[str, Any]:
        def dump(model: BaseModel | None) -> str | None:
            return model.model_dump_json() if model is not None else None

        return {
            "contact_id": self.contact_id,
            "status": self.status,
            "big_five": self.big_five.model_dump_json(),
            "mbti": dump(self.mbti),
            "disc": dump(self.disc),
            "dark_traits": dump(self.dark_traits),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_db_row(cls, row: dict[str, Any]) -> PsychometricProfile:
        def load(column: str) -> dict[str, Any] | None:
            value = row.get(column)
            return json.loads(value) if value else None

        return cls(
            contact_id=row["contact_id"],
            status=row.get("status") or ProfileStatus.INSUFFICIENT_DATA,
            big_five=load("big_five") or {},
            mbti=load("mbti"),
            disc=load("disc"),
            dark_traits=load("dark_traits"),
            updated_at=_parse_dt(row["updated_at"]),
        )


class PsychometricEvidence(BaseModel):
    """One piece of text about a contact, keyed by where it came from."""

    model_config = ConfigDict(use_enum_values=True)

    id: str
    contact_id: str
    source_type: EvidenceSourceType
    origin_id: str = Field(..., description="Id of the note/report/assessment it came from")
    raw_text: str
    created_at: datetime = Field(default_factory=utc_now)

    def to_db_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "contact_id": self.contact_id,
            "source_type": self.source_type,
            "origin_id": self.origin_id,
            "raw_text": self.raw_text,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_db_row(cls, row: dict[str, Any]) -> PsychometricEvidence:
        return cls(
            id=row["id"],
            contact_id=row["contact_id"],
            source_type=row["source_type"],
            origin_id=row["origin_id"],
            raw_text=row["raw_text"],
            created_at=_parse_dt(row["created_at"]),
        )
