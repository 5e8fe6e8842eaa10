"""
Psychometric profile endpoints.

Profiles are inferred from evidence (notes, FrameScans, voice notes,
assessments). Updating a section costs one LLM call when the contact has
evidence.
"""

from __future__ import annotations

import uuid
from typing import Any, Literal

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field

from framelord.api.dependencies import charge_llm_budget, get_client_id
from framelord.api.errors import not_found
from framelord.crm.contacts import ContactNotFoundError, ContactRepository
from framelord.infrastructure.database_schema import CONTACT_ZERO_ID
from framelord.llm.caller import LLMCaller, get_llm_caller
from framelord.psychometrics.models import EvidenceSourceType, PsychometricProfile
from framelord.psychometrics.profile import PROFILE_UPDATERS, determine_confidence
from framelord.psychometrics.repository import PsychometricRepository
from framelord.psychometrics.utils import evidence_to_json, prepare_evidence

router = APIRouter(prefix="/api/psychometrics", tags=["psychometrics"])

Section = Literal["big_five", "mbti", "disc", "dark_traits"]


class ProfileResponse(BaseModel):
    profile: PsychometricProfile
    evidence_count: int
    evidence_confidence: str
    has_stored_profile: bool


class EvidenceRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    source_type: EvidenceSourceType = Field(..., alias="sourceType")
    raw_text: str = Field(..., alias="rawText", min_length=1, max_length=20000)
    origin_id: str | None = Field(default=None, alias="originId")


class UpdateRequest(BaseModel):
    sections: list[Section] = Field(default_factory=lambda: list(PROFILE_UPDATERS))


def _require_profile_subject(contact_id: str) -> None:
    """404 for unknown contacts; Contact Zero has no inferred profile."""
    try:
        ContactRepository.require_contact(contact_id)
    except ContactNotFoundError as e:
        raise not_found(e) from None
    if contact_id == CONTACT_ZERO_ID:
        raise HTTPException(status_code=400, detail="Contact Zero has no psychometric profile")


def _profile_response(contact_id: str) -> ProfileResponse:
    stored = PsychometricRepository.get_profile(contact_id)
    count = PsychometricRepository.count_evidence(contact_id)
    return ProfileResponse(
        profile=stored or PsychometricProfile(contact_id=contact_id),
        evidence_count=count,
        evidence_confidence=determine_confidence(count).value,
        has_stored_profile=stored is not None,
    )


@router.get("/{contact_id}", response_model=ProfileResponse)
async def get_profile(contact_id: str) -> ProfileResponse:
    _require_profile_subject(contact_id)
    return _profile_response(contact_id)


@router.get("/{contact_id}/evidence")
async def list_evidence(contact_id: str) -> dict[str, Any]:
    """The most recent entries inference would see, oldest first."""
    _require_profile_subject(contact_id)
    entries = prepare_evidence(PsychometricRepository.get_evidence(contact_id))
    return {
        "contact_id": contact_id,
        "total": PsychometricRepository.count_evidence(contact_id),
        "evidence": evidence_to_json(entries),
    }


@router.post("/{contact_id}/evidence")
async def add_evidence(contact_id: str, request: EvidenceRequest) -> dict[str, Any]:
    """Record a voice note transcript or assessment result by hand."""
    _require_profile_subject(contact_id)
    origin_id = request.origin_id or f"manual_{uuid.uuid4().hex[:12]}"
    added = PsychometricRepository.add_evidence(
        contact_id, request.source_type, origin_id, request.raw_text
    )
    return {"added": added, "origin_id": origin_id}


@router.post("/{contact_id}/update", response_model=ProfileResponse)
async def update_profile(
    contact_id: str,
    request: UpdateRequest,
    client_id: str = Depends(get_client_id),
    llm: LLMCaller = Depends(get_llm_caller),
) -> ProfileResponse:
    """Re-infer the requested sections, one after another."""
    _require_profile_subject(contact_id)
    has_evidence = PsychometricRepository.has_evidence(contact_id)
    for section in dict.fromkeys(request.sections):
        if has_evidence:
            charge_llm_budget(client_id, "psychometric")
        await PROFILE_UPDATERS[section](contact_id, llm)
    return _profile_response(contact_id)


@router.delete("/{contact_id}")
async def clear_profile(contact_id: str) -> dict[str, Any]:
    _require_profile_subject(contact_id)
    PsychometricRepository.clear_contact(contact_id)
    return {"success": True, "contact_id": contact_id}
