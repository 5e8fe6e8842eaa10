"""
Profile updaters: run one inference and merge it into the stored profile.

Each updater replaces only its own section and keeps the others. When
inference returns nothing, the section falls back to a neutral default
whose confidence reflects how much evidence exists.
"""

from __future__ import annotations

from typing import Any

from framelord.llm.caller import LLMCaller
from framelord.observability.telemetry import log_event
from framelord.psychometrics.inference import (
    infer_big_five,
    infer_dark_traits,
    infer_disc,
    infer_mbti,
)
from framelord.psychometrics.models import (
    BigFiveScores,
    ConfidenceLevel,
    DarkTraitProfile,
    DarkTraitRisk,
    DiscProfile,
    MbtiProfile,
    ProfileStatus,
    PsychometricProfile,
)
from framelord.psychometrics.repository import PsychometricRepository


def determine_confidence(evidence_count: int) -> ConfidenceLevel:
    """Evidence alone never yields "confirmed"; that needs a formal assessment."""
    if evidence_count == 0:
        return ConfidenceLevel.INSUFFICIENT
    if evidence_count < 3:
        return ConfidenceLevel.LOW
    if evidence_count < 10:
        return ConfidenceLevel.MEDIUM
    return ConfidenceLevel.HIGH


def _merge(contact_id: str, evidence_count: int, **section: Any) -> PsychometricProfile:
    existing = PsychometricRepository.get_profile(contact_id)
    has_evidence = evidence_count > 0

    if existing is None:
        existing = PsychometricProfile(
            contact_id=contact_id,
            big_five=BigFiveScores(
                confidence=ConfidenceLevel.LOW if has_evidence else ConfidenceLevel.INSUFFICIENT
            ),
        )

    status = ProfileStatus.SPECULATIVE.value if has_evidence else existing.status
    profile = existing.model_copy(update={**section, "status": status})
    saved = PsychometricRepository.save_profile(profile)
    log_event(
        "psychometrics.profile_updated",
        contact_id=contact_id,
        section=next(iter(section)),
        evidence_count=evidence_count,
        status=saved.status,
    )
    return saved


async def update_big_five_profile(
    contact_id: str, llm: LLMCaller | None = None
) -> PsychometricProfile:
    """
    Re-infer Big Five traits for contact_id and store them.

    Side Effects:
        - One LLM call when the contact has evidence
        - Upserts the psychometric_profiles row
    """
    count = PsychometricRepository.count_evidence(contact_id)
    big_five = await infer_big_five(contact_id, llm) if count else None
    if big_five is None:
        big_five = BigFiveScores(confidence=determine_confidence(count))
    return _merge(contact_id, count, big_five=big_five)


async def update_mbti_profile(
    contact_id: str, llm: LLMCaller | None = None
) -> PsychometricProfile:
    count = PsychometricRepository.count_evidence(contact_id)
    mbti = await infer_mbti(contact_id, llm) if count else None
    if mbti is None:
        mbti = MbtiProfile(confidence=determine_confidence(count))
    return _merge(contact_id, count, mbti=mbti)


async def update_disc_profile(
    contact_id: str, llm: LLMCaller | None = None
) -> PsychometricProfile:
    count = PsychometricRepository.count_evidence(contact_id)
    disc = await infer_disc(contact_id, llm) if count else None
    if disc is None:
        disc = DiscProfile(confidence=determine_confidence(count))
    return _merge(contact_id, count, disc=disc)


async def update_dark_traits_profile(
    contact_id: str, llm: LLMCaller | None = None
) -> PsychometricProfile:
    """Defaults to low 0.2 signals, with "low" risk only when there is evidence."""
    count = PsychometricRepository.count_evidence(contact_id)
    dark_traits = await infer_dark_traits(contact_id, llm) if count else None
    if dark_traits is None:
        dark_traits = DarkTraitProfile(
            overall_risk=DarkTraitRisk.LOW if count else DarkTraitRisk.INSUFFICIENT,
            confidence=determine_confidence(count),
        )
    return _merge(contact_id, count, dark_traits=dark_traits)


PROFILE_UPDATERS = {
    "big_five": update_big_five_profile,
    "mbti": update_mbti_profile,
    "disc": update_disc_profile,
    "dark_traits": update_dark_traits_profile,
}
