"""
LLM inference of psychometric profiles from a contact's evidence.

Each infer_* function sends the latest evidence to the LLM and parses the
JSON answer. They return None (and log a warning) when there is no evidence,
the model answers with nothing usable, or the provider call fails; the
profile updaters then fall back to neutral defaults.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any, TypeVar

from framelord.llm.caller import LLMCaller, get_llm_caller
from framelord.llm.json_extract import extract_json
from framelord.observability.logging import get_logger
from framelord.observability.telemetry import counter
from framelord.providers.http import ProviderError
from framelord.psychometrics.models import (
    BigFiveScores,
    DarkTraitProfile,
    DiscProfile,
    MbtiProfile,
)
from framelord.psychometrics.repository import PsychometricRepository
from framelord.psychometrics.utils import (
    clamp01,
    count_words,
    evidence_to_json,
    is_number,
    parse_confidence_level,
    parse_dark_trait_risk,
    parse_disc_type,
    parse_mbti_candidates,
    parse_mbti_type,
    prepare_evidence,
)

logger = get_logger(__name__)

T = TypeVar("T")

BIG_FIVE_TRAITS = ("openness", "conscientiousness", "extraversion", "agreeableness", "neuroticism")
DARK_TRAITS = ("narcissism", "machiavellianism", "psychopathy")
MAX_EXPLANATION_NOTES = 5

_CONFIDENCE_GUIDE = """Confidence:
- "low": under 500 words of evidence or inconsistent signals
- "medium": 500-1500 words, somewhat consistent signals
- "high": over 1500 words, consistent signals across sources

Output ONLY one JSON object. Base every score on the evidence; do not invent signals.
Avoid clinical or diagnostic language."""

BIG_FIVE_PROMPT = f"""You are the FrameLord Psychometric Inference Engine.
Infer the contact's Big Five profile from the evidence (notes, FrameScans, transcripts).
Discount signals from obvious crisis contexts and normalize for job role when apparent.

Reply with:
{{"openness": 0-1, "conscientiousness": 0-1, "extraversion": 0-1, "agreeableness": 0-1,
"neuroticism": 0-1, "confidence": "low"|"medium"|"high", "reasoning": "1-2 sentences"}}

Scores: 0-0.30 low, 0.31-0.69 medium, 0.70-1 high expression of the trait.
{_CONFIDENCE_GUIDE}"""

MBTI_PROMPT = f"""You are the FrameLord Psychometric Inference Engine.
Infer the contact's most likely MBTI type from the evidence. List up to three
candidate types, most likely first. Use null for primaryType if the evidence is too sparse.

Reply with:
{{"primaryType": "INTJ"|null, "candidateTypes": ["INTJ", ...],
"confidence": "low"|"medium"|"high", "reasoning": "1-2 sentences"}}
{_CONFIDENCE_GUIDE}"""

DISC_PROMPT = f"""You are the FrameLord Psychometric Inference Engine.
Infer the contact's DISC style from the evidence: D, I, S, C or a blend
(DI, ID, SC, CS). Use null if the evidence is too sparse.

Reply with:
{{"type": "D"|"I"|"S"|"C"|"DI"|"ID"|"SC"|"CS"|null,
"confidence": "low"|"medium"|"high", "reasoning": "1-2 sentences"}}
{_CONFIDENCE_GUIDE}"""

DARK_TRAITS_PROMPT = f"""You are the FrameLord Behavioral Risk Assessment Engine.
Assess behavioral risk signals associated with narcissistic, manipulative or callous
communication. This is pattern detection from communication, NOT a clinical diagnosis.

Reply with:
{{"narcissism": 0-1, "machiavellianism": 0-1, "psychopathy": 0-1,
"overallRisk": "insufficient"|"low"|"medium"|"high",
"confidence": "low"|"medium"|"high",
"explanationNotes": ["short note per elevated signal"], "reasoning": "1-2 sentences"}}

Overall risk: "low" when every signal is under 0.3, "medium" when any is 0.3-0.5,
"high" when any is above 0.5. explanationNotes is [] when no signal exceeds 0.3.
Be conservative.
{_CONFIDENCE_GUIDE}"""


def build_inference_messages(
    system_prompt: str, contact_id: str, task: str
) -> list[dict[str, str]] | None:
    """Build chat messages for contact_id, or None when there is no evidence."""
    all_evidence = PsychometricRepository.get_evidence(contact_id)
    if not all_evidence:
        return None

    recent = prepare_evidence(all_evidence)
    total_words = sum(count_words(e.raw_text) for e in recent)
    user_content = (
        f'Analyze the following evidence for contact "{contact_id}".\n\n'
        f"Evidence count: {len(all_evidence)}\n"
        f"Total words: ~{total_words}\n\n"
        f"Evidence entries:\n{json.dumps(evidence_to_json(recent), indent=2)}\n\n"
        f"Output your {task} as JSON."
    )
    return [
        {"role": "system", "content": system_prompt},
        {"role": "user", "content": user_content},
    ]


async def _infer(
    kind: str,
    contact_id: str,
    system_prompt: str,
    parse: Callable[[dict[str, Any]], T],
    llm: LLMCaller | None,
) -> T | None:
    messages = build_inference_messages(system_prompt, contact_id, f"{kind} inference")
    if messages is None:
        logger.info("No psychometric evidence for contact %s (%s)", contact_id, kind)
        return None

    caller = llm or get_llm_caller()
    try:
        raw = await caller(messages)
    except (ProviderError, OSError) as e:
        counter(f"psychometrics.{kind}.llm_error")
        logger.warning("%s inference call failed for %s: %s", kind, contact_id, e)
        return None

    if not raw or not raw.strip():
        logger.warning("Empty %s inference response for contact %s", kind, contact_id)
        return None

    try:
        result = parse(extract_json(raw))
    except ValueError as e:
        counter(f"psychometrics.{kind}.parse_error")
        logger.warning(
            "Failed to parse %s inference for %s: %s (%s)", kind, contact_id, e, raw[:200]
        )
        return None

    counter(f"psychometrics.{kind}.success")
    return result


def parse_big_five(obj: dict[str, Any]) -> BigFiveScores:
    """
    Raises:
        ValueError: A trait is missing or not a number
    """
    for trait in BIG_FIVE_TRAITS:
        if not is_number(obj.get(trait)):
            raise ValueError(f"Missing or invalid trait: {trait}")
    return BigFiveScores(
        **{trait: clamp01(obj[trait]) for trait in BIG_FIVE_TRAITS},
        confidence=parse_confidence_level(obj.get("confidence") or "low"),
    )


def parse_mbti(obj: dict[str, Any]) -> MbtiProfile:
    return MbtiProfile(
        primary_type=parse_mbti_type(obj.get("primaryType")),
        candidate_types=parse_mbti_candidates(obj.get("candidateTypes")),
        confidence=parse_confidence_level(obj.get("confidence") or "low"),
    )


def parse_disc(obj: dict[str, Any]) -> DiscProfile:
    return DiscProfile(
        type=parse_disc_type(obj.get("type")),
        confidence=parse_confidence_level(obj.get("confidence") or "low"),
    )


def parse_dark_traits(obj: dict[str, Any]) -> DarkTraitProfile:
    """
    Raises:
        ValueError: A trait score is missing or not a number
    """
    for trait in DARK_TRAITS:
        if not is_number(obj.get(trait)):
            raise ValueError(f"Missing or invalid {trait} score")

    notes = obj.get("explanationNotes")
    explanation_notes = (
        [n for n in notes if isinstance(n, str)][:MAX_EXPLANATION_NOTES]
        if isinstance(notes, list)
        else []
    )
    return DarkTraitProfile(
        **{trait: clamp01(obj[trait]) for trait in DARK_TRAITS},
        overall_risk=parse_dark_trait_risk(obj.get("overallRisk") or "insufficient"),
        confidence=parse_confidence_level(obj.get("confidence") or "low"),
        explanation_notes=explanation_notes,
    )


async def infer_big_five(contact_id: str, llm: LLMCaller | None = None) -> BigFiveScores | None:
    return await _infer("big_five", contact_id, BIG_FIVE_PROMPT, parse_big_five, llm)


async def infer_mbti(contact_id: str, llm: LLMCaller | None = None) -> MbtiProfile | None:
    return await _infer("mbti", contact_id, MBTI_PROMPT, parse_mbti, llm)


async def infer_disc(contact_id: str, llm: LLMCaller | None = None) -> DiscProfile | None:
    return await _infer("disc", contact_id, DISC_PROMPT, parse_disc, llm)


async def infer_dark_traits(
    contact_id: str, llm: LLMCaller | None = None
) -> DarkTraitProfile | None:
    return await _infer("dark_traits", contact_id, DARK_TRAITS_PROMPT, parse_dark_traits, llm)
