"""
FrameScan pipeline.

Text: throttle check -> LLM analysis -> validate -> score -> persist ->
contact metrics sync. Image scans first annotate the image with NanoBanana
and feed the annotations to the same analysis as a combined description.
"""

from __future__ import annotations

import json
from typing import Any

from pydantic import BaseModel, Field

from framelord.config import FRAMESCAN_MAX_SCANS_PER_SESSION
from framelord.crm.contacts import ContactRepository
from framelord.framescan.domains import DOMAIN_PRIORITY_AXES, get_domain_label
from framelord.framescan.normalize import FrameScanValidationError, validate_frame_scan_result
from framelord.framescan.repository import FrameScanReport, FrameScanReportRepository
from framelord.framescan.scoring import score_frame_scan
from framelord.framescan.throttle import release_scan, reserve_scan
from framelord.framescan.types import (
    AXIS_IDS,
    BANDS,
    FrameScanResult,
    FrameScore,
    ImageAnnotation,
    Modality,
    is_image_domain,
    is_text_domain,
)
from framelord.infrastructure.database_schema import CONTACT_ZERO_ID
from framelord.llm.caller import LLMCaller, get_llm_caller
from framelord.llm.json_extract import extract_json
from framelord.messaging.annotate import NanoBananaClient, parse_annotations
from framelord.observability.logging import get_logger
from framelord.observability.telemetry import counter, log_event, time_block
from framelord.psychometrics.adapters import add_framescan_evidence

logger = get_logger(__name__)

FRAMESCAN_SYSTEM_PROMPT = """You are FrameScan, an analyst of interpersonal frame.
Score the submitted content on each frame axis from -3 (strong slave frame) to +3
(strong apex frame), pick the matching band, and explain each score in one or two
sentences. Judge the Win/Win state of the communication as a whole.

If the content is empty, unintelligible, or not something a person would send or
publish, answer with status "rejected" and a rejectionReason instead of scores.

Reply with ONE JSON object and nothing else, using these keys:
modality, domain, status, rejectionReason, title (3-8 words), overallFrame
(apex|slave|mixed), overallWinWinState, axes[{axisId, score, band, notes}],
diagnostics{primaryPatterns, supportingEvidence},
corrections{topShifts[{axisId, shift, protocolSteps}], sampleRewrites[{purpose, apexVersion}]}."""


class FrameScanRejectionError(ValueError):
    """The model declined to analyze the content."""

    def __init__(self, rejection_reason: str):
        super().__init__(f"FrameScan rejected: {rejection_reason}")
        self.rejection_reason = rejection_reason


class FrameScanLLMError(RuntimeError):
    """The model answered with something that is not a usable FrameScan result."""


class FrameScanOutcome(BaseModel):
    report: FrameScanReport
    annotations: list[ImageAnnotation] = Field(default_factory=list)
    annotated_image_url: str | None = None

    @property
    def score(self) -> FrameScore:
        return self.report.score


def _scoring_rubric(domain: str) -> dict[str, Any]:
    return {
        "axes": list(AXIS_IDS),
        "bands": list(BANDS),
        "scoreRange": [-3, 3],
        "priorityAxes": list(DOMAIN_PRIORITY_AXES.get(domain, ())),
    }


def build_frame_scan_messages(
    modality: Modality,
    domain: str,
    content: str,
    context: dict[str, Any] | None = None,
) -> list[dict[str, str]]:
    payload = {
        "rubric": _scoring_rubric(domain),
        "request": {
            "modality": modality,
            "domain": domain,
            "content": content,
            "context": context,
        },
    }
    return [
        {"role": "system", "content": FRAMESCAN_SYSTEM_PROMPT},
        {"role": "user", "content": json.dumps(payload)},
    ]


async def _analyze(
    llm: LLMCaller,
    modality: Modality,
    domain: str,
    content: str,
    context: dict[str, Any] | None,
) -> FrameScanResult:
    messages = build_frame_scan_messages(modality, domain, content, context)
    with time_block("framescan.llm"):
        raw = await llm(messages)

    try:
        result = validate_frame_scan_result(extract_json(raw))
    except FrameScanValidationError as e:
        counter("framescan.invalid_result")
        logger.warning("Invalid FrameScan result for %s/%s: %s", modality, domain, e)
        raise FrameScanLLMError(f"Invalid FrameScan result: {e}") from e
    except ValueError as e:
        counter("framescan.unparseable_result")
        logger.warning("Unparseable FrameScan response for %s/%s: %s", modality, domain, e)
        raise FrameScanLLMError(str(e)) from e

    if result.status == "rejected":
        counter("framescan.rejected")
        raise FrameScanRejectionError(
            result.rejection_reason or "Content not suitable for FrameScan analysis"
        )
    if result.modality != modality:
        raise FrameScanLLMError(f"FrameScanResult shape invalid for {modality} modality")
    return result


def _sync_contact_metrics(contact_ids: list[str], frame_score: int) -> None:
    for contact_id in contact_ids:
        ContactRepository.update_frame_metrics(contact_id, frame_score)


def _finish_scan(
    result: FrameScanResult,
    session_id: str,
    contact_ids: list[str],
    subject_label: str,
    context: dict[str, Any] | None,
    source_ref: str | None,
    annotations: list[ImageAnnotation] | None = None,
) -> FrameScanReport:
    score = score_frame_scan(result)

    report = FrameScanReportRepository.add_report(
        title=result.title or subject_label,
        contact_ids=contact_ids,
        result=result,
        score=score,
        session_id=session_id,
        context=context,
        source_ref=source_ref,
        image_annotations=annotations,
    )
    _sync_contact_metrics(contact_ids, score.frame_score)
    add_framescan_evidence(report)

    counter(f"framescan.{result.modality}.success")
    log_event(
        "framescan.completed",
        report_id=report.id,
        modality=result.modality,
        domain=result.domain,
        frame_score=score.frame_score,
        overall_frame=score.overall_frame,
    )
    return report


async def run_text_frame_scan(
    content: str,
    domain: str,
    session_id: str,
    contact_ids: list[str] | None = None,
    context: dict[str, Any] | None = None,
    llm: LLMCaller | None = None,
    source_ref: str | None = None,
    subject_label: str | None = None,
    max_scans: int = FRAMESCAN_MAX_SCANS_PER_SESSION,
) -> FrameScanOutcome:
    """
    Analyze a piece of text and store the scored report.

    Args:
        content: Text to analyze
        domain: One of the text domain ids
        session_id: Throttle bucket for this caller
        contact_ids: Subjects of the scan (defaults to Contact Zero)
        context: Free-form scan context passed to the model and stored
        llm: Messages-in/text-out caller (defaults to the configured provider)

    Raises:
        ValueError: Empty content or a non-text domain
        FrameScanThrottleError: Session scan limit reached
        FrameScanRejectionError: The model declined to analyze the content
        FrameScanLLMError: The model answer could not be used

    Side Effects:
        - Increments the session scan count
        - Inserts a framescan_reports row
        - Updates frame metrics on each subject contact
        - Adds psychometric evidence for subject contacts other than Contact Zero
    """
    if not content or not content.strip():
        raise ValueError("content is required")
    if not is_text_domain(domain):
        raise ValueError(f"Invalid text domain: {domain}")

    reserve_scan(session_id, max_scans=max_scans)
    try:
        result = await _analyze(llm or get_llm_caller(), "text", domain, content, context)
        report = _finish_scan(
            result,
            session_id=session_id,
            contact_ids=contact_ids or [CONTACT_ZERO_ID],
            subject_label=subject_label or get_domain_label(domain),
            context=context,
            source_ref=source_ref,
        )
    except Exception:
        release_scan(session_id)
        raise
    return FrameScanOutcome(report=report)


def build_image_description(description: str | None, annotations_data: Any) -> str:
    """Combine the user's description with the raw annotation JSON for the model."""
    user_description = (description or "").strip() or "No additional user context provided."
    return "\n".join(
        [
            "USER_CONTEXT:",
            user_description,
            "",
            "NANOBANANA_ANNOTATIONS_JSON:",
            json.dumps(annotations_data, indent=2),
        ]
    )


async def run_image_frame_scan(
    image_url: str,
    domain: str,
    session_id: str,
    description: str | None = None,
    contact_ids: list[str] | None = None,
    context: dict[str, Any] | None = None,
    llm: LLMCaller | None = None,
    annotator: NanoBananaClient | None = None,
    source_ref: str | None = None,
    subject_label: str | None = None,
    max_scans: int = FRAMESCAN_MAX_SCANS_PER_SESSION,
) -> FrameScanOutcome:
    """
    Annotate an image, analyze the annotations and store the scored report.

    Raises:
        ValueError: Missing image_url or a non-image domain
        FrameScanThrottleError: Session scan limit reached
        ProviderNotConfiguredError / ProviderRequestError: Annotation failed
        FrameScanRejectionError: The model declined to analyze the image
        FrameScanLLMError: The model answer could not be used

    Side Effects:
        Same as run_text_frame_scan(), plus one NanoBanana API call.
    """
    if not image_url:
        raise ValueError("image_url is required")
    if not is_image_domain(domain):
        raise ValueError(f"Invalid image domain: {domain}")

    reserve_scan(session_id, max_scans=max_scans)
    try:
        annotator = annotator or NanoBananaClient()
        with time_block("framescan.annotate"):
            annotated = await annotator.annotate_image(image_url=image_url)
        annotations, annotated_image_url = parse_annotations(annotated["annotations"])

        combined = build_image_description(
            description, [a.model_dump() for a in annotations]
        )
        result = await _analyze(llm or get_llm_caller(), "image", domain, combined, context)
        report = _finish_scan(
            result,
            session_id=session_id,
            contact_ids=contact_ids or [CONTACT_ZERO_ID],
            subject_label=subject_label or get_domain_label(domain),
            context=context,
            source_ref=source_ref or image_url,
            annotations=annotations,
        )
    except Exception:
        release_scan(session_id)
        raise
    return FrameScanOutcome(
        report=report,
        annotations=annotations,
        annotated_image_url=annotated_image_url,
    )
