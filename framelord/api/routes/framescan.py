"""
FrameScan endpoints.

Scans run through framelord.framescan.scanner with the LLM caller and the
NanoBanana client injected as dependencies, so tests can swap both.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, ConfigDict, Field

from framelord.api.dependencies import charge_llm_budget, get_client_id
from framelord.api.errors import bad_request, not_found, provider_http_error
from framelord.config import FRAMESCAN_MAX_CONTENT_CHARS
from framelord.credits.models import ScanTier, get_cost_for_tier
from framelord.credits.repository import CreditRepository
from framelord.framescan.public_gate import (
    PublicScanUsedError,
    mark_public_scan_used,
    release_public_scan,
    reserve_public_scan,
)
from framelord.framescan.repository import FrameScanReport, FrameScanReportRepository
from framelord.framescan.scanner import (
    FrameScanLLMError,
    FrameScanOutcome,
    FrameScanRejectionError,
    run_image_frame_scan,
    run_text_frame_scan,
)
from framelord.framescan.scoring import (
    get_score_severity,
    get_strongest_axes,
    get_weakest_axes,
    summarize_frame_score,
)
from framelord.framescan.throttle import FrameScanThrottleError, get_session_stats
from framelord.framescan.types import ImageAnnotation, WeightedAxisScore
from framelord.llm.caller import LLMCaller, get_llm_caller
from framelord.messaging.annotate import NanoBananaClient, get_nanobanana_client
from framelord.observability.logging import get_logger
from framelord.providers.http import ProviderError

router = APIRouter(prefix="/api/framescan", tags=["framescan"])
logger = get_logger(__name__)


# ============================================================================
# Request/Response Models
# ============================================================================


class TextScanRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    content: str = Field(..., max_length=FRAMESCAN_MAX_CONTENT_CHARS)
    domain: str = "generic"
    session_id: str | None = Field(default=None, alias="sessionId")
    contact_ids: list[str] | None = Field(default=None, alias="contactIds")
    context: dict[str, Any] | None = None
    subject_label: str | None = Field(default=None, alias="subjectLabel")


class ImageScanRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    image_url: str = Field(..., alias="imageUrl", min_length=1)
    domain: str = "profile_photo"
    description: str | None = Field(default=None, max_length=FRAMESCAN_MAX_CONTENT_CHARS)
    session_id: str | None = Field(default=None, alias="sessionId")
    contact_ids: list[str] | None = Field(default=None, alias="contactIds")
    context: dict[str, Any] | None = None
    subject_label: str | None = Field(default=None, alias="subjectLabel")
    tier: ScanTier = ScanTier.BASIC
    tenant_id: str | None = Field(default=None, alias="tenantId")


class PublicScanRequest(BaseModel):
    content: str = Field(..., max_length=FRAMESCAN_MAX_CONTENT_CHARS)
    domain: str = "generic"


class ScanResponse(BaseModel):
    report: FrameScanReport
    summary: str
    severity: str
    weakest_axes: list[WeightedAxisScore]
    strongest_axes: list[WeightedAxisScore]
    annotations: list[ImageAnnotation] = Field(default_factory=list)
    annotated_image_url: str | None = None


class ReportListResponse(BaseModel):
    reports: list[FrameScanReport]
    total: int


def _scan_response(
    report: FrameScanReport,
    annotations: list[ImageAnnotation] | None = None,
    annotated_image_url: str | None = None,
) -> ScanResponse:
    score = report.score
    return ScanResponse(
        report=report,
        summary=summarize_frame_score(score),
        severity=get_score_severity(score.frame_score),
        weakest_axes=get_weakest_axes(score),
        strongest_axes=get_strongest_axes(score),
        annotations=annotations if annotations is not None else report.image_annotations,
        annotated_image_url=annotated_image_url,
    )


def _outcome_response(outcome: FrameScanOutcome) -> ScanResponse:
    return _scan_response(outcome.report, outcome.annotations, outcome.annotated_image_url)


def _scan_http_error(error: Exception) -> HTTPException:
    """Map scanner exceptions to HTTP errors."""
    if isinstance(error, FrameScanThrottleError):
        return HTTPException(status_code=429, detail=str(error))
    if isinstance(error, FrameScanRejectionError):
        return HTTPException(
            status_code=422,
            detail={"error": "rejected", "rejection_reason": error.rejection_reason},
        )
    if isinstance(error, FrameScanLLMError):
        logger.warning("FrameScan LLM failure: %s", error)
        return HTTPException(status_code=502, detail="FrameScan analysis failed")
    if isinstance(error, ProviderError):
        return provider_http_error(error)
    if isinstance(error, OSError):
        logger.error("FrameScan LLM unavailable: %s", error)
        return HTTPException(status_code=503, detail="AI service temporarily unavailable")
    return bad_request(error)


_SCAN_ERRORS = (
    FrameScanThrottleError,
    FrameScanRejectionError,
    FrameScanLLMError,
    ProviderError,
    OSError,
    ValueError,
)


# ============================================================================
# Scan Endpoints
# ============================================================================


@router.post("/text", response_model=ScanResponse)
async def text_scan(
    request: TextScanRequest,
    client_id: str = Depends(get_client_id),
    llm: LLMCaller = Depends(get_llm_caller),
) -> ScanResponse:
    """
    Run a text FrameScan.

    Errors: 400 invalid input, 422 content rejected by the model, 429 session
    or budget limit, 502 unusable model answer.
    """
    charge_llm_budget(client_id, "framescan")
    try:
        outcome = await run_text_frame_scan(
            request.content,
            request.domain,
            session_id=request.session_id or client_id,
            contact_ids=request.contact_ids,
            context=request.context,
            llm=llm,
            subject_label=request.subject_label,
        )
    except _SCAN_ERRORS as e:
        raise _scan_http_error(e) from None
    return _outcome_response(outcome)


@router.post("/image", response_model=ScanResponse)
async def image_scan(
    request: ImageScanRequest,
    client_id: str = Depends(get_client_id),
    llm: LLMCaller = Depends(get_llm_caller),
    annotator: NanoBananaClient = Depends(get_nanobanana_client),
) -> ScanResponse:
    """
    Annotate and score an image.

    With a tenantId the scan tier is charged in credits before the scan runs
    (402 when the balance cannot cover it) and refunded if the scan fails.
    """
    tier = ScanTier(request.tier).value
    cost = get_cost_for_tier(tier)
    charge = None
    if request.tenant_id and cost > 0:
        charge = CreditRepository.charge_scan(request.tenant_id, tier)
        if charge is None:
            raise HTTPException(
                status_code=402,
                detail=f"Insufficient credits: {tier} scan costs {cost}",
            )

    try:
        charge_llm_budget(client_id, "framescan")
        outcome = await run_image_frame_scan(
            request.image_url,
            request.domain,
            session_id=request.session_id or client_id,
            description=request.description,
            contact_ids=request.contact_ids,
            context=request.context,
            llm=llm,
            annotator=annotator,
            subject_label=request.subject_label,
        )
    except Exception as e:
        if charge is not None:
            CreditRepository.refund_credits(
                charge.tenant_id, cost, f"Refund: {tier} image scan failed"
            )
        if isinstance(e, _SCAN_ERRORS):
            raise _scan_http_error(e) from None
        raise

    if charge is not None:
        CreditRepository.attach_scan_report(charge.id, outcome.report.id)
    return _outcome_response(outcome)


@router.post("/public", response_model=ScanResponse)
async def public_scan(
    request: PublicScanRequest,
    client_id: str = Depends(get_client_id),
    llm: LLMCaller = Depends(get_llm_caller),
) -> ScanResponse:
    """One free text scan per anonymous client; 403 afterwards."""
    try:
        reserve_public_scan(client_id)
    except PublicScanUsedError as e:
        raise HTTPException(status_code=403, detail=str(e)) from None

    try:
        charge_llm_budget(client_id, "framescan_public")
        outcome = await run_text_frame_scan(
            request.content,
            request.domain,
            session_id=f"public:{client_id}",
            llm=llm,
        )
    except Exception as e:
        release_public_scan(client_id)
        if isinstance(e, _SCAN_ERRORS):
            raise _scan_http_error(e) from None
        raise

    mark_public_scan_used(client_id)
    return _outcome_response(outcome)


# ============================================================================
# Reports / Session
# ============================================================================


@router.get("/reports", response_model=ReportListResponse)
async def list_reports(
    contact_id: str | None = Query(None, alias="contactId", description="Filter by subject"),
) -> ReportListResponse:
    reports = FrameScanReportRepository.list_reports(contact_id)
    return ReportListResponse(reports=reports, total=len(reports))


@router.get("/reports/{report_id}", response_model=ScanResponse)
async def get_report(report_id: str) -> ScanResponse:
    report = FrameScanReportRepository.get_report(report_id)
    if report is None:
        raise not_found(LookupError(f"Report not found: {report_id}"))
    return _scan_response(report)


@router.delete("/reports/{report_id}")
async def delete_report(report_id: str) -> dict[str, Any]:
    if not FrameScanReportRepository.delete_report(report_id):
        raise not_found(LookupError(f"Report not found: {report_id}"))
    return {"success": True, "id": report_id}


@router.get("/session/{session_id}")
async def session_stats(session_id: str) -> dict[str, Any]:
    return {"session_id": session_id, **get_session_stats(session_id)}
