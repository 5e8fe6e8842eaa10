"""
FrameScan report store.

Each successful scan is persisted with its raw LLM result and computed
score so reports can be listed per contact.
"""

from __future__ import annotations

import json
import uuid
from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

from framelord.framescan.types import FrameScanResult, FrameScore, ImageAnnotation
from framelord.infrastructure.database import db_transaction, get_db_connection, retry_on_db_lock
from framelord.infrastructure.database_schema import CONTACT_ZERO_ID
from framelord.observability.logging import get_logger
from framelord.psychometrics.repository import PsychometricRepository

logger = get_logger(__name__)


def utc_now() -> datetime:
    return datetime.now(UTC)


class FrameScanReport(BaseModel):
    """A stored FrameScan: subject, inputs, LLM result and score."""

    id: str
    title: str
    subject_type: Literal["self", "contact"]
    subject_contact_ids: list[str] = Field(default_factory=list)
    modality: str
    domain: str
    session_id: str | None = None
    context: dict[str, Any] | None = None
    source_ref: str | None = None
    raw_result: FrameScanResult
    score: FrameScore
    image_annotations: list[ImageAnnotation] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utc_now)

    def to_db_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "subject_type": self.subject_type,
            "subject_contact_ids": json.dumps(self.subject_contact_ids),
            "modality": self.modality,
            "domain": self.domain,
            "session_id": self.session_id,
            "context": json.dumps(self.context) if self.context is not None else None,
            "source_ref": self.source_ref,
            "frame_score": self.score.frame_score,
            "raw_result": self.raw_result.model_dump_json(),
            "score_json": self.score.model_dump_json(),
            "image_annotations": json.dumps([a.model_dump() for a in self.image_annotations]),
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_db_row(cls, row: dict[str, Any]) -> FrameScanReport:
        created_at = datetime.fromisoformat(row["created_at"])
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=UTC)
        return cls(
            id=row["id"],
            title=row["title"],
            subject_type=row["subject_type"],
            subject_contact_ids=json.loads(row.get("subject_contact_ids") or "[]"),
            modality=row["modality"],
            domain=row["domain"],
            session_id=row.get("session_id"),
            context=json.loads(row["context"]) if row.get("context") else None,
            source_ref=row.get("source_ref"),
            raw_result=FrameScanResult.model_validate_json(row["raw_result"]),
            score=FrameScore.model_validate_json(row["score_json"]),
            image_annotations=json.loads(row.get("image_annotations") or "[]"),
            created_at=created_at,
        )


def subject_type_for(contact_ids: list[str]) -> Literal["self", "contact"]:
    """A scan is about "self" only when Contact Zero is its sole subject."""
    if len(contact_ids) == 1 and contact_ids[0] == CONTACT_ZERO_ID:
        return "self"
    return "contact"


class FrameScanReportRepository:
    """Static-method repository over framescan_reports."""

    @staticmethod
    @retry_on_db_lock()
    def add_report(
        title: str,
        contact_ids: list[str],
        result: FrameScanResult,
        score: FrameScore,
        session_id: str | None = None,
        context: dict[str, Any] | None = None,
        source_ref: str | None = None,
        image_annotations: list[ImageAnnotation] | None = None,
    ) -> FrameScanReport:
        """
        Persist a scored scan.

        Side Effects:
            - Inserts a framescan_reports row
        """
        report = FrameScanReport(
            id=f"fs_{uuid.uuid4().hex[:16]}",
            title=title,
            subject_type=subject_type_for(contact_ids),
            subject_contact_ids=contact_ids,
            modality=result.modality,
            domain=result.domain,
            session_id=session_id,
            context=context,
            source_ref=source_ref,
            raw_result=result,
            score=score,
            image_annotations=image_annotations or [],
        )
        with db_transaction() as conn:
            conn.execute(
                """
                INSERT INTO framescan_reports (
                    id, title, subject_type, subject_contact_ids, modality, domain,
                    session_id, context, source_ref, frame_score, raw_result, score_json,
                    image_annotations, created_at
                ) VALUES (
                    :id, :title, :subject_type, :subject_contact_ids, :modality, :domain,
                    :session_id, :context, :source_ref, :frame_score, :raw_result, :score_json,
                    :image_annotations, :created_at
                )
                """,
                report.to_db_dict(),
            )
        logger.info(
            "Saved FrameScan report %s (%s/%s, score %d)",
            report.id,
            report.modality,
            report.domain,
            score.frame_score,
        )
        return report

    @staticmethod
    def get_report(report_id: str) -> FrameScanReport | None:
        with get_db_connection() as conn:
            row = conn.execute(
                "SELECT * FROM framescan_reports WHERE id = ?", (report_id,)
            ).fetchone()
        return FrameScanReport.from_db_row(dict(row)) if row else None

    @staticmethod
    def list_reports(contact_id: str | None = None) -> list[FrameScanReport]:
        """Reports newest first, optionally only those naming contact_id as a subject."""
        with get_db_connection() as conn:
            rows = conn.execute(
                "SELECT * FROM framescan_reports ORDER BY created_at DESC, rowid DESC"
            ).fetchall()
        reports = [FrameScanReport.from_db_row(dict(row)) for row in rows]
        if contact_id is None:
            return reports
        return [r for r in reports if contact_id in r.subject_contact_ids]

    @staticmethod
    @retry_on_db_lock()
    def delete_report(report_id: str) -> bool:
        """Side Effects: also drops psychometric evidence derived from the report."""
        with db_transaction() as conn:
            cursor = conn.execute("DELETE FROM framescan_reports WHERE id = ?", (report_id,))
        if cursor.rowcount:
            PsychometricRepository.remove_evidence_by_origin(report_id)
        return cursor.rowcount > 0

    @staticmethod
    def clear() -> None:
        with db_transaction() as conn:
            conn.execute("DELETE FROM framescan_reports")
