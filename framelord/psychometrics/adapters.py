"""
Turn notes and FrameScan reports into psychometric evidence.

Contact Zero never collects evidence; profiles describe other people.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from framelord.infrastructure.database_schema import CONTACT_ZERO_ID
from framelord.psychometrics.models import EvidenceSourceType
from framelord.psychometrics.repository import PsychometricRepository

if TYPE_CHECKING:
    from framelord.crm.models import Note
    from framelord.framescan.repository import FrameScanReport


def note_evidence_targets(note: Note) -> list[str]:
    """The attached contact plus mentioned contacts, deduped, without Contact Zero."""
    targets: list[str] = []
    for contact_id in [note.contact_id, *note.mentions]:
        if contact_id and contact_id != CONTACT_ZERO_ID and contact_id not in targets:
            targets.append(contact_id)
    return targets


def add_note_evidence(note: Note) -> int:
    """Returns the number of evidence rows written."""
    if not note.content.strip() or note.in_trash:
        return 0
    added = 0
    for contact_id in note_evidence_targets(note):
        if PsychometricRepository.add_evidence(
            contact_id, EvidenceSourceType.NOTE, note.id, note.content
        ):
            added += 1
    return added


def refresh_note_evidence(note: Note) -> int:
    """Replace evidence from an edited note."""
    PsychometricRepository.remove_evidence_by_origin(note.id)
    return add_note_evidence(note)


def remove_note_evidence(note_id: str) -> int:
    return PsychometricRepository.remove_evidence_by_origin(note_id)


def framescan_evidence_text(report: FrameScanReport) -> str:
    result = report.raw_result
    parts: list[str] = []

    if report.context:
        if report.context.get("what"):
            parts.append(f"Context: {report.context['what']}")
        if report.context.get("userConcern"):
            parts.append(f"User concern: {report.context['userConcern']}")

    if result.status == "ok":
        if result.diagnostics.primary_patterns:
            parts.append(f"Primary patterns: {', '.join(result.diagnostics.primary_patterns)}")
        if result.diagnostics.supporting_evidence:
            parts.append(f"Evidence: {' | '.join(result.diagnostics.supporting_evidence)}")
        axis_notes = "; ".join(
            f"{axis.axis_id}: {axis.notes}" for axis in result.axes if axis.notes.strip()
        )
        if axis_notes:
            parts.append(f"Axis observations: {axis_notes}")

    return "\n\n".join(parts)


def add_framescan_evidence(report: FrameScanReport) -> int:
    if report.raw_result.status == "rejected":
        return 0
    text = framescan_evidence_text(report)
    if not text:
        return 0
    added = 0
    for contact_id in report.subject_contact_ids:
        if contact_id == CONTACT_ZERO_ID:
            continue
        if PsychometricRepository.add_evidence(
            contact_id, EvidenceSourceType.FRAMESCAN, report.id, text
        ):
            added += 1
    return added
