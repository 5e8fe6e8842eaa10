"""
Psychometric profile and evidence store.

Evidence is unique per (contact_id, origin_id): re-adding the same note or
report for a contact is a no-op. Updating a source means removing its
evidence by origin and adding it again.
"""

from __future__ import annotations

import uuid

from framelord.infrastructure.database import db_transaction, get_db_connection, retry_on_db_lock
from framelord.observability.logging import get_logger
from framelord.psychometrics.models import (
    EvidenceSourceType,
    PsychometricEvidence,
    PsychometricProfile,
    utc_now,
)

logger = get_logger(__name__)


class PsychometricRepository:
    """Static-method repository over psychometric_profiles and psychometric_evidence."""

    @staticmethod
    @retry_on_db_lock()
    def add_evidence(
        contact_id: str,
        source_type: EvidenceSourceType | str,
        origin_id: str,
        raw_text: str,
    ) -> bool:
        """
        Record evidence for a contact.

        Returns:
            True if inserted, False if this origin is already recorded

        Side Effects:
            - Inserts a psychometric_evidence row
        """
        entry = PsychometricEvidence(
            id=f"ev_{uuid.uuid4().hex[:16]}",
            contact_id=contact_id,
            source_type=source_type,
            origin_id=origin_id,
            raw_text=raw_text,
        )
        with db_transaction() as conn:
            cursor = conn.execute(
                """
                INSERT OR IGNORE INTO psychometric_evidence (
                    id, contact_id, source_type, origin_id, raw_text, created_at
                ) VALUES (
                    :id, :contact_id, :source_type, :origin_id, :raw_text, :created_at
                )
                """,
                entry.to_db_dict(),
            )
        inserted = cursor.rowcount > 0
        if inserted:
            logger.debug(
                "Evidence %s for contact %s from %s %s",
                entry.id,
                contact_id,
                entry.source_type,
                origin_id,
            )
        return inserted

    @staticmethod
    def get_evidence(contact_id: str) -> list[PsychometricEvidence]:
        """All evidence for contact_id, oldest first."""
        with get_db_connection() as conn:
            rows = conn.execute(
                """
                SELECT * FROM psychometric_evidence
                WHERE contact_id = ?
                ORDER BY created_at, rowid
                """,
                (contact_id,),
            ).fetchall()
        return [PsychometricEvidence.from_db_row(dict(row)) for row in rows]

    @staticmethod
    @retry_on_db_lock()
    def remove_evidence_by_origin(origin_id: str, contact_id: str | None = None) -> int:
        """Remove evidence from origin_id, for one contact or all of them."""
        query = "DELETE FROM psychometric_evidence WHERE origin_id = ?"
        params: tuple[str, ...] = (origin_id,)
        if contact_id is not None:
            query += " AND contact_id = ?"
            params = (origin_id, contact_id)
        with db_transaction() as conn:
            cursor = conn.execute(query, params)
        return cursor.rowcount

    @staticmethod
    def count_evidence(contact_id: str) -> int:
        with get_db_connection() as conn:
            row = conn.execute(
                "SELECT COUNT(*) AS n FROM psychometric_evidence WHERE contact_id = ?",
                (contact_id,),
            ).fetchone()
        return row["n"]

    @staticmethod
    def has_evidence(contact_id: str) -> bool:
        return PsychometricRepository.count_evidence(contact_id) > 0

    @staticmethod
    def get_profile(contact_id: str) -> PsychometricProfile | None:
        with get_db_connection() as conn:
            row = conn.execute(
                "SELECT * FROM psychometric_profiles WHERE contact_id = ?", (contact_id,)
            ).fetchone()
        return PsychometricProfile.from_db_row(dict(row)) if row else None

    @staticmethod
    @retry_on_db_lock()
    def save_profile(profile: PsychometricProfile) -> PsychometricProfile:
        profile = profile.model_copy(update={"updated_at": utc_now()})
        with db_transaction() as conn:
            conn.execute(
                """
                INSERT INTO psychometric_profiles (
                    contact_id, status, big_five, mbti, disc, dark_traits, updated_at
                ) VALUES (
                    :contact_id, :status, :big_five, :mbti, :disc, :dark_traits, :updated_at
                )
                ON CONFLICT(contact_id) DO UPDATE SET
                    status = excluded.status,
                    big_five = excluded.big_five,
                    mbti = excluded.mbti,
                    disc = excluded.disc,
                    dark_traits = excluded.dark_traits,
                    updated_at = excluded.updated_at
                """,
                profile.to_db_dict(),
            )
        return profile

    @staticmethod
    @retry_on_db_lock()
    def clear_contact(contact_id: str) -> None:
        with db_transaction() as conn:
            conn.execute("DELETE FROM psychometric_evidence WHERE contact_id = ?", (contact_id,))
            conn.execute("DELETE FROM psychometric_profiles WHERE contact_id = ?", (contact_id,))
        logger.info("Cleared psychometric data for contact %s", contact_id)
