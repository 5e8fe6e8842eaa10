"""
Note repository with trash, pinning, archiving and mentions.

delete_note() only moves a note to the trash (deleted_at set); trashed notes
are hidden from listings and search until restored or purged. Note content
attached to or mentioning a contact is mirrored into psychometric evidence.
"""

from __future__ import annotations

import re
import uuid
from datetime import datetime, timedelta
from typing import Any

from framelord.crm.models import Note, utc_now
from framelord.infrastructure.database import db_transaction, get_db_connection, retry_on_db_lock
from framelord.infrastructure.database_schema import CONTACT_ZERO_ID
from framelord.observability.logging import get_logger
from framelord.psychometrics.adapters import (
    add_note_evidence,
    refresh_note_evidence,
    remove_note_evidence,
)

logger = get_logger(__name__)

TRASH_RETENTION_DAYS = 30

_HASHTAG_RE = re.compile(r"(?<![\w#])#([A-Za-z0-9][\w-]*)")

UPDATABLE_FIELDS = frozenset({"title", "content", "contact_id", "pinned", "archived", "mentions"})


class NoteNotFoundError(LookupError):
    def __init__(self, note_id: str):
        super().__init__(f"Note not found: {note_id}")
        self.note_id = note_id


def extract_topics(content: str) -> list[str]:
    """#hashtag labels in content, lowercased, unique, in first-seen order."""
    topics: list[str] = []
    for match in _HASHTAG_RE.finditer(content or ""):
        label = match.group(1).lower()
        if label not in topics:
            topics.append(label)
    return topics


def _sort_key(note: Note) -> tuple[int, float]:
    return (0 if note.pinned else 1, -note.updated_at.timestamp())


class NoteRepository:
    """Static-method repository over the notes table."""

    @staticmethod
    @retry_on_db_lock()
    def _save(note: Note) -> Note:
        with db_transaction() as conn:
            conn.execute(
                """
                INSERT INTO notes (
                    id, title, content, contact_id, author_contact_id, pinned, archived,
                    deleted_at, mentions, topics, created_at, updated_at
                ) VALUES (
                    :id, :title, :content, :contact_id, :author_contact_id, :pinned, :archived,
                    :deleted_at, :mentions, :topics, :created_at, :updated_at
                )
                ON CONFLICT(id) DO UPDATE SET
                    title = excluded.title,
                    content = excluded.content,
                    contact_id = excluded.contact_id,
                    pinned = excluded.pinned,
                    archived = excluded.archived,
                    deleted_at = excluded.deleted_at,
                    mentions = excluded.mentions,
                    topics = excluded.topics,
                    updated_at = excluded.updated_at
                """,
                note.to_db_dict(),
            )
        return note

    @staticmethod
    def get_note(note_id: str) -> Note | None:
        with get_db_connection() as conn:
            row = conn.execute("SELECT * FROM notes WHERE id = ?", (note_id,)).fetchone()
        return Note.from_db_row(dict(row)) if row else None

    @staticmethod
    def require_note(note_id: str) -> Note:
        note = NoteRepository.get_note(note_id)
        if note is None:
            raise NoteNotFoundError(note_id)
        return note

    @staticmethod
    def _all() -> list[Note]:
        with get_db_connection() as conn:
            rows = conn.execute("SELECT * FROM notes").fetchall()
        return [Note.from_db_row(dict(row)) for row in rows]

    @staticmethod
    def create_note(
        content: str = "",
        title: str = "",
        contact_id: str | None = None,
        author_contact_id: str = CONTACT_ZERO_ID,
        mentions: list[str] | None = None,
    ) -> Note:
        """
        Create a note; topics are extracted from the content.

        Side Effects:
            - Inserts a notes row
            - Adds psychometric evidence for the attached and mentioned contacts
        """
        note = Note(
            id=f"note_{uuid.uuid4().hex[:12]}",
            title=title.strip(),
            content=content,
            contact_id=contact_id,
            author_contact_id=author_contact_id,
            mentions=list(dict.fromkeys(mentions or [])),
            topics=extract_topics(content),
        )
        NoteRepository._save(note)
        add_note_evidence(note)
        logger.info("Created note %s", note.id)
        return note

    @staticmethod
    def update_note(note_id: str, **changes: Any) -> Note:
        """
        Raises:
            NoteNotFoundError: Unknown note_id
            ValueError: Unknown field
        """
        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown note fields: {', '.join(sorted(unknown))}")

        note = NoteRepository.require_note(note_id)
        if "title" in changes and changes["title"] is not None:
            changes["title"] = changes["title"].strip()
        if "content" in changes:
            changes["topics"] = extract_topics(changes["content"] or "")
        changes["updated_at"] = utc_now()

        updated = Note.model_validate({**note.model_dump(), **changes})
        NoteRepository._save(updated)
        if {"content", "contact_id", "mentions"} & set(changes):
            refresh_note_evidence(updated)
        return updated

    @staticmethod
    def delete_note(note_id: str) -> bool:
        """Move a note to the trash. False if it does not exist."""
        note = NoteRepository.get_note(note_id)
        if note is None:
            return False
        now = utc_now()
        NoteRepository._save(note.model_copy(update={"deleted_at": now, "updated_at": now}))
        return True

    @staticmethod
    def restore_note(note_id: str) -> bool:
        """Take a note out of the trash. False if missing or not trashed."""
        note = NoteRepository.get_note(note_id)
        if note is None or not note.in_trash:
            return False
        NoteRepository._save(note.model_copy(update={"deleted_at": None, "updated_at": utc_now()}))
        return True

    @staticmethod
    @retry_on_db_lock()
    def permanently_delete_note(note_id: str) -> bool:
        with db_transaction() as conn:
            cursor = conn.execute("DELETE FROM notes WHERE id = ?", (note_id,))
        if cursor.rowcount:
            remove_note_evidence(note_id)
        return cursor.rowcount > 0

    @staticmethod
    def list_deleted() -> list[Note]:
        """Trash, most recently deleted first."""
        trashed = [n for n in NoteRepository._all() if n.in_trash]
        return sorted(trashed, key=lambda n: n.deleted_at, reverse=True)

    @staticmethod
    def trash_count() -> int:
        return len(NoteRepository.list_deleted())

    @staticmethod
    def empty_trash() -> int:
        return NoteRepository._purge([n.id for n in NoteRepository.list_deleted()])

    @staticmethod
    def auto_purge_trash(days: int = TRASH_RETENTION_DAYS, now: datetime | None = None) -> int:
        """Permanently delete notes trashed more than days ago."""
        cutoff = (now or utc_now()) - timedelta(days=days)
        expired = [n.id for n in NoteRepository.list_deleted() if n.deleted_at < cutoff]
        purged = NoteRepository._purge(expired)
        if purged:
            logger.info("Auto-purged %d note(s) from trash (older than %d days)", purged, days)
        return purged

    @staticmethod
    @retry_on_db_lock()
    def _purge(note_ids: list[str]) -> int:
        if not note_ids:
            return 0
        with db_transaction() as conn:
            conn.executemany("DELETE FROM notes WHERE id = ?", [(i,) for i in note_ids])
        for note_id in note_ids:
            remove_note_evidence(note_id)
        return len(note_ids)

    @staticmethod
    def list_notes(contact_id: str | None = None, include_archived: bool = True) -> list[Note]:
        """Notes outside the trash, pinned first, then most recently updated."""
        notes = [n for n in NoteRepository._all() if not n.in_trash]
        if contact_id is not None:
            notes = [n for n in notes if n.contact_id == contact_id]
        if not include_archived:
            notes = [n for n in notes if not n.archived]
        return sorted(notes, key=_sort_key)

    @staticmethod
    def list_archived() -> list[Note]:
        return [n for n in NoteRepository.list_notes() if n.archived]

    @staticmethod
    def search_notes(query: str, contact_id: str | None = None) -> list[Note]:
        q = (query or "").strip().lower()
        if not q:
            return []
        return [
            n
            for n in NoteRepository.list_notes(contact_id)
            if q in n.title.lower() or q in n.content.lower()
        ]

    @staticmethod
    def toggle_pin(note_id: str) -> Note:
        note = NoteRepository.require_note(note_id)
        return NoteRepository._save(
            note.model_copy(update={"pinned": not note.pinned, "updated_at": utc_now()})
        )

    @staticmethod
    def archive_note(note_id: str) -> Note:
        return NoteRepository.update_note(note_id, archived=True)

    @staticmethod
    def unarchive_note(note_id: str) -> Note:
        return NoteRepository.update_note(note_id, archived=False)

    @staticmethod
    def add_mention(note_id: str, contact_id: str) -> Note:
        note = NoteRepository.require_note(note_id)
        if contact_id in note.mentions:
            return note
        return NoteRepository.update_note(note_id, mentions=[*note.mentions, contact_id])

    @staticmethod
    def remove_mention(note_id: str, contact_id: str) -> Note:
        note = NoteRepository.require_note(note_id)
        if contact_id not in note.mentions:
            return note
        return NoteRepository.update_note(
            note_id, mentions=[m for m in note.mentions if m != contact_id]
        )

    @staticmethod
    def clear() -> None:
        with db_transaction() as conn:
            conn.execute("DELETE FROM notes")
