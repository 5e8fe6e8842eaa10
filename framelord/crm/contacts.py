"""
Contact repository.

Contacts are never hard-deleted; archive_contact() flips status to
"archived". Contact Zero is seeded with the schema and cannot be archived.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from framelord.crm.models import Contact, ContactStatus, FrameMetrics, FrameTrend, utc_now
from framelord.infrastructure.database import db_transaction, get_db_connection, retry_on_db_lock
from framelord.infrastructure.database_schema import CONTACT_ZERO_ID
from framelord.observability.logging import get_logger

logger = get_logger(__name__)

# Minimum score change between scans that counts as a trend
FRAME_TREND_THRESHOLD = 3

_UPSERT_SQL = """
    INSERT INTO contacts (
        id, full_name, email, phone, relationship_domain, relationship_role, status,
        frame_score, frame_trend, last_scan_at, last_contact_at, next_action_at, tags,
        company, title, location, linkedin_url, x_handle, created_at, updated_at
    ) VALUES (
        :id, :full_name, :email, :phone, :relationship_domain, :relationship_role, :status,
        :frame_score, :frame_trend, :last_scan_at, :last_contact_at, :next_action_at, :tags,
        :company, :title, :location, :linkedin_url, :x_handle, :created_at, :updated_at
    )
    ON CONFLICT(id) DO UPDATE SET
        full_name = excluded.full_name,
        email = excluded.email,
        phone = excluded.phone,
        relationship_domain = excluded.relationship_domain,
        relationship_role = excluded.relationship_role,
        status = excluded.status,
        frame_score = excluded.frame_score,
        frame_trend = excluded.frame_trend,
        last_scan_at = excluded.last_scan_at,
        last_contact_at = excluded.last_contact_at,
        next_action_at = excluded.next_action_at,
        tags = excluded.tags,
        company = excluded.company,
        title = excluded.title,
        location = excluded.location,
        linkedin_url = excluded.linkedin_url,
        x_handle = excluded.x_handle,
        updated_at = excluded.updated_at
"""

# Fields update_contact() may change; id, frame and timestamps are managed here
UPDATABLE_FIELDS = frozenset(
    {
        "full_name",
        "email",
        "phone",
        "relationship_domain",
        "relationship_role",
        "status",
        "last_contact_at",
        "next_action_at",
        "tags",
        "company",
        "title",
        "location",
        "linkedin_url",
        "x_handle",
    }
)


class ContactNotFoundError(LookupError):
    def __init__(self, contact_id: str):
        super().__init__(f"Contact not found: {contact_id}")
        self.contact_id = contact_id


class ContactZeroProtectedError(ValueError):
    def __init__(self) -> None:
        super().__init__("Cannot archive Contact Zero")


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    return value.strip() or None


def compute_frame_trend(
    previous_score: int, new_score: int, had_previous_scan: bool
) -> FrameTrend:
    """Trend is only meaningful relative to an earlier scan."""
    if not had_previous_scan:
        return FrameTrend.FLAT
    diff = new_score - previous_score
    if diff >= FRAME_TREND_THRESHOLD:
        return FrameTrend.UP
    if diff <= -FRAME_TREND_THRESHOLD:
        return FrameTrend.DOWN
    return FrameTrend.FLAT


class ContactRepository:
    """Static-method repository over the contacts table."""

    @staticmethod
    @retry_on_db_lock()
    def save(contact: Contact) -> Contact:
        contact = contact.model_copy(update={"updated_at": utc_now()})
        with db_transaction() as conn:
            conn.execute(_UPSERT_SQL, contact.to_db_dict())
        return contact

    @staticmethod
    def get_contact(contact_id: str) -> Contact | None:
        with get_db_connection() as conn:
            row = conn.execute("SELECT * FROM contacts WHERE id = ?", (contact_id,)).fetchone()
        return Contact.from_db_row(dict(row)) if row else None

    @staticmethod
    def require_contact(contact_id: str) -> Contact:
        """
        Raises:
            ContactNotFoundError: No contact with contact_id
        """
        contact = ContactRepository.get_contact(contact_id)
        if contact is None:
            raise ContactNotFoundError(contact_id)
        return contact

    @staticmethod
    def get_contact_zero() -> Contact:
        return ContactRepository.require_contact(CONTACT_ZERO_ID)

    @staticmethod
    def list_contacts(include_archived: bool = False, exclude_self: bool = False) -> list[Contact]:
        query = "SELECT * FROM contacts"
        clauses = []
        params: list[str] = []
        if not include_archived:
            clauses.append("status != 'archived'")
        if exclude_self:
            clauses.append("id != ?")
            params.append(CONTACT_ZERO_ID)
        if clauses:
            query += " WHERE " + " AND ".join(clauses)
        query += " ORDER BY created_at, rowid"

        with get_db_connection() as conn:
            rows = conn.execute(query, params).fetchall()
        return [Contact.from_db_row(dict(row)) for row in rows]

    @staticmethod
    def list_by_domain(domain: str, include_archived: bool = False) -> list[Contact]:
        """Contacts in a relationship domain; "all" returns every domain."""
        contacts = ContactRepository.list_contacts(include_archived=include_archived)
        if domain == "all":
            return contacts
        return [c for c in contacts if c.relationship_domain == domain]

    @staticmethod
    def list_active() -> list[Contact]:
        return [
            c
            for c in ContactRepository.list_contacts()
            if c.status == ContactStatus.ACTIVE.value
        ]

    @staticmethod
    def search_contacts(query: str, limit: int = 10, exclude_self: bool = True) -> list[Contact]:
        """
        Case-insensitive match on name, email or company among active contacts.

        Names that start with the query sort ahead of other matches.
        """
        q = (query or "").strip().lower()
        if not q:
            return []

        matches = []
        for contact in ContactRepository.list_active():
            if exclude_self and contact.is_contact_zero:
                continue
            haystacks = (contact.full_name, contact.email or "", contact.company or "")
            if any(q in h.lower() for h in haystacks):
                matches.append(contact)

        # stable sort keeps insertion order within each group
        matches.sort(key=lambda c: 0 if c.full_name.lower().startswith(q) else 1)
        return matches[:limit]

    @staticmethod
    def create_contact(
        full_name: str,
        relationship_domain: str = "business",
        email: str | None = None,
        phone: str | None = None,
        relationship_role: str | None = None,
        tags: list[str] | None = None,
        company: str | None = None,
        title: str | None = None,
        location: str | None = None,
        linkedin_url: str | None = None,
        x_handle: str | None = None,
    ) -> Contact:
        """
        Create an active contact with neutral frame metrics.

        Raises:
            ValueError: full_name is blank (pydantic ValidationError)
        """
        contact = Contact(
            id=f"contact_{uuid.uuid4().hex[:12]}",
            full_name=full_name,
            email=_clean(email),
            phone=_clean(phone),
            relationship_domain=relationship_domain,
            relationship_role=_clean(relationship_role) or "contact",
            tags=tags or [],
            company=_clean(company),
            title=_clean(title),
            location=_clean(location),
            linkedin_url=_clean(linkedin_url),
            x_handle=_clean(x_handle),
        )
        saved = ContactRepository.save(contact)
        logger.info("Created contact %s", saved.id)
        return saved

    @staticmethod
    def update_contact(contact_id: str, **changes: Any) -> Contact:
        """
        Apply field changes to an existing contact.

        Raises:
            ContactNotFoundError: Unknown contact_id
            ValueError: Unknown field, or archiving Contact Zero
        """
        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown contact fields: {', '.join(sorted(unknown))}")

        contact = ContactRepository.require_contact(contact_id)
        if contact.is_contact_zero and changes.get("status") == ContactStatus.ARCHIVED.value:
            raise ContactZeroProtectedError()

        for key in ("email", "phone", "company", "title", "location", "linkedin_url", "x_handle"):
            if key in changes:
                changes[key] = _clean(changes[key])

        updated = Contact.model_validate({**contact.model_dump(), **changes})
        return ContactRepository.save(updated)

    @staticmethod
    def archive_contact(contact_id: str) -> Contact:
        """
        Raises:
            ContactZeroProtectedError: contact_id is Contact Zero
            ContactNotFoundError: Unknown contact_id
        """
        if contact_id == CONTACT_ZERO_ID:
            raise ContactZeroProtectedError()
        contact = ContactRepository.require_contact(contact_id)
        logger.info("Archiving contact %s", contact_id)
        return ContactRepository.save(
            contact.model_copy(update={"status": ContactStatus.ARCHIVED.value})
        )

    @staticmethod
    def update_frame_metrics(
        contact_id: str, new_score: int, scanned_at: datetime | None = None
    ) -> Contact | None:
        """
        Record a new frame score for a contact.

        Returns:
            The updated contact, or None when contact_id is unknown

        Side Effects:
            - Sets current_score, trend and last_scan_at on the contact row
        """
        contact = ContactRepository.get_contact(contact_id)
        if contact is None:
            logger.warning("Skipping frame metrics for unknown contact %s", contact_id)
            return None

        trend = compute_frame_trend(
            contact.frame.current_score,
            new_score,
            had_previous_scan=contact.frame.last_scan_at is not None,
        )
        frame = FrameMetrics(
            current_score=new_score,
            trend=trend,
            last_scan_at=scanned_at or utc_now(),
        )
        return ContactRepository.save(contact.model_copy(update={"frame": frame}))
