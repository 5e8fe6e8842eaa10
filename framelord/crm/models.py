"""
CRM domain models: contacts, notes, tasks and the system log.

Contact Zero (id "contact_zero") is the user's own record. It is seeded with
the schema and every note defaults to it as author.
"""

from __future__ import annotations

import json
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from framelord.infrastructure.database_schema import CONTACT_ZERO_ID


def utc_now() -> datetime:
    """Return current UTC time as a timezone-aware datetime."""
    return datetime.now(UTC)


def _parse_dt(value: str | None) -> datetime | None:
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


class RelationshipDomain(str, Enum):
    BUSINESS = "business"
    PERSONAL = "personal"
    HYBRID = "hybrid"


class ContactStatus(str, Enum):
    ACTIVE = "active"
    DORMANT = "dormant"
    BLOCKED = "blocked"
    TESTING = "testing"
    ARCHIVED = "archived"


class FrameTrend(str, Enum):
    UP = "up"
    DOWN = "down"
    FLAT = "flat"


class TaskStatus(str, Enum):
    OPEN = "open"
    DONE = "done"
    BLOCKED = "blocked"


class LogEntryType(str, Enum):
    BILLING = "billing"
    ANNOUNCEMENT = "announcement"
    TASK = "task"
    SYSTEM = "system"
    CUSTOM = "custom"


class LogSeverity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    URGENT = "urgent"


class LogSource(str, Enum):
    OWNER = "owner"
    SYSTEM = "system"
    USER_RULE = "userRule"


class FrameMetrics(BaseModel):
    current_score: int = Field(default=50, ge=0, le=100)
    trend: FrameTrend = Field(default=FrameTrend.FLAT)
    last_scan_at: datetime | None = None

    model_config = ConfigDict(use_enum_values=True)


class Contact(BaseModel):
    """A person in the user's network (or the user, for Contact Zero)."""

    model_config = ConfigDict(use_enum_values=True)

    id: str = Field(..., description="Contact id (uuid, or contact_zero)")
    full_name: str = Field(..., description="Display name")
    email: str | None = None
    phone: str | None = None
    relationship_domain: RelationshipDomain = Field(default=RelationshipDomain.BUSINESS)
    relationship_role: str = Field(default="contact")
    status: ContactStatus = Field(default=ContactStatus.ACTIVE)
    frame: FrameMetrics = Field(default_factory=FrameMetrics)
    last_contact_at: datetime | None = None
    next_action_at: datetime | None = None
    tags: list[str] = Field(default_factory=list)
    company: str | None = None
    title: str | None = None
    location: str | None = None
    linkedin_url: str | None = None
    x_handle: str | None = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @field_validator("full_name")
    @classmethod
    def full_name_not_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("full_name cannot be empty")
        return v.strip()

    @property
    def is_contact_zero(self) -> bool:
        return self.id == CONTACT_ZERO_ID

    def to_db_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "full_name": self.full_name,
            "email": self.email,
            "phone": self.phone,
            "relationship_domain": self.relationship_domain,
            "relationship_role": self.relationship_role,
            "status": self.status,
            "frame_score": self.frame.current_score,
            "frame_trend": self.frame.trend,
            "last_scan_at": _iso(self.frame.last_scan_at),
            "last_contact_at": _iso(self.last_contact_at),
            "next_action_at": _iso(self.next_action_at),
            "tags": json.dumps(self.tags),
            "company": self.company,
            "title": self.title,
            "location": self.location,
            "linkedin_url": self.linkedin_url,
            "x_handle": self.x_handle,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_db_row(cls, row: dict[str, Any]) -> Contact:
        return cls(
            id=row["id"],
            full_name=row["full_name"],
            email=row.get("email"),
            phone=row.get("phone"),
            relationship_domain=row.get("relationship_domain") or RelationshipDomain.BUSINESS,
            relationship_role=row.get("relationship_role") or "contact",
            status=row.get("status") or ContactStatus.ACTIVE,
            frame=FrameMetrics(
                current_score=row.get("frame_score", 50),
                trend=row.get("frame_trend") or FrameTrend.FLAT,
                last_scan_at=_parse_dt(row.get("last_scan_at")),
            ),
            last_contact_at=_parse_dt(row.get("last_contact_at")),
            next_action_at=_parse_dt(row.get("next_action_at")),
            tags=json.loads(row.get("tags") or "[]"),
            company=row.get("company"),
            title=row.get("title"),
            location=row.get("location"),
            linkedin_url=row.get("linkedin_url"),
            x_handle=row.get("x_handle"),
            created_at=_parse_dt(row["created_at"]),
            updated_at=_parse_dt(row["updated_at"]),
        )


class Note(BaseModel):
    """A note, optionally attached to a contact. deleted_at set means it is in the trash."""

    model_config = ConfigDict(use_enum_values=True)

    id: str
    title: str = ""
    content: str = ""
    contact_id: str | None = None
    author_contact_id: str = Field(default=CONTACT_ZERO_ID)
    pinned: bool = False
    archived: bool = False
    deleted_at: datetime | None = None
    mentions: list[str] = Field(default_factory=list, description="Mentioned contact ids")
    topics: list[str] = Field(default_factory=list, description="Hashtag topics, lowercased")
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @property
    def in_trash(self) -> bool:
        return self.deleted_at is not None

    def to_db_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "content": self.content,
            "contact_id": self.contact_id,
            "author_contact_id": self.author_contact_id,
            "pinned": int(self.pinned),
            "archived": int(self.archived),
            "deleted_at": _iso(self.deleted_at),
            "mentions": json.dumps(self.mentions),
            "topics": json.dumps(self.topics),
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_db_row(cls, row: dict[str, Any]) -> Note:
        return cls(
            id=row["id"],
            title=row.get("title") or "",
            content=row.get("content") or "",
            contact_id=row.get("contact_id"),
            author_contact_id=row.get("author_contact_id") or CONTACT_ZERO_ID,
            pinned=bool(row.get("pinned")),
            archived=bool(row.get("archived")),
            deleted_at=_parse_dt(row.get("deleted_at")),
            mentions=json.loads(row.get("mentions") or "[]"),
            topics=json.loads(row.get("topics") or "[]"),
            created_at=_parse_dt(row["created_at"]),
            updated_at=_parse_dt(row["updated_at"]),
        )


class Task(BaseModel):
    """A to-do tied to a contact."""

    model_config = ConfigDict(use_enum_values=True)

    id: str
    contact_id: str
    title: str
    due_at: datetime | None = None
    status: TaskStatus = Field(default=TaskStatus.OPEN)
    created_at: datetime = Field(default_factory=utc_now)

    @field_validator("title")
    @classmethod
    def title_not_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("title cannot be empty")
        return v.strip()

    def to_db_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "contact_id": self.contact_id,
            "title": self.title,
            "due_at": _iso(self.due_at),
            "status": self.status,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_db_row(cls, row: dict[str, Any]) -> Task:
        return cls(
            id=row["id"],
            contact_id=row["contact_id"],
            title=row["title"],
            due_at=_parse_dt(row.get("due_at")),
            status=row.get("status") or TaskStatus.OPEN,
            created_at=_parse_dt(row["created_at"]),
        )


class SystemLogEntry(BaseModel):
    """One entry in the notification stream."""

    model_config = ConfigDict(use_enum_values=True)

    id: str
    type: LogEntryType
    title: str
    message: str
    severity: LogSeverity = Field(default=LogSeverity.INFO)
    source: LogSource = Field(default=LogSource.SYSTEM)
    is_read: bool = False
    tenant_id: str | None = None
    created_at: datetime = Field(default_factory=utc_now)

    def to_db_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "title": self.title,
            "message": self.message,
            "severity": self.severity,
            "source": self.source,
            "is_read": int(self.is_read),
            "tenant_id": self.tenant_id,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_db_row(cls, row: dict[str, Any]) -> SystemLogEntry:
        return cls(
            id=row["id"],
            type=row["type"],
            title=row["title"],
            message=row["message"],
            severity=row.get("severity") or LogSeverity.INFO,
            source=row.get("source") or LogSource.SYSTEM,
            is_read=bool(row.get("is_read")),
            tenant_id=row.get("tenant_id"),
            created_at=_parse_dt(row["created_at"]),
        )


class NotificationSettings(BaseModel):
    """Which system log types are shown. Billing entries ignore show_billing_alerts."""

    show_announcements: bool = True
    show_system_events: bool = True
    show_tasks: bool = True
    show_billing_alerts: bool = True
    show_custom: bool = True
