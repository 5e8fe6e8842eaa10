"""
System log (notification stream) endpoints.

Owner announcements are admin-only; everything else serves the dashboard.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from framelord.api.errors import bad_request, not_found
from framelord.api.middleware.auth import require_admin_auth
from framelord.config import API_LIST_LIMIT_DEFAULT, API_LIST_LIMIT_MAX
from framelord.crm.models import (
    LogEntryType,
    LogSeverity,
    LogSource,
    NotificationSettings,
    SystemLogEntry,
)
from framelord.crm.system_log import LogEntryNotFoundError, SystemLogRepository

router = APIRouter(prefix="/api/system-log", tags=["system-log"])


class LogEntryRequest(BaseModel):
    type: LogEntryType = LogEntryType.CUSTOM
    title: str = Field(..., min_length=1, max_length=200)
    message: str = Field(..., max_length=5000)
    severity: LogSeverity = LogSeverity.INFO


class AnnouncementRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    message: str = Field(..., max_length=5000)
    severity: LogSeverity = LogSeverity.INFO


class SettingsUpdateRequest(BaseModel):
    show_announcements: bool | None = None
    show_system_events: bool | None = None
    show_tasks: bool | None = None
    show_billing_alerts: bool | None = None
    show_custom: bool | None = None


class LogListResponse(BaseModel):
    entries: list[SystemLogEntry]
    total: int
    unread: int


@router.get("", response_model=LogListResponse)
async def list_entries(
    filtered: bool = Query(True, description="Apply notification settings"),
    unread_only: bool = Query(False),
    limit: int = Query(API_LIST_LIMIT_DEFAULT, ge=1, le=API_LIST_LIMIT_MAX),
) -> LogListResponse:
    """Newest first. Billing entries are always included."""
    if unread_only:
        entries = SystemLogRepository.list_unread()
    elif filtered:
        entries = SystemLogRepository.list_filtered()
    else:
        entries = SystemLogRepository.list_entries()
    return LogListResponse(
        entries=entries[:limit],
        total=len(entries),
        unread=SystemLogRepository.unread_count(),
    )


@router.get("/unread-count")
async def unread_count(type: LogEntryType | None = Query(None)) -> dict[str, Any]:
    entry_type = type.value if type is not None else None
    return {"type": entry_type, "unread": SystemLogRepository.unread_count(entry_type)}


@router.post("", response_model=SystemLogEntry, status_code=201)
async def add_entry(request: LogEntryRequest) -> SystemLogEntry:
    """User rules and the dashboard add task, system and custom entries."""
    if request.type in (LogEntryType.BILLING, LogEntryType.ANNOUNCEMENT):
        raise bad_request(ValueError(f"Entry type {request.type.value} is reserved"))
    return SystemLogRepository.add_entry(
        request.type.value,
        request.title,
        request.message,
        severity=request.severity.value,
        source=LogSource.USER_RULE.value,
    )


@router.post("/announcements", response_model=SystemLogEntry, status_code=201)
async def add_announcement(
    request: AnnouncementRequest,
    authenticated: bool = Depends(require_admin_auth),
) -> SystemLogEntry:
    return SystemLogRepository.add_owner_announcement(
        request.title, request.message, severity=request.severity.value
    )


@router.post("/read-all")
async def mark_all_read() -> dict[str, Any]:
    return {"marked": SystemLogRepository.mark_all_read()}


@router.post("/{entry_id}/read", response_model=SystemLogEntry)
async def mark_read(entry_id: str) -> SystemLogEntry:
    try:
        return SystemLogRepository.mark_read(entry_id)
    except LogEntryNotFoundError as e:
        raise not_found(e) from None


@router.get("/settings", response_model=NotificationSettings)
async def get_settings() -> NotificationSettings:
    return SystemLogRepository.get_settings()


@router.patch("/settings", response_model=NotificationSettings)
async def update_settings(request: SettingsUpdateRequest) -> NotificationSettings:
    changes = {k: v for k, v in request.model_dump(exclude_unset=True).items() if v is not None}
    try:
        return SystemLogRepository.update_settings(**changes)
    except ValueError as e:
        raise bad_request(e) from None
