"""
Note endpoints, including the trash.

DELETE /api/notes/{id} moves a note to the trash; permanent deletion goes
through /api/notes/trash/{id}.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Query
from pydantic import BaseModel, Field

from framelord.api.errors import bad_request, not_found
from framelord.crm.models import Note
from framelord.crm.notes import TRASH_RETENTION_DAYS, NoteNotFoundError, NoteRepository

router = APIRouter(prefix="/api/notes", tags=["notes"])


class NoteCreateRequest(BaseModel):
    content: str = Field(default="", max_length=100000)
    title: str = Field(default="", max_length=500)
    contact_id: str | None = None
    mentions: list[str] = Field(default_factory=list)


class NoteUpdateRequest(BaseModel):
    content: str | None = Field(default=None, max_length=100000)
    title: str | None = Field(default=None, max_length=500)
    contact_id: str | None = None
    pinned: bool | None = None
    archived: bool | None = None
    mentions: list[str] | None = None


class NoteListResponse(BaseModel):
    notes: list[Note]
    total: int


def _list(notes: list[Note]) -> NoteListResponse:
    return NoteListResponse(notes=notes, total=len(notes))


# ============================================================================
# Listing / Search
# ============================================================================


@router.get("", response_model=NoteListResponse)
async def list_notes(
    contact_id: str | None = Query(None),
    include_archived: bool = Query(True),
) -> NoteListResponse:
    return _list(NoteRepository.list_notes(contact_id, include_archived=include_archived))


@router.get("/search", response_model=NoteListResponse)
async def search_notes(
    q: str = Query(..., min_length=1, max_length=200),
    contact_id: str | None = Query(None),
) -> NoteListResponse:
    return _list(NoteRepository.search_notes(q, contact_id))


@router.get("/archived", response_model=NoteListResponse)
async def list_archived() -> NoteListResponse:
    return _list(NoteRepository.list_archived())


# ============================================================================
# Trash
# ============================================================================


@router.get("/trash", response_model=NoteListResponse)
async def list_trash() -> NoteListResponse:
    return _list(NoteRepository.list_deleted())


@router.delete("/trash")
async def empty_trash() -> dict[str, Any]:
    return {"purged": NoteRepository.empty_trash()}


@router.post("/trash/purge")
async def purge_trash(
    days: int = Query(TRASH_RETENTION_DAYS, ge=0, le=3650),
) -> dict[str, Any]:
    """Permanently delete notes trashed more than days ago."""
    return {"purged": NoteRepository.auto_purge_trash(days=days)}


@router.delete("/trash/{note_id}")
async def permanently_delete(note_id: str) -> dict[str, Any]:
    if not NoteRepository.permanently_delete_note(note_id):
        raise not_found(NoteNotFoundError(note_id))
    return {"success": True, "id": note_id}


@router.post("/{note_id}/restore", response_model=Note)
async def restore_note(note_id: str) -> Note:
    if not NoteRepository.restore_note(note_id):
        raise not_found(LookupError(f"Note not in trash: {note_id}"))
    return NoteRepository.require_note(note_id)


# ============================================================================
# Single note
# ============================================================================


@router.post("", response_model=Note, status_code=201)
async def create_note(request: NoteCreateRequest) -> Note:
    return NoteRepository.create_note(
        content=request.content,
        title=request.title,
        contact_id=request.contact_id,
        mentions=request.mentions,
    )


@router.get("/{note_id}", response_model=Note)
async def get_note(note_id: str) -> Note:
    try:
        return NoteRepository.require_note(note_id)
    except NoteNotFoundError as e:
        raise not_found(e) from None


@router.patch("/{note_id}", response_model=Note)
async def update_note(note_id: str, request: NoteUpdateRequest) -> Note:
    try:
        return NoteRepository.update_note(note_id, **request.model_dump(exclude_unset=True))
    except NoteNotFoundError as e:
        raise not_found(e) from None
    except ValueError as e:
        raise bad_request(e) from None


@router.delete("/{note_id}")
async def delete_note(note_id: str) -> dict[str, Any]:
    """Move to trash."""
    if not NoteRepository.delete_note(note_id):
        raise not_found(NoteNotFoundError(note_id))
    return {"success": True, "id": note_id, "trashed": True}


@router.post("/{note_id}/pin", response_model=Note)
async def toggle_pin(note_id: str) -> Note:
    try:
        return NoteRepository.toggle_pin(note_id)
    except NoteNotFoundError as e:
        raise not_found(e) from None


@router.post("/{note_id}/archive", response_model=Note)
async def archive_note(note_id: str) -> Note:
    try:
        return NoteRepository.archive_note(note_id)
    except NoteNotFoundError as e:
        raise not_found(e) from None


@router.post("/{note_id}/unarchive", response_model=Note)
async def unarchive_note(note_id: str) -> Note:
    try:
        return NoteRepository.unarchive_note(note_id)
    except NoteNotFoundError as e:
        raise not_found(e) from None


@router.put("/{note_id}/mentions/{contact_id}", response_model=Note)
async def add_mention(note_id: str, contact_id: str) -> Note:
    try:
        return NoteRepository.add_mention(note_id, contact_id)
    except NoteNotFoundError as e:
        raise not_found(e) from None


@router.delete("/{note_id}/mentions/{contact_id}", response_model=Note)
async def remove_mention(note_id: str, contact_id: str) -> Note:
    try:
        return NoteRepository.remove_mention(note_id, contact_id)
    except NoteNotFoundError as e:
        raise not_found(e) from None
