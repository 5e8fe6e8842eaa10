"""Contact endpoints (Contact Zero included; it cannot be archived)."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from fastapi import APIRouter, Query
from pydantic import BaseModel, Field

from framelord.api.errors import bad_request, not_found
from framelord.crm.contacts import (
    ContactNotFoundError,
    ContactRepository,
    ContactZeroProtectedError,
)
from framelord.crm.models import Contact, ContactStatus, RelationshipDomain
from framelord.crm.tasks import TaskRepository

router = APIRouter(prefix="/api/contacts", tags=["contacts"])


class ContactCreateRequest(BaseModel):
    full_name: str = Field(..., min_length=1, max_length=200)
    relationship_domain: RelationshipDomain = RelationshipDomain.BUSINESS
    email: str | None = None
    phone: str | None = None
    relationship_role: str | None = None
    tags: list[str] = Field(default_factory=list)
    company: str | None = None
    title: str | None = None
    location: str | None = None
    linkedin_url: str | None = None
    x_handle: str | None = None


class ContactUpdateRequest(BaseModel):
    """Only fields present in the body are changed."""

    full_name: str | None = Field(default=None, min_length=1, max_length=200)
    email: str | None = None
    phone: str | None = None
    relationship_domain: RelationshipDomain | None = None
    relationship_role: str | None = None
    status: ContactStatus | None = None
    last_contact_at: datetime | None = None
    next_action_at: datetime | None = None
    tags: list[str] | None = None
    company: str | None = None
    title: str | None = None
    location: str | None = None
    linkedin_url: str | None = None
    x_handle: str | None = None


class ContactListResponse(BaseModel):
    contacts: list[Contact]
    total: int


@router.get("", response_model=ContactListResponse)
async def list_contacts(
    include_archived: bool = Query(False),
    exclude_self: bool = Query(False),
    domain: str | None = Query(None, description="business, personal, hybrid or all"),
    active_only: bool = Query(False),
) -> ContactListResponse:
    if active_only:
        contacts = ContactRepository.list_active()
    elif domain:
        contacts = ContactRepository.list_by_domain(domain, include_archived=include_archived)
    else:
        contacts = ContactRepository.list_contacts(include_archived=include_archived)
    if exclude_self:
        contacts = [c for c in contacts if not c.is_contact_zero]
    return ContactListResponse(contacts=contacts, total=len(contacts))


@router.get("/search", response_model=ContactListResponse)
async def search_contacts(
    q: str = Query(..., min_length=1, max_length=200),
    limit: int = Query(10, ge=1, le=50),
    include_self: bool = Query(False),
) -> ContactListResponse:
    contacts = ContactRepository.search_contacts(q, limit=limit, exclude_self=not include_self)
    return ContactListResponse(contacts=contacts, total=len(contacts))


@router.get("/{contact_id}", response_model=Contact)
async def get_contact(contact_id: str) -> Contact:
    try:
        return ContactRepository.require_contact(contact_id)
    except ContactNotFoundError as e:
        raise not_found(e) from None


@router.get("/{contact_id}/summary")
async def contact_summary(contact_id: str) -> dict[str, Any]:
    """Contact plus open task count, for contact cards."""
    try:
        contact = ContactRepository.require_contact(contact_id)
    except ContactNotFoundError as e:
        raise not_found(e) from None
    return {
        "contact": contact.model_dump(mode="json"),
        "open_tasks": TaskRepository.open_count_by_contact(contact_id),
    }


@router.post("", response_model=Contact, status_code=201)
async def create_contact(request: ContactCreateRequest) -> Contact:
    try:
        return ContactRepository.create_contact(**request.model_dump())
    except ValueError as e:
        raise bad_request(e) from None


@router.patch("/{contact_id}", response_model=Contact)
async def update_contact(contact_id: str, request: ContactUpdateRequest) -> Contact:
    changes = request.model_dump(exclude_unset=True, mode="json")
    try:
        return ContactRepository.update_contact(contact_id, **changes)
    except ContactNotFoundError as e:
        raise not_found(e) from None
    except ValueError as e:
        raise bad_request(e) from None


@router.post("/{contact_id}/archive", response_model=Contact)
async def archive_contact(contact_id: str) -> Contact:
    try:
        return ContactRepository.archive_contact(contact_id)
    except ContactZeroProtectedError as e:
        raise bad_request(e) from None
    except ContactNotFoundError as e:
        raise not_found(e) from None
