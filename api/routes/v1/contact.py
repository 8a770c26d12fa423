"""
api/routes/v1/contact.py -- Contact form REST endpoints.

Routes:
  POST   /api/v1/contact              -- submit a message (public)
  GET    /api/v1/contact              -- list messages (admin only)
  GET    /api/v1/contact/stats        -- counts by status (admin only)
  GET    /api/v1/contact/{id}         -- one message (sender or admin)
  PUT    /api/v1/contact/{id}/status  -- change status (admin only)
  POST   /api/v1/contact/{id}/notes   -- add an internal note (admin only)
  PUT    /api/v1/contact/{id}/spam    -- flag as spam and close (admin only)
  PUT    /api/v1/contact/{id}/archive -- archive (admin only)
  DELETE /api/v1/contact/{id}         -- delete (admin only)

A submission records the sender's identity or session id when present so the
sender can read it back. Spam is flagged, never rejected, and spam does not
trigger the admin notification email. Admin notes are never shown to the
sender.

The notification is best-effort: Mailer returns False on failure and the
submission still succeeds.
"""

from __future__ import annotations

import logging
import math
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, Response

from api.limiter import limiter
from api.models import (
    ContactCreate,
    ContactListResponse,
    ContactNoteCreate,
    ContactResponse,
    ContactStatsResponse,
    ContactStatusEnum,
    ContactStatusUpdate,
    ContactSubmittedResponse,
    Pagination,
)
from auth.dependencies import get_caller, require_admin
from auth.models import Identity
from auth.ownership import Caller, check_access
from content.models import Contact
from content.spam import looks_like_spam
from content.store import ContentStore
from core.errors import NotFound

logger = logging.getLogger("folio.api.contact")

router = APIRouter()


@limiter.limit("5/minute")
@router.post("/contact", response_model=ContactSubmittedResponse, status_code=201)
def submit_contact(
    request: Request,
    body: ContactCreate,
    caller: Caller = Depends(get_caller),
) -> ContactSubmittedResponse:
    store: ContentStore = request.app.state.content_store
    contact = Contact(
        name=body.name,
        email=body.email.lower(),
        subject=body.subject,
        message=body.message,
        phone=body.phone,
        company=body.company,
        project_type=body.project_type.value,
        budget=body.budget.value,
        timeline=body.timeline.value,
        is_spam=looks_like_spam(body.subject, body.message),
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("User-Agent", "")[:500] or None,
        **caller.owner_fields(),
    )
    saved = store.create_contact(contact)
    if saved.is_spam:
        logger.info("Contact %s flagged as spam", saved.id)
    else:
        request.app.state.mailer.send_contact_notification(saved)
    return ContactSubmittedResponse(message="Thank you for your message! I'll get back to you soon.", id=saved.id)


@router.get("/contact", response_model=ContactListResponse)
def list_contacts(
    request: Request,
    status: Optional[ContactStatusEnum] = Query(default=None),
    is_spam: Optional[bool] = Query(default=None),
    is_archived: Optional[bool] = Query(default=None),
    search: Optional[str] = Query(default=None, max_length=100),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    current_user: Identity = Depends(require_admin),
) -> ContactListResponse:
    store: ContentStore = request.app.state.content_store
    contacts, total = store.list_contacts(
        status=status.value if status else None,
        is_spam=is_spam,
        is_archived=is_archived,
        search=search,
        page=page,
        limit=limit,
    )
    return ContactListResponse(
        contacts=[ContactResponse.from_contact(c) for c in contacts],
        pagination=Pagination(page=page, pages=math.ceil(total / limit), total=total, limit=limit),
    )


@router.get("/contact/stats", response_model=ContactStatsResponse)
def contact_stats(request: Request, current_user: Identity = Depends(require_admin)) -> ContactStatsResponse:
    store: ContentStore = request.app.state.content_store
    return ContactStatsResponse(**store.contact_stats())


@router.get("/contact/{contact_id}", response_model=ContactResponse)
def get_contact(request: Request, contact_id: int, caller: Caller = Depends(get_caller)) -> ContactResponse:
    """Return one message to its sender or to the admin. An admin read marks New as Read."""
    store: ContentStore = request.app.state.content_store
    contact = check_access(caller, store.get_contact(contact_id))
    if caller.is_admin and contact.status == "New":
        contact = store.update_contact_status(contact_id, "Read")
    return ContactResponse.from_contact(contact, include_notes=caller.is_admin)


@router.put("/contact/{contact_id}/status", response_model=ContactResponse)
def update_contact_status(
    request: Request,
    contact_id: int,
    body: ContactStatusUpdate,
    current_user: Identity = Depends(require_admin),
) -> ContactResponse:
    store: ContentStore = request.app.state.content_store
    updated = store.update_contact_status(contact_id, body.status.value)
    if updated is None:
        raise NotFound("Contact message not found.")
    return ContactResponse.from_contact(updated)


@router.post("/contact/{contact_id}/notes", response_model=ContactResponse, status_code=201)
def add_contact_note(
    request: Request,
    contact_id: int,
    body: ContactNoteCreate,
    current_user: Identity = Depends(require_admin),
) -> ContactResponse:
    store: ContentStore = request.app.state.content_store
    updated = store.add_contact_note(contact_id, body.content, added_by=current_user.id)
    if updated is None:
        raise NotFound("Contact message not found.")
    return ContactResponse.from_contact(updated)


@router.put("/contact/{contact_id}/spam", response_model=ContactResponse)
def mark_contact_spam(
    request: Request,
    contact_id: int,
    current_user: Identity = Depends(require_admin),
) -> ContactResponse:
    store: ContentStore = request.app.state.content_store
    updated = store.mark_contact_spam(contact_id)
    if updated is None:
        raise NotFound("Contact message not found.")
    logger.info("Contact %s marked as spam by %s", contact_id, current_user.id)
    return ContactResponse.from_contact(updated)


@router.put("/contact/{contact_id}/archive", response_model=ContactResponse)
def archive_contact(
    request: Request,
    contact_id: int,
    current_user: Identity = Depends(require_admin),
) -> ContactResponse:
    store: ContentStore = request.app.state.content_store
    updated = store.archive_contact(contact_id)
    if updated is None:
        raise NotFound("Contact message not found.")
    return ContactResponse.from_contact(updated)


@router.delete("/contact/{contact_id}", status_code=204)
def delete_contact(request: Request, contact_id: int, current_user: Identity = Depends(require_admin)) -> Response:
    store: ContentStore = request.app.state.content_store
    if not store.delete_contact(contact_id):
        raise NotFound("Contact message not found.")
    return Response(status_code=204)
