"""
api/routes/v1/contacts.py -- Public contact form and admin inbox.

Routes:
  POST   /api/contact                -- submit a message (public, rate-limited per IP)
  GET    /api/contact                -- paginated inbox, optional status filter (requires admin)
  GET    /api/contact/stats          -- totals by status (requires admin; before /{contact_id})
  GET    /api/contact/{id}           -- single message (requires admin)
  PUT    /api/contact/{id}/status    -- move a message through new/read/replied/archived (requires admin)
  DELETE /api/contact/{id}           -- delete a message (requires admin)

The message is stored before any email is attempted. Email delivery runs in
the threadpool and its failure never turns a stored submission into an error.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from starlette.concurrency import run_in_threadpool

from api.limiter import limiter
from api.models import (
    ContactCreate,
    ContactEnvelope,
    ContactListResponse,
    ContactReceipt,
    ContactReceiptEnvelope,
    ContactResponse,
    ContactStats,
    ContactStatsEnvelope,
    ContactStatusEnum,
    ContactStatusUpdate,
    MessageResponse,
    Pagination,
)
from auth.dependencies import require_admin
from contacts.models import Contact
from contacts.notify import ContactNotifier
from contacts.store import ContactStore
from core.config import get_settings
from core.errors import NotFound

logger = logging.getLogger("folio.contacts")

# Auth policy:
# - POST /contact:      public -- the portfolio contact form
# - everything else:    requires admin (require_admin)
router = APIRouter()

_settings = get_settings()


@limiter.limit(_settings.contact_rate_limit)  # must be ABOVE @router to preserve FastAPI introspection
@router.post("/contact", response_model=ContactReceiptEnvelope, status_code=201)
async def submit_contact(request: Request, body: ContactCreate) -> ContactReceiptEnvelope:
    """Store a contact message, then notify the admin and the sender by email."""
    store: ContactStore = request.app.state.contact_store
    notifier: ContactNotifier = request.app.state.notifier

    contact = Contact(
        name=body.name,
        email=body.email,
        message=body.message,
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )
    contact.id = await run_in_threadpool(store.create_contact, contact)
    logger.info("Contact message stored id=%s", contact.id)

    await run_in_threadpool(notifier.send_contact_email, contact)

    return ContactReceiptEnvelope(
        message="Thank you for your message! I will get back to you soon.",
        data=ContactReceipt(id=contact.id, name=contact.name, email=contact.email),
    )


@router.get("/contact", response_model=ContactListResponse, dependencies=[Depends(require_admin)])
def list_contacts(
    request: Request,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    status: Optional[ContactStatusEnum] = Query(default=None),
) -> ContactListResponse:
    store: ContactStore = request.app.state.contact_store
    items, total = store.list_contacts(status=status.value if status else None, page=page, limit=limit)
    return ContactListResponse(
        data=[ContactResponse.from_contact(c) for c in items],
        pagination=Pagination.build(page, limit, total),
    )


@router.get("/contact/stats", response_model=ContactStatsEnvelope, dependencies=[Depends(require_admin)])
def contact_stats(request: Request) -> ContactStatsEnvelope:
    store: ContactStore = request.app.state.contact_store
    return ContactStatsEnvelope(data=ContactStats(**store.get_stats()))


@router.get("/contact/{contact_id}", response_model=ContactEnvelope, dependencies=[Depends(require_admin)])
def get_contact(request: Request, contact_id: int) -> ContactEnvelope:
    contact = _require_contact(request.app.state.contact_store, contact_id)
    return ContactEnvelope(data=ContactResponse.from_contact(contact))


@router.put(
    "/contact/{contact_id}/status",
    response_model=ContactEnvelope,
    dependencies=[Depends(require_admin)],
)
def update_contact_status(request: Request, contact_id: int, body: ContactStatusUpdate) -> ContactEnvelope:
    store: ContactStore = request.app.state.contact_store
    if not store.update_status(contact_id, body.status.value):
        raise NotFound("Contact not found")
    contact = _require_contact(store, contact_id)
    return ContactEnvelope(message="Contact status updated", data=ContactResponse.from_contact(contact))


@router.delete("/contact/{contact_id}", response_model=MessageResponse, dependencies=[Depends(require_admin)])
def delete_contact(request: Request, contact_id: int) -> MessageResponse:
    store: ContactStore = request.app.state.contact_store
    if not store.delete_contact(contact_id):
        raise NotFound("Contact not found")
    return MessageResponse(message="Contact deleted successfully")


def _require_contact(store: ContactStore, contact_id: int) -> Contact:
    contact = store.get_contact(contact_id)
    if contact is None:
        raise NotFound("Contact not found")
    return contact
