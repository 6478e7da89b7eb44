"""Contacts page: list with search and status filter, create, edit, delete."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Response, status

from src.crm.api.deps import require_session
from src.crm.api.v1.common import ListResponse, read_failed, run_write
from src.crm.core.backend import BackendError
from src.crm.core.session import SessionStore
from src.crm.entities.filters import filter_contacts
from src.crm.entities.gateways import ContactGateway
from src.crm.entities.schemas import Contact, ContactCreate, ContactStatus, ContactUpdate

router = APIRouter(prefix="/contacts", tags=["contacts"])


@router.get("", response_model=ListResponse[Contact])
async def list_contacts(
    q: str = Query(default="", description="Search name, email or company"),
    contact_status: ContactStatus | None = Query(default=None, alias="status"),
    store: SessionStore = Depends(require_session),
) -> ListResponse[Contact]:
    """Contacts with their company, newest first."""
    try:
        contacts = await ContactGateway(store.backend).list()
    except BackendError as exc:
        return ListResponse[Contact](error=read_failed("contacts", exc))
    return ListResponse[Contact](items=filter_contacts(contacts, q, contact_status))


@router.post("", response_model=Contact, status_code=201)
async def create_contact(
    body: ContactCreate,
    store: SessionStore = Depends(require_session),
) -> Contact:
    user_id = store.state.user.id
    return await run_write(
        "contacts",
        ContactGateway(store.backend).create(body, owner_id=user_id, created_by=user_id),
    )


@router.patch("/{contact_id}", response_model=Contact)
async def update_contact(
    contact_id: str,
    body: ContactUpdate,
    store: SessionStore = Depends(require_session),
) -> Contact:
    return await run_write("contacts", ContactGateway(store.backend).update(contact_id, body))


@router.delete("/{contact_id}", status_code=204)
async def delete_contact(
    contact_id: str,
    store: SessionStore = Depends(require_session),
) -> Response:
    await run_write("contacts", ContactGateway(store.backend).delete(contact_id))
    return Response(status_code=status.HTTP_204_NO_CONTENT)
