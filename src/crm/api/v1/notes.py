"""Notes attached to contacts, companies, deals or leads."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Response, status

from src.crm.api.deps import require_session
from src.crm.api.v1.common import ListResponse, read_failed, run_write
from src.crm.core.backend import BackendError
from src.crm.core.session import SessionStore
from src.crm.entities.gateways import NoteGateway
from src.crm.entities.schemas import Note, NoteCreate

router = APIRouter(prefix="/notes", tags=["notes"])


@router.get("", response_model=ListResponse[Note])
async def list_notes(
    contact_id: str | None = Query(default=None),
    company_id: str | None = Query(default=None),
    deal_id: str | None = Query(default=None),
    lead_id: str | None = Query(default=None),
    store: SessionStore = Depends(require_session),
) -> ListResponse[Note]:
    """Notes newest first, optionally for one record."""
    links = {
        "contact_id": contact_id,
        "company_id": company_id,
        "deal_id": deal_id,
        "lead_id": lead_id,
    }
    filters = {k: v for k, v in links.items() if v is not None}
    try:
        notes = await NoteGateway(store.backend).list(filters=filters or None)
    except BackendError as exc:
        return ListResponse[Note](error=read_failed("notes", exc))
    return ListResponse[Note](items=notes)


@router.post("", response_model=Note, status_code=201)
async def create_note(
    body: NoteCreate,
    store: SessionStore = Depends(require_session),
) -> Note:
    return await run_write(
        "notes", NoteGateway(store.backend).create(body, created_by=store.state.user.id)
    )


@router.delete("/{note_id}", status_code=204)
async def delete_note(
    note_id: str,
    store: SessionStore = Depends(require_session),
) -> Response:
    await run_write("notes", NoteGateway(store.backend).delete(note_id))
    return Response(status_code=status.HTTP_204_NO_CONTENT)
