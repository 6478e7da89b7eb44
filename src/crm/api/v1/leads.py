"""Leads page: list with search, status filter and per-status counts."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Response, status
from pydantic import Field

from src.crm.api.deps import require_session
from src.crm.api.v1.common import ListResponse, read_failed, run_write
from src.crm.core.backend import BackendError
from src.crm.core.session import SessionStore
from src.crm.entities.filters import filter_leads, lead_status_counts
from src.crm.entities.gateways import LeadGateway
from src.crm.entities.schemas import Lead, LeadCreate, LeadStatus, LeadUpdate

router = APIRouter(prefix="/leads", tags=["leads"])


class LeadListResponse(ListResponse[Lead]):
    """Filtered leads plus counts over all leads (unfiltered)."""

    status_counts: dict[str, int] = Field(
        default_factory=lambda: {s.value: 0 for s in LeadStatus}
    )


@router.get("", response_model=LeadListResponse)
async def list_leads(
    q: str = Query(default="", description="Search name, email or company name"),
    lead_status: LeadStatus | None = Query(default=None, alias="status"),
    store: SessionStore = Depends(require_session),
) -> LeadListResponse:
    try:
        leads = await LeadGateway(store.backend).list()
    except BackendError as exc:
        return LeadListResponse(error=read_failed("leads", exc))
    return LeadListResponse(
        items=filter_leads(leads, q, lead_status),
        status_counts=lead_status_counts(leads),
    )


@router.post("", response_model=Lead, status_code=201)
async def create_lead(
    body: LeadCreate,
    store: SessionStore = Depends(require_session),
) -> Lead:
    user_id = store.state.user.id
    return await run_write(
        "leads",
        LeadGateway(store.backend).create(body, owner_id=user_id, created_by=user_id),
    )


@router.patch("/{lead_id}", response_model=Lead)
async def update_lead(
    lead_id: str,
    body: LeadUpdate,
    store: SessionStore = Depends(require_session),
) -> Lead:
    return await run_write("leads", LeadGateway(store.backend).update(lead_id, body))


@router.delete("/{lead_id}", status_code=204)
async def delete_lead(
    lead_id: str,
    store: SessionStore = Depends(require_session),
) -> Response:
    await run_write("leads", LeadGateway(store.backend).delete(lead_id))
    return Response(status_code=status.HTTP_204_NO_CONTENT)
