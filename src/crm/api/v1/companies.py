"""Companies page: list with search, create, edit, delete."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Response, status

from src.crm.api.deps import require_session
from src.crm.api.v1.common import ListResponse, read_failed, run_write
from src.crm.core.backend import BackendError
from src.crm.core.session import SessionStore
from src.crm.entities.filters import filter_companies
from src.crm.entities.gateways import CompanyGateway
from src.crm.entities.schemas import Company, CompanyCreate, CompanyUpdate

router = APIRouter(prefix="/companies", tags=["companies"])


@router.get("", response_model=ListResponse[Company])
async def list_companies(
    q: str = Query(default="", description="Search name, industry or domain"),
    store: SessionStore = Depends(require_session),
) -> ListResponse[Company]:
    try:
        companies = await CompanyGateway(store.backend).list()
    except BackendError as exc:
        return ListResponse[Company](error=read_failed("companies", exc))
    return ListResponse[Company](items=filter_companies(companies, q))


@router.post("", response_model=Company, status_code=201)
async def create_company(
    body: CompanyCreate,
    store: SessionStore = Depends(require_session),
) -> Company:
    user_id = store.state.user.id
    return await run_write(
        "companies",
        CompanyGateway(store.backend).create(body, owner_id=user_id, created_by=user_id),
    )


@router.patch("/{company_id}", response_model=Company)
async def update_company(
    company_id: str,
    body: CompanyUpdate,
    store: SessionStore = Depends(require_session),
) -> Company:
    return await run_write("companies", CompanyGateway(store.backend).update(company_id, body))


@router.delete("/{company_id}", status_code=204)
async def delete_company(
    company_id: str,
    store: SessionStore = Depends(require_session),
) -> Response:
    await run_write("companies", CompanyGateway(store.backend).delete(company_id))
    return Response(status_code=status.HTTP_204_NO_CONTENT)
