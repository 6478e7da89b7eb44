"""Deals page: pipeline board, list, metrics, create, edit, stage moves, delete.

Every write that changes a deal's stage is sent as one combined update
carrying stage_id and, for won/lost stages, status and actual_close_date.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Response, status
from pydantic import BaseModel

from src.crm.api.deps import require_session
from src.crm.api.v1.common import ListResponse, read_failed, run_write
from src.crm.config import Settings, get_settings
from src.crm.core.backend import BackendError
from src.crm.core.session import SessionStore
from src.crm.deals.metrics import DealMetrics
from src.crm.deals.service import DealBoard, DealService
from src.crm.entities.gateways import DealGateway, PipelineGateway, StageGateway
from src.crm.entities.schemas import Deal, DealCreate, DealUpdate, Pipeline, PipelineStage

router = APIRouter(prefix="/deals", tags=["deals"])


# ── Schemas ──────────────────────────────────────────────────────────────────


class BoardResponse(DealBoard):
    error: str | None = None


class MetricsResponse(DealMetrics):
    error: str | None = None


class StageMoveRequest(BaseModel):
    stage_id: str


# ── Dependency Injection Helper ──────────────────────────────────────────────


def get_deal_service(
    store: SessionStore = Depends(require_session),
    settings: Settings = Depends(get_settings),
) -> DealService:
    """DealService for the signed-in user in the configured pipeline."""
    return DealService(
        DealGateway(store.backend),
        StageGateway(store.backend),
        pipeline_id=settings.DEFAULT_PIPELINE_ID,
        default_currency=settings.DEFAULT_CURRENCY,
    )


# ── Views ────────────────────────────────────────────────────────────────────


@router.get("/board", response_model=BoardResponse)
async def get_board(
    q: str = Query(default="", description="Search deal, contact first name or company"),
    service: DealService = Depends(get_deal_service),
    settings: Settings = Depends(get_settings),
) -> BoardResponse:
    """Deals grouped into stage columns, with pipeline-wide metrics."""
    try:
        board = await service.load_board(q)
    except BackendError as exc:
        return BoardResponse(
            pipeline_id=settings.DEFAULT_PIPELINE_ID,
            search=q,
            error=read_failed("deals.board", exc),
        )
    return BoardResponse(**board.model_dump())


@router.get("", response_model=ListResponse[Deal])
async def list_deals(
    q: str = Query(default=""),
    service: DealService = Depends(get_deal_service),
) -> ListResponse[Deal]:
    try:
        deals = await service.list_deals(q)
    except BackendError as exc:
        return ListResponse[Deal](error=read_failed("deals.list", exc))
    return ListResponse[Deal](items=deals)


@router.get("/metrics", response_model=MetricsResponse)
async def get_metrics(service: DealService = Depends(get_deal_service)) -> MetricsResponse:
    try:
        metrics = await service.metrics()
    except BackendError as exc:
        return MetricsResponse(error=read_failed("deals.metrics", exc))
    return MetricsResponse(**metrics.model_dump())


@router.get("/stages", response_model=ListResponse[PipelineStage])
async def list_stages(
    service: DealService = Depends(get_deal_service),
) -> ListResponse[PipelineStage]:
    """Stages of the configured pipeline in board order."""
    try:
        stages = await service.stages()
    except BackendError as exc:
        return ListResponse[PipelineStage](error=read_failed("deals.stages", exc))
    return ListResponse[PipelineStage](items=stages)


@router.get("/pipelines", response_model=ListResponse[Pipeline])
async def list_pipelines(
    store: SessionStore = Depends(require_session),
) -> ListResponse[Pipeline]:
    try:
        pipelines = await PipelineGateway(store.backend).list()
    except BackendError as exc:
        return ListResponse[Pipeline](error=read_failed("deals.pipelines", exc))
    return ListResponse[Pipeline](items=pipelines)


# ── Writes ───────────────────────────────────────────────────────────────────


@router.post("", response_model=Deal, status_code=201)
async def create_deal(
    body: DealCreate,
    store: SessionStore = Depends(require_session),
    service: DealService = Depends(get_deal_service),
) -> Deal:
    return await run_write("deals", service.create_deal(body, store.state.user.id))


@router.patch("/{deal_id}", response_model=Deal)
async def update_deal(
    deal_id: str,
    body: DealUpdate,
    service: DealService = Depends(get_deal_service),
) -> Deal:
    return await run_write("deals", service.update_deal(deal_id, body))


@router.post("/{deal_id}/stage", response_model=Deal)
async def move_deal_to_stage(
    deal_id: str,
    body: StageMoveRequest,
    service: DealService = Depends(get_deal_service),
) -> Deal:
    """Move a deal to another column; won/lost stages close the deal."""
    return await run_write("deals", service.move_to_stage(deal_id, body.stage_id))


@router.delete("/{deal_id}", status_code=204)
async def delete_deal(
    deal_id: str,
    service: DealService = Depends(get_deal_service),
) -> Response:
    await run_write("deals", service.delete_deal(deal_id))
    return Response(status_code=status.HTTP_204_NO_CONTENT)
