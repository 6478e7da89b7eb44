"""Deal page operations: board, list, metrics, create, edit, stage moves.

DealService composes the deal and stage gateways with the pipeline state
machine. The destination stage is looked up by id, whatever pipeline it
belongs to, and every write that changes a deal's stage sends the stage
and its derived outcome as one update.
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Any

import structlog
from pydantic import BaseModel, Field

from src.crm.deals.metrics import DealMetrics, StageBucket, calculate_deal_metrics, group_by_stage
from src.crm.deals.pipeline import PipelineModel, stage_change_payload
from src.crm.entities.filters import filter_deals
from src.crm.entities.gateways import (
    DealGateway,
    EntityNotFoundError,
    StageGateway,
    dump_payload,
)
from src.crm.entities.schemas import Deal, DealCreate, DealStatus, DealUpdate, PipelineStage

logger = structlog.get_logger(__name__)


class DealBoard(BaseModel):
    """Board view: one bucket per stage plus pipeline-wide metrics."""

    pipeline_id: str
    buckets: list[StageBucket] = Field(default_factory=list)
    metrics: DealMetrics = Field(default_factory=DealMetrics)
    search: str = ""


class DealService:
    """Deal operations for one pipeline.

    Args:
        deals: Deal table gateway (bound to the user's token).
        stages: Stage table gateway.
        pipeline_id: Pipeline new deals are created in.
        default_currency: Currency for deals created without one.
    """

    def __init__(
        self,
        deals: DealGateway,
        stages: StageGateway,
        *,
        pipeline_id: str,
        default_currency: str = "USD",
    ) -> None:
        self._deals = deals
        self._stages = stages
        self._pipeline_id = pipeline_id
        self._default_currency = default_currency

    async def load_pipeline(self) -> PipelineModel:
        stages = await self._stages.list_for_pipeline(self._pipeline_id)
        return PipelineModel(stages)

    async def list_deals(self, search: str = "") -> list[Deal]:
        """All visible deals, newest first, narrowed by the board search."""
        deals = await self._deals.list()
        return filter_deals(deals, search)

    async def metrics(self) -> DealMetrics:
        return calculate_deal_metrics(await self._deals.list())

    async def load_board(self, search: str = "") -> DealBoard:
        """Fetch deals and stages concurrently and group them into columns.

        The search narrows the columns; metrics always cover every deal.
        """
        deals, stages = await asyncio.gather(
            self._deals.list(),
            self._stages.list_for_pipeline(self._pipeline_id),
        )
        return DealBoard(
            pipeline_id=self._pipeline_id,
            buckets=group_by_stage(stages, filter_deals(deals, search)),
            metrics=calculate_deal_metrics(deals),
            search=search,
        )

    async def _resolve_stage(self, stage_id: str) -> PipelineStage | None:
        """Destination stage by id, in whichever pipeline it belongs to."""
        stage = await self._stages.get(stage_id)
        if stage is None:
            logger.warning("deals.unknown_stage", stage_id=stage_id)
        return stage

    async def create_deal(
        self, data: DealCreate, user_id: str, now: datetime | None = None
    ) -> Deal:
        """Create a deal in the configured pipeline.

        The deal starts ``open`` and enters its stage (the first stage when
        none is given) through the stage rule, so a deal created directly in
        a won or lost stage is closed on creation.
        """
        values: dict[str, Any] = dump_payload(data)
        values["currency"] = values.get("currency") or self._default_currency
        values["pipeline_id"] = self._pipeline_id
        values["status"] = DealStatus.OPEN.value

        stage_id = values.pop("stage_id", None)
        if stage_id is None:
            stage = (await self.load_pipeline()).first_stage()
        else:
            stage = await self._resolve_stage(stage_id)
        if stage is not None:
            values.update(stage_change_payload(stage.id, stage, now))
        else:
            values["stage_id"] = stage_id

        deal = await self._deals.create(values, owner_id=user_id, created_by=user_id)
        logger.info(
            "deals.created",
            deal_id=deal.id,
            stage_id=deal.stage_id,
            status=deal.status.value,
        )
        return deal

    async def update_deal(
        self, deal_id: str, data: DealUpdate, now: datetime | None = None
    ) -> Deal:
        """Apply a partial edit in one write.

        A ``stage_id`` different from the deal's current stage is expanded
        through the stage rule. Re-sending the current stage writes it
        unchanged and leaves the outcome alone; clearing it only clears the
        column.

        Raises:
            EntityNotFoundError: If the deal does not exist.
            BackendError: If the write fails.
        """
        values = dump_payload(data, partial=True)
        stage_id = values.get("stage_id")
        if stage_id is not None:
            current = await self._deals.get(deal_id)
            if current is None:
                raise EntityNotFoundError(self._deals.table, deal_id)
            if current.stage_id != stage_id:
                stage = await self._resolve_stage(stage_id)
                values.update(stage_change_payload(stage_id, stage, now))

        deal = await self._deals.update(deal_id, values)
        logger.info("deals.updated", deal_id=deal_id, fields=sorted(values))
        return deal

    async def move_to_stage(
        self, deal_id: str, stage_id: str, now: datetime | None = None
    ) -> Deal:
        """Move a deal to another stage with a single combined update.

        If the write fails nothing is applied and the error propagates.
        """
        stage = await self._resolve_stage(stage_id)
        deal = await self._deals.update(deal_id, stage_change_payload(stage_id, stage, now))
        logger.info(
            "deals.stage_changed",
            deal_id=deal_id,
            stage_id=stage_id,
            status=deal.status.value,
        )
        return deal

    async def delete_deal(self, deal_id: str) -> None:
        await self._deals.delete(deal_id)
        logger.info("deals.deleted", deal_id=deal_id)

    async def stages(self) -> list[PipelineStage]:
        return (await self.load_pipeline()).stages
