"""Deal aggregation: stage buckets and pipeline-wide metrics.

Pure functions over an in-memory deal list, recomputed on every call.
Values are summed nominally across currencies.
"""

from __future__ import annotations

from collections.abc import Sequence

from pydantic import BaseModel, Field

from src.crm.entities.schemas import Deal, DealStatus, PipelineStage


class StageBucket(BaseModel):
    """One board column: a stage with its deals and their total value."""

    stage: PipelineStage
    deals: list[Deal] = Field(default_factory=list)
    count: int = 0
    total_value: float = 0.0


class DealMetrics(BaseModel):
    """Pipeline-wide summary numbers."""

    total_value: float = 0.0
    open_value: float = 0.0
    won_value: float = 0.0
    weighted_value: float = 0.0
    win_rate: float = 0.0
    open_count: int = 0
    total_count: int = 0


def group_by_stage(
    stages: Sequence[PipelineStage], deals: Sequence[Deal]
) -> list[StageBucket]:
    """Partition deals into stage buckets in stage position order.

    Deals whose stage_id is null or matches no stage are dropped. Deal
    order inside a bucket follows the input order.
    """
    ordered = sorted(stages, key=lambda s: s.position)
    by_stage: dict[str, list[Deal]] = {s.id: [] for s in ordered}
    for deal in deals:
        if deal.stage_id is not None and deal.stage_id in by_stage:
            by_stage[deal.stage_id].append(deal)

    return [
        StageBucket(
            stage=stage,
            deals=by_stage[stage.id],
            count=len(by_stage[stage.id]),
            total_value=sum(d.value for d in by_stage[stage.id]),
        )
        for stage in ordered
    ]


def calculate_deal_metrics(deals: Sequence[Deal]) -> DealMetrics:
    """Compute open/won/weighted value and win rate over all deals.

    ``weighted_value`` only counts open deals. ``win_rate`` is the share of
    closed deals that were won, as a percentage, and 0 when nothing is closed.
    """
    open_deals = [d for d in deals if d.status == DealStatus.OPEN]
    won_deals = [d for d in deals if d.status == DealStatus.WON]
    closed_count = len(deals) - len(open_deals)

    win_rate = (len(won_deals) / closed_count * 100) if closed_count else 0.0

    return DealMetrics(
        total_value=sum(d.value for d in deals),
        open_value=sum(d.value for d in open_deals),
        won_value=sum(d.value for d in won_deals),
        weighted_value=sum(d.value * d.probability / 100 for d in open_deals),
        win_rate=win_rate,
        open_count=len(open_deals),
        total_count=len(deals),
    )
