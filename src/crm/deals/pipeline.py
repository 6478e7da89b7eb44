"""Pipeline stage state machine.

A deal's ``status`` and ``actual_close_date`` are derived from the stage it
is moved into:

- into a won stage: status "won", actual_close_date = now
- into a lost stage: status "lost", actual_close_date = now
- into any other stage: only stage_id changes. A won or lost deal moved back
  to a neutral stage keeps its status and close date.

Every stage-to-stage move is legal; won and lost are not absorbing.

The stage change is always expressed as ONE update payload so stage_id and
the derived outcome land in the backend in a single write.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime, timezone
from typing import Any

import structlog

from src.crm.entities.schemas import Deal, DealStatus, PipelineStage

logger = structlog.get_logger(__name__)


def derive_status(stage: PipelineStage | None) -> DealStatus | None:
    """Outcome implied by entering ``stage``, or None for a neutral stage."""
    if stage is None:
        return None
    if stage.is_won:
        return DealStatus.WON
    if stage.is_lost:
        return DealStatus.LOST
    return None


def stage_change_payload(
    stage_id: str,
    stage: PipelineStage | None,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Build the single combined update for moving a deal into a stage.

    Args:
        stage_id: Destination stage id.
        stage: Destination stage, if known. An unknown stage is treated as
            neutral and only stage_id is written.
        now: Close timestamp; defaults to the current UTC time.

    Returns:
        Column -> value mapping for one update request.
    """
    payload: dict[str, Any] = {"stage_id": stage_id}
    status = derive_status(stage)
    if status is not None:
        payload["status"] = status.value
        payload["actual_close_date"] = (now or datetime.now(timezone.utc)).isoformat()
    return payload


def apply_stage_change(
    deal: Deal,
    stage: PipelineStage,
    now: datetime | None = None,
) -> Deal:
    """Return a copy of ``deal`` moved into ``stage``. The input is not mutated."""
    update: dict[str, Any] = {"stage_id": stage.id, "stage": stage}
    status = derive_status(stage)
    if status is not None:
        update["status"] = status
        update["actual_close_date"] = now or datetime.now(timezone.utc)
    return deal.model_copy(update=update)


class PipelineModel:
    """The ordered stages of one pipeline and the moves between them.

    Args:
        stages: Stages in any order. They are kept sorted by ``position``.
    """

    def __init__(self, stages: Iterable[PipelineStage]) -> None:
        self._stages = sorted(stages, key=lambda s: s.position)
        self._by_id = {s.id: s for s in self._stages}

    @property
    def stages(self) -> list[PipelineStage]:
        return list(self._stages)

    def __len__(self) -> int:
        return len(self._stages)

    def get(self, stage_id: str | None) -> PipelineStage | None:
        if stage_id is None:
            return None
        return self._by_id.get(stage_id)

    def first_stage(self) -> PipelineStage | None:
        return self._stages[0] if self._stages else None

    def won_stage(self) -> PipelineStage | None:
        """First stage flagged as won (at most one is expected)."""
        return next((s for s in self._stages if s.is_won), None)

    def lost_stage(self) -> PipelineStage | None:
        """First stage flagged as lost (at most one is expected)."""
        return next((s for s in self._stages if s.is_lost), None)

    def apply_move(self, deal: Deal, stage_id: str, now: datetime | None = None) -> Deal:
        """In-memory move. Raises KeyError for a stage outside this pipeline."""
        stage = self.get(stage_id)
        if stage is None:
            raise KeyError(stage_id)
        return apply_stage_change(deal, stage, now)
