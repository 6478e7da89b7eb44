"""Table gateways over the data API.

One gateway per table wraps list/get/count/create/update/delete with the
table's select expression (embedded joins) and default ordering, and
converts rows to the pydantic models in ``schemas``.

Gateways take a BackendClient bound to the signed-in user's token; row
ownership and visibility are enforced by backend policies.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, ClassVar, Generic, TypeVar

import structlog
from pydantic import BaseModel

from src.crm.core.backend import BackendClient, BackendError
from src.crm.entities.schemas import (
    Activity,
    ActivityStatus,
    Company,
    Contact,
    Deal,
    Lead,
    Note,
    Pipeline,
    PipelineStage,
    Profile,
    Row,
    Task,
    TaskStatus,
)

logger = structlog.get_logger(__name__)

RowT = TypeVar("RowT", bound=Row)


class EntityNotFoundError(ValueError):
    """An update or lookup matched no row."""

    def __init__(self, table: str, entity_id: str) -> None:
        super().__init__(f"{table} row not found: {entity_id}")
        self.table = table
        self.entity_id = entity_id


def dump_payload(payload: BaseModel | dict[str, Any], *, partial: bool = False) -> dict[str, Any]:
    """Serialize a create/update model to a JSON-ready dict.

    With ``partial`` only the fields the caller actually set are included.
    """
    if isinstance(payload, dict):
        return dict(payload)
    return payload.model_dump(mode="json", exclude_unset=partial)


class TableGateway(Generic[RowT]):
    """Generic CRUD over one backend table.

    Subclasses set ``table``, ``row_model`` and optionally ``columns`` (the
    select expression) and ``order_by`` / ``ascending`` (default ordering).
    """

    table: ClassVar[str]
    row_model: ClassVar[type[Row]]
    columns: ClassVar[str] = "*"
    order_by: ClassVar[str | None] = "created_at"
    ascending: ClassVar[bool] = False

    def __init__(self, backend: BackendClient) -> None:
        self._backend = backend

    def _to_row(self, data: dict[str, Any]) -> RowT:
        return self.row_model.model_validate(data)  # type: ignore[return-value]

    async def list(
        self,
        *,
        filters: dict[str, Any] | None = None,
        limit: int | None = None,
    ) -> list[RowT]:
        """List rows in the table's default order.

        Args:
            filters: Column -> value equality filters.
            limit: Maximum number of rows.
        """
        rows = await self._backend.select(
            self.table,
            columns=self.columns,
            filters=filters,
            order=self.order_by,
            ascending=self.ascending,
            limit=limit,
        )
        return [self._to_row(r) for r in rows]

    async def get(self, entity_id: str) -> RowT | None:
        """Fetch one row by id, or None when it does not exist."""
        try:
            data = await self._backend.select_single(
                self.table, columns=self.columns, filters={"id": entity_id}
            )
        except BackendError as exc:
            if exc.is_not_found:
                return None
            raise
        return self._to_row(data)

    async def count(self, *, filters: dict[str, Any] | None = None) -> int:
        """Exact row count."""
        return await self._backend.count(self.table, filters=filters)

    async def create(self, payload: BaseModel | dict[str, Any], **stamps: Any) -> RowT:
        """Insert a row.

        Args:
            payload: Create model (or pre-built dict).
            **stamps: Server-side columns to add (owner_id, created_by, ...).

        Returns:
            The stored row with the table's joins, as returned by the insert.
        """
        values = dump_payload(payload)
        values.update({k: v for k, v in stamps.items() if v is not None})
        created = await self._backend.insert(self.table, values, columns=self.columns)
        logger.debug("entities.created", table=self.table, entity_id=created.get("id"))
        return self._to_row(created)

    async def update(self, entity_id: str, payload: BaseModel | dict[str, Any]) -> RowT:
        """Apply a partial update in one request.

        Raises:
            EntityNotFoundError: If no row with ``entity_id`` is visible.
        """
        values = dump_payload(payload, partial=True)
        if not values:
            current = await self.get(entity_id)
            if current is None:
                raise EntityNotFoundError(self.table, entity_id)
            return current

        rows = await self._backend.update(
            self.table, values, filters={"id": entity_id}, columns=self.columns
        )
        if not rows:
            raise EntityNotFoundError(self.table, entity_id)
        logger.debug("entities.updated", table=self.table, entity_id=entity_id, fields=sorted(values))
        return self._to_row(rows[0])

    async def delete(self, entity_id: str) -> None:
        await self._backend.delete(self.table, filters={"id": entity_id})
        logger.debug("entities.deleted", table=self.table, entity_id=entity_id)


def _completion_payload(status: str, now: datetime | None) -> dict[str, Any]:
    """Status change that stamps completed_at when the status is completed."""
    values: dict[str, Any] = {"status": status}
    if status == "completed":
        values["completed_at"] = (now or datetime.now(timezone.utc)).isoformat()
    return values


# ── Per-table gateways ──────────────────────────────────────────────────────


class ProfileGateway(TableGateway[Profile]):
    table = "profiles"
    row_model = Profile
    order_by = None


class CompanyGateway(TableGateway[Company]):
    table = "companies"
    row_model = Company


class ContactGateway(TableGateway[Contact]):
    table = "contacts"
    row_model = Contact
    columns = "*,company:companies(*)"


class LeadGateway(TableGateway[Lead]):
    table = "leads"
    row_model = Lead


class PipelineGateway(TableGateway[Pipeline]):
    table = "pipelines"
    row_model = Pipeline


class StageGateway(TableGateway[PipelineStage]):
    table = "pipeline_stages"
    row_model = PipelineStage
    order_by = "position"
    ascending = True

    async def list_for_pipeline(self, pipeline_id: str) -> list[PipelineStage]:
        return await self.list(filters={"pipeline_id": pipeline_id})


class DealGateway(TableGateway[Deal]):
    table = "deals"
    row_model = Deal
    columns = "*,contact:contacts(*),company:companies(*),stage:pipeline_stages(*)"


class ActivityGateway(TableGateway[Activity]):
    table = "activities"
    row_model = Activity

    async def set_status(
        self, activity_id: str, status: ActivityStatus, now: datetime | None = None
    ) -> Activity:
        """Change status; completing also sets completed_at in the same write."""
        return await self.update(activity_id, _completion_payload(status.value, now))


class TaskGateway(TableGateway[Task]):
    table = "tasks"
    row_model = Task
    order_by = "due_date"
    ascending = True

    async def set_status(
        self, task_id: str, status: TaskStatus, now: datetime | None = None
    ) -> Task:
        """Change status; completing also sets completed_at in the same write."""
        return await self.update(task_id, _completion_payload(status.value, now))


class NoteGateway(TableGateway[Note]):
    table = "notes"
    row_model = Note
