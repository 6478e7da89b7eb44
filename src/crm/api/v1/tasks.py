"""Tasks page: list by due date with overdue flags, create, edit, complete, delete."""

from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, Query, Response, status
from pydantic import BaseModel, Field

from src.crm.api.deps import require_session
from src.crm.api.v1.common import ListResponse, read_failed, run_write
from src.crm.core.backend import BackendError
from src.crm.core.session import SessionStore
from src.crm.entities.filters import filter_tasks, is_overdue, task_summary
from src.crm.entities.gateways import TaskGateway
from src.crm.entities.schemas import (
    Task,
    TaskCreate,
    TaskPriority,
    TaskStatus,
    TaskUpdate,
)

router = APIRouter(prefix="/tasks", tags=["tasks"])


class TaskView(Task):
    """Task row as shown in the list, with its overdue flag."""

    overdue: bool = False


class TaskListResponse(ListResponse[TaskView]):
    """Filtered tasks plus header counts over all tasks."""

    summary: dict[str, int] = Field(
        default_factory=lambda: {"pending": 0, "in_progress": 0, "completed": 0, "overdue": 0}
    )


class TaskStatusRequest(BaseModel):
    status: TaskStatus


def _to_view(task: Task, today: date) -> TaskView:
    overdue = task.status != TaskStatus.COMPLETED and is_overdue(task.due_date, today)
    return TaskView(**task.model_dump(), overdue=overdue)


@router.get("", response_model=TaskListResponse)
async def list_tasks(
    q: str = Query(default="", description="Search title or description"),
    task_status: TaskStatus | None = Query(default=None, alias="status"),
    priority: TaskPriority | None = Query(default=None),
    store: SessionStore = Depends(require_session),
) -> TaskListResponse:
    """Tasks ordered by due date, soonest first."""
    try:
        tasks = await TaskGateway(store.backend).list()
    except BackendError as exc:
        return TaskListResponse(error=read_failed("tasks", exc))

    today = date.today()
    return TaskListResponse(
        items=[_to_view(t, today) for t in filter_tasks(tasks, q, task_status, priority)],
        summary=task_summary(tasks, today),
    )


@router.post("", response_model=Task, status_code=201)
async def create_task(
    body: TaskCreate,
    store: SessionStore = Depends(require_session),
) -> Task:
    user_id = store.state.user.id
    return await run_write(
        "tasks",
        TaskGateway(store.backend).create(
            body, assigned_to=body.assigned_to or user_id, created_by=user_id
        ),
    )


@router.patch("/{task_id}", response_model=Task)
async def update_task(
    task_id: str,
    body: TaskUpdate,
    store: SessionStore = Depends(require_session),
) -> Task:
    return await run_write("tasks", TaskGateway(store.backend).update(task_id, body))


@router.post("/{task_id}/status", response_model=Task)
async def change_task_status(
    task_id: str,
    body: TaskStatusRequest,
    store: SessionStore = Depends(require_session),
) -> Task:
    """Set the status. Completing also stamps completed_at."""
    return await run_write("tasks", TaskGateway(store.backend).set_status(task_id, body.status))


@router.delete("/{task_id}", status_code=204)
async def delete_task(
    task_id: str,
    store: SessionStore = Depends(require_session),
) -> Response:
    await run_write("tasks", TaskGateway(store.backend).delete(task_id))
    return Response(status_code=status.HTTP_204_NO_CONTENT)
