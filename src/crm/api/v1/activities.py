"""Activities page: calls, emails, meetings, notes and tasks logged against records."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Response, status
from pydantic import BaseModel

from src.crm.api.deps import require_session
from src.crm.api.v1.common import ListResponse, read_failed, run_write
from src.crm.core.backend import BackendError
from src.crm.core.session import SessionStore
from src.crm.entities.filters import filter_activities
from src.crm.entities.gateways import ActivityGateway
from src.crm.entities.schemas import (
    Activity,
    ActivityCreate,
    ActivityStatus,
    ActivityType,
    ActivityUpdate,
)

router = APIRouter(prefix="/activities", tags=["activities"])


class ActivityStatusRequest(BaseModel):
    status: ActivityStatus


@router.get("", response_model=ListResponse[Activity])
async def list_activities(
    q: str = Query(default="", description="Search subject or description"),
    activity_type: ActivityType | None = Query(default=None, alias="type"),
    store: SessionStore = Depends(require_session),
) -> ListResponse[Activity]:
    try:
        activities = await ActivityGateway(store.backend).list()
    except BackendError as exc:
        return ListResponse[Activity](error=read_failed("activities", exc))
    return ListResponse[Activity](items=filter_activities(activities, q, activity_type))


@router.post("", response_model=Activity, status_code=201)
async def create_activity(
    body: ActivityCreate,
    store: SessionStore = Depends(require_session),
) -> Activity:
    user_id = store.state.user.id
    return await run_write(
        "activities",
        ActivityGateway(store.backend).create(body, assigned_to=user_id, created_by=user_id),
    )


@router.patch("/{activity_id}", response_model=Activity)
async def update_activity(
    activity_id: str,
    body: ActivityUpdate,
    store: SessionStore = Depends(require_session),
) -> Activity:
    return await run_write(
        "activities", ActivityGateway(store.backend).update(activity_id, body)
    )


@router.post("/{activity_id}/status", response_model=Activity)
async def change_activity_status(
    activity_id: str,
    body: ActivityStatusRequest,
    store: SessionStore = Depends(require_session),
) -> Activity:
    """Set the status. Completing also stamps completed_at."""
    return await run_write(
        "activities", ActivityGateway(store.backend).set_status(activity_id, body.status)
    )


@router.delete("/{activity_id}", status_code=204)
async def delete_activity(
    activity_id: str,
    store: SessionStore = Depends(require_session),
) -> Response:
    await run_write("activities", ActivityGateway(store.backend).delete(activity_id))
    return Response(status_code=status.HTTP_204_NO_CONTENT)
