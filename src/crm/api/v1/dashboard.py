"""Dashboard page."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from src.crm.api.deps import require_session
from src.crm.api.v1.common import read_failed
from src.crm.core.backend import BackendError
from src.crm.core.session import SessionStore
from src.crm.dashboard import Dashboard, load_dashboard

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("", response_model=Dashboard)
async def get_dashboard(store: SessionStore = Depends(require_session)) -> Dashboard:
    """Stat cards and recent records. A failed read yields zeroed stats."""
    try:
        return await load_dashboard(store.backend)
    except BackendError as exc:
        return Dashboard(error=read_failed("dashboard", exc))
