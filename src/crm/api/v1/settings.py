"""Settings page: the signed-in user's own profile."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from src.crm.api.deps import require_session
from src.crm.api.v1.common import run_write
from src.crm.core.session import SessionStore
from src.crm.entities.schemas import Profile, ProfileUpdate

router = APIRouter(prefix="/settings", tags=["settings"])


@router.get("/profile", response_model=Profile)
async def get_profile(store: SessionStore = Depends(require_session)) -> Profile:
    profile = await store.load_profile()
    if profile is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Profile not found",
        )
    return profile


@router.patch("/profile", response_model=Profile)
async def update_profile(
    body: ProfileUpdate,
    store: SessionStore = Depends(require_session),
) -> Profile:
    """Update name, contact details, timezone or notification preferences."""
    return await run_write("settings", store.update_profile(body))
