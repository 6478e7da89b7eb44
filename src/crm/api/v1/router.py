"""V1 API router -- aggregates all page-view routers under /api/v1."""

from __future__ import annotations

from fastapi import APIRouter

from src.crm.api.v1 import (
    activities,
    auth,
    companies,
    contacts,
    dashboard,
    deals,
    leads,
    notes,
    settings,
    tasks,
)

router = APIRouter(prefix="/api/v1")

router.include_router(auth.router)
router.include_router(settings.router)
router.include_router(dashboard.router)
router.include_router(contacts.router)
router.include_router(companies.router)
router.include_router(leads.router)
router.include_router(deals.router)
router.include_router(activities.router)
router.include_router(tasks.router)
router.include_router(notes.router)
