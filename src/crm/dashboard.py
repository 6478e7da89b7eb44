"""Dashboard view: headline counts, recent deals, upcoming tasks, recent activity."""

from __future__ import annotations

import asyncio
from collections.abc import Sequence

import structlog
from pydantic import BaseModel, Field

from src.crm.core.backend import BackendClient
from src.crm.entities.gateways import (
    ActivityGateway,
    CompanyGateway,
    ContactGateway,
    DealGateway,
    LeadGateway,
    TaskGateway,
)
from src.crm.entities.schemas import Activity, Deal, DealStatus, Task, TaskStatus

logger = structlog.get_logger(__name__)

RECENT_DEALS_FETCHED = 10
RECENT_DEALS_SHOWN = 5
UPCOMING_TASKS = 5
RECENT_ACTIVITIES = 5


class DashboardStats(BaseModel):
    total_contacts: int = 0
    total_companies: int = 0
    total_leads: int = 0
    total_deals: int = 0
    total_deal_value: float = 0.0
    won_deals: int = 0
    open_deals: int = 0
    tasks_today: int = 0
    activities_this_week: int = 0


class Dashboard(BaseModel):
    stats: DashboardStats = Field(default_factory=DashboardStats)
    recent_deals: list[Deal] = Field(default_factory=list)
    upcoming_tasks: list[Task] = Field(default_factory=list)
    recent_activities: list[Activity] = Field(default_factory=list)
    error: str | None = None


def build_dashboard_stats(
    *,
    contacts: int,
    companies: int,
    leads: int,
    deals: Sequence[Deal],
    tasks: Sequence[Task],
    activities: Sequence[Activity],
) -> DashboardStats:
    """Derive the stat cards. Deal stats cover only the fetched recent deals."""
    return DashboardStats(
        total_contacts=contacts,
        total_companies=companies,
        total_leads=leads,
        total_deals=len(deals),
        total_deal_value=sum(d.value for d in deals),
        won_deals=sum(1 for d in deals if d.status == DealStatus.WON),
        open_deals=sum(1 for d in deals if d.status == DealStatus.OPEN),
        tasks_today=len(tasks),
        activities_this_week=len(activities),
    )


async def load_dashboard(backend: BackendClient) -> Dashboard:
    """Run all dashboard reads concurrently and assemble the view.

    Raises:
        BackendError: If any of the reads fails.
    """
    contacts, companies, leads, deals, tasks, activities = await asyncio.gather(
        ContactGateway(backend).count(),
        CompanyGateway(backend).count(),
        LeadGateway(backend).count(),
        DealGateway(backend).list(limit=RECENT_DEALS_FETCHED),
        TaskGateway(backend).list(
            filters={"status": TaskStatus.PENDING.value}, limit=UPCOMING_TASKS
        ),
        ActivityGateway(backend).list(limit=RECENT_ACTIVITIES),
    )

    stats = build_dashboard_stats(
        contacts=contacts,
        companies=companies,
        leads=leads,
        deals=deals,
        tasks=tasks,
        activities=activities,
    )
    logger.debug("dashboard.loaded", total_deals=stats.total_deals)
    return Dashboard(
        stats=stats,
        recent_deals=deals[:RECENT_DEALS_SHOWN],
        upcoming_tasks=tasks,
        recent_activities=activities,
    )
