"""Search and status filters for the list pages.

All matching is a case-insensitive substring test over the fields the page
lets the user search; a missing field never matches. Filters preserve the
input order.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import date

from src.crm.entities.schemas import (
    Activity,
    ActivityType,
    Company,
    Contact,
    ContactStatus,
    Deal,
    Lead,
    LeadStatus,
    Task,
    TaskPriority,
    TaskStatus,
)


def _matches(query: str, fields: Iterable[str | None]) -> bool:
    needle = query.strip().lower()
    if not needle:
        return True
    return any(needle in f.lower() for f in fields if f)


def filter_deals(deals: Sequence[Deal], query: str = "") -> list[Deal]:
    """Board search: deal name, contact first name or company name."""
    return [
        d
        for d in deals
        if _matches(
            query,
            (
                d.name,
                d.contact.first_name if d.contact else None,
                d.company.name if d.company else None,
            ),
        )
    ]


def filter_contacts(
    contacts: Sequence[Contact],
    query: str = "",
    status: ContactStatus | None = None,
) -> list[Contact]:
    return [
        c
        for c in contacts
        if (status is None or c.status == status)
        and _matches(
            query,
            (c.first_name, c.last_name, c.email, c.company.name if c.company else None),
        )
    ]


def filter_companies(companies: Sequence[Company], query: str = "") -> list[Company]:
    return [c for c in companies if _matches(query, (c.name, c.industry, c.domain))]


def filter_leads(
    leads: Sequence[Lead],
    query: str = "",
    status: LeadStatus | None = None,
) -> list[Lead]:
    return [
        lead
        for lead in leads
        if (status is None or lead.status == status)
        and _matches(
            query, (lead.first_name, lead.last_name, lead.email, lead.company_name)
        )
    ]


def lead_status_counts(leads: Sequence[Lead]) -> dict[str, int]:
    """Count leads per status. Every status is present, zero if unused."""
    counts = {s.value: 0 for s in LeadStatus}
    for lead in leads:
        counts[lead.status.value] += 1
    return counts


def filter_activities(
    activities: Sequence[Activity],
    query: str = "",
    activity_type: ActivityType | None = None,
) -> list[Activity]:
    return [
        a
        for a in activities
        if (activity_type is None or a.type == activity_type)
        and _matches(query, (a.subject, a.description))
    ]


def filter_tasks(
    tasks: Sequence[Task],
    query: str = "",
    status: TaskStatus | None = None,
    priority: TaskPriority | None = None,
) -> list[Task]:
    return [
        t
        for t in tasks
        if (status is None or t.status == status)
        and (priority is None or t.priority == priority)
        and _matches(query, (t.title, t.description))
    ]


def is_overdue(due_date: date | None, today: date | None = None) -> bool:
    """True when the due date is strictly before today. Due today is not overdue."""
    if due_date is None:
        return False
    return due_date < (today or date.today())


def task_summary(tasks: Sequence[Task], today: date | None = None) -> dict[str, int]:
    """Counts for the task page header: per status plus open overdue tasks."""
    summary = {
        "pending": 0,
        "in_progress": 0,
        "completed": 0,
        "overdue": 0,
    }
    for t in tasks:
        if t.status.value in summary:
            summary[t.status.value] += 1
        if t.status != TaskStatus.COMPLETED and is_overdue(t.due_date, today):
            summary["overdue"] += 1
    return summary
