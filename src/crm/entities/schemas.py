"""Pydantic schemas for the CRM tables.

Defines row, create and update types for every table the service reads or
writes:
- Enums: ContactStatus, LeadStatus, DealStatus, ActivityType, ActivityStatus,
  TaskStatus, TaskPriority
- Profile, ProfileUpdate
- Company, Contact, Lead (+ Create/Update)
- Pipeline, PipelineStage
- Deal (+ Create/Update; status and actual_close_date are not client-writable)
- Activity, Task, Note (+ Create/Update)

Row models ignore unknown columns so a backend schema addition never breaks
a page. Update models are sent with ``exclude_unset`` so only submitted
fields are written.
"""

from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


# ── Enums ───────────────────────────────────────────────────────────────────


class ContactStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    DO_NOT_CONTACT = "do_not_contact"


class LeadStatus(str, Enum):
    """Lead qualification funnel."""

    NEW = "new"
    CONTACTED = "contacted"
    QUALIFIED = "qualified"
    UNQUALIFIED = "unqualified"
    CONVERTED = "converted"


class DealStatus(str, Enum):
    """Outcome of a deal. Derived from the stage it was last moved into."""

    OPEN = "open"
    WON = "won"
    LOST = "lost"


class ActivityType(str, Enum):
    CALL = "call"
    EMAIL = "email"
    MEETING = "meeting"
    NOTE = "note"
    TASK = "task"


class ActivityStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class TaskStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class TaskPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class Row(BaseModel):
    """Base for table rows: tolerant of columns this service does not model."""

    model_config = ConfigDict(extra="ignore")

    id: str
    created_at: datetime | None = None
    updated_at: datetime | None = None


class Payload(BaseModel):
    """Base for create/update payloads: unknown fields are rejected."""

    model_config = ConfigDict(extra="forbid")


# ── Profile ─────────────────────────────────────────────────────────────────


class Profile(Row):
    """Per-user profile row, created by a backend trigger on sign-up."""

    email: str | None = None
    full_name: str | None = None
    avatar_url: str | None = None
    phone: str | None = None
    job_title: str | None = None
    department: str | None = None
    timezone: str = "UTC"
    notification_preferences: dict[str, Any] = Field(default_factory=dict)


class ProfileUpdate(Payload):
    full_name: str | None = None
    avatar_url: str | None = None
    phone: str | None = None
    job_title: str | None = None
    department: str | None = None
    timezone: str | None = None
    notification_preferences: dict[str, Any] | None = None


# ── Companies ───────────────────────────────────────────────────────────────


class Company(Row):
    name: str
    domain: str | None = None
    industry: str | None = None
    size: str | None = None
    website: str | None = None
    phone: str | None = None
    email: str | None = None
    address: dict[str, Any] | None = None
    description: str | None = None
    logo_url: str | None = None
    annual_revenue: float | None = None
    founded_year: int | None = None
    linkedin_url: str | None = None
    twitter_url: str | None = None
    tags: list[str] = Field(default_factory=list)
    custom_fields: dict[str, Any] = Field(default_factory=dict)
    owner_id: str | None = None
    created_by: str | None = None


class CompanyCreate(Payload):
    name: str = Field(min_length=1)
    domain: str | None = None
    industry: str | None = None
    size: str | None = None
    website: str | None = None
    phone: str | None = None
    email: str | None = None
    address: dict[str, Any] | None = None
    description: str | None = None
    annual_revenue: float | None = Field(default=None, ge=0)
    founded_year: int | None = None
    linkedin_url: str | None = None
    twitter_url: str | None = None
    tags: list[str] = Field(default_factory=list)


class CompanyUpdate(Payload):
    name: str | None = Field(default=None, min_length=1)
    domain: str | None = None
    industry: str | None = None
    size: str | None = None
    website: str | None = None
    phone: str | None = None
    email: str | None = None
    address: dict[str, Any] | None = None
    description: str | None = None
    annual_revenue: float | None = Field(default=None, ge=0)
    founded_year: int | None = None
    linkedin_url: str | None = None
    twitter_url: str | None = None
    tags: list[str] | None = None


# ── Contacts ────────────────────────────────────────────────────────────────


class Contact(Row):
    first_name: str
    last_name: str | None = None
    email: str | None = None
    phone: str | None = None
    mobile: str | None = None
    job_title: str | None = None
    department: str | None = None
    company_id: str | None = None
    lead_source: str | None = None
    status: ContactStatus = ContactStatus.ACTIVE
    address: dict[str, Any] | None = None
    linkedin_url: str | None = None
    twitter_url: str | None = None
    avatar_url: str | None = None
    birth_date: date | None = None
    description: str | None = None
    tags: list[str] = Field(default_factory=list)
    custom_fields: dict[str, Any] = Field(default_factory=dict)
    last_contacted_at: datetime | None = None
    owner_id: str | None = None
    created_by: str | None = None
    company: Company | None = None

    @property
    def full_name(self) -> str:
        return " ".join(p for p in (self.first_name, self.last_name) if p)


class ContactCreate(Payload):
    first_name: str = Field(min_length=1)
    last_name: str | None = None
    email: str | None = None
    phone: str | None = None
    mobile: str | None = None
    job_title: str | None = None
    department: str | None = None
    company_id: str | None = None
    lead_source: str | None = None
    status: ContactStatus = ContactStatus.ACTIVE
    linkedin_url: str | None = None
    twitter_url: str | None = None
    birth_date: date | None = None
    description: str | None = None
    tags: list[str] = Field(default_factory=list)


class ContactUpdate(Payload):
    first_name: str | None = Field(default=None, min_length=1)
    last_name: str | None = None
    email: str | None = None
    phone: str | None = None
    mobile: str | None = None
    job_title: str | None = None
    department: str | None = None
    company_id: str | None = None
    lead_source: str | None = None
    status: ContactStatus | None = None
    linkedin_url: str | None = None
    twitter_url: str | None = None
    birth_date: date | None = None
    description: str | None = None
    tags: list[str] | None = None
    last_contacted_at: datetime | None = None


# ── Leads ───────────────────────────────────────────────────────────────────


class Lead(Row):
    first_name: str
    last_name: str | None = None
    email: str | None = None
    phone: str | None = None
    company_name: str | None = None
    job_title: str | None = None
    lead_source: str | None = None
    status: LeadStatus = LeadStatus.NEW
    score: int = 0
    description: str | None = None
    website: str | None = None
    address: dict[str, Any] | None = None
    tags: list[str] = Field(default_factory=list)
    custom_fields: dict[str, Any] = Field(default_factory=dict)
    converted_contact_id: str | None = None
    converted_deal_id: str | None = None
    converted_at: datetime | None = None
    owner_id: str | None = None
    created_by: str | None = None


class LeadCreate(Payload):
    first_name: str = Field(min_length=1)
    last_name: str | None = None
    email: str | None = None
    phone: str | None = None
    company_name: str | None = None
    job_title: str | None = None
    lead_source: str | None = None
    status: LeadStatus = LeadStatus.NEW
    score: int = Field(default=0, ge=0, le=100)
    description: str | None = None
    website: str | None = None
    tags: list[str] = Field(default_factory=list)


class LeadUpdate(Payload):
    first_name: str | None = Field(default=None, min_length=1)
    last_name: str | None = None
    email: str | None = None
    phone: str | None = None
    company_name: str | None = None
    job_title: str | None = None
    lead_source: str | None = None
    status: LeadStatus | None = None
    score: int | None = Field(default=None, ge=0, le=100)
    description: str | None = None
    website: str | None = None
    tags: list[str] | None = None


# ── Pipelines ───────────────────────────────────────────────────────────────


class Pipeline(Row):
    name: str
    description: str | None = None
    is_default: bool = False


class PipelineStage(Row):
    """One column of a pipeline board.

    ``is_won`` / ``is_lost`` mark the terminal stages; moving a deal into
    one of them closes the deal.
    """

    pipeline_id: str
    name: str
    description: str | None = None
    color: str | None = None
    probability: int = Field(default=0, ge=0, le=100)
    position: int
    is_won: bool = False
    is_lost: bool = False


# ── Deals ───────────────────────────────────────────────────────────────────


class Deal(Row):
    name: str
    value: float = Field(default=0.0, ge=0)
    currency: str = "USD"
    pipeline_id: str | None = None
    stage_id: str | None = None
    contact_id: str | None = None
    company_id: str | None = None
    expected_close_date: date | None = None
    actual_close_date: datetime | None = None
    probability: int = Field(default=0, ge=0, le=100)
    status: DealStatus = DealStatus.OPEN
    loss_reason: str | None = None
    description: str | None = None
    tags: list[str] = Field(default_factory=list)
    custom_fields: dict[str, Any] = Field(default_factory=dict)
    owner_id: str | None = None
    created_by: str | None = None
    contact: Contact | None = None
    company: Company | None = None
    stage: PipelineStage | None = None


class DealCreate(Payload):
    """New deal. The outcome is set by the stage it is created in."""

    name: str = Field(min_length=1)
    value: float = Field(default=0.0, ge=0)
    currency: str | None = None
    stage_id: str | None = None
    contact_id: str | None = None
    company_id: str | None = None
    expected_close_date: date | None = None
    probability: int = Field(default=0, ge=0, le=100)
    description: str | None = None
    tags: list[str] = Field(default_factory=list)


class DealUpdate(Payload):
    """Partial deal edit. A ``stage_id`` change goes through the stage rule."""

    name: str | None = Field(default=None, min_length=1)
    value: float | None = Field(default=None, ge=0)
    currency: str | None = None
    stage_id: str | None = None
    contact_id: str | None = None
    company_id: str | None = None
    expected_close_date: date | None = None
    probability: int | None = Field(default=None, ge=0, le=100)
    loss_reason: str | None = None
    description: str | None = None
    tags: list[str] | None = None


# ── Activities ──────────────────────────────────────────────────────────────


class Activity(Row):
    type: ActivityType
    subject: str
    description: str | None = None
    status: ActivityStatus = ActivityStatus.PENDING
    due_date: datetime | None = None
    completed_at: datetime | None = None
    duration_minutes: int | None = None
    outcome: str | None = None
    contact_id: str | None = None
    company_id: str | None = None
    deal_id: str | None = None
    lead_id: str | None = None
    assigned_to: str | None = None
    created_by: str | None = None


class ActivityCreate(Payload):
    type: ActivityType
    subject: str = Field(min_length=1)
    description: str | None = None
    status: ActivityStatus = ActivityStatus.PENDING
    due_date: datetime | None = None
    duration_minutes: int | None = Field(default=None, ge=0)
    outcome: str | None = None
    contact_id: str | None = None
    company_id: str | None = None
    deal_id: str | None = None
    lead_id: str | None = None


class ActivityUpdate(Payload):
    type: ActivityType | None = None
    subject: str | None = Field(default=None, min_length=1)
    description: str | None = None
    due_date: datetime | None = None
    duration_minutes: int | None = Field(default=None, ge=0)
    outcome: str | None = None
    contact_id: str | None = None
    company_id: str | None = None
    deal_id: str | None = None
    lead_id: str | None = None


# ── Tasks ───────────────────────────────────────────────────────────────────


class Task(Row):
    title: str
    description: str | None = None
    priority: TaskPriority = TaskPriority.MEDIUM
    status: TaskStatus = TaskStatus.PENDING
    due_date: date | None = None
    completed_at: datetime | None = None
    contact_id: str | None = None
    company_id: str | None = None
    deal_id: str | None = None
    lead_id: str | None = None
    assigned_to: str | None = None
    created_by: str | None = None


class TaskCreate(Payload):
    title: str = Field(min_length=1)
    description: str | None = None
    priority: TaskPriority = TaskPriority.MEDIUM
    due_date: date | None = None
    contact_id: str | None = None
    company_id: str | None = None
    deal_id: str | None = None
    lead_id: str | None = None
    assigned_to: str | None = None


class TaskUpdate(Payload):
    title: str | None = Field(default=None, min_length=1)
    description: str | None = None
    priority: TaskPriority | None = None
    due_date: date | None = None
    contact_id: str | None = None
    company_id: str | None = None
    deal_id: str | None = None
    lead_id: str | None = None
    assigned_to: str | None = None


# ── Notes ───────────────────────────────────────────────────────────────────


class Note(Row):
    content: str
    contact_id: str | None = None
    company_id: str | None = None
    deal_id: str | None = None
    lead_id: str | None = None
    created_by: str | None = None


class NoteCreate(Payload):
    content: str = Field(min_length=1)
    contact_id: str | None = None
    company_id: str | None = None
    deal_id: str | None = None
    lead_id: str | None = None
