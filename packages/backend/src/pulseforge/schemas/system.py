"""Pydantic schemas for system-admin reporting, announcements, and mail."""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from pulseforge.schemas.common import Trimmed


# ─── Reporting ──────────────────────────────────────────

class OrganizationSummary(BaseModel):
    tenant_slug: str
    tenant_name: str
    user_count: int
    project_count: int
    task_count: int
    active_users_7d: int
    active_workspace_7d: bool


class AnalyticsRead(BaseModel):
    tenant_count: int
    user_count: int
    project_count: int
    task_count: int
    active_users_24h: int
    active_users_7d: int
    active_tenants_7d: int


class SystemLogRead(BaseModel):
    id: int
    tenant_slug: str
    user_email: str
    role: str
    method: str
    path: str
    status_code: int
    latency_ms: int
    created_at: datetime

    model_config = {"from_attributes": True}

    @field_validator("tenant_slug", "user_email", "role", mode="before")
    @classmethod
    def _null_as_empty(cls, v):
        return v or ""


# ─── System updates (announcements) ─────────────────────

class SystemUpdateWrite(BaseModel):
    """Body for both create and revise. Every field is required."""

    scheduled_date: Trimmed = Field(..., min_length=1)
    title: Trimmed = Field(..., min_length=1, max_length=500)
    feature_brief: Trimmed = Field(..., min_length=1)
    expectations: Trimmed = Field(..., min_length=1)


class SystemUpdateRead(BaseModel):
    id: int
    scheduled_date: date
    title: str
    feature_brief: str
    expectations: str
    created_by_email: str
    created_at: datetime

    model_config = {"from_attributes": True}


class BroadcastResult(BaseModel):
    item: SystemUpdateRead
    recipients: int
    queued: int
    dropped: int
    mail_status: str


# ─── Mail ───────────────────────────────────────────────

class NotificationTestRequest(BaseModel):
    email: Trimmed = ""
    subject: Trimmed = ""
    message: Trimmed = ""


class SupportRequest(BaseModel):
    subject: Trimmed = Field(..., min_length=1, max_length=500)
    message: Trimmed = Field(..., min_length=1)
    priority: Trimmed = ""


class MailSent(BaseModel):
    status: str = "sent"
    to: Optional[str] = None
