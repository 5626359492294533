"""Pydantic schemas for issues and forum posts."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from pulseforge.schemas.common import Trimmed


# ─── Issues ─────────────────────────────────────────────

class IssueCreate(BaseModel):
    project_id: Optional[int] = Field(None, gt=0)
    title: Trimmed = Field(..., min_length=1, max_length=500)
    description: Trimmed = Field(..., min_length=1)
    severity: Trimmed = ""


class IssueUpdate(BaseModel):
    status: Optional[Trimmed] = Field(None, min_length=1)
    severity: Optional[Trimmed] = Field(None, min_length=1)


class IssueRead(BaseModel):
    id: int
    tenant_id: str
    project_id: Optional[int] = None
    project_name: str = ""
    title: str
    description: str
    severity: str
    status: str
    created_by_email: str
    created_at: datetime

    model_config = {"from_attributes": True}

    @classmethod
    def from_row(cls, issue, project_name: Optional[str]) -> "IssueRead":
        item = cls.model_validate(issue)
        item.project_name = project_name or ""
        return item


# ─── Forum ──────────────────────────────────────────────

class ForumPostCreate(BaseModel):
    title: Trimmed = Field(..., min_length=1, max_length=500)
    body: Trimmed = Field(..., min_length=1)


class ForumPostRead(BaseModel):
    id: int
    tenant_id: str
    author_email: str
    title: str
    body: str
    created_at: datetime

    model_config = {"from_attributes": True}
