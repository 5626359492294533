"""Pydantic schemas for projects and tasks.

Learn: Dates arrive as plain strings and are parsed in the service layer,
so a malformed date yields "start_date must be YYYY-MM-DD" instead of
pydantic's generic message. Blank assignees/subtasks are stripped by
CleanList before the service ever sees them.
"""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field

from pulseforge.schemas.common import CleanList, Trimmed


# ─── Projects ───────────────────────────────────────────

class ProjectCreate(BaseModel):
    name: Trimmed = Field(..., min_length=1, max_length=200)
    status: Trimmed = ""
    assignees: CleanList = Field(default_factory=list)
    start_date: Trimmed = Field(..., min_length=1)
    duration_days: int = Field(..., ge=1, le=3650)
    team_size: int = Field(..., ge=1, le=10000)


class ProjectUpdate(BaseModel):
    name: Optional[Trimmed] = Field(None, min_length=1, max_length=200)
    status: Optional[Trimmed] = Field(None, min_length=1)
    assignees: Optional[CleanList] = None
    start_date: Optional[Trimmed] = Field(None, min_length=1)
    duration_days: Optional[int] = Field(None, ge=1, le=3650)
    team_size: Optional[int] = Field(None, ge=1, le=10000)


class ProjectRead(BaseModel):
    id: int
    tenant_id: str
    name: str
    status: str
    assignees: list[str]
    start_date: Optional[date] = None
    due_date: Optional[date] = None
    duration_days: int
    team_size: int
    created_at: datetime

    model_config = {"from_attributes": True}


# ─── Tasks ──────────────────────────────────────────────

class TaskCreate(BaseModel):
    project_id: int = Field(..., gt=0)
    title: Trimmed = Field(..., min_length=1, max_length=500)
    status: Trimmed = ""
    priority: Trimmed = ""
    subtasks: CleanList = Field(default_factory=list)


class TaskUpdate(BaseModel):
    project_id: Optional[int] = Field(None, gt=0)
    title: Optional[Trimmed] = Field(None, min_length=1, max_length=500)
    status: Optional[Trimmed] = Field(None, min_length=1)
    priority: Optional[Trimmed] = Field(None, min_length=1)
    subtasks: Optional[CleanList] = None


class TaskRead(BaseModel):
    id: int
    tenant_id: str
    project_id: Optional[int] = None
    project_name: str = ""
    title: str
    status: str
    priority: str
    subtasks: list[str]
    created_at: datetime

    model_config = {"from_attributes": True}

    @classmethod
    def from_row(cls, task, project_name: Optional[str]) -> "TaskRead":
        item = cls.model_validate(task)
        item.project_name = project_name or ""
        return item
