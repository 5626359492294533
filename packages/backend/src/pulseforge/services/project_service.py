"""Project service — tenant-scoped project CRUD.

Learn: Every service bound to a tenant takes the slug at construction
and adds `tenant_id == slug` to every query. A project id from another
tenant is indistinguishable from a missing one: both are 404.

`due_date` is derived, never sent by the client:
    due_date = start_date + (duration_days - 1)
so a one-day project starts and ends on the same day.
"""

from datetime import date, timedelta
from typing import Optional

import structlog
from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from pulseforge.db.models import Issue, Project, Task
from pulseforge.errors import NotFound
from pulseforge.notifications import MailQueue
from pulseforge.services.validation import parse_day

logger = structlog.get_logger()


def due_date_for(start: Optional[date], duration_days: int) -> Optional[date]:
    if start is None:
        return None
    return start + timedelta(days=duration_days - 1)


class ProjectService:
    """Business logic for one tenant's projects."""

    def __init__(
        self,
        db: AsyncSession,
        tenant_slug: str,
        mail_queue: Optional[MailQueue] = None,
    ):
        self.db = db
        self.tenant_slug = tenant_slug
        self.mail_queue = mail_queue

    async def list_projects(self) -> list[Project]:
        result = await self.db.execute(
            select(Project)
            .where(Project.tenant_id == self.tenant_slug)
            .order_by(Project.id.desc())
        )
        return list(result.scalars().all())

    async def get_project(self, project_id: int) -> Project:
        project = await self.db.scalar(
            select(Project).where(
                Project.id == project_id, Project.tenant_id == self.tenant_slug
            )
        )
        if project is None:
            raise NotFound("project not found")
        return project

    async def create_project(
        self,
        name: str,
        start_date: str,
        duration_days: int,
        team_size: int,
        status: str = "",
        assignees: Optional[list[str]] = None,
        notify: str = "",
    ) -> Project:
        """Create a project. `notify` is the email to tell about it."""
        start = parse_day(start_date, "start_date")
        project = Project(
            tenant_id=self.tenant_slug,
            name=name,
            status=status or "active",
            assignees=list(assignees or []),
            start_date=start,
            due_date=due_date_for(start, duration_days),
            duration_days=duration_days,
            team_size=team_size,
        )
        self.db.add(project)
        await self.db.commit()
        logger.info("project.created", tenant=self.tenant_slug, project_id=project.id)

        if self.mail_queue is not None:
            self.mail_queue.submit(
                notify,
                "Project created",
                f"Your project '{project.name}' was created successfully.",
            )
        return project

    async def update_project(self, project_id: int, **fields) -> Project:
        """Apply the given fields. New start/duration recomputes due_date."""
        project = await self.get_project(project_id)

        for key in ("name", "status", "team_size"):
            if fields.get(key) is not None:
                setattr(project, key, fields[key])
        if fields.get("assignees") is not None:
            project.assignees = list(fields["assignees"])

        reschedule = False
        if fields.get("start_date") is not None:
            project.start_date = parse_day(fields["start_date"], "start_date")
            reschedule = True
        if fields.get("duration_days") is not None:
            project.duration_days = fields["duration_days"]
            reschedule = True
        if reschedule:
            project.due_date = due_date_for(project.start_date, project.duration_days)

        await self.db.commit()
        return project

    async def delete_project(self, project_id: int) -> None:
        """Delete a project with its tasks. Its issues stay, detached."""
        project = await self.get_project(project_id)
        await self.db.execute(
            delete(Task).where(
                Task.project_id == project.id, Task.tenant_id == self.tenant_slug
            )
        )
        await self.db.execute(
            update(Issue)
            .where(Issue.project_id == project.id, Issue.tenant_id == self.tenant_slug)
            .values(project_id=None)
        )
        await self.db.delete(project)
        await self.db.commit()
        logger.info("project.deleted", tenant=self.tenant_slug, project_id=project_id)
