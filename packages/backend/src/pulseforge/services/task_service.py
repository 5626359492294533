"""Task service — tenant-scoped tasks that belong to projects.

Learn: A task must point at a project of the *same* tenant. The project
lookup filters by both id and tenant slug, so handing in another
tenant's project id fails exactly like a nonexistent one (404).

Reads join the project to return `project_name` next to each task; the
join is an outer join because legacy rows may have a NULL project_id.
"""

from typing import Optional

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from pulseforge.db.models import Project, Task
from pulseforge.errors import NotFound
from pulseforge.notifications import MailQueue

logger = structlog.get_logger()

DEFAULT_STATUS = "todo"
DEFAULT_PRIORITY = "medium"


class TaskService:
    """Business logic for one tenant's tasks."""

    def __init__(
        self,
        db: AsyncSession,
        tenant_slug: str,
        mail_queue: Optional[MailQueue] = None,
    ):
        self.db = db
        self.tenant_slug = tenant_slug
        self.mail_queue = mail_queue

    # ─── Read ────────────────────────────────────────────

    async def list_tasks(self, project_id: Optional[int] = None) -> list[tuple[Task, Optional[str]]]:
        """(task, project name) pairs, newest first."""
        stmt = (
            select(Task, Project.name)
            .outerjoin(Project, Project.id == Task.project_id)
            .where(Task.tenant_id == self.tenant_slug)
            .order_by(Task.id.desc())
        )
        if project_id is not None:
            stmt = stmt.where(Task.project_id == project_id)
        result = await self.db.execute(stmt)
        return [(task, name) for task, name in result.all()]

    async def get_task(self, task_id: int) -> Task:
        task = await self.db.scalar(
            select(Task).where(Task.id == task_id, Task.tenant_id == self.tenant_slug)
        )
        if task is None:
            raise NotFound("task not found")
        return task

    async def project_name(self, project_id: Optional[int]) -> Optional[str]:
        """Name of a project in this tenant. Raises NotFound otherwise."""
        if project_id is None:
            return None
        name = await self.db.scalar(
            select(Project.name).where(
                Project.id == project_id, Project.tenant_id == self.tenant_slug
            )
        )
        if name is None:
            raise NotFound("project not found for this tenant")
        return name

    # ─── Write ───────────────────────────────────────────

    async def create_task(
        self,
        project_id: int,
        title: str,
        status: str = "",
        priority: str = "",
        subtasks: Optional[list[str]] = None,
        notify: str = "",
    ) -> tuple[Task, str]:
        name = await self.project_name(project_id)
        task = Task(
            tenant_id=self.tenant_slug,
            project_id=project_id,
            title=title,
            status=status or DEFAULT_STATUS,
            priority=priority or DEFAULT_PRIORITY,
            subtasks=list(subtasks or []),
        )
        self.db.add(task)
        await self.db.commit()
        logger.info("task.created", tenant=self.tenant_slug, task_id=task.id)

        if self.mail_queue is not None:
            self.mail_queue.submit(
                notify,
                "Task created",
                f"Your task '{task.title}' was created successfully.",
            )
        return task, name

    async def update_task(self, task_id: int, **fields) -> tuple[Task, Optional[str]]:
        task = await self.get_task(task_id)

        if fields.get("project_id") is not None:
            await self.project_name(fields["project_id"])
            task.project_id = fields["project_id"]
        for key in ("title", "status", "priority"):
            if fields.get(key) is not None:
                setattr(task, key, fields[key])
        if fields.get("subtasks") is not None:
            task.subtasks = list(fields["subtasks"])

        await self.db.commit()
        name = await self.db.scalar(select(Project.name).where(Project.id == task.project_id))
        return task, name

    async def delete_task(self, task_id: int) -> None:
        task = await self.get_task(task_id)
        await self.db.delete(task)
        await self.db.commit()
