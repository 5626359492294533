"""Task API routes — tenant-scoped, each task tied to a project."""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from pulseforge.auth.dependencies import TenantContext, get_tenant_context
from pulseforge.db.engine import get_db
from pulseforge.notifications import MailQueue
from pulseforge.notifications.dependencies import get_mail_queue
from pulseforge.schemas.common import ItemList
from pulseforge.schemas.project import TaskCreate, TaskRead, TaskUpdate
from pulseforge.services.task_service import TaskService

router = APIRouter()


def _svc(
    db: AsyncSession = Depends(get_db),
    ctx: TenantContext = Depends(get_tenant_context),
    mail_queue: MailQueue = Depends(get_mail_queue),
) -> TaskService:
    return TaskService(db, ctx.tenant_slug, mail_queue=mail_queue)


@router.get("/tasks", response_model=ItemList[TaskRead])
async def list_tasks(
    project_id: Optional[int] = Query(None, gt=0),
    svc: TaskService = Depends(_svc),
):
    """Tasks newest first, optionally only those of one project."""
    rows = await svc.list_tasks(project_id=project_id)
    return {"items": [TaskRead.from_row(task, name) for task, name in rows]}


@router.post("/tasks", response_model=TaskRead, status_code=201)
async def create_task(
    body: TaskCreate,
    svc: TaskService = Depends(_svc),
    ctx: TenantContext = Depends(get_tenant_context),
):
    task, name = await svc.create_task(
        project_id=body.project_id,
        title=body.title,
        status=body.status,
        priority=body.priority,
        subtasks=body.subtasks,
        notify=ctx.email,
    )
    return TaskRead.from_row(task, name)


@router.patch("/tasks/{task_id}", response_model=TaskRead)
async def update_task(task_id: int, body: TaskUpdate, svc: TaskService = Depends(_svc)):
    task, name = await svc.update_task(task_id, **body.model_dump(exclude_unset=True))
    return TaskRead.from_row(task, name)


@router.delete("/tasks/{task_id}", status_code=204)
async def delete_task(task_id: int, svc: TaskService = Depends(_svc)):
    await svc.delete_task(task_id)
    return Response(status_code=204)
