"""Project API routes — tenant-scoped.

Learn: The service is built per request from the caller's TenantContext,
so handlers never pass the tenant around; every query the service runs
is already filtered by the token's tenant slug.
"""

from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from pulseforge.auth.dependencies import TenantContext, get_tenant_context
from pulseforge.db.engine import get_db
from pulseforge.notifications import MailQueue
from pulseforge.notifications.dependencies import get_mail_queue
from pulseforge.schemas.common import ItemList
from pulseforge.schemas.project import ProjectCreate, ProjectRead, ProjectUpdate
from pulseforge.services.project_service import ProjectService

router = APIRouter()


def _svc(
    db: AsyncSession = Depends(get_db),
    ctx: TenantContext = Depends(get_tenant_context),
    mail_queue: MailQueue = Depends(get_mail_queue),
) -> ProjectService:
    return ProjectService(db, ctx.tenant_slug, mail_queue=mail_queue)


@router.get("/projects", response_model=ItemList[ProjectRead])
async def list_projects(svc: ProjectService = Depends(_svc)):
    return {"items": await svc.list_projects()}


@router.post("/projects", response_model=ProjectRead, status_code=201)
async def create_project(
    body: ProjectCreate,
    svc: ProjectService = Depends(_svc),
    ctx: TenantContext = Depends(get_tenant_context),
):
    return await svc.create_project(
        name=body.name,
        start_date=body.start_date,
        duration_days=body.duration_days,
        team_size=body.team_size,
        status=body.status,
        assignees=body.assignees,
        notify=ctx.email,
    )


@router.get("/projects/{project_id}", response_model=ProjectRead)
async def get_project(project_id: int, svc: ProjectService = Depends(_svc)):
    return await svc.get_project(project_id)


@router.patch("/projects/{project_id}", response_model=ProjectRead)
async def update_project(
    project_id: int,
    body: ProjectUpdate,
    svc: ProjectService = Depends(_svc),
):
    return await svc.update_project(project_id, **body.model_dump(exclude_unset=True))


@router.delete("/projects/{project_id}", status_code=204)
async def delete_project(project_id: int, svc: ProjectService = Depends(_svc)):
    """Delete the project and its tasks; its issues are kept, unlinked."""
    await svc.delete_project(project_id)
    return Response(status_code=204)
