"""Issue and forum API routes — tenant-scoped."""

from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from pulseforge.auth.dependencies import TenantContext, get_tenant_context
from pulseforge.db.engine import get_db
from pulseforge.schemas.common import ItemList
from pulseforge.schemas.issue import (
    ForumPostCreate,
    ForumPostRead,
    IssueCreate,
    IssueRead,
    IssueUpdate,
)
from pulseforge.services.issue_service import ForumService, IssueService

router = APIRouter()


def _issues(
    db: AsyncSession = Depends(get_db),
    ctx: TenantContext = Depends(get_tenant_context),
) -> IssueService:
    return IssueService(db, ctx.tenant_slug)


def _forum(
    db: AsyncSession = Depends(get_db),
    ctx: TenantContext = Depends(get_tenant_context),
) -> ForumService:
    return ForumService(db, ctx.tenant_slug)


# ─── Issues ─────────────────────────────────────────────

@router.get("/issues", response_model=ItemList[IssueRead])
async def list_issues(svc: IssueService = Depends(_issues)):
    rows = await svc.list_issues()
    return {"items": [IssueRead.from_row(issue, name) for issue, name in rows]}


@router.post("/issues", response_model=IssueRead, status_code=201)
async def create_issue(
    body: IssueCreate,
    svc: IssueService = Depends(_issues),
    ctx: TenantContext = Depends(get_tenant_context),
):
    issue, name = await svc.create_issue(
        title=body.title,
        description=body.description,
        severity=body.severity,
        project_id=body.project_id,
        created_by=ctx.email,
    )
    return IssueRead.from_row(issue, name)


@router.patch("/issues/{issue_id}", response_model=IssueRead)
async def update_issue(issue_id: int, body: IssueUpdate, svc: IssueService = Depends(_issues)):
    issue, name = await svc.update_issue(issue_id, status=body.status, severity=body.severity)
    return IssueRead.from_row(issue, name)


# ─── Forum ──────────────────────────────────────────────

@router.get("/forum", response_model=ItemList[ForumPostRead])
async def list_forum_posts(svc: ForumService = Depends(_forum)):
    return {"items": await svc.list_posts()}


@router.post("/forum", response_model=ForumPostRead, status_code=201)
async def create_forum_post(
    body: ForumPostCreate,
    svc: ForumService = Depends(_forum),
    ctx: TenantContext = Depends(get_tenant_context),
):
    return await svc.create_post(title=body.title, body=body.body, author=ctx.email)


@router.delete("/forum/{post_id}", status_code=204)
async def delete_forum_post(post_id: int, svc: ForumService = Depends(_forum)):
    await svc.delete_post(post_id)
    return Response(status_code=204)
