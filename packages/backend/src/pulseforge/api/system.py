"""System-admin API routes — mounted under /system behind the role gate.

Learn: The router carries no auth of its own. api/__init__.py mounts it
with dependencies=[Depends(require_system_admin)], which itself depends
on get_tenant_context, so every route here runs the full chain:
token → TenantContext → role check → handler. An org_admin token gets
403 before any handler code runs.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from pulseforge.auth.dependencies import TenantContext, require_system_admin
from pulseforge.db.engine import get_db
from pulseforge.notifications import MailQueue
from pulseforge.notifications.dependencies import get_mail_queue
from pulseforge.schemas.common import ItemList
from pulseforge.schemas.system import (
    AnalyticsRead,
    BroadcastResult,
    OrganizationSummary,
    SystemLogRead,
    SystemUpdateRead,
    SystemUpdateWrite,
)
from pulseforge.schemas.tenant import TenantCreate, TenantRead, TenantUpdate
from pulseforge.services.system_service import SystemService, clamp_log_limit
from pulseforge.services.tenant_service import TenantService
from pulseforge.services.update_service import BroadcastCounts, UpdateService

router = APIRouter(prefix="/system")


def _broadcast_result(item, counts: BroadcastCounts, status: str) -> BroadcastResult:
    return BroadcastResult(
        item=SystemUpdateRead.model_validate(item),
        recipients=counts.recipients,
        queued=counts.queued,
        dropped=counts.dropped,
        mail_status=status,
    )


# ─── Reporting ──────────────────────────────────────────

@router.get("/organizations", response_model=ItemList[OrganizationSummary])
async def list_organizations(db: AsyncSession = Depends(get_db)):
    return {"items": await SystemService(db).organizations()}


@router.get("/analytics", response_model=AnalyticsRead)
async def analytics(db: AsyncSession = Depends(get_db)):
    return await SystemService(db).analytics()


@router.get("/logs", response_model=ItemList[SystemLogRead])
async def list_logs(
    limit: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    """Newest audit entries. ?limit outside 1..500 falls back to 100."""
    return {"items": await SystemService(db).logs(clamp_log_limit(limit))}


# ─── Tenants ────────────────────────────────────────────

@router.get("/tenants", response_model=ItemList[TenantRead])
async def list_tenants(db: AsyncSession = Depends(get_db)):
    return {"items": await TenantService(db).list_tenants()}


@router.post("/tenants", response_model=TenantRead, status_code=201)
async def create_tenant(body: TenantCreate, db: AsyncSession = Depends(get_db)):
    return await TenantService(db).create_tenant(
        slug=body.slug, name=body.name, logo_url=body.logo_url
    )


@router.put("/tenants/{tenant_id}", response_model=TenantRead)
async def update_tenant(
    tenant_id: int,
    body: TenantUpdate,
    db: AsyncSession = Depends(get_db),
):
    """Rename a tenant. A new slug moves all of its data along."""
    return await TenantService(db).update_tenant(
        tenant_id, slug=body.slug, name=body.name, logo_url=body.logo_url
    )


# ─── System updates ─────────────────────────────────────

@router.post("/updates", response_model=BroadcastResult, status_code=201)
async def create_update(
    body: SystemUpdateWrite,
    db: AsyncSession = Depends(get_db),
    ctx: TenantContext = Depends(require_system_admin),
    mail_queue: MailQueue = Depends(get_mail_queue),
):
    item, counts = await UpdateService(db, mail_queue).create_update(
        scheduled_date=body.scheduled_date,
        title=body.title,
        feature_brief=body.feature_brief,
        expectations=body.expectations,
        created_by=ctx.email,
    )
    return _broadcast_result(item, counts, "broadcast queued")


@router.put("/updates/{update_id}", response_model=BroadcastResult)
async def revise_update(
    update_id: int,
    body: SystemUpdateWrite,
    db: AsyncSession = Depends(get_db),
    mail_queue: MailQueue = Depends(get_mail_queue),
):
    item, counts = await UpdateService(db, mail_queue).revise_update(
        update_id,
        scheduled_date=body.scheduled_date,
        title=body.title,
        feature_brief=body.feature_brief,
        expectations=body.expectations,
    )
    return _broadcast_result(item, counts, "update broadcast queued")
