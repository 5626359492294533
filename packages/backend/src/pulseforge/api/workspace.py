"""Workspace API routes — members, announcements, and mail.

Learn: These are the remaining tenant-facing endpoints:
- GET /users → members of the caller's tenant
- GET /updates → platform announcements (same list for every tenant)
- POST /notifications/test → synchronous test mail
- POST /support/request → mail the support inbox

The two mail routes send synchronously through the Mailer (not the
queue) because the caller wants to know whether delivery worked: a
provider failure becomes 400 with the provider's message.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from pulseforge.auth.dependencies import TenantContext, get_tenant_context
from pulseforge.db.engine import get_db
from pulseforge.errors import MailDeliveryError, ValidationFailed
from pulseforge.notifications import Mailer
from pulseforge.notifications.dependencies import get_mailer
from pulseforge.schemas.common import ItemList
from pulseforge.schemas.system import (
    MailSent,
    NotificationTestRequest,
    SupportRequest,
    SystemUpdateRead,
)
from pulseforge.schemas.tenant import TenantUserRead
from pulseforge.services.tenant_service import TenantService
from pulseforge.services.update_service import UpdateService

router = APIRouter()

DEFAULT_TEST_SUBJECT = "PulseForge notification"
DEFAULT_TEST_MESSAGE = "This is a test notification from PulseForge backend."


# ─── Members & announcements ────────────────────────────

@router.get("/users", response_model=ItemList[TenantUserRead])
async def list_users(
    db: AsyncSession = Depends(get_db),
    ctx: TenantContext = Depends(get_tenant_context),
):
    users = await TenantService(db).list_users(ctx.tenant_slug)
    return {
        "items": [
            TenantUserRead(id=u.public_id or "", name=u.name, email=u.email, role=u.role)
            for u in users
        ]
    }


@router.get("/updates", response_model=ItemList[SystemUpdateRead])
async def list_updates(db: AsyncSession = Depends(get_db)):
    return {"items": await UpdateService(db).list_updates()}


# ─── Mail ───────────────────────────────────────────────

async def _deliver(mailer: Mailer, to: str, subject: str, message: str) -> None:
    try:
        await mailer.send(to, subject, message)
    except MailDeliveryError as e:
        raise ValidationFailed(str(e))


@router.post("/notifications/test", response_model=MailSent)
async def send_test_notification(
    body: NotificationTestRequest,
    ctx: TenantContext = Depends(get_tenant_context),
    mailer: Mailer = Depends(get_mailer),
):
    """Send a test mail, to the caller unless another address is given."""
    to = body.email or ctx.email
    if not to:
        raise ValidationFailed("missing recipient email")
    await _deliver(
        mailer,
        to,
        body.subject or DEFAULT_TEST_SUBJECT,
        body.message or DEFAULT_TEST_MESSAGE,
    )
    return MailSent(to=to)


@router.post("/support/request", response_model=MailSent)
async def send_support_request(
    body: SupportRequest,
    ctx: TenantContext = Depends(get_tenant_context),
    mailer: Mailer = Depends(get_mailer),
):
    if not ctx.email or not ctx.tenant_slug:
        raise ValidationFailed("missing user context")

    to = mailer.cfg.support_mail_to.strip() or mailer.cfg.mail_from.strip()
    if not to:
        raise ValidationFailed("SUPPORT_MAIL_TO (or MAIL_FROM) not configured")

    priority = body.priority or "normal"
    subject = f"[Support][{ctx.tenant_slug}][{priority}] {body.subject}"
    message = (
        f"Requester: {ctx.email}\nTenant: {ctx.tenant_slug}\n"
        f"Priority: {priority}\n\n{body.message}"
    )
    await _deliver(mailer, to, subject, message)
    return MailSent()
