"""Auth API — registration, login, password reset, current identity.

Learn: Routes for the account lifecycle:
- POST /auth/register → tenant + org_admin → session token (201)
- POST /auth/login → email/password (optional tenant slug) → session token
- POST /auth/forgot-password → mail a temporary password (always 200)
- GET /auth/me → the caller's TenantContext

Only /me requires a token; it declares the dependency itself because
the router as a whole is mounted open.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from pulseforge.auth.dependencies import (
    TenantContext,
    get_system_admins,
    get_tenant_context,
)
from pulseforge.db.engine import get_db
from pulseforge.notifications import Mailer, MailQueue
from pulseforge.notifications.dependencies import get_mail_queue, get_mailer
from pulseforge.schemas.auth import (
    AuthResponse,
    ForgotPasswordRequest,
    LoginRequest,
    MeRead,
    RegisterRequest,
    ResetAccepted,
)
from pulseforge.services.auth_service import AuthService

router = APIRouter(prefix="/auth")


def _svc(
    db: AsyncSession = Depends(get_db),
    system_admins: frozenset[str] = Depends(get_system_admins),
    mail_queue: MailQueue = Depends(get_mail_queue),
) -> AuthService:
    return AuthService(db, system_admins=system_admins, mail_queue=mail_queue)


@router.post("/register", response_model=AuthResponse, status_code=201)
async def register(body: RegisterRequest, svc: AuthService = Depends(_svc)):
    """Create an organization and its first admin."""
    return await svc.register(body)


@router.post("/login", response_model=AuthResponse)
async def login(body: LoginRequest, svc: AuthService = Depends(_svc)):
    return await svc.login(body)


@router.post("/forgot-password", response_model=ResetAccepted)
async def forgot_password(
    body: ForgotPasswordRequest,
    svc: AuthService = Depends(_svc),
    mailer: Mailer = Depends(get_mailer),
):
    """Same answer whether or not the account exists."""
    await svc.reset_password(body, mailer)
    return ResetAccepted()


@router.get("/me", response_model=MeRead)
async def me(ctx: TenantContext = Depends(get_tenant_context)):
    return ctx
