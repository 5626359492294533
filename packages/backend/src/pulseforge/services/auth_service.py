"""Auth service — registration, login, and password reset.

Learn: Registration is the one place where two rows (tenant + its first
org_admin) must appear together, so both inserts share one session
transaction and commit once. Uniqueness is checked up front for friendly
409 messages, and the unique constraints still catch concurrent
registrations that slip between check and insert: the IntegrityError is
rolled back and reported as the same 409.

Login promotes allow-listed emails to system_admin on the fly, so adding
someone to PULSEFORGE_SYSTEM_ADMIN_EMAILS takes effect at their next
login without a restart.
"""

from typing import Optional

import structlog
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from pulseforge.auth.jwt import SessionClaims, create_session_token
from pulseforge.auth.password import (
    generate_temporary_password,
    hash_password,
    verify_password,
)
from pulseforge.auth.public_id import allocate_public_id, is_valid_public_id
from pulseforge.auth.roles import role_for_email
from pulseforge.db.models import ORG_ADMIN, SYSTEM_ADMIN, Tenant, User, utcnow
from pulseforge.errors import Conflict, MailDeliveryError, Unauthorized
from pulseforge.notifications import Mailer, MailQueue
from pulseforge.schemas.auth import (
    AuthResponse,
    AuthUser,
    ForgotPasswordRequest,
    LoginRequest,
    RegisterRequest,
)
from pulseforge.services.tenant_service import slug_reserved
from pulseforge.services.validation import validate_logo

logger = structlog.get_logger()

RESET_SUBJECT = "PulseForge password reset"
WELCOME_SUBJECT = "Welcome to PulseForge"


def issue_session(user: User, tenant: Tenant) -> AuthResponse:
    """Mint a session token and the matching user payload."""
    claims = SessionClaims(
        user_public_id=user.public_id or "",
        tenant_slug=tenant.slug,
        email=user.email,
        name=user.name,
        tenant_name=tenant.name,
        tenant_logo=tenant.logo_url,
        role=user.role,
    )
    return AuthResponse(
        token=create_session_token(claims),
        user=AuthUser(
            id=claims.user_public_id,
            name=user.name,
            email=user.email,
            tenant_slug=tenant.slug,
            tenant_name=tenant.name,
            tenant_logo=tenant.logo_url,
            role=user.role,
        ),
    )


class AuthService:
    """Business logic for account lifecycle."""

    def __init__(
        self,
        db: AsyncSession,
        system_admins: frozenset[str] = frozenset(),
        mail_queue: Optional[MailQueue] = None,
    ):
        self.db = db
        self.system_admins = system_admins
        self.mail_queue = mail_queue

    # ─── Register ───────────────────────────────────────

    async def register(self, body: RegisterRequest) -> AuthResponse:
        """Create a tenant and its first org_admin in one transaction."""
        logo = validate_logo(body.tenant_logo)

        if await self._exists(select(Tenant.id).where(func.lower(Tenant.name) == body.tenant_name.lower())):
            raise Conflict("organization name already exists")
        if await self._exists(select(User.id).where(func.lower(User.email) == body.email)):
            raise Conflict("email already exists")
        if await self._exists(select(Tenant.id).where(Tenant.slug == body.tenant_slug)):
            raise Conflict("organization slug already exists")
        if await slug_reserved(self.db, body.tenant_slug):
            raise Conflict("organization slug was retired recently")

        password_hash = hash_password(body.password)
        public_id = await allocate_public_id(self.db)

        tenant = Tenant(slug=body.tenant_slug, name=body.tenant_name, logo_url=logo)
        self.db.add(tenant)
        try:
            await self.db.flush()
        except IntegrityError:
            await self.db.rollback()
            raise Conflict("organization slug or name already exists")

        user = User(
            tenant_id=tenant.id,
            public_id=public_id,
            name=body.name,
            email=body.email,
            password_hash=password_hash,
            role=ORG_ADMIN,
        )
        self.db.add(user)
        try:
            await self.db.flush()
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise Conflict("account conflicts with an existing user, please retry")

        logger.info("auth.registered", tenant=tenant.slug, user_id=public_id)

        if self.mail_queue is not None:
            self.mail_queue.submit(
                user.email,
                WELCOME_SUBJECT,
                f"Hi {user.name}, your {tenant.name} workspace is ready. Role: {user.role}.",
            )
        return issue_session(user, tenant)

    # ─── Login ──────────────────────────────────────────

    async def login(self, body: LoginRequest) -> AuthResponse:
        """Check credentials and mint a session token.

        Raises Unauthorized("invalid credentials") for an unknown account
        and for a wrong password alike.
        """
        row = await self._find_account(body.tenant_slug, body.email)
        if row is None:
            raise Unauthorized("invalid credentials")
        user, tenant = row

        if not verify_password(body.password, user.password_hash):
            raise Unauthorized("invalid credentials")

        if not is_valid_public_id(user.public_id):
            user.public_id = await allocate_public_id(self.db)
            logger.info("auth.public_id_reassigned", user_id=user.public_id)

        if role_for_email(user.email, self.system_admins) == SYSTEM_ADMIN:
            user.role = SYSTEM_ADMIN
        user.last_login_at = utcnow()
        await self.db.commit()

        return issue_session(user, tenant)

    # ─── Password reset ─────────────────────────────────

    async def reset_password(self, body: ForgotPasswordRequest, mailer: Mailer) -> bool:
        """Replace the password with a mailed temporary one.

        The new hash is committed only once the mail has been handed to
        the provider. Returns False (never raises) when the account is
        unknown or the mail could not be sent, so the caller can answer
        the same way in every case.
        """
        row = await self._find_account(body.tenant_slug, body.email)
        if row is None:
            logger.info("auth.reset_unknown_account", email=body.email)
            return False
        user, tenant = row
        email = user.email

        temp_password = generate_temporary_password(12)
        user.password_hash = hash_password(temp_password)
        await self.db.flush()

        message = (
            f"Hi {user.name},\n\nYour temporary password for {tenant.name} is:\n"
            f"{temp_password}\n\nPlease login and change it immediately."
        )
        try:
            await mailer.send(email, RESET_SUBJECT, message)
        except MailDeliveryError as e:
            await self.db.rollback()
            logger.warning("auth.reset_mail_failed", email=email, error=str(e))
            return False

        await self.db.commit()
        logger.info("auth.reset_sent", email=email)
        return True

    # ─── Helpers ────────────────────────────────────────

    async def _exists(self, stmt) -> bool:
        return (await self.db.scalar(stmt.limit(1))) is not None

    async def _find_account(self, tenant_slug: str, email: str) -> Optional[tuple[User, Tenant]]:
        """The user in `tenant_slug`, or the newest user with that email."""
        stmt = (
            select(User, Tenant)
            .join(Tenant, Tenant.id == User.tenant_id)
            .where(func.lower(User.email) == email)
        )
        if tenant_slug:
            stmt = stmt.where(Tenant.slug == tenant_slug)
        else:
            stmt = stmt.order_by(User.id.desc())
        row = (await self.db.execute(stmt.limit(1))).first()
        return (row[0], row[1]) if row else None
