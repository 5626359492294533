"""Tenant service — tenant management and member listing.

Learn: Tenant-owned tables store the tenant *slug*, not tenants.id, so
renaming a slug is a multi-table write: the tenant row plus every
project, task, issue, and forum post that carried the old slug. All of
it happens in one session transaction; either every row moves or none
does. Audit rows keep the slug they were written with.

The old slug is then reserved for jwt_ttl_hours. Tokens minted before
the rename still say the old slug, and nothing checks them against the
database, so handing that slug to another tenant early would let those
tokens into the newcomer's data.
"""

from datetime import timedelta
from typing import Optional

import structlog
from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from pulseforge.config import settings
from pulseforge.db.models import ForumPost, Issue, Project, RetiredSlug, Task, Tenant, User, utcnow
from pulseforge.errors import Conflict, NotFound
from pulseforge.services.validation import validate_logo

logger = structlog.get_logger()

# Tables that carry the tenant slug in their `tenant_id` column.
SLUG_SCOPED_MODELS = (Project, Task, Issue, ForumPost)


async def slug_reserved(
    db: AsyncSession, slug: str, tenant_id: Optional[int] = None
) -> bool:
    """True if another tenant gave up `slug` recently enough that its tokens may live."""
    cutoff = utcnow() - timedelta(hours=settings.jwt_ttl_hours)
    stmt = select(RetiredSlug.id).where(
        RetiredSlug.slug == slug, RetiredSlug.retired_at > cutoff
    )
    if tenant_id is not None:
        stmt = stmt.where(RetiredSlug.tenant_id != tenant_id)
    return await db.scalar(stmt.limit(1)) is not None


class TenantService:
    """Business logic for tenants."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ─── Tenants ────────────────────────────────────────

    async def list_tenants(self) -> list[Tenant]:
        result = await self.db.execute(select(Tenant).order_by(Tenant.id.desc()))
        return list(result.scalars().all())

    async def get_tenant(self, tenant_id: int) -> Tenant:
        tenant = await self.db.get(Tenant, tenant_id)
        if tenant is None:
            raise NotFound("tenant not found")
        return tenant

    async def create_tenant(self, slug: str, name: str, logo_url: str = "") -> Tenant:
        validate_logo(logo_url)
        await self._check_available(slug=slug, name=name)

        tenant = Tenant(slug=slug, name=name, logo_url=logo_url)
        self.db.add(tenant)
        await self._commit_or_conflict()
        logger.info("tenant.created", tenant=slug)
        return tenant

    async def update_tenant(
        self,
        tenant_id: int,
        slug: Optional[str] = None,
        name: Optional[str] = None,
        logo_url: Optional[str] = None,
    ) -> Tenant:
        """Patch a tenant. A slug change cascades to tenant-owned rows."""
        tenant = await self.get_tenant(tenant_id)
        old_slug = tenant.slug

        new_slug = slug if slug is not None and slug != old_slug else None
        new_name = name if name is not None and name != tenant.name else None
        await self._check_available(slug=new_slug, name=new_name, exclude_id=tenant.id)

        if logo_url is not None:
            tenant.logo_url = validate_logo(logo_url)
        if new_name is not None:
            tenant.name = new_name

        moved = 0
        if new_slug is not None:
            tenant.slug = new_slug
            self.db.add(RetiredSlug(slug=old_slug, tenant_id=tenant.id))
            for model in SLUG_SCOPED_MODELS:
                result = await self.db.execute(
                    update(model)
                    .where(model.tenant_id == old_slug)
                    .values(tenant_id=new_slug)
                )
                moved += result.rowcount or 0

        await self._commit_or_conflict()
        if new_slug is not None:
            logger.info("tenant.slug_renamed", old=old_slug, new=new_slug, rows_moved=moved)
        return tenant

    # ─── Members ────────────────────────────────────────

    async def list_users(self, tenant_slug: str) -> list[User]:
        result = await self.db.execute(
            select(User)
            .join(Tenant, Tenant.id == User.tenant_id)
            .where(Tenant.slug == tenant_slug)
            .order_by(User.created_at.desc(), User.id.desc())
        )
        return list(result.scalars().all())

    # ─── Helpers ────────────────────────────────────────

    async def _check_available(
        self,
        slug: Optional[str] = None,
        name: Optional[str] = None,
        exclude_id: Optional[int] = None,
    ) -> None:
        """Raise Conflict if another tenant already uses the slug or name."""
        if slug is not None:
            stmt = select(Tenant.id).where(Tenant.slug == slug)
            if exclude_id is not None:
                stmt = stmt.where(Tenant.id != exclude_id)
            if await self.db.scalar(stmt.limit(1)) is not None:
                raise Conflict("tenant slug already exists")
            if await slug_reserved(self.db, slug, tenant_id=exclude_id):
                raise Conflict("tenant slug was retired recently")
        if name is not None:
            stmt = select(Tenant.id).where(func.lower(Tenant.name) == name.lower())
            if exclude_id is not None:
                stmt = stmt.where(Tenant.id != exclude_id)
            if await self.db.scalar(stmt.limit(1)) is not None:
                raise Conflict("tenant name already exists")

    async def _commit_or_conflict(self) -> None:
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise Conflict("tenant slug or name already exists")
