"""System service — cross-tenant reporting for system admins.

Learn: "Active" is measured by users.last_login_at, which login stamps.
Per-tenant counts use correlated scalar subqueries rather than one big
LEFT JOIN, so users × projects × tasks never multiply into each other.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import distinct, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from pulseforge.db.models import Project, SystemLog, Task, Tenant, User

DEFAULT_LOG_LIMIT = 100
MAX_LOG_LIMIT = 500


def clamp_log_limit(raw: Optional[str]) -> int:
    """Parse ?limit=. Anything not an integer in 1..500 means the default."""
    try:
        limit = int((raw or "").strip())
    except ValueError:
        return DEFAULT_LOG_LIMIT
    if limit < 1 or limit > MAX_LOG_LIMIT:
        return DEFAULT_LOG_LIMIT
    return limit


class SystemService:
    """Read-only, platform-wide statistics."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def organizations(self, now: Optional[datetime] = None) -> list[dict]:
        now = now or datetime.now(timezone.utc)
        week_ago = now - timedelta(days=7)

        user_count = (
            select(func.count(User.id)).where(User.tenant_id == Tenant.id).scalar_subquery()
        )
        active_users = (
            select(func.count(User.id))
            .where(User.tenant_id == Tenant.id, User.last_login_at >= week_ago)
            .scalar_subquery()
        )
        project_count = (
            select(func.count(Project.id)).where(Project.tenant_id == Tenant.slug).scalar_subquery()
        )
        task_count = (
            select(func.count(Task.id)).where(Task.tenant_id == Tenant.slug).scalar_subquery()
        )

        result = await self.db.execute(
            select(
                Tenant.slug,
                Tenant.name,
                user_count.label("user_count"),
                project_count.label("project_count"),
                task_count.label("task_count"),
                active_users.label("active_users_7d"),
            ).order_by(Tenant.slug)
        )
        return [
            {
                "tenant_slug": row.slug,
                "tenant_name": row.name,
                "user_count": row.user_count,
                "project_count": row.project_count,
                "task_count": row.task_count,
                "active_users_7d": row.active_users_7d,
                "active_workspace_7d": row.active_users_7d > 0,
            }
            for row in result.all()
        ]

    async def analytics(self, now: Optional[datetime] = None) -> dict:
        now = now or datetime.now(timezone.utc)
        day_ago = now - timedelta(hours=24)
        week_ago = now - timedelta(days=7)

        async def count(stmt) -> int:
            return (await self.db.scalar(stmt)) or 0

        return {
            "tenant_count": await count(select(func.count(Tenant.id))),
            "user_count": await count(select(func.count(User.id))),
            "project_count": await count(select(func.count(Project.id))),
            "task_count": await count(select(func.count(Task.id))),
            "active_users_24h": await count(
                select(func.count(User.id)).where(User.last_login_at >= day_ago)
            ),
            "active_users_7d": await count(
                select(func.count(User.id)).where(User.last_login_at >= week_ago)
            ),
            "active_tenants_7d": await count(
                select(func.count(distinct(User.tenant_id))).where(User.last_login_at >= week_ago)
            ),
        }

    async def logs(self, limit: int = DEFAULT_LOG_LIMIT) -> list[SystemLog]:
        result = await self.db.execute(
            select(SystemLog)
            .order_by(SystemLog.created_at.desc(), SystemLog.id.desc())
            .limit(limit)
        )
        return list(result.scalars().all())
