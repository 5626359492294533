"""Audit service — appends request outcomes to system_logs."""

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from pulseforge.db.models import SystemLog


async def record_request(
    db: AsyncSession,
    *,
    method: str,
    path: str,
    status_code: int,
    latency_ms: int,
    tenant_slug: Optional[str] = None,
    user_email: Optional[str] = None,
    role: Optional[str] = None,
) -> SystemLog:
    """Insert one audit row and commit it."""
    entry = SystemLog(
        tenant_slug=tenant_slug,
        user_email=user_email,
        role=role,
        method=method,
        path=path,
        status_code=status_code,
        latency_ms=max(0, latency_ms),
    )
    db.add(entry)
    await db.commit()
    return entry
