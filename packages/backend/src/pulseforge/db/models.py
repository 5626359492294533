"""SQLAlchemy ORM models — single source of truth for the database schema.

Learn: Declarative ORM mapping with SQLAlchemy 2.0 style (Mapped[] + mapped_column).
Each class = one table. The schema bootstrapper (db/bootstrap.py) reads
this metadata to create missing tables, columns, and indexes at startup.

Key concepts:
- BIGINT identity keys (SQLite needs plain INTEGER to autoincrement, hence the variant)
- JSONB on Postgres, JSON elsewhere, for string lists (assignees, subtasks)
- server_default on every column a legacy table might lack, so
  ALTER TABLE ... ADD COLUMN can backfill existing rows
- Tenant scoping: users point at tenants.id; every other tenant-owned
  table carries the tenant *slug* in a `tenant_id` column
"""

from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy import (
    JSON,
    BigInteger,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

ORG_ADMIN = "org_admin"
SYSTEM_ADMIN = "system_admin"

BigIntPK = BigInteger().with_variant(Integer(), "sqlite")
StringList = JSON().with_variant(JSONB(), "postgresql")


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _created_at() -> Mapped[datetime]:
    return mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )


# ══════════════════════════════════════════════════════════════
# Identity: tenants and users
# ══════════════════════════════════════════════════════════════


class Tenant(Base):
    """An organization. The isolation boundary for all business data.

    Learn: `slug` is what tokens carry (the `tenant_id` claim) and what
    tenant-scoped tables store. Names are unique case-insensitively,
    enforced by a functional index on lower(name).
    """

    __tablename__ = "tenants"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    slug: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    logo_url: Mapped[str] = mapped_column(
        Text, nullable=False, default="", server_default=text("''")
    )
    created_at: Mapped[datetime] = _created_at()

    users: Mapped[list["User"]] = relationship(back_populates="tenant")


class User(Base):
    """A tenant member who can log in.

    Learn: `id` is internal; `public_id` is the 7-digit identifier exposed
    in tokens and API responses. Legacy rows may have a NULL or malformed
    public_id; the bootstrapper and login both repair those.
    """

    __tablename__ = "users"
    __table_args__ = (
        UniqueConstraint("tenant_id", "email", name="uq_users_tenant_email"),
        Index("idx_users_public_id", "public_id", unique=True),
        Index("idx_users_tenant_email", "tenant_id", "email"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    public_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    tenant_id: Mapped[int] = mapped_column(
        BigIntPK, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(Text, nullable=False)
    email: Mapped[str] = mapped_column(Text, nullable=False)
    password_hash: Mapped[str] = mapped_column(Text, nullable=False)
    role: Mapped[str] = mapped_column(
        Text, nullable=False, default=ORG_ADMIN, server_default=text(f"'{ORG_ADMIN}'")
    )
    last_login_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = _created_at()

    tenant: Mapped["Tenant"] = relationship(back_populates="users")


Index("uq_tenants_name_lower", func.lower(Tenant.name), unique=True)


class RetiredSlug(Base):
    """A slug a tenant gave up by renaming.

    Learn: Tokens carry the slug and are never looked up, so a token
    minted before a rename keeps naming the old slug until it expires.
    While any such token can still be alive, the old slug stays reserved
    for the tenant that used it.
    """

    __tablename__ = "retired_tenant_slugs"
    __table_args__ = (Index("idx_retired_tenant_slugs_slug", "slug"),)

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    slug: Mapped[str] = mapped_column(Text, nullable=False)
    tenant_id: Mapped[int] = mapped_column(
        BigIntPK, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False
    )
    retired_at: Mapped[datetime] = _created_at()


# ══════════════════════════════════════════════════════════════
# Tenant-scoped work items
# ══════════════════════════════════════════════════════════════


class Project(Base):
    __tablename__ = "projects"
    __table_args__ = (Index("idx_projects_tenant_id", "tenant_id"),)

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    tenant_id: Mapped[str] = mapped_column(Text, nullable=False)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(
        Text, nullable=False, default="active", server_default=text("'active'")
    )
    assignees: Mapped[list] = mapped_column(
        StringList, nullable=False, default=list, server_default=text("'[]'")
    )
    start_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    due_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    duration_days: Mapped[int] = mapped_column(
        Integer, nullable=False, default=1, server_default=text("1")
    )
    team_size: Mapped[int] = mapped_column(
        Integer, nullable=False, default=1, server_default=text("1")
    )
    created_at: Mapped[datetime] = _created_at()


class Task(Base):
    __tablename__ = "tasks"
    __table_args__ = (Index("idx_tasks_tenant_id", "tenant_id"),)

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    tenant_id: Mapped[str] = mapped_column(Text, nullable=False)
    project_id: Mapped[Optional[int]] = mapped_column(
        BigIntPK, ForeignKey("projects.id", ondelete="CASCADE"), nullable=True
    )
    title: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(
        Text, nullable=False, default="todo", server_default=text("'todo'")
    )
    priority: Mapped[str] = mapped_column(
        Text, nullable=False, default="medium", server_default=text("'medium'")
    )
    subtasks: Mapped[list] = mapped_column(
        StringList, nullable=False, default=list, server_default=text("'[]'")
    )
    created_at: Mapped[datetime] = _created_at()


class Issue(Base):
    __tablename__ = "issues"
    __table_args__ = (Index("idx_issues_tenant_id", "tenant_id"),)

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    tenant_id: Mapped[str] = mapped_column(Text, nullable=False)
    project_id: Mapped[Optional[int]] = mapped_column(
        BigIntPK, ForeignKey("projects.id", ondelete="SET NULL"), nullable=True
    )
    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    severity: Mapped[str] = mapped_column(
        Text, nullable=False, default="medium", server_default=text("'medium'")
    )
    status: Mapped[str] = mapped_column(
        Text, nullable=False, default="open", server_default=text("'open'")
    )
    created_by_email: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = _created_at()


class ForumPost(Base):
    __tablename__ = "forum_posts"
    __table_args__ = (Index("idx_forum_posts_tenant_id", "tenant_id"),)

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    tenant_id: Mapped[str] = mapped_column(Text, nullable=False)
    author_email: Mapped[str] = mapped_column(Text, nullable=False)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = _created_at()


# ══════════════════════════════════════════════════════════════
# Platform-wide: audit log and announcements
# ══════════════════════════════════════════════════════════════


class SystemLog(Base):
    """One row per authenticated request. Append-only.

    Learn: Written by AuditLogMiddleware after the handler returns,
    through its own session, never the request's session.
    """

    __tablename__ = "system_logs"
    __table_args__ = (
        Index("idx_system_logs_created_at", "created_at"),
        Index("idx_system_logs_tenant_slug", "tenant_slug"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    tenant_slug: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    user_email: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    role: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    method: Mapped[str] = mapped_column(String(16), nullable=False)
    path: Mapped[str] = mapped_column(Text, nullable=False)
    status_code: Mapped[int] = mapped_column(Integer, nullable=False)
    latency_ms: Mapped[int] = mapped_column(
        BigInteger, nullable=False, default=0, server_default=text("0")
    )
    created_at: Mapped[datetime] = _created_at()


class SystemUpdate(Base):
    """A scheduled platform announcement, broadcast to every org admin."""

    __tablename__ = "system_updates"
    __table_args__ = (Index("idx_system_updates_scheduled_date", "scheduled_date"),)

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    scheduled_date: Mapped[date] = mapped_column(Date, nullable=False)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    feature_brief: Mapped[str] = mapped_column(Text, nullable=False)
    expectations: Mapped[str] = mapped_column(Text, nullable=False)
    created_by_email: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = _created_at()
