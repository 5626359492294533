"""Schema bootstrapper tests.

Learn: These tests build databases the way early deployments left them
(tables missing columns, users without public ids) with raw DDL, then
let ensure_schema() converge them. A second run must change nothing.
"""

import pytest
import pytest_asyncio
from sqlalchemy import inspect, text
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import create_async_engine

from pulseforge.auth.public_id import is_valid_public_id
from pulseforge.db.bootstrap import add_column_ddl, ensure_schema
from pulseforge.db.models import Base, Tenant, User

LEGACY_DDL = [
    """
    CREATE TABLE tenants (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        slug TEXT NOT NULL UNIQUE,
        name TEXT NOT NULL,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE users (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        tenant_id INTEGER NOT NULL,
        name TEXT NOT NULL,
        email TEXT NOT NULL,
        password_hash TEXT NOT NULL,
        public_id TEXT
    )
    """,
    "INSERT INTO tenants (slug, name) VALUES ('legacy', 'Legacy Co')",
    "INSERT INTO users (tenant_id, name, email, password_hash, public_id) VALUES (1, 'A', 'a@legacy.io', 'x', '1234567')",
    "INSERT INTO users (tenant_id, name, email, password_hash, public_id) VALUES (1, 'B', 'b@legacy.io', 'x', '1234567')",
    "INSERT INTO users (tenant_id, name, email, password_hash, public_id) VALUES (1, 'C', 'c@legacy.io', 'x', 'abc')",
    "INSERT INTO users (tenant_id, name, email, password_hash, public_id) VALUES (1, 'Root', 'Root@PulseForge.io', 'x', NULL)",
]

ADMINS = frozenset({"root@pulseforge.io"})


@pytest_asyncio.fixture()
async def legacy_engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'legacy.db'}")
    async with engine.begin() as conn:
        for stmt in LEGACY_DDL:
            await conn.execute(text(stmt))
    yield engine
    await engine.dispose()


def _columns(sync_conn) -> dict[str, set[str]]:
    insp = inspect(sync_conn)
    return {t: {c["name"] for c in insp.get_columns(t)} for t in insp.get_table_names()}


def _indexes(sync_conn, table: str) -> set[str]:
    return {ix["name"] for ix in inspect(sync_conn).get_indexes(table)}


# ═══════════════════════════════════════════════════════════
# Fresh database
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_fresh_database_gets_every_table(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'fresh.db'}")
    try:
        report = await ensure_schema(engine)
        assert set(report.tables_created) == set(Base.metadata.tables)
        assert report.columns_added == []

        async with engine.connect() as conn:
            columns = await conn.run_sync(_columns)
            user_indexes = await conn.run_sync(_indexes, "users")
        for table in Base.metadata.sorted_tables:
            assert columns[table.name] == {c.name for c in table.columns}
        assert {"idx_users_public_id", "idx_users_tenant_email"} <= user_indexes
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_second_run_is_a_noop(engine):
    """The conftest engine is already bootstrapped once."""
    report = await ensure_schema(engine)
    assert report.tables_created == []
    assert report.columns_added == []
    assert report.public_ids_backfilled == 0
    assert report.admins_promoted == 0


# ═══════════════════════════════════════════════════════════
# Legacy database
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_legacy_tables_gain_missing_columns(legacy_engine):
    report = await ensure_schema(legacy_engine, ADMINS)

    assert "users" not in report.tables_created
    assert "projects" in report.tables_created
    assert {
        "tenants.logo_url",
        "users.role",
        "users.last_login_at",
        "users.created_at",
    } <= set(report.columns_added)

    async with legacy_engine.connect() as conn:
        logo = (await conn.execute(text("SELECT logo_url FROM tenants"))).scalar_one()
        roles = dict((await conn.execute(text("SELECT email, role FROM users"))).all())
    assert logo == ""
    assert roles["a@legacy.io"] == "org_admin"


@pytest.mark.asyncio
async def test_legacy_public_ids_are_backfilled(legacy_engine):
    report = await ensure_schema(legacy_engine, ADMINS)
    # duplicate, malformed and NULL; the first holder keeps its id
    assert report.public_ids_backfilled == 3

    async with legacy_engine.connect() as conn:
        rows = dict(
            (await conn.execute(text("SELECT email, public_id FROM users ORDER BY id"))).all()
        )
        indexes = await conn.run_sync(_indexes, "users")

    assert rows["a@legacy.io"] == "1234567"
    assert all(is_valid_public_id(v) for v in rows.values())
    assert len(set(rows.values())) == len(rows)
    assert "idx_users_public_id" in indexes


@pytest.mark.asyncio
async def test_allow_listed_users_promoted(legacy_engine):
    report = await ensure_schema(legacy_engine, ADMINS)
    assert report.admins_promoted == 1

    async with legacy_engine.connect() as conn:
        role = (
            await conn.execute(text("SELECT role FROM users WHERE email = 'Root@PulseForge.io'"))
        ).scalar_one()
    assert role == "system_admin"


@pytest.mark.asyncio
async def test_legacy_bootstrap_is_idempotent(legacy_engine):
    await ensure_schema(legacy_engine, ADMINS)
    again = await ensure_schema(legacy_engine, ADMINS)
    assert again.tables_created == []
    assert again.columns_added == []
    assert again.public_ids_backfilled == 0
    assert again.admins_promoted == 0


# ═══════════════════════════════════════════════════════════
# DDL rendering
# ═══════════════════════════════════════════════════════════


def test_add_column_ddl_postgres_uses_if_not_exists():
    users = User.__table__
    ddl = add_column_ddl(users, users.c.role, postgresql.dialect())
    assert ddl == "ALTER TABLE users ADD COLUMN IF NOT EXISTS role TEXT DEFAULT 'org_admin' NOT NULL"


def test_add_column_ddl_sqlite_skips_non_constant_default():
    tenants = Tenant.__table__
    ddl = add_column_ddl(tenants, tenants.c.created_at, sqlite.dialect())
    assert "DEFAULT" not in ddl
    assert "NOT NULL" not in ddl

    pg = add_column_ddl(tenants, tenants.c.created_at, postgresql.dialect())
    assert "DEFAULT now()" in pg
    assert pg.endswith("NOT NULL")
