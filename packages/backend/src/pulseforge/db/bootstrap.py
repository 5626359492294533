"""Schema bootstrapper — idempotent "ensure tables" at process start.

Learn: Instead of versioned migrations, the app converges whatever
schema it finds towards models.py every time it boots:

1. CREATE TABLE IF NOT EXISTS for every model table (FK order)
2. ALTER TABLE ... ADD COLUMN for model columns an older table lacks,
   using the column's server_default so existing rows get a value
3. Postgres only: convert legacy column types (tasks.project_id TEXT,
   tasks.subtasks non-JSONB) left by early deployments
4. Backfill users whose public_id is NULL, malformed, or duplicated
5. CREATE INDEX IF NOT EXISTS for every declared index, after the
   backfill, so the unique public_id index can actually be built
6. Promote allow-listed emails to system_admin

There are no locks. Two processes booting at once both issue
IF-NOT-EXISTS DDL, so the routine is at-least-once, never exactly-once;
running it again on a converged schema changes nothing.
"""

from dataclasses import dataclass, field

import structlog
from sqlalchemy import Column, Table, func, inspect, select, text, update
from sqlalchemy.engine import Connection, Dialect
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine
from sqlalchemy.schema import CreateIndex, CreateTable
from sqlalchemy.sql.elements import TextClause

from pulseforge.auth.public_id import allocate_public_id, is_valid_public_id
from pulseforge.db.models import SYSTEM_ADMIN, Base, User

logger = structlog.get_logger()

_LEGACY_TASK_PROJECT_ID = """
DO $$
BEGIN
    IF EXISTS (
        SELECT 1 FROM information_schema.columns
        WHERE table_schema = current_schema() AND table_name = 'tasks'
          AND column_name = 'project_id' AND data_type = 'text'
    ) THEN
        ALTER TABLE tasks
        ALTER COLUMN project_id TYPE BIGINT
        USING CASE
            WHEN project_id IS NULL OR trim(project_id) = '' THEN NULL
            WHEN project_id ~ '^[0-9]+$' THEN project_id::BIGINT
            ELSE NULL
        END;
    END IF;
END $$;
"""

_LEGACY_TASK_SUBTASKS = """
DO $$
BEGIN
    IF EXISTS (
        SELECT 1 FROM information_schema.columns
        WHERE table_schema = current_schema() AND table_name = 'tasks'
          AND column_name = 'subtasks' AND data_type <> 'jsonb'
    ) THEN
        ALTER TABLE tasks ALTER COLUMN subtasks DROP DEFAULT;
        ALTER TABLE tasks
        ALTER COLUMN subtasks TYPE JSONB
        USING CASE
            WHEN subtasks IS NULL THEN '[]'::jsonb
            ELSE to_jsonb(ARRAY[subtasks::text])
        END;
        ALTER TABLE tasks ALTER COLUMN subtasks SET DEFAULT '[]'::jsonb;
    END IF;
END $$;
"""


@dataclass
class BootstrapReport:
    tables_created: list[str] = field(default_factory=list)
    columns_added: list[str] = field(default_factory=list)
    public_ids_backfilled: int = 0
    admins_promoted: int = 0


# ─── DDL helpers ─────────────────────────────────────────


def _existing_schema(sync_conn: Connection) -> dict[str, set[str]]:
    """Map of table name → column names currently in the database."""
    insp = inspect(sync_conn)
    return {
        name: {col["name"] for col in insp.get_columns(name)}
        for name in insp.get_table_names()
    }


def _server_default_sql(column: Column, dialect: Dialect) -> tuple[str | None, bool]:
    """Render a column's server default. Returns (sql, is_constant)."""
    default = column.server_default
    if default is None:
        return None, True
    arg = default.arg
    if isinstance(arg, TextClause):
        return arg.text, True
    if isinstance(arg, str):
        return "'" + arg.replace("'", "''") + "'", True
    return str(arg.compile(dialect=dialect)), False


def add_column_ddl(table: Table, column: Column, dialect: Dialect) -> str:
    """ALTER TABLE statement adding `column` with its default."""
    col_type = column.type.compile(dialect=dialect)
    if_not_exists = "IF NOT EXISTS " if dialect.name == "postgresql" else ""
    ddl = f"ALTER TABLE {table.name} ADD COLUMN {if_not_exists}{column.name} {col_type}"

    default_sql, constant = _server_default_sql(column, dialect)
    # SQLite refuses non-constant defaults (CURRENT_TIMESTAMP) on ADD COLUMN.
    if default_sql is not None and (constant or dialect.name != "sqlite"):
        ddl += f" DEFAULT {default_sql}"
        if not column.nullable:
            ddl += " NOT NULL"
    return ddl


# ─── Row repair ──────────────────────────────────────────


async def backfill_public_ids(conn: AsyncConnection) -> int:
    """Assign fresh public ids to users with missing/malformed/duplicate ones."""
    rows = (await conn.execute(select(User.id, User.public_id).order_by(User.id))).all()
    seen: set[str] = set()
    patched = 0
    for user_id, public_id in rows:
        if is_valid_public_id(public_id) and public_id not in seen:
            seen.add(public_id)
            continue
        candidate = await allocate_public_id(conn)
        while candidate in seen:
            candidate = await allocate_public_id(conn)
        await conn.execute(
            update(User).where(User.id == user_id).values(public_id=candidate)
        )
        seen.add(candidate)
        patched += 1
    return patched


async def sync_system_admin_roles(conn: AsyncConnection, emails: frozenset[str]) -> int:
    """Promote every allow-listed email to system_admin. Returns rows changed."""
    if not emails:
        return 0
    result = await conn.execute(
        update(User)
        .where(func.lower(User.email).in_(sorted(emails)))
        .where(User.role != SYSTEM_ADMIN)
        .values(role=SYSTEM_ADMIN)
    )
    return result.rowcount or 0


# ─── Entry point ─────────────────────────────────────────


async def ensure_schema(
    engine: AsyncEngine,
    system_admins: frozenset[str] = frozenset(),
) -> BootstrapReport:
    """Converge the database schema towards the models. Safe to re-run."""
    report = BootstrapReport()

    async with engine.begin() as conn:
        dialect = conn.dialect
        before = await conn.run_sync(_existing_schema)

        for table in Base.metadata.sorted_tables:
            if table.name not in before:
                report.tables_created.append(table.name)
            await conn.execute(CreateTable(table, if_not_exists=True))

        for table in Base.metadata.sorted_tables:
            existing_cols = before.get(table.name)
            if existing_cols is None:
                continue
            for column in table.columns:
                if column.name in existing_cols:
                    continue
                await conn.execute(text(add_column_ddl(table, column, dialect)))
                report.columns_added.append(f"{table.name}.{column.name}")

        if dialect.name == "postgresql":
            await conn.execute(text(_LEGACY_TASK_PROJECT_ID))
            await conn.execute(text(_LEGACY_TASK_SUBTASKS))

        report.public_ids_backfilled = await backfill_public_ids(conn)

        for table in Base.metadata.sorted_tables:
            for index in sorted(table.indexes, key=lambda ix: ix.name or ""):
                await conn.execute(CreateIndex(index, if_not_exists=True))

        report.admins_promoted = await sync_system_admin_roles(conn, system_admins)

    logger.info(
        "bootstrap.complete",
        tables_created=report.tables_created,
        columns_added=report.columns_added,
        public_ids_backfilled=report.public_ids_backfilled,
        admins_promoted=report.admins_promoted,
    )
    return report
