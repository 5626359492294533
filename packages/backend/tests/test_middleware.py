"""Tests for the middleware stack — request IDs, CORS, and the audit log.

Learn: The audit middleware writes through its own session factory after
the handler has answered, so by the time the client gets the response
the row is committed and a fresh session can see it.
"""

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from pulseforge.db.engine import get_db
from pulseforge.db.models import SystemLog
from pulseforge.main import create_app
from pulseforge.services.project_service import ProjectService


async def _audit_rows(session_factory) -> list[SystemLog]:
    async with session_factory() as session:
        result = await session.execute(select(SystemLog).order_by(SystemLog.id))
        return list(result.scalars().all())


# ═══════════════════════════════════════════════════════════
# Request IDs
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_request_id_generated(client):
    """Each request gets a unique X-Request-ID header."""
    r1 = await client.get("/api/v1/health")
    r2 = await client.get("/api/v1/health")
    assert "X-Request-ID" in r1.headers
    assert "X-Request-ID" in r2.headers
    assert r1.headers["X-Request-ID"] != r2.headers["X-Request-ID"]


@pytest.mark.asyncio
async def test_request_id_propagated(client):
    """Incoming X-Request-ID is propagated through the response."""
    custom_id = "test-trace-12345"
    r = await client.get("/api/v1/health", headers={"X-Request-ID": custom_id})
    assert r.headers["X-Request-ID"] == custom_id


@pytest.mark.asyncio
async def test_request_id_on_error_responses(client):
    r = await client.get("/api/v1/projects")
    assert r.status_code == 400
    assert "X-Request-ID" in r.headers


@pytest.mark.asyncio
async def test_cors_preflight(client):
    r = await client.options(
        "/api/v1/projects",
        headers={
            "Origin": "http://localhost:3000",
            "Access-Control-Request-Method": "POST",
            "Access-Control-Request-Headers": "Authorization,Content-Type",
        },
    )
    assert r.status_code == 200
    assert r.headers["access-control-allow-origin"] == "http://localhost:3000"


# ═══════════════════════════════════════════════════════════
# Audit log
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_authenticated_request_is_audited(client, session_factory, acme):
    r = await client.get("/api/v1/projects", headers=acme["headers"])
    assert r.status_code == 200

    rows = await _audit_rows(session_factory)
    assert len(rows) == 1
    row = rows[0]
    assert row.tenant_slug == "acme"
    assert row.user_email == "jo@acme.io"
    assert row.role == "org_admin"
    assert row.method == "GET"
    assert row.path == "/api/v1/projects"
    assert row.status_code == 200
    assert row.latency_ms >= 0


@pytest.mark.asyncio
async def test_every_authenticated_request_gets_one_row(client, session_factory, acme):
    for _ in range(3):
        await client.get("/api/v1/forum", headers=acme["headers"])
    await client.get("/api/v1/projects/999", headers=acme["headers"])

    rows = await _audit_rows(session_factory)
    assert [r.status_code for r in rows] == [200, 200, 200, 404]


@pytest.mark.asyncio
async def test_open_routes_are_not_audited(client, session_factory, register_org):
    """Registration, login and health checks carry no tenant context."""
    await register_org("initech")
    await client.post(
        "/api/v1/auth/login",
        json={"email": "admin@initech.io", "password": "secret1"},
    )
    await client.get("/api/v1/health")
    await client.get("/health")

    assert await _audit_rows(session_factory) == []


@pytest.mark.asyncio
async def test_rejected_tokens_are_not_audited(client, session_factory):
    await client.get("/api/v1/projects")
    await client.get("/api/v1/projects", headers={"Authorization": "Bearer not-a-jwt"})
    await client.get("/api/v1/projects", headers={"Authorization": "Basic abc"})

    assert await _audit_rows(session_factory) == []


@pytest.mark.asyncio
async def test_role_rejection_is_audited(client, session_factory, acme):
    """The token was valid, so a 403 from the role gate is still recorded."""
    r = await client.get("/api/v1/system/tenants", headers=acme["headers"])
    assert r.status_code == 403

    rows = await _audit_rows(session_factory)
    assert len(rows) == 1
    assert rows[0].status_code == 403
    assert rows[0].path == "/api/v1/system/tenants"


@pytest.mark.asyncio
async def test_unhandled_error_is_audited_as_500(app, session_factory, monkeypatch, acme):
    """A handler that blows up still leaves a row, and the client still gets the 500 body."""

    async def failing_list(self):
        raise OperationalError("SELECT projects", {}, Exception("disk I/O error"))

    monkeypatch.setattr(ProjectService, "list_projects", failing_list)

    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        r = await ac.get("/api/v1/projects", headers=acme["headers"])

    assert r.status_code == 500
    assert r.json() == {"error": "internal error"}

    rows = await _audit_rows(session_factory)
    assert len(rows) == 1
    assert rows[0].status_code == 500
    assert rows[0].path == "/api/v1/projects"
    assert rows[0].tenant_slug == "acme"


class _BrokenSession:
    async def __aenter__(self):
        raise RuntimeError("database is gone")

    async def __aexit__(self, *exc):
        return False


@pytest.mark.asyncio
async def test_audit_failure_never_reaches_client(session_factory, mailer, acme):
    """A failing audit insert is logged; the handler's response goes out."""
    app = create_app(
        session_factory=lambda: _BrokenSession(),
        mailer=mailer,
        run_bootstrap=False,
    )

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        r = await ac.get("/api/v1/projects", headers=acme["headers"])

    assert r.status_code == 200
    assert r.json() == {"items": []}

    async with session_factory() as session:
        assert await session.scalar(select(func.count(SystemLog.id))) == 0
