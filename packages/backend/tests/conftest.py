"""Test fixtures — a fresh SQLite database per test, bootstrapped for real.

Learn: Testing pattern for async SQLAlchemy + FastAPI:

1. Each test gets its own database file in tmp_path (aiosqlite driver).
2. The production schema bootstrapper builds it, so every test also
   exercises ensure_schema() against an empty database.
3. The app comes from create_app() with the test session factory,
   allow-list and mailer injected; get_db is overridden to hand out
   sessions from the same factory.
4. Outbound mail never leaves the process: the Mailer talks to an
   httpx.MockTransport that records every Brevo API call in an outbox.

httpx's ASGITransport does not run the lifespan, so the mail queue's
workers are not started in API tests. Submitted mail just sits in the
queue, where tests can count it.
"""

import json
from typing import Optional

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from pulseforge.config import Settings
from pulseforge.db.bootstrap import ensure_schema
from pulseforge.db.engine import get_db
from pulseforge.main import create_app
from pulseforge.notifications import Mailer, MailQueue

SYSTEM_ADMIN_EMAIL = "root@pulseforge.io"
SUPPORT_INBOX = "support@pulseforge.io"


def mail_settings(**overrides) -> Settings:
    values = {
        "brevo_api_key": "test-key",
        "mail_from": "noreply@pulseforge.io",
        "support_mail_to": SUPPORT_INBOX,
    }
    values.update(overrides)
    return Settings(**values)


class MailOutbox:
    """Records Brevo API calls. Set fail_status to make the provider refuse."""

    def __init__(self):
        self.sent: list[dict] = []
        self.headers: list[dict] = []
        self.fail_status: Optional[int] = None
        self.fail_for: set[str] = set()

    def handler(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        to = body["to"][0]["email"]
        if self.fail_status is not None or to in self.fail_for:
            return httpx.Response(self.fail_status or 500, json={"message": "rejected"})
        self.sent.append(body)
        self.headers.append(dict(request.headers))
        return httpx.Response(201, json={"messageId": f"<{len(self.sent)}@test>"})

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def to(self, email: str) -> list[dict]:
        return [m for m in self.sent if m["to"][0]["email"] == email]


# ═══════════════════════════════════════════════════════════
# Database
# ═══════════════════════════════════════════════════════════


@pytest_asyncio.fixture()
async def engine(tmp_path):
    """Per-test SQLite database, bootstrapped with the production routine."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await ensure_schema(engine)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest_asyncio.fixture()
async def db_session(session_factory):
    """Direct session for arranging rows and asserting on them."""
    async with session_factory() as session:
        yield session


# ═══════════════════════════════════════════════════════════
# Mail
# ═══════════════════════════════════════════════════════════


@pytest.fixture()
def outbox():
    return MailOutbox()


@pytest.fixture()
def mailer(outbox):
    return Mailer(mail_settings(), transport=outbox.transport)


@pytest.fixture()
def mail_queue(mailer):
    return MailQueue(mailer, maxsize=50)


# ═══════════════════════════════════════════════════════════
# App + clients
# ═══════════════════════════════════════════════════════════


@pytest.fixture()
def app(session_factory, mailer, mail_queue):
    app = create_app(
        session_factory=session_factory,
        system_admins=frozenset({SYSTEM_ADMIN_EMAIL}),
        mailer=mailer,
        mail_queue=mail_queue,
        run_bootstrap=False,
    )

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    yield app
    app.dependency_overrides.clear()


@pytest_asyncio.fixture()
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture()
def register_org(client):
    """Factory: register an organization and return {token, user, headers}."""

    async def _register(
        slug: str = "acme",
        name: Optional[str] = None,
        email: Optional[str] = None,
        password: str = "secret1",
        admin_name: str = "Jo",
    ) -> dict:
        r = await client.post(
            "/api/v1/auth/register",
            json={
                "tenant_slug": slug,
                "tenant_name": name or slug.replace("-", " ").title(),
                "name": admin_name,
                "email": email or f"admin@{slug}.io",
                "password": password,
            },
        )
        assert r.status_code == 201, r.text
        data = r.json()
        data["headers"] = {"Authorization": f"Bearer {data['token']}"}
        return data

    return _register


@pytest_asyncio.fixture()
async def acme(register_org):
    """Org admin of tenant `acme`."""
    return await register_org("acme", name="Acme", email="jo@acme.io")


@pytest_asyncio.fixture()
async def globex(register_org):
    """Org admin of a second tenant, for isolation checks."""
    return await register_org("globex", name="Globex", email="hank@globex.io")


@pytest_asyncio.fixture()
async def system_admin(client, register_org):
    """Allow-listed admin: registers as org_admin, promoted at login."""
    await register_org("pulseforge-hq", name="PulseForge HQ", email=SYSTEM_ADMIN_EMAIL)
    r = await client.post(
        "/api/v1/auth/login",
        json={"email": SYSTEM_ADMIN_EMAIL, "password": "secret1"},
    )
    assert r.status_code == 200, r.text
    data = r.json()
    assert data["user"]["role"] == "system_admin"
    data["headers"] = {"Authorization": f"Bearer {data['token']}"}
    return data
