"""Project CRUD tests — including tenant isolation and due-date math."""

import pytest
from sqlalchemy import select

from pulseforge.db.models import Issue, Task


def _project(**overrides) -> dict:
    body = {
        "name": "Launch",
        "start_date": "2030-01-10",
        "duration_days": 5,
        "team_size": 3,
        "assignees": ["jo@acme.io", "  ", "sam@acme.io "],
    }
    body.update(overrides)
    return body


async def _create(client, headers, **overrides) -> dict:
    r = await client.post("/api/v1/projects", json=_project(**overrides), headers=headers)
    assert r.status_code == 201, r.text
    return r.json()


# ═══════════════════════════════════════════════════════════
# Create / read
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_create_project(client, acme):
    project = await _create(client, acme["headers"])
    assert project["tenant_id"] == "acme"
    assert project["name"] == "Launch"
    assert project["status"] == "active"
    assert project["assignees"] == ["jo@acme.io", "sam@acme.io"]
    assert project["start_date"] == "2030-01-10"
    assert project["due_date"] == "2030-01-14"


@pytest.mark.asyncio
async def test_one_day_project_ends_on_start_date(client, acme):
    project = await _create(client, acme["headers"], duration_days=1)
    assert project["due_date"] == project["start_date"]


@pytest.mark.asyncio
async def test_create_project_queues_mail(client, acme, mail_queue):
    before = mail_queue.pending
    await _create(client, acme["headers"])
    assert mail_queue.pending == before + 1


@pytest.mark.asyncio
async def test_create_project_bad_start_date(client, acme):
    r = await client.post(
        "/api/v1/projects", json=_project(start_date="10/01/2030"), headers=acme["headers"]
    )
    assert r.status_code == 400
    assert r.json()["error"] == "start_date must be YYYY-MM-DD"


@pytest.mark.asyncio
async def test_create_project_validates_ranges(client, acme):
    r = await client.post("/api/v1/projects", json=_project(duration_days=0), headers=acme["headers"])
    assert r.status_code == 400
    r = await client.post("/api/v1/projects", json=_project(team_size=10001), headers=acme["headers"])
    assert r.status_code == 400
    r = await client.post("/api/v1/projects", json=_project(name="  "), headers=acme["headers"])
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_list_projects_newest_first(client, acme):
    first = await _create(client, acme["headers"], name="First")
    second = await _create(client, acme["headers"], name="Second")

    r = await client.get("/api/v1/projects", headers=acme["headers"])
    assert r.status_code == 200
    assert [p["id"] for p in r.json()["items"]] == [second["id"], first["id"]]


@pytest.mark.asyncio
async def test_get_project(client, acme):
    project = await _create(client, acme["headers"])
    r = await client.get(f"/api/v1/projects/{project['id']}", headers=acme["headers"])
    assert r.status_code == 200
    assert r.json()["name"] == "Launch"


@pytest.mark.asyncio
async def test_projects_require_token(client):
    r = await client.get("/api/v1/projects")
    assert r.status_code == 400


# ═══════════════════════════════════════════════════════════
# Update / delete
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_patch_project_recomputes_due_date(client, acme):
    project = await _create(client, acme["headers"])

    r = await client.patch(
        f"/api/v1/projects/{project['id']}",
        json={"duration_days": 10, "status": "paused"},
        headers=acme["headers"],
    )
    assert r.status_code == 200
    data = r.json()
    assert data["status"] == "paused"
    assert data["due_date"] == "2030-01-19"
    assert data["name"] == "Launch"

    r = await client.patch(
        f"/api/v1/projects/{project['id']}",
        json={"start_date": "2030-02-01"},
        headers=acme["headers"],
    )
    assert r.json()["due_date"] == "2030-02-10"


@pytest.mark.asyncio
async def test_delete_project_removes_tasks_and_detaches_issues(client, db_session, acme):
    project = await _create(client, acme["headers"])
    r = await client.post(
        "/api/v1/tasks", json={"project_id": project["id"], "title": "Write copy"}, headers=acme["headers"]
    )
    assert r.status_code == 201
    r = await client.post(
        "/api/v1/issues",
        json={"project_id": project["id"], "title": "Typo", "description": "on the banner"},
        headers=acme["headers"],
    )
    assert r.status_code == 201
    issue_id = r.json()["id"]

    r = await client.delete(f"/api/v1/projects/{project['id']}", headers=acme["headers"])
    assert r.status_code == 204

    r = await client.get(f"/api/v1/projects/{project['id']}", headers=acme["headers"])
    assert r.status_code == 404
    assert (await db_session.execute(select(Task))).scalars().all() == []
    issue = await db_session.get(Issue, issue_id)
    assert issue is not None
    assert issue.project_id is None


# ═══════════════════════════════════════════════════════════
# Tenant isolation
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_other_tenant_cannot_see_or_touch_projects(client, acme, globex):
    project = await _create(client, acme["headers"])
    url = f"/api/v1/projects/{project['id']}"

    r = await client.get("/api/v1/projects", headers=globex["headers"])
    assert r.json() == {"items": []}

    r = await client.get(url, headers=globex["headers"])
    assert r.status_code == 404
    assert r.json()["error"] == "project not found"

    r = await client.patch(url, json={"name": "Hijacked"}, headers=globex["headers"])
    assert r.status_code == 404

    r = await client.delete(url, headers=globex["headers"])
    assert r.status_code == 404

    r = await client.get(url, headers=acme["headers"])
    assert r.json()["name"] == "Launch"
