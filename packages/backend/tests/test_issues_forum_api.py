"""Issue and forum tests."""

import pytest


async def _project(client, headers) -> int:
    r = await client.post(
        "/api/v1/projects",
        json={"name": "Launch", "start_date": "2030-01-10", "duration_days": 5, "team_size": 2},
        headers=headers,
    )
    return r.json()["id"]


# ═══════════════════════════════════════════════════════════
# Issues
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_create_issue_without_project(client, acme):
    r = await client.post(
        "/api/v1/issues",
        json={"title": "Login slow", "description": "takes 5s"},
        headers=acme["headers"],
    )
    assert r.status_code == 201
    issue = r.json()
    assert issue["tenant_id"] == "acme"
    assert issue["project_id"] is None
    assert issue["project_name"] == ""
    assert issue["severity"] == "medium"
    assert issue["status"] == "open"
    assert issue["created_by_email"] == "jo@acme.io"


@pytest.mark.asyncio
async def test_create_issue_for_project(client, acme):
    project_id = await _project(client, acme["headers"])
    r = await client.post(
        "/api/v1/issues",
        json={"project_id": project_id, "title": "Typo", "description": "banner", "severity": "low"},
        headers=acme["headers"],
    )
    assert r.status_code == 201
    assert r.json()["project_name"] == "Launch"
    assert r.json()["severity"] == "low"

    r = await client.get("/api/v1/issues", headers=acme["headers"])
    [item] = r.json()["items"]
    assert item["project_name"] == "Launch"


@pytest.mark.asyncio
async def test_create_issue_for_other_tenants_project(client, acme, globex):
    project_id = await _project(client, acme["headers"])
    r = await client.post(
        "/api/v1/issues",
        json={"project_id": project_id, "title": "x", "description": "y"},
        headers=globex["headers"],
    )
    assert r.status_code == 404
    assert r.json()["error"] == "project not found for this tenant"


@pytest.mark.asyncio
async def test_create_issue_requires_description(client, acme):
    r = await client.post(
        "/api/v1/issues", json={"title": "x", "description": "   "}, headers=acme["headers"]
    )
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_patch_issue(client, acme, globex):
    r = await client.post(
        "/api/v1/issues", json={"title": "Crash", "description": "on save"}, headers=acme["headers"]
    )
    url = f"/api/v1/issues/{r.json()['id']}"

    r = await client.patch(url, json={"status": "closed"}, headers=globex["headers"])
    assert r.status_code == 404
    assert r.json()["error"] == "issue not found"

    r = await client.patch(url, json={"status": "closed", "severity": "high"}, headers=acme["headers"])
    assert r.status_code == 200
    assert r.json()["status"] == "closed"
    assert r.json()["severity"] == "high"


@pytest.mark.asyncio
async def test_issues_are_tenant_scoped(client, acme, globex):
    await client.post(
        "/api/v1/issues", json={"title": "Crash", "description": "on save"}, headers=acme["headers"]
    )
    r = await client.get("/api/v1/issues", headers=globex["headers"])
    assert r.json() == {"items": []}


# ═══════════════════════════════════════════════════════════
# Forum
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_forum_post_lifecycle(client, acme):
    r = await client.post(
        "/api/v1/forum", json={"title": "Hello", "body": "First post"}, headers=acme["headers"]
    )
    assert r.status_code == 201
    post = r.json()
    assert post["author_email"] == "jo@acme.io"
    assert post["tenant_id"] == "acme"

    r = await client.get("/api/v1/forum", headers=acme["headers"])
    assert [p["id"] for p in r.json()["items"]] == [post["id"]]

    r = await client.delete(f"/api/v1/forum/{post['id']}", headers=acme["headers"])
    assert r.status_code == 204

    r = await client.get("/api/v1/forum", headers=acme["headers"])
    assert r.json() == {"items": []}


@pytest.mark.asyncio
async def test_forum_is_tenant_scoped(client, acme, globex):
    r = await client.post(
        "/api/v1/forum", json={"title": "Hello", "body": "Acme only"}, headers=acme["headers"]
    )
    post_id = r.json()["id"]

    r = await client.get("/api/v1/forum", headers=globex["headers"])
    assert r.json() == {"items": []}

    r = await client.delete(f"/api/v1/forum/{post_id}", headers=globex["headers"])
    assert r.status_code == 404
    assert r.json()["error"] == "forum post not found"
