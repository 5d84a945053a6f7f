"""
Drafts + integrations API, scope theo X-User-ID.
Connect/test integration: test_connection của adapter được patch, không gọi mạng.
"""
from unittest.mock import AsyncMock, patch

import pytest

from conftest import OTHER_USER_ID, auth
from crosswrite.services.draft_service import make_preview
from crosswrite.services.platforms.base import ConnectionResult
from crosswrite.services.platforms.devto import DevtoClient


def test_make_preview_strips_markdown() -> None:
    assert make_preview("# Title\n\n**bold**   text") == "Title bold text"
    long_preview = make_preview("word " * 100)
    assert len(long_preview) == 200
    assert long_preview.endswith("...")


@pytest.mark.asyncio
async def test_draft_crud(client, db_schema) -> None:
    created = await client.post(
        "/api/drafts",
        json={"title": "Hello Cross Write", "content": "# Hi\n\nFirst post", "tags": ["python"]},
        headers=auth(),
    )
    assert created.status_code == 201, created.text
    draft = created.json()["data"]
    assert draft["status"] == "draft"
    assert draft["content_preview"] == "Hi First post"
    draft_id = draft["id"]

    listed = await client.get("/api/drafts", params={"search": "cross"}, headers=auth())
    assert listed.status_code == 200
    assert listed.json()["data"]["total"] == 1

    patched = await client.patch(f"/api/drafts/{draft_id}", json={"title": "Hello again"}, headers=auth())
    assert patched.status_code == 200
    assert patched.json()["data"]["title"] == "Hello again"

    hidden = await client.get(f"/api/drafts/{draft_id}", headers=auth(OTHER_USER_ID))
    assert hidden.status_code == 404
    assert hidden.json() == {"success": False, "error": "Draft not found"}

    deleted = await client.delete(f"/api/drafts/{draft_id}", headers=auth())
    assert deleted.status_code == 200
    gone = await client.get(f"/api/drafts/{draft_id}", headers=auth())
    assert gone.status_code == 404


@pytest.mark.asyncio
async def test_draft_requires_title(client, db_schema) -> None:
    resp = await client.post("/api/drafts", json={"title": "", "content": "x"}, headers=auth())
    assert resp.status_code == 400
    assert resp.json()["success"] is False


@pytest.mark.asyncio
async def test_connect_and_recheck_integration(client, db_schema) -> None:
    ok = AsyncMock(return_value=ConnectionResult(success=True))
    with patch.object(DevtoClient, "test_connection", ok):
        created = await client.post(
            "/api/integrations",
            json={"platform": "devto", "api_key": "dev-key"},
            headers=auth(),
        )
        assert created.status_code == 201, created.text
        integration = created.json()["data"]
        assert integration["status"] == "connected"
        assert "api_key" not in integration

        dup = await client.post(
            "/api/integrations",
            json={"platform": "devto", "api_key": "dev-key"},
            headers=auth(),
        )
        assert dup.status_code == 409

    failing = AsyncMock(return_value=ConnectionResult(success=False, error="Authentication failed."))
    with patch.object(DevtoClient, "test_connection", failing):
        rechecked = await client.post(f"/api/integrations/{integration['id']}/test", headers=auth())
    assert rechecked.status_code == 200
    body = rechecked.json()["data"]
    assert body["success"] is False
    assert body["integration"]["status"] == "error"

    listed = await client.get("/api/integrations", headers=auth())
    assert [i["status"] for i in listed.json()["data"]] == ["error"]

    removed = await client.delete(f"/api/integrations/{integration['id']}", headers=auth())
    assert removed.status_code == 200
    assert (await client.get("/api/integrations", headers=auth())).json()["data"] == []


@pytest.mark.asyncio
async def test_connect_rejects_bad_credentials(client, db_schema) -> None:
    failing = AsyncMock(return_value=ConnectionResult(success=False, error="Authentication failed."))
    with patch.object(DevtoClient, "test_connection", failing):
        resp = await client.post(
            "/api/integrations",
            json={"platform": "devto", "api_key": "bad"},
            headers=auth(),
        )
    assert resp.status_code == 400
    assert resp.json()["error"] == "Authentication failed."

    unsupported = await client.post(
        "/api/integrations",
        json={"platform": "medium", "api_key": "k"},
        headers=auth(),
    )
    assert unsupported.status_code == 400
    assert unsupported.json()["error"] == "Unsupported platform"
