"""
POST /api/ai/thumbnail và POST /api/ai/text.
Thumbnail: credential từ client => 400, IP rate limit => 429, plan check, usage trả về +1.
Text: provider được patch; lỗi provider => 503 envelope.
"""
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from sqlalchemy import select

from conftest import USER_ID, auth
from crosswrite.models import UserUsage
from crosswrite.services.ai_provider import AIServiceUnavailableError

THUMBNAIL = "/api/ai/thumbnail"


@pytest.mark.asyncio
async def test_thumbnail_rejects_client_credentials(client) -> None:
    resp = await client.post(THUMBNAIL, json={"prompt": "x", "planId": "free", "byokKey": "sk-123"})
    assert resp.status_code == 400
    assert resp.json()["error"] == "API keys must not be sent by the client"


@pytest.mark.asyncio
async def test_thumbnail_free_plan_returns_images(client) -> None:
    resp = await client.post(
        THUMBNAIL,
        json={"prompt": "cover for a python post", "planId": "free", "usage": {"thumbnailsThisMonth": 1}},
    )
    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["success"] is True
    assert len(body["images"]) == 4
    assert body["usage"] == {"thumbnailsThisMonth": 2, "limit": 3}
    assert resp.headers["X-RateLimit-Remaining"] == "9"


@pytest.mark.asyncio
async def test_thumbnail_plan_checks(client) -> None:
    over = await client.post(THUMBNAIL, json={"planId": "free", "usage": {"thumbnailsThisMonth": 3}})
    assert over.status_code == 429
    assert over.json()["error"] == "Monthly thumbnail generation limit reached"

    self_hosted = await client.post(THUMBNAIL, json={"planId": "self_hosted"})
    assert self_hosted.status_code == 403

    unknown = await client.post(THUMBNAIL, json={"planId": "platinum"})
    assert unknown.status_code == 400
    assert unknown.json()["error"] == "Invalid plan"

    pro_upper = await client.post(THUMBNAIL, json={"planId": "PRO"})
    assert pro_upper.status_code == 200


@pytest.mark.asyncio
async def test_thumbnail_ip_rate_limit(client) -> None:
    headers = {"X-Forwarded-For": "203.0.113.7, 10.0.0.1"}
    for _ in range(10):
        ok = await client.post(THUMBNAIL, json={"planId": "pro"}, headers=headers)
        assert ok.status_code == 200
    limited = await client.post(THUMBNAIL, json={"planId": "pro"}, headers=headers)
    assert limited.status_code == 429
    assert limited.headers["X-RateLimit-Remaining"] == "0"
    assert "X-RateLimit-Reset" in limited.headers

    other_ip = await client.post(THUMBNAIL, json={"planId": "pro"}, headers={"X-Forwarded-For": "198.51.100.2"})
    assert other_ip.status_code == 200


@pytest.mark.asyncio
async def test_ai_text_success_counts_suggestion(client, session) -> None:
    provider = MagicMock()
    provider.call_text_model = AsyncMock(return_value="Shorter title")
    with patch("crosswrite.routers.ai_router.get_ai_provider", return_value=provider):
        resp = await client.post(
            "/api/ai/text",
            json={"purpose": "seo", "text": "A very long title about FastAPI"},
            headers=auth(),
        )
    assert resp.status_code == 200, resp.text
    data = resp.json()["data"]
    assert data["text"] == "Shorter title"
    assert data["usage"]["current"] == 1
    provider.call_text_model.assert_awaited_once()
    assert provider.call_text_model.call_args.kwargs["caller_id"] == USER_ID

    row = (await session.execute(select(UserUsage).where(UserUsage.user_id == USER_ID))).scalar_one()
    assert row.ai_suggestions_used == 1


@pytest.mark.asyncio
async def test_ai_text_provider_failure_is_503(client, db_schema) -> None:
    provider = MagicMock()
    provider.call_text_model = AsyncMock(side_effect=AIServiceUnavailableError())
    with patch("crosswrite.routers.ai_router.get_ai_provider", return_value=provider):
        resp = await client.post("/api/ai/text", json={"purpose": "improve", "text": "hello"}, headers=auth())
    assert resp.status_code == 503
    assert resp.json() == {"success": False, "error": "AI service is temporarily unavailable"}


@pytest.mark.asyncio
async def test_ai_text_disabled_for_self_hosted(client, db_schema, settings, monkeypatch) -> None:
    monkeypatch.setattr(settings, "deployment_mode", "SELF_HOST")
    resp = await client.post("/api/ai/text", json={"purpose": "improve", "text": "hello"}, headers=auth())
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_ai_text_requires_user(client, db_schema) -> None:
    resp = await client.post("/api/ai/text", json={"purpose": "improve", "text": "hello"})
    assert resp.status_code == 401
