"""
Publish dispatcher: mỗi platform độc lập, lỗi của một platform không chặn platform khác.
Adapter được thay bằng fake client qua client_factory.
"""
from typing import Dict, List, Optional

import pytest
from sqlalchemy import select

from conftest import OTHER_USER_ID, USER_ID, auth, make_draft, make_integration
from crosswrite.models import Draft, PlatformPost, UserUsage
from crosswrite.services.platforms.base import MappedContent, PlatformError, PublishedPost
from crosswrite.services.publish_service import PublishOptions, publish_to_platforms


class FakeClient:
    def __init__(self, platform: str, calls: List[MappedContent], fail: Optional[str] = None) -> None:
        self.platform = platform
        self.calls = calls
        self.fail = fail

    async def publish(self, content: MappedContent) -> PublishedPost:
        self.calls.append(content)
        if self.fail:
            raise PlatformError(self.fail)
        return PublishedPost(
            platform_post_id=f"{self.platform}-1",
            platform_url=f"https://{self.platform}.example.com/post-1",
        )


def fake_factory(calls: List[MappedContent], failures: Optional[Dict[str, str]] = None):
    failures = failures or {}

    def factory(platform, api_key, publication_id):
        return FakeClient(platform, calls, failures.get(platform))

    return factory


@pytest.mark.asyncio
async def test_one_success_one_missing_publication(session) -> None:
    draft = await make_draft(session, tags=["Python", "fast api"])
    await make_integration(session, "devto")
    await make_integration(session, "hashnode", publication_id=None)

    calls: List[MappedContent] = []
    result = await publish_to_platforms(
        session,
        USER_ID,
        draft.id,
        ["devto", "hashnode"],
        client_factory=fake_factory(calls),
    )
    await session.commit()

    assert result["summary"] == {"total": 2, "successful": 1, "failed": 1, "draft_id": str(draft.id)}
    devto, hashnode = result["results"]
    assert devto["success"] is True
    assert devto["platform_post_id"] == "devto-1"
    assert hashnode["success"] is False
    assert hashnode["error"] == "Publication ID is required for Hashnode publishing"
    assert len(calls) == 1
    assert calls[0].tags == ["python", "fastapi"]

    rows = (await session.execute(select(PlatformPost).where(PlatformPost.draft_id == draft.id))).scalars().all()
    assert sorted((r.platform, r.status) for r in rows) == [("devto", "success"), ("hashnode", "failed")]

    refreshed = await session.get(Draft, draft.id)
    assert refreshed.status == "published"
    assert refreshed.published_at is not None


@pytest.mark.asyncio
async def test_publication_override_satisfies_requirement(session) -> None:
    draft = await make_draft(session)
    await make_integration(session, "hashnode", publication_id=None)

    calls: List[MappedContent] = []
    result = await publish_to_platforms(
        session,
        USER_ID,
        draft.id,
        ["hashnode"],
        PublishOptions(publication_id="pub-override"),
        client_factory=fake_factory(calls),
    )
    assert result["summary"]["successful"] == 1
    assert calls[0].publication_id == "pub-override"


@pytest.mark.asyncio
async def test_not_connected_and_unsupported_are_per_platform_errors(session) -> None:
    draft = await make_draft(session)
    result = await publish_to_platforms(
        session,
        USER_ID,
        draft.id,
        ["beehiiv", "medium"],
        client_factory=fake_factory([]),
    )
    await session.commit()

    errors = [r["error"] for r in result["results"]]
    assert errors == [
        "Not connected to: beehiiv. Please connect this platform first.",
        "Unsupported platform: medium",
    ]
    assert result["summary"]["successful"] == 0
    assert (await session.get(Draft, draft.id)).status == "draft"


@pytest.mark.asyncio
async def test_adapter_failure_does_not_stop_other_platforms(session) -> None:
    draft = await make_draft(session)
    await make_integration(session, "devto")
    await make_integration(session, "beehiiv", publication_id="pub-1")

    calls: List[MappedContent] = []
    result = await publish_to_platforms(
        session,
        USER_ID,
        draft.id,
        ["devto", "beehiiv"],
        client_factory=fake_factory(calls, {"devto": "Dev.to API error: 500 - boom"}),
    )
    assert [r["success"] for r in result["results"]] == [False, True]
    assert result["results"][0]["error"] == "Dev.to API error: 500 - boom"
    assert len(calls) == 2


@pytest.mark.asyncio
async def test_title_too_short_for_hashnode(session) -> None:
    draft = await make_draft(session, title="Tiny")
    await make_integration(session, "hashnode", publication_id="pub-1")
    result = await publish_to_platforms(session, USER_ID, draft.id, ["hashnode"], client_factory=fake_factory([]))
    assert result["results"][0]["error"] == "Title must be at least 6 characters long for Hashnode"


@pytest.mark.asyncio
async def test_platform_rate_limit(session, settings, monkeypatch) -> None:
    monkeypatch.setattr(settings, "platform_rate_limit_per_min", 1)
    draft = await make_draft(session)
    await make_integration(session, "devto")
    factory = fake_factory([])

    first = await publish_to_platforms(session, USER_ID, draft.id, ["devto"], client_factory=factory)
    second = await publish_to_platforms(session, USER_ID, draft.id, ["devto"], client_factory=factory)
    assert first["results"][0]["success"] is True
    assert second["results"][0]["error"] == "Rate limit exceeded for devto. Please try again later."


@pytest.mark.asyncio
async def test_draft_of_other_user_is_not_found(session) -> None:
    draft = await make_draft(session, user_id=OTHER_USER_ID)
    with pytest.raises(ValueError, match="draft_not_found"):
        await publish_to_platforms(session, USER_ID, draft.id, ["devto"], client_factory=fake_factory([]))
    with pytest.raises(ValueError, match="platforms_required"):
        await publish_to_platforms(session, USER_ID, draft.id, [], client_factory=fake_factory([]))


@pytest.mark.asyncio
async def test_publish_route_counts_article_usage(client, session) -> None:
    """Không có integration => 200 với lỗi từng platform; articles_published vẫn +1."""
    draft = await make_draft(session)
    resp = await client.post(
        "/api/publish",
        json={"draft_id": str(draft.id), "platforms": ["devto"]},
        headers=auth(),
    )
    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["success"] is True
    assert body["data"]["summary"]["failed"] == 1
    assert body["data"]["results"][0]["error"].startswith("Not connected to: devto")

    row = (await session.execute(select(UserUsage).where(UserUsage.user_id == USER_ID))).scalar_one()
    assert row.articles_published == 1


@pytest.mark.asyncio
async def test_publish_route_requires_platforms(client, session) -> None:
    draft = await make_draft(session)
    resp = await client.post("/api/publish", json={"draft_id": str(draft.id), "platforms": []}, headers=auth())
    assert resp.status_code == 400
    assert resp.json()["success"] is False
