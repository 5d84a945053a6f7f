"""
Platform adapters (Dev.to, Hashnode, Beehiiv) qua httpx.MockTransport + mapper / helper.
asyncio.sleep của retry được patch để test không chờ.
"""
import json
import uuid
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from crosswrite.models import Draft
from crosswrite.services.platforms import create_platform_client
from crosswrite.services.platforms.base import (
    MappedContent,
    PlatformError,
    normalize_error,
    retry_with_backoff,
    sanitize_tags,
    truncate_text,
    validate_title,
)
from crosswrite.services.platforms.beehiiv import BeehiivClient
from crosswrite.services.platforms.devto import DevtoClient, normalize_devto_markdown
from crosswrite.services.platforms.hashnode import HashnodeClient
from crosswrite.services.platforms.mapper import MappingOptions, map_content_for_platform

NO_SLEEP = "crosswrite.services.platforms.base.asyncio.sleep"


def _content(**overrides) -> MappedContent:
    values = dict(title="Testing async Python", body="Hello **world**", tags=["python"])
    values.update(overrides)
    return MappedContent(**values)


def _draft(**overrides) -> Draft:
    values = dict(
        id=uuid.uuid4(),
        user_id="user-1",
        title="Testing async Python",
        content="---\ntitle: Old\nseries: async\n---\n\n# Body",
        tags=["Python", "Async IO", "web-dev", "tips", "extra"],
        thumbnail_url="https://img.example.com/cover.png",
    )
    values.update(overrides)
    return Draft(**values)


# --- helpers ---


def test_validate_title_limits() -> None:
    assert validate_title("Short", "hashnode") == "Title must be at least 6 characters long for Hashnode"
    assert validate_title("x" * 96, "devto") == "Title must be no more than 95 characters long for Dev.to"
    assert validate_title("Fine title", "beehiiv") is None
    assert validate_title("Fine title", "medium") == "Unsupported platform: medium"


def test_truncate_and_sanitize() -> None:
    assert truncate_text("abcdefghij", 8) == "abcde..."
    assert truncate_text("abc", 8) == "abc"
    assert sanitize_tags(["Python", "Async IO", "c++", "  ", "web-dev"], 3) == ["python", "asyncio", "c"]


def test_normalize_error_messages() -> None:
    assert normalize_error(Exception("Dev.to API error: 401 - bad key")).startswith("Authentication failed")
    assert normalize_error(Exception("429 Too Many Requests")).startswith("Rate limit exceeded")
    assert normalize_error(Exception("network timeout")).startswith("Network error")
    assert normalize_error(Exception("weird")) == "An unexpected error occurred. Please try again."


def test_normalize_devto_markdown_keeps_custom_front_matter() -> None:
    md = "---\ntitle: Ignored\nseries: async\n---\n\nBody"
    out = normalize_devto_markdown(md, publish_as_draft=True)
    assert out == "---\nseries: async\npublished: false\n---\n\nBody"
    assert normalize_devto_markdown("Plain", False) == "---\npublished: true\n---\n\nPlain"


def test_map_content_for_devto() -> None:
    draft = _draft()
    mapped = map_content_for_platform(
        draft,
        "devto",
        MappingOptions(publish_as_draft=True, set_as_canonical=True),
        "https://crosswrite.example.com/",
    )
    assert mapped.body == "# Body"
    assert mapped.tags == ["python", "asyncio", "web-dev", "tips"]
    assert mapped.canonical_url == f"https://crosswrite.example.com/drafts/{draft.id}"
    assert mapped.cover_url == "https://img.example.com/cover.png"
    assert mapped.publish_as_draft is True


def test_map_content_beehiiv_keeps_body_and_truncates_title() -> None:
    draft = _draft(title="t" * 200)
    mapped = map_content_for_platform(draft, "beehiiv", MappingOptions(), "https://app")
    assert len(mapped.title) == 150
    assert mapped.title.endswith("...")
    assert mapped.body.startswith("---")
    assert mapped.canonical_url is None


def test_factory_requires_api_key() -> None:
    with pytest.raises(ValueError, match="Dev.to integration requires API key"):
        create_platform_client("devto", None)
    with pytest.raises(ValueError, match="Unsupported platform: medium"):
        create_platform_client("medium", "k")
    assert isinstance(create_platform_client("hashnode", "k", "pub"), HashnodeClient)


@pytest.mark.asyncio
async def test_adapters_use_configured_http_timeout(settings, monkeypatch) -> None:
    monkeypatch.setattr(settings, "http_timeout_seconds", 2.0)
    for platform in ("devto", "hashnode", "beehiiv"):
        assert create_platform_client(platform, "k", "pub").timeout == 2.0

    async with DevtoClient("k")._client() as client:
        assert client.timeout == httpx.Timeout(2.0)
    assert BeehiivClient("k", timeout=5.0).timeout == 5.0


@pytest.mark.asyncio
async def test_retry_with_backoff_recovers() -> None:
    attempts = []

    async def flaky():
        attempts.append(1)
        if len(attempts) < 2:
            raise PlatformError("temporary")
        return "ok"

    with patch(NO_SLEEP, new=AsyncMock()) as sleep:
        assert await retry_with_backoff(flaky) == "ok"
    assert len(attempts) == 2
    sleep.assert_awaited_once_with(1.0)


@pytest.mark.asyncio
async def test_retry_with_backoff_gives_up() -> None:
    async def always_fails():
        raise PlatformError("down")

    with patch(NO_SLEEP, new=AsyncMock()) as sleep:
        with pytest.raises(PlatformError, match="down"):
            await retry_with_backoff(always_fails)
    assert sleep.await_count == 2


# --- Dev.to ---


@pytest.mark.asyncio
async def test_devto_publish() -> None:
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["api_key"] = request.headers["api-key"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(201, json={"id": 42, "url": "https://dev.to/me/testing-async-python-42"})

    client = DevtoClient("dev-key", transport=httpx.MockTransport(handler))
    result = await client.publish(_content(canonical_url="https://app/drafts/1"))

    assert result.platform_post_id == "42"
    assert result.platform_url == "https://dev.to/me/testing-async-python-42"
    assert seen["path"] == "/api/articles"
    assert seen["api_key"] == "dev-key"
    article = seen["body"]["article"]
    assert article["published"] is True
    assert article["canonical_url"] == "https://app/drafts/1"
    assert article["body_markdown"].startswith("---\npublished: true\n---")


@pytest.mark.asyncio
async def test_devto_publish_requires_body() -> None:
    client = DevtoClient("dev-key", transport=httpx.MockTransport(lambda r: httpx.Response(500)))
    with pytest.raises(PlatformError, match="Body content is required"):
        await client.publish(_content(body="   "))


@pytest.mark.asyncio
async def test_devto_publish_error_after_retries() -> None:
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(422, text="title has already been used")

    client = DevtoClient("dev-key", transport=httpx.MockTransport(handler))
    with patch(NO_SLEEP, new=AsyncMock()):
        with pytest.raises(PlatformError, match="Dev.to API error: 422"):
            await client.publish(_content())
    assert len(calls) == 3


@pytest.mark.asyncio
async def test_devto_test_connection_unauthorized() -> None:
    client = DevtoClient("bad", transport=httpx.MockTransport(lambda r: httpx.Response(401, text="unauthorized")))
    result = await client.test_connection()
    assert result.success is False
    assert result.error == "Authentication failed. Please check your credentials."


# --- Hashnode ---


@pytest.mark.asyncio
async def test_hashnode_publish() -> None:
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={
            "data": {
                "createStory": {
                    "code": 200,
                    "success": True,
                    "message": "ok",
                    "story": {"_id": "abc", "slug": "testing-async", "publication": {"domain": "blog.example.com"}},
                }
            }
        })

    client = HashnodeClient("hn-key", publication_id="pub-1", transport=httpx.MockTransport(handler))
    result = await client.publish(_content())

    assert result.platform_post_id == "abc"
    assert result.platform_url == "https://blog.example.com/testing-async"
    assert seen["auth"] == "hn-key"
    variables = seen["body"]["variables"]["input"]
    assert variables["publicationId"] == "pub-1"
    assert variables["isActive"] is True


@pytest.mark.asyncio
async def test_hashnode_requires_publication() -> None:
    client = HashnodeClient("hn-key", transport=httpx.MockTransport(lambda r: httpx.Response(200, json={})))
    with pytest.raises(PlatformError, match="Publication ID is required for Hashnode publishing"):
        await client.publish(_content())


@pytest.mark.asyncio
async def test_hashnode_graphql_errors() -> None:
    transport = httpx.MockTransport(lambda r: httpx.Response(200, json={"errors": [{"message": "Invalid token"}]}))
    client = HashnodeClient("hn-key", transport=transport)
    result = await client.test_connection()
    assert result.success is False
    assert result.error.startswith("Authentication failed")


# --- Beehiiv ---


@pytest.mark.asyncio
async def test_beehiiv_connection_picks_first_publication() -> None:
    transport = httpx.MockTransport(
        lambda r: httpx.Response(200, json={"data": [{"id": "pub_first"}, {"id": "pub_second"}]})
    )
    client = BeehiivClient("bh-key", transport=transport)
    result = await client.test_connection()
    assert result.success is True
    assert client.publication_id == "pub_first"


@pytest.mark.asyncio
async def test_beehiiv_invalid_key() -> None:
    client = BeehiivClient("bad", transport=httpx.MockTransport(lambda r: httpx.Response(401)))
    result = await client.test_connection()
    assert result.success is False
    assert result.error == "Invalid API key. Please check your Beehiiv API credentials."


@pytest.mark.asyncio
async def test_beehiiv_publish_as_draft() -> None:
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        return httpx.Response(201, json={"data": {"id": "post_9"}})

    client = BeehiivClient("bh-key", publication_id="pub_1", transport=httpx.MockTransport(handler))
    result = await client.publish(_content(publish_as_draft=True))

    assert seen["path"] == "/v2/publications/pub_1/posts"
    assert seen["body"]["status"] == "draft"
    assert result.platform_url == "https://app.beehiiv.com/posts/post_9"
