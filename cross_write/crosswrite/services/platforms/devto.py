"""
Dev.to adapter: REST API, header api-key.
Publish: POST /articles với body_markdown; front matter chỉ giữ các key không trùng field article.
"""
from typing import Dict, Optional

import httpx

from crosswrite.config import get_settings
from crosswrite.logging_config import get_logger
from crosswrite.services.platforms.base import (
    ConnectionResult,
    MappedContent,
    PlatformError,
    PublishedPost,
    error_from_response,
    normalize_error,
    retry_with_backoff,
    validate_title,
)
from crosswrite.services.platforms.mapper import FRONT_MATTER_RE

logger = get_logger(__name__)

DEVTO_BASE = "https://dev.to/api"
DEVTO_MAX_TAGS = 4
# Các key này đi qua field article, bỏ khỏi front matter để không bị ghi đè.
RESERVED_FRONT_MATTER_KEYS = ("title", "tags", "canonical_url", "cover_image")


def normalize_devto_markdown(markdown: str, publish_as_draft: bool) -> str:
    front_matter: Dict[str, str] = {}
    content = markdown
    match = FRONT_MATTER_RE.match(markdown)
    if match:
        for line in match.group(1).splitlines():
            key, sep, value = line.partition(":")
            if sep and key.strip() and value.strip():
                front_matter[key.strip()] = value.strip()
        content = markdown[match.end():]

    front_matter["published"] = "false" if publish_as_draft else "true"
    for key in RESERVED_FRONT_MATTER_KEYS:
        front_matter.pop(key, None)

    lines = "\n".join(f"{k}: {v}" for k, v in front_matter.items())
    return f"---\n{lines}\n---\n\n{content.strip()}"


class DevtoClient:
    def __init__(
        self,
        api_key: str,
        base_url: str = DEVTO_BASE,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: Optional[float] = None,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url
        self._transport = transport
        self.timeout = timeout if timeout is not None else get_settings().http_timeout_seconds

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.timeout,
            transport=self._transport,
            headers={"api-key": self.api_key, "Content-Type": "application/json"},
        )

    async def test_connection(self) -> ConnectionResult:
        try:
            async with self._client() as client:
                resp = await client.get(f"{self.base_url}/users/me")
            if resp.status_code >= 400:
                raise error_from_response("Dev.to", resp)
            return ConnectionResult(success=True)
        except (PlatformError, httpx.HTTPError) as e:
            logger.warning("devto.test_connection_failed", error=str(e))
            return ConnectionResult(success=False, error=normalize_error(e))

    async def publish(self, content: MappedContent) -> PublishedPost:
        title_error = validate_title(content.title, "devto")
        if title_error:
            raise PlatformError(title_error)
        if not (content.body or "").strip():
            raise PlatformError("Body content is required for Dev.to publishing")

        payload = {
            "article": {
                "title": content.title.strip(),
                "body_markdown": normalize_devto_markdown(content.body, content.publish_as_draft),
                "tags": content.tags[:DEVTO_MAX_TAGS],
                "published": not content.publish_as_draft,
                "cover_image": content.cover_url,
                "canonical_url": content.canonical_url,
            }
        }

        async def _post() -> PublishedPost:
            async with self._client() as client:
                resp = await client.post(f"{self.base_url}/articles", json=payload)
            if resp.status_code >= 400:
                raise error_from_response("Dev.to", resp)
            data = resp.json()
            return PublishedPost(platform_post_id=str(data["id"]), platform_url=data.get("url") or "")

        result = await retry_with_backoff(_post)
        logger.info("devto.published", platform_post_id=result.platform_post_id, draft=content.publish_as_draft)
        return result
