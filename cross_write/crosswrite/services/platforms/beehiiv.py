"""Beehiiv adapter: REST v2, Bearer auth. Post tạo dưới /publications/{id}/posts."""
from typing import Optional

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
)

logger = get_logger(__name__)

BEEHIIV_BASE = "https://api.beehiiv.com/v2"


class BeehiivClient:
    def __init__(
        self,
        api_key: str,
        publication_id: Optional[str] = None,
        base_url: str = BEEHIIV_BASE,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: Optional[float] = None,
    ) -> None:
        self.api_key = api_key
        self.publication_id = publication_id
        self.base_url = base_url
        self._transport = transport
        self.timeout = timeout if timeout is not None else get_settings().http_timeout_seconds

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.timeout,
            transport=self._transport,
            headers={"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"},
        )

    async def test_connection(self) -> ConnectionResult:
        try:
            async with self._client() as client:
                resp = await client.get(f"{self.base_url}/publications")
            if resp.status_code == 401:
                return ConnectionResult(
                    success=False,
                    error="Invalid API key. Please check your Beehiiv API credentials.",
                )
            if resp.status_code >= 400:
                raise error_from_response("Beehiiv", resp)
            pubs = resp.json().get("data") or []
            # Chưa chọn publication thì lấy cái đầu tiên.
            if not self.publication_id and pubs:
                self.publication_id = pubs[0].get("id")
            return ConnectionResult(success=True)
        except (PlatformError, httpx.HTTPError) as e:
            logger.warning("beehiiv.test_connection_failed", error=str(e))
            return ConnectionResult(success=False, error=normalize_error(e))

    async def publish(self, content: MappedContent) -> PublishedPost:
        publication_id = content.publication_id or self.publication_id
        if not publication_id:
            raise PlatformError("Publication ID is required for Beehiiv publishing")

        payload = {
            "title": content.title,
            "subtitle": content.title,
            "body_html": content.body,
            "status": "draft" if content.publish_as_draft else "published",
            "seo_title": content.title,
            "seo_description": content.title,
            "featured_image_url": content.cover_url,
            "canonical_url": content.canonical_url,
        }

        async def _post() -> PublishedPost:
            async with self._client() as client:
                resp = await client.post(f"{self.base_url}/publications/{publication_id}/posts", json=payload)
            if resp.status_code >= 400:
                raise error_from_response("Beehiiv", resp)
            data = resp.json()["data"]
            post_id = str(data["id"])
            return PublishedPost(
                platform_post_id=post_id,
                platform_url=data.get("url") or f"https://app.beehiiv.com/posts/{post_id}",
            )

        result = await retry_with_backoff(_post)
        logger.info("beehiiv.published", platform_post_id=result.platform_post_id)
        return result
