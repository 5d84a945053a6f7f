"""Hashnode adapter: GraphQL (header Authorization = api key). Publish cần publication id."""
from typing import Any, Dict, Optional

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

HASHNODE_BASE = "https://api.hashnode.com"
PUBLICATION_REQUIRED = "Publication ID is required for Hashnode publishing"

ME_QUERY = """
query {
  me {
    id
    username
    publications { _id title domain }
  }
}
"""

CREATE_STORY_MUTATION = """
mutation CreateStory($input: CreateStoryInput!) {
  createStory(input: $input) {
    code
    success
    message
    story {
      _id
      slug
      publication { domain }
    }
  }
}
"""


class HashnodeClient:
    def __init__(
        self,
        api_key: str,
        publication_id: Optional[str] = None,
        base_url: str = HASHNODE_BASE,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: Optional[float] = None,
    ) -> None:
        self.api_key = api_key
        self.publication_id = publication_id
        self.base_url = base_url
        self._transport = transport
        self.timeout = timeout if timeout is not None else get_settings().http_timeout_seconds

    async def _graphql(self, query: str, variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        body: Dict[str, Any] = {"query": query}
        if variables is not None:
            body["variables"] = variables
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            resp = await client.post(
                self.base_url,
                json=body,
                headers={"Authorization": self.api_key, "Content-Type": "application/json"},
            )
        if resp.status_code >= 400:
            raise error_from_response("Hashnode", resp)
        data = resp.json()
        if data.get("errors"):
            raise PlatformError(data["errors"][0].get("message") or "Hashnode GraphQL error")
        return data.get("data") or {}

    async def test_connection(self) -> ConnectionResult:
        try:
            await self._graphql(ME_QUERY)
            return ConnectionResult(success=True)
        except (PlatformError, httpx.HTTPError) as e:
            logger.warning("hashnode.test_connection_failed", error=str(e))
            return ConnectionResult(success=False, error=normalize_error(e))

    async def publish(self, content: MappedContent) -> PublishedPost:
        publication_id = content.publication_id or self.publication_id
        if not publication_id:
            raise PlatformError(PUBLICATION_REQUIRED)

        variables = {
            "input": {
                "title": content.title,
                "contentMarkdown": content.body,
                "tags": [{"_id": t, "slug": t, "name": t} for t in content.tags],
                "coverImageURL": content.cover_url,
                "isRepublished": False,
                "isActive": not content.publish_as_draft,
                "publicationId": publication_id,
            }
        }

        async def _create() -> PublishedPost:
            data = await self._graphql(CREATE_STORY_MUTATION, variables)
            created = data.get("createStory") or {}
            if not created.get("success"):
                raise PlatformError(created.get("message") or "Hashnode createStory failed")
            story = created["story"]
            domain = (story.get("publication") or {}).get("domain") or "hashnode.com"
            return PublishedPost(
                platform_post_id=str(story["_id"]),
                platform_url=f"https://{domain}/{story['slug']}",
            )

        result = await retry_with_backoff(_create)
        logger.info("hashnode.published", platform_post_id=result.platform_post_id)
        return result
