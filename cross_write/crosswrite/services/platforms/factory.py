"""Tạo adapter từ credential của integration."""
from typing import Optional, Protocol

from crosswrite.services.platforms.base import (
    PLATFORM_BEEHIIV,
    PLATFORM_DEVTO,
    PLATFORM_HASHNODE,
    ConnectionResult,
    MappedContent,
    PublishedPost,
)
from crosswrite.services.platforms.beehiiv import BeehiivClient
from crosswrite.services.platforms.devto import DevtoClient
from crosswrite.services.platforms.hashnode import HashnodeClient


class PlatformClient(Protocol):
    async def test_connection(self) -> ConnectionResult: ...

    async def publish(self, content: MappedContent) -> PublishedPost: ...


def create_platform_client(
    platform: str,
    api_key: Optional[str],
    publication_id: Optional[str] = None,
) -> PlatformClient:
    """Raise ValueError nếu platform không hỗ trợ hoặc thiếu api key."""
    if platform == PLATFORM_DEVTO:
        if not api_key:
            raise ValueError("Dev.to integration requires API key")
        return DevtoClient(api_key)
    if platform == PLATFORM_HASHNODE:
        if not api_key:
            raise ValueError("Hashnode integration requires API key")
        return HashnodeClient(api_key, publication_id=publication_id)
    if platform == PLATFORM_BEEHIIV:
        if not api_key:
            raise ValueError("Beehiiv integration requires API key")
        return BeehiivClient(api_key, publication_id=publication_id)
    raise ValueError(f"Unsupported platform: {platform}")
