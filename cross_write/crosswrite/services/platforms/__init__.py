"""Publishing platform adapters (dev.to, Hashnode, Beehiiv)."""
from crosswrite.services.platforms.base import (
    PLATFORM_CONFIGS,
    SUPPORTED_PLATFORMS,
    MappedContent,
    PlatformError,
    PublishedPost,
    is_platform_supported,
)
from crosswrite.services.platforms.factory import PlatformClient, create_platform_client

__all__ = [
    "PLATFORM_CONFIGS",
    "SUPPORTED_PLATFORMS",
    "MappedContent",
    "PlatformError",
    "PublishedPost",
    "PlatformClient",
    "create_platform_client",
    "is_platform_supported",
]
