"""
Shared pieces cho platform adapters: config từng platform, nội dung đã map, helper validate/normalize.
Adapter chỉ cần test_connection() và publish(); lỗi publish raise PlatformError.
"""
import asyncio
import re
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, List, Optional, TypeVar

import httpx

from crosswrite.logging_config import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

PLATFORM_DEVTO = "devto"
PLATFORM_HASHNODE = "hashnode"
PLATFORM_BEEHIIV = "beehiiv"

MAX_RETRIES = 2
RETRY_BASE_DELAY_SECONDS = 1.0


class PlatformError(Exception):
    """Lỗi từ platform adapter (HTTP, GraphQL, thiếu field bắt buộc)."""


@dataclass(frozen=True)
class PlatformConfig:
    name: str
    min_title_length: int
    max_title_length: int
    max_body_length: int
    max_tags: int
    supports_drafts: bool
    requires_publication_id: bool
    supports_cover_images: bool


PLATFORM_CONFIGS: Dict[str, PlatformConfig] = {
    PLATFORM_DEVTO: PlatformConfig(
        name="Dev.to",
        min_title_length=1,
        max_title_length=95,
        max_body_length=64000,
        max_tags=4,
        supports_drafts=True,
        requires_publication_id=False,
        supports_cover_images=True,
    ),
    PLATFORM_HASHNODE: PlatformConfig(
        name="Hashnode",
        min_title_length=6,
        max_title_length=100,
        max_body_length=100000,
        max_tags=10,
        supports_drafts=True,
        requires_publication_id=True,
        supports_cover_images=True,
    ),
    PLATFORM_BEEHIIV: PlatformConfig(
        name="Beehiiv",
        min_title_length=1,
        max_title_length=150,
        max_body_length=200000,
        max_tags=10,
        supports_drafts=True,
        requires_publication_id=True,
        supports_cover_images=True,
    ),
}

SUPPORTED_PLATFORMS = tuple(PLATFORM_CONFIGS)


@dataclass
class MappedContent:
    """Nội dung draft sau khi map theo ràng buộc của platform."""

    title: str
    body: str
    tags: List[str] = field(default_factory=list)
    cover_url: Optional[str] = None
    canonical_url: Optional[str] = None
    publication_id: Optional[str] = None
    publish_as_draft: bool = False


@dataclass
class PublishedPost:
    platform_post_id: str
    platform_url: str


@dataclass
class ConnectionResult:
    success: bool
    error: Optional[str] = None


def is_platform_supported(platform: str) -> bool:
    return platform in PLATFORM_CONFIGS


def validate_title(title: str, platform: str) -> Optional[str]:
    """Trả về message lỗi, hoặc None nếu title hợp lệ."""
    config = PLATFORM_CONFIGS.get(platform)
    if not config:
        return f"Unsupported platform: {platform}"
    trimmed = (title or "").strip()
    if len(trimmed) < config.min_title_length:
        return f"Title must be at least {config.min_title_length} characters long for {config.name}"
    if len(trimmed) > config.max_title_length:
        return f"Title must be no more than {config.max_title_length} characters long for {config.name}"
    return None


def truncate_text(text: str, max_length: int) -> str:
    if len(text) <= max_length:
        return text
    return text[: max_length - 3] + "..."


def sanitize_tags(tags: List[str], max_tags: int) -> List[str]:
    """lowercase, chỉ giữ [a-z0-9-], bỏ tag rỗng, cắt theo max_tags."""
    out = []
    for tag in tags:
        cleaned = re.sub(r"[^a-z0-9-]", "", tag.strip().lower())
        if cleaned:
            out.append(cleaned)
    return out[:max_tags]


def normalize_error(error: Exception) -> str:
    """Message thân thiện cho user (không lộ chi tiết provider)."""
    message = str(error).lower()
    if "api key" in message or "token" in message or "auth" in message or "401" in message:
        return "Authentication failed. Please check your credentials."
    if "rate limit" in message or "too many requests" in message or "429" in message:
        return "Rate limit exceeded. Please try again later."
    if "network" in message or "timeout" in message:
        return "Network error. Please check your connection and try again."
    return "An unexpected error occurred. Please try again."


def error_from_response(platform_name: str, resp: httpx.Response) -> PlatformError:
    text = resp.text or f"HTTP {resp.status_code}"
    return PlatformError(f"{platform_name} API error: {resp.status_code} - {text[:500]}")


async def retry_with_backoff(
    fn: Callable[[], Awaitable[T]],
    max_retries: int = MAX_RETRIES,
    base_delay: float = RETRY_BASE_DELAY_SECONDS,
) -> T:
    """Gọi fn, retry tối đa max_retries lần với delay base_delay * 2^(attempt-1)."""
    attempt = 0
    while True:
        try:
            return await fn()
        except (PlatformError, httpx.HTTPError) as e:
            attempt += 1
            if attempt > max_retries:
                raise
            delay = base_delay * (2 ** (attempt - 1))
            logger.warning("platform.retry", attempt=attempt, delay_seconds=delay, error=str(e))
            await asyncio.sleep(delay)
