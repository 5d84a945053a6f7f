"""
Publish dispatcher: đăng 1 draft lên nhiều platform, mỗi platform độc lập.
- Lỗi của một platform (chưa connect, rate limit, title, thiếu publication id, lỗi adapter) chỉ là 1 entry lỗi.
- Mọi kết quả ghi vào platform_posts. Draft -> published khi có ít nhất 1 platform thành công.
- Không retry ở tầng dispatcher; scheduler chịu trách nhiệm retry.
"""
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from crosswrite.config import get_settings
from crosswrite.db import utc_now
from crosswrite.logging_config import get_logger
from crosswrite.models import Draft, Integration, PlatformPost
from crosswrite.models.draft import DRAFT_STATUS_PUBLISHED
from crosswrite.models.integration import INTEGRATION_CONNECTED
from crosswrite.services.platforms import (
    PLATFORM_CONFIGS,
    PlatformClient,
    create_platform_client,
    is_platform_supported,
)
from crosswrite.services.platforms.base import validate_title
from crosswrite.services.platforms.mapper import MappingOptions, map_content_for_platform
from crosswrite.utils.rate_limit import build_rate_limiter

logger = get_logger(__name__)

POST_STATUS_SUCCESS = "success"
POST_STATUS_FAILED = "failed"

ClientFactory = Callable[[str, Optional[str], Optional[str]], PlatformClient]

_platform_limiter = None


def _get_platform_limiter():
    global _platform_limiter
    if _platform_limiter is None:
        _platform_limiter = build_rate_limiter(get_settings().platform_rate_limit_per_min)
    return _platform_limiter


def reset_platform_rate_limiter() -> None:
    """Bỏ limiter hiện tại (dùng trong test)."""
    global _platform_limiter
    _platform_limiter = None


@dataclass
class PublishOptions:
    publish_as_draft: bool = False
    set_as_canonical: bool = False
    publication_id: Optional[str] = None


@dataclass
class PlatformResult:
    platform: str
    success: bool
    platform_post_id: Optional[str] = None
    platform_url: Optional[str] = None
    error: Optional[str] = None

    def as_dict(self) -> dict:
        return {
            "platform": self.platform,
            "success": self.success,
            "platform_post_id": self.platform_post_id,
            "platform_url": self.platform_url,
            "error": self.error,
        }


async def _connected_integrations(db: AsyncSession, user_id: str) -> Dict[str, Integration]:
    r = await db.execute(
        select(Integration).where(
            Integration.user_id == user_id,
            Integration.status == INTEGRATION_CONNECTED,
        )
    )
    return {i.platform: i for i in r.scalars().all()}


async def _publish_one(
    draft: Draft,
    platform: str,
    integration: Optional[Integration],
    user_id: str,
    options: PublishOptions,
    client_factory: ClientFactory,
) -> PlatformResult:
    if not is_platform_supported(platform):
        return PlatformResult(platform, False, error=f"Unsupported platform: {platform}")
    if integration is None:
        return PlatformResult(
            platform,
            False,
            error=f"Not connected to: {platform}. Please connect this platform first.",
        )

    limit = await _get_platform_limiter().hit(f"platform:{platform}:{user_id}")
    if not limit.allowed:
        return PlatformResult(platform, False, error=f"Rate limit exceeded for {platform}. Please try again later.")

    title_error = validate_title(draft.title, platform)
    if title_error:
        return PlatformResult(platform, False, error=title_error)

    config = PLATFORM_CONFIGS[platform]
    publication_id = options.publication_id or integration.publication_id
    if config.requires_publication_id and not publication_id:
        return PlatformResult(
            platform,
            False,
            error=f"Publication ID is required for {config.name} publishing",
        )

    try:
        content = map_content_for_platform(
            draft,
            platform,
            MappingOptions(
                publish_as_draft=options.publish_as_draft,
                set_as_canonical=options.set_as_canonical,
                publication_id=options.publication_id,
            ),
            get_settings().app_url,
        )
        client = client_factory(platform, integration.api_key, integration.publication_id)
        published = await client.publish(content)
    except Exception as e:
        logger.warning("publish.platform_failed", draft_id=str(draft.id), platform=platform, error=str(e))
        return PlatformResult(platform, False, error=str(e) or "Unknown error")

    return PlatformResult(
        platform,
        True,
        platform_post_id=published.platform_post_id,
        platform_url=published.platform_url,
    )


async def publish_to_platforms(
    db: AsyncSession,
    user_id: str,
    draft_id: UUID,
    platforms: List[str],
    options: Optional[PublishOptions] = None,
    client_factory: ClientFactory = create_platform_client,
) -> dict:
    """
    Dispatch draft tới từng platform theo thứ tự. Raise ValueError("platforms_required") / ("draft_not_found").
    Trả về {"results": [...], "summary": {total, successful, failed, draft_id}}.
    """
    if not platforms:
        raise ValueError("platforms_required")
    options = options or PublishOptions()

    r = await db.execute(select(Draft).where(Draft.id == draft_id, Draft.user_id == user_id))
    draft = r.scalar_one_or_none()
    if not draft:
        raise ValueError("draft_not_found")

    integrations = await _connected_integrations(db, user_id)

    results: List[PlatformResult] = []
    for platform in platforms:
        result = await _publish_one(
            draft,
            platform,
            integrations.get(platform),
            user_id,
            options,
            client_factory,
        )
        results.append(result)

    now = utc_now()
    for result in results:
        db.add(
            PlatformPost(
                draft_id=draft.id,
                platform=result.platform,
                platform_post_id=result.platform_post_id,
                platform_url=result.platform_url,
                status=POST_STATUS_SUCCESS if result.success else POST_STATUS_FAILED,
                error_message=result.error,
                published_at=now if result.success else None,
            )
        )

    successful = sum(1 for res in results if res.success)
    if successful:
        draft.status = DRAFT_STATUS_PUBLISHED
        draft.published_at = now
    await db.flush()

    logger.info(
        "publish.completed",
        user_id=user_id,
        draft_id=str(draft.id),
        total=len(platforms),
        successful=successful,
        failed=len(results) - successful,
    )
    return {
        "results": [res.as_dict() for res in results],
        "summary": {
            "total": len(platforms),
            "successful": successful,
            "failed": len(results) - successful,
            "draft_id": str(draft.id),
        },
    }
