"""
Integrations: kết nối user với platform.
Connect kiểm tra credential qua adapter.test_connection(); mỗi (user, platform) chỉ một integration.
"""
from typing import Callable, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from crosswrite.db import utc_now
from crosswrite.logging_config import get_logger
from crosswrite.models import Integration
from crosswrite.models.integration import INTEGRATION_CONNECTED, INTEGRATION_ERROR
from crosswrite.services.platforms import PlatformClient, create_platform_client, is_platform_supported
from crosswrite.services.platforms.base import ConnectionResult

logger = get_logger(__name__)

ClientFactory = Callable[[str, Optional[str], Optional[str]], PlatformClient]


async def list_integrations(db: AsyncSession, user_id: str) -> List[Integration]:
    r = await db.execute(
        select(Integration).where(Integration.user_id == user_id).order_by(Integration.created_at.asc())
    )
    return list(r.scalars().all())


async def get_integration(db: AsyncSession, user_id: str, integration_id: UUID) -> Integration:
    r = await db.execute(
        select(Integration).where(Integration.id == integration_id, Integration.user_id == user_id)
    )
    integration = r.scalar_one_or_none()
    if not integration:
        raise ValueError("integration_not_found")
    return integration


async def connect_integration(
    db: AsyncSession,
    user_id: str,
    platform: str,
    api_key: str,
    publication_id: Optional[str] = None,
    client_factory: ClientFactory = create_platform_client,
) -> Integration:
    """
    Validate credential rồi tạo integration connected.
    ValueError: unsupported_platform | already_connected | connection_failed:<message>.
    """
    if not is_platform_supported(platform):
        raise ValueError("unsupported_platform")
    r = await db.execute(
        select(Integration.id).where(Integration.user_id == user_id, Integration.platform == platform)
    )
    if r.first() is not None:
        raise ValueError("already_connected")

    client = client_factory(platform, api_key, publication_id)
    result = await client.test_connection()
    if not result.success:
        logger.warning("integrations.connect_failed", user_id=user_id, platform=platform, error=result.error)
        raise ValueError(f"connection_failed:{result.error or 'Connection test failed'}")

    now = utc_now()
    integration = Integration(
        user_id=user_id,
        platform=platform,
        api_key=api_key,
        # Beehiiv test_connection có thể tự chọn publication đầu tiên.
        publication_id=publication_id or getattr(client, "publication_id", None),
        status=INTEGRATION_CONNECTED,
        connected_at=now,
        last_sync=now,
    )
    db.add(integration)
    await db.flush()
    logger.info("integrations.connected", user_id=user_id, platform=platform)
    return integration


async def update_integration(
    db: AsyncSession,
    user_id: str,
    integration_id: UUID,
    publication_id: Optional[str] = None,
    auto_publish: Optional[bool] = None,
    sync_interval: Optional[int] = None,
) -> Integration:
    integration = await get_integration(db, user_id, integration_id)
    if publication_id is not None:
        integration.publication_id = publication_id or None
    if auto_publish is not None:
        integration.auto_publish = auto_publish
    if sync_interval is not None:
        if sync_interval < 1:
            raise ValueError("invalid_sync_interval")
        integration.sync_interval = sync_interval
    await db.flush()
    return integration


async def disconnect_integration(db: AsyncSession, user_id: str, integration_id: UUID) -> None:
    integration = await get_integration(db, user_id, integration_id)
    await db.delete(integration)
    await db.flush()
    logger.info("integrations.disconnected", user_id=user_id, platform=integration.platform)


async def recheck_integration(
    db: AsyncSession,
    user_id: str,
    integration_id: UUID,
    client_factory: ClientFactory = create_platform_client,
) -> Tuple[Integration, ConnectionResult]:
    """Chạy lại test_connection, cập nhật status connected | error và last_sync (không raise khi test fail)."""
    integration = await get_integration(db, user_id, integration_id)
    client = client_factory(integration.platform, integration.api_key, integration.publication_id)
    result = await client.test_connection()
    integration.status = INTEGRATION_CONNECTED if result.success else INTEGRATION_ERROR
    integration.last_sync = utc_now()
    await db.flush()
    if not result.success:
        logger.warning("integrations.test_failed", integration_id=str(integration_id), error=result.error)
    return integration, result
