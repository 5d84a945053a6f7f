"""
Test setup: SQLite file DB (aiosqlite) thay cho Postgres, schema tạo lại cho mỗi test.
ENV phải set trước khi import crosswrite (settings + engine tạo lúc import).
"""
import os
import tempfile

_DB_DIR = tempfile.mkdtemp(prefix="crosswrite-test-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.join(_DB_DIR, 'test.db')}"
os.environ["APP_ENV"] = "test"
os.environ["DEPLOYMENT_MODE"] = "HOSTED"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ.pop("REDIS_URL", None)
os.environ.pop("CRON_SECRET", None)
os.environ.pop("STRIPE_PRICE_PRO", None)

import uuid
from datetime import datetime, timezone
from typing import Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

import crosswrite.models  # noqa: F401  (register tables)
from crosswrite.config import get_settings
from crosswrite.db import Base, async_session_factory, engine
from crosswrite.models import Draft, Integration
from crosswrite.models.integration import INTEGRATION_CONNECTED
from crosswrite.routers.ai_router import reset_thumbnail_rate_limiter
from crosswrite.services.ai_provider import reset_ai_provider
from crosswrite.services.analytics_cache import get_analytics_cache
from crosswrite.services.publish_service import reset_platform_rate_limiter

USER_ID = "user-1"
OTHER_USER_ID = "user-2"


@pytest.fixture(autouse=True)
def _reset_process_state():
    """Limiter, AI provider, analytics cache là state theo process."""
    reset_platform_rate_limiter()
    reset_thumbnail_rate_limiter()
    reset_ai_provider()
    get_analytics_cache().clear()
    yield
    get_analytics_cache().clear()


@pytest.fixture
def settings():
    return get_settings()


@pytest_asyncio.fixture
async def db_schema():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    yield
    await engine.dispose()


@pytest_asyncio.fixture
async def session(db_schema):
    async with async_session_factory() as s:
        yield s


@pytest_asyncio.fixture
async def client(db_schema):
    from crosswrite.main import app

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


def auth(user_id: str = USER_ID) -> dict:
    return {"X-User-ID": user_id}


async def make_draft(
    session,
    user_id: str = USER_ID,
    title: str = "Shipping FastAPI services",
    content: str = "# Intro\n\nBody text",
    tags: Optional[list] = None,
    published_at: Optional[datetime] = None,
) -> Draft:
    draft = Draft(
        id=uuid.uuid4(),
        user_id=user_id,
        title=title,
        content=content,
        status="draft",
        platforms=[],
        tags=tags or [],
        published_at=published_at,
    )
    session.add(draft)
    await session.commit()
    return draft


async def make_integration(
    session,
    platform: str,
    user_id: str = USER_ID,
    publication_id: Optional[str] = None,
    api_key: str = "key-123",
) -> Integration:
    integration = Integration(
        id=uuid.uuid4(),
        user_id=user_id,
        platform=platform,
        api_key=api_key,
        publication_id=publication_id,
        status=INTEGRATION_CONNECTED,
        connected_at=datetime.now(timezone.utc),
    )
    session.add(integration)
    await session.commit()
    return integration
