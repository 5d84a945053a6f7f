"""
Usage metering theo tháng.
- Counter luôn cộng, kể cả khi vượt cap (lần thứ 6 với cap 5 => allowed=False, current=6).
- Bulk check không ghi gì khi có metric bị từ chối.
- Plan: SELF_HOST => không giới hạn; subscription active với price pro => pro.
- POST /api/usage/check: 403 kèm current/limit, counter vẫn được giữ.
"""
import uuid
from datetime import datetime, timezone

import pytest
from sqlalchemy import select

from conftest import USER_ID, auth
from crosswrite.models import BillingSubscription, UserUsage
from crosswrite.services.plans import PLAN_FREE, PLAN_PRO, PLAN_SELF_HOSTED, UsageMetric, get_plan_limits
from crosswrite.services.usage_service import (
    QuotaExceededError,
    check_usage_limit,
    check_usage_limits,
    current_month_key,
    get_user_plan_id,
    require_usage,
)


def test_current_month_key_is_utc() -> None:
    assert current_month_key(datetime(2026, 1, 31, 23, 30, tzinfo=timezone.utc)) == "2026-01"


def test_plan_limits_lookup_is_case_insensitive() -> None:
    assert get_plan_limits("FREE").monthly_thumbnails == 3
    assert get_plan_limits("enterprise") is None
    assert get_plan_limits(None) is None


@pytest.mark.asyncio
async def test_sixth_article_is_denied_but_counted(session) -> None:
    """Cap free = 5: lần 6 allowed=False, current=6, limit=5."""
    results = []
    for _ in range(6):
        results.append(await check_usage_limit(session, USER_ID, UsageMetric.ARTICLES_PUBLISHED))
    await session.commit()

    assert [r.allowed for r in results] == [True] * 5 + [False]
    assert results[-1].current == 6
    assert results[-1].limit == 5
    assert results[4].warning is not None, "80% threshold should warn"
    assert results[0].warning is None

    row = (await session.execute(select(UserUsage).where(UserUsage.user_id == USER_ID))).scalar_one()
    assert row.articles_published == 6
    assert row.month_year == current_month_key()


@pytest.mark.asyncio
async def test_metrics_are_counted_separately(session) -> None:
    await check_usage_limit(session, USER_ID, UsageMetric.THUMBNAILS_GENERATED, increment=2)
    res = await check_usage_limit(session, USER_ID, UsageMetric.AI_SUGGESTIONS_USED)
    assert res.current == 1
    assert res.limit == 500


@pytest.mark.asyncio
async def test_bulk_check_writes_nothing_when_denied(session) -> None:
    ok = await check_usage_limits(
        session,
        USER_ID,
        {UsageMetric.ARTICLES_PUBLISHED: 5, UsageMetric.THUMBNAILS_GENERATED: 1},
    )
    assert all(r.allowed for r in ok.values())
    await session.commit()

    denied = await check_usage_limits(
        session,
        USER_ID,
        {UsageMetric.ARTICLES_PUBLISHED: 1, UsageMetric.THUMBNAILS_GENERATED: 1},
    )
    assert denied[UsageMetric.ARTICLES_PUBLISHED].allowed is False
    assert denied[UsageMetric.ARTICLES_PUBLISHED].current == 6
    assert denied[UsageMetric.THUMBNAILS_GENERATED].allowed is True
    await session.commit()

    row = (
        await session.execute(
            select(UserUsage).where(UserUsage.user_id == USER_ID).execution_options(populate_existing=True)
        )
    ).scalar_one()
    assert row.articles_published == 5
    assert row.thumbnails_generated == 1


@pytest.mark.asyncio
async def test_bulk_check_requires_metrics(session) -> None:
    with pytest.raises(ValueError, match="metrics_required"):
        await check_usage_limits(session, USER_ID, {})


@pytest.mark.asyncio
async def test_self_host_is_unlimited(session, settings, monkeypatch) -> None:
    monkeypatch.setattr(settings, "deployment_mode", "SELF_HOST")
    assert await get_user_plan_id(session, USER_ID) == PLAN_SELF_HOSTED
    res = await check_usage_limit(session, USER_ID, UsageMetric.ARTICLES_PUBLISHED, increment=1000)
    assert res.allowed is True
    assert res.limit is None
    assert res.current == 1000


@pytest.mark.asyncio
async def test_active_pro_subscription_resolves_pro(session, settings, monkeypatch) -> None:
    monkeypatch.setattr(settings, "stripe_price_pro", "price_pro_123")
    session.add(
        BillingSubscription(
            id=uuid.uuid4(),
            user_id=USER_ID,
            status="active",
            plan_price_id="price_pro_123",
        )
    )
    session.add(
        BillingSubscription(
            id=uuid.uuid4(),
            user_id="user-canceled",
            status="canceled",
            plan_price_id="price_pro_123",
        )
    )
    await session.commit()

    assert await get_user_plan_id(session, USER_ID) == PLAN_PRO
    assert await get_user_plan_id(session, "user-canceled") == PLAN_FREE
    assert await get_user_plan_id(session, "user-without-subscription") == PLAN_FREE


@pytest.mark.asyncio
async def test_require_usage_raises_with_counts(session) -> None:
    for _ in range(3):
        await require_usage(session, USER_ID, UsageMetric.THUMBNAILS_GENERATED)
    with pytest.raises(QuotaExceededError) as exc_info:
        await require_usage(session, USER_ID, UsageMetric.THUMBNAILS_GENERATED)
    assert exc_info.value.current == 4
    assert exc_info.value.limit == 3


@pytest.mark.asyncio
async def test_usage_check_route_denies_and_keeps_counter(client) -> None:
    for _ in range(5):
        resp = await client.post("/api/usage/check", json={"metric": "articles_published"}, headers=auth())
        assert resp.status_code == 200, resp.text
        assert resp.json()["data"]["allowed"] is True

    resp = await client.post("/api/usage/check", json={"metric": "articles_published"}, headers=auth())
    assert resp.status_code == 403, resp.text
    body = resp.json()
    assert body["success"] is False
    assert body["extra"] == {"metric": "articles_published", "current": 6, "limit": 5}

    summary = await client.get("/api/usage", headers=auth())
    assert summary.status_code == 200
    data = summary.json()["data"]
    assert data["plan_id"] == PLAN_FREE
    assert data["metrics"]["articles_published"] == {"used": 6, "limit": 5}
    assert data["metrics"]["thumbnails_generated"] == {"used": 0, "limit": 3}


@pytest.mark.asyncio
async def test_usage_requires_user_header(client) -> None:
    resp = await client.get("/api/usage")
    assert resp.status_code == 401
    assert resp.json() == {"success": False, "error": "Authentication required"}
