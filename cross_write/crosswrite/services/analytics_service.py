"""
Analytics: aggregate analytics_events (join drafts theo owner, recorded_at trong range) + TTL cache.
Views: overview, timeseries (day | ISO week bắt đầu thứ Hai), platforms, top_posts, publish_success.
"""
import csv
import io
import json
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional
from uuid import UUID

from sqlalchemy import desc, distinct, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from crosswrite.db import dialect_name, utc_now
from crosswrite.logging_config import get_logger
from crosswrite.models import AnalyticsEvent, Draft, PlatformPost
from crosswrite.services.analytics_cache import AnalyticsCache, get_analytics_cache, make_cache_key

logger = get_logger(__name__)

DEFAULT_RANGE_DAYS = 30
MAX_RANGE_DAYS = 365
GRANULARITIES = ("day", "week")
TOP_POSTS_LIMIT = 10
EXPORT_TOP_POSTS_LIMIT = 100
METRICS = ("reads", "reactions", "clicks", "shares")


@dataclass(frozen=True)
class DateRange:
    start: datetime
    end: datetime
    granularity: str = "day"

    def period(self) -> dict:
        return {
            "from": self.start.isoformat(),
            "to": self.end.isoformat(),
            "granularity": self.granularity,
        }


def _parse_dt(value: Any) -> datetime:
    if isinstance(value, datetime):
        dt = value
    else:
        try:
            dt = datetime.fromisoformat(str(value).strip().replace("Z", "+00:00"))
        except ValueError:
            raise ValueError("invalid_date")
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _ceil_minute(dt: datetime) -> datetime:
    """Làm tròn lên phút: range mặc định giữ nguyên key cache trong cùng một phút."""
    floored = dt.replace(second=0, microsecond=0)
    return floored if floored == dt else floored + timedelta(minutes=1)


def parse_date_range(
    start: Any = None,
    end: Any = None,
    granularity: Optional[str] = None,
    now: Optional[datetime] = None,
) -> DateRange:
    """
    Mặc định 30 ngày gần nhất (now làm tròn lên phút), granularity day.
    start > end => ValueError("invalid_date_range"); range > 365 ngày bị kẹp về [end - 365d, end].
    """
    now = _ceil_minute(now or utc_now())
    granularity = granularity or "day"
    if granularity not in GRANULARITIES:
        raise ValueError("invalid_granularity")
    end_dt = _parse_dt(end) if end else now
    start_dt = _parse_dt(start) if start else now - timedelta(days=DEFAULT_RANGE_DAYS)
    if start_dt > end_dt:
        raise ValueError("invalid_date_range")
    if end_dt - start_dt > timedelta(days=MAX_RANGE_DAYS):
        start_dt = end_dt - timedelta(days=MAX_RANGE_DAYS)
    return DateRange(start=start_dt, end=end_dt, granularity=granularity)


def _scope(q, user_id: str, rng: DateRange):
    return q.join(Draft, Draft.id == AnalyticsEvent.draft_id).where(
        Draft.user_id == user_id,
        AnalyticsEvent.recorded_at >= rng.start,
        AnalyticsEvent.recorded_at <= rng.end,
    )


def _sums():
    return [func.coalesce(func.sum(getattr(AnalyticsEvent, m)), 0).label(m) for m in METRICS]


def _metric_dict(row) -> Dict[str, int]:
    return {m: int(getattr(row, m) or 0) for m in METRICS}


def week_start(day: date) -> date:
    """Thứ Hai của ISO week chứa day."""
    return day - timedelta(days=day.weekday())


# --- Aggregations (không cache) ---


async def get_overview_aggregates(db: AsyncSession, user_id: str, rng: DateRange) -> dict:
    q = _scope(select(*_sums(), func.count(distinct(AnalyticsEvent.draft_id)).label("total_posts")), user_id, rng)
    row = (await db.execute(q)).one()
    out = _metric_dict(row)
    out["total_posts"] = int(row.total_posts or 0)
    out["ctr"] = round(out["clicks"] / out["reads"] * 100, 2) if out["reads"] > 0 else 0.0
    return out


def day_bucket(dialect: str):
    """Cột ngày (UTC) của recorded_at. PostgreSQL date() theo TimeZone của session nên đổi về UTC trước."""
    col = AnalyticsEvent.recorded_at
    if dialect == "postgresql":
        col = func.timezone("UTC", col)
    return func.date(col).label("day")


async def get_timeseries_data(db: AsyncSession, user_id: str, rng: DateRange) -> List[dict]:
    """Group theo ngày ở DB, gộp tuần ở Python (portable giữa các dialect)."""
    day_col = day_bucket(dialect_name(db))
    q = _scope(select(day_col, *_sums()), user_id, rng).group_by(day_col).order_by(day_col)
    rows = (await db.execute(q)).all()

    buckets: Dict[date, Dict[str, int]] = {}
    for row in rows:
        day = date.fromisoformat(str(row.day)[:10])
        if rng.granularity == "week":
            day = week_start(day)
        bucket = buckets.setdefault(day, {m: 0 for m in METRICS})
        for m, v in _metric_dict(row).items():
            bucket[m] += v
    return [{"date": d.isoformat(), **buckets[d]} for d in sorted(buckets)]


async def get_platform_breakdown(db: AsyncSession, user_id: str, rng: DateRange) -> List[dict]:
    reads_sum = func.coalesce(func.sum(AnalyticsEvent.reads), 0)
    q = (
        _scope(
            select(AnalyticsEvent.platform, *_sums(), func.count(distinct(AnalyticsEvent.draft_id)).label("posts")),
            user_id,
            rng,
        )
        .group_by(AnalyticsEvent.platform)
        .order_by(desc(reads_sum), AnalyticsEvent.platform)
    )
    rows = (await db.execute(q)).all()
    return [{"platform": r.platform, **_metric_dict(r), "posts": int(r.posts or 0)} for r in rows]


async def get_top_posts(
    db: AsyncSession,
    user_id: str,
    rng: DateRange,
    limit: int = TOP_POSTS_LIMIT,
) -> List[dict]:
    totals = [func.coalesce(func.sum(getattr(AnalyticsEvent, m)), 0) for m in METRICS]
    engagement = totals[0] + totals[1] + totals[2] + totals[3]
    q = (
        _scope(
            select(
                Draft.id.label("draft_id"),
                Draft.title,
                AnalyticsEvent.platform,
                Draft.published_at,
                *_sums(),
            ),
            user_id,
            rng,
        )
        .group_by(Draft.id, Draft.title, AnalyticsEvent.platform, Draft.published_at)
        .order_by(desc(engagement))
        .limit(limit)
    )
    rows = (await db.execute(q)).all()
    out = []
    for r in rows:
        metrics = _metric_dict(r)
        out.append({
            "draft_id": str(r.draft_id),
            "title": r.title,
            "platform": r.platform,
            **metrics,
            "total_engagement": sum(metrics.values()),
            "published_at": r.published_at.isoformat() if isinstance(r.published_at, datetime) else r.published_at,
        })
    return out


async def get_publish_success_rate(db: AsyncSession, user_id: str, rng: DateRange) -> dict:
    """Tỷ lệ platform_posts thành công trong range (theo created_at)."""
    q = (
        select(PlatformPost.status, func.count(PlatformPost.id).label("n"))
        .join(Draft, Draft.id == PlatformPost.draft_id)
        .where(
            Draft.user_id == user_id,
            PlatformPost.created_at >= rng.start,
            PlatformPost.created_at <= rng.end,
        )
        .group_by(PlatformPost.status)
    )
    rows = (await db.execute(q)).all()
    breakdown = [{"status": r.status, "count": int(r.n)} for r in rows]
    total = sum(b["count"] for b in breakdown)
    success = sum(b["count"] for b in breakdown if b["status"] == "success")
    rate = round(success / total * 100, 2) if total else 0.0
    return {"success_rate": rate, "breakdown": breakdown}


# --- Cached views ---


async def _cached(
    user_id: str,
    view: str,
    rng: DateRange,
    loader: Callable[[], Awaitable[dict]],
    cache: Optional[AnalyticsCache] = None,
) -> dict:
    cache = cache or get_analytics_cache()
    key = make_cache_key(user_id, view, rng.start, rng.end, rng.granularity)
    hit = cache.get(key)
    if hit is not None:
        logger.debug("analytics.cache_hit", view=view, user_id=user_id)
        return hit
    result = await loader()
    cache.set(key, result)
    return result


async def get_overview(db: AsyncSession, user_id: str, rng: DateRange, cache: Optional[AnalyticsCache] = None) -> dict:
    async def load() -> dict:
        stats = await get_overview_aggregates(db, user_id, rng)
        return {**stats, "period": rng.period()}

    return await _cached(user_id, "overview", rng, load, cache)


async def get_timeseries(db: AsyncSession, user_id: str, rng: DateRange, cache: Optional[AnalyticsCache] = None) -> dict:
    async def load() -> dict:
        return {"data": await get_timeseries_data(db, user_id, rng), "period": rng.period()}

    return await _cached(user_id, "timeseries", rng, load, cache)


async def get_platforms(db: AsyncSession, user_id: str, rng: DateRange, cache: Optional[AnalyticsCache] = None) -> dict:
    async def load() -> dict:
        return {"platforms": await get_platform_breakdown(db, user_id, rng), "period": rng.period()}

    return await _cached(user_id, "platforms", rng, load, cache)


async def get_top_posts_view(
    db: AsyncSession,
    user_id: str,
    rng: DateRange,
    cache: Optional[AnalyticsCache] = None,
) -> dict:
    async def load() -> dict:
        return {"posts": await get_top_posts(db, user_id, rng), "period": rng.period()}

    return await _cached(user_id, "top_posts", rng, load, cache)


async def get_publish_success(
    db: AsyncSession,
    user_id: str,
    rng: DateRange,
    cache: Optional[AnalyticsCache] = None,
) -> dict:
    async def load() -> dict:
        return {**await get_publish_success_rate(db, user_id, rng), "period": rng.period()}

    return await _cached(user_id, "publish_success", rng, load, cache)


# --- Export ---

EXPORT_VIEWS = ("overview", "timeseries", "platforms", "posts")
EXPORT_FORMATS = ("csv", "json")


def _to_csv(rows: List[dict]) -> str:
    if not rows:
        return ""
    buf = io.StringIO()
    writer = csv.DictWriter(buf, fieldnames=list(rows[0].keys()))
    writer.writeheader()
    writer.writerows(rows)
    return buf.getvalue()


async def export_analytics(db: AsyncSession, user_id: str, view: str, fmt: str, rng: DateRange) -> dict:
    """Dữ liệu chưa cache, trả về {data, filename, content_type}."""
    if view not in EXPORT_VIEWS:
        raise ValueError("invalid_view")
    if fmt not in EXPORT_FORMATS:
        raise ValueError("invalid_format")
    if view == "overview":
        rows: List[dict] = [await get_overview_aggregates(db, user_id, rng)]
    elif view == "timeseries":
        rows = await get_timeseries_data(db, user_id, rng)
    elif view == "platforms":
        rows = await get_platform_breakdown(db, user_id, rng)
    else:
        rows = await get_top_posts(db, user_id, rng, limit=EXPORT_TOP_POSTS_LIMIT)

    stamp = rng.start.date().isoformat()
    if fmt == "csv":
        return {"data": _to_csv(rows), "filename": f"analytics-{view}-{stamp}.csv", "content_type": "text/csv"}
    return {
        "data": json.dumps(rows, indent=2),
        "filename": f"analytics-{view}-{stamp}.json",
        "content_type": "application/json",
    }


# --- Ingestion ---


async def record_event(
    db: AsyncSession,
    user_id: str,
    draft_id: UUID,
    platform: str,
    reads: int = 0,
    reactions: int = 0,
    clicks: int = 0,
    shares: int = 0,
    recorded_at: Optional[datetime] = None,
) -> AnalyticsEvent:
    """Append 1 event cho draft của user. Cache không bị invalidate (TTL tự hết)."""
    if min(reads, reactions, clicks, shares) < 0:
        raise ValueError("invalid_metric_value")
    r = await db.execute(select(Draft.id).where(Draft.id == draft_id, Draft.user_id == user_id))
    if r.scalar_one_or_none() is None:
        raise ValueError("draft_not_found")
    event = AnalyticsEvent(
        draft_id=draft_id,
        platform=platform,
        reads=reads,
        reactions=reactions,
        clicks=clicks,
        shares=shares,
        recorded_at=_parse_dt(recorded_at) if recorded_at else utc_now(),
    )
    db.add(event)
    await db.flush()
    logger.info("analytics.event_recorded", draft_id=str(draft_id), platform=platform)
    return event
