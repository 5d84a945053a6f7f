"""
Usage/quota metering theo (user, tháng).
- check_usage_limit: một câu INSERT ... ON CONFLICT DO UPDATE (atomic), trả về giá trị sau khi cộng.
  Quota bị trừ ngay cả khi kết quả là không cho phép.
- check_usage_limits (bulk): đọc trước, chỉ ghi khi mọi metric đều qua. Không atomic so với check_usage_limit.
"""
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Mapping, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from crosswrite.config import get_settings
from crosswrite.db import dialect_name
from crosswrite.logging_config import get_logger
from crosswrite.models import BillingSubscription, UserUsage
from crosswrite.models.billing_subscription import SUBSCRIPTION_ACTIVE
from crosswrite.services.plans import (
    PLAN_FREE,
    PLAN_SELF_HOSTED,
    UNLIMITED,
    UsageMetric,
    get_plan_cap,
    plan_from_price_id,
)

logger = get_logger(__name__)

WARNING_THRESHOLD = 0.8

# Metric -> cột; không lookup động theo tên.
METRIC_COLUMNS = {
    UsageMetric.ARTICLES_PUBLISHED: UserUsage.articles_published,
    UsageMetric.THUMBNAILS_GENERATED: UserUsage.thumbnails_generated,
    UsageMetric.AI_SUGGESTIONS_USED: UserUsage.ai_suggestions_used,
}


@dataclass
class UsageResult:
    """Kết quả check quota. limit=None nghĩa là không giới hạn."""

    allowed: bool
    current: int
    limit: Optional[int]
    warning: Optional[str] = None

    def as_dict(self) -> dict:
        return {
            "allowed": self.allowed,
            "current": self.current,
            "limit": self.limit,
            "warning": self.warning,
        }


class QuotaExceededError(Exception):
    """Vượt quota của plan; mang theo current/limit để trả cho client."""

    def __init__(self, metric: UsageMetric, current: int, limit: Optional[int]) -> None:
        self.metric = metric
        self.current = current
        self.limit = limit
        super().__init__(f"Monthly {metric.value} limit reached ({current}/{limit})")


def current_month_key(now: Optional[datetime] = None) -> str:
    """Key tháng dạng YYYY-MM (UTC)."""
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).strftime("%Y-%m")


def _insert(db: AsyncSession):
    """insert() có on_conflict_do_update theo dialect đang dùng."""
    name = dialect_name(db)
    if name == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    elif name == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    else:
        raise ValueError(f"unsupported_dialect:{name}")
    return insert


def _evaluate(metric: UsageMetric, current: int, cap: float) -> UsageResult:
    if cap == UNLIMITED:
        return UsageResult(allowed=True, current=current, limit=None)
    limit = int(cap)
    allowed = current <= limit
    warning = None
    if current > limit * WARNING_THRESHOLD and current <= limit:
        warning = f"You're approaching your {metric.value} limit ({current}/{limit})"
    return UsageResult(allowed=allowed, current=current, limit=limit, warning=warning)


async def get_user_plan_id(db: AsyncSession, user_id: str) -> str:
    """
    Plan của user: SELF_HOST => self_hosted; subscription active có price đã map => plan đó; còn lại free.
    """
    settings = get_settings()
    if settings.is_self_hosted:
        return PLAN_SELF_HOSTED
    r = await db.execute(
        select(BillingSubscription.plan_price_id)
        .where(
            BillingSubscription.user_id == user_id,
            BillingSubscription.status == SUBSCRIPTION_ACTIVE,
        )
        .limit(1)
    )
    price_id = r.scalar_one_or_none()
    if price_id:
        return plan_from_price_id(price_id, settings) or PLAN_FREE
    return PLAN_FREE


async def check_usage_limit(
    db: AsyncSession,
    user_id: str,
    metric: UsageMetric,
    increment: int = 1,
) -> UsageResult:
    """
    Resolve plan -> cap, cộng increment atomic vào counter tháng này, so sánh giá trị mới với cap.
    Counter luôn được cộng (kể cả khi allowed=False). Lỗi DB propagate.
    """
    plan_id = await get_user_plan_id(db, user_id)
    cap = get_plan_cap(plan_id, metric)
    column = METRIC_COLUMNS[metric]
    month = current_month_key()

    insert = _insert(db)
    stmt = insert(UserUsage).values(user_id=user_id, month_year=month, **{column.key: increment})
    stmt = stmt.on_conflict_do_update(
        index_elements=[UserUsage.user_id, UserUsage.month_year],
        set_={column.key: column + increment, "updated_at": func.now()},
    ).returning(column)
    r = await db.execute(stmt)
    current = int(r.scalar_one())

    result = _evaluate(metric, current, cap)
    log = logger.info if result.allowed else logger.warning
    log(
        "usage.checked",
        user_id=user_id,
        plan_id=plan_id,
        metric=metric.value,
        current=current,
        limit=result.limit,
        allowed=result.allowed,
    )
    return result


async def check_usage_limits(
    db: AsyncSession,
    user_id: str,
    increments: Mapping[UsageMetric, int],
) -> Dict[UsageMetric, UsageResult]:
    """
    Bulk check: đọc counter hiện tại, tính giá trị sau khi cộng cho từng metric,
    chỉ ghi (một upsert cho tất cả metric) khi mọi metric đều allowed.
    Không atomic với check_usage_limit chạy song song.
    """
    if not increments:
        raise ValueError("metrics_required")
    plan_id = await get_user_plan_id(db, user_id)
    month = current_month_key()

    q = (
        select(*METRIC_COLUMNS.values())
        .where(UserUsage.user_id == user_id, UserUsage.month_year == month)
        .with_for_update()
    )
    r = await db.execute(q)
    row = r.mappings().one_or_none()

    results: Dict[UsageMetric, UsageResult] = {}
    for metric, inc in increments.items():
        existing = row[METRIC_COLUMNS[metric].key] if row is not None else 0
        results[metric] = _evaluate(metric, (existing or 0) + inc, get_plan_cap(plan_id, metric))

    if not all(res.allowed for res in results.values()):
        logger.warning(
            "usage.bulk_denied",
            user_id=user_id,
            plan_id=plan_id,
            denied=[m.value for m, res in results.items() if not res.allowed],
        )
        return results

    insert = _insert(db)
    values = {METRIC_COLUMNS[m].key: inc for m, inc in increments.items()}
    stmt = insert(UserUsage).values(user_id=user_id, month_year=month, **values)
    set_ = {METRIC_COLUMNS[m].key: METRIC_COLUMNS[m] + inc for m, inc in increments.items()}
    set_["updated_at"] = func.now()
    stmt = stmt.on_conflict_do_update(
        index_elements=[UserUsage.user_id, UserUsage.month_year],
        set_=set_,
    )
    await db.execute(stmt)
    logger.info(
        "usage.bulk_committed",
        user_id=user_id,
        plan_id=plan_id,
        metrics={m.value: inc for m, inc in increments.items()},
    )
    return results


async def require_usage(
    db: AsyncSession,
    user_id: str,
    metric: UsageMetric,
    increment: int = 1,
) -> UsageResult:
    """
    check_usage_limit rồi raise QuotaExceededError nếu không cho phép.
    Commit trước khi raise: counter đã cộng phải giữ lại dù request bị từ chối.
    """
    result = await check_usage_limit(db, user_id, metric, increment)
    if not result.allowed:
        await db.commit()
        raise QuotaExceededError(metric, result.current, result.limit)
    return result


async def get_usage_summary(db: AsyncSession, user_id: str) -> dict:
    """Plan + số đã dùng / giới hạn từng metric trong tháng hiện tại (không ghi gì)."""
    plan_id = await get_user_plan_id(db, user_id)
    month = current_month_key()
    r = await db.execute(
        select(*METRIC_COLUMNS.values()).where(
            UserUsage.user_id == user_id,
            UserUsage.month_year == month,
        )
    )
    row = r.mappings().one_or_none()
    metrics = {}
    for metric, column in METRIC_COLUMNS.items():
        cap = get_plan_cap(plan_id, metric)
        metrics[metric.value] = {
            "used": (row[column.key] or 0) if row is not None else 0,
            "limit": None if cap == UNLIMITED else int(cap),
        }
    return {"plan_id": plan_id, "month": month, "metrics": metrics}
