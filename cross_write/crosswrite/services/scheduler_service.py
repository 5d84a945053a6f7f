"""
Scheduled posts: CRUD + sweep đăng bài đến hạn.
- process_due_posts: pending & scheduled_at <= now, cũ nhất trước, tối đa SCHEDULER_BATCH_SIZE.
  Mỗi post commit riêng. Thành công >= 1 platform => published; thất bại => retry_count += 1,
  failed khi retry_count >= SCHEDULER_MAX_RETRIES, còn lại giữ pending cho lượt sau.
- Cron endpoint và timer trong process (SCHEDULER_ENABLED) chạy cùng một sweep.
"""
import asyncio
from datetime import datetime, timezone
from typing import Awaitable, Callable, List, Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from crosswrite.config import get_settings
from crosswrite.db import async_session_factory, utc_now
from crosswrite.logging_config import get_logger
from crosswrite.models import Draft, ScheduledPost
from crosswrite.models.draft import DRAFT_STATUS_DRAFT, DRAFT_STATUS_SCHEDULED
from crosswrite.models.scheduled_post import (
    SCHEDULE_CANCELLED,
    SCHEDULE_FAILED,
    SCHEDULE_PENDING,
    SCHEDULE_PUBLISHED,
)
from crosswrite.services.platforms import is_platform_supported
from crosswrite.services.publish_service import publish_to_platforms

logger = get_logger(__name__)

Dispatcher = Callable[..., Awaitable[dict]]

_scheduler_task: Optional[asyncio.Task[None]] = None
_stop_event: Optional[asyncio.Event] = None
_last_tick_at: Optional[datetime] = None
_enabled = False


def _as_utc(value: datetime) -> datetime:
    """Datetime không có tz coi như UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _failure_message(result: dict) -> str:
    errors = [f"{r['platform']}: {r['error']}" for r in result.get("results", []) if not r.get("success")]
    return "; ".join(errors) or "All platforms failed"


async def _lock_pending(db: AsyncSession, post_id: UUID) -> Optional[ScheduledPost]:
    """Lock lại 1 post còn pending; None nếu worker khác đã lấy hoặc đã xử lý."""
    r = await db.execute(
        select(ScheduledPost)
        .where(ScheduledPost.id == post_id, ScheduledPost.status == SCHEDULE_PENDING)
        .with_for_update(skip_locked=True)
    )
    return r.scalar_one_or_none()


def _record_failure(post: ScheduledPost, error: str, max_retries: int) -> bool:
    """Tăng retry_count; trả về True nếu post chuyển sang failed."""
    post.retry_count = (post.retry_count or 0) + 1
    post.error_message = error
    if post.retry_count >= max_retries:
        post.status = SCHEDULE_FAILED
        return True
    return False


async def process_due_posts(
    db: AsyncSession,
    now: Optional[datetime] = None,
    dispatcher: Dispatcher = publish_to_platforms,
) -> dict:
    """
    Một sweep. Mỗi post đến hạn được dispatch đúng một lần; kết quả commit trước khi sang post kế.
    Trả về processed, successful, failed, retried, errors.
    """
    settings = get_settings()
    now = _as_utc(now) if now else utc_now()
    max_retries = settings.scheduler_max_retries

    r = await db.execute(
        select(ScheduledPost.id)
        .where(
            ScheduledPost.status == SCHEDULE_PENDING,
            ScheduledPost.scheduled_at <= now,
        )
        .order_by(ScheduledPost.scheduled_at.asc())
        .limit(settings.scheduler_batch_size)
        .with_for_update(skip_locked=True)
    )
    due_ids = list(r.scalars().all())

    summary = {"processed": 0, "successful": 0, "failed": 0, "retried": 0, "errors": []}
    for post_id in due_ids:
        post = await _lock_pending(db, post_id)
        if post is None:
            continue
        summary["processed"] += 1
        error: Optional[str] = None
        try:
            result = await dispatcher(db, post.user_id, post.draft_id, list(post.platforms))
            if result["summary"]["successful"] > 0:
                post.status = SCHEDULE_PUBLISHED
                post.published_at = utc_now()
                post.error_message = None
            else:
                error = _failure_message(result)
        except Exception as e:
            error = str(e) or e.__class__.__name__
            logger.warning("scheduler.dispatch_error", scheduled_post_id=str(post_id), error=error)
            await db.rollback()
            post = await _lock_pending(db, post_id)
            if post is None:
                continue

        if error is None:
            summary["successful"] += 1
            logger.info("scheduler.published", scheduled_post_id=str(post_id))
        else:
            became_failed = _record_failure(post, error, max_retries)
            summary["errors"].append({"scheduled_post_id": str(post_id), "error": error})
            if became_failed:
                summary["failed"] += 1
                logger.warning("scheduler.failed", scheduled_post_id=str(post_id), retry_count=post.retry_count)
            else:
                summary["retried"] += 1
                logger.info("scheduler.retry_pending", scheduled_post_id=str(post_id), retry_count=post.retry_count)
        await db.commit()

    await db.commit()
    logger.info(
        "scheduler.sweep_done",
        processed=summary["processed"],
        successful=summary["successful"],
        failed=summary["failed"],
        retried=summary["retried"],
    )
    return summary


# --- Scheduled post management ---


async def list_scheduled_posts(
    db: AsyncSession,
    user_id: str,
    status: Optional[str] = None,
) -> List[dict]:
    q = (
        select(ScheduledPost, Draft.title, Draft.status)
        .join(Draft, Draft.id == ScheduledPost.draft_id)
        .where(ScheduledPost.user_id == user_id)
    )
    if status:
        q = q.where(ScheduledPost.status == status)
    q = q.order_by(ScheduledPost.scheduled_at.asc())
    r = await db.execute(q)
    out = []
    for post, title, draft_status in r.all():
        out.append({"post": post, "draft_title": title, "draft_status": draft_status})
    return out


def _validate_platforms(platforms: List[str]) -> None:
    if not platforms:
        raise ValueError("platforms_required")
    for p in platforms:
        if not is_platform_supported(p):
            raise ValueError("unsupported_platform")


async def _get_owned(db: AsyncSession, user_id: str, scheduled_post_id: UUID) -> ScheduledPost:
    r = await db.execute(
        select(ScheduledPost).where(
            ScheduledPost.id == scheduled_post_id,
            ScheduledPost.user_id == user_id,
        )
    )
    post = r.scalar_one_or_none()
    if not post:
        raise ValueError("scheduled_post_not_found")
    return post


async def create_scheduled_post(
    db: AsyncSession,
    user_id: str,
    draft_id: UUID,
    platforms: List[str],
    scheduled_at: datetime,
) -> ScheduledPost:
    """Draft phải tồn tại và thuộc user; mỗi draft chỉ có 1 lịch pending; draft -> scheduled."""
    _validate_platforms(platforms)
    scheduled_at = _as_utc(scheduled_at)
    if scheduled_at <= utc_now():
        raise ValueError("scheduled_at_must_be_future")

    r = await db.execute(select(Draft).where(Draft.id == draft_id, Draft.user_id == user_id))
    draft = r.scalar_one_or_none()
    if not draft:
        raise ValueError("draft_not_found")

    existing = await db.execute(
        select(ScheduledPost.id).where(
            ScheduledPost.draft_id == draft_id,
            ScheduledPost.status == SCHEDULE_PENDING,
        )
    )
    if existing.first() is not None:
        raise ValueError("draft_already_scheduled")

    post = ScheduledPost(
        draft_id=draft_id,
        user_id=user_id,
        platforms=list(platforms),
        scheduled_at=scheduled_at,
        status=SCHEDULE_PENDING,
        retry_count=0,
    )
    db.add(post)
    draft.status = DRAFT_STATUS_SCHEDULED
    draft.scheduled_at = scheduled_at
    await db.flush()
    logger.info("scheduler.post_created", scheduled_post_id=str(post.id), draft_id=str(draft_id))
    return post


async def update_scheduled_post(
    db: AsyncSession,
    user_id: str,
    scheduled_post_id: UUID,
    platforms: Optional[List[str]] = None,
    scheduled_at: Optional[datetime] = None,
) -> ScheduledPost:
    """Chỉ sửa được khi còn pending."""
    post = await _get_owned(db, user_id, scheduled_post_id)
    if post.status != SCHEDULE_PENDING:
        raise ValueError("scheduled_post_not_pending")
    if platforms is not None:
        _validate_platforms(platforms)
        post.platforms = list(platforms)
    if scheduled_at is not None:
        scheduled_at = _as_utc(scheduled_at)
        if scheduled_at <= utc_now():
            raise ValueError("scheduled_at_must_be_future")
        post.scheduled_at = scheduled_at
        draft = await db.get(Draft, post.draft_id)
        if draft:
            draft.scheduled_at = scheduled_at
    await db.flush()
    return post


async def cancel_scheduled_post(db: AsyncSession, user_id: str, scheduled_post_id: UUID) -> ScheduledPost:
    """pending -> cancelled; draft đang scheduled quay về draft."""
    post = await _get_owned(db, user_id, scheduled_post_id)
    if post.status != SCHEDULE_PENDING:
        raise ValueError("scheduled_post_not_pending")
    post.status = SCHEDULE_CANCELLED
    draft = await db.get(Draft, post.draft_id)
    if draft and draft.status == DRAFT_STATUS_SCHEDULED:
        draft.status = DRAFT_STATUS_DRAFT
        draft.scheduled_at = None
    await db.flush()
    logger.info("scheduler.post_cancelled", scheduled_post_id=str(post.id))
    return post


# --- In-process timer ---


def get_scheduler_status() -> dict:
    """enabled, interval_seconds, last_tick_at. pending_count cần db."""
    settings = get_settings()
    return {
        "enabled": _enabled,
        "interval_seconds": settings.scheduler_interval_seconds,
        "last_tick_at": _last_tick_at.isoformat() if _last_tick_at else None,
        "pending_count": None,
    }


async def _pending_count(db: AsyncSession) -> int:
    r = await db.execute(
        select(func.count(ScheduledPost.id)).where(ScheduledPost.status == SCHEDULE_PENDING)
    )
    return r.scalar() or 0


async def get_scheduler_status_with_pending(db: AsyncSession) -> dict:
    count = await _pending_count(db)
    out = get_scheduler_status()
    out["pending_count"] = count
    return out


async def _tick() -> None:
    """Một vòng timer: chạy sweep trong session riêng."""
    global _last_tick_at
    _last_tick_at = utc_now()
    logger.info("scheduler.tick", at=_last_tick_at.isoformat())
    async with async_session_factory() as db:
        try:
            await process_due_posts(db, now=_last_tick_at)
        except Exception as e:
            logger.warning("scheduler.tick_error", error=str(e))
            await db.rollback()


async def _scheduler_loop() -> None:
    interval = max(1, get_settings().scheduler_interval_seconds)
    while _stop_event is not None and not _stop_event.is_set():
        try:
            await _tick()
        except Exception as e:
            logger.warning("scheduler.loop_error", error=str(e))
        try:
            await asyncio.wait_for(_stop_event.wait(), timeout=interval)
        except asyncio.TimeoutError:
            pass


async def start_scheduler(app: object) -> None:
    """Khởi động timer (gọi từ lifespan startup) nếu SCHEDULER_ENABLED."""
    global _scheduler_task, _stop_event, _enabled
    settings = get_settings()
    if _scheduler_task is not None or not settings.scheduler_enabled:
        return
    _enabled = True
    _stop_event = asyncio.Event()
    _scheduler_task = asyncio.create_task(_scheduler_loop())
    logger.info("scheduler.started", interval_seconds=settings.scheduler_interval_seconds)


async def stop_scheduler() -> None:
    global _scheduler_task, _stop_event, _enabled
    _enabled = False
    if _stop_event:
        _stop_event.set()
    if _scheduler_task:
        _scheduler_task.cancel()
        try:
            await _scheduler_task
        except asyncio.CancelledError:
            pass
    _scheduler_task = None
    _stop_event = None
    logger.info("scheduler.stopped")
