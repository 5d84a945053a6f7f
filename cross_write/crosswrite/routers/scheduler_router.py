"""Scheduled posts API + trạng thái timer."""
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from crosswrite.db import get_db
from crosswrite.dependencies import get_current_user_id
from crosswrite.models import ScheduledPost
from crosswrite.schemas.common import ApiResponse, ok
from crosswrite.schemas.scheduler import (
    ScheduledPostCreateRequest,
    ScheduledPostOut,
    ScheduledPostUpdateRequest,
    SchedulerStatusResponse,
)
from crosswrite.services.scheduler_service import (
    cancel_scheduled_post,
    create_scheduled_post,
    get_scheduler_status_with_pending,
    list_scheduled_posts,
    update_scheduled_post,
)

router = APIRouter(prefix="/api/scheduler", tags=["scheduler"])

_ERRORS = {
    "draft_not_found": (status.HTTP_404_NOT_FOUND, "Draft not found"),
    "scheduled_post_not_found": (status.HTTP_404_NOT_FOUND, "Scheduled post not found"),
    "scheduled_post_not_pending": (status.HTTP_409_CONFLICT, "Only pending posts can be changed"),
    "draft_already_scheduled": (status.HTTP_409_CONFLICT, "Draft already has a pending schedule"),
    "platforms_required": (status.HTTP_400_BAD_REQUEST, "At least one platform is required"),
    "unsupported_platform": (status.HTTP_400_BAD_REQUEST, "Unsupported platform"),
    "scheduled_at_must_be_future": (status.HTTP_400_BAD_REQUEST, "Scheduled time must be in the future"),
}


def _raise_for(e: ValueError) -> None:
    mapped = _ERRORS.get(str(e))
    if mapped:
        raise HTTPException(status_code=mapped[0], detail=mapped[1])
    raise e


def _out(post: ScheduledPost, draft_title: Optional[str] = None, draft_status: Optional[str] = None) -> ScheduledPostOut:
    out = ScheduledPostOut.model_validate(post)
    out.draft_title = draft_title
    out.draft_status = draft_status
    return out


@router.get("/status", response_model=SchedulerStatusResponse)
async def get_scheduler_status(
    db: AsyncSession = Depends(get_db),
) -> SchedulerStatusResponse:
    """Trạng thái timer: enabled, interval, last_tick_at, pending_count."""
    status_ = await get_scheduler_status_with_pending(db)
    return SchedulerStatusResponse(**status_)


@router.get("/posts", response_model=ApiResponse[list[ScheduledPostOut]])
async def get_scheduled_posts(
    status_filter: Optional[str] = Query(None, alias="status"),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> dict:
    rows = await list_scheduled_posts(db, user_id, status=status_filter)
    return ok([_out(r["post"], r["draft_title"], r["draft_status"]) for r in rows])


@router.post("/posts", response_model=ApiResponse[ScheduledPostOut], status_code=status.HTTP_201_CREATED)
async def post_scheduled_post(
    payload: ScheduledPostCreateRequest,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> dict:
    try:
        post = await create_scheduled_post(db, user_id, payload.draft_id, payload.platforms, payload.scheduled_at)
    except ValueError as e:
        _raise_for(e)
    return ok(_out(post))


@router.patch("/posts/{scheduled_post_id}", response_model=ApiResponse[ScheduledPostOut])
async def patch_scheduled_post(
    scheduled_post_id: UUID,
    payload: ScheduledPostUpdateRequest,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> dict:
    try:
        post = await update_scheduled_post(
            db,
            user_id,
            scheduled_post_id,
            platforms=payload.platforms,
            scheduled_at=payload.scheduled_at,
        )
    except ValueError as e:
        _raise_for(e)
    return ok(_out(post))


@router.post("/posts/{scheduled_post_id}/cancel", response_model=ApiResponse[ScheduledPostOut])
async def post_cancel_scheduled_post(
    scheduled_post_id: UUID,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> dict:
    try:
        post = await cancel_scheduled_post(db, user_id, scheduled_post_id)
    except ValueError as e:
        _raise_for(e)
    return ok(_out(post))
