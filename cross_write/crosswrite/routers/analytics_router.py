"""Analytics API: các view có cache TTL + ingest event + export."""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from crosswrite.db import get_db
from crosswrite.dependencies import get_current_user_id
from crosswrite.schemas.analytics import AnalyticsEventCreate, AnalyticsEventOut
from crosswrite.schemas.common import ApiResponse, ok
from crosswrite.services.analytics_service import (
    DateRange,
    export_analytics,
    get_overview,
    get_platforms,
    get_publish_success,
    get_timeseries,
    get_top_posts_view,
    parse_date_range,
    record_event,
)

router = APIRouter(prefix="/api/analytics", tags=["analytics"])

_ERRORS = {
    "invalid_date": "Invalid date format",
    "invalid_date_range": "Start date must be before or equal to end date",
    "invalid_granularity": "Granularity must be 'day' or 'week'",
    "invalid_view": "Invalid view type",
    "invalid_format": "Format must be 'csv' or 'json'",
    "invalid_metric_value": "Metric values must be non-negative",
}


def _bad_request(e: ValueError) -> HTTPException:
    if str(e) == "draft_not_found":
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Draft not found")
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=_ERRORS.get(str(e), str(e)))


def date_range(
    start: Optional[str] = Query(None, alias="from"),
    end: Optional[str] = Query(None, alias="to"),
    granularity: Optional[str] = Query(None),
) -> DateRange:
    try:
        return parse_date_range(start, end, granularity)
    except ValueError as e:
        raise _bad_request(e)


@router.get("/overview", response_model=ApiResponse[dict])
async def get_analytics_overview(
    rng: DateRange = Depends(date_range),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> dict:
    """Tổng reads/reactions/clicks/shares, số post, CTR."""
    return ok(await get_overview(db, user_id, rng))


@router.get("/timeseries", response_model=ApiResponse[dict])
async def get_analytics_timeseries(
    rng: DateRange = Depends(date_range),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> dict:
    return ok(await get_timeseries(db, user_id, rng))


@router.get("/platforms", response_model=ApiResponse[dict])
async def get_analytics_platforms(
    rng: DateRange = Depends(date_range),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> dict:
    return ok(await get_platforms(db, user_id, rng))


@router.get("/top-posts", response_model=ApiResponse[dict])
async def get_analytics_top_posts(
    rng: DateRange = Depends(date_range),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> dict:
    return ok(await get_top_posts_view(db, user_id, rng))


@router.get("/publish-success", response_model=ApiResponse[dict])
async def get_analytics_publish_success(
    rng: DateRange = Depends(date_range),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> dict:
    return ok(await get_publish_success(db, user_id, rng))


@router.get("/export", response_model=ApiResponse[dict])
async def get_analytics_export(
    view: str = Query("overview"),
    fmt: str = Query("csv", alias="format"),
    rng: DateRange = Depends(date_range),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> dict:
    try:
        return ok(await export_analytics(db, user_id, view, fmt, rng))
    except ValueError as e:
        raise _bad_request(e)


@router.post("/events", response_model=ApiResponse[AnalyticsEventOut], status_code=status.HTTP_201_CREATED)
async def post_analytics_event(
    payload: AnalyticsEventCreate,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> dict:
    try:
        event = await record_event(db, user_id, **payload.model_dump())
    except ValueError as e:
        raise _bad_request(e)
    return ok(AnalyticsEventOut.model_validate(event))
