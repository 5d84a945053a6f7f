"""Scheduler schemas: status, scheduled post CRUD, kết quả sweep."""
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class SchedulerStatusResponse(BaseModel):
    """GET /api/scheduler/status."""

    enabled: bool
    interval_seconds: int
    last_tick_at: Optional[str] = None
    pending_count: Optional[int] = None


class ScheduledPostCreateRequest(BaseModel):
    draft_id: UUID
    platforms: List[str] = Field(..., min_length=1)
    scheduled_at: datetime = Field(..., description="Phải ở tương lai; không có tz => UTC")


class ScheduledPostUpdateRequest(BaseModel):
    platforms: Optional[List[str]] = Field(None, min_length=1)
    scheduled_at: Optional[datetime] = None


class ScheduledPostOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    draft_id: UUID
    platforms: List[str]
    scheduled_at: datetime
    status: str
    published_at: Optional[datetime] = None
    error_message: Optional[str] = None
    retry_count: int
    created_at: datetime
    draft_title: Optional[str] = None
    draft_status: Optional[str] = None


class SweepError(BaseModel):
    scheduled_post_id: str
    error: str


class SweepResult(BaseModel):
    processed: int
    successful: int
    failed: int
    retried: int
    errors: List[SweepError] = Field(default_factory=list)
