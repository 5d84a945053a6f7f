"""Analytics schemas."""
from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class AnalyticsEventCreate(BaseModel):
    """Body cho POST /api/analytics/events."""

    draft_id: UUID
    platform: str = Field(..., min_length=1, max_length=64)
    reads: int = Field(0, ge=0)
    reactions: int = Field(0, ge=0)
    clicks: int = Field(0, ge=0)
    shares: int = Field(0, ge=0)
    recorded_at: Optional[datetime] = None


class AnalyticsEventOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    draft_id: UUID
    platform: str
    reads: int
    reactions: int
    clicks: int
    shares: int
    recorded_at: datetime
