"""Publish request/response."""
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class PublishOptionsIn(BaseModel):
    publish_as_draft: bool = False
    set_as_canonical: bool = False
    publication_id: Optional[str] = Field(None, description="Override publication id của integration")


class PublishRequest(BaseModel):
    """Body cho POST /api/publish."""

    draft_id: UUID
    platforms: List[str] = Field(..., min_length=1)
    options: PublishOptionsIn = Field(default_factory=PublishOptionsIn)


class PlatformResultOut(BaseModel):
    platform: str
    success: bool
    platform_post_id: Optional[str] = None
    platform_url: Optional[str] = None
    error: Optional[str] = None


class PublishSummary(BaseModel):
    total: int
    successful: int
    failed: int
    draft_id: str


class PublishResponse(BaseModel):
    results: List[PlatformResultOut]
    summary: PublishSummary
