"""Draft request/response schemas."""
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class DraftCreateRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=512)
    content: str = Field("", description="Markdown body")
    platforms: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    thumbnail_url: Optional[str] = None
    seo_title: Optional[str] = Field(None, max_length=255)
    seo_description: Optional[str] = Field(None, max_length=512)


class DraftUpdateRequest(BaseModel):
    """Field None = giữ nguyên."""

    title: Optional[str] = Field(None, min_length=1, max_length=512)
    content: Optional[str] = None
    platforms: Optional[List[str]] = None
    tags: Optional[List[str]] = None
    thumbnail_url: Optional[str] = None
    seo_title: Optional[str] = Field(None, max_length=255)
    seo_description: Optional[str] = Field(None, max_length=512)


class DraftOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    title: str
    content: str
    content_preview: Optional[str] = None
    status: str
    platforms: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    thumbnail_url: Optional[str] = None
    seo_title: Optional[str] = None
    seo_description: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    published_at: Optional[datetime] = None
    scheduled_at: Optional[datetime] = None


class DraftListOut(BaseModel):
    items: List[DraftOut]
    total: int
    page: int
    limit: int
