"""Integration schemas. Credential không bao giờ trả ra ngoài."""
from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class IntegrationConnectRequest(BaseModel):
    platform: str = Field(..., description="devto | hashnode | beehiiv")
    api_key: str = Field(..., min_length=1)
    publication_id: Optional[str] = None


class IntegrationUpdateRequest(BaseModel):
    publication_id: Optional[str] = None
    auto_publish: Optional[bool] = None
    sync_interval: Optional[int] = Field(None, ge=1, description="Minutes")


class IntegrationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    platform: str
    publication_id: Optional[str] = None
    status: str
    auto_publish: bool
    sync_interval: int
    connected_at: Optional[datetime] = None
    last_sync: Optional[datetime] = None


class IntegrationTestOut(BaseModel):
    integration: IntegrationOut
    success: bool
    error: Optional[str] = None
