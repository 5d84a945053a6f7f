"""AI request/response schemas."""
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from crosswrite.services.ai_provider import AiPurpose


class AiTextRequest(BaseModel):
    purpose: AiPurpose
    text: str = Field(..., description="Input; cắt bớt nếu quá dài")
    model: Optional[str] = Field(None, description="Ngoài allow-list => model mặc định")
    temperature: Optional[float] = Field(None, ge=0, le=2)


class AiTextResponse(BaseModel):
    purpose: str
    text: str
    usage: Dict[str, Any]


class ThumbnailUsage(BaseModel):
    # camelCase giữ nguyên theo contract của client.
    model_config = ConfigDict(populate_by_name=True)

    thumbnails_this_month: int = Field(0, ge=0, alias="thumbnailsThisMonth")


class ThumbnailRequest(BaseModel):
    """Body cho POST /api/ai/thumbnail. Field credential bị chặn ở router trước khi parse."""

    model_config = ConfigDict(populate_by_name=True)

    prompt: str = ""
    aspect_ratio: Optional[str] = Field(None, alias="aspectRatio")
    size: Optional[str] = None
    plan_id: str = Field(..., alias="planId")
    usage: ThumbnailUsage = Field(default_factory=ThumbnailUsage)


class ThumbnailResponse(BaseModel):
    success: bool = True
    images: List[str]
    usage: Dict[str, Any]
