"""
AI endpoints.
- POST /api/ai/text: plan phải bật AI, tính 1 ai_suggestions_used, gọi text model.
- POST /api/ai/thumbnail: chặn credential do client gửi, rate limit theo IP, kiểm tra plan/quota, ảnh mock.
"""
import time
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from crosswrite.config import get_settings
from crosswrite.db import get_db
from crosswrite.dependencies import get_current_user_id
from crosswrite.errors import error_body
from crosswrite.logging_config import get_logger
from crosswrite.schemas.ai import AiTextRequest, AiTextResponse, ThumbnailRequest, ThumbnailResponse
from crosswrite.schemas.common import ApiResponse, ok
from crosswrite.services.ai_provider import get_ai_provider
from crosswrite.services.plans import UsageMetric, can_use_ai, get_plan_limits
from crosswrite.services.usage_service import get_user_plan_id, require_usage
from crosswrite.utils.rate_limit import build_rate_limiter, client_identifier

router = APIRouter(prefix="/api/ai", tags=["ai"])
logger = get_logger(__name__)

# Key phải lấy từ cấu hình server, không nhận từ client.
FORBIDDEN_CREDENTIAL_FIELDS = ("byokKey", "apiKey", "openaiApiKey", "openai_api_key", "api_key")
MOCK_IMAGE_COUNT = 4

_thumbnail_limiter = None


def _get_thumbnail_limiter():
    global _thumbnail_limiter
    if _thumbnail_limiter is None:
        _thumbnail_limiter = build_rate_limiter(get_settings().thumbnail_rate_limit_per_min)
    return _thumbnail_limiter


def reset_thumbnail_rate_limiter() -> None:
    global _thumbnail_limiter
    _thumbnail_limiter = None


@router.post("/text", response_model=ApiResponse[AiTextResponse])
async def post_ai_text(
    payload: AiTextRequest,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> dict:
    """Gọi text model theo purpose; 403 khi plan không có AI hoặc hết quota, 503 khi provider lỗi."""
    plan_id = await get_user_plan_id(db, user_id)
    if not can_use_ai(plan_id):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="AI features are not available for this plan")
    usage = await require_usage(db, user_id, UsageMetric.AI_SUGGESTIONS_USED)
    try:
        text = await get_ai_provider().call_text_model(
            payload.purpose,
            payload.text,
            caller_id=user_id,
            model=payload.model,
            temperature=payload.temperature,
        )
    except ValueError as e:
        if str(e) == "input_required":
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Input text is required")
        raise
    return ok(AiTextResponse(purpose=payload.purpose.value, text=text, usage=usage.as_dict()))


def _rate_headers(remaining: int, reset_at: float) -> Dict[str, str]:
    return {"X-RateLimit-Remaining": str(remaining), "X-RateLimit-Reset": str(int(reset_at))}


@router.post("/thumbnail", response_model=ThumbnailResponse)
async def post_ai_thumbnail(request: Request) -> Any:
    try:
        body = await request.json()
    except ValueError:
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=error_body("Invalid JSON body"))
    if not isinstance(body, dict):
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=error_body("Invalid request body"))

    if any(field in body for field in FORBIDDEN_CREDENTIAL_FIELDS):
        logger.warning("ai.thumbnail_credential_rejected")
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=error_body("API keys must not be sent by the client"),
        )

    key = client_identifier(request.headers, request.client.host if request.client else None)
    limit = await _get_thumbnail_limiter().hit(key)
    headers = _rate_headers(limit.remaining, limit.reset_at)
    if not limit.allowed:
        return JSONResponse(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            content=error_body("Too many requests. Please try again later."),
            headers=headers,
        )

    try:
        payload = ThumbnailRequest.model_validate(body)
    except ValidationError:
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=error_body("Invalid request body"))

    limits = get_plan_limits(payload.plan_id)
    if limits is None:
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=error_body("Invalid plan"))
    if not limits.ai_enabled:
        return JSONResponse(
            status_code=status.HTTP_403_FORBIDDEN,
            content=error_body("AI features are not available for this plan"),
        )
    if limits.monthly_thumbnails == 0:
        return JSONResponse(
            status_code=status.HTTP_403_FORBIDDEN,
            content=error_body("Thumbnail generation is not available for this plan"),
        )
    used = payload.usage.thumbnails_this_month
    if used >= limits.monthly_thumbnails:
        return JSONResponse(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            content=error_body("Monthly thumbnail generation limit reached"),
        )

    # Ảnh mock; image model thật nằm sau AIProvider.call_image_model.
    seed = int(time.time() * 1000)
    images = [f"https://picsum.photos/800/450?random={seed + i}" for i in range(MOCK_IMAGE_COUNT)]
    logger.info("ai.thumbnail_generated", plan_id=payload.plan_id, count=len(images))
    return JSONResponse(
        content=ThumbnailResponse(
            images=images,
            usage={"thumbnailsThisMonth": used + 1, "limit": limits.monthly_thumbnails},
        ).model_dump(),
        headers=headers,
    )
