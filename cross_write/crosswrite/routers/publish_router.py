"""Publish draft lên các platform đã kết nối."""
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from crosswrite.db import get_db
from crosswrite.dependencies import get_current_user_id
from crosswrite.schemas.common import ApiResponse, ok
from crosswrite.schemas.publish import PublishRequest, PublishResponse
from crosswrite.services.plans import UsageMetric
from crosswrite.services.publish_service import PublishOptions, publish_to_platforms
from crosswrite.services.usage_service import require_usage

router = APIRouter(prefix="/api/publish", tags=["publish"])


@router.post("", response_model=ApiResponse[PublishResponse])
async def post_publish(
    payload: PublishRequest,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> dict:
    """
    Dispatch draft tới từng platform. Tính 1 articles_published (403 khi hết quota).
    Lỗi từng platform nằm trong results, không phải lỗi HTTP.
    """
    await require_usage(db, user_id, UsageMetric.ARTICLES_PUBLISHED)
    try:
        result = await publish_to_platforms(
            db,
            user_id,
            payload.draft_id,
            payload.platforms,
            PublishOptions(**payload.options.model_dump()),
        )
    except ValueError as e:
        if str(e) == "draft_not_found":
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Draft not found")
        if str(e) == "platforms_required":
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="At least one platform is required")
        raise
    return ok(result)
