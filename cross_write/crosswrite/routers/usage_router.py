"""Usage/quota API."""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from crosswrite.db import get_db
from crosswrite.dependencies import get_current_user_id
from crosswrite.schemas.common import ApiResponse, ok
from crosswrite.schemas.usage import UsageCheckOut, UsageCheckRequest, UsageSummaryOut
from crosswrite.services.usage_service import get_usage_summary, require_usage

router = APIRouter(prefix="/api/usage", tags=["usage"])


@router.get("", response_model=ApiResponse[UsageSummaryOut])
async def get_usage(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> dict:
    """Plan hiện tại + used/limit từng metric trong tháng."""
    return ok(await get_usage_summary(db, user_id))


@router.post("/check", response_model=ApiResponse[UsageCheckOut])
async def post_usage_check(
    payload: UsageCheckRequest,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> dict:
    """Check có tính quota (counter luôn được cộng). Hết quota => 403 kèm current/limit."""
    result = await require_usage(db, user_id, payload.metric, payload.increment)
    return ok(result.as_dict())
