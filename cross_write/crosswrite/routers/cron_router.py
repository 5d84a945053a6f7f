"""
Cron endpoint: chạy một sweep scheduled posts.
CRON_SECRET có cấu hình => Authorization phải đúng "Bearer <secret>", sai => 401, không đụng DB.
Lỗi nội bộ trả 500 kèm envelope, không raise ra ngoài route.
"""
import hmac
from typing import Optional

from fastapi import APIRouter, Depends, Header, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from crosswrite.config import get_settings
from crosswrite.db import get_db, utc_now
from crosswrite.logging_config import get_logger
from crosswrite.services.scheduler_service import process_due_posts

router = APIRouter(prefix="/api/cron", tags=["cron"])
logger = get_logger(__name__)


def _authorized(authorization: Optional[str]) -> bool:
    secret = get_settings().cron_secret
    if not secret:
        return True
    return hmac.compare_digest((authorization or "").encode(), f"Bearer {secret}".encode())


@router.api_route("/process-scheduled-posts", methods=["GET", "POST"])
async def process_scheduled_posts(
    authorization: Optional[str] = Header(None),
    db: AsyncSession = Depends(get_db),
) -> JSONResponse:
    timestamp = utc_now().isoformat()
    if not _authorized(authorization):
        logger.warning("cron.unauthorized")
        return JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED,
            content={"success": False, "error": "Unauthorized", "timestamp": timestamp},
        )
    try:
        result = await process_due_posts(db)
    except Exception as e:
        logger.error("cron.sweep_failed", error=str(e))
        await db.rollback()
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"success": False, "error": "Internal server error", "timestamp": utc_now().isoformat()},
        )
    return JSONResponse(content={"success": True, "data": result, "timestamp": utc_now().isoformat()})
