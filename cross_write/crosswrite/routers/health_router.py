# Health: /health (LB), /api/healthz (liveness), /api/readyz (DB + Redis nếu có).
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from crosswrite.config import get_settings
from crosswrite.db import get_db
from crosswrite.logging_config import get_logger

router = APIRouter(tags=["health"])
logger = get_logger(__name__)


@router.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/api/healthz")
def healthz() -> dict[str, str]:
    """Liveness: luôn 200."""
    return {"status": "ok"}


@router.get("/api/readyz")
async def readyz(db: AsyncSession = Depends(get_db)):
    """Readiness: 200 khi DB (và Redis nếu cấu hình REDIS_URL) sẵn sàng, 503 nếu lỗi."""
    try:
        await db.execute(text("SELECT 1"))
    except Exception as e:
        logger.warning("readyz.db_fail", error=str(e))
        return JSONResponse(status_code=503, content={"status": "unhealthy", "db": "fail"})

    settings = get_settings()
    redis_state = "skipped"
    if settings.redis_url:
        try:
            from redis.asyncio import Redis

            client = Redis.from_url(settings.redis_url, decode_responses=True)
            try:
                await client.ping()
            finally:
                await client.aclose()
            redis_state = "ok"
        except Exception as e:
            logger.warning("readyz.redis_fail", error=str(e))
            return JSONResponse(status_code=503, content={"status": "unhealthy", "redis": "fail"})

    return {"status": "ok", "db": "ok", "redis": redis_state}
