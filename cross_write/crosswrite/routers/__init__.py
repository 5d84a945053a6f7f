"""API routers."""
from crosswrite.routers.health_router import router as health_router
from crosswrite.routers.drafts_router import router as drafts_router
from crosswrite.routers.integrations_router import router as integrations_router
from crosswrite.routers.publish_router import router as publish_router
from crosswrite.routers.scheduler_router import router as scheduler_router
from crosswrite.routers.cron_router import router as cron_router
from crosswrite.routers.analytics_router import router as analytics_router
from crosswrite.routers.ai_router import router as ai_router
from crosswrite.routers.usage_router import router as usage_router

__all__ = [
    "health_router",
    "drafts_router",
    "integrations_router",
    "publish_router",
    "scheduler_router",
    "cron_router",
    "analytics_router",
    "ai_router",
    "usage_router",
]
