"""FastAPI application entrypoint."""
from contextlib import asynccontextmanager

from fastapi import FastAPI

from crosswrite import __version__
from crosswrite.errors import register_exception_handlers
from crosswrite.logging_config import configure_logging, get_logger
from crosswrite.middleware.correlation_id import CorrelationIdMiddleware
from crosswrite.routers import (
    ai_router,
    analytics_router,
    cron_router,
    drafts_router,
    health_router,
    integrations_router,
    publish_router,
    scheduler_router,
    usage_router,
)
from crosswrite.services.scheduler_service import start_scheduler, stop_scheduler

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown: logging, scheduler timer (nếu SCHEDULER_ENABLED)."""
    configure_logging()
    logger.info("app_started", version=__version__)
    await start_scheduler(app)
    yield
    await stop_scheduler()
    logger.info("app_shutdown")


app = FastAPI(
    title="Cross Write",
    version=__version__,
    lifespan=lifespan,
)
app.add_middleware(CorrelationIdMiddleware)
register_exception_handlers(app)

app.include_router(health_router)
app.include_router(drafts_router)
app.include_router(integrations_router)
app.include_router(publish_router)
app.include_router(scheduler_router)
app.include_router(cron_router)
app.include_router(analytics_router)
app.include_router(ai_router)
app.include_router(usage_router)


@app.get("/")
def root() -> dict[str, str]:
    """Root endpoint: app name and version."""
    return {"name": "cross_write", "version": __version__}
