"""FastAPI application entrypoint."""
from contextlib import asynccontextmanager

from fastapi import FastAPI

from post_scheduler import __version__
from post_scheduler.logging_config import configure_logging, get_logger
from post_scheduler.middleware.correlation_id import CorrelationIdMiddleware
from post_scheduler.middleware.rate_limit import RateLimitMiddleware
from post_scheduler.routers import (
    compliance_router,
    cron_router,
    health_router,
    posts_router,
    scheduler_router,
    violations_router,
)
from post_scheduler.services.reminder_scheduler import start_scheduler, stop_scheduler

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown: logging, optional in-process reminder loop."""
    configure_logging()
    logger.info("app_started", version=__version__)
    await start_scheduler(app)
    yield
    await stop_scheduler()
    logger.info("app_shutdown")


app = FastAPI(
    title="Dealer Post Scheduler",
    version=__version__,
    lifespan=lifespan,
)
app.add_middleware(RateLimitMiddleware)
app.add_middleware(CorrelationIdMiddleware)

app.include_router(health_router)
app.include_router(posts_router)
app.include_router(violations_router)
app.include_router(compliance_router)
app.include_router(cron_router)
app.include_router(scheduler_router)


@app.get("/")
def root() -> dict[str, str]:
    """Root endpoint: app name and version."""
    return {"name": "post_scheduler", "version": __version__}
