"""API routers."""
from post_scheduler.routers.health_router import router as health_router
from post_scheduler.routers.posts_router import router as posts_router
from post_scheduler.routers.violations_router import router as violations_router
from post_scheduler.routers.compliance_router import router as compliance_router
from post_scheduler.routers.cron_router import router as cron_router
from post_scheduler.routers.scheduler_router import router as scheduler_router

__all__ = [
    "health_router",
    "posts_router",
    "violations_router",
    "compliance_router",
    "cron_router",
    "scheduler_router",
]
