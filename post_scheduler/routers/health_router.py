"""Liveness and readiness probes."""
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from redis.asyncio import Redis
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from post_scheduler import __version__
from post_scheduler.config import get_settings
from post_scheduler.db import get_db
from post_scheduler.logging_config import get_logger

router = APIRouter(tags=["health"])
logger = get_logger(__name__)


@router.get("/health")
def health() -> dict[str, str]:
    """Liveness for load balancer / Docker. Always 200 while the process runs."""
    return {"status": "ok", "version": __version__}


@router.get("/health/ready")
async def ready(db: AsyncSession = Depends(get_db)):
    """Readiness: database, and Redis when REDIS_URL is set. 503 when either is down."""
    try:
        await db.execute(text("SELECT 1"))
    except Exception as e:
        logger.warning("readyz.db_fail", error=str(e))
        return JSONResponse(status_code=503, content={"status": "unhealthy", "db": "fail"})

    settings = get_settings()
    redis_state = "skipped"
    if settings.redis_url:
        client = Redis.from_url(settings.redis_url, decode_responses=True)
        try:
            await client.ping()
            redis_state = "ok"
        except Exception as e:
            logger.warning("readyz.redis_fail", error=str(e))
            return JSONResponse(status_code=503, content={"status": "unhealthy", "db": "ok", "redis": "fail"})
        finally:
            await client.aclose()
    return {"status": "ok", "db": "ok", "redis": redis_state}
