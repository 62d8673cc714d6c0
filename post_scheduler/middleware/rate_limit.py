"""
Rate limit middleware: Redis sliding window keyed by X-Profile-ID or the bearer token.
Default 60 req/min per key. Without REDIS_URL nothing is limited.
The cron trigger is limited like any other caller.
"""
import hashlib
import time
import uuid
from typing import Callable, Optional

from fastapi import Request, Response
from redis.asyncio import Redis
from redis.exceptions import RedisError
from starlette.middleware.base import BaseHTTPMiddleware

from post_scheduler.config import get_settings
from post_scheduler.logging_config import get_logger

logger = get_logger(__name__)

REDIS_KEY_PREFIX = "rl:"
WINDOW_SECONDS = 60


def rate_limit_key(request: Request) -> Optional[str]:
    """profile:<id> or bearer:<sha256 prefix>; None = unkeyed request, not limited."""
    profile = request.headers.get("X-Profile-ID", "").strip()
    if profile:
        return f"profile:{profile[:64]}"
    auth = request.headers.get("Authorization", "").strip()
    if auth.lower().startswith("bearer "):
        digest = hashlib.sha256(auth[7:].strip().encode()).hexdigest()[:16]
        return f"bearer:{digest}"
    return None


async def _check_sliding_window(redis_url: str, key: str, limit: int) -> bool:
    """
    Sliding window: ZADD now, ZREMRANGEBYSCORE -inf (now-60), ZCARD.
    True when the request is allowed. Redis errors fail open.
    """
    now = time.time()
    rkey = REDIS_KEY_PREFIX + key
    client = Redis.from_url(redis_url, decode_responses=True)
    try:
        pipe = client.pipeline()
        pipe.zadd(rkey, {str(uuid.uuid4()): now})
        pipe.zremrangebyscore(rkey, "-inf", now - WINDOW_SECONDS)
        pipe.zcard(rkey)
        pipe.expire(rkey, WINDOW_SECONDS + 10)
        results = await pipe.execute()
        return results[2] <= limit
    except RedisError as e:
        logger.warning("rate_limit.redis_error", key=key, error=str(e))
        return True
    finally:
        await client.aclose()


class RateLimitMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        settings = get_settings()
        if not settings.redis_url:
            return await call_next(request)
        key = rate_limit_key(request)
        if not key:
            return await call_next(request)
        limit = settings.rate_limit_per_min
        if not await _check_sliding_window(settings.redis_url, key, limit):
            logger.info("rate_limit.exceeded", key=key, limit=limit)
            return Response(
                content='{"detail":"Rate limit exceeded."}',
                status_code=429,
                media_type="application/json",
            )
        return await call_next(request)
