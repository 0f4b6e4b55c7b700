import logging

from fastapi import Depends, Request, Response
from fastapi_limiter import FastAPILimiter
from fastapi_limiter.depends import RateLimiter
from redis.asyncio import from_url

from .settings import settings

logger = logging.getLogger(__name__)


class RateLimitManager:
    def __init__(self):
        self.redis = None

    async def connect(self):
        if not settings.RATE_LIMIT_REDIS_URL:
            logger.warning("RATE_LIMIT_REDIS_URL not set; rate limiting disabled.")
            return
        self.redis = from_url(
            settings.RATE_LIMIT_REDIS_URL,
            encoding="utf-8",
            decode_responses=True,
        )
        await FastAPILimiter.init(self.redis)
        logger.info("Rate limiter initialized.")

    async def close(self):
        if self.redis is not None:
            await FastAPILimiter.close()
            self.redis = None

    async def user_or_ip(self, request: Request) -> str:
        user = getattr(request.state, "user", None)
        user_id = getattr(user, "id", None)
        if user_id is not None:
            return f"user:{user_id}"

        if request.client and request.client.host:
            return f"ip:{request.client.host}"
        return "anonymous"


rate_limiter_manager = RateLimitManager()
_limiter = RateLimiter(
    times=settings.RATE_LIMIT_TIMES,
    seconds=settings.RATE_LIMIT_SECONDS,
    identifier=rate_limiter_manager.user_or_ip,
)


async def throttle(request: Request, response: Response):
    if FastAPILimiter.redis is None:
        return
    await _limiter(request, response)


rate_limit = Depends(throttle)
