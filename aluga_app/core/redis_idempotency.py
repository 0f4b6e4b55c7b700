import logging
import uuid
from typing import Awaitable, Callable

from redis.asyncio import Redis, from_url

from .settings import settings

logger = logging.getLogger(__name__)


class DuplicateRequestError(RuntimeError):
    pass


class RedisLockManager:
    """Owns the one Redis client every payment lock shares."""

    def __init__(self):
        self.redis: Redis | None = None

    def client(self) -> Redis | None:
        if self.redis is None and settings.REDIS_URL:
            self.redis = from_url(settings.REDIS_URL, decode_responses=True)
        return self.redis

    async def close(self):
        if self.redis is not None:
            await self.redis.aclose()
            self.redis = None


redis_lock_manager = RedisLockManager()


class RedisIdempotency:
    """Short-lived ``SET NX`` locks that keep one request per key in flight."""

    def __init__(self, namespace: str = "idempotency", client: Redis | None = None):
        self.namespace = namespace
        self.client = client if client is not None else redis_lock_manager.client()

    def _key(self, key: str) -> str:
        return f"{self.namespace}:{key}"

    async def acquire(self, key: str, ttl: int) -> str | None:
        token = uuid.uuid4().hex
        acquired = await self.client.set(self._key(key), token, ex=ttl, nx=True)
        return token if acquired else None

    async def release(self, key: str, token: str):
        current = await self.client.get(self._key(key))
        if current == token:
            await self.client.delete(self._key(key))

    async def run_once(
        self,
        key: str,
        coro: Callable[[], Awaitable],
        ttl: int | None = None,
    ):
        if self.client is None:
            logger.warning("REDIS_URL not set; running %s without a lock.", key)
            return await coro()

        token = await self.acquire(key, ttl or settings.PAYMENT_LOCK_TTL_SECONDS)
        if token is None:
            raise DuplicateRequestError(
                "Duplicate request in progress or already processed"
            )
        try:
            return await coro()
        finally:
            await self.release(key, token)
