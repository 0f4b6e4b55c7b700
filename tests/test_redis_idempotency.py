"""Tests for the Redis request lock."""

import pytest

from core.redis_idempotency import (
    DuplicateRequestError,
    RedisIdempotency,
    RedisLockManager,
)
from core.settings import settings


class FakeRedis:
    def __init__(self):
        self.store = {}
        self.ttls = {}

    async def set(self, key, value, ex=None, nx=False):
        if nx and key in self.store:
            return None
        self.store[key] = value
        self.ttls[key] = ex
        return True

    async def get(self, key):
        return self.store.get(key)

    async def delete(self, key):
        self.store.pop(key, None)
        self.ttls.pop(key, None)


@pytest.mark.asyncio
async def test_run_once_releases_the_lock():
    redis = FakeRedis()
    lock = RedisIdempotency(namespace="pix-create", client=redis)

    async def work():
        assert "pix-create:booking-1" in redis.store
        return "done"

    assert await lock.run_once("booking-1", work, ttl=30) == "done"
    assert redis.store == {}


@pytest.mark.asyncio
async def test_concurrent_duplicate_is_refused():
    redis = FakeRedis()
    lock = RedisIdempotency(namespace="pix-create", client=redis)
    await redis.set("pix-create:booking-1", "other-token", ex=30, nx=True)

    async def work():
        raise AssertionError("must not run")

    with pytest.raises(DuplicateRequestError):
        await lock.run_once("booking-1", work)
    assert redis.store["pix-create:booking-1"] == "other-token"


@pytest.mark.asyncio
async def test_lock_is_released_when_the_work_fails():
    redis = FakeRedis()
    lock = RedisIdempotency(namespace="pix-create", client=redis)

    async def work():
        raise RuntimeError("provider down")

    with pytest.raises(RuntimeError):
        await lock.run_once("booking-1", work)
    assert redis.store == {}


@pytest.mark.asyncio
async def test_release_leaves_a_foreign_lock_alone():
    redis = FakeRedis()
    lock = RedisIdempotency(namespace="pix-create", client=redis)
    token = await lock.acquire("booking-1", ttl=30)
    redis.store["pix-create:booking-1"] = "someone-else"

    await lock.release("booking-1", token)
    assert redis.store["pix-create:booking-1"] == "someone-else"


@pytest.mark.asyncio
async def test_without_redis_the_work_just_runs():
    lock = RedisIdempotency(namespace="pix-create")
    assert lock.client is None

    async def work():
        return 42

    assert await lock.run_once("booking-1", work) == 42


@pytest.mark.asyncio
async def test_locks_share_one_client_until_shutdown(monkeypatch):
    monkeypatch.setattr(settings, "REDIS_URL", "redis://localhost:6379/0")
    manager = RedisLockManager()
    monkeypatch.setattr("core.redis_idempotency.redis_lock_manager", manager)

    first = RedisIdempotency(namespace="pix-create")
    second = RedisIdempotency(namespace="pix-create")
    assert first.client is not None
    assert first.client is second.client

    await manager.close()
    assert manager.redis is None
    assert RedisIdempotency(namespace="pix-create").client is not first.client
    await manager.close()
