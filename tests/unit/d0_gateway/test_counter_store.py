"""
Tests for quota counter stores
"""
import asyncio
from unittest.mock import AsyncMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from d0_gateway.counter_store import InMemoryCounterStore, RedisCounterStore
from d0_gateway.exceptions import QuotaStoreError

pytestmark = pytest.mark.unit


class FakeClock:
    def __init__(self, now=1_700_000_000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class TestInMemoryCounterStore:
    @pytest.mark.asyncio
    async def test_increments_within_window(self):
        clock = FakeClock()
        store = InMemoryCounterStore(clock=clock)

        first = await store.increment_and_get("k", 60)
        clock.advance(10)
        second = await store.increment_and_get("k", 60)

        assert (first.count, second.count) == (1, 2)
        # window anchored to the first hit
        assert first.reset_at == second.reset_at
        assert first.reset_at.timestamp() == pytest.approx(clock.now - 10 + 60)

    @pytest.mark.asyncio
    async def test_window_expires(self):
        clock = FakeClock()
        store = InMemoryCounterStore(clock=clock)

        await store.increment_and_get("k", 60)
        await store.increment_and_get("k", 60)
        clock.advance(60)
        result = await store.increment_and_get("k", 60)

        assert result.count == 1

    @pytest.mark.asyncio
    async def test_keys_independent(self):
        store = InMemoryCounterStore()
        await store.increment_and_get("a", 60)
        assert (await store.increment_and_get("b", 60)).count == 1

    @pytest.mark.asyncio
    async def test_peek_does_not_increment(self):
        clock = FakeClock()
        store = InMemoryCounterStore(clock=clock)

        assert await store.peek("k") is None
        await store.increment_and_get("k", 60)
        assert (await store.peek("k")).count == 1
        assert (await store.peek("k")).count == 1

        clock.advance(61)
        assert await store.peek("k") is None

    @pytest.mark.asyncio
    async def test_concurrent_increments_are_unique(self):
        store = InMemoryCounterStore()
        results = await asyncio.gather(*(store.increment_and_get("k", 60) for _ in range(100)))
        assert sorted(r.count for r in results) == list(range(1, 101))


class TestRedisCounterStore:
    def test_lua_script_loaded(self):
        store = RedisCounterStore(redis_client=AsyncMock())
        assert "INCR" in store._lua_script
        assert "EXPIRE" in store._lua_script

    @pytest.mark.asyncio
    async def test_increment_via_lua(self):
        mock_redis = AsyncMock()
        mock_redis.eval.return_value = [3, 3600]
        store = RedisCounterStore(redis_client=mock_redis)

        result = await store.increment_and_get("ratelimit:score:u1", 86400)

        assert result.count == 3
        args = mock_redis.eval.call_args[0]
        assert args[1:] == (1, "ratelimit:score:u1", "86400")

    @pytest.mark.asyncio
    async def test_store_failure_fails_closed(self):
        mock_redis = AsyncMock()
        mock_redis.eval.side_effect = RedisConnectionError("down")
        store = RedisCounterStore(redis_client=mock_redis)

        with pytest.raises(QuotaStoreError) as exc_info:
            await store.increment_and_get("k", 60)

        assert exc_info.value.status_code == 503
        assert exc_info.value.error_category == "retry"

    @pytest.mark.asyncio
    async def test_peek(self):
        mock_redis = AsyncMock()
        mock_redis.get.return_value = "4"
        mock_redis.ttl.return_value = 120
        store = RedisCounterStore(redis_client=mock_redis)

        result = await store.peek("k")

        assert result.count == 4
        mock_redis.eval.assert_not_called()

    @pytest.mark.asyncio
    async def test_peek_missing_key(self):
        mock_redis = AsyncMock()
        mock_redis.get.return_value = None
        store = RedisCounterStore(redis_client=mock_redis)

        assert await store.peek("k") is None
