"""
Counter stores backing the quota gate

Both stores expose a single atomic increment-and-get per key, so concurrent
requests for the same key can never observe the same count.
"""
import asyncio
import time
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Dict, Optional, Tuple

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from core.logging import get_logger

from .exceptions import QuotaStoreError
from .types import CounterResult

logger = get_logger(__name__)


def _reset_at(now: float, seconds_left: float) -> datetime:
    return datetime.fromtimestamp(now + max(0.0, seconds_left), tz=timezone.utc)


class CounterStore(ABC):
    """Shared counter with a per-key expiring window"""

    backend = "abstract"

    @abstractmethod
    async def increment_and_get(self, key: str, window_seconds: int) -> CounterResult:
        """
        Atomically add one to a counter and return the new count

        The first increment in a window anchors it: the counter expires
        ``window_seconds`` after that first hit.
        """

    @abstractmethod
    async def peek(self, key: str) -> Optional[CounterResult]:
        """Current counter state without incrementing; None if no live window"""

    async def close(self) -> None:
        pass


class InMemoryCounterStore(CounterStore):
    """Single-process store: a lock-protected dict with lazy expiry"""

    backend = "memory"

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._lock = asyncio.Lock()
        self._counters: Dict[str, Tuple[int, float]] = {}  # key -> (count, expires_at)

    def _live(self, key: str, now: float) -> Optional[Tuple[int, float]]:
        entry = self._counters.get(key)
        if entry is None:
            return None
        if entry[1] <= now:
            del self._counters[key]
            return None
        return entry

    async def increment_and_get(self, key: str, window_seconds: int) -> CounterResult:
        async with self._lock:
            now = self._clock()
            entry = self._live(key, now)
            if entry is None:
                entry = (1, now + window_seconds)
            else:
                entry = (entry[0] + 1, entry[1])
            self._counters[key] = entry
            return CounterResult(count=entry[0], reset_at=_reset_at(now, entry[1] - now))

    async def peek(self, key: str) -> Optional[CounterResult]:
        async with self._lock:
            now = self._clock()
            entry = self._live(key, now)
            if entry is None:
                return None
            return CounterResult(count=entry[0], reset_at=_reset_at(now, entry[1] - now))

    def clear(self) -> None:
        self._counters.clear()


class RedisCounterStore(CounterStore):
    """Distributed store: one Lua script per increment against Redis"""

    backend = "redis"

    def __init__(self, redis_url: str = None, redis_client: Optional[aioredis.Redis] = None):
        self.redis_url = redis_url
        self._redis: Optional[aioredis.Redis] = redis_client
        self._lua_script = self._load_lua_script()

    @staticmethod
    def _load_lua_script() -> str:
        """Load the Lua script for atomic window increments"""
        script_path = Path(__file__).parent / "lua_scripts" / "quota_window.lua"
        return script_path.read_text(encoding="utf-8")

    async def _get_redis(self) -> aioredis.Redis:
        """Get Redis connection"""
        if self._redis is None:
            self._redis = aioredis.from_url(self.redis_url, decode_responses=True)
        return self._redis

    async def increment_and_get(self, key: str, window_seconds: int) -> CounterResult:
        try:
            redis = await self._get_redis()
            count, ttl = await redis.eval(self._lua_script, 1, key, str(window_seconds))
        except (RedisError, OSError) as e:
            logger.error(f"Quota counter increment failed for {key}: {e}")
            raise QuotaStoreError(f"Quota store unavailable: {e}", backend=self.backend) from e
        return CounterResult(count=int(count), reset_at=_reset_at(time.time(), int(ttl)))

    async def peek(self, key: str) -> Optional[CounterResult]:
        try:
            redis = await self._get_redis()
            value = await redis.get(key)
            ttl = await redis.ttl(key) if value is not None else -2
        except (RedisError, OSError) as e:
            logger.error(f"Quota counter read failed for {key}: {e}")
            raise QuotaStoreError(f"Quota store unavailable: {e}", backend=self.backend) from e
        if value is None or int(ttl) < 0:
            return None
        return CounterResult(count=int(value), reset_at=_reset_at(time.time(), int(ttl)))

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None
