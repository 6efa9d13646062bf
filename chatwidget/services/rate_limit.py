import logging
import time
from threading import Lock
from typing import Dict, Protocol, Tuple

import redis

from ..config import get_settings

logger = logging.getLogger(__name__)
_settings = get_settings()


class RateLimitExceeded(Exception):
    """Raised when a caller exceeds the allowed number of requests."""

    def __init__(self, key: str, retry_after: int):
        super().__init__(f"Rate limit exceeded for {key}")
        self.retry_after = retry_after


class Limiter(Protocol):
    def check(self, key: str, *, limit: int, window_seconds: int) -> None: ...


class MemoryRateLimiter:
    """Fixed-window counter kept in process memory (single worker deployments)."""

    def __init__(self):
        self._windows: Dict[str, Tuple[int, float]] = {}
        self._lock = Lock()

    def check(self, key: str, *, limit: int, window_seconds: int) -> None:
        now = time.monotonic()
        with self._lock:
            count, resets_at = self._windows.get(key, (0, now + window_seconds))
            if now >= resets_at:
                count, resets_at = 0, now + window_seconds
            if count >= limit:
                raise RateLimitExceeded(key, max(int(resets_at - now), 1))
            self._windows[key] = (count + 1, resets_at)

    def reset(self) -> None:
        with self._lock:
            self._windows.clear()


class RedisRateLimiter:
    """Fixed-window counter shared by all workers through Redis INCR/EXPIRE."""

    def __init__(self, client: redis.Redis):
        self._client = client

    def check(self, key: str, *, limit: int, window_seconds: int) -> None:
        namespaced_key = f"chatwidget:rate:{key}"
        pipe = self._client.pipeline()
        pipe.incr(namespaced_key)
        pipe.ttl(namespaced_key)
        count, ttl = pipe.execute()
        if int(count) == 1 or int(ttl) < 0:
            self._client.expire(namespaced_key, window_seconds)
            ttl = window_seconds
        if int(count) > limit:
            raise RateLimitExceeded(key, max(int(ttl), 1))


def _build_limiter() -> Limiter:
    if _settings.redis_url:
        logger.info("Rate limiter using Redis backend")
        return RedisRateLimiter(redis.Redis.from_url(_settings.redis_url))
    return MemoryRateLimiter()


rate_limiter: Limiter = _build_limiter()
