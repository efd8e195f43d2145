"""Rate limiting backed by Redis, shared by every API process."""

from datetime import datetime

import redis.asyncio as redis

from backend.app.config import Settings
from backend.app.db.context import RequestContext
from backend.app.db.repositories import RetryAfter


def make_rate_limit_key(ctx: RequestContext, bucket: str) -> str:
    """Key one caller's usage of one bucket (e.g. "chat", "documents")."""
    return f"{ctx.user_id}:{bucket}"


def create_redis_client(settings: Settings) -> redis.Redis:
    """Async client with bounded socket timeouts.

    A hung Redis fails the request instead of stalling the event loop.
    """
    return redis.from_url(
        settings.redis_url,
        decode_responses=True,
        socket_timeout=settings.redis_socket_timeout_seconds,
        socket_connect_timeout=settings.redis_socket_timeout_seconds,
    )


class RedisRateLimiter:
    """Fixed-window counter per key: INCR, EXPIRE on the first hit."""

    def __init__(self, redis_client: redis.Redis, max_requests: int, window_seconds: int = 60) -> None:
        self._redis = redis_client
        self._max_requests = max_requests
        self._window_seconds = window_seconds

    async def check_quota(self, key: str, now: datetime) -> RetryAfter | None:
        """Count one request against ``key``.

        Args:
            key: Rate limit key
            now: Current timestamp

        Returns:
            RetryAfter if over quota, None if allowed
        """
        window_start = int(now.timestamp()) // self._window_seconds * self._window_seconds
        redis_key = f"ratelimit:{key}:{window_start}"

        count = await self._redis.incr(redis_key)
        if count == 1:
            await self._redis.expire(redis_key, self._window_seconds)

        if count > self._max_requests:
            remaining = window_start + self._window_seconds - int(now.timestamp())
            return RetryAfter(seconds=max(1, remaining))

        return None
