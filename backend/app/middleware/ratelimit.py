"""Rate limiting dependency for HTTP routes."""

from datetime import datetime
from typing import Annotated

from fastapi import Depends, Request

from backend.app.api.auth import get_current_context
from backend.app.db.context import RequestContext
from backend.app.db.repositories import RateLimiter
from backend.app.errors import RateLimitedError
from backend.app.ratelimit import make_rate_limit_key


class RateLimitMiddleware:
    """Maps request paths to buckets and enforces per-user limits."""

    def __init__(self, limiters: dict[str, RateLimiter], bucket_map: dict[str, str]) -> None:
        """Initialize rate limit middleware.

        Args:
            limiters: Rate limiter per bucket name
            bucket_map: Mapping from path prefixes to bucket names
        """
        self._limiters = limiters
        self._bucket_map = bucket_map

    async def check_rate_limit(
        self, path: str, ctx: RequestContext, now: datetime | None = None
    ) -> tuple[bool, int]:
        """Check if request is allowed under rate limit.

        Args:
            path: Request path
            ctx: Request context
            now: Current time (for testing)

        Returns:
            Tuple of (allowed, retry_after_seconds)
        """
        if now is None:
            now = datetime.now()

        bucket = self._get_bucket(path)
        if bucket is None or bucket not in self._limiters:
            return (True, 0)

        key = make_rate_limit_key(ctx, bucket)
        retry_after = await self._limiters[bucket].check_quota(key, now)

        if retry_after is None:
            return (True, 0)

        return (False, retry_after.seconds)

    def _get_bucket(self, path: str) -> str | None:
        for prefix, bucket in self._bucket_map.items():
            if path.startswith(prefix):
                return bucket

        return None


def create_default_bucket_map() -> dict[str, str]:
    """Create default bucket mapping.

    Returns:
        Dictionary mapping path prefixes to bucket names
    """
    return {
        "/chat": "chat",
        "/documents": "documents",
    }


async def enforce_rate_limit(
    request: Request,
    ctx: Annotated[RequestContext, Depends(get_current_context)],
) -> RequestContext:
    """Authenticate, then reject the call if the caller is over quota.

    Raises:
        RateLimitedError: If the caller's bucket is exhausted
    """
    limiter = RateLimitMiddleware(
        request.app.state.services.rate_limiters, create_default_bucket_map()
    )
    allowed, retry_after = await limiter.check_rate_limit(request.url.path, ctx)
    if not allowed:
        raise RateLimitedError("Too many requests. Please slow down.", retry_after=retry_after)
    return ctx
