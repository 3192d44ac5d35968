"""Rate limiting middleware using Redis with an atomic Lua sliding window."""

import hashlib
import logging
import random
import time
from typing import Callable

from fastapi import Request, Response
from redis.exceptions import RedisError
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

from auction.core.redis import get_redis

logger = logging.getLogger(__name__)


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Per-IP limit on every request, per-token limit on writes.

    Reads (listings, bid history) are only bounded per IP. Writes (placing a
    bid, creating or changing a listing) are additionally bounded per bearer
    token, keyed by a digest so raw tokens never reach Redis. Fails open: if
    Redis is unreachable the request is let through.
    """

    WRITE_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})

    RATE_LIMIT_SCRIPT = """
    local key = KEYS[1]
    local now = tonumber(ARGV[1])
    local window = tonumber(ARGV[2])
    local limit = tonumber(ARGV[3])
    local request_id = ARGV[4]
    local window_start = now - window

    redis.call('ZREMRANGEBYSCORE', key, 0, window_start)

    local count = redis.call('ZCARD', key)

    if count < limit then
        redis.call('ZADD', key, now, request_id)
        redis.call('EXPIRE', key, window + 1)
        return {1, 0}
    else
        local oldest = redis.call('ZRANGE', key, 0, 0, 'WITHSCORES')
        local retry_after = 1
        if oldest and #oldest >= 2 then
            retry_after = math.ceil(oldest[2] + window - now) + 1
            if retry_after < 1 then retry_after = 1 end
        end
        return {0, retry_after}
    end
    """

    def __init__(self, app, user_limit: int = 10, ip_limit: int = 100):
        super().__init__(app)
        self.user_limit = user_limit
        self.ip_limit = ip_limit
        self._rate_limit_script = None

    async def _get_rate_limit_script(self, redis):
        if self._rate_limit_script is None:
            self._rate_limit_script = redis.register_script(self.RATE_LIMIT_SCRIPT)
        return self._rate_limit_script

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        client_ip = request.client.host if request.client else "unknown"

        try:
            rejection = await self._check_limits(request, client_ip)
        except RedisError as e:
            logger.warning(f"Rate limiter unavailable, allowing request: {e}")
            rejection = None

        if rejection is not None:
            return rejection
        return await call_next(request)

    async def _check_limits(self, request: Request, client_ip: str) -> JSONResponse | None:
        redis = await get_redis()

        ip_allowed, ip_retry_after = await self._check_rate_limit_lua(
            redis, f"ratelimit:ip:{client_ip}", self.ip_limit
        )
        if not ip_allowed:
            return JSONResponse(
                status_code=429,
                content={"detail": "Too many requests from this IP"},
                headers={"Retry-After": str(ip_retry_after)},
            )

        if request.method not in self.WRITE_METHODS:
            return None

        auth_header = request.headers.get("Authorization", "")
        if auth_header.startswith("Bearer "):
            token_digest = hashlib.sha256(auth_header[7:].encode()).hexdigest()[:16]
            user_allowed, user_retry_after = await self._check_rate_limit_lua(
                redis, f"ratelimit:token:{token_digest}", self.user_limit
            )
            if not user_allowed:
                return JSONResponse(
                    status_code=429,
                    content={"detail": "Too many requests for this user"},
                    headers={"Retry-After": str(user_retry_after)},
                )

        return None

    async def _check_rate_limit_lua(
        self, redis, key: str, limit: int, window: int = 1
    ) -> tuple[bool, int]:
        """Run the sliding-window script.

        Returns:
            Tuple of (allowed, retry_after_seconds)
        """
        now = time.time()
        request_id = f"{now}:{random.randint(0, 999999)}"

        script = await self._get_rate_limit_script(redis)
        result = await script(
            keys=[key],
            args=[now, window, limit, request_id],
        )
        return bool(result[0]), int(result[1])
