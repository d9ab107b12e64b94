"""
Rate Limiting Middleware

Per-client rate limiting of the authentication routes using Redis.

ARCHITECTURE: token bucket in Redis, one bucket per client address. Only
paths under /api/v1/auth are limited; that is where passwords and refresh
tokens are tried.

Redis being unreachable disables limiting instead of failing requests.
"""
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from typing import Optional, Tuple
import redis
import time
import logging

from tenantgate.api.errors import error_response
from tenantgate.config import Settings
from tenantgate.core.exceptions import RateLimitExceeded

logger = logging.getLogger(__name__)


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Token bucket rate limiter per client address.

    A client may burst RATE_LIMIT_BURST requests, then gets
    RATE_LIMIT_PER_MINUTE requests per minute.
    """

    def __init__(
        self,
        app,
        settings: Settings,
        redis_client: Optional[redis.Redis] = None,
        path_prefix: str = "/api/v1/auth",
    ):
        super().__init__(app)
        self.rate_limit = settings.RATE_LIMIT_PER_MINUTE
        self.burst = settings.RATE_LIMIT_BURST
        self.path_prefix = path_prefix

        if redis_client is not None:
            self.redis_client = redis_client
            self.redis_available = True
            return

        try:
            self.redis_client = redis.from_url(
                settings.REDIS_URL,
                decode_responses=True,
                socket_connect_timeout=5
            )
            # Test connection
            self.redis_client.ping()
            self.redis_available = True
            logger.info("Redis connection established for rate limiting")
        except (redis.ConnectionError, redis.TimeoutError) as e:
            logger.error(f"Redis connection failed, auth rate limiting disabled: {e}")
            self.redis_available = False

    async def dispatch(self, request: Request, call_next):
        if not request.url.path.startswith(self.path_prefix):
            return await call_next(request)

        if not self.redis_available:
            return await call_next(request)

        client = self._get_client_identifier(request)
        allowed, retry_after = self._check_rate_limit(client)

        if not allowed:
            logger.warning(
                f"Rate limit exceeded on {request.url.path}",
                extra={"path": request.url.path, "method": request.method}
            )
            return error_response(RateLimitExceeded(retry_after=retry_after))

        return await call_next(request)

    def _check_rate_limit(self, client: str) -> Tuple[bool, int]:
        """
        Check if request is allowed under rate limit.

        Returns: (allowed, retry_after_seconds)

        - Bucket holds at most `burst` tokens
        - Tokens refill at rate_limit per minute
        - Each request consumes one token
        """
        key = f"rate_limit:auth:{client}"
        key_timestamp = f"{key}:timestamp"

        try:
            current_tokens = self.redis_client.get(key)
            last_update = self.redis_client.get(key_timestamp)

            now = time.time()

            if current_tokens is None:
                # First request - initialize bucket
                current_tokens = self.burst - 1
                self.redis_client.setex(key, 60, current_tokens)
                self.redis_client.setex(key_timestamp, 60, now)
                return True, 0

            current_tokens = float(current_tokens)
            last_update = float(last_update) if last_update else now

            elapsed = now - last_update
            tokens_to_add = elapsed * (self.rate_limit / 60.0)
            new_tokens = min(self.burst, current_tokens + tokens_to_add)

            if new_tokens >= 1:
                new_tokens -= 1
                self.redis_client.setex(key, 60, new_tokens)
                self.redis_client.setex(key_timestamp, 60, now)
                return True, 0

            tokens_needed = 1 - new_tokens
            retry_after = int((tokens_needed / (self.rate_limit / 60.0)) + 1)
            return False, retry_after

        except redis.RedisError as e:
            logger.error(f"Redis error in rate limiting: {e}")
            # Graceful degradation - allow request if Redis fails
            return True, 0

    def _get_client_identifier(self, request: Request) -> str:
        """
        Client address for the bucket key.

        Behind a proxy this is the proxy's address unless uvicorn runs with
        --proxy-headers and a trusted --forwarded-allow-ips.
        """
        return request.client.host if request.client else "unknown"
