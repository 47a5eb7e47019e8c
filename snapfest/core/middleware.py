"""Custom middleware for the application."""

import logging
import time
from collections.abc import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

import redis.asyncio as redis

from snapfest.config import settings
from snapfest.core.exceptions import RateLimitExceeded

logger = logging.getLogger(__name__)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Middleware for logging requests and response times."""

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        """Log request details and timing.

        Args:
            request: Incoming request
            call_next: Next middleware/route handler

        Returns:
            Response: Route response
        """
        start_time = time.time()

        request_id = request.headers.get("X-Request-ID") or str(time.time_ns())
        request.state.request_id = request_id

        response = await call_next(request)

        duration = time.time() - start_time

        response.headers["X-Request-ID"] = request_id
        response.headers["X-Response-Time"] = f"{duration:.3f}s"

        logger.info(
            f"{request.method} {request.url.path} -> {response.status_code} "
            f"in {duration:.3f}s request_id={request_id}"
        )
        if duration > 1.0:
            logger.warning(
                f"SLOW REQUEST: {request.method} {request.url.path} took {duration:.3f}s"
            )

        return response


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Middleware to add security headers to responses."""

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"

        if not settings.debug:
            response.headers["Strict-Transport-Security"] = (
                "max-age=31536000; includeSubDomains"
            )

        return response


def client_ip_key(request: Request) -> str:
    """Client identifier: first forwarded address, else the socket peer."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


class RateLimiter:
    """Sliding-window rate limiter for specific endpoints, used as a dependency."""

    def __init__(
        self,
        requests_per_minute: int = 10,
        key_prefix: str = "api",
        key_func: Callable[[Request], str] = client_ip_key,
    ):
        """Initialize rate limiter.

        Args:
            requests_per_minute: Max requests allowed
            key_prefix: Redis key prefix
            key_func: Derives the bucket identifier from the request
        """
        self.requests_per_minute = requests_per_minute
        self.key_prefix = key_prefix
        self.key_func = key_func
        self._redis: redis.Redis | None = None

    async def get_redis(self) -> redis.Redis:
        """Get Redis connection."""
        if self._redis is None:
            self._redis = redis.from_url(
                settings.redis_url,
                encoding="utf-8",
                decode_responses=True,
            )
        return self._redis

    async def __call__(self, request: Request) -> None:
        """Check rate limit for request.

        Raises:
            RateLimitExceeded: If rate limit exceeded
        """
        try:
            redis_client = await self.get_redis()

            key = f"rate:{self.key_prefix}:{self.key_func(request)}"
            now = time.time()
            window_start = now - 60

            async with redis_client.pipeline(transaction=True) as pipe:
                await pipe.zremrangebyscore(key, 0, window_start)
                await pipe.zcard(key)
                await pipe.zadd(key, {str(time.time_ns()): now})
                await pipe.expire(key, 60)
                results = await pipe.execute()

        except redis.RedisError as e:
            # Fail open when Redis is unavailable
            logger.warning(f"Rate limiter '{self.key_prefix}' bypassed: {e}")
            return

        if results[1] >= self.requests_per_minute:
            raise RateLimitExceeded()


def booking_path_key(request: Request) -> str:
    """Bucket per booking, so guessing is throttled regardless of caller."""
    return request.path_params.get("booking_id", client_ip_key(request))


# Pre-configured rate limiters for different endpoints
otp_verify_limiter = RateLimiter(
    requests_per_minute=settings.otp_verify_attempts_per_minute,
    key_prefix="otp_verify",
    key_func=booking_path_key,
)
booking_limiter = RateLimiter(
    requests_per_minute=settings.booking_requests_per_minute,
    key_prefix="booking",
)
