"""
Rate Limiting

Fixed-window counters in Redis, keyed by caller identity and scope.

Two entry points:
- RateLimitMiddleware: coarse per-minute limit for every request
- check_rate_limit(): strict per-route limits called from handlers
  (e.g. crisis protocol creation: 5 per hour per user)

Both fail open when Redis is unavailable.
"""
import time
import logging
from dataclasses import dataclass
from fastapi import Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from core.config import settings
from core.cache import get_redis_client

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitRule:
    limit: int
    window: int  # seconds


# Expensive writes (crisis protocol creation): 5 per hour per user
STRICT_LIMIT = RateLimitRule(limit=5, window=3600)


@dataclass
class RateLimitResult:
    success: bool
    limit: int
    remaining: int
    reset: int  # unix timestamp (seconds) when the window resets


def check_rate_limit(identifier: str, scope: str, rule: RateLimitRule) -> RateLimitResult:
    """
    Count one request against `rule` for `identifier` within `scope`.

    Returns a result with success=False once the window's budget is spent.
    """
    now = int(time.time())
    redis_client = get_redis_client()

    if not redis_client:
        # If Redis unavailable, allow request (graceful degradation)
        logger.warning("Redis unavailable, skipping rate limit check")
        return RateLimitResult(True, rule.limit, rule.limit, now + rule.window)

    key = f"rate_limit:{scope}:{identifier}"

    try:
        current = redis_client.get(key)
        if current is not None and int(current) >= rule.limit:
            ttl = redis_client.ttl(key)
            reset = now + (ttl if ttl > 0 else rule.window)
            return RateLimitResult(False, rule.limit, 0, reset)

        new_count = redis_client.incr(key)
        if new_count == 1:
            redis_client.expire(key, rule.window)

        ttl = redis_client.ttl(key)
        reset = now + (ttl if ttl > 0 else rule.window)
        return RateLimitResult(True, rule.limit, max(0, rule.limit - new_count), reset)

    except Exception as e:
        # On error, allow request (fail open)
        logger.error(f"Rate limit check error: {e}")
        return RateLimitResult(True, rule.limit, rule.limit, now + rule.window)


def rate_limit_headers(result: RateLimitResult) -> dict:
    headers = {
        "X-RateLimit-Limit": str(result.limit),
        "X-RateLimit-Remaining": str(result.remaining),
        "X-RateLimit-Reset": str(result.reset),
    }
    if not result.success:
        headers["Retry-After"] = str(max(0, result.reset - int(time.time())))
    return headers


def rate_limit_exceeded_response(result: RateLimitResult) -> JSONResponse:
    """Shared 429 response for every rate-limited surface."""
    return JSONResponse(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        content={
            "detail": "Too many requests. Please try again later.",
            "limit": result.limit,
            "remaining": result.remaining,
            "reset": result.reset,
        },
        headers=rate_limit_headers(result),
    )


def identify_request(request: Request) -> str:
    """Caller identity: user id from a valid bearer token, else client IP."""
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        token = auth_header.split(" ", 1)[1]
        from core.security import decode_access_token
        payload = decode_access_token(token)
        if payload and payload.get("sub"):
            return f"user:{payload.get('sub')}"

    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return f"ip:{forwarded.split(',')[0].strip()}"
    client_ip = request.client.host if request.client else "unknown"
    return f"ip:{client_ip}"


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Per-minute request budget for every non-health endpoint."""

    EXEMPT_PATHS = {"/health", "/ping", "/docs", "/openapi.json", "/redoc"}

    def __init__(self, app, default_limit: int = 60, window: int = 60):
        super().__init__(app)
        self.rule = RateLimitRule(limit=default_limit, window=window)

    async def dispatch(self, request: Request, call_next):
        if not settings.RATE_LIMIT_ENABLED or request.url.path in self.EXEMPT_PATHS:
            return await call_next(request)

        result = check_rate_limit(
            identifier=identify_request(request),
            scope=f"global:{request.url.path}",
            rule=self.rule,
        )
        if not result.success:
            return rate_limit_exceeded_response(result)

        response = await call_next(request)
        for name, value in rate_limit_headers(result).items():
            response.headers[name] = value
        return response
