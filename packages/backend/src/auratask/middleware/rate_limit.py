"""Rate limiting middleware — Redis fixed window per IP per minute.

Each IP gets a counter key like "auratask:rl:{ip}:{bucket}:{minute}".
Buckets, strictest first:
- auth: login/register/guest, against brute force
- ai: AI feature calls, which spend API quota
- admin: key pool administration
- api: everything else

Rate limiting is skipped when Redis is unavailable (e.g., in tests).
"""

import time

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

logger = structlog.get_logger()

_AUTH_PATHS = ("/api/v1/auth/login", "/api/v1/auth/register", "/api/v1/auth/guest")


def bucket_for(path: str) -> str:
    """Which rate-limit bucket a request path falls into."""
    if path.startswith(_AUTH_PATHS):
        return "auth"
    if path.startswith("/api/v1/ai/"):
        return "ai"
    if path.startswith("/api/v1/admin/"):
        return "admin"
    return "api"


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Redis-based rate limiting per IP per minute."""

    def __init__(
        self,
        app,
        default_rpm: int = 30,
        auth_rpm: int = 5,
        ai_rpm: int = 5,
        admin_rpm: int = 10,
    ):
        super().__init__(app)
        self.limits = {
            "api": default_rpm,
            "auth": auth_rpm,
            "ai": ai_rpm,
            "admin": admin_rpm,
        }

    async def dispatch(self, request: Request, call_next) -> Response:
        # No Redis, no rate limiting
        try:
            from auratask.cache import get_redis

            redis = get_redis()
        except RuntimeError:
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        bucket = bucket_for(request.url.path)
        rpm = self.limits[bucket]

        window = int(time.time() // 60)
        key = f"auratask:rl:{client_ip}:{bucket}:{window}"

        try:
            count = await redis.incr(key)
            if count == 1:
                await redis.expire(key, 120)  # 2-min TTL for safety
        except Exception as e:
            # Redis error: let the request through
            logger.warning("rate_limit.redis_error", error=str(e))
            return await call_next(request)

        if count > rpm:
            logger.warning("rate_limit.exceeded", bucket=bucket, client_ip=client_ip)
            return JSONResponse(
                status_code=429,
                content={"detail": "Rate limit exceeded. Try again later."},
                headers={"Retry-After": "60"},
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(rpm)
        response.headers["X-RateLimit-Remaining"] = str(max(0, rpm - count))
        return response
