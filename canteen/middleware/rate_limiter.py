"""
Canteen Service — Sliding window login rate limiter (Redis-backed)

RATE_LIMIT_MAX_ATTEMPTS login attempts per RATE_LIMIT_WINDOW_SECONDS per
username. Uses sorted sets (ZREMRANGEBYSCORE/ZCARD/ZADD) for a true sliding
window.
"""
import json
import time

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request as StarletteRequest

from canteen.core.config import get_settings
from canteen.core.redis_client import get_redis

settings = get_settings()

RATE_LIMIT_PREFIX = "canteen:ratelimit:"
LOGIN_PATHS = ("/auth/login", "/auth/login/")


def _tracking_key(request: Request, body: bytes) -> str:
    client = request.client.host if request.client else "unknown"
    try:
        data = json.loads(body)
    except ValueError:
        return client
    username = data.get("username") if isinstance(data, dict) else None
    if isinstance(username, str) and username.strip():
        return username.strip().lower()
    return client


class SlidingWindowRateLimiter(BaseHTTPMiddleware):
    """Applies ONLY to POST /auth/login, keyed on the username in the body."""

    async def dispatch(self, request: Request, call_next) -> Response:
        if request.method != "POST" or request.url.path not in LOGIN_PATHS:
            return await call_next(request)

        body = await request.body()
        key = f"{RATE_LIMIT_PREFIX}{_tracking_key(request, body)}"
        now = time.time()
        window_start = now - settings.RATE_LIMIT_WINDOW_SECONDS

        pipe = get_redis().pipeline()
        pipe.zremrangebyscore(key, "-inf", window_start)
        pipe.zcard(key)
        pipe.zadd(key, {str(now): now})
        pipe.expire(key, settings.RATE_LIMIT_WINDOW_SECONDS + 1)
        results = await pipe.execute()

        attempt_count = results[1]  # count before this attempt
        if attempt_count >= settings.RATE_LIMIT_MAX_ATTEMPTS:
            return JSONResponse(
                status_code=429,
                content={
                    "detail": (
                        f"Too many login attempts. Maximum {settings.RATE_LIMIT_MAX_ATTEMPTS} "
                        f"attempts per {settings.RATE_LIMIT_WINDOW_SECONDS} seconds."
                    ),
                    "retry_after_seconds": settings.RATE_LIMIT_WINDOW_SECONDS,
                },
                headers={"Retry-After": str(settings.RATE_LIMIT_WINDOW_SECONDS)},
            )

        # Re-attach the consumed body for the route handler
        async def receive():
            return {"type": "http.request", "body": body, "more_body": False}

        return await call_next(StarletteRequest(request.scope, receive))
