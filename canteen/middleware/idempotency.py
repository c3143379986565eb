"""
Canteen Service — Checkout idempotency (Redis)

A client that retries POST /orders with the same Idempotency-Key gets the first
response back instead of a second order:
  - Cache hit  → replay the stored response with X-Idempotency-Replay: true
  - Cache miss → run the handler, store any non-5xx response for the key TTL

Keys are scoped by the authenticated user, so two customers can never collide.
Must sit inside JWTAuthMiddleware, which sets request.state.user.
"""
import json

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from canteen.core.config import get_settings
from canteen.core.redis_client import get_redis

settings = get_settings()

IDEMPOTENCY_PREFIX = "canteen:idempotent:"
IDEMPOTENCY_PATHS = {"/orders", "/orders/"}


class IdempotencyMiddleware(BaseHTTPMiddleware):

    async def dispatch(self, request: Request, call_next) -> Response:
        if request.method != "POST" or request.url.path not in IDEMPOTENCY_PATHS:
            return await call_next(request)

        idem_key = request.headers.get("Idempotency-Key")
        claims = getattr(request.state, "user", None)
        if not idem_key or not claims:
            return await call_next(request)

        redis = get_redis()
        cache_key = f"{IDEMPOTENCY_PREFIX}{claims['sub']}:{idem_key}"

        cached = await redis.get(cache_key)
        if cached:
            data = json.loads(cached)
            return JSONResponse(
                content=data["body"],
                status_code=data["status_code"],
                headers={"X-Idempotency-Replay": "true"},
            )

        response = await call_next(request)

        body_bytes = b""
        async for chunk in response.body_iterator:
            body_bytes += chunk

        if response.status_code < 500:
            try:
                body = json.loads(body_bytes)
            except ValueError:
                body = body_bytes.decode("utf-8", errors="replace")
            await redis.setex(
                cache_key,
                settings.IDEMPOTENCY_KEY_TTL_SECONDS,
                json.dumps({"body": body, "status_code": response.status_code}),
            )

        return Response(
            content=body_bytes,
            status_code=response.status_code,
            media_type=response.media_type,
            headers=dict(response.headers),
        )
