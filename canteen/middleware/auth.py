"""
Canteen Service — JWT Authentication Middleware
Validates the Bearer access token on protected routes; returns 401 on failure.
"""
from fastapi import Request, Response
from fastapi.responses import JSONResponse
from jose import JWTError
from starlette.middleware.base import BaseHTTPMiddleware

from canteen.core.security import ACCESS, decode_token

# Paths that do NOT require authentication
PUBLIC_PATHS = {
    "/",
    "/health",
    "/metrics",
    "/docs",
    "/openapi.json",
    "/auth/register",
    "/auth/login",
    "/auth/refresh",
}

# The catalog is browsable without an account
PUBLIC_GET_PREFIXES = ("/canteens", "/menu-items")


def _is_public(request: Request) -> bool:
    path = request.url.path.rstrip("/") or "/"
    if path in PUBLIC_PATHS or path.startswith("/metrics"):
        return True
    return request.method == "GET" and path.startswith(PUBLIC_GET_PREFIXES)


def _unauthorized(detail: str) -> JSONResponse:
    return JSONResponse(
        status_code=401,
        content={"detail": detail},
        headers={"WWW-Authenticate": "Bearer"},
    )


class JWTAuthMiddleware(BaseHTTPMiddleware):
    """
    Intercepts every request. Attaches the decoded access-token claims to
    request.state.user, or None on public paths.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        request.state.user = None

        if request.method == "OPTIONS" or _is_public(request):
            return await call_next(request)

        auth_header = request.headers.get("Authorization", "")
        if not auth_header.startswith("Bearer "):
            return _unauthorized("Missing or invalid Authorization header. Expected: Bearer <token>")

        token = auth_header.split(" ", 1)[1]
        try:
            claims = decode_token(token, ACCESS)
        except JWTError as exc:
            return _unauthorized(f"Invalid or expired JWT: {exc}")

        request.state.user = claims
        return await call_next(request)
