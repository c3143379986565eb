"""
Canteen Service — Health endpoint
"""
import asyncio

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import text

from canteen.core.config import get_settings
from canteen.core.redis_client import ping_redis
from canteen.db.database import engine
from canteen.schemas.auth import HealthResponse

settings = get_settings()
router = APIRouter(tags=["health"])


async def _check_database() -> None:
    async with engine.connect() as conn:
        await asyncio.wait_for(conn.execute(text("SELECT 1")), timeout=settings.HEALTH_CHECK_TIMEOUT)


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """
    Deep health check. Verifies the database (unless running on the in-memory
    backend) and Redis when a feature that needs it is enabled.
    Returns 200 if all dependencies are healthy, 503 otherwise.
    """
    deps: dict[str, str] = {}
    healthy = True

    if settings.STORAGE_BACKEND == "memory":
        deps["storage"] = "memory"
    else:
        try:
            await _check_database()
            deps["database"] = "ok"
        except Exception as e:
            deps["database"] = f"error: {str(e)[:100]}"
            healthy = False

    if settings.RATE_LIMIT_ENABLED or settings.IDEMPOTENCY_ENABLED:
        try:
            await ping_redis()
            deps["redis"] = "ok"
        except Exception as e:
            deps["redis"] = f"error: {str(e)[:100]}"
            healthy = False

    response = HealthResponse(
        status="healthy" if healthy else "degraded",
        service=settings.SERVICE_NAME,
        version=settings.SERVICE_VERSION,
        dependencies=deps,
    )
    return JSONResponse(content=response.model_dump(), status_code=200 if healthy else 503)
