"""
Canteen Service — FastAPI application entrypoint
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator

from canteen.api import admin, auth, catalog, health, orders, staff
from canteen.api.dependencies import memory_repository
from canteen.core.config import get_settings
from canteen.core.errors import CanteenError, Unauthenticated
from canteen.core.redis_client import close_redis
from canteen.db.database import Base, SessionLocal, engine
from canteen.db.seed import seed
from canteen.middleware.auth import JWTAuthMiddleware
from canteen.middleware.idempotency import IdempotencyMiddleware
from canteen.middleware.rate_limiter import SlidingWindowRateLimiter
from canteen.repositories import SqlCanteenRepository

settings = get_settings()

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: create tables (Alembic handles migrations in production)
    if settings.STORAGE_BACKEND == "memory":
        await seed(memory_repository())
    else:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        async with SessionLocal() as session:
            await seed(SqlCanteenRepository(session))
    logger.info("%s %s started (storage=%s)", settings.SERVICE_NAME, settings.SERVICE_VERSION, settings.STORAGE_BACKEND)
    yield
    # Shutdown
    await close_redis()
    await engine.dispose()


app = FastAPI(
    title="Canteen Service",
    description="Multi-canteen food ordering: catalog, order lifecycle, staff kitchen queue and back office.",
    version=settings.SERVICE_VERSION,
    lifespan=lifespan,
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url=None,
)


@app.exception_handler(CanteenError)
async def canteen_error_handler(request: Request, exc: CanteenError):
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, Unauthenticated) else None
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message}, headers=headers)


app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Tighten in production via env var
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Order matters: the last one added runs first. Auth must have set
# request.state.user before the idempotency cache builds its key.
if settings.IDEMPOTENCY_ENABLED:
    app.add_middleware(IdempotencyMiddleware)
if settings.RATE_LIMIT_ENABLED:
    app.add_middleware(SlidingWindowRateLimiter)
app.add_middleware(JWTAuthMiddleware)

if settings.METRICS_ENABLED:
    Instrumentator().instrument(app).expose(app, endpoint="/metrics")

app.include_router(auth.router)
app.include_router(catalog.router)
app.include_router(orders.router)
app.include_router(staff.router)
app.include_router(admin.router)
app.include_router(health.router)


@app.get("/")
async def root():
    return {"service": settings.SERVICE_NAME, "version": settings.SERVICE_VERSION}
