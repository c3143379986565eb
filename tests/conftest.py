"""
Shared fixtures.

The app reads its settings at import time, so the environment is pinned here
before anything under ``canteen`` is imported: in-memory storage, SQLite for
the engine, and the Redis-backed middlewares switched off.
"""
import os
from contextlib import asynccontextmanager

os.environ.setdefault("STORAGE_BACKEND", "memory")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("IDEMPOTENCY_ENABLED", "false")
os.environ.setdefault("METRICS_ENABLED", "false")
os.environ.setdefault("OPT_LOCK_BASE_DELAY_MS", "1")
os.environ.setdefault("OPT_LOCK_JITTER_MS", "1")

from types import SimpleNamespace

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from canteen.db.database import Base
from canteen.models import Canteen, MenuItem, User, UserRole
from canteen.repositories import InMemoryCanteenRepository, SqlCanteenRepository


# ─── Repositories ──────────────────────────────────────────────────────────────
@pytest.fixture()
def repo() -> InMemoryCanteenRepository:
    return InMemoryCanteenRepository()


@asynccontextmanager
async def sqlite_repository():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    TestingSessionLocal = async_sessionmaker(engine, expire_on_commit=False, autoflush=False)
    try:
        async with TestingSessionLocal() as session:
            yield SqlCanteenRepository(session)
    finally:
        await engine.dispose()


@pytest_asyncio.fixture()
async def sql_repo():
    async with sqlite_repository() as repo:
        yield repo


@pytest_asyncio.fixture(params=["memory", "sql"])
async def store(request):
    """(repository, world) for each backend."""
    if request.param == "memory":
        repo = InMemoryCanteenRepository()
        yield repo, await build_world(repo)
        return
    async with sqlite_repository() as repo:
        yield repo, await build_world(repo)


# ─── Seed data ─────────────────────────────────────────────────────────────────
async def add_user(repo, username, role=UserRole.CUSTOMER, canteen_id=None, hashed_password="x"):
    return await repo.create_user(
        User(username=username, hashed_password=hashed_password, role=role.value, canteen_id=canteen_id)
    )


async def build_world(repo) -> SimpleNamespace:
    """
    Two canteens. North sells tea (40) and samosa (25) plus an unavailable
    thali; South sells coffee (30). One staff member per canteen, one staff
    member with no canteen, two customers and an admin.
    """
    north = await repo.create_canteen(Canteen(name="North", location="Block A"))
    south = await repo.create_canteen(Canteen(name="South", location="Block B"))

    tea = await repo.create_menu_item(MenuItem(name="Tea", price=40, category="beverages", canteen_id=north.id))
    samosa = await repo.create_menu_item(MenuItem(name="Samosa", price=25, category="snacks", canteen_id=north.id))
    thali = await repo.create_menu_item(
        MenuItem(name="Thali", price=90, category="veg", canteen_id=north.id, is_available=False)
    )
    coffee = await repo.create_menu_item(MenuItem(name="Coffee", price=30, category="beverages", canteen_id=south.id))

    return SimpleNamespace(
        north=north,
        south=south,
        tea=tea,
        samosa=samosa,
        thali=thali,
        coffee=coffee,
        alice=await add_user(repo, "alice@campus.edu"),
        bob=await add_user(repo, "bob@campus.edu"),
        north_staff=await add_user(repo, "cook@north", UserRole.STAFF, north.id),
        south_staff=await add_user(repo, "cook@south", UserRole.STAFF, south.id),
        drifter=await add_user(repo, "new@staff", UserRole.STAFF),
        admin=await add_user(repo, "root@canteen", UserRole.ADMIN),
    )


@pytest.fixture()
def world_builder():
    return build_world


@pytest_asyncio.fixture()
async def world(repo) -> SimpleNamespace:
    return await build_world(repo)
