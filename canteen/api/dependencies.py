"""
Canteen Service — Request-scoped dependencies

``get_repository`` picks the storage backend from settings; ``get_actor`` turns
the claims left by JWTAuthMiddleware into the current ``User`` row.
"""
from typing import Annotated, AsyncGenerator

from fastapi import Depends, Request

from canteen.core.config import get_settings
from canteen.db.database import SessionLocal
from canteen.models import User
from canteen.repositories import CanteenRepository, InMemoryCanteenRepository, SqlCanteenRepository

settings = get_settings()

_memory_repo: InMemoryCanteenRepository | None = None


def memory_repository() -> InMemoryCanteenRepository:
    global _memory_repo
    if _memory_repo is None:
        _memory_repo = InMemoryCanteenRepository()
    return _memory_repo


async def get_repository() -> AsyncGenerator[CanteenRepository, None]:
    if settings.STORAGE_BACKEND == "memory":
        yield memory_repository()
        return
    async with SessionLocal() as session:
        yield SqlCanteenRepository(session)


Repo = Annotated[CanteenRepository, Depends(get_repository)]


async def get_actor(request: Request, repo: Repo) -> User | None:
    """The authenticated user, or None for anonymous callers and unknown ids."""
    claims = getattr(request.state, "user", None)
    if not claims:
        return None
    try:
        user_id = int(claims["sub"])
    except (KeyError, TypeError, ValueError):
        return None
    return await repo.get_user(user_id)


Actor = Annotated[User | None, Depends(get_actor)]
