"""
Canteen Service — Auth API routes
"""
from fastapi import APIRouter, status

from canteen.api.dependencies import Actor, Repo
from canteen.core.config import get_settings
from canteen.core.errors import Unauthenticated
from canteen.core.security import create_access_token, create_refresh_token
from canteen.models import User
from canteen.schemas.auth import (
    LoginRequest,
    RefreshRequest,
    RegisterRequest,
    TokenResponse,
    UserResponse,
)
from canteen.services import accounts

settings = get_settings()
router = APIRouter(prefix="/auth", tags=["auth"])


def _issue_tokens(user: User) -> TokenResponse:
    token_data = {"sub": str(user.id), "username": user.username, "role": user.role}
    return TokenResponse(
        access_token=create_access_token(token_data),
        refresh_token=create_refresh_token(token_data),
        expires_in=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    )


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def register(payload: RegisterRequest, repo: Repo):
    """Create a customer account."""
    return await accounts.register(repo, payload)


@router.post("/login", response_model=TokenResponse)
async def login(payload: LoginRequest, repo: Repo):
    """Validate credentials and issue JWT tokens."""
    user = await accounts.authenticate(repo, payload.username, payload.password)
    return _issue_tokens(user)


@router.post("/refresh", response_model=TokenResponse)
async def refresh_token(payload: RefreshRequest, repo: Repo):
    """Issue a new token pair from a valid refresh token."""
    user = await accounts.user_from_refresh_token(repo, payload.refresh_token)
    return _issue_tokens(user)


@router.get("/me", response_model=UserResponse)
async def me(actor: Actor):
    if actor is None:
        raise Unauthenticated()
    return actor
