"""
Canteen Service — Account schemas
"""
from pydantic import BaseModel, Field

from canteen.models import UserRole
from canteen.schemas.common import PartialUpdate


class LoginRequest(BaseModel):
    username: str = Field(..., min_length=1, max_length=255, examples=["student@campus.edu"])
    password: str = Field(..., min_length=1, max_length=128)


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int  # seconds


class RefreshRequest(BaseModel):
    refresh_token: str


class RegisterRequest(BaseModel):
    username: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=6, max_length=72)
    first_name: str | None = Field(None, max_length=100)
    last_name: str | None = Field(None, max_length=100)
    contact_number: str | None = Field(None, max_length=32)
    profile_image: str | None = Field(None, max_length=500)


class UserAdminUpdate(PartialUpdate):
    """A null canteen_id unassigns the user from their canteen."""
    nullable = frozenset({"canteen_id"})

    role: UserRole | None = None
    canteen_id: int | None = None
    is_active: bool | None = None


class UserResponse(BaseModel):
    id: int
    username: str
    first_name: str | None
    last_name: str | None
    role: str
    is_admin: bool
    canteen_id: int | None
    profile_image: str | None
    contact_number: str | None
    is_active: bool

    model_config = {"from_attributes": True}


class HealthResponse(BaseModel):
    status: str
    service: str
    version: str
    dependencies: dict[str, str]
