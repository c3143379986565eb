"""
Canteen Service — Accounts

Self-registration always yields a customer. Roles and canteen assignment are
admin actions; ``is_admin`` follows ``role`` through the model validator.
"""
import logging

from jose import JWTError

from canteen.core.errors import Forbidden, NotFound, Unauthenticated, ValidationError
from canteen.core.security import REFRESH, decode_token, hash_password, verify_password
from canteen.models import User, UserRole
from canteen.repositories import CanteenRepository
from canteen.schemas.auth import RegisterRequest, UserAdminUpdate
from canteen.services import access

logger = logging.getLogger(__name__)


async def register(repo: CanteenRepository, payload: RegisterRequest) -> User:
    user = await repo.create_user(
        User(
            username=payload.username.strip(),
            hashed_password=hash_password(payload.password),
            first_name=payload.first_name,
            last_name=payload.last_name,
            contact_number=payload.contact_number,
            profile_image=payload.profile_image,
            role=UserRole.CUSTOMER.value,
        )
    )
    logger.info("Registered customer %s (%s)", user.id, user.username)
    return user


async def authenticate(repo: CanteenRepository, username: str, password: str) -> User:
    user = await repo.get_user_by_username(username.strip())
    if user is None or not verify_password(password, user.hashed_password):
        raise Unauthenticated("Invalid username or password.")
    if not user.is_active:
        raise Forbidden("Account is disabled.")
    return user


async def user_from_refresh_token(repo: CanteenRepository, token: str) -> User:
    try:
        user_id = int(decode_token(token, REFRESH)["sub"])
    except (JWTError, ValueError):
        raise Unauthenticated("Invalid or expired refresh token.")

    user = await repo.get_user(user_id)
    if user is None or not user.is_active:
        raise Unauthenticated("User not found.")
    return user


def staff_profile(actor: User | None) -> User:
    return access.authorize(actor, UserRole.STAFF)


async def list_users(repo: CanteenRepository, actor: User | None, role: UserRole | None = None) -> list[User]:
    access.authorize(actor, UserRole.ADMIN)
    return await repo.list_users(role.value if role else None)


async def update_user(
    repo: CanteenRepository, actor: User | None, user_id: int, payload: UserAdminUpdate
) -> User:
    """Assign role, canteen or active flag. Customers never keep a canteen."""
    access.authorize(actor, UserRole.ADMIN)
    target = await repo.get_user(user_id)
    if target is None:
        raise NotFound("User not found.")

    fields = payload.model_dump(exclude_unset=True)
    if "role" in fields:
        fields["role"] = fields["role"].value
    if fields.get("role", target.role) == UserRole.CUSTOMER.value:
        fields["canteen_id"] = None
    if target.id == actor.id and fields.get("is_active") is False:
        raise ValidationError("You cannot disable your own account.")

    user = await repo.update_user(user_id, **fields)
    logger.info(
        "User %s updated by admin %s: role=%s canteen=%s active=%s",
        user.id, actor.id, user.role, user.canteen_id, user.is_active,
    )
    return user


async def ensure_admin_account(repo: CanteenRepository, username: str, password: str) -> User:
    """Create the bootstrap admin on first start. An existing account is left alone."""
    existing = await repo.get_user_by_username(username)
    if existing is not None:
        return existing
    admin = await repo.create_user(
        User(
            username=username,
            hashed_password=hash_password(password),
            first_name="Admin",
            last_name="User",
            role=UserRole.ADMIN.value,
        )
    )
    logger.info("Bootstrap admin account %s created", username)
    return admin
