"""
Canteen Service — Role-scoped access gate

Every service call receives the acting ``User`` (or None when the caller is
anonymous). Admin satisfies any role check; staff work inside exactly one
canteen; customers only see what they own.
"""
from typing import Iterable

from canteen.core.errors import CanteenNotAssigned, Forbidden, Unauthenticated
from canteen.models import Order, User, UserRole


def authorize(actor: User | None, roles: str | Iterable[str]) -> User:
    """Return the actor if allowed. 401 when anonymous, 403 on a role mismatch."""
    if actor is None:
        raise Unauthenticated()
    if not actor.is_active:
        raise Forbidden("Account is disabled.")
    allowed = {roles} if isinstance(roles, str) else set(roles)
    allowed = {UserRole(r).value for r in allowed}
    if actor.role == UserRole.ADMIN.value or actor.role in allowed:
        return actor
    raise Forbidden()


def is_admin(actor: User) -> bool:
    return actor.role == UserRole.ADMIN.value


def require_canteen(actor: User | None) -> int:
    """Staff-scoped entry point: the caller's canteen id, or 400 if unassigned."""
    authorize(actor, UserRole.STAFF)
    if actor.canteen_id is None:
        raise CanteenNotAssigned()
    return actor.canteen_id


def ensure_same_canteen(canteen_id: int, record_canteen_id: int, what: str) -> None:
    if record_canteen_id != canteen_id:
        raise Forbidden(f"Cannot modify {what} of other canteens.")


def ensure_owner(actor: User, order: Order, action: str) -> None:
    if order.user_id != actor.id:
        raise Forbidden(f"You can only {action} your own orders.")


def ensure_order_visible(actor: User, order: Order) -> None:
    """Read access: owner, staff of the order's canteen, or admin."""
    if is_admin(actor) or order.user_id == actor.id:
        return
    if actor.role == UserRole.STAFF.value and actor.canteen_id is not None:
        if actor.canteen_id == order.canteen_id:
            return
    raise Forbidden("You cannot view this order.")
