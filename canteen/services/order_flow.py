"""
Canteen Service — Order lifecycle

State transitions:
  received → preparing → ready → completed
  received | preparing → cancelled

Staff (and admin) drive the kitchen edges; customers may only cancel before the
order is ready and mark a ready order as picked up. Completed and cancelled are
terminal.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field

from canteen.core.errors import (
    Forbidden,
    InvalidState,
    InvalidTransition,
    NotFound,
    ValidationError,
)
from canteen.core.optimistic_lock import with_optimistic_retry
from canteen.models import (
    ACTIVE_STATUSES,
    FINISHED_STATUSES,
    MenuItem,
    Order,
    OrderItem,
    OrderRating,
    OrderStatus,
    User,
    UserRole,
)
from canteen.repositories import CanteenRepository
from canteen.schemas.order import OrderCreate
from canteen.services import access

logger = logging.getLogger(__name__)

S = OrderStatus

STAFF_TRANSITIONS: dict[str, frozenset[str]] = {
    S.RECEIVED.value: frozenset({S.PREPARING.value, S.CANCELLED.value}),
    S.PREPARING.value: frozenset({S.READY.value, S.CANCELLED.value}),
    S.READY.value: frozenset({S.COMPLETED.value}),
    S.COMPLETED.value: frozenset(),
    S.CANCELLED.value: frozenset(),
}

CUSTOMER_TRANSITIONS: dict[str, frozenset[str]] = {
    S.RECEIVED.value: frozenset({S.CANCELLED.value}),
    S.PREPARING.value: frozenset({S.CANCELLED.value}),
    S.READY.value: frozenset({S.COMPLETED.value}),
    S.COMPLETED.value: frozenset(),
    S.CANCELLED.value: frozenset(),
}

MIN_RATING = 1
MAX_RATING = 5


def can_transition(current: str, target: str) -> bool:
    return target in STAFF_TRANSITIONS.get(current, frozenset())


def parse_status(value: str) -> OrderStatus:
    try:
        return OrderStatus(value)
    except ValueError:
        raise ValidationError(f"Invalid status '{value}'.")


@dataclass
class OrderLine:
    item: OrderItem
    menu_item: MenuItem | None


@dataclass
class OrderView:
    order: Order
    lines: list[OrderLine] = field(default_factory=list)
    rating: OrderRating | None = None


async def load_view(repo: CanteenRepository, order: Order) -> OrderView:
    items = await repo.list_order_items(order.id)
    menu = await repo.get_menu_items(i.menu_item_id for i in items)
    return OrderView(
        order=order,
        lines=[OrderLine(item=i, menu_item=menu.get(i.menu_item_id)) for i in items],
        rating=await repo.get_rating(order.id),
    )


async def _load_views(repo: CanteenRepository, orders: list[Order]) -> list[OrderView]:
    return [await load_view(repo, o) for o in orders]


async def _require_order(repo: CanteenRepository, order_id: int) -> Order:
    order = await repo.get_order(order_id)
    if order is None:
        raise NotFound("Order not found.")
    return order


# ── Checkout ─────────────────────────────────────────────────────────────────

async def place_order(repo: CanteenRepository, actor: User | None, payload: OrderCreate) -> OrderView:
    """
    Create a ``received`` order from the cart.

    Prices come from the menu, not the client. A client-sent line price or
    total is only accepted when it matches what the menu says.
    """
    access.authorize(actor, UserRole.CUSTOMER)
    if not payload.items:
        raise ValidationError("An order needs at least one item.")

    menu = await repo.get_menu_items(line.menu_item_id for line in payload.items)
    items: list[OrderItem] = []
    canteens: set[int] = set()
    total = 0
    for line in payload.items:
        menu_item = menu.get(line.menu_item_id)
        if menu_item is None:
            raise ValidationError(f"Menu item {line.menu_item_id} does not exist.")
        if not menu_item.is_available:
            raise ValidationError(f"'{menu_item.name}' is currently unavailable.")
        if line.quantity < 1:
            raise ValidationError("Quantity must be at least 1.")
        if line.price is not None and line.price != menu_item.price:
            raise ValidationError(
                f"Price for '{menu_item.name}' is {menu_item.price}, not {line.price}."
            )
        canteens.add(menu_item.canteen_id)
        total += menu_item.price * line.quantity
        items.append(OrderItem(menu_item_id=menu_item.id, quantity=line.quantity, price=menu_item.price))

    if len(canteens) > 1:
        raise ValidationError("All items of an order must come from the same canteen.")
    if payload.total_amount is not None and payload.total_amount != total:
        raise ValidationError(f"Order total is {total}, not {payload.total_amount}.")

    order = Order(
        user_id=actor.id,
        canteen_id=canteens.pop(),
        status=S.RECEIVED.value,
        total_amount=total,
        special_notes=payload.special_notes,
    )
    order = await repo.create_order(order, items)
    logger.info("Order %s placed by user %s: %d line(s), total %d", order.id, actor.id, len(items), total)
    return await load_view(repo, order)


async def reorder(repo: CanteenRepository, order_id: int, actor: User | None) -> OrderView:
    """Duplicate a past order's lines, snapshot prices included, as a new ``received`` order."""
    access.authorize(actor, UserRole.CUSTOMER)
    source = await _require_order(repo, order_id)
    access.ensure_owner(actor, source, "reorder")

    source_items = await repo.list_order_items(source.id)
    items = [
        OrderItem(menu_item_id=i.menu_item_id, quantity=i.quantity, price=i.price)
        for i in source_items
    ]
    order = Order(
        user_id=actor.id,
        canteen_id=source.canteen_id,
        status=S.RECEIVED.value,
        total_amount=sum(i.price * i.quantity for i in items),
        special_notes=source.special_notes,
    )
    order = await repo.create_order(order, items)
    logger.info("Order %s re-placed from order %s by user %s", order.id, source.id, actor.id)
    return await load_view(repo, order)


# ── Status transitions ───────────────────────────────────────────────────────

@with_optimistic_retry()
async def update_status(
    repo: CanteenRepository, order_id: int, new_status: str, actor: User | None
) -> OrderView:
    """
    Move an order along the lifecycle on behalf of ``actor``.

    Checks, in order: staff canteen assignment (400), order exists (404),
    actor may touch this order (403), status is known (400), edge exists (409),
    actor may take this edge (403). Nothing is written unless all pass.
    """
    access.authorize(actor, (UserRole.CUSTOMER, UserRole.STAFF))
    if actor.role == UserRole.STAFF.value:
        access.require_canteen(actor)

    order = await _require_order(repo, order_id)

    if actor.role == UserRole.STAFF.value:
        access.ensure_same_canteen(actor.canteen_id, order.canteen_id, "orders")
    elif actor.role == UserRole.CUSTOMER.value:
        access.ensure_owner(actor, order, "update")

    target = parse_status(new_status).value
    if not can_transition(order.status, target):
        raise InvalidTransition(order.status, target)
    if actor.role == UserRole.CUSTOMER.value and target not in CUSTOMER_TRANSITIONS[order.status]:
        raise Forbidden(f"Customers cannot move an order to '{target}'.")

    previous = order.status
    updated = await repo.set_order_status(order.id, target, order.version_id)
    logger.info("Order %s: %s → %s by %s %s", order.id, previous, target, actor.role, actor.id)
    return await load_view(repo, updated)


@with_optimistic_retry()
async def _customer_transition(
    repo: CanteenRepository, order_id: int, actor: User | None, target: str, action: str
) -> OrderView:
    access.authorize(actor, UserRole.CUSTOMER)
    order = await _require_order(repo, order_id)
    access.ensure_owner(actor, order, action)
    if target not in CUSTOMER_TRANSITIONS[order.status]:
        raise InvalidTransition(order.status, target)
    previous = order.status
    updated = await repo.set_order_status(order.id, target, order.version_id)
    logger.info("Order %s: %s → %s by its customer", order.id, previous, target)
    return await load_view(repo, updated)


async def cancel_order(repo: CanteenRepository, order_id: int, actor: User | None) -> OrderView:
    return await _customer_transition(repo, order_id, actor, S.CANCELLED.value, "cancel")


async def complete_order(repo: CanteenRepository, order_id: int, actor: User | None) -> OrderView:
    """Customer pick-up of a ready order."""
    return await _customer_transition(repo, order_id, actor, S.COMPLETED.value, "complete")


# ── Ratings ──────────────────────────────────────────────────────────────────

async def rate_order(
    repo: CanteenRepository,
    order_id: int,
    actor: User | None,
    rating: int,
    comment: str | None = None,
) -> OrderRating:
    access.authorize(actor, UserRole.CUSTOMER)
    order = await _require_order(repo, order_id)
    access.ensure_owner(actor, order, "rate")
    if isinstance(rating, bool) or not isinstance(rating, int) or not MIN_RATING <= rating <= MAX_RATING:
        raise ValidationError(f"Rating must be between {MIN_RATING} and {MAX_RATING}.")
    if order.status != S.COMPLETED.value:
        raise InvalidState("You can only rate completed orders.")
    return await repo.upsert_rating(
        OrderRating(order_id=order.id, user_id=actor.id, rating=rating, comment=comment or None)
    )


# ── Views ────────────────────────────────────────────────────────────────────

async def get_order(repo: CanteenRepository, order_id: int, actor: User | None) -> OrderView:
    access.authorize(actor, (UserRole.CUSTOMER, UserRole.STAFF))
    order = await _require_order(repo, order_id)
    access.ensure_order_visible(actor, order)
    return await load_view(repo, order)


async def active_order_for(repo: CanteenRepository, actor: User | None) -> OrderView | None:
    """The customer's most recent order that is still in the kitchen or awaiting pick-up."""
    access.authorize(actor, UserRole.CUSTOMER)
    orders = await repo.list_orders(user_id=actor.id, statuses=ACTIVE_STATUSES, newest_first=True)
    return await load_view(repo, orders[0]) if orders else None


async def order_history_for(repo: CanteenRepository, actor: User | None) -> list[OrderView]:
    access.authorize(actor, UserRole.CUSTOMER)
    orders = await repo.list_orders(user_id=actor.id, statuses=FINISHED_STATUSES, newest_first=True)
    return await _load_views(repo, orders)


async def staff_orders(repo: CanteenRepository, actor: User | None, *, active: bool) -> list[OrderView]:
    """Active orders oldest first (kitchen queue), history newest first."""
    canteen_id = access.require_canteen(actor)
    orders = await repo.list_orders(
        canteen_id=canteen_id,
        statuses=ACTIVE_STATUSES if active else FINISHED_STATUSES,
        newest_first=not active,
    )
    return await _load_views(repo, orders)


async def all_orders(repo: CanteenRepository, actor: User | None, *, active: bool) -> list[OrderView]:
    access.authorize(actor, UserRole.ADMIN)
    orders = await repo.list_orders(
        statuses=ACTIVE_STATUSES if active else FINISHED_STATUSES,
        newest_first=not active,
    )
    return await _load_views(repo, orders)
