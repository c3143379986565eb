"""
Canteen Service — Canteens and menus

The public catalog only ever shows active canteens and available items. Staff
edit the menu of their own canteen; admins edit any canteen.
"""
import logging

from canteen.core.errors import NotFound
from canteen.models import Canteen, MenuItem, User, UserRole
from canteen.repositories import CanteenRepository
from canteen.schemas.catalog import (
    AdminMenuItemUpdate,
    CanteenCreate,
    CanteenUpdate,
    MenuItemCreate,
    MenuItemUpdate,
    StaffMenuItemCreate,
)
from canteen.services import access

logger = logging.getLogger(__name__)


def _menu_fields(payload) -> dict:
    fields = payload.model_dump(exclude_unset=True)
    if fields.get("category") is not None:
        fields["category"] = fields["category"].value
    return fields


# ── Public catalog ───────────────────────────────────────────────────────────

async def list_canteens(repo: CanteenRepository) -> list[Canteen]:
    return await repo.list_canteens(active_only=True)


async def get_canteen(repo: CanteenRepository, canteen_id: int) -> Canteen:
    canteen = await repo.get_canteen(canteen_id)
    if canteen is None:
        raise NotFound("Canteen not found.")
    return canteen


async def canteen_menu(repo: CanteenRepository, canteen_id: int) -> list[MenuItem]:
    await get_canteen(repo, canteen_id)
    return await repo.list_menu_items(canteen_id=canteen_id, available_only=True)


async def browse_menu(repo: CanteenRepository, canteen_id: int | None = None) -> list[MenuItem]:
    return await repo.list_menu_items(canteen_id=canteen_id, available_only=True)


# ── Admin ────────────────────────────────────────────────────────────────────

async def list_all_canteens(repo: CanteenRepository, actor: User | None) -> list[Canteen]:
    access.authorize(actor, UserRole.ADMIN)
    return await repo.list_canteens()


async def create_canteen(repo: CanteenRepository, actor: User | None, payload: CanteenCreate) -> Canteen:
    access.authorize(actor, UserRole.ADMIN)
    canteen = await repo.create_canteen(Canteen(**payload.model_dump()))
    logger.info("Canteen %s '%s' created by admin %s", canteen.id, canteen.name, actor.id)
    return canteen


async def update_canteen(
    repo: CanteenRepository, actor: User | None, canteen_id: int, payload: CanteenUpdate
) -> Canteen:
    access.authorize(actor, UserRole.ADMIN)
    return await repo.update_canteen(canteen_id, **payload.model_dump(exclude_unset=True))


async def delete_canteen(repo: CanteenRepository, actor: User | None, canteen_id: int) -> None:
    access.authorize(actor, UserRole.ADMIN)
    await repo.delete_canteen(canteen_id)
    logger.info("Canteen %s deleted by admin %s", canteen_id, actor.id)


async def list_all_menu_items(repo: CanteenRepository, actor: User | None) -> list[MenuItem]:
    access.authorize(actor, UserRole.ADMIN)
    return await repo.list_menu_items()


async def create_menu_item(repo: CanteenRepository, actor: User | None, payload: MenuItemCreate) -> MenuItem:
    access.authorize(actor, UserRole.ADMIN)
    return await repo.create_menu_item(MenuItem(**_menu_fields(payload)))


async def update_menu_item(
    repo: CanteenRepository, actor: User | None, item_id: int, payload: AdminMenuItemUpdate
) -> MenuItem:
    access.authorize(actor, UserRole.ADMIN)
    return await repo.update_menu_item(item_id, **_menu_fields(payload))


async def delete_menu_item(repo: CanteenRepository, actor: User | None, item_id: int) -> None:
    access.authorize(actor, UserRole.ADMIN)
    await repo.delete_menu_item(item_id)


# ── Staff ────────────────────────────────────────────────────────────────────

async def staff_canteen(repo: CanteenRepository, actor: User | None) -> Canteen:
    return await get_canteen(repo, access.require_canteen(actor))


async def staff_menu(repo: CanteenRepository, actor: User | None) -> list[MenuItem]:
    """Every item of the staff canteen, unavailable ones included."""
    canteen_id = access.require_canteen(actor)
    return await repo.list_menu_items(canteen_id=canteen_id)


async def staff_create_menu_item(
    repo: CanteenRepository, actor: User | None, payload: StaffMenuItemCreate
) -> MenuItem:
    canteen_id = access.require_canteen(actor)
    return await repo.create_menu_item(MenuItem(**_menu_fields(payload), canteen_id=canteen_id))


async def staff_update_menu_item(
    repo: CanteenRepository, actor: User | None, item_id: int, payload: MenuItemUpdate
) -> MenuItem:
    canteen_id = access.require_canteen(actor)
    item = await repo.get_menu_item(item_id)
    if item is None:
        raise NotFound("Menu item not found.")
    access.ensure_same_canteen(canteen_id, item.canteen_id, "menu items")
    return await repo.update_menu_item(item_id, **_menu_fields(payload))
