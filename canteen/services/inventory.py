"""
Canteen Service — Inventory (staff, own canteen only)
"""
import logging

from canteen.core.errors import NotFound
from canteen.models import InventoryItem, User
from canteen.repositories import CanteenRepository
from canteen.schemas.inventory import InventoryItemCreate, InventoryItemUpdate
from canteen.services import access

logger = logging.getLogger(__name__)


async def list_inventory(repo: CanteenRepository, actor: User | None) -> list[InventoryItem]:
    return await repo.list_inventory_items(access.require_canteen(actor))


async def low_stock(repo: CanteenRepository, actor: User | None) -> list[InventoryItem]:
    """Items at or below their reorder level. Read only; the UI polls this."""
    return await repo.list_low_stock(access.require_canteen(actor))


async def add_item(
    repo: CanteenRepository, actor: User | None, payload: InventoryItemCreate
) -> InventoryItem:
    canteen_id = access.require_canteen(actor)
    item = await repo.create_inventory_item(
        InventoryItem(**payload.model_dump(), canteen_id=canteen_id, updated_by=actor.id)
    )
    if item.quantity <= item.reorder_level:
        logger.info("Inventory item %s '%s' starts below reorder level", item.id, item.name)
    return item


async def _scoped_item(repo: CanteenRepository, actor: User | None, item_id: int) -> InventoryItem:
    canteen_id = access.require_canteen(actor)
    item = await repo.get_inventory_item(item_id)
    if item is None:
        raise NotFound("Inventory item not found.")
    access.ensure_same_canteen(canteen_id, item.canteen_id, "inventory")
    return item


async def update_item(
    repo: CanteenRepository, actor: User | None, item_id: int, payload: InventoryItemUpdate
) -> InventoryItem:
    await _scoped_item(repo, actor, item_id)
    return await repo.update_inventory_item(
        item_id, **payload.model_dump(exclude_unset=True), updated_by=actor.id
    )


async def remove_item(repo: CanteenRepository, actor: User | None, item_id: int) -> None:
    await _scoped_item(repo, actor, item_id)
    await repo.delete_inventory_item(item_id)
