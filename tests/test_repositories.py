"""
Integrity rules both repositories enforce: canteen references, delete guards,
atomic order writes, versioned status writes and rating upserts.

Every test runs against the in-memory store and against SQLite.
"""
import pytest

from canteen.core.errors import Conflict, NotFound, ValidationError
from canteen.core.optimistic_lock import StaleDataError
from canteen.models import (
    Canteen,
    Expense,
    InventoryItem,
    MenuItem,
    Order,
    OrderItem,
    OrderRating,
    User,
    UserRole,
)


async def new_order(repo, world, status="received"):
    order = Order(user_id=world.alice.id, canteen_id=world.north.id, status=status, total_amount=40)
    return await repo.create_order(
        order, [OrderItem(menu_item_id=world.tea.id, quantity=1, price=40)]
    )


# ─── Users ─────────────────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_username_lookup_ignores_case(store):
    repo, world = store
    found = await repo.get_user_by_username("ALICE@Campus.edu")
    assert found is not None and found.id == world.alice.id


@pytest.mark.asyncio
async def test_duplicate_username_conflicts(store):
    repo, _ = store
    with pytest.raises(Conflict):
        await repo.create_user(User(username="alice@campus.edu", hashed_password="x"))


@pytest.mark.asyncio
async def test_is_admin_follows_role(store):
    repo, world = store
    assert world.admin.is_admin is True
    assert world.alice.is_admin is False

    promoted = await repo.update_user(world.alice.id, role=UserRole.ADMIN.value)
    assert promoted.is_admin is True
    demoted = await repo.update_user(world.alice.id, role=UserRole.STAFF.value)
    assert demoted.is_admin is False


@pytest.mark.asyncio
async def test_list_users_by_role(store):
    repo, _ = store
    staff = await repo.list_users(UserRole.STAFF.value)
    assert {u.username for u in staff} == {"cook@north", "cook@south", "new@staff"}


@pytest.mark.asyncio
async def test_assigning_unknown_canteen_is_not_found(store):
    repo, world = store
    with pytest.raises(NotFound):
        await repo.update_user(world.drifter.id, canteen_id=999)


# ─── Canteens & menu ───────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_menu_item_needs_existing_canteen(store):
    repo, _ = store
    with pytest.raises(NotFound):
        await repo.create_menu_item(MenuItem(name="Ghost", price=10, category="veg", canteen_id=999))


@pytest.mark.asyncio
async def test_canteen_with_dependents_cannot_be_deleted(store):
    repo, world = store
    with pytest.raises(Conflict):
        await repo.delete_canteen(world.north.id)
    assert await repo.get_canteen(world.north.id) is not None


@pytest.mark.asyncio
async def test_empty_canteen_can_be_deleted(store):
    repo, _ = store
    empty = await repo.create_canteen(Canteen(name="Pop-up", location="Lawn"))
    await repo.delete_canteen(empty.id)
    assert await repo.get_canteen(empty.id) is None
    with pytest.raises(NotFound):
        await repo.delete_canteen(empty.id)


@pytest.mark.asyncio
async def test_ordered_menu_item_cannot_be_deleted(store):
    repo, world = store
    await new_order(repo, world)
    with pytest.raises(Conflict):
        await repo.delete_menu_item(world.tea.id)

    await repo.delete_menu_item(world.samosa.id)
    assert await repo.get_menu_item(world.samosa.id) is None


@pytest.mark.asyncio
async def test_menu_listing_filters(store):
    repo, world = store
    north_available = await repo.list_menu_items(canteen_id=world.north.id, available_only=True)
    assert {m.name for m in north_available} == {"Tea", "Samosa"}
    assert len(await repo.list_menu_items(canteen_id=world.north.id)) == 3
    assert len(await repo.list_menu_items(available_only=True)) == 3


@pytest.mark.asyncio
async def test_inactive_canteens_are_hidden_from_active_listing(store):
    repo, world = store
    await repo.update_canteen(world.south.id, is_active=False)
    assert [c.id for c in await repo.list_canteens(active_only=True)] == [world.north.id]
    assert len(await repo.list_canteens()) == 2


# ─── Orders ────────────────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_order_and_items_written_together(store):
    repo, world = store
    order = await new_order(repo, world)
    items = await repo.list_order_items(order.id)
    assert [i.order_id for i in items] == [order.id]
    assert order.version_id == 1


@pytest.mark.asyncio
async def test_memory_order_with_unknown_item_writes_nothing(repo, world):
    order = Order(user_id=world.alice.id, canteen_id=world.north.id, status="received", total_amount=40)
    lines = [
        OrderItem(menu_item_id=world.tea.id, quantity=1, price=40),
        OrderItem(menu_item_id=999, quantity=1, price=10),
    ]
    with pytest.raises(NotFound):
        await repo.create_order(order, lines)
    assert await repo.list_orders() == []
    assert repo.order_items.rows == {}


@pytest.mark.asyncio
async def test_sql_order_write_is_all_or_nothing(sql_repo, world_builder):
    world = await world_builder(sql_repo)
    order = Order(user_id=world.alice.id, canteen_id=world.north.id, status="received", total_amount=40)
    lines = [
        OrderItem(menu_item_id=world.tea.id, quantity=1, price=40),
        OrderItem(menu_item_id=world.tea.id, quantity=None, price=40),
    ]
    with pytest.raises(Conflict):
        await sql_repo.create_order(order, lines)
    assert await sql_repo.list_orders() == []


@pytest.mark.asyncio
async def test_status_write_is_compare_and_set(store):
    repo, world = store
    order = await new_order(repo, world)

    updated = await repo.set_order_status(order.id, "preparing", expected_version=1)
    assert (updated.status, updated.version_id) == ("preparing", 2)

    with pytest.raises(StaleDataError):
        await repo.set_order_status(order.id, "cancelled", expected_version=1)
    stored = await repo.get_order(order.id)
    assert (stored.status, stored.version_id) == ("preparing", 2)


@pytest.mark.asyncio
async def test_list_orders_filters_and_sorts(store):
    repo, world = store
    first = await new_order(repo, world)
    second = await new_order(repo, world, status="completed")
    third = await new_order(repo, world)

    active = await repo.list_orders(user_id=world.alice.id, statuses=["received"], newest_first=False)
    assert [o.id for o in active] == [first.id, third.id]
    newest = await repo.list_orders(canteen_id=world.north.id)
    assert [o.id for o in newest] == [third.id, second.id, first.id]
    assert await repo.list_orders(canteen_id=world.south.id) == []


@pytest.mark.asyncio
async def test_rating_upsert_keeps_one_row(store):
    repo, world = store
    order = await new_order(repo, world, status="completed")
    first = await repo.upsert_rating(OrderRating(order_id=order.id, user_id=world.alice.id, rating=2))
    second = await repo.upsert_rating(
        OrderRating(order_id=order.id, user_id=world.alice.id, rating=4, comment="better")
    )
    assert first.id == second.id
    stored = await repo.get_rating(order.id)
    assert (stored.rating, stored.comment) == (4, "better")


# ─── Inventory & ledger ────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_low_stock_is_at_or_below_reorder_level(store):
    repo, world = store
    for name, quantity in (("Rice", 5), ("Oil", 10), ("Flour", 11)):
        await repo.create_inventory_item(
            InventoryItem(
                name=name, quantity=quantity, unit="kg", cost_per_unit=50,
                canteen_id=world.north.id, updated_by=world.north_staff.id,
            )
        )
    low = await repo.list_low_stock(world.north.id)
    assert {i.name for i in low} == {"Rice", "Oil"}
    assert await repo.list_low_stock(world.south.id) == []


@pytest.mark.asyncio
async def test_inventory_update_stamps_last_updated(store):
    repo, world = store
    item = await repo.create_inventory_item(
        InventoryItem(name="Milk", quantity=4, unit="liters", cost_per_unit=60,
                      canteen_id=world.north.id, updated_by=world.north_staff.id)
    )
    before = item.last_updated
    updated = await repo.update_inventory_item(item.id, quantity=20)
    assert updated.quantity == 20
    assert updated.last_updated >= before


@pytest.mark.asyncio
async def test_expense_needs_existing_canteen(store):
    repo, world = store
    with pytest.raises(NotFound):
        await repo.create_expense(
            Expense(description="Gas", amount=900, category="utilities", canteen_id=999,
                    recorded_by=world.north_staff.id)
        )


@pytest.mark.asyncio
async def test_completed_orders_between(store):
    repo, world = store
    done = await new_order(repo, world, status="completed")
    await new_order(repo, world)
    start = done.created_at.replace(hour=0, minute=0, second=0, microsecond=0)
    end = start.replace(year=start.year + 1)

    completed = await repo.list_completed_orders_between(world.north.id, start, end)
    assert [o.id for o in completed] == [done.id]


# ─── Partial updates ───────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_update_refuses_null_in_required_columns(store):
    repo, world = store
    milk = await repo.create_inventory_item(
        InventoryItem(name="Milk", quantity=4, unit="liters", cost_per_unit=60,
                      canteen_id=world.north.id, updated_by=world.north_staff.id)
    )
    with pytest.raises(ValidationError, match="price"):
        await repo.update_menu_item(world.tea.id, price=None)
    with pytest.raises(ValidationError, match="canteen_id"):
        await repo.update_menu_item(world.tea.id, canteen_id=None)
    with pytest.raises(ValidationError, match="quantity"):
        await repo.update_inventory_item(milk.id, quantity=None)
    with pytest.raises(ValidationError, match="location, name"):
        await repo.update_canteen(world.north.id, name=None, location=None)
    with pytest.raises(ValidationError, match="is_active"):
        await repo.update_user(world.bob.id, is_active=None)

    tea = await repo.get_menu_item(world.tea.id)
    assert (tea.price, tea.canteen_id) == (40, world.north.id)
    assert [i.quantity for i in await repo.list_low_stock(world.north.id)] == [4]
    assert (await repo.get_canteen(world.north.id)).name == "North"
    assert (await repo.get_user(world.bob.id)).is_active is True


@pytest.mark.asyncio
async def test_update_can_clear_nullable_columns(store):
    repo, world = store
    await repo.update_menu_item(world.tea.id, description="Assam")
    cleared = await repo.update_menu_item(world.tea.id, description=None)
    assert (cleared.description, cleared.price) == (None, 40)
    staff = await repo.update_user(world.north_staff.id, canteen_id=None)
    assert staff.canteen_id is None


@pytest.mark.asyncio
async def test_sql_update_integrity_error_is_a_conflict(sql_repo, world_builder):
    world = await world_builder(sql_repo)
    with pytest.raises(Conflict):
        await sql_repo.update_user(world.bob.id, username="alice@campus.edu")

    # The failed write was rolled back and the session keeps working.
    bob = await sql_repo.get_user_by_username("bob@campus.edu")
    assert bob.id == world.bob.id
    await sql_repo.update_user(bob.id, username="robert@campus.edu")
    assert (await sql_repo.get_user(bob.id)).username == "robert@campus.edu"
