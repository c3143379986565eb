"""
Order lifecycle: checkout, status transitions, reorder and ratings against the
in-memory repository.
"""
import pytest

from canteen.core.errors import (
    CanteenNotAssigned,
    Conflict,
    Forbidden,
    InvalidState,
    InvalidTransition,
    NotFound,
    Unauthenticated,
    ValidationError,
)
from canteen.core import optimistic_lock
from canteen.core.optimistic_lock import StaleDataError, backoff_delay
from canteen.models import OrderStatus
from canteen.repositories import InMemoryCanteenRepository
from canteen.schemas.order import OrderCreate
from canteen.services import order_flow
from canteen.services.order_flow import CUSTOMER_TRANSITIONS, STAFF_TRANSITIONS

S = OrderStatus


def cart(*lines, total=None, notes=None) -> OrderCreate:
    return OrderCreate(
        items=[{"menu_item_id": item.id, "quantity": qty} for item, qty in lines],
        total_amount=total,
        special_notes=notes,
    )


async def place(repo, world, *lines, customer=None):
    view = await order_flow.place_order(repo, customer or world.alice, cart(*lines))
    return view.order


async def walk(repo, order, staff, *statuses):
    for target in statuses:
        await order_flow.update_status(repo, order.id, target, staff)


# ─── Transition table ──────────────────────────────────────────────────────────
def test_customer_edges_are_a_subset_of_staff_edges():
    for status, targets in CUSTOMER_TRANSITIONS.items():
        assert targets <= STAFF_TRANSITIONS[status]


def test_terminal_states_have_no_exits():
    assert not STAFF_TRANSITIONS[S.COMPLETED.value]
    assert not STAFF_TRANSITIONS[S.CANCELLED.value]


# ─── Checkout ──────────────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_place_order_prices_from_menu(repo, world):
    view = await order_flow.place_order(repo, world.alice, cart((world.tea, 2), total=80))

    assert view.order.status == S.RECEIVED.value
    assert view.order.total_amount == 80
    assert view.order.canteen_id == world.north.id
    assert view.order.user_id == world.alice.id
    assert [(line.item.menu_item_id, line.item.quantity, line.item.price) for line in view.lines] == [
        (world.tea.id, 2, 40)
    ]


@pytest.mark.asyncio
async def test_place_order_without_items_creates_nothing(repo, world):
    with pytest.raises(ValidationError):
        await order_flow.place_order(repo, world.alice, OrderCreate(items=[]))
    assert await repo.list_orders() == []


@pytest.mark.asyncio
async def test_place_order_rejects_client_price_mismatch(repo, world):
    payload = OrderCreate(items=[{"menu_item_id": world.tea.id, "quantity": 1, "price": 1}])
    with pytest.raises(ValidationError, match="Price"):
        await order_flow.place_order(repo, world.alice, payload)
    assert await repo.list_orders() == []


@pytest.mark.asyncio
async def test_place_order_rejects_total_mismatch(repo, world):
    with pytest.raises(ValidationError, match="total"):
        await order_flow.place_order(repo, world.alice, cart((world.tea, 2), total=79))


@pytest.mark.asyncio
async def test_place_order_rejects_mixed_canteens(repo, world):
    with pytest.raises(ValidationError, match="same canteen"):
        await order_flow.place_order(repo, world.alice, cart((world.tea, 1), (world.coffee, 1)))
    assert await repo.list_orders() == []


@pytest.mark.asyncio
@pytest.mark.parametrize("quantity", [0, -3])
async def test_place_order_rejects_non_positive_quantity(repo, world, quantity):
    with pytest.raises(ValidationError):
        await order_flow.place_order(repo, world.alice, cart((world.tea, quantity)))


@pytest.mark.asyncio
async def test_place_order_rejects_unavailable_and_unknown_items(repo, world):
    with pytest.raises(ValidationError, match="unavailable"):
        await order_flow.place_order(repo, world.alice, cart((world.thali, 1)))
    with pytest.raises(ValidationError, match="does not exist"):
        await order_flow.place_order(repo, world.alice, OrderCreate(items=[{"menu_item_id": 999, "quantity": 1}]))


@pytest.mark.asyncio
async def test_place_order_requires_login(repo, world):
    with pytest.raises(Unauthenticated):
        await order_flow.place_order(repo, None, cart((world.tea, 1)))


# ─── Staff transitions ─────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_staff_walks_the_happy_path(repo, world):
    order = await place(repo, world, (world.tea, 2))
    versions = [order.version_id]
    for target in ("preparing", "ready", "completed"):
        view = await order_flow.update_status(repo, order.id, target, world.north_staff)
        assert view.order.status == target
        versions.append(view.order.version_id)
    assert versions == sorted(versions) and len(set(versions)) == 4


@pytest.mark.asyncio
async def test_received_to_completed_is_rejected(repo, world):
    order = await place(repo, world, (world.tea, 1))
    with pytest.raises(InvalidTransition):
        await order_flow.update_status(repo, order.id, "completed", world.north_staff)
    stored = await repo.get_order(order.id)
    assert stored.status == S.RECEIVED.value
    assert stored.version_id == 1


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "path, target",
    [
        ((), "ready"),
        (("preparing",), "received"),
        (("preparing", "ready"), "cancelled"),
        (("preparing", "ready", "completed"), "cancelled"),
        (("cancelled",), "preparing"),
    ],
)
async def test_off_table_transitions_leave_state_unchanged(repo, world, path, target):
    order = await place(repo, world, (world.tea, 1))
    await walk(repo, order, world.north_staff, *path)
    before = (await repo.get_order(order.id)).status

    with pytest.raises(InvalidTransition):
        await order_flow.update_status(repo, order.id, target, world.north_staff)
    assert (await repo.get_order(order.id)).status == before


@pytest.mark.asyncio
async def test_unknown_status_is_a_validation_error(repo, world):
    order = await place(repo, world, (world.tea, 1))
    with pytest.raises(ValidationError, match="Invalid status"):
        await order_flow.update_status(repo, order.id, "burnt", world.north_staff)


@pytest.mark.asyncio
async def test_staff_of_other_canteen_is_forbidden(repo, world):
    order = await place(repo, world, (world.tea, 1))
    with pytest.raises(Forbidden):
        await order_flow.update_status(repo, order.id, "preparing", world.south_staff)
    assert (await repo.get_order(order.id)).status == S.RECEIVED.value


@pytest.mark.asyncio
async def test_unassigned_staff_gets_validation_error_first(repo, world):
    with pytest.raises(CanteenNotAssigned):
        await order_flow.update_status(repo, 12345, "preparing", world.drifter)
    with pytest.raises(CanteenNotAssigned):
        await order_flow.staff_orders(repo, world.drifter, active=True)


@pytest.mark.asyncio
async def test_admin_may_move_any_order(repo, world):
    order = await place(repo, world, (world.coffee, 1))
    view = await order_flow.update_status(repo, order.id, "preparing", world.admin)
    assert view.order.status == S.PREPARING.value


@pytest.mark.asyncio
async def test_missing_order_is_not_found(repo, world):
    with pytest.raises(NotFound):
        await order_flow.update_status(repo, 999, "preparing", world.north_staff)


# ─── Customer transitions ──────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_customer_cancels_until_ready(repo, world):
    order = await place(repo, world, (world.tea, 1))
    await walk(repo, order, world.north_staff, "preparing")
    view = await order_flow.cancel_order(repo, order.id, world.alice)
    assert view.order.status == S.CANCELLED.value

    late = await place(repo, world, (world.tea, 1))
    await walk(repo, late, world.north_staff, "preparing", "ready")
    with pytest.raises(InvalidTransition):
        await order_flow.cancel_order(repo, late.id, world.alice)


@pytest.mark.asyncio
async def test_customer_completes_ready_order(repo, world):
    order = await place(repo, world, (world.tea, 1))
    with pytest.raises(InvalidTransition):
        await order_flow.complete_order(repo, order.id, world.alice)

    await walk(repo, order, world.north_staff, "preparing", "ready")
    view = await order_flow.complete_order(repo, order.id, world.alice)
    assert view.order.status == S.COMPLETED.value


@pytest.mark.asyncio
async def test_customer_cannot_take_kitchen_edges(repo, world):
    order = await place(repo, world, (world.tea, 1))
    with pytest.raises(Forbidden):
        await order_flow.update_status(repo, order.id, "preparing", world.alice)


@pytest.mark.asyncio
async def test_customer_cannot_touch_someone_elses_order(repo, world):
    order = await place(repo, world, (world.tea, 1))
    with pytest.raises(Forbidden):
        await order_flow.cancel_order(repo, order.id, world.bob)
    with pytest.raises(Forbidden):
        await order_flow.get_order(repo, order.id, world.bob)


# ─── Reorder ───────────────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_reorder_copies_lines_and_starts_received(repo, world):
    order = await place(repo, world, (world.tea, 2), (world.samosa, 3))
    await walk(repo, order, world.north_staff, "preparing", "ready", "completed")

    view = await order_flow.reorder(repo, order.id, world.alice)

    source = await repo.list_order_items(order.id)
    assert view.order.id != order.id
    assert view.order.status == S.RECEIVED.value
    assert view.order.total_amount == order.total_amount == 155
    assert sorted((i.item.menu_item_id, i.item.quantity, i.item.price) for i in view.lines) == sorted(
        (i.menu_item_id, i.quantity, i.price) for i in source
    )


@pytest.mark.asyncio
async def test_reorder_keeps_snapshot_prices(repo, world):
    order = await place(repo, world, (world.tea, 1))
    await repo.update_menu_item(world.tea.id, price=55)

    view = await order_flow.reorder(repo, order.id, world.alice)
    assert view.lines[0].item.price == 40
    assert view.order.total_amount == 40


@pytest.mark.asyncio
async def test_reorder_of_foreign_order_is_forbidden(repo, world):
    order = await place(repo, world, (world.tea, 1))
    with pytest.raises(Forbidden):
        await order_flow.reorder(repo, order.id, world.bob)


# ─── Ratings ───────────────────────────────────────────────────────────────────
@pytest.mark.asyncio
@pytest.mark.parametrize("path", [(), ("preparing",), ("preparing", "ready"), ("cancelled",)])
async def test_rating_requires_completed_order(repo, world, path):
    order = await place(repo, world, (world.tea, 1))
    await walk(repo, order, world.north_staff, *path)
    with pytest.raises(InvalidState):
        await order_flow.rate_order(repo, order.id, world.alice, 5)
    assert await repo.get_rating(order.id) is None


@pytest.mark.asyncio
@pytest.mark.parametrize("value", [0, 6, -1])
async def test_rating_out_of_range(repo, world, value):
    order = await place(repo, world, (world.tea, 1))
    await walk(repo, order, world.north_staff, "preparing", "ready", "completed")
    with pytest.raises(ValidationError):
        await order_flow.rate_order(repo, order.id, world.alice, value)


@pytest.mark.asyncio
async def test_second_rating_replaces_first(repo, world):
    order = await place(repo, world, (world.tea, 1))
    await walk(repo, order, world.north_staff, "preparing", "ready", "completed")

    first = await order_flow.rate_order(repo, order.id, world.alice, 3, "cold")
    second = await order_flow.rate_order(repo, order.id, world.alice, 5, "great")

    assert first.id == second.id
    stored = await repo.get_rating(order.id)
    assert (stored.rating, stored.comment) == (5, "great")
    assert len(repo.ratings.rows) == 1


@pytest.mark.asyncio
async def test_only_owner_rates(repo, world):
    order = await place(repo, world, (world.tea, 1))
    await walk(repo, order, world.north_staff, "preparing", "ready", "completed")
    with pytest.raises(Forbidden):
        await order_flow.rate_order(repo, order.id, world.bob, 4)


# ─── Views ─────────────────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_active_order_and_history(repo, world):
    assert await order_flow.active_order_for(repo, world.alice) is None

    done = await place(repo, world, (world.tea, 1))
    await walk(repo, done, world.north_staff, "preparing", "ready", "completed")
    dropped = await place(repo, world, (world.samosa, 1))
    await order_flow.cancel_order(repo, dropped.id, world.alice)
    live = await place(repo, world, (world.tea, 1))

    active = await order_flow.active_order_for(repo, world.alice)
    assert active.order.id == live.id
    history = await order_flow.order_history_for(repo, world.alice)
    assert {v.order.id for v in history} == {done.id, dropped.id}


@pytest.mark.asyncio
async def test_staff_queue_is_scoped_and_oldest_first(repo, world):
    first = await place(repo, world, (world.tea, 1))
    second = await place(repo, world, (world.samosa, 1), customer=world.bob)
    await place(repo, world, (world.coffee, 1))

    queue = await order_flow.staff_orders(repo, world.north_staff, active=True)
    assert [v.order.id for v in queue] == [first.id, second.id]
    assert await order_flow.staff_orders(repo, world.north_staff, active=False) == []


@pytest.mark.asyncio
async def test_all_orders_is_admin_only(repo, world):
    await place(repo, world, (world.tea, 1))
    await place(repo, world, (world.coffee, 1))
    assert len(await order_flow.all_orders(repo, world.admin, active=True)) == 2
    with pytest.raises(Forbidden):
        await order_flow.all_orders(repo, world.north_staff, active=True)


# ─── Optimistic locking ────────────────────────────────────────────────────────
class RacingRepository(InMemoryCanteenRepository):
    """Lets another writer cancel the order right before our first status write lands."""

    def __init__(self):
        super().__init__()
        self.raced = False

    async def set_order_status(self, order_id, status, expected_version):
        if not self.raced:
            self.raced = True
            await super().set_order_status(order_id, S.CANCELLED.value, expected_version)
        return await super().set_order_status(order_id, status, expected_version)


class AlwaysStaleRepository(InMemoryCanteenRepository):
    async def set_order_status(self, order_id, status, expected_version):
        raise StaleDataError("always behind")


@pytest.mark.asyncio
async def test_lost_race_is_retried_against_fresh_state(world_builder):
    repo = RacingRepository()
    world = await world_builder(repo)
    order = await place(repo, world, (world.tea, 1))

    # The retry re-reads the order, sees it cancelled and refuses the edge.
    with pytest.raises(InvalidTransition):
        await order_flow.update_status(repo, order.id, "preparing", world.north_staff)
    stored = await repo.get_order(order.id)
    assert stored.status == S.CANCELLED.value
    assert stored.version_id == 2


@pytest.mark.asyncio
async def test_exhausted_retries_surface_conflict(world_builder):
    repo = AlwaysStaleRepository()
    world = await world_builder(repo)
    order = await place(repo, world, (world.tea, 1))
    with pytest.raises(Conflict):
        await order_flow.update_status(repo, order.id, "preparing", world.north_staff)
    assert (await repo.get_order(order.id)).status == S.RECEIVED.value


def test_backoff_grows_and_is_capped(monkeypatch):
    monkeypatch.setattr(optimistic_lock.settings, "OPT_LOCK_BASE_DELAY_MS", 10)
    monkeypatch.setattr(optimistic_lock.settings, "OPT_LOCK_MAX_DELAY_MS", 50)
    monkeypatch.setattr(optimistic_lock.settings, "OPT_LOCK_JITTER_MS", 0)
    assert [backoff_delay(n) for n in (1, 2, 3)] == [0.02, 0.04, 0.05]
