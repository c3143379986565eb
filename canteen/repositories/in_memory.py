from __future__ import annotations

import itertools
from datetime import datetime
from typing import Any, Iterable

from canteen.core.errors import Conflict, NotFound
from canteen.core.optimistic_lock import StaleDataError
from canteen.db.database import Base
from canteen.models import (
    Canteen,
    Expense,
    InventoryItem,
    MenuItem,
    Order,
    OrderItem,
    OrderRating,
    OrderStatus,
    SalesReport,
    User,
)
from canteen.models.order import utcnow
from canteen.repositories.base import CanteenRepository, reject_null_columns


def _fill_defaults(record: Base) -> None:
    # Column defaults normally apply at flush; transient rows never flush.
    for column in record.__table__.columns:
        if getattr(record, column.key) is None and column.default is not None:
            default = column.default
            setattr(record, column.key, default.arg(None) if default.is_callable else default.arg)


class _Table:
    """One entity map with its own auto-increment counter."""

    def __init__(self, label: str) -> None:
        self.label = label
        self.rows: dict[int, Any] = {}
        self._ids = itertools.count(1)

    def insert(self, record: Base) -> Any:
        record.id = next(self._ids)
        _fill_defaults(record)
        self.rows[record.id] = record
        return record

    def require(self, row_id: int) -> Any:
        record = self.rows.get(row_id)
        if record is None:
            raise NotFound(f"{self.label} not found.")
        return record

    def update(self, row_id: int, fields: dict[str, Any]) -> Any:
        record = self.require(row_id)
        reject_null_columns(type(record), self.label, fields)
        for key, value in fields.items():
            setattr(record, key, value)
        return record

    def values(self) -> list[Any]:
        return list(self.rows.values())


class InMemoryCanteenRepository(CanteenRepository):
    """
    Process-local store used by tests and by ``STORAGE_BACKEND=memory``.
    No method awaits between its writes, so each call is atomic on the event loop.
    """

    def __init__(self) -> None:
        self.users = _Table("User")
        self.canteens = _Table("Canteen")
        self.menu_items = _Table("Menu item")
        self.orders = _Table("Order")
        self.order_items = _Table("Order item")
        self.ratings = _Table("Rating")
        self.inventory = _Table("Inventory item")
        self.expenses = _Table("Expense")
        self.sales_reports = _Table("Sales report")

    def _require_canteen(self, canteen_id: int | None) -> None:
        if canteen_id is None or canteen_id not in self.canteens.rows:
            raise NotFound("Canteen not found.")

    # ── Users ────────────────────────────────────────────────
    async def get_user(self, user_id: int) -> User | None:
        return self.users.rows.get(user_id)

    async def get_user_by_username(self, username: str) -> User | None:
        wanted = username.lower()
        return next((u for u in self.users.values() if u.username.lower() == wanted), None)

    async def list_users(self, role: str | None = None) -> list[User]:
        return [u for u in self.users.values() if role is None or u.role == role]

    async def create_user(self, user: User) -> User:
        if await self.get_user_by_username(user.username):
            raise Conflict("Username already exists.")
        if user.canteen_id is not None:
            self._require_canteen(user.canteen_id)
        return self.users.insert(user)

    async def update_user(self, user_id: int, **fields: Any) -> User:
        if fields.get("canteen_id") is not None:
            self._require_canteen(fields["canteen_id"])
        return self.users.update(user_id, fields)

    # ── Canteens ─────────────────────────────────────────────
    async def get_canteen(self, canteen_id: int) -> Canteen | None:
        return self.canteens.rows.get(canteen_id)

    async def list_canteens(self, active_only: bool = False) -> list[Canteen]:
        return [c for c in self.canteens.values() if c.is_active or not active_only]

    async def create_canteen(self, canteen: Canteen) -> Canteen:
        return self.canteens.insert(canteen)

    async def update_canteen(self, canteen_id: int, **fields: Any) -> Canteen:
        return self.canteens.update(canteen_id, fields)

    async def delete_canteen(self, canteen_id: int) -> None:
        self.canteens.require(canteen_id)
        dependents = itertools.chain(
            self.menu_items.values(),
            self.inventory.values(),
            self.expenses.values(),
            self.sales_reports.values(),
            self.orders.values(),
            self.users.values(),
        )
        if any(row.canteen_id == canteen_id for row in dependents):
            raise Conflict("Canteen still has menu items, stock, ledger entries, orders or staff.")
        del self.canteens.rows[canteen_id]

    # ── Menu items ───────────────────────────────────────────
    async def get_menu_item(self, item_id: int) -> MenuItem | None:
        return self.menu_items.rows.get(item_id)

    async def get_menu_items(self, item_ids: Iterable[int]) -> dict[int, MenuItem]:
        return {i: self.menu_items.rows[i] for i in set(item_ids) if i in self.menu_items.rows}

    async def list_menu_items(
        self, canteen_id: int | None = None, available_only: bool = False
    ) -> list[MenuItem]:
        return [
            m for m in self.menu_items.values()
            if (canteen_id is None or m.canteen_id == canteen_id)
            and (m.is_available or not available_only)
        ]

    async def create_menu_item(self, item: MenuItem) -> MenuItem:
        self._require_canteen(item.canteen_id)
        return self.menu_items.insert(item)

    async def update_menu_item(self, item_id: int, **fields: Any) -> MenuItem:
        if fields.get("canteen_id") is not None:
            self._require_canteen(fields["canteen_id"])
        return self.menu_items.update(item_id, fields)

    async def delete_menu_item(self, item_id: int) -> None:
        self.menu_items.require(item_id)
        if any(oi.menu_item_id == item_id for oi in self.order_items.values()):
            raise Conflict("Menu item has been ordered; mark it unavailable instead.")
        del self.menu_items.rows[item_id]

    # ── Orders ───────────────────────────────────────────────
    async def get_order(self, order_id: int) -> Order | None:
        return self.orders.rows.get(order_id)

    async def list_orders(
        self,
        *,
        user_id: int | None = None,
        canteen_id: int | None = None,
        statuses: Iterable[str] | None = None,
        newest_first: bool = True,
    ) -> list[Order]:
        wanted = {OrderStatus(s).value for s in statuses} if statuses is not None else None
        rows = [
            o for o in self.orders.values()
            if (user_id is None or o.user_id == user_id)
            and (canteen_id is None or o.canteen_id == canteen_id)
            and (wanted is None or o.status in wanted)
        ]
        return sorted(rows, key=lambda o: (o.created_at, o.id), reverse=newest_first)

    async def create_order(self, order: Order, items: list[OrderItem]) -> Order:
        self._require_canteen(order.canteen_id)
        missing = {i.menu_item_id for i in items} - set(self.menu_items.rows)
        if missing:
            raise NotFound(f"Menu items not found: {sorted(missing)}")
        self.orders.insert(order)
        for item in items:
            item.order_id = order.id
            self.order_items.insert(item)
        return order

    async def set_order_status(self, order_id: int, status: str, expected_version: int) -> Order:
        order = self.orders.require(order_id)
        if order.version_id != expected_version:
            raise StaleDataError(f"Order {order_id} is at version {order.version_id}.")
        order.status = OrderStatus(status).value
        order.version_id = expected_version + 1
        order.updated_at = utcnow()
        return order

    async def list_order_items(self, order_id: int) -> list[OrderItem]:
        return [oi for oi in self.order_items.values() if oi.order_id == order_id]

    # ── Ratings ──────────────────────────────────────────────
    async def get_rating(self, order_id: int) -> OrderRating | None:
        return next((r for r in self.ratings.values() if r.order_id == order_id), None)

    async def upsert_rating(self, rating: OrderRating) -> OrderRating:
        existing = await self.get_rating(rating.order_id)
        if existing is None:
            return self.ratings.insert(rating)
        existing.user_id = rating.user_id
        existing.rating = rating.rating
        existing.comment = rating.comment
        existing.created_at = utcnow()
        return existing

    # ── Inventory ────────────────────────────────────────────
    async def get_inventory_item(self, item_id: int) -> InventoryItem | None:
        return self.inventory.rows.get(item_id)

    async def list_inventory_items(self, canteen_id: int) -> list[InventoryItem]:
        return [i for i in self.inventory.values() if i.canteen_id == canteen_id]

    async def list_low_stock(self, canteen_id: int) -> list[InventoryItem]:
        return [
            i for i in self.inventory.values()
            if i.canteen_id == canteen_id and i.quantity <= i.reorder_level
        ]

    async def create_inventory_item(self, item: InventoryItem) -> InventoryItem:
        self._require_canteen(item.canteen_id)
        return self.inventory.insert(item)

    async def update_inventory_item(self, item_id: int, **fields: Any) -> InventoryItem:
        fields.setdefault("last_updated", utcnow())
        return self.inventory.update(item_id, fields)

    async def delete_inventory_item(self, item_id: int) -> None:
        self.inventory.require(item_id)
        del self.inventory.rows[item_id]

    # ── Expenses & sales ─────────────────────────────────────
    async def list_expenses(self, canteen_id: int) -> list[Expense]:
        rows = [e for e in self.expenses.values() if e.canteen_id == canteen_id]
        return sorted(rows, key=lambda e: (e.date, e.id), reverse=True)

    async def create_expense(self, expense: Expense) -> Expense:
        self._require_canteen(expense.canteen_id)
        return self.expenses.insert(expense)

    async def list_sales_reports(self, canteen_id: int) -> list[SalesReport]:
        rows = [r for r in self.sales_reports.values() if r.canteen_id == canteen_id]
        return sorted(rows, key=lambda r: (r.date, r.id), reverse=True)

    async def create_sales_report(self, report: SalesReport) -> SalesReport:
        self._require_canteen(report.canteen_id)
        return self.sales_reports.insert(report)

    async def list_completed_orders_between(
        self, canteen_id: int, start: datetime, end: datetime
    ) -> list[Order]:
        return [
            o for o in self.orders.values()
            if o.canteen_id == canteen_id
            and o.status == OrderStatus.COMPLETED.value
            and start <= o.created_at < end
        ]
