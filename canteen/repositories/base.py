"""
Canteen Service — Repository abstraction

Business rules (state machine, access gate) only talk to this interface, so the
SQL repository and the in-memory one are interchangeable. Both return the ORM
classes from ``canteen.models`` as plain records.

Integrity rules enforced at this boundary by every implementation:
  - a menu item, inventory item, expense or sales report needs an existing canteen
  - a canteen with dependents cannot be deleted (Conflict)
  - a menu item referenced by an order item cannot be deleted (Conflict)
  - an order and its items are written together or not at all
  - status writes are compare-and-set on ``version_id`` (StaleDataError)
  - one rating per order; rating again replaces it
  - an update never writes None into a NOT NULL column (ValidationError)
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Iterable

from canteen.core.errors import ValidationError
from canteen.models import (
    Canteen,
    Expense,
    InventoryItem,
    MenuItem,
    Order,
    OrderItem,
    OrderRating,
    SalesReport,
    User,
)


def reject_null_columns(model, label: str, fields: dict[str, Any]) -> None:
    """Refuse an update that would put None into a NOT NULL column of ``model``."""
    columns = model.__table__.columns
    nulls = sorted(
        key for key, value in fields.items()
        if value is None and key in columns and not columns[key].nullable
    )
    if nulls:
        raise ValidationError(f"{label} {', '.join(nulls)} cannot be empty.")


class CanteenRepository(ABC):

    # ── Users ────────────────────────────────────────────────
    @abstractmethod
    async def get_user(self, user_id: int) -> User | None:
        raise NotImplementedError

    @abstractmethod
    async def get_user_by_username(self, username: str) -> User | None:
        """Case-insensitive lookup."""
        raise NotImplementedError

    @abstractmethod
    async def list_users(self, role: str | None = None) -> list[User]:
        raise NotImplementedError

    @abstractmethod
    async def create_user(self, user: User) -> User:
        raise NotImplementedError

    @abstractmethod
    async def update_user(self, user_id: int, **fields: Any) -> User:
        raise NotImplementedError

    # ── Canteens ─────────────────────────────────────────────
    @abstractmethod
    async def get_canteen(self, canteen_id: int) -> Canteen | None:
        raise NotImplementedError

    @abstractmethod
    async def list_canteens(self, active_only: bool = False) -> list[Canteen]:
        raise NotImplementedError

    @abstractmethod
    async def create_canteen(self, canteen: Canteen) -> Canteen:
        raise NotImplementedError

    @abstractmethod
    async def update_canteen(self, canteen_id: int, **fields: Any) -> Canteen:
        raise NotImplementedError

    @abstractmethod
    async def delete_canteen(self, canteen_id: int) -> None:
        raise NotImplementedError

    # ── Menu items ───────────────────────────────────────────
    @abstractmethod
    async def get_menu_item(self, item_id: int) -> MenuItem | None:
        raise NotImplementedError

    @abstractmethod
    async def get_menu_items(self, item_ids: Iterable[int]) -> dict[int, MenuItem]:
        """Bulk fetch keyed by id; unknown ids are simply absent."""
        raise NotImplementedError

    @abstractmethod
    async def list_menu_items(
        self, canteen_id: int | None = None, available_only: bool = False
    ) -> list[MenuItem]:
        raise NotImplementedError

    @abstractmethod
    async def create_menu_item(self, item: MenuItem) -> MenuItem:
        raise NotImplementedError

    @abstractmethod
    async def update_menu_item(self, item_id: int, **fields: Any) -> MenuItem:
        raise NotImplementedError

    @abstractmethod
    async def delete_menu_item(self, item_id: int) -> None:
        raise NotImplementedError

    # ── Orders ───────────────────────────────────────────────
    @abstractmethod
    async def get_order(self, order_id: int) -> Order | None:
        raise NotImplementedError

    @abstractmethod
    async def list_orders(
        self,
        *,
        user_id: int | None = None,
        canteen_id: int | None = None,
        statuses: Iterable[str] | None = None,
        newest_first: bool = True,
    ) -> list[Order]:
        raise NotImplementedError

    @abstractmethod
    async def create_order(self, order: Order, items: list[OrderItem]) -> Order:
        """Persist an order and its items atomically; items get ``order_id`` set."""
        raise NotImplementedError

    @abstractmethod
    async def set_order_status(self, order_id: int, status: str, expected_version: int) -> Order:
        """Compare-and-set the status. Raises StaleDataError on a version mismatch."""
        raise NotImplementedError

    @abstractmethod
    async def list_order_items(self, order_id: int) -> list[OrderItem]:
        raise NotImplementedError

    # ── Ratings ──────────────────────────────────────────────
    @abstractmethod
    async def get_rating(self, order_id: int) -> OrderRating | None:
        raise NotImplementedError

    @abstractmethod
    async def upsert_rating(self, rating: OrderRating) -> OrderRating:
        raise NotImplementedError

    # ── Inventory ────────────────────────────────────────────
    @abstractmethod
    async def get_inventory_item(self, item_id: int) -> InventoryItem | None:
        raise NotImplementedError

    @abstractmethod
    async def list_inventory_items(self, canteen_id: int) -> list[InventoryItem]:
        raise NotImplementedError

    @abstractmethod
    async def list_low_stock(self, canteen_id: int) -> list[InventoryItem]:
        raise NotImplementedError

    @abstractmethod
    async def create_inventory_item(self, item: InventoryItem) -> InventoryItem:
        raise NotImplementedError

    @abstractmethod
    async def update_inventory_item(self, item_id: int, **fields: Any) -> InventoryItem:
        raise NotImplementedError

    @abstractmethod
    async def delete_inventory_item(self, item_id: int) -> None:
        raise NotImplementedError

    # ── Expenses & sales ─────────────────────────────────────
    @abstractmethod
    async def list_expenses(self, canteen_id: int) -> list[Expense]:
        raise NotImplementedError

    @abstractmethod
    async def create_expense(self, expense: Expense) -> Expense:
        raise NotImplementedError

    @abstractmethod
    async def list_sales_reports(self, canteen_id: int) -> list[SalesReport]:
        raise NotImplementedError

    @abstractmethod
    async def create_sales_report(self, report: SalesReport) -> SalesReport:
        raise NotImplementedError

    @abstractmethod
    async def list_completed_orders_between(
        self, canteen_id: int, start: datetime, end: datetime
    ) -> list[Order]:
        """Completed orders of a canteen with ``start <= created_at < end``."""
        raise NotImplementedError
