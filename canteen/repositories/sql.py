"""
Canteen Service — SQLAlchemy repository (PostgreSQL in production)
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Iterable

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from canteen.core.errors import Conflict, NotFound
from canteen.core.optimistic_lock import StaleDataError
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

logger = logging.getLogger(__name__)


class SqlCanteenRepository(CanteenRepository):
    """One instance per request, bound to that request's AsyncSession."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _require(self, model, row_id: int, label: str):
        row = await self.db.get(model, row_id)
        if row is None:
            raise NotFound(f"{label} not found.")
        return row

    async def _require_canteen(self, canteen_id: int | None) -> None:
        if canteen_id is None or await self.db.get(Canteen, canteen_id) is None:
            raise NotFound("Canteen not found.")

    async def _count(self, model, *criteria) -> int:
        return await self.db.scalar(select(func.count()).select_from(model).where(*criteria))

    async def _add(self, row):
        self.db.add(row)
        try:
            await self.db.commit()
        except IntegrityError as exc:
            await self.db.rollback()
            logger.warning("Integrity error on %s insert: %s", type(row).__name__, exc.orig)
            raise Conflict(f"{type(row).__name__} conflicts with existing data.")
        return row

    async def _update(self, model, row_id: int, label: str, fields: dict[str, Any]):
        row = await self._require(model, row_id, label)
        reject_null_columns(model, label, fields)
        for key, value in fields.items():
            setattr(row, key, value)
        try:
            await self.db.commit()
        except IntegrityError as exc:
            await self.db.rollback()
            logger.warning("Integrity error on %s %s update: %s", label, row_id, exc.orig)
            raise Conflict(f"{label} update conflicts with existing data.")
        return row

    # ── Users ────────────────────────────────────────────────
    async def get_user(self, user_id: int) -> User | None:
        return await self.db.get(User, user_id)

    async def get_user_by_username(self, username: str) -> User | None:
        result = await self.db.execute(
            select(User).where(func.lower(User.username) == username.lower())
        )
        return result.scalar_one_or_none()

    async def list_users(self, role: str | None = None) -> list[User]:
        stmt = select(User).order_by(User.id)
        if role is not None:
            stmt = stmt.where(User.role == role)
        return list((await self.db.execute(stmt)).scalars().all())

    async def create_user(self, user: User) -> User:
        if await self.get_user_by_username(user.username):
            raise Conflict("Username already exists.")
        if user.canteen_id is not None:
            await self._require_canteen(user.canteen_id)
        return await self._add(user)

    async def update_user(self, user_id: int, **fields: Any) -> User:
        if fields.get("canteen_id") is not None:
            await self._require_canteen(fields["canteen_id"])
        return await self._update(User, user_id, "User", fields)

    # ── Canteens ─────────────────────────────────────────────
    async def get_canteen(self, canteen_id: int) -> Canteen | None:
        return await self.db.get(Canteen, canteen_id)

    async def list_canteens(self, active_only: bool = False) -> list[Canteen]:
        stmt = select(Canteen).order_by(Canteen.id)
        if active_only:
            stmt = stmt.where(Canteen.is_active.is_(True))
        return list((await self.db.execute(stmt)).scalars().all())

    async def create_canteen(self, canteen: Canteen) -> Canteen:
        return await self._add(canteen)

    async def update_canteen(self, canteen_id: int, **fields: Any) -> Canteen:
        return await self._update(Canteen, canteen_id, "Canteen", fields)

    async def delete_canteen(self, canteen_id: int) -> None:
        canteen = await self._require(Canteen, canteen_id, "Canteen")
        for model in (MenuItem, InventoryItem, Expense, SalesReport, Order, User):
            if await self._count(model, model.canteen_id == canteen_id):
                raise Conflict("Canteen still has menu items, stock, ledger entries, orders or staff.")
        await self.db.delete(canteen)
        await self.db.commit()

    # ── Menu items ───────────────────────────────────────────
    async def get_menu_item(self, item_id: int) -> MenuItem | None:
        return await self.db.get(MenuItem, item_id)

    async def get_menu_items(self, item_ids: Iterable[int]) -> dict[int, MenuItem]:
        ids = set(item_ids)
        if not ids:
            return {}
        result = await self.db.execute(select(MenuItem).where(MenuItem.id.in_(ids)))
        return {m.id: m for m in result.scalars().all()}

    async def list_menu_items(
        self, canteen_id: int | None = None, available_only: bool = False
    ) -> list[MenuItem]:
        stmt = select(MenuItem).order_by(MenuItem.id)
        if canteen_id is not None:
            stmt = stmt.where(MenuItem.canteen_id == canteen_id)
        if available_only:
            stmt = stmt.where(MenuItem.is_available.is_(True))
        return list((await self.db.execute(stmt)).scalars().all())

    async def create_menu_item(self, item: MenuItem) -> MenuItem:
        await self._require_canteen(item.canteen_id)
        return await self._add(item)

    async def update_menu_item(self, item_id: int, **fields: Any) -> MenuItem:
        if fields.get("canteen_id") is not None:
            await self._require_canteen(fields["canteen_id"])
        return await self._update(MenuItem, item_id, "Menu item", fields)

    async def delete_menu_item(self, item_id: int) -> None:
        item = await self._require(MenuItem, item_id, "Menu item")
        if await self._count(OrderItem, OrderItem.menu_item_id == item_id):
            raise Conflict("Menu item has been ordered; mark it unavailable instead.")
        await self.db.delete(item)
        await self.db.commit()

    # ── Orders ───────────────────────────────────────────────
    async def get_order(self, order_id: int) -> Order | None:
        # Always re-read: a retried status write must see the competing version.
        return await self.db.get(Order, order_id, populate_existing=True)

    async def list_orders(
        self,
        *,
        user_id: int | None = None,
        canteen_id: int | None = None,
        statuses: Iterable[str] | None = None,
        newest_first: bool = True,
    ) -> list[Order]:
        stmt = select(Order)
        if user_id is not None:
            stmt = stmt.where(Order.user_id == user_id)
        if canteen_id is not None:
            stmt = stmt.where(Order.canteen_id == canteen_id)
        if statuses is not None:
            stmt = stmt.where(Order.status.in_([OrderStatus(s).value for s in statuses]))
        if newest_first:
            stmt = stmt.order_by(Order.created_at.desc(), Order.id.desc())
        else:
            stmt = stmt.order_by(Order.created_at.asc(), Order.id.asc())
        return list((await self.db.execute(stmt)).scalars().all())

    async def create_order(self, order: Order, items: list[OrderItem]) -> Order:
        """
        Order header and lines share one transaction: either every line is
        stored with its order or nothing is.
        """
        await self._require_canteen(order.canteen_id)
        try:
            self.db.add(order)
            await self.db.flush()
            for item in items:
                item.order_id = order.id
                self.db.add(item)
            await self.db.commit()
        except IntegrityError as exc:
            await self.db.rollback()
            logger.warning("Order insert rolled back: %s", exc.orig)
            raise Conflict("Order could not be stored; nothing was written.")
        except Exception:
            await self.db.rollback()
            raise
        return order

    async def set_order_status(self, order_id: int, status: str, expected_version: int) -> Order:
        result = await self.db.execute(
            update(Order)
            .where(Order.id == order_id, Order.version_id == expected_version)
            .values(
                status=OrderStatus(status).value,
                version_id=expected_version + 1,
                updated_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            # rollback() would expire every row the caller has loaded
            # from this session.
            await self.db.commit()
            raise StaleDataError(f"Order {order_id} version changed concurrently.")
        await self.db.commit()
        return await self.db.get(Order, order_id, populate_existing=True)

    async def list_order_items(self, order_id: int) -> list[OrderItem]:
        result = await self.db.execute(
            select(OrderItem).where(OrderItem.order_id == order_id).order_by(OrderItem.id)
        )
        return list(result.scalars().all())

    # ── Ratings ──────────────────────────────────────────────
    async def get_rating(self, order_id: int) -> OrderRating | None:
        result = await self.db.execute(select(OrderRating).where(OrderRating.order_id == order_id))
        return result.scalar_one_or_none()

    async def upsert_rating(self, rating: OrderRating) -> OrderRating:
        existing = await self.get_rating(rating.order_id)
        if existing is None:
            return await self._add(rating)
        existing.user_id = rating.user_id
        existing.rating = rating.rating
        existing.comment = rating.comment
        existing.created_at = utcnow()
        await self.db.commit()
        return existing

    # ── Inventory ────────────────────────────────────────────
    async def get_inventory_item(self, item_id: int) -> InventoryItem | None:
        return await self.db.get(InventoryItem, item_id)

    async def list_inventory_items(self, canteen_id: int) -> list[InventoryItem]:
        result = await self.db.execute(
            select(InventoryItem).where(InventoryItem.canteen_id == canteen_id).order_by(InventoryItem.id)
        )
        return list(result.scalars().all())

    async def list_low_stock(self, canteen_id: int) -> list[InventoryItem]:
        result = await self.db.execute(
            select(InventoryItem)
            .where(
                InventoryItem.canteen_id == canteen_id,
                InventoryItem.quantity <= InventoryItem.reorder_level,
            )
            .order_by(InventoryItem.id)
        )
        return list(result.scalars().all())

    async def create_inventory_item(self, item: InventoryItem) -> InventoryItem:
        await self._require_canteen(item.canteen_id)
        return await self._add(item)

    async def update_inventory_item(self, item_id: int, **fields: Any) -> InventoryItem:
        fields.setdefault("last_updated", utcnow())
        return await self._update(InventoryItem, item_id, "Inventory item", fields)

    async def delete_inventory_item(self, item_id: int) -> None:
        item = await self._require(InventoryItem, item_id, "Inventory item")
        await self.db.delete(item)
        await self.db.commit()

    # ── Expenses & sales ─────────────────────────────────────
    async def list_expenses(self, canteen_id: int) -> list[Expense]:
        result = await self.db.execute(
            select(Expense)
            .where(Expense.canteen_id == canteen_id)
            .order_by(Expense.date.desc(), Expense.id.desc())
        )
        return list(result.scalars().all())

    async def create_expense(self, expense: Expense) -> Expense:
        await self._require_canteen(expense.canteen_id)
        return await self._add(expense)

    async def list_sales_reports(self, canteen_id: int) -> list[SalesReport]:
        result = await self.db.execute(
            select(SalesReport)
            .where(SalesReport.canteen_id == canteen_id)
            .order_by(SalesReport.date.desc(), SalesReport.id.desc())
        )
        return list(result.scalars().all())

    async def create_sales_report(self, report: SalesReport) -> SalesReport:
        await self._require_canteen(report.canteen_id)
        return await self._add(report)

    async def list_completed_orders_between(
        self, canteen_id: int, start: datetime, end: datetime
    ) -> list[Order]:
        result = await self.db.execute(
            select(Order).where(
                Order.canteen_id == canteen_id,
                Order.status == OrderStatus.COMPLETED.value,
                Order.created_at >= start,
                Order.created_at < end,
            )
        )
        return list(result.scalars().all())
