"""
Canteen Service — Inventory and ledger models (all canteen-scoped)
"""
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from canteen.db.database import Base
from canteen.models.order import utcnow


class InventoryItem(Base):
    """Raw stock. Low when ``quantity <= reorder_level``."""
    __tablename__ = "inventory_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    unit: Mapped[str] = mapped_column(String(32), nullable=False)  # kg, liters, pieces
    cost_per_unit: Mapped[int] = mapped_column(Integer, nullable=False)
    canteen_id: Mapped[int] = mapped_column(ForeignKey("canteens.id"), index=True, nullable=False)
    reorder_level: Mapped[int] = mapped_column(Integer, nullable=False, default=10)
    last_updated: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_by: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)


class Expense(Base):
    __tablename__ = "expenses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    category: Mapped[str] = mapped_column(String(64), nullable=False)  # utilities, maintenance, supplies
    canteen_id: Mapped[int] = mapped_column(ForeignKey("canteens.id"), index=True, nullable=False)
    date: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    recorded_by: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)


class SalesReport(Base):
    """Daily totals for one canteen."""
    __tablename__ = "sales_reports"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    canteen_id: Mapped[int] = mapped_column(ForeignKey("canteens.id"), index=True, nullable=False)
    date: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    total_sales: Mapped[int] = mapped_column(Integer, nullable=False)
    total_orders: Mapped[int] = mapped_column(Integer, nullable=False)
    cash_sales: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    online_sales: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    generated_by: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
