"""
Canteen Service — Order models

Orders move through the lifecycle in ``canteen.services.order_flow``.
``canteen_id`` is stored on the order when it is placed; every item of an
order belongs to that canteen.
"""
from datetime import datetime, timezone
from enum import Enum as PyEnum

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from canteen.db.database import Base


def utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


class OrderStatus(str, PyEnum):
    RECEIVED = "received"
    PREPARING = "preparing"
    READY = "ready"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# Plain string values: str-enum members do not hash like their values.
ACTIVE_STATUSES = frozenset(
    s.value for s in (OrderStatus.RECEIVED, OrderStatus.PREPARING, OrderStatus.READY)
)
FINISHED_STATUSES = frozenset(s.value for s in (OrderStatus.COMPLETED, OrderStatus.CANCELLED))


class Order(Base):
    """
    version_id is the optimistic locking column; it is incremented on every status write.
    """
    __tablename__ = "orders"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True, nullable=False)
    canteen_id: Mapped[int] = mapped_column(ForeignKey("canteens.id"), index=True, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), index=True, nullable=False, default=OrderStatus.RECEIVED.value
    )
    total_amount: Mapped[int] = mapped_column(Integer, nullable=False)
    special_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    version_id: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)


class OrderItem(Base):
    """Immutable line of an order. ``price`` is the menu price at placement time."""
    __tablename__ = "order_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_id: Mapped[int] = mapped_column(ForeignKey("orders.id"), index=True, nullable=False)
    menu_item_id: Mapped[int] = mapped_column(ForeignKey("menu_items.id"), index=True, nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    price: Mapped[int] = mapped_column(Integer, nullable=False)


class OrderRating(Base):
    __tablename__ = "order_ratings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_id: Mapped[int] = mapped_column(ForeignKey("orders.id"), unique=True, nullable=False)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    rating: Mapped[int] = mapped_column(Integer, nullable=False)
    comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
