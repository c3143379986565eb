"""
Canteen Service — User model
"""
from enum import Enum as PyEnum

from sqlalchemy import Boolean, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, validates

from canteen.db.database import Base


class UserRole(str, PyEnum):
    CUSTOMER = "customer"
    STAFF = "staff"
    ADMIN = "admin"


class User(Base):
    """
    Customer, staff or admin account. Staff are bound to one canteen.

    ``is_admin`` is kept for older clients; it is derived from ``role`` on every
    assignment and is never written on its own.
    """
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    hashed_password: Mapped[str] = mapped_column(String(255), nullable=False)
    first_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    last_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    role: Mapped[str] = mapped_column(String(20), nullable=False, default=UserRole.CUSTOMER.value)
    is_admin: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    canteen_id: Mapped[int | None] = mapped_column(ForeignKey("canteens.id"), nullable=True, index=True)
    profile_image: Mapped[str | None] = mapped_column(String(500), nullable=True)
    contact_number: Mapped[str | None] = mapped_column(String(32), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    @validates("role")
    def _sync_admin_flag(self, key, value):
        role = UserRole(value).value
        self.is_admin = role == UserRole.ADMIN.value
        return role

    def __repr__(self) -> str:
        return f"<User username={self.username} role={self.role} canteen={self.canteen_id}>"
