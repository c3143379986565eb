from canteen.models.user import User, UserRole
from canteen.models.canteen import Canteen, MenuItem, MenuCategory
from canteen.models.order import (
    ACTIVE_STATUSES,
    FINISHED_STATUSES,
    Order,
    OrderItem,
    OrderRating,
    OrderStatus,
)
from canteen.models.inventory import InventoryItem, Expense, SalesReport

__all__ = [
    "User", "UserRole",
    "Canteen", "MenuItem", "MenuCategory",
    "Order", "OrderItem", "OrderRating", "OrderStatus", "ACTIVE_STATUSES", "FINISHED_STATUSES",
    "InventoryItem", "Expense", "SalesReport",
]
