"""
Canteen Service — Canteen and menu schemas
"""
from pydantic import BaseModel, Field

from canteen.models import MenuCategory
from canteen.schemas.common import PartialUpdate


class CanteenCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    location: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    image_url: str | None = Field(None, max_length=500)
    is_active: bool = True


class CanteenUpdate(PartialUpdate):
    nullable = frozenset({"description", "image_url"})

    name: str | None = Field(None, min_length=1, max_length=255)
    location: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = None
    image_url: str | None = Field(None, max_length=500)
    is_active: bool | None = None


class CanteenResponse(BaseModel):
    id: int
    name: str
    location: str
    description: str | None
    image_url: str | None
    is_active: bool

    model_config = {"from_attributes": True}


class StaffMenuItemCreate(BaseModel):
    """Menu item created by staff; the canteen is always the staff member's own."""
    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    price: int = Field(..., ge=0)
    image_url: str | None = Field(None, max_length=500)
    category: MenuCategory
    is_available: bool = True


class MenuItemCreate(StaffMenuItemCreate):
    canteen_id: int


class MenuItemUpdate(PartialUpdate):
    nullable = frozenset({"description", "image_url"})

    name: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = None
    price: int | None = Field(None, ge=0)
    image_url: str | None = Field(None, max_length=500)
    category: MenuCategory | None = None
    is_available: bool | None = None


class AdminMenuItemUpdate(MenuItemUpdate):
    canteen_id: int | None = None


class MenuItemResponse(BaseModel):
    id: int
    name: str
    description: str | None
    price: int
    image_url: str | None
    category: str
    is_available: bool
    canteen_id: int

    model_config = {"from_attributes": True}
