"""
Canteen Service — Inventory, expense and sales report schemas
"""
import datetime as dt

from pydantic import BaseModel, Field

from canteen.schemas.common import PartialUpdate


class InventoryItemCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    quantity: int = Field(0, ge=0)
    unit: str = Field(..., min_length=1, max_length=32, examples=["kg"])
    cost_per_unit: int = Field(..., ge=0)
    reorder_level: int = Field(10, ge=0)


class InventoryItemUpdate(PartialUpdate):
    name: str | None = Field(None, min_length=1, max_length=255)
    quantity: int | None = Field(None, ge=0)
    unit: str | None = Field(None, min_length=1, max_length=32)
    cost_per_unit: int | None = Field(None, ge=0)
    reorder_level: int | None = Field(None, ge=0)


class InventoryItemResponse(BaseModel):
    id: int
    name: str
    quantity: int
    unit: str
    cost_per_unit: int
    canteen_id: int
    reorder_level: int
    last_updated: dt.datetime | None
    updated_by: int

    model_config = {"from_attributes": True}


class ExpenseCreate(BaseModel):
    description: str = Field(..., min_length=1)
    amount: int = Field(..., ge=0)
    category: str = Field(..., min_length=1, max_length=64, examples=["utilities"])
    date: dt.datetime | None = None


class ExpenseResponse(BaseModel):
    id: int
    description: str
    amount: int
    category: str
    canteen_id: int
    date: dt.datetime | None
    recorded_by: int

    model_config = {"from_attributes": True}


class SalesReportCreate(BaseModel):
    """Omit the totals to have them computed from the day's completed orders."""
    date: dt.date | None = None
    total_sales: int | None = Field(None, ge=0)
    total_orders: int | None = Field(None, ge=0)
    cash_sales: int = Field(0, ge=0)
    online_sales: int = Field(0, ge=0)


class SalesReportResponse(BaseModel):
    id: int
    canteen_id: int
    date: dt.datetime | None
    total_sales: int
    total_orders: int
    cash_sales: int
    online_sales: int
    generated_by: int

    model_config = {"from_attributes": True}
