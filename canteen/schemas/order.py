"""
Canteen Service — Order schemas
"""
from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class OrderItemRequest(BaseModel):
    menu_item_id: int = Field(..., examples=[1])
    quantity: int = Field(..., le=50, examples=[2])
    # Optional echo of the price the client displayed; must match the menu.
    price: int | None = Field(None, ge=0, examples=[40])


class OrderCreate(BaseModel):
    items: list[OrderItemRequest] = Field(default_factory=list, max_length=50)
    total_amount: int | None = Field(None, ge=0, examples=[80])
    special_notes: str | None = Field(None, max_length=500)


class StatusUpdateRequest(BaseModel):
    status: str = Field(..., examples=["preparing"])


class RatingRequest(BaseModel):
    # Range is checked by the order service so that it answers 400, not 422.
    rating: int = Field(..., examples=[5])
    comment: str | None = Field(None, max_length=1000)


class RatingResponse(BaseModel):
    id: int
    order_id: int
    user_id: int
    rating: int
    comment: str | None
    created_at: datetime | None

    model_config = {"from_attributes": True}


class MenuItemSummary(BaseModel):
    id: int
    name: str
    category: str
    canteen_id: int
    image_url: str | None = None

    model_config = {"from_attributes": True}


class OrderLineResponse(BaseModel):
    id: int
    menu_item_id: int
    quantity: int
    price: int
    menu_item: MenuItemSummary | None = None


class OrderResponse(BaseModel):
    id: int
    user_id: int
    canteen_id: int
    status: str
    total_amount: int
    special_notes: str | None
    created_at: datetime | None
    updated_at: datetime | None
    items: list[OrderLineResponse]
    rating: RatingResponse | None = None

    @classmethod
    def from_view(cls, view) -> "OrderResponse":
        """Build from ``canteen.services.order_flow.OrderView``."""
        order = view.order
        return cls(
            id=order.id,
            user_id=order.user_id,
            canteen_id=order.canteen_id,
            status=order.status,
            total_amount=order.total_amount,
            special_notes=order.special_notes,
            created_at=order.created_at,
            updated_at=order.updated_at,
            items=[
                OrderLineResponse(
                    id=line.item.id,
                    menu_item_id=line.item.menu_item_id,
                    quantity=line.item.quantity,
                    price=line.item.price,
                    menu_item=(
                        MenuItemSummary.model_validate(line.menu_item) if line.menu_item else None
                    ),
                )
                for line in view.lines
            ],
            rating=RatingResponse.model_validate(view.rating) if view.rating else None,
        )
