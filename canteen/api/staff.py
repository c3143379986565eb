"""
Canteen Service — Staff routes

Everything here is scoped to the caller's canteen. A staff account with no
canteen assigned gets 400 on every route.
"""
from fastapi import APIRouter, status

from canteen.api.dependencies import Actor, Repo
from canteen.schemas.auth import UserResponse
from canteen.schemas.catalog import (
    CanteenResponse,
    MenuItemResponse,
    MenuItemUpdate,
    StaffMenuItemCreate,
)
from canteen.schemas.inventory import (
    ExpenseCreate,
    ExpenseResponse,
    InventoryItemCreate,
    InventoryItemResponse,
    InventoryItemUpdate,
    SalesReportCreate,
    SalesReportResponse,
)
from canteen.schemas.order import OrderResponse, StatusUpdateRequest
from canteen.services import access, accounts, catalog, inventory, ledger, order_flow

router = APIRouter(prefix="/staff", tags=["staff"])


@router.get("/profile", response_model=UserResponse)
async def profile(actor: Actor):
    return accounts.staff_profile(actor)


@router.get("/canteen", response_model=CanteenResponse)
async def my_canteen(repo: Repo, actor: Actor):
    return await catalog.staff_canteen(repo, actor)


# ── Menu ─────────────────────────────────────────────────────────────────────

@router.get("/menu-items", response_model=list[MenuItemResponse])
async def list_menu_items(repo: Repo, actor: Actor):
    return await catalog.staff_menu(repo, actor)


@router.post("/menu-items", response_model=MenuItemResponse, status_code=status.HTTP_201_CREATED)
async def create_menu_item(payload: StaffMenuItemCreate, repo: Repo, actor: Actor):
    return await catalog.staff_create_menu_item(repo, actor, payload)


@router.patch("/menu-items/{item_id}", response_model=MenuItemResponse)
async def update_menu_item(item_id: int, payload: MenuItemUpdate, repo: Repo, actor: Actor):
    return await catalog.staff_update_menu_item(repo, actor, item_id, payload)


# ── Orders ───────────────────────────────────────────────────────────────────

@router.get("/orders/active", response_model=list[OrderResponse])
async def active_orders(repo: Repo, actor: Actor):
    """Kitchen queue, oldest first."""
    views = await order_flow.staff_orders(repo, actor, active=True)
    return [OrderResponse.from_view(v) for v in views]


@router.get("/orders/history", response_model=list[OrderResponse])
async def order_history(repo: Repo, actor: Actor):
    views = await order_flow.staff_orders(repo, actor, active=False)
    return [OrderResponse.from_view(v) for v in views]


@router.post("/orders/{order_id}/status", response_model=OrderResponse)
async def update_order_status(order_id: int, payload: StatusUpdateRequest, repo: Repo, actor: Actor):
    access.require_canteen(actor)
    view = await order_flow.update_status(repo, order_id, payload.status, actor)
    return OrderResponse.from_view(view)


# ── Inventory ────────────────────────────────────────────────────────────────

@router.get("/inventory", response_model=list[InventoryItemResponse])
async def list_inventory(repo: Repo, actor: Actor):
    return await inventory.list_inventory(repo, actor)


@router.get("/inventory/low", response_model=list[InventoryItemResponse])
async def low_stock(repo: Repo, actor: Actor):
    return await inventory.low_stock(repo, actor)


@router.post("/inventory", response_model=InventoryItemResponse, status_code=status.HTTP_201_CREATED)
async def add_inventory_item(payload: InventoryItemCreate, repo: Repo, actor: Actor):
    return await inventory.add_item(repo, actor, payload)


@router.patch("/inventory/{item_id}", response_model=InventoryItemResponse)
async def update_inventory_item(item_id: int, payload: InventoryItemUpdate, repo: Repo, actor: Actor):
    return await inventory.update_item(repo, actor, item_id, payload)


@router.delete("/inventory/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_inventory_item(item_id: int, repo: Repo, actor: Actor):
    await inventory.remove_item(repo, actor, item_id)


# ── Expenses & sales ─────────────────────────────────────────────────────────

@router.get("/expenses", response_model=list[ExpenseResponse])
async def list_expenses(repo: Repo, actor: Actor):
    return await ledger.list_expenses(repo, actor)


@router.post("/expenses", response_model=ExpenseResponse, status_code=status.HTTP_201_CREATED)
async def record_expense(payload: ExpenseCreate, repo: Repo, actor: Actor):
    return await ledger.record_expense(repo, actor, payload)


@router.get("/sales", response_model=list[SalesReportResponse])
async def list_sales_reports(repo: Repo, actor: Actor):
    return await ledger.list_sales_reports(repo, actor)


@router.post("/sales", response_model=SalesReportResponse, status_code=status.HTTP_201_CREATED)
async def create_sales_report(payload: SalesReportCreate, repo: Repo, actor: Actor):
    """Daily report; omitted totals are computed from the day's completed orders."""
    return await ledger.create_sales_report(repo, actor, payload)
