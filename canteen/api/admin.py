"""
Canteen Service — Admin routes (canteens, menus, all orders, users)
"""
from fastapi import APIRouter, Query, status

from canteen.api.dependencies import Actor, Repo
from canteen.models import UserRole
from canteen.schemas.auth import UserAdminUpdate, UserResponse
from canteen.schemas.catalog import (
    AdminMenuItemUpdate,
    CanteenCreate,
    CanteenResponse,
    CanteenUpdate,
    MenuItemCreate,
    MenuItemResponse,
)
from canteen.schemas.order import OrderResponse, StatusUpdateRequest
from canteen.services import access, accounts, catalog, order_flow

router = APIRouter(prefix="/admin", tags=["admin"])


# ── Canteens ─────────────────────────────────────────────────────────────────

@router.get("/canteens", response_model=list[CanteenResponse])
async def list_canteens(repo: Repo, actor: Actor):
    """All canteens, inactive ones included."""
    return await catalog.list_all_canteens(repo, actor)


@router.post("/canteens", response_model=CanteenResponse, status_code=status.HTTP_201_CREATED)
async def create_canteen(payload: CanteenCreate, repo: Repo, actor: Actor):
    return await catalog.create_canteen(repo, actor, payload)


@router.patch("/canteens/{canteen_id}", response_model=CanteenResponse)
async def update_canteen(canteen_id: int, payload: CanteenUpdate, repo: Repo, actor: Actor):
    return await catalog.update_canteen(repo, actor, canteen_id, payload)


@router.delete("/canteens/{canteen_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_canteen(canteen_id: int, repo: Repo, actor: Actor):
    await catalog.delete_canteen(repo, actor, canteen_id)


# ── Menu items ───────────────────────────────────────────────────────────────

@router.get("/menu-items", response_model=list[MenuItemResponse])
async def list_menu_items(repo: Repo, actor: Actor):
    return await catalog.list_all_menu_items(repo, actor)


@router.post("/menu-items", response_model=MenuItemResponse, status_code=status.HTTP_201_CREATED)
async def create_menu_item(payload: MenuItemCreate, repo: Repo, actor: Actor):
    return await catalog.create_menu_item(repo, actor, payload)


@router.patch("/menu-items/{item_id}", response_model=MenuItemResponse)
async def update_menu_item(item_id: int, payload: AdminMenuItemUpdate, repo: Repo, actor: Actor):
    return await catalog.update_menu_item(repo, actor, item_id, payload)


@router.delete("/menu-items/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_menu_item(item_id: int, repo: Repo, actor: Actor):
    await catalog.delete_menu_item(repo, actor, item_id)


# ── Orders ───────────────────────────────────────────────────────────────────

@router.get("/orders/active", response_model=list[OrderResponse])
async def active_orders(repo: Repo, actor: Actor):
    views = await order_flow.all_orders(repo, actor, active=True)
    return [OrderResponse.from_view(v) for v in views]


@router.get("/orders/history", response_model=list[OrderResponse])
async def order_history(repo: Repo, actor: Actor):
    views = await order_flow.all_orders(repo, actor, active=False)
    return [OrderResponse.from_view(v) for v in views]


@router.post("/orders/{order_id}/status", response_model=OrderResponse)
async def update_order_status(order_id: int, payload: StatusUpdateRequest, repo: Repo, actor: Actor):
    access.authorize(actor, UserRole.ADMIN)
    view = await order_flow.update_status(repo, order_id, payload.status, actor)
    return OrderResponse.from_view(view)


# ── Users ────────────────────────────────────────────────────────────────────

@router.get("/users", response_model=list[UserResponse])
async def list_users(repo: Repo, actor: Actor, role: UserRole | None = Query(None)):
    return await accounts.list_users(repo, actor, role)


@router.patch("/users/{user_id}", response_model=UserResponse)
async def update_user(user_id: int, payload: UserAdminUpdate, repo: Repo, actor: Actor):
    """Assign role, canteen or active flag."""
    return await accounts.update_user(repo, actor, user_id, payload)
