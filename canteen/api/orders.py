"""
Canteen Service — Customer order routes

Flow:
  1. JWT validated by middleware (request.state.user set)
  2. Retried checkouts replayed by IdempotencyMiddleware
  3. Prices recomputed from the menu; order + items written atomically
  4. Staff move the order through the kitchen; the customer cancels or picks up
"""
from fastapi import APIRouter, status

from canteen.api.dependencies import Actor, Repo
from canteen.schemas.order import OrderCreate, OrderResponse, RatingRequest, RatingResponse
from canteen.services import order_flow

router = APIRouter(prefix="/orders", tags=["orders"])


@router.post("", response_model=OrderResponse, status_code=status.HTTP_201_CREATED)
async def place_order(payload: OrderCreate, repo: Repo, actor: Actor):
    """Place an order. Client prices and totals are optional and must match the menu."""
    view = await order_flow.place_order(repo, actor, payload)
    return OrderResponse.from_view(view)


@router.get("/active", response_model=OrderResponse | None)
async def active_order(repo: Repo, actor: Actor):
    """The most recent order still being prepared or awaiting pick-up, or null."""
    view = await order_flow.active_order_for(repo, actor)
    return OrderResponse.from_view(view) if view else None


@router.get("/history", response_model=list[OrderResponse])
async def order_history(repo: Repo, actor: Actor):
    views = await order_flow.order_history_for(repo, actor)
    return [OrderResponse.from_view(v) for v in views]


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(order_id: int, repo: Repo, actor: Actor):
    return OrderResponse.from_view(await order_flow.get_order(repo, order_id, actor))


@router.post("/{order_id}/cancel", response_model=OrderResponse)
async def cancel_order(order_id: int, repo: Repo, actor: Actor):
    return OrderResponse.from_view(await order_flow.cancel_order(repo, order_id, actor))


@router.post("/{order_id}/complete", response_model=OrderResponse)
async def complete_order(order_id: int, repo: Repo, actor: Actor):
    """Customer confirms pickup of a ready order."""
    return OrderResponse.from_view(await order_flow.complete_order(repo, order_id, actor))


@router.post("/{order_id}/reorder", response_model=OrderResponse, status_code=status.HTTP_201_CREATED)
async def reorder(order_id: int, repo: Repo, actor: Actor):
    return OrderResponse.from_view(await order_flow.reorder(repo, order_id, actor))


@router.post("/{order_id}/rate", response_model=RatingResponse)
async def rate_order(order_id: int, payload: RatingRequest, repo: Repo, actor: Actor):
    return await order_flow.rate_order(repo, order_id, actor, payload.rating, payload.comment)
