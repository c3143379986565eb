"""
Canteen Service — Public catalog routes (no login required)
"""
from fastapi import APIRouter, Query

from canteen.api.dependencies import Repo
from canteen.schemas.catalog import CanteenResponse, MenuItemResponse
from canteen.services import catalog

router = APIRouter(tags=["catalog"])


@router.get("/canteens", response_model=list[CanteenResponse])
async def list_canteens(repo: Repo):
    return await catalog.list_canteens(repo)


@router.get("/canteens/{canteen_id}", response_model=CanteenResponse)
async def get_canteen(canteen_id: int, repo: Repo):
    return await catalog.get_canteen(repo, canteen_id)


@router.get("/canteens/{canteen_id}/menu-items", response_model=list[MenuItemResponse])
async def canteen_menu(canteen_id: int, repo: Repo):
    return await catalog.canteen_menu(repo, canteen_id)


@router.get("/menu-items", response_model=list[MenuItemResponse])
async def browse_menu(repo: Repo, canteen_id: int | None = Query(None)):
    """Available items across all canteens, optionally filtered to one."""
    return await catalog.browse_menu(repo, canteen_id)
