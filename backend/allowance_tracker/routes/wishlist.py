import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from allowance_tracker.auth import authorize_child_access, get_current_user
from allowance_tracker.database import get_session
from allowance_tracker.models import User, WishListItem
from allowance_tracker.routes.errors import to_http
from allowance_tracker.schemas import WishListItemCreate, WishListItemRead, WishListItemUpdate
from allowance_tracker.services import wishlist

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/wishlist", tags=["wishlist"])


async def _item_for_user(db: AsyncSession, item_id: int, user: User) -> WishListItem:
    item = await wishlist.get_item(db, item_id)
    if item is None:
        raise HTTPException(status_code=404, detail="Wish list item not found")
    await authorize_child_access(db, user, item.child_id)
    return item


@router.post("", response_model=WishListItemRead, status_code=201)
async def create_item(
    data: WishListItemCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    await authorize_child_access(db, current_user, data.child_id)
    try:
        return await wishlist.create_item(db, **data.model_dump())
    except ValueError as exc:
        raise to_http(exc)


@router.get("/children/{child_id}", response_model=List[WishListItemRead])
async def list_items(
    child_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    child = await authorize_child_access(db, current_user, child_id)
    rows = await wishlist.list_items(db, child)
    return [
        WishListItemRead.model_validate(r["item"]).model_copy(update={"can_afford": r["can_afford"]})
        for r in rows
    ]


@router.put("/{item_id}", response_model=WishListItemRead)
async def update_item(
    item_id: int,
    data: WishListItemUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    item = await _item_for_user(db, item_id, current_user)
    return await wishlist.update_item(db, item, data.model_dump(exclude_unset=True))


@router.delete("/{item_id}", status_code=204)
async def delete_item(
    item_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    item = await _item_for_user(db, item_id, current_user)
    await wishlist.delete_item(db, item)


@router.post("/{item_id}/purchase", response_model=WishListItemRead)
async def mark_purchased(
    item_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    item = await _item_for_user(db, item_id, current_user)
    return await wishlist.set_purchased(db, item, True)


@router.post("/{item_id}/unpurchase", response_model=WishListItemRead)
async def mark_unpurchased(
    item_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    item = await _item_for_user(db, item_id, current_user)
    return await wishlist.set_purchased(db, item, False)
