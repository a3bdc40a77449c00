"""Wish list items a child is saving up for."""

from datetime import datetime
from decimal import Decimal
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from allowance_tracker.models import Child, WishListItem, money


async def create_item(
    db: AsyncSession,
    child_id: int,
    name: str,
    price: Decimal,
    url: str | None = None,
    notes: str | None = None,
) -> WishListItem:
    if price < 0:
        raise ValueError("Price cannot be negative")
    item = WishListItem(child_id=child_id, name=name, price=money(price), url=url, notes=notes)
    db.add(item)
    await db.commit()
    await db.refresh(item)
    return item


async def list_items(db: AsyncSession, child: Child) -> list[dict]:
    result = await db.execute(
        select(WishListItem)
        .where(WishListItem.child_id == child.id)
        .order_by(WishListItem.is_purchased, WishListItem.created_at.desc())
    )
    return [
        {"item": item, "can_afford": child.current_balance >= item.price}
        for item in result.scalars().all()
    ]


async def get_item(db: AsyncSession, item_id: int) -> WishListItem | None:
    result = await db.execute(select(WishListItem).where(WishListItem.id == item_id))
    return result.scalar_one_or_none()


async def update_item(db: AsyncSession, item: WishListItem, changes: dict) -> WishListItem:
    for key, value in changes.items():
        if value is not None:
            setattr(item, key, money(value) if key == "price" else value)
    await db.commit()
    await db.refresh(item)
    return item


async def delete_item(db: AsyncSession, item: WishListItem) -> None:
    await db.delete(item)
    await db.commit()


async def set_purchased(db: AsyncSession, item: WishListItem, purchased: bool) -> WishListItem:
    item.is_purchased = purchased
    item.purchased_at = datetime.utcnow() if purchased else None
    await db.commit()
    await db.refresh(item)
    return item
