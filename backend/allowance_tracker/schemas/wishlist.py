from datetime import datetime
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, Field


class WishListItemCreate(BaseModel):
    child_id: int
    name: str = Field(min_length=1, max_length=200)
    price: Decimal = Field(ge=0)
    url: Optional[str] = None
    notes: Optional[str] = None


class WishListItemUpdate(BaseModel):
    name: Optional[str] = None
    price: Optional[Decimal] = Field(default=None, ge=0)
    url: Optional[str] = None
    notes: Optional[str] = None


class WishListItemRead(BaseModel):
    id: int
    child_id: int
    name: str
    price: float
    url: Optional[str]
    notes: Optional[str]
    is_purchased: bool
    purchased_at: Optional[datetime]
    created_at: datetime
    can_afford: bool = False

    class Config:
        from_attributes = True
