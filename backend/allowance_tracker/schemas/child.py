from datetime import datetime, date
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, EmailStr

from allowance_tracker.models import DayOfWeek, TransferType


class ChildCreate(BaseModel):
    email: EmailStr
    password: str
    first_name: str
    last_name: str = ""
    weekly_allowance: Decimal = Decimal("0")
    allowance_day: Optional[DayOfWeek] = None
    initial_balance: Decimal = Decimal("0")


class ChildRead(BaseModel):
    id: int
    user_id: int
    family_id: int
    first_name: str
    current_balance: float
    savings_balance: float
    weekly_allowance: float
    allowance_day: Optional[DayOfWeek]
    last_allowance_date: Optional[datetime]
    allowance_paused: bool
    allowance_paused_reason: Optional[str]
    allow_debt: bool
    savings_account_enabled: bool
    savings_transfer_type: TransferType
    savings_balance_visible_to_child: bool
    total_points: int
    available_points: int
    equipped_avatar_url: Optional[str]
    equipped_theme: Optional[str]
    equipped_title: Optional[str]
    saving_streak: int
    last_saving_date: Optional[date]

    class Config:
        from_attributes = True


class ChildSettingsUpdate(BaseModel):
    weekly_allowance: Optional[Decimal] = None
    allowance_day: Optional[DayOfWeek] = None
    allow_debt: Optional[bool] = None
    savings_balance_visible_to_child: Optional[bool] = None
