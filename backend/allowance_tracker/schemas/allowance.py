from datetime import datetime
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel

from allowance_tracker.models import AllowanceAdjustmentType


class AllowancePause(BaseModel):
    reason: Optional[str] = None


class AllowanceAmountUpdate(BaseModel):
    weekly_allowance: Decimal
    reason: Optional[str] = None


class AllowanceAdjustmentRead(BaseModel):
    id: int
    child_id: int
    adjustment_type: AllowanceAdjustmentType
    old_amount: Optional[float]
    new_amount: Optional[float]
    reason: Optional[str]
    adjusted_by_id: Optional[int]
    created_at: datetime

    class Config:
        from_attributes = True


class AllowanceRunResult(BaseModel):
    processed: int
    failed: int
