from datetime import datetime
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, Field

from allowance_tracker.models import BudgetPeriod, TransactionCategory, TransactionType


class TransactionCreate(BaseModel):
    child_id: int
    amount: Decimal = Field(gt=0)
    type: TransactionType
    category: TransactionCategory
    description: str = Field(min_length=1, max_length=500)
    notes: Optional[str] = None
    draw_from_savings: bool = False


class TransactionRead(BaseModel):
    id: int
    child_id: int
    amount: float
    type: TransactionType
    category: TransactionCategory
    description: str
    notes: Optional[str]
    balance_after: float
    created_by_id: Optional[int]
    created_at: datetime

    class Config:
        from_attributes = True


class BalanceRead(BaseModel):
    child_id: int
    current_balance: float
    savings_balance: float
    total: float


class CategorySpending(BaseModel):
    category: TransactionCategory
    amount: float
    transaction_count: int
    percentage: float


class BudgetSet(BaseModel):
    child_id: int
    category: TransactionCategory
    limit_amount: Decimal = Field(gt=0)
    period: BudgetPeriod = BudgetPeriod.WEEKLY
    alert_threshold_percent: int = Field(default=80, ge=1, le=100)
    enforce_limit: bool = False


class BudgetRead(BaseModel):
    id: int
    child_id: int
    category: TransactionCategory
    limit_amount: float
    period: BudgetPeriod
    alert_threshold_percent: int
    enforce_limit: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class BudgetStatusRead(BaseModel):
    budget_id: int
    category: TransactionCategory
    period: BudgetPeriod
    limit: float
    current_spending: float
    remaining: float
    percent_used: float
    status: str
    enforce_limit: bool
    period_start: datetime


class BudgetCheckRead(BaseModel):
    allowed: bool
    message: str
    current_spending: float
    limit: Optional[float]
    remaining_after: Optional[float]
