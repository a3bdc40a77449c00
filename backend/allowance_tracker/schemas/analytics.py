from datetime import datetime
from typing import Optional
from pydantic import BaseModel


class BalancePoint(BaseModel):
    date: datetime
    balance: float
    description: Optional[str] = None


class IncomeSpending(BaseModel):
    total_income: float
    total_spending: float
    income_count: int
    spending_count: int
    net: float
    savings_rate: float
    saved_amount: float


class TrendPoint(BaseModel):
    period_start: datetime
    amount: float


class SpendingTrend(BaseModel):
    period: str
    data_points: list[TrendPoint]
    direction: str
    change_percent: float


class MonthlyComparison(BaseModel):
    year: int
    month: int
    month_name: str
    income: float
    spending: float
    net: float
    savings_rate: float
