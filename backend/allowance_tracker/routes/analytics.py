from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from allowance_tracker.auth import authorize_child_access, get_current_user
from allowance_tracker.database import get_session
from allowance_tracker.models import User
from allowance_tracker.schemas import (
    BalancePoint,
    CategorySpending,
    IncomeSpending,
    MonthlyComparison,
    SpendingTrend,
)
from allowance_tracker.services import analytics

router = APIRouter(prefix="/analytics", tags=["analytics"])


@router.get("/children/{child_id}/balance-history", response_model=List[BalancePoint])
async def balance_history(
    child_id: int,
    days: int = 30,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    await authorize_child_access(db, current_user, child_id)
    return await analytics.balance_history(db, child_id, min(max(days, 1), 365))


@router.get("/children/{child_id}/income-spending", response_model=IncomeSpending)
async def income_vs_spending(
    child_id: int,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    await authorize_child_access(db, current_user, child_id)
    return await analytics.income_vs_spending(db, child_id, start, end)


@router.get("/children/{child_id}/spending-trend", response_model=SpendingTrend)
async def spending_trend(
    child_id: int,
    period: str = "week",
    periods: int = 4,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    if period not in ("week", "month"):
        raise HTTPException(status_code=400, detail="Period must be 'week' or 'month'")
    await authorize_child_access(db, current_user, child_id)
    return await analytics.spending_trend(db, child_id, period, min(max(periods, 2), 52))


@router.get("/children/{child_id}/savings-rate")
async def savings_rate(
    child_id: int,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    await authorize_child_access(db, current_user, child_id)
    rate = await analytics.savings_rate(db, child_id, start, end)
    return {"savings_rate": float(rate)}


@router.get("/children/{child_id}/monthly", response_model=List[MonthlyComparison])
async def monthly_comparison(
    child_id: int,
    months: int = 6,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    await authorize_child_access(db, current_user, child_id)
    return await analytics.monthly_comparison(db, child_id, min(max(months, 1), 24))


@router.get("/children/{child_id}/categories", response_model=List[CategorySpending])
async def category_breakdown(
    child_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    await authorize_child_access(db, current_user, child_id)
    return await analytics.category_breakdown(db, child_id)
