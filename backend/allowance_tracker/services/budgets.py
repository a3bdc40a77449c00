"""Per-category spending limits."""

import logging
from datetime import datetime, date, timedelta
from decimal import Decimal
from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from allowance_tracker.models import (
    BudgetPeriod,
    CategoryBudget,
    Transaction,
    TransactionCategory,
    TransactionType,
    money,
)

logger = logging.getLogger(__name__)

STATUS_SAFE = "Safe"
STATUS_WARNING = "Warning"
STATUS_AT_LIMIT = "AtLimit"
STATUS_OVER_BUDGET = "OverBudget"


def period_start(period: BudgetPeriod, today: date | None = None) -> datetime:
    """Start of the current budget period: Monday or the 1st of the month."""
    today = today or date.today()
    if period == BudgetPeriod.MONTHLY:
        start = today.replace(day=1)
    else:
        start = today - timedelta(days=today.weekday())
    return datetime.combine(start, datetime.min.time())


def budget_status(percent_used: Decimal, threshold: int) -> str:
    if percent_used > 100:
        return STATUS_OVER_BUDGET
    if percent_used == 100:
        return STATUS_AT_LIMIT
    if percent_used >= threshold:
        return STATUS_WARNING
    return STATUS_SAFE


async def set_budget(
    db: AsyncSession,
    child_id: int,
    category: TransactionCategory,
    limit_amount: Decimal,
    period: BudgetPeriod = BudgetPeriod.WEEKLY,
    alert_threshold_percent: int = 80,
    enforce_limit: bool = False,
    created_by_id: int | None = None,
) -> CategoryBudget:
    if limit_amount <= 0:
        raise ValueError("Budget limit must be positive")
    if not 1 <= alert_threshold_percent <= 100:
        raise ValueError("Alert threshold must be between 1 and 100")
    budget = await get_budget(db, child_id, category)
    if budget is None:
        budget = CategoryBudget(
            child_id=child_id, category=category, created_by_id=created_by_id
        )
        db.add(budget)
    budget.limit_amount = money(limit_amount)
    budget.period = period
    budget.alert_threshold_percent = alert_threshold_percent
    budget.enforce_limit = enforce_limit
    budget.updated_at = datetime.utcnow()
    await db.commit()
    await db.refresh(budget)
    return budget


async def get_budget(
    db: AsyncSession, child_id: int, category: TransactionCategory
) -> CategoryBudget | None:
    result = await db.execute(
        select(CategoryBudget).where(
            CategoryBudget.child_id == child_id, CategoryBudget.category == category
        )
    )
    return result.scalar_one_or_none()


async def get_budget_by_id(db: AsyncSession, budget_id: int) -> CategoryBudget | None:
    result = await db.execute(select(CategoryBudget).where(CategoryBudget.id == budget_id))
    return result.scalar_one_or_none()


async def list_budgets(db: AsyncSession, child_id: int) -> list[CategoryBudget]:
    result = await db.execute(
        select(CategoryBudget)
        .where(CategoryBudget.child_id == child_id)
        .order_by(CategoryBudget.category)
    )
    return result.scalars().all()


async def delete_budget(db: AsyncSession, budget: CategoryBudget) -> None:
    await db.delete(budget)
    await db.commit()


async def period_spending(
    db: AsyncSession,
    child_id: int,
    category: TransactionCategory,
    period: BudgetPeriod,
) -> Decimal:
    result = await db.execute(
        select(func.coalesce(func.sum(Transaction.amount), 0)).where(
            Transaction.child_id == child_id,
            Transaction.category == category,
            Transaction.type == TransactionType.DEBIT,
            Transaction.created_at >= period_start(period),
        )
    )
    return money(result.scalar())


async def get_budget_status(db: AsyncSession, budget: CategoryBudget) -> dict:
    spent = await period_spending(db, budget.child_id, budget.category, budget.period)
    limit = Decimal(budget.limit_amount)
    percent = (spent / limit * 100).quantize(Decimal("0.01")) if limit else Decimal(0)
    return {
        "budget_id": budget.id,
        "category": budget.category,
        "period": budget.period,
        "limit": limit,
        "current_spending": spent,
        "remaining": money(limit - spent),
        "percent_used": percent,
        "status": budget_status(percent, budget.alert_threshold_percent),
        "enforce_limit": budget.enforce_limit,
        "period_start": period_start(budget.period),
    }


async def get_all_budget_statuses(db: AsyncSession, child_id: int) -> list[dict]:
    return [await get_budget_status(db, b) for b in await list_budgets(db, child_id)]


async def check_budget(
    db: AsyncSession,
    child_id: int,
    category: TransactionCategory,
    amount: Decimal,
) -> dict:
    """Would spending ``amount`` in ``category`` stay within the budget?"""
    budget = await get_budget(db, child_id, category)
    if budget is None:
        return {
            "allowed": True,
            "message": "No budget set for this category",
            "current_spending": Decimal("0"),
            "limit": None,
            "remaining_after": None,
        }
    spent = await period_spending(db, child_id, category, budget.period)
    remaining_after = money(Decimal(budget.limit_amount) - spent - amount)
    if remaining_after < 0:
        allowed = not budget.enforce_limit
        message = (
            f"Budget exceeded for {category.value}"
            if budget.enforce_limit
            else f"This purchase goes over the {category.value} budget"
        )
    else:
        allowed = True
        message = "Within budget"
    return {
        "allowed": allowed,
        "message": message,
        "current_spending": spent,
        "limit": Decimal(budget.limit_amount),
        "remaining_after": remaining_after,
    }
