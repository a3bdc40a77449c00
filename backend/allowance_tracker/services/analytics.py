"""Read-only reports over a child's ledger."""

from datetime import datetime, date, timedelta
from decimal import Decimal
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from allowance_tracker.models import (
    SAVING_CATEGORIES,
    Transaction,
    TransactionType,
    money,
)
from allowance_tracker.services.transactions import get_category_spending

TREND_BAND = Decimal("5")


async def _transactions(
    db: AsyncSession, child_id: int, start: datetime | None = None, end: datetime | None = None
) -> list[Transaction]:
    query = select(Transaction).where(Transaction.child_id == child_id)
    if start is not None:
        query = query.where(Transaction.created_at >= start)
    if end is not None:
        query = query.where(Transaction.created_at < end)
    result = await db.execute(query.order_by(Transaction.created_at, Transaction.id))
    return result.scalars().all()


async def balance_history(db: AsyncSession, child_id: int, days: int = 30) -> list[dict]:
    start = datetime.utcnow() - timedelta(days=days)
    return [
        {"date": tx.created_at, "balance": tx.balance_after, "description": tx.description}
        for tx in await _transactions(db, child_id, start)
    ]


def _totals(rows: list[Transaction]) -> dict:
    income = sum((t.amount for t in rows if t.type == TransactionType.CREDIT), Decimal("0"))
    spending = sum((t.amount for t in rows if t.type == TransactionType.DEBIT), Decimal("0"))
    saved = sum(
        (t.amount for t in rows
         if t.type == TransactionType.DEBIT and t.category in SAVING_CATEGORIES),
        Decimal("0"),
    )
    return {
        "total_income": money(income),
        "total_spending": money(spending),
        "income_count": sum(1 for t in rows if t.type == TransactionType.CREDIT),
        "spending_count": sum(1 for t in rows if t.type == TransactionType.DEBIT),
        "net": money(income - spending),
        "savings_rate": money((income - spending) / income * 100) if income > 0 else Decimal("0.00"),
        "saved_amount": money(saved),
    }


async def income_vs_spending(
    db: AsyncSession, child_id: int, start: datetime | None = None, end: datetime | None = None
) -> dict:
    return _totals(await _transactions(db, child_id, start, end))


async def savings_rate(
    db: AsyncSession, child_id: int, start: datetime | None = None, end: datetime | None = None
) -> Decimal:
    return _totals(await _transactions(db, child_id, start, end))["savings_rate"]


def _period_bounds(period: str, today: date, back: int) -> tuple[datetime, datetime]:
    if period == "month":
        year, month = today.year, today.month - back
        while month <= 0:
            month += 12
            year -= 1
        start = date(year, month, 1)
        end = date(year + (month == 12), month % 12 + 1, 1)
    else:
        monday = today - timedelta(days=today.weekday())
        start = monday - timedelta(weeks=back)
        end = start + timedelta(weeks=1)
    return datetime.combine(start, datetime.min.time()), datetime.combine(end, datetime.min.time())


def trend_direction(current: Decimal, previous: Decimal) -> tuple[str, Decimal]:
    if previous == 0:
        change = Decimal("100.00") if current > 0 else Decimal("0.00")
    else:
        change = money((current - previous) / previous * 100)
    if change > TREND_BAND:
        return "Up", change
    if change < -TREND_BAND:
        return "Down", change
    return "Stable", change


async def spending_trend(
    db: AsyncSession, child_id: int, period: str = "week", periods: int = 4
) -> dict:
    today = date.today()
    points = []
    for back in range(periods - 1, -1, -1):
        start, end = _period_bounds(period, today, back)
        totals = _totals(await _transactions(db, child_id, start, end))
        points.append({"period_start": start, "amount": totals["total_spending"]})
    current = points[-1]["amount"] if points else Decimal("0")
    previous = points[-2]["amount"] if len(points) > 1 else Decimal("0")
    direction, change = trend_direction(current, previous)
    return {"period": period, "data_points": points, "direction": direction, "change_percent": change}


async def monthly_comparison(db: AsyncSession, child_id: int, months: int = 6) -> list[dict]:
    today = date.today()
    rows = []
    for back in range(months - 1, -1, -1):
        start, end = _period_bounds("month", today, back)
        totals = _totals(await _transactions(db, child_id, start, end))
        rows.append(
            {
                "year": start.year,
                "month": start.month,
                "month_name": start.strftime("%B"),
                "income": totals["total_income"],
                "spending": totals["total_spending"],
                "net": totals["net"],
                "savings_rate": totals["savings_rate"],
            }
        )
    return rows


async def category_breakdown(db: AsyncSession, child_id: int) -> list[dict]:
    return await get_category_spending(db, child_id)
