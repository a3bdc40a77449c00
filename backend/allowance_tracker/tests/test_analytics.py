from decimal import Decimal
import asyncio
import pathlib
import sys

from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker
from sqlmodel import SQLModel

sys.path.append(str(pathlib.Path(__file__).resolve().parents[2]))

from allowance_tracker import crud
from allowance_tracker.models import TransactionCategory, TransactionType
from allowance_tracker.services import analytics, transactions


async def _session_factory():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    return async_sessionmaker(engine, expire_on_commit=False)


def test_trend_direction_band():
    assert analytics.trend_direction(Decimal("110"), Decimal("100")) == ("Up", Decimal("10.00"))
    assert analytics.trend_direction(Decimal("80"), Decimal("100")) == ("Down", Decimal("-20.00"))
    assert analytics.trend_direction(Decimal("104"), Decimal("100"))[0] == "Stable"
    assert analytics.trend_direction(Decimal("5"), Decimal("0")) == ("Up", Decimal("100.00"))
    assert analytics.trend_direction(Decimal("0"), Decimal("0")) == ("Stable", Decimal("0.00"))


def test_income_vs_spending_totals():
    async def run():
        Session = await _session_factory()
        async with Session() as session:
            parent = await crud.register_parent(session, "p@example.com", "pass", "Pat", "Smith")
            child = await crud.create_child(session, parent, "kid@example.com", "pass", "Kid")
            await transactions.create_transaction(
                session, child.id, Decimal("20"), TransactionType.CREDIT,
                TransactionCategory.ALLOWANCE, "Allowance",
            )
            await transactions.create_transaction(
                session, child.id, Decimal("5"), TransactionType.DEBIT,
                TransactionCategory.CANDY, "Candy",
            )
            await transactions.create_transaction(
                session, child.id, Decimal("3"), TransactionType.DEBIT,
                TransactionCategory.CHARITY, "Food bank",
            )
            totals = await analytics.income_vs_spending(session, child.id)
            assert totals["total_income"] == Decimal("20.00")
            assert totals["total_spending"] == Decimal("8.00")
            assert totals["net"] == Decimal("12.00")
            assert totals["savings_rate"] == Decimal("60.00")
            assert totals["saved_amount"] == Decimal("3.00")

            history = await analytics.balance_history(session, child.id)
            assert [h["balance"] for h in history] == [
                Decimal("20.00"), Decimal("15.00"), Decimal("12.00")
            ]

            trend = await analytics.spending_trend(session, child.id, "week", 2)
            assert len(trend["data_points"]) == 2
            assert trend["data_points"][-1]["amount"] == Decimal("8.00")
            assert trend["direction"] == "Up"

            months = await analytics.monthly_comparison(session, child.id, 3)
            assert len(months) == 3
            assert months[-1]["income"] == Decimal("20.00")

    asyncio.run(run())
