"""Ledger rules: overdraft, drawing on savings, debt and enforced budgets."""

from datetime import date
from decimal import Decimal
import asyncio
import pathlib
import sys

from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker
from sqlmodel import SQLModel, select

sys.path.append(str(pathlib.Path(__file__).resolve().parents[2]))

from allowance_tracker import crud
from allowance_tracker.models import (
    BudgetPeriod,
    Child,
    TransactionCategory,
    TransactionType,
)
from allowance_tracker.services import budgets, savings_account, transactions


async def _session_factory():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    return async_sessionmaker(engine, expire_on_commit=False)


async def _family(session, balance="20"):
    parent = await crud.register_parent(session, "p@example.com", "pass", "Pat", "Smith")
    child = await crud.create_child(
        session, parent, "kid@example.com", "pass", "Kid", initial_balance=Decimal(balance)
    )
    return parent, child


async def _child(session, child_id):
    result = await session.execute(select(Child).where(Child.id == child_id))
    return result.scalar_one()


def test_credit_and_debit_record_balance_after():
    async def run():
        Session = await _session_factory()
        async with Session() as session:
            parent, child = await _family(session)
            tx = await transactions.create_transaction(
                session, child.id, Decimal("5"), TransactionType.CREDIT,
                TransactionCategory.CHORES, "Mowed lawn", parent.id,
            )
            assert tx.balance_after == Decimal("25.00")
            tx = await transactions.create_transaction(
                session, child.id, Decimal("7.25"), TransactionType.DEBIT,
                TransactionCategory.SNACKS, "Ice cream", parent.id,
            )
            assert tx.balance_after == Decimal("17.75")

            history = await transactions.get_child_transactions(session, child.id)
            assert [t.description for t in history] == ["Ice cream", "Mowed lawn"]

            spending = await transactions.get_category_spending(session, child.id)
            assert spending[0]["category"] == TransactionCategory.SNACKS
            assert spending[0]["transaction_count"] == 1

    asyncio.run(run())


def test_overdraft_is_rejected_without_debt():
    async def run():
        Session = await _session_factory()
        async with Session() as session:
            _, child = await _family(session, balance="3")
            try:
                await transactions.create_transaction(
                    session, child.id, Decimal("5"), TransactionType.DEBIT,
                    TransactionCategory.TOYS, "Yo-yo",
                )
                assert False, "expected insufficient funds"
            except ValueError as exc:
                assert str(exc) == "Insufficient funds"

            try:
                await transactions.create_transaction(
                    session, child.id, Decimal("0"), TransactionType.CREDIT,
                    TransactionCategory.GIFT, "Nothing",
                )
                assert False, "zero amounts are invalid"
            except ValueError as exc:
                assert str(exc) == "Amount must be positive"

    asyncio.run(run())


def test_allow_debt_lets_balance_go_negative():
    async def run():
        Session = await _session_factory()
        async with Session() as session:
            _, child = await _family(session, balance="3")
            await crud.update_child_settings(session, child, {"allow_debt": True})
            tx = await transactions.create_transaction(
                session, child.id, Decimal("5"), TransactionType.DEBIT,
                TransactionCategory.TOYS, "Yo-yo",
            )
            assert tx.balance_after == Decimal("-2.00")

    asyncio.run(run())


def test_draw_from_savings_covers_the_shortfall():
    async def run():
        Session = await _session_factory()
        async with Session() as session:
            _, child = await _family(session, balance="20")
            await savings_account.deposit(session, child.id, Decimal("15"))
            tx = await transactions.create_transaction(
                session, child.id, Decimal("8"), TransactionType.DEBIT,
                TransactionCategory.BOOKS, "Comic", draw_from_savings=True,
            )
            assert tx.balance_after == Decimal("0.00")
            refreshed = await _child(session, child.id)
            assert refreshed.savings_balance == Decimal("12.00")

            try:
                await transactions.create_transaction(
                    session, child.id, Decimal("50"), TransactionType.DEBIT,
                    TransactionCategory.BOOKS, "Box set", draw_from_savings=True,
                )
                assert False, "savings cannot cover this"
            except ValueError as exc:
                assert "Total available (spending + savings): $12.00" in str(exc)

    asyncio.run(run())


def test_enforced_budget_blocks_spending():
    async def run():
        Session = await _session_factory()
        async with Session() as session:
            parent, child = await _family(session, balance="50")
            await budgets.set_budget(
                session, child.id, TransactionCategory.CANDY, Decimal("10"),
                BudgetPeriod.WEEKLY, enforce_limit=True, created_by_id=parent.id,
            )
            await transactions.create_transaction(
                session, child.id, Decimal("8"), TransactionType.DEBIT,
                TransactionCategory.CANDY, "Gummies",
            )
            budget = await budgets.get_budget(session, child.id, TransactionCategory.CANDY)
            status = await budgets.get_budget_status(session, budget)
            assert status["percent_used"] == Decimal("80.00")
            assert status["status"] == budgets.STATUS_WARNING

            check = await budgets.check_budget(
                session, child.id, TransactionCategory.CANDY, Decimal("5")
            )
            assert not check["allowed"]
            assert check["remaining_after"] == Decimal("-3.00")
            try:
                await transactions.create_transaction(
                    session, child.id, Decimal("5"), TransactionType.DEBIT,
                    TransactionCategory.CANDY, "Chocolate",
                )
                assert False, "enforced budget must block"
            except ValueError as exc:
                assert str(exc) == "Budget exceeded for Candy"

    asyncio.run(run())


def test_budget_helpers():
    assert budgets.budget_status(Decimal("50"), 80) == budgets.STATUS_SAFE
    assert budgets.budget_status(Decimal("100"), 80) == budgets.STATUS_AT_LIMIT
    assert budgets.budget_status(Decimal("100.01"), 80) == budgets.STATUS_OVER_BUDGET
    wednesday = date(2024, 5, 15)
    assert budgets.period_start(BudgetPeriod.WEEKLY, wednesday).date() == date(2024, 5, 13)
    assert budgets.period_start(BudgetPeriod.MONTHLY, wednesday).date() == date(2024, 5, 1)
