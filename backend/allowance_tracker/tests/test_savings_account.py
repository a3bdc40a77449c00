"""Savings account deposits, withdrawals, transfers and the saving streak."""

from datetime import date
from decimal import Decimal
import asyncio
import pathlib
import sys

from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker
from sqlmodel import SQLModel

sys.path.append(str(pathlib.Path(__file__).resolve().parents[2]))

from allowance_tracker import crud
from allowance_tracker.models import Child, TransferType
from allowance_tracker.services import achievements, savings_account


async def _session_factory():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    return async_sessionmaker(engine, expire_on_commit=False)


def test_deposit_withdraw_and_summary():
    async def run():
        Session = await _session_factory()
        async with Session() as session:
            parent = await crud.register_parent(session, "p@example.com", "pass", "Pat", "Lee")
            child = await crud.create_child(
                session, parent, "kid@example.com", "pass", "Kid",
                initial_balance=Decimal("30"),
            )
            row = await savings_account.deposit(session, child.id, Decimal("12"))
            assert row.balance_after == Decimal("12.00")
            await savings_account.withdraw(session, child.id, Decimal("2"))
            assert await savings_account.get_balance(session, child.id) == Decimal("10.00")

            try:
                await savings_account.withdraw(session, child.id, Decimal("20"))
                assert False, "expected insufficient savings"
            except ValueError as exc:
                assert str(exc) == "Insufficient savings balance"
            try:
                await savings_account.deposit(session, child.id, Decimal("100"))
                assert False, "expected insufficient balance"
            except ValueError as exc:
                assert str(exc) == "Insufficient balance"

            summary = await savings_account.get_summary(session, child.id)
            assert summary["total_deposited"] == Decimal("12.00")
            assert summary["total_withdrawn"] == Decimal("2.00")
            assert summary["transaction_count"] == 2
            assert summary["config_description"] == "Savings account disabled"

            history = await savings_account.get_history(session, child.id)
            assert len(history) == 2

    asyncio.run(run())


def test_transfer_amount_and_config_validation():
    child = Child(user_id=1, family_id=1, first_name="Kid")
    child.savings_account_enabled = True
    child.savings_transfer_type = TransferType.PERCENTAGE
    child.savings_transfer_percentage = 25
    assert savings_account.calculate_transfer_amount(child, Decimal("10")) == Decimal("2.50")
    assert savings_account.describe_config(child) == "Save 25% of each allowance"
    child.savings_transfer_type = TransferType.FIXED_AMOUNT
    child.savings_transfer_amount = Decimal("3")
    assert savings_account.calculate_transfer_amount(child, Decimal("10")) == Decimal("3.00")

    async def run():
        Session = await _session_factory()
        async with Session() as session:
            try:
                await savings_account.enable_savings_account(
                    session, 1, TransferType.PERCENTAGE, transfer_percentage=150
                )
                assert False, "percentage above 100 is invalid"
            except ValueError as exc:
                assert "Percentage must be between 0 and 100" in str(exc)

    asyncio.run(run())


def test_weekly_saving_streak():
    child = Child(user_id=1, family_id=1, first_name="Kid")
    assert achievements.record_saving_activity(child, date(2024, 5, 13))
    assert child.saving_streak == 1
    # same ISO week
    assert not achievements.record_saving_activity(child, date(2024, 5, 17))
    assert child.saving_streak == 1
    # following week
    assert achievements.record_saving_activity(child, date(2024, 5, 21))
    assert child.saving_streak == 2
    # skipped a week
    assert achievements.record_saving_activity(child, date(2024, 6, 5))
    assert child.saving_streak == 1
