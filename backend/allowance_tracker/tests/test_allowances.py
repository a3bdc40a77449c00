"""Weekly allowance eligibility, payment and the batch run."""

from datetime import datetime, timedelta
from decimal import Decimal
import asyncio
import pathlib
import sys

from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker
from sqlmodel import SQLModel, select

sys.path.append(str(pathlib.Path(__file__).resolve().parents[2]))

from allowance_tracker import crud
from allowance_tracker.models import (
    AllowanceAdjustmentType,
    Child,
    DayOfWeek,
    SavingsTransaction,
    TransactionCategory,
    TransferType,
)
from allowance_tracker.services import allowances, savings_account, transactions


async def _session_factory():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    return async_sessionmaker(engine, expire_on_commit=False)


async def _child(session, child_id):
    result = await session.execute(select(Child).where(Child.id == child_id))
    return result.scalar_one()


def test_check_eligibility_rules():
    now = datetime(2024, 5, 15, 9, 0)  # a Wednesday
    child = Child(user_id=1, family_id=1, first_name="Kid", weekly_allowance=Decimal("10"))
    assert allowances.check_eligibility(child, now) is None

    child.last_allowance_date = now - timedelta(days=3)
    assert allowances.check_eligibility(child, now) == "Allowance already paid this week"
    child.last_allowance_date = now - timedelta(days=7)
    assert allowances.check_eligibility(child, now) is None

    child.allowance_day = DayOfWeek.FRIDAY
    assert allowances.check_eligibility(child, now) == "Today is not the scheduled allowance day"
    child.allowance_day = DayOfWeek.WEDNESDAY
    # paid last Wednesday at a later hour still counts as a full week
    child.last_allowance_date = now - timedelta(days=7) + timedelta(hours=5)
    assert allowances.check_eligibility(child, now) is None

    child.allowance_paused = True
    assert allowances.check_eligibility(child, now) == "Allowance is currently paused"

    child.weekly_allowance = Decimal("0")
    assert allowances.check_eligibility(child, now) == "Child has no weekly allowance configured"


def test_pay_allowance_credits_and_moves_savings_share():
    async def run():
        Session = await _session_factory()
        async with Session() as session:
            parent = await crud.register_parent(session, "p@example.com", "pass", "Pat", "Lee")
            child = await crud.create_child(
                session, parent, "kid@example.com", "pass", "Kid",
                weekly_allowance=Decimal("10"),
            )
            await savings_account.enable_savings_account(
                session, child.id, TransferType.PERCENTAGE, transfer_percentage=20
            )
            now = datetime(2024, 5, 15, 9, 0)
            tx = await allowances.pay_weekly_allowance(session, child.id, now)
            assert tx.category == TransactionCategory.ALLOWANCE
            assert tx.description == "Weekly Allowance - 2024-05-15"
            assert tx.amount == Decimal("10.00")

            refreshed = await _child(session, child.id)
            assert refreshed.current_balance == Decimal("8.00")
            assert refreshed.savings_balance == Decimal("2.00")
            assert refreshed.last_allowance_date == now

            result = await session.execute(
                select(SavingsTransaction).where(SavingsTransaction.child_id == child.id)
            )
            movement = result.scalar_one()
            assert movement.is_automatic
            assert movement.source_allowance_transaction_id == tx.id

            try:
                await allowances.pay_weekly_allowance(session, child.id, now + timedelta(days=1))
                assert False, "second payment in the same week must fail"
            except ValueError as exc:
                assert str(exc) == "Allowance already paid this week"

    asyncio.run(run())


def test_pause_resume_and_amount_history():
    async def run():
        Session = await _session_factory()
        async with Session() as session:
            parent = await crud.register_parent(session, "p@example.com", "pass", "Pat", "Lee")
            child = await crud.create_child(
                session, parent, "kid@example.com", "pass", "Kid",
                weekly_allowance=Decimal("5"),
            )
            await allowances.pause_allowance(session, child.id, "Grounded", parent.id)
            try:
                await allowances.pay_weekly_allowance(session, child.id)
                assert False, "paused allowance must not pay"
            except ValueError as exc:
                assert str(exc) == "Allowance is currently paused"
            await allowances.resume_allowance(session, child.id, None, parent.id)
            updated = await allowances.adjust_allowance_amount(
                session, child.id, Decimal("7.5"), "Raise", parent.id
            )
            assert updated.weekly_allowance == Decimal("7.50")

            history = await allowances.get_adjustment_history(session, child.id)
            assert [h.adjustment_type for h in history] == [
                AllowanceAdjustmentType.PAUSED,
                AllowanceAdjustmentType.RESUMED,
                AllowanceAdjustmentType.AMOUNT_CHANGED,
            ]
            assert history[-1].old_amount == Decimal("5.00")

    asyncio.run(run())


def test_batch_run_continues_after_a_failure(monkeypatch):
    async def run():
        Session = await _session_factory()
        async with Session() as session:
            parent = await crud.register_parent(session, "p@example.com", "pass", "Pat", "Lee")
            first = await crud.create_child(
                session, parent, "a@example.com", "pass", "Ann",
                weekly_allowance=Decimal("5"),
            )
            second = await crud.create_child(
                session, parent, "b@example.com", "pass", "Ben",
                weekly_allowance=Decimal("6"),
            )
            await crud.create_child(session, parent, "c@example.com", "pass", "Cal")

            failing_id, paid_id = first.id, second.id
            real_pay = allowances.pay_weekly_allowance

            async def flaky_pay(db, child_id, now=None):
                if child_id == failing_id:
                    raise RuntimeError("boom")
                return await real_pay(db, child_id, now)

            monkeypatch.setattr(allowances, "pay_weekly_allowance", flaky_pay)
            summary = await allowances.process_all_pending_allowances(session)
            assert summary == {"processed": 1, "failed": 1}

            balance = await transactions.get_balance(session, paid_id)
            assert balance["current_balance"] == Decimal("6.00")

    asyncio.run(run())
