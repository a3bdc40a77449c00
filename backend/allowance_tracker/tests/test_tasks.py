"""Chore assignment, completion and parent review."""

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
    Child,
    ChoreTask,
    CompletionStatus,
    DayOfWeek,
    RecurrenceType,
    TaskStatus,
    TransactionCategory,
)
from allowance_tracker.services import tasks, transactions


async def _session_factory():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    return async_sessionmaker(engine, expire_on_commit=False)


async def _family(session):
    parent = await crud.register_parent(session, "p@example.com", "pass", "Pat", "Smith")
    child = await crud.create_child(session, parent, "kid@example.com", "pass", "Kid")
    return parent, child


def test_approved_completion_pays_reward():
    async def run():
        Session = await _session_factory()
        async with Session() as session:
            parent, child = await _family(session)
            task = await tasks.create_task(
                session, parent, child.id, "Dishes", Decimal("2.50")
            )
            completion = await tasks.complete_task(session, task.id, child, "All clean")
            assert completion.status == CompletionStatus.PENDING_APPROVAL
            pending = await tasks.pending_approvals(session, parent.family_id)
            assert [c.id for c in pending] == [completion.id]

            try:
                await tasks.update_task(session, task.id, {"title": "Pots"})
                assert False, "tasks with pending approvals are locked"
            except ValueError as exc:
                assert str(exc) == "Cannot update task with pending approvals"

            reviewed = await tasks.review_completion(session, completion.id, parent, True)
            assert reviewed.status == CompletionStatus.APPROVED
            assert reviewed.transaction_id is not None
            tx = await transactions.get_transaction(session, reviewed.transaction_id)
            assert tx.category == TransactionCategory.TASK
            assert tx.amount == Decimal("2.50")

            try:
                await tasks.review_completion(session, completion.id, parent, True)
                assert False, "a completion is reviewed once"
            except ValueError as exc:
                assert str(exc) == "Completion already reviewed"

            stats = await tasks.get_statistics(session, child.id)
            assert stats["approved_count"] == 1
            assert stats["total_earned"] == Decimal("2.50")
            assert stats["completion_rate"] == 100.0

    asyncio.run(run())


def test_rejected_completion_pays_nothing():
    async def run():
        Session = await _session_factory()
        async with Session() as session:
            parent, child = await _family(session)
            task = await tasks.create_task(session, parent, child.id, "Bed", Decimal("1"))
            completion = await tasks.complete_task(session, task.id, child)
            reviewed = await tasks.review_completion(
                session, completion.id, parent, False, "Still messy"
            )
            assert reviewed.status == CompletionStatus.REJECTED
            assert reviewed.rejection_reason == "Still messy"
            result = await session.execute(select(Child).where(Child.id == child.id))
            assert result.scalar_one().current_balance == Decimal("0.00")

    asyncio.run(run())


def test_children_only_complete_their_own_active_tasks():
    async def run():
        Session = await _session_factory()
        async with Session() as session:
            parent, child = await _family(session)
            sibling = await crud.create_child(session, parent, "sib@example.com", "pass", "Sib")
            task = await tasks.create_task(session, parent, child.id, "Trash", Decimal("1"))
            try:
                await tasks.complete_task(session, task.id, sibling)
                assert False, "sibling cannot complete"
            except PermissionError:
                pass
            await tasks.archive_task(session, task.id)
            try:
                await tasks.complete_task(session, task.id, child)
                assert False, "archived task cannot be completed"
            except ValueError as exc:
                assert str(exc) == "Cannot complete archived task"
            archived = await tasks.list_tasks(session, parent.family_id, status=TaskStatus.ARCHIVED)
            assert [t.id for t in archived] == [task.id]

    asyncio.run(run())


def test_recurring_schedule():
    wednesday = date(2024, 5, 15)
    weekly = ChoreTask(
        child_id=1, family_id=1, title="Trash", created_by_id=1,
        is_recurring=True, recurrence_type=RecurrenceType.WEEKLY,
        recurrence_day=DayOfWeek.WEDNESDAY,
    )
    monthly = ChoreTask(
        child_id=1, family_id=1, title="Garage", created_by_id=1,
        is_recurring=True, recurrence_type=RecurrenceType.MONTHLY,
        recurrence_day_of_month=1,
    )
    assert tasks.is_due(weekly, wednesday)
    assert not tasks.is_due(weekly, date(2024, 5, 16))
    assert tasks.is_due(monthly, date(2024, 6, 1))
    assert not tasks.is_due(monthly, wednesday)
