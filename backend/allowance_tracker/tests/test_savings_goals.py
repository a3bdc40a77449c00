"""Goal contributions, parent matching, milestones and challenges."""

from datetime import datetime, timedelta, timezone
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
    ContributionType,
    GoalStatus,
    MatchingType,
    ParentMatchingRule,
    TransferType,
)
from allowance_tracker.services import savings_goals


async def _session_factory():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    return async_sessionmaker(engine, expire_on_commit=False)


async def _family(session, balance="100"):
    parent = await crud.register_parent(session, "p@example.com", "pass", "Pat", "Smith")
    child = await crud.create_child(
        session, parent, "kid@example.com", "pass", "Kid", initial_balance=Decimal(balance)
    )
    return parent, child


async def _child(session, child_id):
    result = await session.execute(select(Child).where(Child.id == child_id))
    return result.scalar_one()


def test_contribution_moves_money_and_applies_capped_match():
    async def run():
        Session = await _session_factory()
        async with Session() as session:
            parent, child = await _family(session)
            goal = await savings_goals.create_goal(session, child.id, "Bike", Decimal("200"))
            await savings_goals.create_matching_rule(
                session, goal.id, MatchingType.RATIO_MATCH, Decimal("1"),
                max_match_amount=Decimal("15"), created_by_id=parent.id,
            )

            first = await savings_goals.contribute(session, goal.id, Decimal("10"))
            assert first["match_amount"] == Decimal("10.00")
            assert first["new_amount"] == Decimal("20.00")

            # only 5 of the 15 cap is left
            second = await savings_goals.contribute(session, goal.id, Decimal("10"))
            assert second["match_amount"] == Decimal("5.00")
            assert second["new_amount"] == Decimal("35.00")

            refreshed = await _child(session, child.id)
            assert refreshed.current_balance == Decimal("80.00")
            rule = await savings_goals.get_matching_rule(session, goal.id)
            assert rule.total_matched_amount == Decimal("15.00")

            third = await savings_goals.contribute(session, goal.id, Decimal("5"))
            assert third["match_amount"] == Decimal("0.00")

    asyncio.run(run())


def test_percentage_match():
    async def run():
        Session = await _session_factory()
        async with Session() as session:
            parent, child = await _family(session)
            goal = await savings_goals.create_goal(session, child.id, "Game", Decimal("100"))
            await savings_goals.create_matching_rule(
                session, goal.id, MatchingType.PERCENTAGE_MATCH, Decimal("50")
            )
            event = await savings_goals.contribute(session, goal.id, Decimal("8"))
            assert event["match_amount"] == Decimal("4.00")

    asyncio.run(run())


def test_contribution_rejects_insufficient_balance_and_inactive_goal():
    async def run():
        Session = await _session_factory()
        async with Session() as session:
            _, child = await _family(session, balance="5")
            goal = await savings_goals.create_goal(session, child.id, "Lego", Decimal("50"))
            try:
                await savings_goals.contribute(session, goal.id, Decimal("10"))
                assert False, "expected insufficient balance"
            except ValueError as exc:
                assert str(exc) == "Insufficient balance"

            await savings_goals.pause_goal(session, goal.id)
            try:
                await savings_goals.contribute(session, goal.id, Decimal("1"))
                assert False, "expected inactive goal"
            except ValueError as exc:
                assert str(exc) == "Goal is not active"

    asyncio.run(run())


def test_every_crossed_milestone_is_marked():
    async def run():
        Session = await _session_factory()
        async with Session() as session:
            _, child = await _family(session)
            goal = await savings_goals.create_goal(session, child.id, "Shoes", Decimal("40"))
            milestones = await savings_goals.get_milestones(session, goal.id)
            assert [m.percent_complete for m in milestones] == [25, 50, 75, 100]

            event = await savings_goals.contribute(session, goal.id, Decimal("21"))
            assert event["milestone_reached"] == 25
            assert event["milestones_reached"] == [25, 50]
            assert not event["is_completed"]

            milestones = await savings_goals.get_milestones(session, goal.id)
            assert [m.is_achieved for m in milestones] == [True, True, False, False]

    asyncio.run(run())


def test_goal_completes_exactly_once():
    async def run():
        Session = await _session_factory()
        async with Session() as session:
            _, child = await _family(session)
            goal = await savings_goals.create_goal(session, child.id, "Book", Decimal("20"))
            event = await savings_goals.contribute(session, goal.id, Decimal("25"))
            assert event["is_completed"]
            goal = await savings_goals.get_goal(session, goal.id)
            assert goal.status == GoalStatus.COMPLETED
            completed_at = goal.completed_at
            assert completed_at is not None

            try:
                await savings_goals.contribute(session, goal.id, Decimal("1"))
                assert False, "completed goals take no deposits"
            except ValueError:
                pass
            goal = await savings_goals.get_goal(session, goal.id)
            assert goal.completed_at == completed_at

    asyncio.run(run())


def test_challenge_bonus_is_added_when_target_met():
    async def run():
        Session = await _session_factory()
        async with Session() as session:
            parent, child = await _family(session)
            goal = await savings_goals.create_goal(session, child.id, "Console", Decimal("300"))
            await savings_goals.create_challenge(
                session, goal.id, Decimal("30"),
                datetime.utcnow() + timedelta(days=7), Decimal("5"), parent.id,
            )
            event = await savings_goals.contribute(session, goal.id, Decimal("30"))
            assert event["challenge_completed"]
            assert event["bonus_amount"] == Decimal("5.00")
            assert event["new_amount"] == Decimal("35.00")
            assert await savings_goals.get_active_challenge(session, goal.id) is None

            rows = await savings_goals.get_contributions(
                session, goal.id, ContributionType.CHALLENGE_BONUS
            )
            assert len(rows) == 1

    asyncio.run(run())


def test_withdraw_returns_money_to_balance():
    async def run():
        Session = await _session_factory()
        async with Session() as session:
            _, child = await _family(session)
            goal = await savings_goals.create_goal(session, child.id, "Kite", Decimal("50"))
            await savings_goals.contribute(session, goal.id, Decimal("20"))
            row = await savings_goals.withdraw(session, goal.id, Decimal("5"), "Snack")
            assert row.amount == Decimal("-5.00")
            assert row.goal_balance_after == Decimal("15.00")
            refreshed = await _child(session, child.id)
            assert refreshed.current_balance == Decimal("85.00")
            try:
                await savings_goals.withdraw(session, goal.id, Decimal("100"))
                assert False, "cannot withdraw more than saved"
            except ValueError as exc:
                assert str(exc) == "Insufficient goal balance"

    asyncio.run(run())


def test_cancel_goal_refunds_saved_amount():
    async def run():
        Session = await _session_factory()
        async with Session() as session:
            _, child = await _family(session)
            goal = await savings_goals.create_goal(session, child.id, "Hat", Decimal("30"))
            await savings_goals.contribute(session, goal.id, Decimal("12"))
            goal = await savings_goals.cancel_goal(session, goal.id)
            assert goal.status == GoalStatus.CANCELLED
            refreshed = await _child(session, child.id)
            assert refreshed.current_balance == Decimal("100.00")

    asyncio.run(run())


def test_auto_transfer_sweep_respects_priority_and_balance():
    async def run():
        Session = await _session_factory()
        async with Session() as session:
            _, child = await _family(session, balance="12")
            first = await savings_goals.create_goal(
                session, child.id, "First", Decimal("100"), priority=1,
                auto_transfer_type=TransferType.FIXED_AMOUNT,
                auto_transfer_amount=Decimal("10"),
            )
            second = await savings_goals.create_goal(
                session, child.id, "Second", Decimal("100"), priority=2,
                auto_transfer_type=TransferType.PERCENTAGE,
                auto_transfer_percentage=50,
            )
            third = await savings_goals.create_goal(
                session, child.id, "Third", Decimal("100"), priority=3,
                auto_transfer_type=TransferType.FIXED_AMOUNT,
                auto_transfer_amount=Decimal("5"),
            )
            rows = await savings_goals.process_auto_transfers(session, child.id, Decimal("10"))
            assert [r.goal_id for r in rows] == [first.id, second.id]
            assert rows[0].amount == Decimal("10.00")
            assert rows[1].amount == Decimal("2.00")

            refreshed = await _child(session, child.id)
            assert refreshed.current_balance == Decimal("0.00")
            third = await savings_goals.get_goal(session, third.id)
            assert third.current_amount == Decimal("0.00")

    asyncio.run(run())


def test_calculate_match_ignores_expired_rules():
    rule = ParentMatchingRule(
        goal_id=1,
        matching_type=MatchingType.RATIO_MATCH,
        match_ratio=Decimal("2"),
        expires_at=datetime(2020, 1, 1),
    )
    assert savings_goals.calculate_match(rule, Decimal("5"), datetime(2021, 1, 1)) == Decimal("0.00")
    assert savings_goals.calculate_match(rule, Decimal("5"), datetime(2019, 1, 1)) == Decimal("10.00")


def test_auto_transfer_sweep_skips_paused_and_completed_goals():
    async def run():
        Session = await _session_factory()
        async with Session() as session:
            _, child = await _family(session, balance="30")
            paused = await savings_goals.create_goal(
                session, child.id, "Paused", Decimal("100"), priority=1,
                auto_transfer_type=TransferType.FIXED_AMOUNT,
                auto_transfer_amount=Decimal("10"),
            )
            await savings_goals.pause_goal(session, paused.id)
            done = await savings_goals.create_goal(
                session, child.id, "Done", Decimal("5"), priority=2,
                auto_transfer_type=TransferType.FIXED_AMOUNT,
                auto_transfer_amount=Decimal("10"),
            )
            event = await savings_goals.contribute(session, done.id, Decimal("5"))
            assert event["is_completed"]
            active = await savings_goals.create_goal(
                session, child.id, "Active", Decimal("100"), priority=3,
                auto_transfer_type=TransferType.FIXED_AMOUNT,
                auto_transfer_amount=Decimal("10"),
            )

            rows = await savings_goals.process_auto_transfers(session, child.id, Decimal("10"))
            assert [r.goal_id for r in rows] == [active.id]
            for goal_id in (paused.id, done.id):
                transfers = await savings_goals.get_contributions(
                    session, goal_id, ContributionType.AUTO_TRANSFER
                )
                assert transfers == []
            refreshed = await _child(session, child.id)
            assert refreshed.current_balance == Decimal("15.00")

    asyncio.run(run())


def test_challenge_and_rule_accept_timezone_aware_dates():
    async def run():
        Session = await _session_factory()
        async with Session() as session:
            parent, child = await _family(session)
            goal = await savings_goals.create_goal(session, child.id, "Drone", Decimal("100"))
            ends = datetime.now(timezone(timedelta(hours=2))) + timedelta(days=7)
            challenge = await savings_goals.create_challenge(
                session, goal.id, Decimal("20"), ends, Decimal("5"), parent.id
            )
            assert challenge.end_date.tzinfo is None
            assert challenge.end_date == ends.astimezone(timezone.utc).replace(tzinfo=None)

            try:
                await savings_goals.create_challenge(
                    session, goal.id, Decimal("20"),
                    datetime.now(timezone.utc) - timedelta(days=1), Decimal("5"),
                )
                assert False, "one active challenge per goal"
            except ValueError as exc:
                assert str(exc) == "Goal already has an active challenge"

            rule = await savings_goals.create_matching_rule(
                session, goal.id, MatchingType.RATIO_MATCH, Decimal("1"),
                expires_at=datetime.now(timezone.utc) + timedelta(days=1),
                created_by_id=parent.id,
            )
            assert rule.expires_at.tzinfo is None

            event = await savings_goals.contribute(session, goal.id, Decimal("10"))
            assert event["match_amount"] == Decimal("10.00")
            assert event["challenge_completed"]

    asyncio.run(run())


def test_past_aware_end_date_is_rejected():
    async def run():
        Session = await _session_factory()
        async with Session() as session:
            _, child = await _family(session)
            goal = await savings_goals.create_goal(session, child.id, "Drone", Decimal("100"))
            try:
                await savings_goals.create_challenge(
                    session, goal.id, Decimal("20"),
                    datetime.now(timezone.utc) - timedelta(hours=1), Decimal("5"),
                )
                assert False, "past end dates are rejected"
            except ValueError as exc:
                assert str(exc) == "Challenge end date must be in the future"

    asyncio.run(run())


def test_lowering_target_completes_goal():
    async def run():
        Session = await _session_factory()
        async with Session() as session:
            _, child = await _family(session)
            goal = await savings_goals.create_goal(session, child.id, "Game", Decimal("60"))
            await savings_goals.contribute(session, goal.id, Decimal("20"))

            goal = await savings_goals.update_goal(
                session, goal.id, {"target_amount": Decimal("20")}
            )
            assert goal.status == GoalStatus.COMPLETED
            assert goal.completed_at is not None
            milestones = await savings_goals.get_milestones(session, goal.id)
            assert all(m.is_achieved for m in milestones)

    asyncio.run(run())
