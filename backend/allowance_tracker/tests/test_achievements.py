"""Badge unlocking and the reward shop."""

from decimal import Decimal
import asyncio
import pathlib
import sys

from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker
from sqlmodel import SQLModel, select

sys.path.append(str(pathlib.Path(__file__).resolve().parents[2]))

from allowance_tracker import crud
from allowance_tracker.models import (
    BadgeTrigger,
    Child,
    Reward,
    RewardType,
    TransactionCategory,
    TransactionType,
)
from allowance_tracker.services import achievements, savings_goals, transactions


async def _session_factory():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    Session = async_sessionmaker(engine, expire_on_commit=False)
    async with Session() as session:
        await achievements.ensure_badge_catalog(session)
    return Session


async def _family(session):
    parent = await crud.register_parent(session, "p@example.com", "pass", "Pat", "Smith")
    child = await crud.create_child(
        session, parent, "kid@example.com", "pass", "Kid", initial_balance=Decimal("20")
    )
    return parent, child


async def _child(session, child_id):
    result = await session.execute(select(Child).where(Child.id == child_id))
    return result.scalar_one()


async def _earned_codes(session, child_id):
    return {badge.code for _, badge in await achievements.get_child_badges(session, child_id)}


def test_catalog_seed_is_idempotent():
    async def run():
        Session = await _session_factory()
        async with Session() as session:
            await achievements.ensure_badge_catalog(session)
            badges = await achievements.get_all_badges(session, include_secret=True)
            codes = [row["badge"].code for row in badges]
            assert len(codes) == len(set(codes))
            assert "WELCOME" in codes

    asyncio.run(run())


def test_welcome_badge_awarded_once():
    async def run():
        Session = await _session_factory()
        async with Session() as session:
            _, child = await _family(session)
            assert "WELCOME" in await _earned_codes(session, child.id)
            refreshed = await _child(session, child.id)
            assert refreshed.total_points == 5
            assert refreshed.available_points == 5

            again = await achievements.try_unlock_badge(session, child.id, "WELCOME")
            assert again is None
            refreshed = await _child(session, child.id)
            assert refreshed.total_points == 5
            assert await achievements.try_unlock_badge(session, child.id, "NO_SUCH_BADGE") is None

    asyncio.run(run())


def test_triggers_unlock_matching_badges():
    async def run():
        Session = await _session_factory()
        async with Session() as session:
            parent, child = await _family(session)
            await savings_goals.create_goal(session, child.id, "Bike", Decimal("100"))
            await transactions.create_transaction(
                session, child.id, Decimal("2"), TransactionType.DEBIT,
                TransactionCategory.SNACKS, "Gum", parent.id,
            )
            earned = await _earned_codes(session, child.id)
            assert {"GOAL_SETTER", "FIRST_PURCHASE"} <= earned

            # a second check for the same trigger awards nothing new
            unlocked = await achievements.check_and_unlock_badges(
                session, child.id, BadgeTrigger.GOAL_CREATED
            )
            assert unlocked == []

            summary = await achievements.get_achievement_summary(session, child.id)
            assert summary["earned_badges"] == len(earned)
            assert summary["total_points"] == (await _child(session, child.id)).total_points

    asyncio.run(run())


def test_unlock_and_equip_rewards():
    async def run():
        Session = await _session_factory()
        async with Session() as session:
            _, child = await _family(session)
            child = await _child(session, child.id)
            child.available_points = 100
            await session.commit()

            result = await session.execute(
                select(Reward).where(Reward.type == RewardType.AVATAR).order_by(Reward.points_cost)
            )
            cheap, pricier = result.scalars().all()[:2]

            try:
                await achievements.equip_reward(session, child.id, cheap.id)
                assert False, "locked rewards cannot be equipped"
            except ValueError as exc:
                assert str(exc) == "Reward not unlocked"

            await achievements.unlock_reward(session, child.id, cheap.id)
            await achievements.unlock_reward(session, child.id, pricier.id)
            child = await _child(session, child.id)
            assert child.available_points == 100 - cheap.points_cost - pricier.points_cost

            try:
                await achievements.unlock_reward(session, child.id, cheap.id)
                assert False, "rewards unlock once"
            except ValueError as exc:
                assert str(exc) == "Reward already unlocked"

            await achievements.equip_reward(session, child.id, cheap.id)
            await achievements.equip_reward(session, child.id, pricier.id)
            rows = await achievements.get_child_rewards(session, child.id)
            equipped = {reward.id for cr, reward in rows if cr.is_equipped}
            assert equipped == {pricier.id}
            child = await _child(session, child.id)
            assert child.equipped_avatar_url == pricier.value

            # unequipping a reward that is not worn leaves the worn one alone
            await achievements.unequip_reward(session, child.id, cheap.id)
            child = await _child(session, child.id)
            assert child.equipped_avatar_url == pricier.value
            rows = await achievements.get_child_rewards(session, child.id)
            assert {reward.id for cr, reward in rows if cr.is_equipped} == {pricier.id}

            await achievements.unequip_reward(session, child.id, pricier.id)
            child = await _child(session, child.id)
            assert child.equipped_avatar_url is None

    asyncio.run(run())


def test_reward_costs_more_than_available_points():
    async def run():
        Session = await _session_factory()
        async with Session() as session:
            _, child = await _family(session)
            result = await session.execute(select(Reward).order_by(Reward.points_cost.desc()))
            expensive = result.scalars().first()
            try:
                await achievements.unlock_reward(session, child.id, expensive.id)
                assert False, "not enough points"
            except ValueError as exc:
                assert str(exc) == "Child has insufficient points"

    asyncio.run(run())
