"""Gift links, submission through the portal, approval routing and notes."""

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
    Child,
    ContributionType,
    GiftLinkVisibility,
    GiftOccasion,
    GiftStatus,
)
from allowance_tracker.services import gifts, savings_goals, thank_you_notes, wishlist


async def _session_factory():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    return async_sessionmaker(engine, expire_on_commit=False)


async def _family(session):
    parent = await crud.register_parent(session, "p@example.com", "pass", "Pat", "Smith")
    child = await crud.create_child(session, parent, "kid@example.com", "pass", "Kid")
    return parent, child


async def _child(session, child_id):
    result = await session.execute(select(Child).where(Child.id == child_id))
    return result.scalar_one()


def test_link_limits_and_portal_visibility():
    async def run():
        Session = await _session_factory()
        async with Session() as session:
            parent, child = await _family(session)
            await savings_goals.create_goal(session, child.id, "Bike", Decimal("100"))
            await wishlist.create_item(session, child.id, "Kite", Decimal("12"))
            link = await gifts.create_link(
                session, parent, child.id, "Birthday",
                visibility=GiftLinkVisibility.WITH_GOALS,
                max_uses=1, min_amount=Decimal("5"), max_amount=Decimal("50"),
            )
            assert gifts.portal_url(link).endswith(f"/gift/{link.token}")

            portal = await gifts.get_portal_data(session, link.token)
            assert portal["child_first_name"] == "Kid"
            assert [g.name for g in portal["savings_goals"]] == ["Bike"]
            assert portal["wish_list"] is None

            try:
                await gifts.submit_gift(session, link.token, "Grandma", Decimal("1"))
                assert False, "below the minimum"
            except ValueError as exc:
                assert str(exc) == "Gift amount must be at least $5.00."

            result = await gifts.submit_gift(session, link.token, "Grandma", Decimal("20"))
            assert result["child_first_name"] == "Kid"
            # max_uses reached
            assert await gifts.validate_token(session, link.token) is None

            old_token = link.token
            link = await gifts.regenerate_token(session, link)
            assert link.token != old_token

    asyncio.run(run())


def test_gift_links_only_for_own_family():
    async def run():
        Session = await _session_factory()
        async with Session() as session:
            _, child = await _family(session)
            stranger = await crud.register_parent(
                session, "s@example.com", "pass", "Sam", "Other"
            )
            try:
                await gifts.create_link(session, stranger, child.id, "Nope")
                assert False, "other families cannot create links"
            except PermissionError:
                pass

    asyncio.run(run())


def test_approve_gift_to_goal():
    async def run():
        Session = await _session_factory()
        async with Session() as session:
            parent, child = await _family(session)
            goal = await savings_goals.create_goal(session, child.id, "Bike", Decimal("100"))
            link = await gifts.create_link(session, parent, child.id, "Any")
            submitted = await gifts.submit_gift(
                session, link.token, "Grandpa Joe", Decimal("30"),
                occasion=GiftOccasion.BIRTHDAY,
            )
            gift = await gifts.approve_gift(
                session, submitted["gift_id"], parent, allocate_to_goal_id=goal.id
            )
            assert gift.status == GiftStatus.APPROVED
            assert gift.allocate_to_goal_id == goal.id

            goal = await savings_goals.get_goal(session, goal.id)
            assert goal.current_amount == Decimal("30.00")
            rows = await savings_goals.get_contributions(
                session, goal.id, ContributionType.EXTERNAL_GIFT
            )
            assert rows[0].description == "Gift from Grandpa Joe (Birthday)"
            refreshed = await _child(session, child.id)
            assert refreshed.current_balance == Decimal("0.00")

            try:
                await gifts.approve_gift(session, gift.id, parent)
                assert False, "gifts are processed once"
            except ValueError as exc:
                assert str(exc) == "Gift has already been processed."

    asyncio.run(run())


def test_approve_gift_with_savings_split_and_reject():
    async def run():
        Session = await _session_factory()
        async with Session() as session:
            parent, child = await _family(session)
            link = await gifts.create_link(session, parent, child.id, "Any")
            first = await gifts.submit_gift(session, link.token, "Aunt May", Decimal("20"))
            await gifts.approve_gift(session, first["gift_id"], parent, savings_percentage=25)
            refreshed = await _child(session, child.id)
            assert refreshed.current_balance == Decimal("15.00")
            assert refreshed.savings_balance == Decimal("5.00")

            second = await gifts.submit_gift(session, link.token, "Spam", Decimal("9"))
            rejected = await gifts.reject_gift(session, second["gift_id"], parent, "Unknown")
            assert rejected.status == GiftStatus.REJECTED

            stats = await gifts.get_link_stats(session, link)
            assert stats["total_gifts"] == 2
            assert stats["approved_gifts"] == 1
            assert stats["total_amount_received"] == Decimal("20.00")

    asyncio.run(run())


def test_thank_you_note_flow():
    async def run():
        Session = await _session_factory()
        async with Session() as session:
            parent, child = await _family(session)
            link = await gifts.create_link(session, parent, child.id, "Any")
            pending_gift = await gifts.submit_gift(session, link.token, "Nan", Decimal("5"))
            try:
                await thank_you_notes.create_note(
                    session, child, pending_gift["gift_id"], "Thanks!"
                )
                assert False, "only approved gifts get notes"
            except ValueError as exc:
                assert "approved gifts" in str(exc)

            await gifts.approve_gift(session, pending_gift["gift_id"], parent)
            pending = await thank_you_notes.get_pending(session, child.id)
            assert [p["gift_id"] for p in pending] == [pending_gift["gift_id"]]
            assert not pending[0]["has_note"]

            note = await thank_you_notes.create_note(
                session, child, pending_gift["gift_id"], "Thanks Nan!"
            )
            note = await thank_you_notes.update_note(
                session, child, pending_gift["gift_id"], message="Thank you Nan!"
            )
            assert note.message == "Thank you Nan!"
            try:
                await thank_you_notes.send_note(session, child, pending_gift["gift_id"])
                assert False, "giver left no email"
            except ValueError as exc:
                assert "no email address" in str(exc)

    asyncio.run(run())


def test_send_note_marks_it_sent():
    async def run():
        Session = await _session_factory()
        async with Session() as session:
            parent, child = await _family(session)
            link = await gifts.create_link(session, parent, child.id, "Any")
            submitted = await gifts.submit_gift(
                session, link.token, "Pop", Decimal("5"), giver_email="pop@example.com"
            )
            await gifts.approve_gift(session, submitted["gift_id"], parent)
            await thank_you_notes.create_note(session, child, submitted["gift_id"], "Thanks!")
            note = await thank_you_notes.send_note(session, child, submitted["gift_id"])
            assert note.is_sent and note.sent_at is not None
            assert await thank_you_notes.get_pending(session, child.id) == []
            try:
                await thank_you_notes.update_note(session, child, submitted["gift_id"], "Edit")
                assert False, "sent notes are final"
            except ValueError:
                pass

    asyncio.run(run())


def test_expire_old_gifts():
    async def run():
        Session = await _session_factory()
        async with Session() as session:
            parent, child = await _family(session)
            link = await gifts.create_link(session, parent, child.id, "Any")
            submitted = await gifts.submit_gift(session, link.token, "Old", Decimal("5"))
            gift = await gifts.get_gift(session, submitted["gift_id"])
            gift.created_at = datetime.utcnow() - timedelta(days=31)
            await session.commit()
            assert await gifts.expire_old_gifts(session) == 1
            gift = await gifts.get_gift(session, gift.id)
            assert gift.status == GiftStatus.EXPIRED

    asyncio.run(run())
