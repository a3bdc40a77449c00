"""Family membership: invites, co-parents and ownership."""

from datetime import datetime, timedelta
import asyncio
import pathlib
import sys

from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker
from sqlmodel import SQLModel

sys.path.append(str(pathlib.Path(__file__).resolve().parents[2]))

from allowance_tracker import crud
from allowance_tracker.auth import authenticate_user
from allowance_tracker.models import InviteStatus


async def _session_factory():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    return async_sessionmaker(engine, expire_on_commit=False)


def test_register_parent_creates_owned_family():
    async def run():
        Session = await _session_factory()
        async with Session() as session:
            parent = await crud.register_parent(
                session, "Owner@Example.com", "pass", "Olive", "Stone"
            )
            assert parent.email == "owner@example.com"
            info = await crud.get_family_info(session, parent.family_id)
            assert info["name"] == "Stone Family"
            assert info["owner_id"] == parent.id
            assert info["parent_count"] == 1
            try:
                await crud.register_parent(session, "owner@example.com", "x", "A", "B")
                assert False, "emails are unique"
            except ValueError as exc:
                assert str(exc) == "Email already registered"

    asyncio.run(run())


def test_invite_new_parent():
    async def run():
        Session = await _session_factory()
        async with Session() as session:
            owner = await crud.register_parent(session, "o@example.com", "pass", "Olive", "Stone")
            invite = await crud.create_invite(session, owner, "Co@Example.com", "Cole", "Stone")
            assert invite.invited_email == "co@example.com"
            assert not invite.is_existing_user
            try:
                await crud.create_invite(session, owner, "co@example.com", "Cole")
                assert False, "one active invite per email"
            except ValueError as exc:
                assert str(exc) == "An active invite already exists for this email."

            user = await crud.accept_invite_new_user(session, invite.token, "secret")
            assert user.family_id == owner.family_id
            assert await authenticate_user(session, "co@example.com", "secret") is not None
            try:
                await crud.validate_invite(session, invite.token)
                assert False, "accepted invites cannot be reused"
            except ValueError as exc:
                assert str(exc) == "This invite is no longer valid"

            info = await crud.get_family_info(session, owner.family_id)
            assert info["parent_count"] == 2

    asyncio.run(run())


def test_existing_owner_must_transfer_before_joining():
    async def run():
        Session = await _session_factory()
        async with Session() as session:
            owner = await crud.register_parent(session, "o@example.com", "pass", "Olive", "Stone")
            other = await crud.register_parent(session, "x@example.com", "pass", "Xena", "Ray")
            invite = await crud.create_invite(session, owner, other.email, "Xena", "Ray")
            assert invite.is_existing_user
            try:
                await crud.accept_invite_existing_user(session, invite.token, owner)
                assert False, "wrong recipient"
            except PermissionError:
                pass
            try:
                await crud.accept_invite_existing_user(session, invite.token, other)
                assert False, "owners cannot walk away from their family"
            except ValueError as exc:
                assert "transfer ownership" in str(exc)

    asyncio.run(run())


def test_transfer_ownership_and_leave():
    async def run():
        Session = await _session_factory()
        async with Session() as session:
            owner = await crud.register_parent(session, "o@example.com", "pass", "Olive", "Stone")
            invite = await crud.create_invite(session, owner, "co@example.com", "Cole")
            co = await crud.accept_invite_new_user(session, invite.token, "secret")

            try:
                await crud.leave_family(session, owner)
                assert False, "owner cannot leave"
            except ValueError as exc:
                assert str(exc) == "The family owner must transfer ownership before leaving"
            try:
                await crud.transfer_ownership(session, co, owner.id)
                assert False, "only the owner transfers"
            except PermissionError:
                pass

            family = await crud.transfer_ownership(session, owner, co.id)
            assert family.owner_id == co.id
            await crud.leave_family(session, owner)
            assert owner.family_id is None

    asyncio.run(run())


def test_remove_parent_and_cancel_invite():
    async def run():
        Session = await _session_factory()
        async with Session() as session:
            owner = await crud.register_parent(session, "o@example.com", "pass", "Olive", "Stone")
            invite = await crud.create_invite(session, owner, "co@example.com", "Cole")
            co = await crud.accept_invite_new_user(session, invite.token, "secret")
            await crud.remove_parent(session, owner, co.id)
            members = await crud.get_family_members(session, owner.family_id)
            assert [m.id for m in members] == [owner.id]

            pending = await crud.create_invite(session, owner, "late@example.com", "Lee")
            cancelled = await crud.cancel_invite(session, pending.id, owner)
            assert cancelled.status == InviteStatus.CANCELLED
            assert await crud.list_pending_invites(session, owner.family_id) == []

    asyncio.run(run())


def test_expire_old_invites():
    async def run():
        Session = await _session_factory()
        async with Session() as session:
            owner = await crud.register_parent(session, "o@example.com", "pass", "Olive", "Stone")
            invite = await crud.create_invite(session, owner, "co@example.com", "Cole")
            invite.expires_at = datetime.utcnow() - timedelta(minutes=1)
            await session.commit()
            assert await crud.expire_old_invites(session) == 1
            try:
                await crud.accept_invite_new_user(session, invite.token, "secret")
                assert False, "expired invites cannot be accepted"
            except ValueError as exc:
                assert str(exc) == "This invite is no longer valid"

    asyncio.run(run())
