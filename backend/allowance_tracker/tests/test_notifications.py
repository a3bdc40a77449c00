from datetime import time
import asyncio
import pathlib
import sys

from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker
from sqlmodel import SQLModel

sys.path.append(str(pathlib.Path(__file__).resolve().parents[2]))

from allowance_tracker import crud
from allowance_tracker.models import DevicePlatform, NotificationChannel, NotificationType
from allowance_tracker.services import device_tokens, notifications


async def _session_factory():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    return async_sessionmaker(engine, expire_on_commit=False)


def test_in_quiet_hours_wraps_midnight():
    assert notifications.in_quiet_hours(time(9), time(17), time(12))
    assert not notifications.in_quiet_hours(time(9), time(17), time(18))
    assert notifications.in_quiet_hours(time(22), time(7), time(23, 30))
    assert notifications.in_quiet_hours(time(22), time(7), time(6, 59))
    assert not notifications.in_quiet_hours(time(22), time(7), time(12))


def test_type_display_name_and_category():
    assert notifications.type_display_name(NotificationType.GOAL_MILESTONE) == "Goal Milestone"
    assert notifications.type_category(NotificationType.BUDGET_WARNING) == "Budget"


def test_default_preferences():
    async def run():
        Session = await _session_factory()
        async with Session() as session:
            user = await crud.register_parent(session, "p@example.com", "pass", "Pat", "Smith")
            ntype = NotificationType.GOAL_COMPLETED
            assert await notifications.should_send(session, user.id, ntype, NotificationChannel.IN_APP)
            assert await notifications.should_send(session, user.id, ntype, NotificationChannel.PUSH)
            assert not await notifications.should_send(
                session, user.id, ntype, NotificationChannel.EMAIL
            )
            prefs = await notifications.get_preferences(session, user.id)
            assert len(prefs["preferences"]) == len(list(NotificationType))
            assert prefs["quiet_hours_enabled"] is False

    asyncio.run(run())


def test_disabled_in_app_suppresses_notification():
    async def run():
        Session = await _session_factory()
        async with Session() as session:
            user = await crud.register_parent(session, "p@example.com", "pass", "Pat", "Smith")
            await notifications.update_preferences(
                session,
                user.id,
                [{"notification_type": NotificationType.TASK_REMINDER, "in_app_enabled": False}],
            )
            muted = await notifications.send_notification(
                session, user.id, NotificationType.TASK_REMINDER, "Reminder", "Feed the cat"
            )
            assert muted is None
            sent = await notifications.send_notification(
                session, user.id, NotificationType.TASK_ASSIGNED, "New Task", "Dishes"
            )
            assert sent is not None
            assert await notifications.get_unread_count(session, user.id) == 1

    asyncio.run(run())


def test_quiet_hours_block_push_only():
    async def run():
        Session = await _session_factory()
        async with Session() as session:
            user = await crud.register_parent(session, "p@example.com", "pass", "Pat", "Smith")
            await notifications.update_preferences(
                session,
                user.id,
                [{"notification_type": NotificationType.BUDGET_WARNING}],
            )
            prefs = await notifications.update_quiet_hours(
                session, user.id, True, time(21), time(7)
            )
            assert prefs["quiet_hours_start"] == time(21)
            ntype = NotificationType.BUDGET_WARNING
            assert not await notifications.should_send(
                session, user.id, ntype, NotificationChannel.PUSH, now=time(23)
            )
            assert await notifications.should_send(
                session, user.id, ntype, NotificationChannel.PUSH, now=time(12)
            )
            assert await notifications.should_send(
                session, user.id, ntype, NotificationChannel.IN_APP, now=time(23)
            )

    asyncio.run(run())


def test_mark_read_and_paging():
    async def run():
        Session = await _session_factory()
        async with Session() as session:
            user = await crud.register_parent(session, "p@example.com", "pass", "Pat", "Smith")
            created = []
            for i in range(3):
                created.append(
                    await notifications.send_notification(
                        session, user.id, NotificationType.SYSTEM_ANNOUNCEMENT, f"News {i}", "..."
                    )
                )
            page = await notifications.get_notifications(session, user.id, page=1, page_size=2)
            assert page["total_count"] == 3
            assert page["has_more"]
            assert len(page["notifications"]) == 2

            assert await notifications.mark_many_as_read(session, user.id, [created[0].id]) == 1
            assert await notifications.get_unread_count(session, user.id) == 2
            assert await notifications.mark_many_as_read(session, user.id) == 2
            assert await notifications.delete_read_notifications(session, user.id) == 3
            assert await notifications.get_unread_count(session, user.id) == 0

    asyncio.run(run())


def test_device_registration_replaces_same_platform():
    async def run():
        Session = await _session_factory()
        async with Session() as session:
            user = await crud.register_parent(session, "p@example.com", "pass", "Pat", "Smith")
            first = await device_tokens.register_device(
                session, user.id, "tok-1", DevicePlatform.IOS, "Phone"
            )
            await device_tokens.register_device(session, user.id, "tok-2", DevicePlatform.WEB)
            second = await device_tokens.register_device(
                session, user.id, "tok-3", DevicePlatform.IOS, "New Phone"
            )
            active = {d.token for d in await device_tokens.get_active_devices(session, user.id)}
            assert active == {"tok-2", "tok-3"}
            assert first.is_active is False

            again = await device_tokens.register_device(
                session, user.id, "tok-1", DevicePlatform.IOS, "Phone"
            )
            assert again.id == first.id
            assert again.is_active
            assert second.id != first.id

            assert await device_tokens.deactivate_by_token(session, "tok-2", user.id)
            assert not await device_tokens.deactivate_device(session, 999, user.id)

    asyncio.run(run())
