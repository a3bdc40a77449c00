"""In-app notifications, per-type preferences and push fan-out.

Notifications are stored rows the client polls.  Push delivery goes to the
user's active device tokens; without a push provider configured the
attempt is only logged.
"""

import logging
from datetime import datetime, time
from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select, delete

from allowance_tracker.models import (
    DeviceToken,
    Notification,
    NotificationChannel,
    NotificationPreference,
    NotificationStatus,
    NotificationType,
    User,
)

logger = logging.getLogger(__name__)

TYPE_CATEGORIES = {
    "Balance & Transactions": [
        NotificationType.BALANCE_ALERT,
        NotificationType.LOW_BALANCE_WARNING,
        NotificationType.TRANSACTION_CREATED,
    ],
    "Allowance": [
        NotificationType.ALLOWANCE_DEPOSIT,
        NotificationType.ALLOWANCE_PAUSED,
        NotificationType.ALLOWANCE_RESUMED,
    ],
    "Goals & Savings": [
        NotificationType.GOAL_PROGRESS,
        NotificationType.GOAL_MILESTONE,
        NotificationType.GOAL_COMPLETED,
        NotificationType.PARENT_MATCH_ADDED,
    ],
    "Tasks": [
        NotificationType.TASK_ASSIGNED,
        NotificationType.TASK_REMINDER,
        NotificationType.TASK_COMPLETED,
        NotificationType.APPROVAL_REQUIRED,
        NotificationType.TASK_APPROVED,
        NotificationType.TASK_REJECTED,
        NotificationType.TASK_COMPLETION_PENDING_APPROVAL,
    ],
    "Budget": [
        NotificationType.BUDGET_WARNING,
        NotificationType.BUDGET_EXCEEDED,
    ],
    "Achievements": [
        NotificationType.ACHIEVEMENT_UNLOCKED,
        NotificationType.STREAK_UPDATE,
    ],
    "Family": [
        NotificationType.FAMILY_INVITE,
        NotificationType.CHILD_ADDED,
        NotificationType.GIFT_RECEIVED,
        NotificationType.FAMILY_UPDATE,
    ],
    "System": [
        NotificationType.WEEKLY_SUMMARY,
        NotificationType.MONTHLY_SUMMARY,
        NotificationType.SYSTEM_ANNOUNCEMENT,
    ],
}


def type_category(ntype: NotificationType) -> str:
    for category, types in TYPE_CATEGORIES.items():
        if ntype in types:
            return category
    return "Other"


def type_display_name(ntype: NotificationType) -> str:
    """``GoalMilestone`` -> ``Goal Milestone``."""
    words = []
    for ch in ntype.value:
        if ch.isupper() and words:
            words.append(" ")
        words.append(ch)
    return "".join(words)


def time_ago(created_at: datetime, now: datetime | None = None) -> str:
    seconds = ((now or datetime.utcnow()) - created_at).total_seconds()
    if seconds < 60:
        return "just now"
    minutes = seconds / 60
    if minutes < 60:
        return f"{int(minutes)}m ago"
    hours = minutes / 60
    if hours < 24:
        return f"{int(hours)}h ago"
    days = hours / 24
    if days < 7:
        return f"{int(days)}d ago"
    if days < 30:
        return f"{int(days / 7)}w ago"
    if days < 365:
        return f"{int(days / 30)}mo ago"
    return f"{int(days / 365)}y ago"


def in_quiet_hours(start: time, end: time, now: time) -> bool:
    """Return ``True`` when ``now`` falls inside the window.

    A window whose start is after its end wraps past midnight.
    """
    if start < end:
        return start <= now <= end
    return now >= start or now <= end


async def create_notification(
    db: AsyncSession,
    user_id: int,
    ntype: NotificationType,
    title: str,
    body: str,
    data: dict | None = None,
    related_entity_id: int | None = None,
    related_entity_type: str | None = None,
    channel: NotificationChannel = NotificationChannel.ALL,
) -> Notification:
    notification = Notification(
        user_id=user_id,
        type=ntype,
        title=title,
        body=body,
        data=data,
        related_entity_id=related_entity_id,
        related_entity_type=related_entity_type,
        channel=channel,
        status=NotificationStatus.PENDING,
    )
    db.add(notification)
    await db.commit()
    await db.refresh(notification)
    return notification


async def get_preference(
    db: AsyncSession, user_id: int, ntype: NotificationType
) -> NotificationPreference | None:
    result = await db.execute(
        select(NotificationPreference).where(
            NotificationPreference.user_id == user_id,
            NotificationPreference.notification_type == ntype,
        )
    )
    return result.scalar_one_or_none()


async def should_send(
    db: AsyncSession,
    user_id: int,
    ntype: NotificationType,
    channel: NotificationChannel,
    now: time | None = None,
) -> bool:
    pref = await get_preference(db, user_id, ntype)
    if pref is None:
        # no stored preference means defaults: in-app and push on, email off
        return channel != NotificationChannel.EMAIL
    if (
        channel == NotificationChannel.PUSH
        and pref.quiet_hours_enabled
        and pref.quiet_hours_start is not None
        and pref.quiet_hours_end is not None
        and in_quiet_hours(
            pref.quiet_hours_start,
            pref.quiet_hours_end,
            now or datetime.utcnow().time(),
        )
    ):
        return False
    if channel == NotificationChannel.IN_APP:
        return pref.in_app_enabled
    if channel == NotificationChannel.PUSH:
        return pref.push_enabled
    if channel == NotificationChannel.EMAIL:
        return pref.email_enabled
    return pref.in_app_enabled or pref.push_enabled or pref.email_enabled


async def _push(
    db: AsyncSession, user_id: int, title: str, notification: Notification | None
) -> int:
    result = await db.execute(
        select(DeviceToken).where(
            DeviceToken.user_id == user_id, DeviceToken.is_active == True  # noqa: E712
        )
    )
    devices = result.scalars().all()
    if not devices:
        return 0
    logger.info(
        "Push '%s' queued for user %s on %d device(s)", title, user_id, len(devices)
    )
    if notification is not None:
        notification.status = NotificationStatus.SENT
        notification.sent_at = datetime.utcnow()
        await db.commit()
    return len(devices)


async def send_notification(
    db: AsyncSession,
    user_id: int,
    ntype: NotificationType,
    title: str,
    body: str,
    data: dict | None = None,
    related_entity_id: int | None = None,
    related_entity_type: str | None = None,
) -> Notification | None:
    """Store an in-app notification and fan it out to devices.

    Preferences decide each channel independently.  Push failures are
    logged and never propagate.
    """
    notification = None
    if await should_send(db, user_id, ntype, NotificationChannel.IN_APP):
        notification = await create_notification(
            db,
            user_id,
            ntype,
            title,
            body,
            data=data,
            related_entity_id=related_entity_id,
            related_entity_type=related_entity_type,
        )
        logger.debug("Created notification %s for user %s", notification.id, user_id)
    if await should_send(db, user_id, ntype, NotificationChannel.PUSH):
        try:
            await _push(db, user_id, title, notification)
        except Exception:
            logger.warning("Failed to push notification to user %s", user_id, exc_info=True)
    return notification


async def send_bulk_notification(
    db: AsyncSession,
    user_ids: list[int],
    ntype: NotificationType,
    title: str,
    body: str,
) -> None:
    for user_id in user_ids:
        await send_notification(db, user_id, ntype, title, body)


async def send_family_notification(
    db: AsyncSession,
    family_id: int,
    ntype: NotificationType,
    title: str,
    body: str,
    exclude_user_id: int | None = None,
) -> None:
    result = await db.execute(select(User.id).where(User.family_id == family_id))
    user_ids = [uid for uid in result.scalars().all() if uid != exclude_user_id]
    await send_bulk_notification(db, user_ids, ntype, title, body)


async def get_notifications(
    db: AsyncSession,
    user_id: int,
    page: int = 1,
    page_size: int = 20,
    unread_only: bool = False,
    ntype: NotificationType | None = None,
) -> dict:
    query = select(Notification).where(Notification.user_id == user_id)
    if unread_only:
        query = query.where(Notification.is_read == False)  # noqa: E712
    if ntype is not None:
        query = query.where(Notification.type == ntype)
    total = (
        await db.execute(select(func.count()).select_from(query.subquery()))
    ).scalar()
    unread = await get_unread_count(db, user_id)
    result = await db.execute(
        query.order_by(Notification.created_at.desc(), Notification.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    return {
        "notifications": result.scalars().all(),
        "unread_count": unread,
        "total_count": total,
        "has_more": page * page_size < total,
    }


async def get_notification(
    db: AsyncSession, notification_id: int, user_id: int
) -> Notification | None:
    result = await db.execute(
        select(Notification).where(
            Notification.id == notification_id, Notification.user_id == user_id
        )
    )
    return result.scalar_one_or_none()


async def get_unread_count(db: AsyncSession, user_id: int) -> int:
    result = await db.execute(
        select(func.count())
        .select_from(Notification)
        .where(Notification.user_id == user_id, Notification.is_read == False)  # noqa: E712
    )
    return result.scalar()


async def mark_as_read(
    db: AsyncSession, notification_id: int, user_id: int
) -> Notification | None:
    notification = await get_notification(db, notification_id, user_id)
    if notification is None:
        return None
    notification.is_read = True
    notification.read_at = datetime.utcnow()
    await db.commit()
    await db.refresh(notification)
    return notification


async def mark_many_as_read(
    db: AsyncSession, user_id: int, notification_ids: list[int] | None = None
) -> int:
    query = select(Notification).where(
        Notification.user_id == user_id, Notification.is_read == False  # noqa: E712
    )
    if notification_ids:
        query = query.where(Notification.id.in_(notification_ids))
    result = await db.execute(query)
    notifications = result.scalars().all()
    now = datetime.utcnow()
    for notification in notifications:
        notification.is_read = True
        notification.read_at = now
    await db.commit()
    return len(notifications)


async def delete_notification(
    db: AsyncSession, notification_id: int, user_id: int
) -> bool:
    notification = await get_notification(db, notification_id, user_id)
    if notification is None:
        return False
    await db.delete(notification)
    await db.commit()
    return True


async def delete_read_notifications(db: AsyncSession, user_id: int) -> int:
    result = await db.execute(
        delete(Notification).where(
            Notification.user_id == user_id, Notification.is_read == True  # noqa: E712
        )
    )
    await db.commit()
    return result.rowcount


async def get_preferences(db: AsyncSession, user_id: int) -> dict:
    result = await db.execute(
        select(NotificationPreference).where(NotificationPreference.user_id == user_id)
    )
    stored = {p.notification_type: p for p in result.scalars().all()}
    any_pref = next(iter(stored.values()), None)
    preferences = []
    for ntype in NotificationType:
        pref = stored.get(ntype)
        preferences.append(
            {
                "notification_type": ntype,
                "type_name": type_display_name(ntype),
                "category": type_category(ntype),
                "in_app_enabled": pref.in_app_enabled if pref else True,
                "push_enabled": pref.push_enabled if pref else True,
                "email_enabled": pref.email_enabled if pref else False,
            }
        )
    return {
        "preferences": preferences,
        "quiet_hours_enabled": any_pref.quiet_hours_enabled if any_pref else False,
        "quiet_hours_start": any_pref.quiet_hours_start if any_pref else None,
        "quiet_hours_end": any_pref.quiet_hours_end if any_pref else None,
    }


async def update_preferences(db: AsyncSession, user_id: int, items: list[dict]) -> dict:
    for item in items:
        ntype = item["notification_type"]
        pref = await get_preference(db, user_id, ntype)
        if pref is None:
            pref = NotificationPreference(user_id=user_id, notification_type=ntype)
            db.add(pref)
        pref.in_app_enabled = item.get("in_app_enabled", True)
        pref.push_enabled = item.get("push_enabled", True)
        pref.email_enabled = item.get("email_enabled", False)
        pref.updated_at = datetime.utcnow()
    await db.commit()
    return await get_preferences(db, user_id)


async def update_quiet_hours(
    db: AsyncSession,
    user_id: int,
    enabled: bool,
    start: time | None,
    end: time | None,
) -> dict:
    result = await db.execute(
        select(NotificationPreference).where(NotificationPreference.user_id == user_id)
    )
    prefs = result.scalars().all()
    if not prefs:
        # quiet hours live on preference rows, so anchor them on one
        prefs = [
            NotificationPreference(
                user_id=user_id,
                notification_type=NotificationType.SYSTEM_ANNOUNCEMENT,
            )
        ]
        db.add(prefs[0])
    for pref in prefs:
        pref.quiet_hours_enabled = enabled
        pref.quiet_hours_start = start
        pref.quiet_hours_end = end
        pref.updated_at = datetime.utcnow()
    await db.commit()
    return await get_preferences(db, user_id)
