"""Push device registrations."""

import logging
from datetime import datetime, timedelta
from sqlalchemy import func, or_, and_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select, delete

from allowance_tracker.models import DeviceToken, DevicePlatform

logger = logging.getLogger(__name__)

MAX_DEVICES_PER_USER = 5


async def register_device(
    db: AsyncSession,
    user_id: int,
    token: str,
    platform: DevicePlatform,
    device_name: str | None = None,
    app_version: str | None = None,
) -> DeviceToken:
    now = datetime.utcnow()
    result = await db.execute(
        select(DeviceToken).where(
            DeviceToken.token == token, DeviceToken.user_id == user_id
        )
    )
    existing = result.scalar_one_or_none()
    if existing:
        existing.device_name = device_name
        existing.app_version = app_version
        existing.is_active = True
        existing.deactivated_at = None
        existing.last_used_at = now
        await db.commit()
        await db.refresh(existing)
        return existing

    # one active registration per platform
    result = await db.execute(
        select(DeviceToken).where(
            DeviceToken.user_id == user_id,
            DeviceToken.platform == platform,
            DeviceToken.is_active == True,  # noqa: E712
        )
    )
    for old in result.scalars().all():
        old.is_active = False
        old.deactivated_at = now
    await db.flush()

    result = await db.execute(
        select(DeviceToken)
        .where(DeviceToken.user_id == user_id, DeviceToken.is_active == True)  # noqa: E712
        .order_by(func.coalesce(DeviceToken.last_used_at, DeviceToken.created_at))
    )
    active = result.scalars().all()
    if len(active) >= MAX_DEVICES_PER_USER:
        oldest = active[0]
        oldest.is_active = False
        oldest.deactivated_at = now
        logger.info("Deactivated device %s for user %s (device limit)", oldest.id, user_id)

    device = DeviceToken(
        user_id=user_id,
        token=token,
        platform=platform,
        device_name=device_name,
        app_version=app_version,
        is_active=True,
        last_used_at=now,
    )
    db.add(device)
    await db.commit()
    await db.refresh(device)
    return device


async def get_user_devices(db: AsyncSession, user_id: int) -> list[DeviceToken]:
    result = await db.execute(
        select(DeviceToken)
        .where(DeviceToken.user_id == user_id)
        .order_by(func.coalesce(DeviceToken.last_used_at, DeviceToken.created_at).desc())
    )
    return result.scalars().all()


async def get_active_devices(db: AsyncSession, user_id: int) -> list[DeviceToken]:
    result = await db.execute(
        select(DeviceToken).where(
            DeviceToken.user_id == user_id, DeviceToken.is_active == True  # noqa: E712
        )
    )
    return result.scalars().all()


async def deactivate_device(db: AsyncSession, device_id: int, user_id: int) -> bool:
    result = await db.execute(
        select(DeviceToken).where(
            DeviceToken.id == device_id, DeviceToken.user_id == user_id
        )
    )
    device = result.scalar_one_or_none()
    if device is None:
        return False
    device.is_active = False
    device.deactivated_at = datetime.utcnow()
    await db.commit()
    return True


async def deactivate_by_token(
    db: AsyncSession, token: str, user_id: int | None = None
) -> bool:
    query = select(DeviceToken).where(DeviceToken.token == token)
    if user_id is not None:
        query = query.where(DeviceToken.user_id == user_id)
    device = (await db.execute(query)).scalars().first()
    if device is None:
        return False
    device.is_active = False
    device.deactivated_at = datetime.utcnow()
    await db.commit()
    return True


async def update_last_used(db: AsyncSession, token: str) -> None:
    result = await db.execute(select(DeviceToken).where(DeviceToken.token == token))
    device = result.scalars().first()
    if device is not None:
        device.last_used_at = datetime.utcnow()
        await db.commit()


async def cleanup_stale_tokens(db: AsyncSession, days_inactive: int = 90) -> int:
    cutoff = datetime.utcnow() - timedelta(days=days_inactive)
    result = await db.execute(
        delete(DeviceToken).where(
            or_(
                and_(
                    DeviceToken.is_active == False,  # noqa: E712
                    DeviceToken.deactivated_at < cutoff,
                ),
                and_(
                    DeviceToken.is_active == True,  # noqa: E712
                    func.coalesce(DeviceToken.last_used_at, DeviceToken.created_at)
                    < cutoff,
                ),
            )
        )
    )
    await db.commit()
    if result.rowcount:
        logger.info("Removed %d stale device tokens", result.rowcount)
    return result.rowcount
