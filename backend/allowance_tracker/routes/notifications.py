import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from allowance_tracker.auth import get_current_user
from allowance_tracker.database import get_session
from allowance_tracker.models import Notification, NotificationType, User
from allowance_tracker.schemas import (
    MarkRead,
    NotificationList,
    NotificationRead,
    PreferencesRead,
    PreferencesUpdate,
    QuietHoursUpdate,
)
from allowance_tracker.services import notifications

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/notifications", tags=["notifications"])


def _read(notification: Notification) -> NotificationRead:
    return NotificationRead.model_validate(notification).model_copy(
        update={"time_ago": notifications.time_ago(notification.created_at)}
    )


@router.get("", response_model=NotificationList)
async def list_notifications(
    page: int = 1,
    page_size: int = 20,
    unread_only: bool = False,
    type: Optional[NotificationType] = None,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    page = max(page, 1)
    page_size = min(max(page_size, 1), 100)
    data = await notifications.get_notifications(
        db, current_user.id, page, page_size, unread_only, type
    )
    data["notifications"] = [_read(n) for n in data["notifications"]]
    return data


@router.get("/unread-count")
async def unread_count(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    return {"count": await notifications.get_unread_count(db, current_user.id)}


@router.get("/preferences", response_model=PreferencesRead)
async def get_preferences(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    return await notifications.get_preferences(db, current_user.id)


@router.put("/preferences", response_model=PreferencesRead)
async def update_preferences(
    data: PreferencesUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    items = [p.model_dump() for p in data.preferences]
    return await notifications.update_preferences(db, current_user.id, items)


@router.put("/preferences/quiet-hours", response_model=PreferencesRead)
async def update_quiet_hours(
    data: QuietHoursUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    if data.enabled and (data.start_time is None or data.end_time is None):
        raise HTTPException(
            status_code=400, detail="Start and end times are required for quiet hours"
        )
    return await notifications.update_quiet_hours(
        db, current_user.id, data.enabled, data.start_time, data.end_time
    )


@router.post("/read")
async def mark_many_read(
    data: MarkRead,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    updated = await notifications.mark_many_as_read(
        db, current_user.id, data.notification_ids
    )
    return {"updated": updated}


@router.delete("/read")
async def delete_read(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    deleted = await notifications.delete_read_notifications(db, current_user.id)
    return {"deleted": deleted}


@router.get("/{notification_id}", response_model=NotificationRead)
async def get_notification(
    notification_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    notification = await notifications.get_notification(db, notification_id, current_user.id)
    if notification is None:
        raise HTTPException(status_code=404, detail="Notification not found")
    return _read(notification)


@router.patch("/{notification_id}/read", response_model=NotificationRead)
async def mark_read(
    notification_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    notification = await notifications.mark_as_read(db, notification_id, current_user.id)
    if notification is None:
        raise HTTPException(status_code=404, detail="Notification not found")
    return _read(notification)


@router.delete("/{notification_id}", status_code=204)
async def delete_notification(
    notification_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    if not await notifications.delete_notification(db, notification_id, current_user.id):
        raise HTTPException(status_code=404, detail="Notification not found")
