from datetime import datetime, time
from typing import Optional
from pydantic import BaseModel

from allowance_tracker.models import (
    DevicePlatform,
    NotificationChannel,
    NotificationStatus,
    NotificationType,
)


class NotificationRead(BaseModel):
    id: int
    type: NotificationType
    title: str
    body: str
    data: Optional[dict]
    is_read: bool
    read_at: Optional[datetime]
    status: NotificationStatus
    channel: NotificationChannel
    related_entity_id: Optional[int]
    related_entity_type: Optional[str]
    created_at: datetime
    time_ago: str = ""

    class Config:
        from_attributes = True


class NotificationList(BaseModel):
    notifications: list[NotificationRead]
    unread_count: int
    total_count: int
    has_more: bool


class MarkRead(BaseModel):
    notification_ids: Optional[list[int]] = None


class PreferenceItem(BaseModel):
    notification_type: NotificationType
    type_name: str = ""
    category: str = ""
    in_app_enabled: bool = True
    push_enabled: bool = True
    email_enabled: bool = False


class PreferencesRead(BaseModel):
    preferences: list[PreferenceItem]
    quiet_hours_enabled: bool
    quiet_hours_start: Optional[time]
    quiet_hours_end: Optional[time]


class PreferencesUpdate(BaseModel):
    preferences: list[PreferenceItem]


class QuietHoursUpdate(BaseModel):
    enabled: bool
    start_time: Optional[time] = None
    end_time: Optional[time] = None


class DeviceRegister(BaseModel):
    token: str
    platform: DevicePlatform
    device_name: Optional[str] = None
    app_version: Optional[str] = None


class DeviceRead(BaseModel):
    id: int
    platform: DevicePlatform
    device_name: Optional[str]
    app_version: Optional[str]
    is_active: bool
    created_at: datetime
    last_used_at: Optional[datetime]

    class Config:
        from_attributes = True
