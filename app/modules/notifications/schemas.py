"""Pydantic schemas dedicated to the notifications domain."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator

from app.modules.studio.models import UserRole

from .events import NotificationEvent


class NotificationOut(BaseModel):
    id: int
    user_id: int
    type: str = Field(validation_alias=AliasChoices("notification_type", "type"))
    title: str
    message: str
    scheduled_for: datetime
    is_read: bool
    read_at: Optional[datetime] = None
    metadata: Dict[str, Any] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("notification_metadata", "metadata"),
    )
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


class UnreadCountOut(BaseModel):
    unread_count: int


class MarkAllReadOut(BaseModel):
    updated: int


class NotificationSettingsUpdate(BaseModel):
    enable_notifications: Optional[bool] = None
    enable_push_notifications: Optional[bool] = None
    enable_email_notifications: Optional[bool] = None
    class_full_notifications: Optional[bool] = None
    new_enrollment_notifications: Optional[bool] = None
    cancellation_notifications: Optional[bool] = None
    general_reminders: Optional[bool] = None
    default_reminder_minutes: Optional[int] = Field(default=None, ge=0, le=7 * 24 * 60)


class NotificationSettingsOut(BaseModel):
    user_id: int
    enable_notifications: bool
    enable_push_notifications: bool
    enable_email_notifications: bool
    class_full_notifications: bool
    new_enrollment_notifications: bool
    cancellation_notifications: bool
    general_reminders: bool
    default_reminder_minutes: int
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class PushTokenRegister(BaseModel):
    token: str = Field(min_length=1, max_length=512)
    device_type: Optional[str] = Field(default=None, max_length=32)
    device_name: Optional[str] = Field(default=None, max_length=128)


class PushTokenUnregister(BaseModel):
    token: str = Field(min_length=1, max_length=512)


class PushTokenOut(BaseModel):
    id: int
    user_id: int
    token: str
    device_type: Optional[str] = None
    device_name: Optional[str] = None
    is_active: bool

    model_config = ConfigDict(from_attributes=True)


class UnregisterOut(BaseModel):
    deactivated: int


class DispatchRequest(BaseModel):
    event: NotificationEvent
    target_user_ids: Optional[List[int]] = None
    resend: bool = False


class BroadcastRequest(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    message: str = Field(min_length=1, max_length=2000)
    role: Optional[UserRole] = None
    user_ids: Optional[List[int]] = None

    @model_validator(mode="after")
    def _require_audience(self) -> "BroadcastRequest":
        if self.role is None and not self.user_ids:
            raise ValueError("Provide a role or a list of user ids")
        return self


class ScheduleRemindersRequest(BaseModel):
    minutes: Optional[int] = Field(default=None, ge=0, le=7 * 24 * 60)


class NotificationTestRequest(BaseModel):
    title: Optional[str] = Field(default=None, max_length=200)
    message: Optional[str] = Field(default=None, max_length=2000)


class DeliveryReportOut(BaseModel):
    delivered: int
    skipped: int
    permanent_failures: int
    transient_failures: int
    batches: int


class DispatchResultOut(BaseModel):
    notification_type: str
    targets: int
    created: int
    scheduled: int
    skipped: int
    duplicates: int
    failed: int
    reminders_removed: int
    reminders_rescheduled: int
    notification_ids: List[int]
    delivery: DeliveryReportOut


class RemindersDeletedOut(BaseModel):
    class_id: int
    deleted: int


class TypeStatisticsOut(BaseModel):
    type: str
    total: int
    pushed: int
    pending: int
    scheduled: int
    skipped: int


__all__ = [
    "BroadcastRequest",
    "DeliveryReportOut",
    "DispatchRequest",
    "DispatchResultOut",
    "MarkAllReadOut",
    "NotificationOut",
    "NotificationSettingsOut",
    "NotificationSettingsUpdate",
    "PushTokenOut",
    "PushTokenRegister",
    "PushTokenUnregister",
    "RemindersDeletedOut",
    "ScheduleRemindersRequest",
    "NotificationTestRequest",
    "TypeStatisticsOut",
    "UnreadCountOut",
    "UnregisterOut",
]
