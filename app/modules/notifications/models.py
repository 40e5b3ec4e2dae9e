"""SQLAlchemy models and enums for the notifications domain."""

from __future__ import annotations

import enum
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.dialects.postgresql import JSONB

from app.core.database import Base
from app.core.db_defaults import TimestampMixin

JSONType = JSON().with_variant(JSONB(), "postgresql")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class NotificationType(str, enum.Enum):
    REMINDER = "reminder"
    CANCELLATION = "cancellation"
    UPDATE = "update"
    INSTRUCTOR_CHANGE = "instructor_change"
    CLASS_TIME_CHANGE = "class_time_change"
    WAITLIST_JOINED = "waitlist_joined"
    WAITLIST_PROMOTION = "waitlist_promotion"
    WAITLIST_MOVED_UP = "waitlist_moved_up"
    CLASS_BOOKED = "class_booked"
    CLASS_ASSIGNMENT = "class_assignment"
    STUDENT_JOINED_CLASS = "student_joined_class"
    STUDENT_CANCELLED_BOOKING = "student_cancelled_booking"
    CLASS_FULL = "class_full"
    SUBSCRIPTION_EXPIRING = "subscription_expiring"
    SUBSCRIPTION_EXPIRED = "subscription_expired"
    SUBSCRIPTION_CHANGED = "subscription_changed"
    WELCOME = "welcome"
    GENERAL = "general"


class PushSkipReason(str, enum.Enum):
    TOO_OLD = "too_old"
    OPTED_OUT = "opted_out"


class Notification(TimestampMixin, Base):
    """In-app notification history row; also the audit trail for push delivery."""

    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    notification_type = Column("type", String, nullable=False)
    title = Column(String, nullable=False)
    message = Column(Text, nullable=False)
    scheduled_for = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    is_read = Column(Boolean, nullable=False, default=False)
    read_at = Column(DateTime(timezone=True), nullable=True)
    notification_metadata = Column("metadata", JSONType, nullable=False, default=dict)
    push_sent_at = Column(DateTime(timezone=True), nullable=True)
    push_skipped_reason = Column(String, nullable=True)

    __table_args__ = (
        Index("idx_notifications_user_scheduled", "user_id", "scheduled_for"),
        Index("idx_notifications_type", "type"),
        Index("idx_notifications_push_pending", "push_sent_at", "scheduled_for"),
    )

    @property
    def metadata_class_id(self):
        return (self.notification_metadata or {}).get("class_id")


class NotificationSettings(TimestampMixin, Base):
    """Per-user notification preferences; synthesized with defaults when missing."""

    __tablename__ = "notification_settings"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    enable_notifications = Column(Boolean, nullable=False, default=True)
    enable_push_notifications = Column(Boolean, nullable=False, default=True)
    enable_email_notifications = Column(Boolean, nullable=False, default=True)
    class_full_notifications = Column(Boolean, nullable=False, default=True)
    new_enrollment_notifications = Column(Boolean, nullable=False, default=True)
    cancellation_notifications = Column(Boolean, nullable=False, default=True)
    general_reminders = Column(Boolean, nullable=False, default=True)
    default_reminder_minutes = Column(Integer, nullable=False, default=15)


class PushToken(TimestampMixin, Base):
    """A device registration with the push gateway."""

    __tablename__ = "push_tokens"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    token = Column(String, nullable=False, unique=True)
    device_type = Column(String, nullable=True)
    device_name = Column(String, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    __table_args__ = (Index("idx_push_tokens_user_active", "user_id", "is_active"),)


__all__ = [
    "JSONType",
    "Notification",
    "NotificationSettings",
    "NotificationType",
    "PushSkipReason",
    "PushToken",
    "utcnow",
]
