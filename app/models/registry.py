"""Aggregated ORM models so metadata consumers see every table."""

from app.modules.notifications.models import (
    Notification,
    NotificationSettings,
    NotificationType,
    PushToken,
)
from app.modules.studio.models import (
    Booking,
    BookingStatus,
    StudioClass,
    SubscriptionPlan,
    SubscriptionStatus,
    User,
    UserRole,
    UserSubscription,
)

__all__ = [
    "Booking",
    "BookingStatus",
    "Notification",
    "NotificationSettings",
    "NotificationType",
    "PushToken",
    "StudioClass",
    "SubscriptionPlan",
    "SubscriptionStatus",
    "User",
    "UserRole",
    "UserSubscription",
]
