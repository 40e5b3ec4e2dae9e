"""Studio domain tables consumed by the notification pipeline."""

from .models import (
    Booking,
    BookingStatus,
    StudioClass,
    SubscriptionPlan,
    SubscriptionStatus,
    User,
    UserRole,
    UserSubscription,
)
from .repository import StudioRepository

__all__ = [
    "Booking",
    "BookingStatus",
    "StudioClass",
    "StudioRepository",
    "SubscriptionPlan",
    "SubscriptionStatus",
    "User",
    "UserRole",
    "UserSubscription",
]
