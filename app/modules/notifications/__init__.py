"""Notifications domain package."""

from .events import NotificationEvent, parse_event
from .models import (
    Notification,
    NotificationSettings,
    NotificationType,
    PushSkipReason,
    PushToken,
)
from .preferences import PreferenceStore, Preferences, default_preferences
from .push import (
    DeliveryReport,
    PushDeliveryClient,
    PushGateway,
    init_push_gateway,
)
from .service import DispatchResult, NotificationDispatcher, NotificationService
from .tokens import TokenRegistry
from .translation import render

__all__ = [
    "DeliveryReport",
    "DispatchResult",
    "Notification",
    "NotificationDispatcher",
    "NotificationEvent",
    "NotificationService",
    "NotificationSettings",
    "NotificationType",
    "PreferenceStore",
    "Preferences",
    "PushDeliveryClient",
    "PushGateway",
    "PushSkipReason",
    "PushToken",
    "TokenRegistry",
    "default_preferences",
    "init_push_gateway",
    "parse_event",
    "render",
]
