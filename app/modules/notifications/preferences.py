"""Per-user notification preferences with a fail-open read path.

Every lookup that finds no row, or fails to read one, resolves to ``default_preferences``.
Sends are never blocked by a missing or unreadable settings row.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, replace
from typing import Any, Dict, Mapping, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings

from .common import logger
from .models import NotificationSettings, NotificationType

# Category toggle consulted for each type; types absent here only honour the global switches.
CATEGORY_TOGGLES: Dict[NotificationType, str] = {
    NotificationType.CLASS_FULL: "class_full_notifications",
    NotificationType.STUDENT_JOINED_CLASS: "new_enrollment_notifications",
    NotificationType.CANCELLATION: "cancellation_notifications",
    NotificationType.STUDENT_CANCELLED_BOOKING: "cancellation_notifications",
    NotificationType.REMINDER: "general_reminders",
}


@dataclass(frozen=True)
class Preferences:
    """Immutable snapshot of a user's notification settings."""

    user_id: int
    enable_notifications: bool = True
    enable_push_notifications: bool = True
    enable_email_notifications: bool = True
    class_full_notifications: bool = True
    new_enrollment_notifications: bool = True
    cancellation_notifications: bool = True
    general_reminders: bool = True
    default_reminder_minutes: int = 15
    persisted: bool = False

    def allows(self, notification_type: NotificationType) -> bool:
        """True when a notification of this type may be recorded and pushed."""
        if not (self.enable_notifications and self.enable_push_notifications):
            return False
        toggle = CATEGORY_TOGGLES.get(NotificationType(notification_type))
        if toggle is None:
            return True
        return bool(getattr(self, toggle))

    def as_columns(self) -> Dict[str, Any]:
        values = asdict(self)
        values.pop("persisted")
        return values

    @classmethod
    def from_model(cls, row: NotificationSettings) -> "Preferences":
        defaults = default_preferences(row.user_id)
        values = {}
        for field_name in PREFERENCE_FIELDS:
            value = getattr(row, field_name, None)
            values[field_name] = getattr(defaults, field_name) if value is None else value
        return replace(defaults, persisted=True, **values)


PREFERENCE_FIELDS = (
    "enable_notifications",
    "enable_push_notifications",
    "enable_email_notifications",
    "class_full_notifications",
    "new_enrollment_notifications",
    "cancellation_notifications",
    "general_reminders",
    "default_reminder_minutes",
)


def default_preferences(user_id: int) -> Preferences:
    """The single source of default settings: everything enabled."""
    return Preferences(
        user_id=user_id,
        default_reminder_minutes=settings.default_reminder_minutes,
    )


class PreferenceStore:
    """Read and update ``notification_settings`` rows."""

    def __init__(self, db: Session):
        self.db = db

    def _row(self, user_id: int) -> Optional[NotificationSettings]:
        return (
            self.db.query(NotificationSettings)
            .filter(NotificationSettings.user_id == user_id)
            .first()
        )

    def get(self, user_id: int) -> Preferences:
        """Return stored preferences, or the defaults when missing or unreadable."""
        try:
            row = self._row(user_id)
        except SQLAlchemyError as exc:
            logger.warning(
                "Preference lookup failed for user %s; using defaults: %s", user_id, exc
            )
            self.db.rollback()
            return default_preferences(user_id)
        if row is None:
            return default_preferences(user_id)
        return Preferences.from_model(row)

    def ensure(self, user_id: int) -> NotificationSettings:
        """Return the settings row, creating it from the defaults on first access."""
        row = self._row(user_id)
        if row:
            return row
        row = NotificationSettings(**default_preferences(user_id).as_columns())
        self.db.add(row)
        self.db.commit()
        self.db.refresh(row)
        return row

    def update(self, user_id: int, changes: Mapping[str, Any]) -> NotificationSettings:
        row = self.ensure(user_id)
        for field_name, value in changes.items():
            if field_name in PREFERENCE_FIELDS and value is not None:
                setattr(row, field_name, value)
        self.db.commit()
        self.db.refresh(row)
        return row


__all__ = [
    "CATEGORY_TOGGLES",
    "PREFERENCE_FIELDS",
    "PreferenceStore",
    "Preferences",
    "default_preferences",
]
