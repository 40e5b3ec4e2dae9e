"""Notification dispatch and the user-facing read path.

Responsibilities:
- Resolve recipients for a studio event, honour their preferences and keep one record
  per recipient and event.
- Render content in each recipient's language and hand due records to push delivery.
- Serve history, read state, settings and device registration for the API layer.
"""

from __future__ import annotations

import asyncio
import enum
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.exceptions import TargetResolutionException, raise_not_found
from app.i18n import normalize_locale
from app.modules.notifications import models as notification_models
from app.modules.studio.models import StudioClass, UserRole
from app.modules.studio.repository import StudioRepository

from .common import as_utc, language_cache, logger, studio_local, unique_in_order
from .events import (
    Audience,
    GeneralEvent,
    NotificationEventBase,
    ReminderEvent,
    parse_event,
)
from .preferences import PreferenceStore
from .push import DeliveryReport, PushDeliveryClient, PushGateway
from .repository import NotificationRepository
from .tokens import TokenRegistry
from .translation import render

NotificationType = notification_models.NotificationType


def reminder_time(start_time: datetime, lead_minutes: int) -> datetime:
    """When a reminder becomes due: class start minus the lead time."""
    return as_utc(start_time) - timedelta(minutes=lead_minutes)


class RecipientOutcome(str, enum.Enum):
    CREATED = "created"
    SKIPPED = "skipped"
    DUPLICATE = "duplicate"
    FAILED = "failed"


@dataclass
class RecipientResult:
    user_id: int
    outcome: RecipientOutcome
    notification_id: Optional[int] = None
    scheduled: bool = False
    delivery: Optional[DeliveryReport] = None


@dataclass
class DispatchResult:
    """Per-event summary returned by the dispatcher."""

    notification_type: str
    targets: int = 0
    created: int = 0
    scheduled: int = 0
    skipped: int = 0
    duplicates: int = 0
    failed: int = 0
    reminders_removed: int = 0
    reminders_rescheduled: int = 0
    notification_ids: List[int] = field(default_factory=list)
    delivery: DeliveryReport = field(default_factory=DeliveryReport)

    def record(self, recipient: RecipientResult) -> None:
        if recipient.outcome is RecipientOutcome.CREATED:
            self.created += 1
            if recipient.notification_id is not None:
                self.notification_ids.append(recipient.notification_id)
            if recipient.scheduled:
                self.scheduled += 1
        elif recipient.outcome is RecipientOutcome.SKIPPED:
            self.skipped += 1
        elif recipient.outcome is RecipientOutcome.DUPLICATE:
            self.duplicates += 1
        else:
            self.failed += 1
        if recipient.delivery is not None:
            self.delivery.merge(recipient.delivery)

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


class NotificationDispatcher:
    """Turn studio events into persisted, localized and delivered notifications."""

    def __init__(self, db: Session, gateway: Optional[PushGateway] = None):
        self.db = db
        self.repository = NotificationRepository(db)
        self.studio = StudioRepository(db)
        self.preferences = PreferenceStore(db)
        self.tokens = TokenRegistry(db)
        self.push: Optional[PushDeliveryClient] = (
            PushDeliveryClient(gateway, self.tokens) if gateway is not None else None
        )

    async def notify(
        self,
        event: Union[NotificationEventBase, Mapping[str, Any]],
        target_user_ids: Optional[Iterable[int]] = None,
        *,
        resend: bool = False,
    ) -> DispatchResult:
        """Record and deliver ``event`` for every eligible recipient.

        Explicit ``target_user_ids`` replace the event's own audience. Recipients are
        processed independently: one failing recipient never stops the others.
        """
        if not isinstance(event, NotificationEventBase):
            event = parse_event(dict(event))
        notification_type = event.notification_type
        result = DispatchResult(notification_type=notification_type.value)
        explicit = list(target_user_ids) if target_user_ids is not None else None

        studio_class = self._load_class(event, required=explicit is None)

        if notification_type is NotificationType.CANCELLATION:
            result.reminders_removed = self.repository.delete_class_reminders(event.class_ref)
            if result.reminders_removed:
                logger.info(
                    "Removed %s pending reminders for cancelled class %s",
                    result.reminders_removed,
                    event.class_ref,
                )
        elif notification_type is NotificationType.CLASS_TIME_CHANGE and studio_class:
            result.reminders_rescheduled = self.reschedule_class_reminders(studio_class)

        targets = self.resolve_targets(event, studio_class, explicit)
        result.targets = len(targets)
        if not targets:
            logger.info("No recipients for %s event", notification_type.value)
            return result

        context = self._class_context(studio_class)
        context.update(event.context())
        now = notification_models.utcnow()

        outcomes = await asyncio.gather(
            *(
                self._notify_recipient(event, user_id, context, studio_class, now, resend)
                for user_id in targets
            ),
            return_exceptions=True,
        )
        for user_id, outcome in zip(targets, outcomes):
            if isinstance(outcome, BaseException):
                logger.error(
                    "Notification for user %s failed: %s",
                    user_id,
                    outcome,
                    extra={"event_type": notification_type.value},
                )
                result.record(RecipientResult(user_id, RecipientOutcome.FAILED))
            else:
                result.record(outcome)

        logger.info(
            "Dispatched %s: targets=%s created=%s skipped=%s duplicates=%s failed=%s delivered=%s",
            notification_type.value,
            result.targets,
            result.created,
            result.skipped,
            result.duplicates,
            result.failed,
            result.delivery.delivered,
            extra={"event_type": notification_type.value},
        )
        return result

    def resolve_targets(
        self,
        event: NotificationEventBase,
        studio_class: Optional[StudioClass],
        explicit: Optional[List[int]] = None,
    ) -> List[int]:
        if explicit is not None:
            wanted = unique_in_order(explicit)
            found = self.studio.existing_user_ids(wanted)
            if len(found) != len(wanted):
                logger.warning(
                    "Ignoring unknown recipients %s",
                    [user_id for user_id in wanted if user_id not in found],
                )
            return found

        if event.audience is Audience.CLASS_BOOKINGS:
            return self.studio.confirmed_booking_user_ids(studio_class.id)
        if event.audience is Audience.CLASS_INSTRUCTOR:
            return [studio_class.instructor_id] if studio_class.instructor_id else []

        user_id = getattr(event, "user_id", None)
        if user_id is None:
            raise TargetResolutionException(
                "Event names no recipient",
                details={"type": event.notification_type.value},
            )
        if not self.studio.existing_user_ids([user_id]):
            raise TargetResolutionException(
                "Recipient not found", details={"user_id": user_id}
            )
        return [user_id]

    def _load_class(
        self, event: NotificationEventBase, *, required: bool
    ) -> Optional[StudioClass]:
        class_id = event.class_ref
        if class_id is None:
            return None
        studio_class = self.studio.get_class(class_id)
        if studio_class is None and required and event.audience is not Audience.USER:
            raise TargetResolutionException(
                "Class not found", details={"class_id": class_id}
            )
        return studio_class

    @staticmethod
    def _class_context(studio_class: Optional[StudioClass]) -> Dict[str, Any]:
        if studio_class is None:
            return {}
        start = studio_local(studio_class.start_time)
        context: Dict[str, Any] = {
            "class_id": studio_class.id,
            "class_name": studio_class.name,
            "date": start.strftime("%d/%m/%Y"),
            "time": start.strftime("%H:%M"),
        }
        if studio_class.instructor is not None and studio_class.instructor.name:
            context["instructor_name"] = studio_class.instructor.name
        return context

    def _language_for(self, user_id: int) -> str:
        cached = language_cache.get(user_id)
        if cached:
            return cached
        locale = normalize_locale(self.studio.get_language(user_id))
        language_cache[user_id] = locale
        return locale

    async def _notify_recipient(
        self,
        event: NotificationEventBase,
        user_id: int,
        context: Dict[str, Any],
        studio_class: Optional[StudioClass],
        now: datetime,
        resend: bool,
    ) -> RecipientResult:
        notification_type = event.notification_type
        prefs = self.preferences.get(user_id)
        if not prefs.allows(notification_type):
            logger.debug("User %s opted out of %s", user_id, notification_type.value)
            return RecipientResult(user_id, RecipientOutcome.SKIPPED)

        key = event.event_key()
        if key and not resend and self.repository.exists_for_event(
            user_id, notification_type.value, key
        ):
            return RecipientResult(user_id, RecipientOutcome.DUPLICATE)

        metadata = event.metadata()
        scheduled_for = now
        if notification_type is NotificationType.REMINDER:
            lead = getattr(event, "minutes", None)
            if lead is None:
                lead = prefs.default_reminder_minutes
            metadata["lead_minutes"] = lead
            context = {**context, "minutes": lead}
            if studio_class is not None:
                scheduled_for = reminder_time(studio_class.start_time, lead)

        rendered = render(notification_type, context, self._language_for(user_id))
        due = as_utc(scheduled_for) <= now
        try:
            # Due records are claimed on insert; the due scan only takes unclaimed ones.
            notification = self.repository.create_notification(
                user_id=user_id,
                notification_type=notification_type.value,
                title=rendered.title,
                message=rendered.body,
                scheduled_for=scheduled_for,
                notification_metadata=metadata,
                push_sent_at=now if due and self.push is not None else None,
            )
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error("Could not store notification for user %s: %s", user_id, exc)
            return RecipientResult(user_id, RecipientOutcome.FAILED)

        if not due:
            return RecipientResult(
                user_id, RecipientOutcome.CREATED, notification.id, scheduled=True
            )
        if self.push is None:
            return RecipientResult(user_id, RecipientOutcome.CREATED, notification.id)

        report = await self.push.deliver_to_user(
            user_id, rendered.title, rendered.body, data=push_data(notification)
        )
        return RecipientResult(
            user_id, RecipientOutcome.CREATED, notification.id, delivery=report
        )

    def reschedule_class_reminders(
        self, studio_class: StudioClass, *, now: Optional[datetime] = None
    ) -> int:
        """Move not-yet-due reminders of a class to its current start time."""
        pending = self.repository.pending_class_reminders(studio_class.id, now=now)
        for notification in pending:
            lead = (notification.notification_metadata or {}).get("lead_minutes")
            if lead is None:
                lead = self.preferences.get(notification.user_id).default_reminder_minutes
            notification.scheduled_for = reminder_time(studio_class.start_time, int(lead))
        if pending:
            self.db.commit()
            logger.info(
                "Rescheduled %s reminders for class %s", len(pending), studio_class.id
            )
        return len(pending)

    async def schedule_class_reminders(
        self, class_id: int, *, minutes: Optional[int] = None
    ) -> DispatchResult:
        """Create a reminder for every confirmed booking; repeated calls add nothing."""
        return await self.notify(ReminderEvent(class_id=class_id, minutes=minutes))

    async def broadcast(
        self,
        title: str,
        message: str,
        *,
        role: Optional[UserRole] = None,
        user_ids: Optional[Iterable[int]] = None,
    ) -> DispatchResult:
        """Send one announcement to many users through paced bulk delivery."""
        event = GeneralEvent(title=title, message=message)
        result = DispatchResult(notification_type=NotificationType.GENERAL.value)
        if user_ids is not None:
            targets = self.studio.existing_user_ids(unique_in_order(user_ids))
        elif role is not None:
            targets = self.studio.user_ids_by_role(UserRole(role))
        else:
            raise TargetResolutionException("Broadcast needs a role or user ids")
        result.targets = len(targets)

        recipients: List[int] = []
        claimed_at = notification_models.utcnow() if self.push is not None else None
        for user_id in targets:
            if not self.preferences.get(user_id).allows(NotificationType.GENERAL):
                result.skipped += 1
                continue
            rendered = render(
                NotificationType.GENERAL, event.context(), self._language_for(user_id)
            )
            try:
                notification = self.repository.create_notification(
                    user_id=user_id,
                    notification_type=NotificationType.GENERAL.value,
                    title=rendered.title,
                    message=rendered.body,
                    notification_metadata=event.metadata(),
                    push_sent_at=claimed_at,
                )
            except SQLAlchemyError as exc:
                self.db.rollback()
                logger.error("Could not store broadcast for user %s: %s", user_id, exc)
                result.failed += 1
                continue
            result.created += 1
            result.notification_ids.append(notification.id)
            recipients.append(user_id)

        if self.push is not None and recipients:
            tokens = self.tokens.active_tokens_for_users(recipients)
            result.delivery = await self.push.deliver_to_many(
                tokens, title, message, data={"type": NotificationType.GENERAL.value}
            )

        logger.info(
            "Broadcast to %s recipients (%s skipped, %s failed), %s batches",
            result.created,
            result.skipped,
            result.failed,
            result.delivery.batches,
            extra={"event_type": NotificationType.GENERAL.value},
        )
        return result


def push_data(notification: notification_models.Notification) -> Dict[str, Any]:
    """Payload attached to a push so the app can deep-link to the record."""
    data: Dict[str, Any] = {
        "notification_id": notification.id,
        "type": notification.notification_type,
    }
    class_id = notification.metadata_class_id
    if class_id is not None:
        data["class_id"] = class_id
    return data


class NotificationService:
    """History, read state, settings and device registration for one session."""

    def __init__(self, db: Session):
        self.db = db
        self.repository = NotificationRepository(db)
        self.preferences = PreferenceStore(db)
        self.tokens = TokenRegistry(db)

    async def get_user_notifications(
        self,
        user_id: int,
        *,
        limit: int = 50,
        skip: int = 0,
        include_read: bool = True,
    ) -> List[notification_models.Notification]:
        return self.repository.list_visible(
            user_id, limit=limit, skip=skip, include_read=include_read
        )

    async def mark_read(
        self, notification_id: int, user_id: int
    ) -> notification_models.Notification:
        notification = self.repository.mark_notification_as_read(notification_id, user_id)
        if notification is None:
            raise_not_found("Notification", notification_id)
        return notification

    async def mark_all_read(self, user_id: int) -> int:
        return self.repository.mark_all_as_read(user_id)

    async def unread_count(self, user_id: int) -> int:
        return self.repository.unread_count(user_id)

    async def delete_class_reminders(self, class_id: int) -> int:
        removed = self.repository.delete_class_reminders(class_id)
        logger.info("Deleted %s reminders for class %s", removed, class_id)
        return removed

    async def get_settings(self, user_id: int) -> notification_models.NotificationSettings:
        return self.preferences.ensure(user_id)

    async def update_settings(
        self, user_id: int, changes: Mapping[str, Any]
    ) -> notification_models.NotificationSettings:
        return self.preferences.update(user_id, changes)

    async def register_push_token(
        self,
        user_id: int,
        token: str,
        *,
        device_type: Optional[str] = None,
        device_name: Optional[str] = None,
    ) -> notification_models.PushToken:
        return self.tokens.register(
            user_id, token, device_type=device_type, device_name=device_name
        )

    async def unregister_push_token(self, user_id: int, token: str) -> int:
        return self.tokens.deactivate(token, user_id=user_id)

    async def delivery_statistics(self) -> List[Dict[str, Any]]:
        return self.repository.delivery_statistics()


__all__ = [
    "DispatchResult",
    "NotificationDispatcher",
    "NotificationService",
    "RecipientOutcome",
    "RecipientResult",
    "push_data",
    "reminder_time",
]
