"""Data-access helpers for notifications domain."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import case, func
from sqlalchemy.orm import Query, Session

from app.modules.notifications import models as notification_models

from .common import as_utc


def _now(now: Optional[datetime]) -> datetime:
    return as_utc(now) if now else notification_models.utcnow()


class NotificationRepository:
    """Encapsulate notification-specific database operations."""

    def __init__(self, db: Session):
        self.db = db

    # ----------------------------------------------------------------- queries
    def visible_query(
        self,
        user_id: int,
        *,
        include_read: bool = True,
        now: Optional[datetime] = None,
    ) -> Query:
        """Records of ``user_id`` that are due; future reminders stay hidden."""
        query = self.db.query(notification_models.Notification).filter(
            notification_models.Notification.user_id == user_id,
            notification_models.Notification.scheduled_for <= _now(now),
        )
        if not include_read:
            query = query.filter(notification_models.Notification.is_read.is_(False))
        return query

    def list_visible(
        self,
        user_id: int,
        *,
        limit: int = 50,
        skip: int = 0,
        include_read: bool = True,
        now: Optional[datetime] = None,
    ) -> List[notification_models.Notification]:
        return (
            self.visible_query(user_id, include_read=include_read, now=now)
            .order_by(
                notification_models.Notification.scheduled_for.desc(),
                notification_models.Notification.id.desc(),
            )
            .offset(skip)
            .limit(limit)
            .all()
        )

    def get_notification_for_user(
        self, notification_id: int, user_id: int, *, now: Optional[datetime] = None
    ) -> Optional[notification_models.Notification]:
        return (
            self.visible_query(user_id, now=now)
            .filter(notification_models.Notification.id == notification_id)
            .first()
        )

    def exists_for_event(
        self, user_id: int, notification_type: str, event_key: str
    ) -> bool:
        row = (
            self.db.query(notification_models.Notification.id)
            .filter(
                notification_models.Notification.user_id == user_id,
                notification_models.Notification.notification_type == notification_type,
                notification_models.Notification.notification_metadata["event_key"].as_string()
                == event_key,
            )
            .first()
        )
        return row is not None

    def pending_class_reminders(
        self, class_id: int, *, now: Optional[datetime] = None
    ) -> List[notification_models.Notification]:
        return (
            self._class_reminders(class_id)
            .filter(notification_models.Notification.scheduled_for > _now(now))
            .order_by(notification_models.Notification.id)
            .all()
        )

    def due_undelivered(
        self, *, limit: int, now: Optional[datetime] = None
    ) -> List[notification_models.Notification]:
        return (
            self.db.query(notification_models.Notification)
            .filter(
                notification_models.Notification.scheduled_for <= _now(now),
                notification_models.Notification.push_sent_at.is_(None),
                notification_models.Notification.push_skipped_reason.is_(None),
            )
            .order_by(
                notification_models.Notification.scheduled_for,
                notification_models.Notification.id,
            )
            .limit(limit)
            .all()
        )

    def _class_reminders(self, class_id: int) -> Query:
        return self.db.query(notification_models.Notification).filter(
            notification_models.Notification.notification_type
            == notification_models.NotificationType.REMINDER.value,
            notification_models.Notification.is_read.is_(False),
            notification_models.Notification.notification_metadata["class_id"].as_integer()
            == class_id,
        )

    # --------------------------------------------------------------- mutations
    def create_notification(self, **kwargs) -> notification_models.Notification:
        notification = notification_models.Notification(**kwargs)
        self.db.add(notification)
        self.db.commit()
        self.db.refresh(notification)
        return notification

    def mark_notification_as_read(
        self, notification_id: int, user_id: int, *, now: Optional[datetime] = None
    ) -> Optional[notification_models.Notification]:
        notification = self.get_notification_for_user(notification_id, user_id, now=now)
        if notification and not notification.is_read:
            notification.is_read = True
            notification.read_at = _now(now)
            self.db.commit()
            self.db.refresh(notification)
        return notification

    def mark_all_as_read(self, user_id: int, *, now: Optional[datetime] = None) -> int:
        current = _now(now)
        updated = (
            self.visible_query(user_id, include_read=False, now=current).update(
                {"is_read": True, "read_at": current},
                synchronize_session=False,
            )
        )
        self.db.commit()
        return updated or 0

    def delete_class_reminders(self, class_id: int) -> int:
        deleted = self._class_reminders(class_id).delete(synchronize_session=False)
        self.db.commit()
        return deleted or 0

    def claim_for_push(
        self,
        notification: notification_models.Notification,
        *,
        sent_at: Optional[datetime] = None,
    ) -> bool:
        """Stamp ``push_sent_at`` unless the record was already claimed or skipped."""
        model = notification_models.Notification
        claimed = (
            self.db.query(model)
            .filter(
                model.id == notification.id,
                model.push_sent_at.is_(None),
                model.push_skipped_reason.is_(None),
            )
            .update(
                {"push_sent_at": sent_at or notification_models.utcnow()},
                synchronize_session=False,
            )
        )
        self.db.commit()
        return bool(claimed)

    def mark_push_skipped(
        self,
        notification: notification_models.Notification,
        reason: notification_models.PushSkipReason,
    ) -> None:
        notification.push_skipped_reason = reason.value
        self.db.commit()

    # -------------------------------------------------------------- analytics
    def unread_count(self, user_id: int, *, now: Optional[datetime] = None) -> int:
        return self.visible_query(user_id, include_read=False, now=now).count()

    def delivery_statistics(self, *, now: Optional[datetime] = None) -> List[Dict[str, Any]]:
        current = _now(now)
        model = notification_models.Notification
        due = model.scheduled_for <= current
        rows = (
            self.db.query(
                model.notification_type,
                func.count(model.id),
                func.sum(case((model.push_sent_at.isnot(None), 1), else_=0)),
                func.sum(
                    case(
                        (
                            due
                            & model.push_sent_at.is_(None)
                            & model.push_skipped_reason.is_(None),
                            1,
                        ),
                        else_=0,
                    )
                ),
                func.sum(case((model.scheduled_for > current, 1), else_=0)),
                func.sum(case((model.push_skipped_reason.isnot(None), 1), else_=0)),
            )
            .group_by(model.notification_type)
            .order_by(model.notification_type)
            .all()
        )
        return [
            {
                "type": row[0],
                "total": int(row[1] or 0),
                "pushed": int(row[2] or 0),
                "pending": int(row[3] or 0),
                "scheduled": int(row[4] or 0),
                "skipped": int(row[5] or 0),
            }
            for row in rows
        ]


__all__ = ["NotificationRepository"]
