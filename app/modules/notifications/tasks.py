"""Reusable task helpers for the notifications domain."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import TargetResolutionException
from app.modules.notifications import models as notification_models
from app.modules.studio.repository import StudioRepository

from .common import as_utc, logger, studio_local
from .events import SubscriptionExpiredEvent, SubscriptionExpiringEvent
from .preferences import PreferenceStore
from .push import PushDeliveryClient, PushGateway
from .repository import NotificationRepository
from .service import NotificationDispatcher, push_data
from .tokens import TokenRegistry


async def process_due_notifications(
    db: Session,
    gateway: PushGateway,
    *,
    now: Optional[datetime] = None,
    limit: Optional[int] = None,
) -> Dict[str, int]:
    """Push records whose scheduled time has arrived and that were never pushed."""
    now = as_utc(now) if now else notification_models.utcnow()
    stale_before = now - timedelta(days=settings.stale_notification_days)
    repository = NotificationRepository(db)
    preferences = PreferenceStore(db)
    client = PushDeliveryClient(gateway, TokenRegistry(db))
    stats = {"processed": 0, "delivered": 0, "skipped": 0, "failed": 0}

    due = repository.due_undelivered(limit=limit or settings.due_batch_limit, now=now)
    for notification in due:
        stats["processed"] += 1
        try:
            if as_utc(notification.scheduled_for) < stale_before:
                repository.mark_push_skipped(
                    notification, notification_models.PushSkipReason.TOO_OLD
                )
                stats["skipped"] += 1
                continue
            if not preferences.get(notification.user_id).allows(
                notification.notification_type
            ):
                repository.mark_push_skipped(
                    notification, notification_models.PushSkipReason.OPTED_OUT
                )
                stats["skipped"] += 1
                continue

            if not repository.claim_for_push(notification, sent_at=now):
                # Another worker already owns this record.
                stats["skipped"] += 1
                continue
            report = await client.deliver_to_user(
                notification.user_id,
                notification.title,
                notification.message,
                data=push_data(notification),
            )
        except SQLAlchemyError as exc:
            db.rollback()
            stats["failed"] += 1
            logger.error(
                "Could not process due notification %s: %s",
                notification.id,
                exc,
                extra={"notification_id": notification.id, "job": "due_notifications"},
            )
            continue

        if report.succeeded:
            stats["delivered"] += 1
        elif report.attempted:
            stats["failed"] += 1

    if stats["processed"]:
        logger.info("Due notification run: %s", stats, extra={"job": "due_notifications"})
    return stats


async def check_subscription_expiry(
    db: Session,
    gateway: Optional[PushGateway],
    *,
    now: Optional[datetime] = None,
) -> Dict[str, int]:
    """Warn members whose subscription ends soon and tell those whose just ended."""
    now = as_utc(now) if now else notification_models.utcnow()
    studio = StudioRepository(db)
    dispatcher = NotificationDispatcher(db, gateway)
    stats = {"expiring": 0, "expired": 0, "duplicates": 0}

    window_end = now + timedelta(days=settings.subscription_expiry_window_days)
    for subscription in studio.expiring_subscriptions(now, window_end):
        event = SubscriptionExpiringEvent(
            user_id=subscription.user_id,
            subscription_id=subscription.id,
            plan_name=subscription.plan.name if subscription.plan else None,
            expiry_date=studio_local(subscription.end_date).strftime("%d/%m/%Y"),
        )
        try:
            result = await dispatcher.notify(event)
        except TargetResolutionException as exc:
            logger.warning("Skipping subscription %s: %s", subscription.id, exc.message)
            continue
        stats["expiring"] += result.created
        stats["duplicates"] += result.duplicates

    for subscription in studio.recently_expired_subscriptions(now - timedelta(days=1), now):
        event = SubscriptionExpiredEvent(
            user_id=subscription.user_id,
            subscription_id=subscription.id,
            plan_name=subscription.plan.name if subscription.plan else None,
        )
        try:
            result = await dispatcher.notify(event)
        except TargetResolutionException as exc:
            logger.warning("Skipping subscription %s: %s", subscription.id, exc.message)
            continue
        stats["expired"] += result.created
        stats["duplicates"] += result.duplicates

    logger.info("Subscription expiry check: %s", stats, extra={"job": "subscription_expiry"})
    return stats


__all__ = ["check_subscription_expiry", "process_due_notifications"]
