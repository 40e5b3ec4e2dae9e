"""Test module for notification storage, visibility and read state."""
from datetime import datetime, timedelta, timezone

import pytest

from app.modules.notifications.models import Notification, NotificationType, PushSkipReason
from app.modules.notifications.repository import NotificationRepository

NOW = datetime(2025, 5, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def add_notification(session):
    def _add(user, *, offset_minutes=0, notification_type=NotificationType.GENERAL, **extra):
        notification = Notification(
            user_id=user.id,
            notification_type=notification_type.value,
            title=extra.pop("title", "Title"),
            message=extra.pop("message", "Body"),
            scheduled_for=NOW + timedelta(minutes=offset_minutes),
            notification_metadata=extra.pop("metadata", {}),
            **extra,
        )
        session.add(notification)
        session.commit()
        session.refresh(notification)
        return notification

    return _add


def test_future_records_are_hidden_until_due(session, make_user, add_notification):
    """Test case for visibility following scheduled_for with no write in between."""
    user = make_user()
    past = add_notification(user, offset_minutes=-5)
    future = add_notification(user, offset_minutes=30)
    repository = NotificationRepository(session)

    assert [n.id for n in repository.list_visible(user.id, now=NOW)] == [past.id]
    later = NOW + timedelta(minutes=31)
    assert [n.id for n in repository.list_visible(user.id, now=later)] == [future.id, past.id]


def test_listing_is_scoped_ordered_and_paged(session, make_user, add_notification):
    """Test case for newest-first pagination of one user's history."""
    user = make_user()
    other = make_user()
    ids = [add_notification(user, offset_minutes=-m).id for m in (30, 20, 10)]
    add_notification(other, offset_minutes=-1)
    repository = NotificationRepository(session)

    assert [n.id for n in repository.list_visible(user.id, now=NOW)] == list(reversed(ids))
    assert [n.id for n in repository.list_visible(user.id, limit=1, skip=1, now=NOW)] == [ids[1]]


def test_mark_read_only_touches_visible_records(session, make_user, add_notification):
    """Test case for marking one record read."""
    user = make_user()
    due = add_notification(user, offset_minutes=-1)
    future = add_notification(user, offset_minutes=60)
    repository = NotificationRepository(session)

    marked = repository.mark_notification_as_read(due.id, user.id, now=NOW)
    assert marked.is_read is True
    assert marked.read_at is not None
    assert repository.mark_notification_as_read(future.id, user.id, now=NOW) is None
    assert repository.mark_notification_as_read(due.id, user.id + 1000, now=NOW) is None


def test_mark_all_read_and_unread_count(session, make_user, add_notification):
    """Test case for bulk read state."""
    user = make_user()
    for offset in (-3, -2, -1):
        add_notification(user, offset_minutes=offset)
    pending = add_notification(user, offset_minutes=120)
    repository = NotificationRepository(session)

    assert repository.unread_count(user.id, now=NOW) == 3
    assert repository.mark_all_as_read(user.id, now=NOW) == 3
    assert repository.unread_count(user.id, now=NOW) == 0
    assert repository.mark_all_as_read(user.id, now=NOW) == 0

    session.expire_all()
    assert session.get(Notification, pending.id).is_read is False


def test_delete_class_reminders_is_targeted(session, make_user, add_notification):
    """Test case for removing only unread reminders of one class."""
    user = make_user()
    doomed = add_notification(
        user, notification_type=NotificationType.REMINDER, offset_minutes=60, metadata={"class_id": 5}
    )
    read = add_notification(
        user,
        notification_type=NotificationType.REMINDER,
        offset_minutes=-60,
        metadata={"class_id": 5},
        is_read=True,
    )
    other_class = add_notification(
        user, notification_type=NotificationType.REMINDER, metadata={"class_id": 6}
    )
    cancellation = add_notification(
        user, notification_type=NotificationType.CANCELLATION, metadata={"class_id": 5}
    )
    repository = NotificationRepository(session)

    assert repository.delete_class_reminders(5) == 1
    assert repository.delete_class_reminders(5) == 0

    remaining = {n.id for n in session.query(Notification).all()}
    assert doomed.id not in remaining
    assert {read.id, other_class.id, cancellation.id} <= remaining


def test_exists_for_event(session, make_user, add_notification):
    """Test case for the deduplication lookup."""
    user = make_user()
    add_notification(
        user, notification_type=NotificationType.CANCELLATION, metadata={"event_key": "cancellation:1"}
    )
    repository = NotificationRepository(session)

    assert repository.exists_for_event(user.id, "cancellation", "cancellation:1")
    assert not repository.exists_for_event(user.id, "cancellation", "cancellation:2")
    assert not repository.exists_for_event(user.id + 1, "cancellation", "cancellation:1")


def test_due_undelivered_excludes_sent_and_skipped(session, make_user, add_notification):
    """Test case for the push backlog query."""
    user = make_user()
    oldest = add_notification(user, offset_minutes=-30)
    newer = add_notification(user, offset_minutes=-10)
    add_notification(user, offset_minutes=-20, push_sent_at=NOW)
    add_notification(user, offset_minutes=-15, push_skipped_reason=PushSkipReason.TOO_OLD.value)
    add_notification(user, offset_minutes=10)
    repository = NotificationRepository(session)

    due = repository.due_undelivered(limit=10, now=NOW)
    assert [n.id for n in due] == [oldest.id, newer.id]
    assert [n.id for n in repository.due_undelivered(limit=1, now=NOW)] == [oldest.id]


def test_claim_for_push_succeeds_once(session, make_user, add_notification):
    """Test case for two workers racing for the same record."""
    user = make_user()
    record = add_notification(user, offset_minutes=-5)
    skipped = add_notification(
        user, offset_minutes=-5, push_skipped_reason=PushSkipReason.TOO_OLD.value
    )
    first = NotificationRepository(session)
    second = NotificationRepository(session)

    assert first.claim_for_push(record, sent_at=NOW) is True
    assert second.claim_for_push(record, sent_at=NOW) is False
    assert first.claim_for_push(skipped, sent_at=NOW) is False
    assert first.due_undelivered(limit=10, now=NOW) == []


def test_delivery_statistics(session, make_user, add_notification):
    """Test case for per-type delivery counters."""
    user = make_user()
    add_notification(user, notification_type=NotificationType.REMINDER, offset_minutes=30)
    add_notification(user, notification_type=NotificationType.REMINDER, push_sent_at=NOW)
    add_notification(user, notification_type=NotificationType.GENERAL, offset_minutes=-1)
    add_notification(
        user,
        notification_type=NotificationType.GENERAL,
        offset_minutes=-1,
        push_skipped_reason=PushSkipReason.OPTED_OUT.value,
    )

    stats = {row["type"]: row for row in NotificationRepository(session).delivery_statistics(now=NOW)}

    assert stats["reminder"] == {
        "type": "reminder",
        "total": 2,
        "pushed": 1,
        "pending": 0,
        "scheduled": 1,
        "skipped": 0,
    }
    assert stats["general"]["pending"] == 1
    assert stats["general"]["skipped"] == 1
