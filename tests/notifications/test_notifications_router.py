"""Test module for the notifications HTTP API."""
from datetime import datetime, timedelta, timezone

import pytest

from app.modules.notifications.models import Notification, NotificationType, PushToken
from app.modules.studio.models import UserRole
from app.oauth2 import create_access_token


@pytest.fixture
def stored_notification(session):
    def _store(user, *, offset_minutes=-1, notification_type=NotificationType.GENERAL, **extra):
        notification = Notification(
            user_id=user.id,
            notification_type=notification_type.value,
            title=extra.pop("title", "Studio news"),
            message=extra.pop("message", "Open on Sunday"),
            scheduled_for=datetime.now(timezone.utc) + timedelta(minutes=offset_minutes),
            notification_metadata=extra.pop("metadata", {"class_id": 1}),
            **extra,
        )
        session.add(notification)
        session.commit()
        session.refresh(notification)
        return notification

    return _store


# ============== authentication ==============


def test_history_requires_authentication(client):
    """Test case for a missing bearer token."""
    response = client.get("/notifications/")
    assert response.status_code == 401
    body = response.json()
    assert body["success"] is False
    assert body["error"]["code"] == "authentication_failed"


def test_invalid_token_is_rejected(client):
    """Test case for a forged bearer token."""
    response = client.get("/notifications/", headers={"Authorization": "Bearer nonsense"})
    assert response.status_code == 401
    assert response.json()["error"]["code"] == "invalid_token"


def test_staff_endpoints_reject_clients(client, test_user_token_headers):
    """Test case for staff-only routes."""
    response = client.get("/notifications/stats", headers=test_user_token_headers)
    assert response.status_code == 403
    assert response.json()["error"]["code"] == "permission_denied"


# ============== history and read state ==============


def test_history_hides_future_records(client, test_user, test_user_token_headers, stored_notification):
    """Test case for the visible history of the caller."""
    due = stored_notification(test_user)
    stored_notification(test_user, offset_minutes=60)

    response = client.get("/notifications/", headers=test_user_token_headers)

    assert response.status_code == 200
    items = response.json()
    assert [item["id"] for item in items] == [due.id]
    assert items[0]["type"] == "general"
    assert items[0]["metadata"] == {"class_id": 1}
    assert items[0]["is_read"] is False


def test_history_is_private(client, make_user, test_user_token_headers, stored_notification):
    """Test case for records of another user."""
    stored_notification(make_user())
    response = client.get("/notifications/", headers=test_user_token_headers)
    assert response.json() == []


def test_mark_read_and_unread_count(client, test_user, test_user_token_headers, stored_notification):
    """Test case for single and bulk read endpoints."""
    first = stored_notification(test_user)
    stored_notification(test_user, offset_minutes=-2)
    stored_notification(test_user, offset_minutes=30)

    count = client.get("/notifications/unread-count", headers=test_user_token_headers)
    assert count.json() == {"unread_count": 2}

    marked = client.put(f"/notifications/{first.id}/read", headers=test_user_token_headers)
    assert marked.status_code == 200
    assert marked.json()["is_read"] is True
    assert marked.json()["read_at"] is not None

    bulk = client.put("/notifications/mark-all-read", headers=test_user_token_headers)
    assert bulk.json() == {"updated": 1}
    count = client.get("/notifications/unread-count", headers=test_user_token_headers)
    assert count.json() == {"unread_count": 0}


def test_mark_read_unknown_or_future_is_404(
    client, test_user, test_user_token_headers, stored_notification
):
    """Test case for records the caller cannot see."""
    future = stored_notification(test_user, offset_minutes=90)

    for notification_id in (future.id, 999999):
        response = client.put(
            f"/notifications/{notification_id}/read", headers=test_user_token_headers
        )
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "not_found"


# ============== settings ==============


def test_settings_defaults_and_update(client, test_user_token_headers):
    """Test case for reading and changing preferences."""
    defaults = client.get("/notifications/settings", headers=test_user_token_headers)
    assert defaults.status_code == 200
    assert defaults.json()["enable_notifications"] is True
    assert defaults.json()["default_reminder_minutes"] == 15

    updated = client.put(
        "/notifications/settings",
        json={"general_reminders": False, "default_reminder_minutes": 30},
        headers=test_user_token_headers,
    )
    assert updated.status_code == 200
    assert updated.json()["general_reminders"] is False
    assert updated.json()["default_reminder_minutes"] == 30
    assert updated.json()["enable_push_notifications"] is True


def test_settings_validation(client, test_user_token_headers):
    """Test case for out-of-range settings."""
    response = client.put(
        "/notifications/settings",
        json={"default_reminder_minutes": -5},
        headers=test_user_token_headers,
    )
    assert response.status_code == 422
    assert response.json()["success"] is False


# ============== devices ==============


def test_register_and_unregister_push_token(client, session, test_user, test_user_token_headers):
    """Test case for device registration lifecycle."""
    token = "ExponentPushToken[new-tablet]"
    created = client.post(
        "/notifications/push-tokens",
        json={"token": token, "device_type": "android"},
        headers=test_user_token_headers,
    )
    assert created.status_code == 201
    assert created.json()["is_active"] is True
    assert created.json()["user_id"] == test_user.id

    for expected in (1, 0):
        response = client.post(
            "/notifications/push-tokens/unregister",
            json={"token": token},
            headers=test_user_token_headers,
        )
        assert response.json() == {"deactivated": expected}

    session.expire_all()
    row = session.query(PushToken).filter(PushToken.token == token).one()
    assert row.is_active is False


def test_register_malformed_token(client, test_user_token_headers):
    """Test case for token format validation."""
    response = client.post(
        "/notifications/push-tokens",
        json={"token": "not-expo"},
        headers=test_user_token_headers,
    )
    assert response.status_code == 422
    assert response.json()["error"]["code"] == "validation_error"


def test_send_test_notification(client, test_user_token_headers, push_stub):
    """Test case for the self-test endpoint."""
    response = client.post("/notifications/test", headers=test_user_token_headers)

    assert response.status_code == 200
    body = response.json()
    assert body["created"] == 1
    assert body["delivery"]["delivered"] == 1
    assert push_stub.sent_tokens == ["ExponentPushToken[ana-phone]"]
    assert push_stub.requests[0]["title"] == "Test notification"


# ============== staff operations ==============


def test_dispatch_event(client, make_user, make_class, staff_token_headers, push_stub):
    """Test case for reporting a cancellation through the API."""
    member = make_user(tokens=["ExponentPushToken[member]"])
    studio_class = make_class(bookings=[member])

    response = client.post(
        "/notifications/dispatch",
        json={"event": {"type": "cancellation", "class_id": studio_class.id}},
        headers=staff_token_headers,
    )

    assert response.status_code == 200
    body = response.json()
    assert body["notification_type"] == "cancellation"
    assert body["created"] == 1
    assert push_stub.sent_tokens == ["ExponentPushToken[member]"]


def test_dispatch_rejects_unknown_event_type(client, staff_token_headers):
    """Test case for discriminator validation."""
    response = client.post(
        "/notifications/dispatch",
        json={"event": {"type": "birthday", "class_id": 1}},
        headers=staff_token_headers,
    )
    assert response.status_code == 422


def test_dispatch_unknown_class_is_404(client, staff_token_headers):
    """Test case for an event about a class that does not exist."""
    response = client.post(
        "/notifications/dispatch",
        json={"event": {"type": "cancellation", "class_id": 424242}},
        headers=staff_token_headers,
    )
    assert response.status_code == 404
    assert response.json()["error"]["code"] == "notification_targets_unresolved"


def test_schedule_and_delete_class_reminders(
    client, session, make_user, make_class, staff_token_headers
):
    """Test case for the reminder management endpoints."""
    members = [make_user(), make_user()]
    studio_class = make_class(bookings=members)

    scheduled = client.post(
        f"/notifications/classes/{studio_class.id}/reminders",
        json={"minutes": 45},
        headers=staff_token_headers,
    )
    assert scheduled.json()["scheduled"] == 2

    repeated = client.post(
        f"/notifications/classes/{studio_class.id}/reminders", headers=staff_token_headers
    )
    assert repeated.json()["duplicates"] == 2

    deleted = client.delete(
        f"/notifications/classes/{studio_class.id}/reminders", headers=staff_token_headers
    )
    assert deleted.json() == {"class_id": studio_class.id, "deleted": 2}
    session.expire_all()
    assert session.query(Notification).count() == 0


def test_broadcast(client, make_user, staff_token_headers, push_stub):
    """Test case for a staff announcement."""
    make_user(tokens=["ExponentPushToken[b1]"])
    make_user(tokens=["ExponentPushToken[b2]"])

    response = client.post(
        "/notifications/broadcast",
        json={"title": "Holiday hours", "message": "Closed on Monday", "role": "client"},
        headers=staff_token_headers,
    )

    assert response.status_code == 200
    assert response.json()["created"] == 2
    assert response.json()["delivery"]["batches"] == 1
    assert sorted(push_stub.sent_tokens) == ["ExponentPushToken[b1]", "ExponentPushToken[b2]"]


def test_broadcast_requires_audience(client, staff_token_headers):
    """Test case for the broadcast audience validator."""
    response = client.post(
        "/notifications/broadcast",
        json={"title": "Hi", "message": "There"},
        headers=staff_token_headers,
    )
    assert response.status_code == 422


def test_statistics(client, make_user, staff_token_headers, stored_notification):
    """Test case for the delivery statistics endpoint."""
    user = make_user()
    stored_notification(user, notification_type=NotificationType.REMINDER, offset_minutes=60)
    stored_notification(user, notification_type=NotificationType.REMINDER)

    response = client.get("/notifications/stats", headers=staff_token_headers)

    assert response.status_code == 200
    (row,) = response.json()
    assert row["type"] == "reminder"
    assert row["total"] == 2
    assert row["scheduled"] == 1
    assert row["pending"] == 1


def test_instructor_counts_as_staff(client, make_user):
    """Test case for instructors using staff routes."""
    instructor = make_user(role=UserRole.INSTRUCTOR)
    token = create_access_token({"user_id": instructor.id})
    response = client.get("/notifications/stats", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 200
