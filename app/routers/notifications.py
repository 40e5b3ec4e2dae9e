"""Notifications router covering history, settings, devices and staff dispatch operations."""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session

from app import oauth2
from app.core.database import get_db
from app.core.middleware.rate_limit import limiter
from app.modules.notifications import schemas
from app.modules.notifications.events import GeneralEvent
from app.modules.notifications.push import PushGateway, get_push_gateway
from app.modules.notifications.service import (
    NotificationDispatcher,
    NotificationService,
)
from app.modules.studio.models import User

router = APIRouter(prefix="/notifications", tags=["Notifications"])


# === History Endpoints ===


@router.get("/", response_model=List[schemas.NotificationOut])
async def get_notifications(
    db: Session = Depends(get_db),
    current_user: User = Depends(oauth2.get_current_user),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=100),
    include_read: bool = True,
):
    """Get the notifications of the current user that are already due."""
    notification_service = NotificationService(db)
    return await notification_service.get_user_notifications(
        current_user.id, limit=limit, skip=skip, include_read=include_read
    )


@router.get("/unread-count", response_model=schemas.UnreadCountOut)
async def get_unread_count(
    db: Session = Depends(get_db),
    current_user: User = Depends(oauth2.get_current_user),
):
    """Get the count of unread notifications."""
    notification_service = NotificationService(db)
    return {"unread_count": await notification_service.unread_count(current_user.id)}


@router.put("/mark-all-read", response_model=schemas.MarkAllReadOut)
@limiter.limit("10/minute")
async def mark_all_notifications_as_read(
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(oauth2.get_current_user),
):
    """Mark all notifications as read."""
    notification_service = NotificationService(db)
    return {"updated": await notification_service.mark_all_read(current_user.id)}


@router.put("/{notification_id}/read", response_model=schemas.NotificationOut)
@limiter.limit("100/minute")
async def mark_notification_as_read(
    request: Request,
    notification_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(oauth2.get_current_user),
):
    """Mark a specific notification as read."""
    notification_service = NotificationService(db)
    return await notification_service.mark_read(notification_id, current_user.id)


# === Settings Endpoints ===


@router.get("/settings", response_model=schemas.NotificationSettingsOut)
async def get_notification_settings(
    db: Session = Depends(get_db),
    current_user: User = Depends(oauth2.get_current_user),
):
    notification_service = NotificationService(db)
    return await notification_service.get_settings(current_user.id)


@router.put("/settings", response_model=schemas.NotificationSettingsOut)
@limiter.limit("30/minute")
async def update_notification_settings(
    request: Request,
    payload: schemas.NotificationSettingsUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(oauth2.get_current_user),
):
    """Update the notification settings of the current user."""
    notification_service = NotificationService(db)
    return await notification_service.update_settings(
        current_user.id, payload.model_dump(exclude_unset=True)
    )


# === Device Endpoints ===


@router.post(
    "/push-tokens",
    response_model=schemas.PushTokenOut,
    status_code=status.HTTP_201_CREATED,
)
@limiter.limit("20/minute")
async def register_push_token(
    request: Request,
    payload: schemas.PushTokenRegister,
    db: Session = Depends(get_db),
    current_user: User = Depends(oauth2.get_current_user),
):
    """Register (or reactivate) a device push token for the current user."""
    notification_service = NotificationService(db)
    return await notification_service.register_push_token(
        current_user.id,
        payload.token,
        device_type=payload.device_type,
        device_name=payload.device_name,
    )


@router.post("/push-tokens/unregister", response_model=schemas.UnregisterOut)
@limiter.limit("20/minute")
async def unregister_push_token(
    request: Request,
    payload: schemas.PushTokenUnregister,
    db: Session = Depends(get_db),
    current_user: User = Depends(oauth2.get_current_user),
):
    notification_service = NotificationService(db)
    deactivated = await notification_service.unregister_push_token(
        current_user.id, payload.token
    )
    return {"deactivated": deactivated}


@router.post("/test", response_model=schemas.DispatchResultOut)
@limiter.limit("5/minute")
async def send_test_notification(
    request: Request,
    payload: Optional[schemas.NotificationTestRequest] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(oauth2.get_current_user),
    gateway: Optional[PushGateway] = Depends(get_push_gateway),
):
    """Send a general notification to the caller's own devices."""
    payload = payload or schemas.NotificationTestRequest()
    dispatcher = NotificationDispatcher(db, gateway)
    result = await dispatcher.notify(
        GeneralEvent(
            user_id=current_user.id,
            title=payload.title or "Test notification",
            message=payload.message or "Push notifications are working.",
        )
    )
    return result.as_dict()


# === Staff Endpoints ===


@router.post("/dispatch", response_model=schemas.DispatchResultOut)
@limiter.limit("60/minute")
async def dispatch_event(
    request: Request,
    payload: schemas.DispatchRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(oauth2.get_current_staff),
    gateway: Optional[PushGateway] = Depends(get_push_gateway),
):
    """Report a studio event and notify everyone it concerns."""
    dispatcher = NotificationDispatcher(db, gateway)
    result = await dispatcher.notify(
        payload.event, payload.target_user_ids, resend=payload.resend
    )
    return result.as_dict()


@router.post("/broadcast", response_model=schemas.DispatchResultOut)
@limiter.limit("10/minute")
async def broadcast_notification(
    request: Request,
    payload: schemas.BroadcastRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(oauth2.get_current_staff),
    gateway: Optional[PushGateway] = Depends(get_push_gateway),
):
    dispatcher = NotificationDispatcher(db, gateway)
    result = await dispatcher.broadcast(
        payload.title, payload.message, role=payload.role, user_ids=payload.user_ids
    )
    return result.as_dict()


@router.post("/classes/{class_id}/reminders", response_model=schemas.DispatchResultOut)
@limiter.limit("30/minute")
async def schedule_class_reminders(
    request: Request,
    class_id: int,
    payload: Optional[schemas.ScheduleRemindersRequest] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(oauth2.get_current_staff),
    gateway: Optional[PushGateway] = Depends(get_push_gateway),
):
    """Create reminders for every confirmed booking of a class."""
    dispatcher = NotificationDispatcher(db, gateway)
    result = await dispatcher.schedule_class_reminders(
        class_id, minutes=payload.minutes if payload else None
    )
    return result.as_dict()


@router.delete("/classes/{class_id}/reminders", response_model=schemas.RemindersDeletedOut)
@limiter.limit("30/minute")
async def delete_class_reminders(
    request: Request,
    class_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(oauth2.get_current_staff),
):
    notification_service = NotificationService(db)
    deleted = await notification_service.delete_class_reminders(class_id)
    return {"class_id": class_id, "deleted": deleted}


@router.get("/stats", response_model=List[schemas.TypeStatisticsOut])
async def get_delivery_statistics(
    db: Session = Depends(get_db),
    current_user: User = Depends(oauth2.get_current_staff),
):
    """Per-type counts of pushed, pending and scheduled notifications."""
    notification_service = NotificationService(db)
    return await notification_service.delivery_statistics()
