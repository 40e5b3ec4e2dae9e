"""Domain events that produce notifications.

Each event type has its own payload model, discriminated on ``type``. A model declares
who receives it (its audience) and, when the event has a natural identity, the key used
to keep one record per recipient and event.
"""

from __future__ import annotations

import enum
from typing import Annotated, Any, ClassVar, Dict, Literal, Optional, Type, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from .models import NotificationType


class Audience(str, enum.Enum):
    CLASS_BOOKINGS = "class_bookings"
    CLASS_INSTRUCTOR = "class_instructor"
    USER = "user"


class NotificationEventBase(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    audience: ClassVar[Audience] = Audience.USER

    @property
    def notification_type(self) -> NotificationType:
        return NotificationType(self.type)  # type: ignore[attr-defined]

    @property
    def class_ref(self) -> Optional[int]:
        return getattr(self, "class_id", None)

    def event_key(self) -> Optional[str]:
        """Identity of the triggering event, or None when every occurrence is distinct."""
        return None

    def context(self) -> Dict[str, Any]:
        """Values available to message templates."""
        return self.model_dump(exclude={"type"}, exclude_none=True)

    def metadata(self) -> Dict[str, Any]:
        data = self.model_dump(mode="json", exclude_none=True)
        key = self.event_key()
        if key:
            data["event_key"] = key
        return data


# ---------------------------------------------------------------- class events
class ClassEvent(NotificationEventBase):
    audience: ClassVar[Audience] = Audience.CLASS_BOOKINGS

    class_id: int
    class_name: Optional[str] = None
    date: Optional[str] = None
    time: Optional[str] = None
    instructor_name: Optional[str] = None


class ReminderEvent(ClassEvent):
    type: Literal["reminder"] = "reminder"
    minutes: Optional[int] = Field(default=None, ge=0, le=7 * 24 * 60)

    def event_key(self) -> Optional[str]:
        return f"reminder:{self.class_id}"


class CancellationEvent(ClassEvent):
    type: Literal["cancellation"] = "cancellation"

    def event_key(self) -> Optional[str]:
        return f"cancellation:{self.class_id}"


class ClassUpdateEvent(ClassEvent):
    type: Literal["update"] = "update"
    details: Optional[str] = None


class InstructorChangeEvent(ClassEvent):
    type: Literal["instructor_change"] = "instructor_change"
    old_instructor: str
    new_instructor: str


class ClassTimeChangeEvent(ClassEvent):
    type: Literal["class_time_change"] = "class_time_change"
    old_time: str
    new_time: str


class ClassFullEvent(ClassEvent):
    audience: ClassVar[Audience] = Audience.CLASS_INSTRUCTOR
    type: Literal["class_full"] = "class_full"

    def event_key(self) -> Optional[str]:
        return f"class_full:{self.class_id}"


class ClassAssignmentEvent(ClassEvent):
    audience: ClassVar[Audience] = Audience.CLASS_INSTRUCTOR
    type: Literal["class_assignment"] = "class_assignment"

    def event_key(self) -> Optional[str]:
        return f"class_assignment:{self.class_id}"


class StudentJoinedClassEvent(ClassEvent):
    audience: ClassVar[Audience] = Audience.CLASS_INSTRUCTOR
    type: Literal["student_joined_class"] = "student_joined_class"
    student_name: Optional[str] = None


class StudentCancelledBookingEvent(ClassEvent):
    audience: ClassVar[Audience] = Audience.CLASS_INSTRUCTOR
    type: Literal["student_cancelled_booking"] = "student_cancelled_booking"
    student_name: Optional[str] = None


# ----------------------------------------------------- single-member class events
class MemberClassEvent(ClassEvent):
    audience: ClassVar[Audience] = Audience.USER

    user_id: int


class ClassBookedEvent(MemberClassEvent):
    type: Literal["class_booked"] = "class_booked"

    def event_key(self) -> Optional[str]:
        return f"class_booked:{self.class_id}"


class WaitlistJoinedEvent(MemberClassEvent):
    type: Literal["waitlist_joined"] = "waitlist_joined"
    position: Optional[int] = Field(default=None, ge=1)

    def event_key(self) -> Optional[str]:
        return f"waitlist_joined:{self.class_id}"


class WaitlistPromotionEvent(MemberClassEvent):
    type: Literal["waitlist_promotion"] = "waitlist_promotion"

    def event_key(self) -> Optional[str]:
        return f"waitlist_promotion:{self.class_id}"


class WaitlistMovedUpEvent(MemberClassEvent):
    type: Literal["waitlist_moved_up"] = "waitlist_moved_up"
    new_position: int = Field(ge=1)


# ------------------------------------------------------------ account events
class SubscriptionEvent(NotificationEventBase):
    user_id: int
    subscription_id: Optional[int] = None
    plan_name: Optional[str] = None


class SubscriptionExpiringEvent(SubscriptionEvent):
    type: Literal["subscription_expiring"] = "subscription_expiring"
    expiry_date: Optional[str] = None

    def event_key(self) -> Optional[str]:
        if self.subscription_id is None:
            return None
        return f"subscription_expiring:{self.subscription_id}"


class SubscriptionExpiredEvent(SubscriptionEvent):
    type: Literal["subscription_expired"] = "subscription_expired"

    def event_key(self) -> Optional[str]:
        if self.subscription_id is None:
            return None
        return f"subscription_expired:{self.subscription_id}"


class SubscriptionChangedEvent(SubscriptionEvent):
    type: Literal["subscription_changed"] = "subscription_changed"
    old_plan_name: Optional[str] = None


class WelcomeEvent(NotificationEventBase):
    type: Literal["welcome"] = "welcome"
    user_id: int
    user_name: Optional[str] = None

    def event_key(self) -> Optional[str]:
        return "welcome"


class GeneralEvent(NotificationEventBase):
    """Free-form announcement; targets ``user_id`` unless explicit recipients are given."""

    type: Literal["general"] = "general"
    user_id: Optional[int] = None
    title: Optional[str] = Field(default=None, max_length=200)
    message: Optional[str] = Field(default=None, max_length=2000)


NotificationEvent = Annotated[
    Union[
        ReminderEvent,
        CancellationEvent,
        ClassUpdateEvent,
        InstructorChangeEvent,
        ClassTimeChangeEvent,
        ClassFullEvent,
        ClassAssignmentEvent,
        StudentJoinedClassEvent,
        StudentCancelledBookingEvent,
        ClassBookedEvent,
        WaitlistJoinedEvent,
        WaitlistPromotionEvent,
        WaitlistMovedUpEvent,
        SubscriptionExpiringEvent,
        SubscriptionExpiredEvent,
        SubscriptionChangedEvent,
        WelcomeEvent,
        GeneralEvent,
    ],
    Field(discriminator="type"),
]

EVENT_MODELS: Dict[NotificationType, Type[NotificationEventBase]] = {
    NotificationType.REMINDER: ReminderEvent,
    NotificationType.CANCELLATION: CancellationEvent,
    NotificationType.UPDATE: ClassUpdateEvent,
    NotificationType.INSTRUCTOR_CHANGE: InstructorChangeEvent,
    NotificationType.CLASS_TIME_CHANGE: ClassTimeChangeEvent,
    NotificationType.CLASS_FULL: ClassFullEvent,
    NotificationType.CLASS_ASSIGNMENT: ClassAssignmentEvent,
    NotificationType.STUDENT_JOINED_CLASS: StudentJoinedClassEvent,
    NotificationType.STUDENT_CANCELLED_BOOKING: StudentCancelledBookingEvent,
    NotificationType.CLASS_BOOKED: ClassBookedEvent,
    NotificationType.WAITLIST_JOINED: WaitlistJoinedEvent,
    NotificationType.WAITLIST_PROMOTION: WaitlistPromotionEvent,
    NotificationType.WAITLIST_MOVED_UP: WaitlistMovedUpEvent,
    NotificationType.SUBSCRIPTION_EXPIRING: SubscriptionExpiringEvent,
    NotificationType.SUBSCRIPTION_EXPIRED: SubscriptionExpiredEvent,
    NotificationType.SUBSCRIPTION_CHANGED: SubscriptionChangedEvent,
    NotificationType.WELCOME: WelcomeEvent,
    NotificationType.GENERAL: GeneralEvent,
}

_event_adapter: TypeAdapter = TypeAdapter(NotificationEvent)


def parse_event(data: Dict[str, Any]) -> NotificationEventBase:
    """Validate a raw payload (with its ``type`` discriminator) into an event model."""
    return _event_adapter.validate_python(data)


__all__ = [
    "Audience",
    "CancellationEvent",
    "ClassAssignmentEvent",
    "ClassBookedEvent",
    "ClassEvent",
    "ClassFullEvent",
    "ClassTimeChangeEvent",
    "ClassUpdateEvent",
    "EVENT_MODELS",
    "GeneralEvent",
    "InstructorChangeEvent",
    "MemberClassEvent",
    "NotificationEvent",
    "NotificationEventBase",
    "ReminderEvent",
    "StudentCancelledBookingEvent",
    "StudentJoinedClassEvent",
    "SubscriptionChangedEvent",
    "SubscriptionEvent",
    "SubscriptionExpiredEvent",
    "SubscriptionExpiringEvent",
    "WaitlistJoinedEvent",
    "WaitlistMovedUpEvent",
    "WaitlistPromotionEvent",
    "WelcomeEvent",
    "parse_event",
]
