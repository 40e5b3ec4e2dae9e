"""SQLAlchemy models for the studio tables the notification layer reads.

Users, classes, bookings and subscriptions are written by the booking and back-office
parts of the product; this service only queries them to resolve recipients and to
enrich notification text.
"""

from __future__ import annotations

import enum

from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
)
from sqlalchemy.orm import relationship

from app.core.database import Base
from app.core.db_defaults import timestamp_default


class UserRole(str, enum.Enum):
    ADMIN = "admin"
    RECEPTION = "reception"
    INSTRUCTOR = "instructor"
    CLIENT = "client"


STAFF_ROLES = frozenset({UserRole.ADMIN, UserRole.RECEPTION, UserRole.INSTRUCTOR})


class BookingStatus(str, enum.Enum):
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    WAITLISTED = "waitlisted"


class SubscriptionStatus(str, enum.Enum):
    ACTIVE = "active"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


class User(Base):
    """Studio member, instructor or staff account."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, nullable=False, unique=True)
    name = Column(String, nullable=True)
    role = Column(String, nullable=False, default=UserRole.CLIENT.value)
    language_preference = Column(String, nullable=True, default="en")
    # Single-device token kept by older app builds; superseded by push_tokens.
    push_token = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=timestamp_default())

    bookings = relationship("Booking", back_populates="user")
    subscriptions = relationship("UserSubscription", back_populates="user")

    @property
    def is_staff(self) -> bool:
        return self.role in {role.value for role in STAFF_ROLES}


class StudioClass(Base):
    """A scheduled Pilates class."""

    __tablename__ = "classes"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    instructor_id = Column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    start_time = Column(DateTime(timezone=True), nullable=False)
    duration_minutes = Column(Integer, default=50)
    capacity = Column(Integer, default=10)
    status = Column(String, default="scheduled")
    created_at = Column(DateTime(timezone=True), server_default=timestamp_default())

    instructor = relationship("User", foreign_keys=[instructor_id])
    bookings = relationship("Booking", back_populates="studio_class")

    __table_args__ = (Index("idx_classes_start_time", "start_time"),)


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    class_id = Column(Integer, ForeignKey("classes.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    status = Column(String, nullable=False, default=BookingStatus.CONFIRMED.value)
    created_at = Column(DateTime(timezone=True), server_default=timestamp_default())

    studio_class = relationship("StudioClass", back_populates="bookings")
    user = relationship("User", back_populates="bookings")

    __table_args__ = (Index("idx_bookings_class_status", "class_id", "status"),)


class SubscriptionPlan(Base):
    __tablename__ = "subscription_plans"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    duration_days = Column(Integer, nullable=True)


class UserSubscription(Base):
    """A member's purchased plan with its validity window."""

    __tablename__ = "user_subscriptions"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    plan_id = Column(Integer, ForeignKey("subscription_plans.id"), nullable=True)
    start_date = Column(DateTime(timezone=True), nullable=True)
    end_date = Column(DateTime(timezone=True), nullable=False)
    status = Column(String, nullable=False, default=SubscriptionStatus.ACTIVE.value)

    user = relationship("User", back_populates="subscriptions")
    plan = relationship("SubscriptionPlan")

    __table_args__ = (Index("idx_user_subscriptions_status_end", "status", "end_date"),)


__all__ = [
    "Booking",
    "BookingStatus",
    "STAFF_ROLES",
    "StudioClass",
    "SubscriptionPlan",
    "SubscriptionStatus",
    "User",
    "UserRole",
    "UserSubscription",
]
