"""Read-only queries over studio tables used to resolve notification recipients."""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session, joinedload

from app.modules.studio import models as studio_models


class StudioRepository:
    """Encapsulate the booking/class/subscription lookups the dispatcher needs."""

    def __init__(self, db: Session):
        self.db = db

    # ------------------------------------------------------------------ users
    def get_user(self, user_id: int) -> Optional[studio_models.User]:
        return self.db.get(studio_models.User, user_id)

    def existing_user_ids(self, user_ids: Iterable[int]) -> List[int]:
        wanted = list(user_ids)
        if not wanted:
            return []
        rows = (
            self.db.query(studio_models.User.id)
            .filter(studio_models.User.id.in_(wanted))
            .all()
        )
        found = {row[0] for row in rows}
        return [user_id for user_id in wanted if user_id in found]

    def user_ids_by_role(self, role: studio_models.UserRole) -> List[int]:
        rows = (
            self.db.query(studio_models.User.id)
            .filter(studio_models.User.role == role.value)
            .order_by(studio_models.User.id)
            .all()
        )
        return [row[0] for row in rows]

    def get_language(self, user_id: int) -> Optional[str]:
        row = (
            self.db.query(studio_models.User.language_preference)
            .filter(studio_models.User.id == user_id)
            .first()
        )
        return row[0] if row else None

    def clear_legacy_push_token(self, user_id: int) -> None:
        self.db.query(studio_models.User).filter(
            studio_models.User.id == user_id
        ).update({"push_token": None}, synchronize_session=False)
        self.db.commit()

    # ---------------------------------------------------------------- classes
    def get_class(self, class_id: int) -> Optional[studio_models.StudioClass]:
        return (
            self.db.query(studio_models.StudioClass)
            .options(joinedload(studio_models.StudioClass.instructor))
            .filter(studio_models.StudioClass.id == class_id)
            .first()
        )

    def confirmed_booking_user_ids(self, class_id: int) -> List[int]:
        rows = (
            self.db.query(studio_models.Booking.user_id)
            .filter(
                studio_models.Booking.class_id == class_id,
                studio_models.Booking.status == studio_models.BookingStatus.CONFIRMED.value,
            )
            .order_by(studio_models.Booking.id)
            .all()
        )
        seen = set()
        ordered = []
        for (user_id,) in rows:
            if user_id not in seen:
                seen.add(user_id)
                ordered.append(user_id)
        return ordered

    # ---------------------------------------------------------- subscriptions
    def expiring_subscriptions(
        self, now: datetime, window_end: datetime
    ) -> List[studio_models.UserSubscription]:
        """Active subscriptions whose end date falls in (now, window_end]."""
        return (
            self.db.query(studio_models.UserSubscription)
            .options(joinedload(studio_models.UserSubscription.plan))
            .filter(
                studio_models.UserSubscription.status
                == studio_models.SubscriptionStatus.ACTIVE.value,
                studio_models.UserSubscription.end_date > now,
                studio_models.UserSubscription.end_date <= window_end,
            )
            .order_by(studio_models.UserSubscription.end_date)
            .all()
        )

    def recently_expired_subscriptions(
        self, since: datetime, now: datetime
    ) -> List[studio_models.UserSubscription]:
        """Subscriptions (not cancelled) whose end date falls in (since, now]."""
        return (
            self.db.query(studio_models.UserSubscription)
            .options(joinedload(studio_models.UserSubscription.plan))
            .filter(
                studio_models.UserSubscription.status
                != studio_models.SubscriptionStatus.CANCELLED.value,
                studio_models.UserSubscription.end_date > since,
                studio_models.UserSubscription.end_date <= now,
            )
            .order_by(studio_models.UserSubscription.end_date)
            .all()
        )


__all__ = ["StudioRepository"]
