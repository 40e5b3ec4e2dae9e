"""Push token registry.

Tokens are never deleted: a malformed or gateway-rejected token is flipped inactive so a
late re-registration from the same device can simply reactivate its row.
"""

from __future__ import annotations

import re
from typing import List, Optional

from sqlalchemy.orm import Session

from app.core.exceptions import ValidationException
from app.modules.studio.repository import StudioRepository

from .common import logger
from .models import PushToken

TOKEN_PATTERN = re.compile(r"^Expo(nent)?PushToken\[.+\]$")


def is_valid_push_token(token: Optional[str]) -> bool:
    return bool(token) and TOKEN_PATTERN.match(token) is not None


def mask_token(token: str) -> str:
    """Shorten a token for log output."""
    if len(token) <= 16:
        return token
    return f"{token[:14]}…{token[-4:]}"


class TokenRegistry:
    """Data access for ``push_tokens`` plus the legacy ``users.push_token`` column."""

    def __init__(self, db: Session):
        self.db = db
        self.studio = StudioRepository(db)

    def active_tokens(self, user_id: int) -> List[str]:
        rows = (
            self.db.query(PushToken.token)
            .filter(PushToken.user_id == user_id, PushToken.is_active.is_(True))
            .order_by(PushToken.id)
            .all()
        )
        return [row[0] for row in rows]

    def active_tokens_for_users(self, user_ids: List[int]) -> List[str]:
        if not user_ids:
            return []
        rows = (
            self.db.query(PushToken.token)
            .filter(PushToken.user_id.in_(user_ids), PushToken.is_active.is_(True))
            .order_by(PushToken.user_id, PushToken.id)
            .all()
        )
        return [row[0] for row in rows]

    def legacy_token(self, user_id: int) -> Optional[str]:
        user = self.studio.get_user(user_id)
        return user.push_token if user else None

    def clear_legacy_token(self, user_id: int) -> None:
        self.studio.clear_legacy_push_token(user_id)
        logger.info("Cleared legacy push token for user %s", user_id)

    def get(self, token: str) -> Optional[PushToken]:
        return self.db.query(PushToken).filter(PushToken.token == token).first()

    def register(
        self,
        user_id: int,
        token: str,
        *,
        device_type: Optional[str] = None,
        device_name: Optional[str] = None,
    ) -> PushToken:
        """Create or reactivate a token row; a token seen under another user moves over."""
        token = token.strip()
        if not is_valid_push_token(token):
            raise ValidationException("Push token has an invalid format", field="token")

        row = self.get(token)
        if row is None:
            row = PushToken(
                user_id=user_id,
                token=token,
                device_type=device_type,
                device_name=device_name,
                is_active=True,
            )
            self.db.add(row)
        else:
            if row.user_id != user_id:
                logger.info(
                    "Push token %s moved from user %s to user %s",
                    mask_token(token),
                    row.user_id,
                    user_id,
                )
            row.user_id = user_id
            row.is_active = True
            row.device_type = device_type or row.device_type
            row.device_name = device_name or row.device_name
        self.db.commit()
        self.db.refresh(row)
        return row

    def deactivate(self, token: str, *, user_id: Optional[int] = None) -> int:
        """Flip matching rows inactive; repeated calls are harmless and insert nothing."""
        query = self.db.query(PushToken).filter(PushToken.token == token)
        if user_id is not None:
            query = query.filter(PushToken.user_id == user_id)
        updated = query.filter(PushToken.is_active.is_(True)).update(
            {"is_active": False}, synchronize_session=False
        )
        self.db.commit()
        if updated:
            logger.info("Deactivated push token %s", mask_token(token))
        return updated or 0


__all__ = [
    "TOKEN_PATTERN",
    "TokenRegistry",
    "is_valid_push_token",
    "mask_token",
]
