"""JWT utilities for auth and role enforcement.

Responsibilities:
- Create and verify HS256-signed access tokens carrying a ``user_id`` claim.
- Resolve the current user and attach it to the request for access logging.
- Restrict studio-wide operations to staff roles.
"""

# ============================================
# Imports and Dependencies
# ============================================
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer
from jose import ExpiredSignatureError, JWTError, jwt
from pydantic import BaseModel
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.database import get_db
from app.core.exceptions import (
    AuthenticationException,
    InvalidTokenException,
    PermissionDeniedException,
    TokenExpiredException,
)
from app.modules.studio.models import User

logger = logging.getLogger(__name__)

# auto_error=False so a missing header goes through the same 401 envelope as a bad token.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="login", auto_error=False)


# ============================================
# Token Data Model
# ============================================
class TokenData(BaseModel):
    """
    Schema to store token data.
    """

    id: Optional[int] = None


# ============================================
# Token Creation Function
# ============================================
def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create a JWT access token signed with the shared secret.

    - Clones payload, normalizes user_id to int, and sets exp claim.
    """
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )
    to_encode.update({"exp": expire})

    if "user_id" in to_encode:
        try:
            to_encode["user_id"] = int(to_encode["user_id"])
        except (TypeError, ValueError):
            logger.error("Invalid user_id format: %s", to_encode["user_id"])
            raise ValueError("Invalid user_id format")

    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)


# ============================================
# Token Verification Function
# ============================================
def verify_access_token(token: str) -> TokenData:
    """Verify JWT access token (exp/user_id) and return TokenData or raise."""
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except ExpiredSignatureError:
        raise TokenExpiredException()
    except JWTError as exc:
        logger.warning("JWT Error: %s", exc)
        raise InvalidTokenException()

    user_id = payload.get("user_id")
    if user_id is None:
        logger.warning("User ID not found in token payload")
        raise InvalidTokenException()
    try:
        return TokenData(id=int(user_id))
    except (TypeError, ValueError):
        logger.error("Invalid user_id in token payload: %s", user_id)
        raise InvalidTokenException()


# ============================================
# Current User Retrieval Functions
# ============================================
def get_current_user(
    request: Request,
    token: Optional[str] = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> User:
    """Return the authenticated user or raise 401 before any work is done."""
    if not token:
        raise AuthenticationException(message="Not authenticated")
    token_data = verify_access_token(token)
    user = db.get(User, token_data.id)
    if user is None:
        logger.warning("Token refers to missing user %s", token_data.id)
        raise InvalidTokenException()
    request.state.user = user
    return user


def get_current_staff(current_user: User = Depends(get_current_user)) -> User:
    """Allow admin, reception and instructor accounts only."""
    if not current_user.is_staff:
        raise PermissionDeniedException("Staff access required")
    return current_user


__all__ = [
    "TokenData",
    "create_access_token",
    "get_current_staff",
    "get_current_user",
    "oauth2_scheme",
    "verify_access_token",
]
